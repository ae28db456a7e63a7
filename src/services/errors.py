RETRYABLE_STATUS_CODES = frozenset({429, 503, 504})


def is_retryable_status(status_code: int | None) -> bool:
    return status_code in RETRYABLE_STATUS_CODES


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return is_retryable_status(self.status_code)


class ConfigurationMissingError(ServiceError):
    def __init__(self, missing: list[str], status_code: int = 500) -> None:
        super().__init__(f"Missing configuration: {', '.join(missing)}", status_code)
        self.missing = missing


class NoInputError(ServiceError):
    status_code = 400


class UpstreamOverloadedError(ServiceError):
    status_code = 503


class RateLimitedError(ServiceError):
    status_code = 429


class UpstreamAuthError(ServiceError):
    status_code = 401


class UpstreamTimeoutError(ServiceError):
    status_code = 504


class GenerationParseError(ServiceError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to parse generated recipe: {reason}")
        self.reason = reason


class GenerationFailedError(ServiceError):
    pass


class AvatarSessionError(ServiceError):
    pass


class RelayError(ServiceError):
    pass


class RelayConnectionError(RelayError):
    pass


class RelayProtocolError(RelayError):
    pass


class ApiRequestError(ServiceError):
    def __init__(self, status_code: int, message: str, details: str | None = None) -> None:
        super().__init__(message, status_code)
        self.details = details

    @property
    def full_message(self) -> str:
        if self.details:
            return f"{self}: {self.details}"
        return str(self)


class OrchestratorStateError(ServiceError):
    status_code = 409
