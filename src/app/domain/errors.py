from __future__ import annotations


class DomainError(Exception):
    pass


class NotFoundError(DomainError):
    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ForbiddenError(DomainError):
    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"Not allowed to access {entity}: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class RecipeValidationError(DomainError):
    def __init__(self, field: str, reason: str = "is required"):
        super().__init__(f"Invalid recipe structure: '{field}' {reason}")
        self.field = field
        self.reason = reason


class RepositoryError(DomainError):
    def __init__(self, operation: str, reason: str):
        super().__init__(f"Repository error during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class WorkerConfigurationError(DomainError):
    def __init__(self, errors: list[str]):
        super().__init__(f"Worker configuration errors: {', '.join(errors)}")
        self.errors = errors
