from __future__ import annotations

import logging
from pathlib import Path

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from src.services.errors import (
    ConfigurationMissingError,
    GenerationFailedError,
    RateLimitedError,
    ServiceError,
    UpstreamAuthError,
    UpstreamOverloadedError,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)


class GeminiPromptError(ServiceError):
    pass


OVERLOADED_MESSAGE = "The AI service is currently overloaded. Please try again in a few moments."
RATE_LIMITED_MESSAGE = "Rate limit exceeded. Please wait a moment before trying again."
AUTH_FAILED_MESSAGE = "API authentication failed. Please check your API key configuration."
TIMEOUT_MESSAGE = "Request timed out. Please try again."

_STATUS_ERRORS: dict[int, tuple[type[ServiceError], str]] = {
    401: (UpstreamAuthError, AUTH_FAILED_MESSAGE),
    403: (UpstreamAuthError, AUTH_FAILED_MESSAGE),
    429: (RateLimitedError, RATE_LIMITED_MESSAGE),
    503: (UpstreamOverloadedError, OVERLOADED_MESSAGE),
    504: (UpstreamTimeoutError, TIMEOUT_MESSAGE),
}


def classify_upstream_error(error: Exception) -> ServiceError:
    """Map an SDK or transport failure onto the generation error taxonomy."""
    if isinstance(error, ServiceError):
        return error
    if isinstance(error, (TimeoutError, httpx.TimeoutException)):
        return UpstreamTimeoutError(TIMEOUT_MESSAGE)

    message = str(error)
    status_code = getattr(error, "code", None)
    if isinstance(status_code, int) and status_code in _STATUS_ERRORS:
        error_type, friendly = _STATUS_ERRORS[status_code]
        return error_type(friendly)

    lowered = message.lower()
    if "overload" in lowered:
        return UpstreamOverloadedError(OVERLOADED_MESSAGE)
    if "rate limit" in lowered or "quota" in lowered or "resource_exhausted" in lowered:
        return RateLimitedError(RATE_LIMITED_MESSAGE)
    if "api key" in lowered or "authentication" in lowered:
        return UpstreamAuthError(AUTH_FAILED_MESSAGE)
    if "timeout" in lowered or "timed out" in lowered or "deadline" in lowered:
        return UpstreamTimeoutError(TIMEOUT_MESSAGE)
    return GenerationFailedError(f"Failed to generate recipe: {message}")


class GeminiClient:
    def __init__(
        self,
        api_key: str | None,
        model_name: str = "gemini-2.5-flash",
        client: genai.Client | None = None,
    ) -> None:
        if not api_key and client is None:
            raise ConfigurationMissingError(["GEMINI_API_KEY"])
        self.model_name = model_name
        self._client = client or genai.Client(api_key=api_key)

    def _load_system_prompt(self, file_path: Path) -> str:
        try:
            return file_path.read_text(encoding="utf-8")
        except FileNotFoundError as not_found_error:
            raise GeminiPromptError(f"Prompt file not found: {file_path}") from not_found_error
        except (OSError, IOError) as io_error:
            raise GeminiPromptError(f"Unable to read prompt file: {io_error}") from io_error

    def generate_content(
        self,
        user_prompt: str,
        system_prompt_path: Path,
        *,
        temperature: float = 0.7,
        max_output_tokens: int = 2000,
    ) -> str:
        system_instruction = self._load_system_prompt(system_prompt_path)
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )

        try:
            response = self._client.models.generate_content(
                model=self.model_name,
                contents=user_prompt,
                config=config,
            )
        except genai_errors.APIError as err:
            logger.error("Gemini API error: code=%s status=%s", err.code, err.status)
            raise classify_upstream_error(err) from err
        except (ConnectionError, TimeoutError, httpx.HTTPError) as err:
            logger.error("Gemini transport error: %s", err)
            raise classify_upstream_error(err) from err

        text = response.text
        if not text:
            raise GenerationFailedError("Model response did not include text content.")
        return text
