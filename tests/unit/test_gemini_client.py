from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from google.genai import errors as genai_errors

from src.services.errors import (
    ConfigurationMissingError,
    GenerationFailedError,
    RateLimitedError,
    UpstreamAuthError,
    UpstreamOverloadedError,
    UpstreamTimeoutError,
)
from src.services.gemini_client import GeminiClient, GeminiPromptError, classify_upstream_error


class CodedError(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code


class TestClassifyUpstreamError:
    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            (401, UpstreamAuthError),
            (403, UpstreamAuthError),
            (429, RateLimitedError),
            (503, UpstreamOverloadedError),
            (504, UpstreamTimeoutError),
        ],
    )
    def test_status_code_wins(self, code: int, expected: type) -> None:
        assert isinstance(classify_upstream_error(CodedError(code, "upstream")), expected)

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("The model is overloaded", UpstreamOverloadedError),
            ("Quota exceeded for project", RateLimitedError),
            ("RESOURCE_EXHAUSTED", RateLimitedError),
            ("API key not valid", UpstreamAuthError),
            ("Deadline exceeded", UpstreamTimeoutError),
            ("request timed out", UpstreamTimeoutError),
        ],
    )
    def test_message_keywords(self, message: str, expected: type) -> None:
        assert isinstance(classify_upstream_error(RuntimeError(message)), expected)

    def test_transport_timeout(self) -> None:
        error = classify_upstream_error(httpx.ReadTimeout("slow"))
        assert isinstance(error, UpstreamTimeoutError)
        assert error.retryable

    def test_unknown_failure_is_terminal(self) -> None:
        error = classify_upstream_error(RuntimeError("something odd"))
        assert isinstance(error, GenerationFailedError)
        assert str(error) == "Failed to generate recipe: something odd"
        assert not error.retryable

    def test_service_errors_pass_through(self) -> None:
        original = RateLimitedError("slow down")
        assert classify_upstream_error(original) is original


class TestGeminiClient:
    def _prompt(self, tmp_path: Path) -> Path:
        path = tmp_path / "prompt.txt"
        path.write_text("Return JSON only.", encoding="utf-8")
        return path

    def test_requires_api_key(self) -> None:
        with pytest.raises(ConfigurationMissingError):
            GeminiClient(api_key=None)

    def test_generate_content_passes_config(self, tmp_path: Path) -> None:
        sdk = MagicMock()
        sdk.models.generate_content.return_value = SimpleNamespace(text='{"title": "Rice"}')
        client = GeminiClient(api_key=None, model_name="gemini-test", client=sdk)

        text = client.generate_content("make rice", self._prompt(tmp_path), temperature=0.2, max_output_tokens=50)

        assert text == '{"title": "Rice"}'
        kwargs = sdk.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["contents"] == "make rice"
        assert kwargs["config"].system_instruction == "Return JSON only."
        assert kwargs["config"].temperature == 0.2
        assert kwargs["config"].max_output_tokens == 50

    def test_sdk_error_is_classified(self, tmp_path: Path) -> None:
        sdk = MagicMock()
        sdk.models.generate_content.side_effect = genai_errors.ServerError(
            503,
            {"error": {"code": 503, "message": "The model is overloaded.", "status": "UNAVAILABLE"}},
        )
        client = GeminiClient(api_key=None, client=sdk)

        with pytest.raises(UpstreamOverloadedError):
            client.generate_content("make rice", self._prompt(tmp_path))

    def test_empty_response_fails(self, tmp_path: Path) -> None:
        sdk = MagicMock()
        sdk.models.generate_content.return_value = SimpleNamespace(text="")
        client = GeminiClient(api_key=None, client=sdk)

        with pytest.raises(GenerationFailedError):
            client.generate_content("make rice", self._prompt(tmp_path))

    def test_missing_prompt_file(self, tmp_path: Path) -> None:
        client = GeminiClient(api_key=None, client=MagicMock())

        with pytest.raises(GeminiPromptError):
            client.generate_content("make rice", tmp_path / "missing.txt")
