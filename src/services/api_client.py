from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from src.services.anam_session import SessionConfig
from src.services.errors import ApiRequestError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def _error_from_response(response: httpx.Response, default_message: str) -> ApiRequestError:
    try:
        data = response.json()
    except ValueError:
        logger.error("Raw error response (text): %s", response.text)
        return ApiRequestError(
            response.status_code,
            f"HTTP {response.status_code}: {response.reason_phrase}",
            response.text or None,
        )

    if not isinstance(data, dict):
        return ApiRequestError(response.status_code, default_message)

    message = data.get("error") or data.get("detail") or default_message
    if not isinstance(message, str):
        message = default_message
    details = data.get("details") or data.get("message")
    return ApiRequestError(response.status_code, message, str(details) if details else None)


class CheffyApiClient:
    """Async client for the Cheffy API, used by the voice client."""

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.access_token = access_token
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url, timeout=DEFAULT_TIMEOUT_SECONDS)

    @property
    def is_signed_in(self) -> bool:
        return bool(self.access_token)

    def _headers(self) -> dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(
        self,
        method: str,
        path: str,
        default_error: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        response = await self._http.request(method, path, headers=self._headers(), **kwargs)
        if response.is_error:
            error = _error_from_response(response, default_error)
            logger.error("API %s %s failed: status=%d error=%s", method, path, response.status_code, error)
            raise error
        return response.json()

    async def get_session_config(self) -> SessionConfig:
        data = await self._request("GET", "/session/config", "Failed to fetch configuration")
        token = data.get("anamSessionToken")
        agent_id = data.get("elevenLabsAgentId")
        if not token or not agent_id:
            raise ApiRequestError(
                500,
                "Missing session token or agent ID. Check your environment variables.",
            )
        return SessionConfig(anam_session_token=token, elevenlabs_agent_id=agent_id)

    async def save_conversation(
        self,
        messages: list[dict[str, str]],
        title: Optional[str] = None,
    ) -> dict[str, Any]:
        data = await self._request(
            "POST",
            "/conversations",
            "Failed to save conversation",
            json={"messages": messages, "title": title},
        )
        return data["conversation"]

    async def get_conversation(self, conversation_id: str) -> dict[str, Any]:
        data = await self._request(
            "GET",
            f"/conversations/{conversation_id}",
            "Failed to load conversation",
        )
        return data["conversation"]

    async def list_conversations(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/conversations", "Failed to fetch conversations")
        return list(data.get("conversations") or [])

    async def generate_recipe(
        self,
        messages: list[dict[str, str]],
        conversation_title: Optional[str] = None,
    ) -> dict[str, Any]:
        # generation can run long; timeouts come from the upstream model only
        data = await self._request(
            "POST",
            "/recipes/generate",
            "Failed to generate recipe",
            json={"messages": messages, "conversationTitle": conversation_title},
            timeout=None,
        )
        return data["recipe"]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
