from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from src.services.anam_session import SESSION_TOKEN_PATH, SessionConfig, create_session_config
from src.services.errors import AvatarSessionError, ConfigurationMissingError


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url="https://anam.test", transport=httpx.MockTransport(handler))


class TestCreateSessionConfig:
    def test_returns_token_and_agent(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"sessionToken": "tok-123"})

        async def run() -> SessionConfig:
            async with _client(handler) as client:
                return await create_session_config("key", "avatar-1", "agent-1", http_client=client)

        config = asyncio.run(run())

        assert config == SessionConfig(anam_session_token="tok-123", elevenlabs_agent_id="agent-1")
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == SESSION_TOKEN_PATH
        assert request.headers["Authorization"] == "Bearer key"
        assert json.loads(request.content) == {
            "personaConfig": {"avatarId": "avatar-1", "enableAudioPassthrough": True}
        }

    def test_missing_settings_is_a_400(self) -> None:
        with pytest.raises(ConfigurationMissingError) as excinfo:
            asyncio.run(create_session_config(None, "avatar-1", ""))

        assert excinfo.value.status_code == 400
        assert excinfo.value.missing == ["ANAM_API_KEY", "ELEVENLABS_AGENT_ID"]

    def test_refused_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"message": "bad key"})

        async def run() -> None:
            async with _client(handler) as client:
                await create_session_config("key", "avatar-1", "agent-1", http_client=client)

        with pytest.raises(AvatarSessionError) as excinfo:
            asyncio.run(run())
        assert str(excinfo.value) == "Failed to create Anam session token"
        assert excinfo.value.status_code == 500

    def test_response_without_token(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        async def run() -> None:
            async with _client(handler) as client:
                await create_session_config("key", "avatar-1", "agent-1", http_client=client)

        with pytest.raises(AvatarSessionError):
            asyncio.run(run())

    def test_transport_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        async def run() -> None:
            async with _client(handler) as client:
                await create_session_config("key", "avatar-1", "agent-1", http_client=client)

        with pytest.raises(AvatarSessionError):
            asyncio.run(run())
