from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from src.services.errors import AvatarSessionError, ConfigurationMissingError

logger = logging.getLogger(__name__)

SESSION_TOKEN_PATH = "/v1/auth/session-token"
REQUEST_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True)
class SessionConfig:
    anam_session_token: str
    elevenlabs_agent_id: str


def _missing_settings(
    api_key: Optional[str],
    avatar_id: Optional[str],
    agent_id: Optional[str],
) -> list[str]:
    missing = []
    if not api_key:
        missing.append("ANAM_API_KEY")
    if not avatar_id:
        missing.append("ANAM_AVATAR_ID")
    if not agent_id:
        missing.append("ELEVENLABS_AGENT_ID")
    return missing


async def create_session_config(
    api_key: Optional[str],
    avatar_id: Optional[str],
    agent_id: Optional[str],
    *,
    base_url: str = "https://api.anam.ai",
    http_client: httpx.AsyncClient | None = None,
) -> SessionConfig:
    """
    Request an avatar session token with audio passthrough enabled.

    Raises:
        ConfigurationMissingError: any of the three settings is empty (400)
        AvatarSessionError: the avatar service refused or was unreachable
    """
    missing = _missing_settings(api_key, avatar_id, agent_id)
    if missing:
        raise ConfigurationMissingError(missing, status_code=400)

    payload = {
        "personaConfig": {
            "avatarId": avatar_id,
            "enableAudioPassthrough": True,
        },
    }
    headers = {"Authorization": f"Bearer {api_key}"}
    client = http_client or httpx.AsyncClient(base_url=base_url, timeout=REQUEST_TIMEOUT_SECONDS)

    try:
        response = await client.post(SESSION_TOKEN_PATH, json=payload, headers=headers)
    except httpx.HTTPError as error:
        logger.error("Avatar session request failed: %s", error)
        raise AvatarSessionError("Failed to create Anam session token") from error
    finally:
        if http_client is None:
            await client.aclose()

    if response.is_error:
        logger.error("Anam API error: status=%d body=%s", response.status_code, response.text)
        raise AvatarSessionError("Failed to create Anam session token")

    token = response.json().get("sessionToken")
    if not token:
        logger.error("Anam API response carried no sessionToken")
        raise AvatarSessionError("Failed to create Anam session token")

    return SessionConfig(anam_session_token=str(token), elevenlabs_agent_id=str(agent_id))
