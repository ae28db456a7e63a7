from __future__ import annotations

from fastapi import APIRouter

from src.app.config import settings
from src.app.schemas.session import SessionConfigResponse
from src.services.anam_session import create_session_config

router = APIRouter(prefix="/session", tags=["session"])


@router.get("/config", response_model=SessionConfigResponse)
async def session_config() -> SessionConfigResponse:
    api_key = settings.ANAM_API_KEY.get_secret_value() if settings.ANAM_API_KEY else None
    config = await create_session_config(
        api_key,
        settings.ANAM_AVATAR_ID,
        settings.ELEVENLABS_AGENT_ID,
        base_url=settings.ANAM_API_URL,
    )
    return SessionConfigResponse(
        anamSessionToken=config.anam_session_token,
        elevenLabsAgentId=config.elevenlabs_agent_id,
    )
