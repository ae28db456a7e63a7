# src/app/deps.py (singletons exposed as FastAPI dependencies)

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from supabase import Client, create_client

from src.app.config import settings
from src.app.infra.db.base import ConversationRepository, RecipeRepository
from src.app.infra.db.supabase_repo import (
    SupabaseConversationRepository,
    SupabaseRecipeRepository,
)
from src.services.errors import ConfigurationMissingError
from src.services.gemini_client import GeminiClient
from src.services.recipe_generator import RecipeGenerator

logger = logging.getLogger(__name__)

_client: Client | None = None


def get_supabase() -> Client:
    global _client
    if _client is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Datastore is not configured",
            )
        _client = create_client(str(settings.SUPABASE_URL),
                                settings.SUPABASE_SERVICE_ROLE_KEY)
    return _client


def get_conversation_repository(
    supa: Client = Depends(get_supabase),
) -> ConversationRepository:
    return SupabaseConversationRepository(supa)


def get_recipe_repository(
    supa: Client = Depends(get_supabase),
) -> RecipeRepository:
    return SupabaseRecipeRepository(supa)


def get_recipe_generator(
    repo: RecipeRepository = Depends(get_recipe_repository),
) -> RecipeGenerator:
    api_key = settings.GEMINI_API_KEY.get_secret_value() if settings.GEMINI_API_KEY else None
    if not api_key:
        logger.error("Missing API key: GEMINI_API_KEY not set")
        raise ConfigurationMissingError(["GEMINI_API_KEY"])
    return RecipeGenerator(GeminiClient(api_key=api_key, model_name=settings.GEMINI_MODEL), repo)


auth_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: str
    email: str | None = None
    name: str | None = None


async def get_current_user(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    supa: Client = Depends(get_supabase),
) -> CurrentUser:
    """
    Receives Authorization: Bearer <access_token> issued by Supabase,
    validates it against GoTrue and returns the minimal user data.
    """
    if cred is None or cred.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    token = cred.credentials
    try:
        res = supa.auth.get_user(token)
        user = res.user if res else None
        if not user:
            raise HTTPException(status_code=401, detail="Invalid token")

        name = None
        meta = getattr(user, "user_metadata", None) or {}
        if isinstance(meta, dict):
            name = meta.get("name")

        return CurrentUser(id=str(user.id), email=user.email, name=name)
    except HTTPException:
        raise
    except Exception:
        logger.warning("Rejected bearer token", exc_info=True)
        raise HTTPException(status_code=401, detail="Invalid/expired token")


async def get_optional_user(
    cred: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    supa: Client = Depends(get_supabase),
) -> CurrentUser | None:
    if cred is None:
        return None
    return await get_current_user(cred, supa)
