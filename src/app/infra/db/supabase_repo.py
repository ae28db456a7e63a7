from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from postgrest.exceptions import APIError
from supabase import Client, create_client

from src.app.domain.errors import NotFoundError, RepositoryError
from src.app.domain.models import (
    DEFAULT_DIFFICULTY,
    DEFAULT_SERVINGS,
    DEFAULT_TIME_MINUTES,
    Conversation,
    ConversationSummary,
    Message,
    MessageRole,
    NewMessage,
    Recipe,
    RecipeDraft,
)
from src.app.infra.db.base import ConversationRepository, RecipeRepository

logger = logging.getLogger(__name__)

CREATE_CONVERSATION_RPC = "create_conversation_with_messages"
PREVIEW_MAX_CHARS = 120
# Postgres invalid_text_representation, raised when an id is not a uuid
INVALID_ID_CODE = "22P02"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None

    try:
        normalized = value.replace("Z", "+00:00") if value.endswith("Z") else value
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _safe_int(value: object, default: int = 0) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _safe_str(value: object) -> str | None:
    return str(value) if value else None


def _str_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def _row_to_message(row: dict[str, Any]) -> Message:
    return Message(
        id=str(row["id"]),
        conversation_id=str(row["conversation_id"]),
        role=MessageRole(str(row["role"])),
        content=str(row.get("content") or ""),
        created_at=_parse_datetime(row.get("created_at")),
    )


def _sorted_message_rows(rows: object) -> list[dict[str, Any]]:
    if not isinstance(rows, list):
        return []
    return sorted(
        (row for row in rows if isinstance(row, dict)),
        key=lambda row: (_safe_int(row.get("position")), str(row.get("created_at") or "")),
    )


def _row_to_conversation(row: dict[str, Any]) -> Conversation:
    return Conversation(
        id=str(row["id"]),
        owner_id=str(row["user_id"]),
        title=_safe_str(row.get("title")),
        messages=[_row_to_message(item) for item in _sorted_message_rows(row.get("messages"))],
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
    )


def _row_to_summary(row: dict[str, Any]) -> ConversationSummary:
    messages = _sorted_message_rows(row.get("messages"))
    preview = None
    if messages:
        first = str(messages[0].get("content") or "").strip()
        preview = first[:PREVIEW_MAX_CHARS] or None
    return ConversationSummary(
        id=str(row["id"]),
        title=_safe_str(row.get("title")),
        message_count=len(messages),
        preview=preview,
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
    )


def _row_to_recipe(row: dict[str, Any]) -> Recipe:
    return Recipe(
        id=str(row["id"]),
        owner_id=str(row["user_id"]),
        title=str(row["title"]),
        ingredients=_str_list(row.get("ingredients")),
        instructions=_str_list(row.get("instructions")),
        description=str(row.get("description") or ""),
        prep_time=_safe_int(row.get("prep_time"), DEFAULT_TIME_MINUTES),
        cook_time=_safe_int(row.get("cook_time"), DEFAULT_TIME_MINUTES),
        servings=_safe_int(row.get("servings"), DEFAULT_SERVINGS),
        difficulty=str(row.get("difficulty") or DEFAULT_DIFFICULTY),
        tags=_str_list(row.get("tags")),
        image_url=_safe_str(row.get("image_url")),
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
    )


def _create_supabase_client() -> Client:
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY required")
    return create_client(url, key)


class SupabaseConversationRepository(ConversationRepository):
    TABLE_NAME = "conversations"
    MESSAGES_TABLE = "messages"

    def __init__(self, client: Client | None = None):
        self._client = client or _create_supabase_client()

    def create_conversation(
        self,
        owner_id: str,
        messages: Sequence[NewMessage],
        title: Optional[str] = None,
    ) -> Conversation:
        payload = {
            "p_user_id": owner_id,
            "p_title": title,
            "p_messages": [
                {"role": message.role.value, "content": message.content}
                for message in messages
            ],
        }
        logger.info(
            "Saving conversation: user=%s, messages=%d, title=%s",
            owner_id, len(messages), title,
        )

        try:
            result = self._client.rpc(CREATE_CONVERSATION_RPC, payload).execute()
        except (APIError, ConnectionError, TimeoutError) as error:
            logger.error("Error saving conversation for user=%s: %s", owner_id, error)
            raise RepositoryError("create_conversation", str(error)) from error

        conversation_id = self._extract_rpc_id(result.data)
        if not conversation_id:
            raise RepositoryError("create_conversation", "RPC returned no conversation id")

        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            raise RepositoryError("create_conversation", f"conversation {conversation_id} vanished after insert")

        logger.info("Conversation saved: id=%s", conversation.id)
        return conversation

    @staticmethod
    def _extract_rpc_id(data: object) -> str | None:
        if isinstance(data, list):
            data = data[0] if data else None
        if isinstance(data, dict):
            data = data.get("id") or data.get(CREATE_CONVERSATION_RPC)
        return _safe_str(data)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("*, messages(*)")
                .eq("id", conversation_id)
                .limit(1)
                .execute()
            )
        except (APIError, ConnectionError, TimeoutError) as error:
            if isinstance(error, APIError) and error.code == INVALID_ID_CODE:
                return None
            logger.error("Error getting conversation %s: %s", conversation_id, error)
            raise RepositoryError("get_conversation", str(error)) from error

        if not result.data:
            return None
        return _row_to_conversation(result.data[0])

    def list_conversations(self, owner_id: str) -> list[ConversationSummary]:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("id, title, created_at, updated_at, messages(content, position, created_at)")
                .eq("user_id", owner_id)
                .order("updated_at", desc=True)
                .execute()
            )
        except (APIError, ConnectionError, TimeoutError) as error:
            logger.error("Error listing conversations for user=%s: %s", owner_id, error)
            raise RepositoryError("list_conversations", str(error)) from error

        return [_row_to_summary(row) for row in result.data or []]

    def update_title(self, conversation_id: str, title: str) -> Conversation:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .update({"title": title, "updated_at": _now_utc().isoformat()})
                .eq("id", conversation_id)
                .execute()
            )
        except (APIError, ConnectionError, TimeoutError) as error:
            logger.error("Error updating title of conversation %s: %s", conversation_id, error)
            raise RepositoryError("update_title", str(error)) from error

        if not result.data:
            raise NotFoundError("conversation", conversation_id)

        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("conversation", conversation_id)
        return conversation

    def delete_conversation(self, conversation_id: str) -> None:
        try:
            self._client.table(self.TABLE_NAME).delete().eq("id", conversation_id).execute()
        except (APIError, ConnectionError, TimeoutError) as error:
            logger.error("Error deleting conversation %s: %s", conversation_id, error)
            raise RepositoryError("delete_conversation", str(error)) from error
        logger.info("Conversation deleted: id=%s", conversation_id)


class SupabaseRecipeRepository(RecipeRepository):
    TABLE_NAME = "recipes"

    def __init__(self, client: Client | None = None):
        self._client = client or _create_supabase_client()

    def create_recipe(self, owner_id: str, recipe: RecipeDraft) -> Recipe:
        row = {
            "user_id": owner_id,
            "title": recipe.title,
            "description": recipe.description,
            "ingredients": list(recipe.ingredients),
            "instructions": list(recipe.instructions),
            "prep_time": recipe.prep_time,
            "cook_time": recipe.cook_time,
            "servings": recipe.servings,
            "difficulty": recipe.difficulty,
            "tags": list(recipe.tags),
            "image_url": recipe.image_url,
        }

        try:
            result = self._client.table(self.TABLE_NAME).insert(row).execute()
        except (APIError, ConnectionError, TimeoutError) as error:
            logger.error("Error saving recipe for user=%s: %s", owner_id, error)
            raise RepositoryError("create_recipe", str(error)) from error

        if not result.data:
            raise RepositoryError("create_recipe", "insert returned no rows")

        saved = _row_to_recipe(result.data[0])
        logger.info("Recipe saved: id=%s, user=%s", saved.id, owner_id)
        return saved

    def get_recipe(self, recipe_id: str) -> Optional[Recipe]:
        try:
            result = (
                self._client.table(self.TABLE_NAME)
                .select("*")
                .eq("id", recipe_id)
                .limit(1)
                .execute()
            )
        except (APIError, ConnectionError, TimeoutError) as error:
            if isinstance(error, APIError) and error.code == INVALID_ID_CODE:
                return None
            logger.error("Error getting recipe %s: %s", recipe_id, error)
            raise RepositoryError("get_recipe", str(error)) from error

        if not result.data:
            return None
        return _row_to_recipe(result.data[0])

    def list_recipes(self, owner_id: Optional[str] = None) -> list[Recipe]:
        try:
            query = self._client.table(self.TABLE_NAME).select("*")
            if owner_id:
                query = query.eq("user_id", owner_id)
            result = query.order("created_at", desc=True).execute()
        except (APIError, ConnectionError, TimeoutError) as error:
            logger.error("Error listing recipes: %s", error)
            raise RepositoryError("list_recipes", str(error)) from error

        return [_row_to_recipe(row) for row in result.data or []]

    def delete_recipe(self, recipe_id: str) -> None:
        try:
            self._client.table(self.TABLE_NAME).delete().eq("id", recipe_id).execute()
        except (APIError, ConnectionError, TimeoutError) as error:
            logger.error("Error deleting recipe %s: %s", recipe_id, error)
            raise RepositoryError("delete_recipe", str(error)) from error
        logger.info("Recipe deleted: id=%s", recipe_id)
