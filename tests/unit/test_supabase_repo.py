from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from postgrest.exceptions import APIError

from src.app.domain.errors import RepositoryError
from src.app.domain.models import MessageRole, NewMessage, RecipeDraft
from src.app.infra.db.supabase_repo import (
    CREATE_CONVERSATION_RPC,
    SupabaseConversationRepository,
    SupabaseRecipeRepository,
)

CONVERSATION_ROW = {
    "id": "conv-1",
    "user_id": "user-1",
    "title": "Dinner ideas",
    "created_at": "2026-02-01T12:00:00Z",
    "updated_at": "2026-02-01T12:00:00Z",
    "messages": [
        {"id": "m2", "conversation_id": "conv-1", "role": "assistant", "content": "Try risotto",
         "position": 1, "created_at": "2026-02-01T12:00:00Z"},
        {"id": "m1", "conversation_id": "conv-1", "role": "user", "content": "I have rice",
         "position": 0, "created_at": "2026-02-01T12:00:00Z"},
    ],
}


def _select_chain(client: MagicMock, data: list) -> None:
    chain = client.table.return_value.select.return_value.eq.return_value
    chain.limit.return_value.execute.return_value = SimpleNamespace(data=data)
    chain.order.return_value.execute.return_value = SimpleNamespace(data=data)


class TestSupabaseConversationRepository:
    def test_create_uses_single_rpc_and_reloads(self) -> None:
        client = MagicMock()
        client.rpc.return_value.execute.return_value = SimpleNamespace(data="conv-1")
        _select_chain(client, [CONVERSATION_ROW])
        repo = SupabaseConversationRepository(client)

        conversation = repo.create_conversation(
            "user-1",
            [NewMessage(MessageRole.USER, "I have rice"), NewMessage(MessageRole.ASSISTANT, "Try risotto")],
            "Dinner ideas",
        )

        client.rpc.assert_called_once_with(
            CREATE_CONVERSATION_RPC,
            {
                "p_user_id": "user-1",
                "p_title": "Dinner ideas",
                "p_messages": [
                    {"role": "user", "content": "I have rice"},
                    {"role": "assistant", "content": "Try risotto"},
                ],
            },
        )
        assert conversation.id == "conv-1"
        assert [message.id for message in conversation.messages] == ["m1", "m2"]
        assert conversation.messages[1].role is MessageRole.ASSISTANT

    def test_rpc_failure_wraps_as_repository_error(self) -> None:
        client = MagicMock()
        client.rpc.return_value.execute.side_effect = APIError({"message": "permission denied", "code": "42501"})
        repo = SupabaseConversationRepository(client)

        with pytest.raises(RepositoryError) as excinfo:
            repo.create_conversation("user-1", [NewMessage(MessageRole.USER, "Hi")])
        assert excinfo.value.operation == "create_conversation"

    def test_get_missing_returns_none(self) -> None:
        client = MagicMock()
        _select_chain(client, [])

        assert SupabaseConversationRepository(client).get_conversation("nope") is None

    def test_malformed_id_reads_as_missing(self) -> None:
        client = MagicMock()
        chain = client.table.return_value.select.return_value.eq.return_value
        chain.limit.return_value.execute.side_effect = APIError(
            {"message": 'invalid input syntax for type uuid: "abc"', "code": "22P02"}
        )

        assert SupabaseConversationRepository(client).get_conversation("abc") is None
        assert SupabaseRecipeRepository(client).get_recipe("abc") is None

    def test_other_lookup_failures_still_raise(self) -> None:
        client = MagicMock()
        chain = client.table.return_value.select.return_value.eq.return_value
        chain.limit.return_value.execute.side_effect = APIError({"message": "timeout", "code": "57014"})

        with pytest.raises(RepositoryError) as excinfo:
            SupabaseConversationRepository(client).get_conversation("abc")
        assert excinfo.value.operation == "get_conversation"

    def test_list_builds_summaries(self) -> None:
        client = MagicMock()
        _select_chain(client, [CONVERSATION_ROW])

        summaries = SupabaseConversationRepository(client).list_conversations("user-1")

        client.table.return_value.select.return_value.eq.return_value.order.assert_called_once_with(
            "updated_at", desc=True
        )
        assert summaries[0].message_count == 2
        assert summaries[0].preview == "I have rice"


class TestSupabaseRecipeRepository:
    def test_create_recipe_maps_row(self) -> None:
        client = MagicMock()
        client.table.return_value.insert.return_value.execute.return_value = SimpleNamespace(
            data=[{
                "id": "r1",
                "user_id": "user-1",
                "title": "Risotto",
                "ingredients": ["rice"],
                "instructions": ["stir"],
                "prep_time": None,
                "servings": 2,
                "created_at": "2026-02-01T12:00:00Z",
            }]
        )
        repo = SupabaseRecipeRepository(client)

        recipe = repo.create_recipe("user-1", RecipeDraft("Risotto", ["rice"], ["stir"], servings=2))

        row = client.table.return_value.insert.call_args.args[0]
        assert row["user_id"] == "user-1"
        assert row["difficulty"] == "medium"
        assert recipe.id == "r1"
        assert recipe.prep_time == 0
        assert recipe.difficulty == "medium"
        assert recipe.created_at is not None

    def test_list_orders_newest_first(self) -> None:
        client = MagicMock()
        query = client.table.return_value.select.return_value
        query.order.return_value.execute.return_value = SimpleNamespace(data=[])

        assert SupabaseRecipeRepository(client).list_recipes() == []
        query.order.assert_called_once_with("created_at", desc=True)
