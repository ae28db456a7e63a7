from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.app.domain.models import (
    DEFAULT_DIFFICULTY,
    Conversation,
    MessageRole,
    RecipeDraft,
    TranscriptEntry,
    TranscriptRole,
)


class TestMessageRole:
    def test_values(self) -> None:
        assert MessageRole.USER.value == "user"
        assert MessageRole.ASSISTANT.value == "assistant"

    def test_is_string_enum(self) -> None:
        assert isinstance(MessageRole.USER, str)
        assert MessageRole.ASSISTANT == "assistant"

    @pytest.mark.parametrize(
        ("transcript_role", "message_role"),
        [
            (TranscriptRole.USER, MessageRole.USER),
            (TranscriptRole.AGENT, MessageRole.ASSISTANT),
            ("user", MessageRole.USER),
            ("agent", MessageRole.ASSISTANT),
        ],
    )
    def test_from_transcript_role(self, transcript_role, message_role: MessageRole) -> None:
        assert MessageRole.from_transcript_role(transcript_role) is message_role

    def test_to_transcript_role(self) -> None:
        assert MessageRole.USER.to_transcript_role() is TranscriptRole.USER
        assert MessageRole.ASSISTANT.to_transcript_role() is TranscriptRole.AGENT

    def test_unknown_transcript_role_rejected(self) -> None:
        with pytest.raises(ValueError):
            MessageRole.from_transcript_role("system")


class TestTranscriptEntry:
    def test_is_frozen(self) -> None:
        entry = TranscriptEntry(TranscriptRole.USER, "Hi", datetime.now(timezone.utc))
        with pytest.raises(AttributeError):
            entry.text = "changed"  # type: ignore[misc]


class TestConversation:
    def test_ownership(self) -> None:
        conversation = Conversation(id="c1", owner_id="user-1")
        assert conversation.is_owned_by("user-1")
        assert not conversation.is_owned_by("user-2")
        assert conversation.messages == []


class TestRecipeDraft:
    def test_defaults(self) -> None:
        draft = RecipeDraft(title="Rice", ingredients=["rice"], instructions=["boil"])
        assert draft.description == ""
        assert draft.prep_time == 0
        assert draft.cook_time == 0
        assert draft.servings == 1
        assert draft.difficulty == DEFAULT_DIFFICULTY
        assert draft.tags == []
        assert draft.image_url is None
