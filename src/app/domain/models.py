# src/app/domain/models.py
"""
Domain models for conversations, transcripts and recipes.
These are pure data structures with no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


DEFAULT_DIFFICULTY = "medium"
DEFAULT_SERVINGS = 1
DEFAULT_TIME_MINUTES = 0


class TranscriptRole(str, Enum):
    """Speaker of a live transcript entry."""
    USER = "user"
    AGENT = "agent"


class MessageRole(str, Enum):
    """Role of a persisted message."""
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def from_transcript_role(cls, role: TranscriptRole | str) -> "MessageRole":
        return cls.USER if TranscriptRole(role) is TranscriptRole.USER else cls.ASSISTANT

    def to_transcript_role(self) -> TranscriptRole:
        return TranscriptRole.USER if self is MessageRole.USER else TranscriptRole.AGENT


@dataclass(frozen=True)
class TranscriptEntry:
    """One utterance captured during a live conversation."""
    role: TranscriptRole
    text: str
    timestamp: datetime


@dataclass(frozen=True)
class Message:
    id: str
    conversation_id: str
    role: MessageRole
    content: str
    created_at: Optional[datetime] = None


@dataclass
class Conversation:
    id: str
    owner_id: str
    title: Optional[str] = None
    messages: list[Message] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_owned_by(self, user_id: str) -> bool:
        return self.owner_id == user_id


@dataclass(frozen=True)
class ConversationSummary:
    """Listing row for a conversation, without its full message list."""
    id: str
    title: Optional[str]
    message_count: int
    preview: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class NewMessage:
    """A message that has not been persisted yet."""
    role: MessageRole
    content: str


@dataclass
class RecipeDraft:
    """Recipe fields produced by generation, before persistence."""
    title: str
    ingredients: list[str]
    instructions: list[str]
    description: str = ""
    prep_time: int = DEFAULT_TIME_MINUTES
    cook_time: int = DEFAULT_TIME_MINUTES
    servings: int = DEFAULT_SERVINGS
    difficulty: str = DEFAULT_DIFFICULTY
    tags: list[str] = field(default_factory=list)
    image_url: Optional[str] = None


@dataclass
class Recipe:
    id: str
    owner_id: str
    title: str
    ingredients: list[str]
    instructions: list[str]
    description: str = ""
    prep_time: int = DEFAULT_TIME_MINUTES
    cook_time: int = DEFAULT_TIME_MINUTES
    servings: int = DEFAULT_SERVINGS
    difficulty: str = DEFAULT_DIFFICULTY
    tags: list[str] = field(default_factory=list)
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
