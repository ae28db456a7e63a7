from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from src.app.domain.models import Conversation, ConversationSummary, Message


class MessageIn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class MessageOut(BaseModel):
    id: str
    conversationId: str
    role: Literal["user", "assistant"]
    content: str
    createdAt: Optional[datetime] = None

    @classmethod
    def from_domain(cls, message: Message) -> "MessageOut":
        return cls(
            id=message.id,
            conversationId=message.conversation_id,
            role=message.role.value,
            content=message.content,
            createdAt=message.created_at,
        )


class ConversationOut(BaseModel):
    id: str
    userId: str
    title: Optional[str] = None
    messages: list[MessageOut] = Field(default_factory=list)
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_domain(cls, conversation: Conversation) -> "ConversationOut":
        return cls(
            id=conversation.id,
            userId=conversation.owner_id,
            title=conversation.title,
            messages=[MessageOut.from_domain(item) for item in conversation.messages],
            createdAt=conversation.created_at,
            updatedAt=conversation.updated_at,
        )


class ConversationSummaryOut(BaseModel):
    id: str
    title: Optional[str] = None
    messageCount: int
    preview: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_domain(cls, summary: ConversationSummary) -> "ConversationSummaryOut":
        return cls(
            id=summary.id,
            title=summary.title,
            messageCount=summary.message_count,
            preview=summary.preview,
            createdAt=summary.created_at,
            updatedAt=summary.updated_at,
        )


class CreateConversationRequest(BaseModel):
    messages: list[MessageIn]
    title: Optional[str] = None


class UpdateConversationRequest(BaseModel):
    title: str = Field(..., min_length=1)


class ConversationResponse(BaseModel):
    success: bool = True
    conversation: ConversationOut


class ConversationListResponse(BaseModel):
    conversations: list[ConversationSummaryOut]
