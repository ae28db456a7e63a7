from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from starlette.concurrency import run_in_threadpool

from src.app.deps import CurrentUser, get_conversation_repository, get_current_user
from src.app.domain.errors import ForbiddenError, NotFoundError
from src.app.domain.models import Conversation, MessageRole, NewMessage
from src.app.infra.db.base import ConversationRepository
from src.app.schemas.conversations import (
    ConversationListResponse,
    ConversationOut,
    ConversationResponse,
    ConversationSummaryOut,
    CreateConversationRequest,
    UpdateConversationRequest,
)
from src.services.errors import NoInputError

log = logging.getLogger("conversations")
router = APIRouter(prefix="/conversations", tags=["conversations"])


async def _owned_conversation(
    conversation_id: str,
    user: CurrentUser,
    repo: ConversationRepository,
) -> Conversation:
    conversation = await run_in_threadpool(repo.get_conversation, conversation_id)
    if conversation is None:
        raise NotFoundError("conversation", conversation_id)
    if not conversation.is_owned_by(user.id):
        log.warning("User %s does not own conversation %s", user.id, conversation_id)
        raise ForbiddenError("conversation", conversation_id)
    return conversation


@router.post("", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    payload: CreateConversationRequest,
    user: CurrentUser = Depends(get_current_user),
    repo: ConversationRepository = Depends(get_conversation_repository),
) -> ConversationResponse:
    if not payload.messages:
        raise NoInputError("Invalid messages format")

    messages = [NewMessage(role=MessageRole(item.role), content=item.content) for item in payload.messages]
    conversation = await run_in_threadpool(repo.create_conversation, user.id, messages, payload.title)
    return ConversationResponse(conversation=ConversationOut.from_domain(conversation))


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    user: CurrentUser = Depends(get_current_user),
    repo: ConversationRepository = Depends(get_conversation_repository),
) -> ConversationListResponse:
    summaries = await run_in_threadpool(repo.list_conversations, user.id)
    return ConversationListResponse(
        conversations=[ConversationSummaryOut.from_domain(item) for item in summaries],
    )


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str,
    user: CurrentUser = Depends(get_current_user),
    repo: ConversationRepository = Depends(get_conversation_repository),
) -> ConversationResponse:
    conversation = await _owned_conversation(conversation_id, user, repo)
    log.info("Loaded conversation %s for user %s", conversation_id, user.id)
    return ConversationResponse(conversation=ConversationOut.from_domain(conversation))


@router.patch("/{conversation_id}", response_model=ConversationResponse)
async def rename_conversation(
    conversation_id: str,
    payload: UpdateConversationRequest,
    user: CurrentUser = Depends(get_current_user),
    repo: ConversationRepository = Depends(get_conversation_repository),
) -> ConversationResponse:
    await _owned_conversation(conversation_id, user, repo)
    conversation = await run_in_threadpool(repo.update_title, conversation_id, payload.title)
    return ConversationResponse(conversation=ConversationOut.from_domain(conversation))


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: str,
    user: CurrentUser = Depends(get_current_user),
    repo: ConversationRepository = Depends(get_conversation_repository),
) -> None:
    await _owned_conversation(conversation_id, user, repo)
    await run_in_threadpool(repo.delete_conversation, conversation_id)
