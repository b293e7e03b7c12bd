"""Conversation and chat endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from aiunk.api.deps import get_chat_service
from aiunk.auth import RequireAuth
from aiunk.core import ConversationAccessError
from aiunk.db import get_db
from aiunk.db.models import Conversation, Message
from aiunk.db.repositories import (
    create_conversation,
    delete_conversation,
    get_conversation_messages,
    get_user_conversation,
    list_user_conversations,
    log_conversation_created,
    log_conversation_deleted,
)
from aiunk.services.chat_service import ChatService

router = APIRouter(tags=["chat"])


class CreateConversationRequest(BaseModel):
    title: str | None = Field(None, max_length=255)


class ConversationResponse(BaseModel):
    id: str
    title: str
    message_count: int
    created_at: str
    updated_at: str


class MessageResponse(BaseModel):
    id: str
    sender: str
    content: str
    created_at: str
    provider: str | None
    model: str | None
    tokens_used: int | None


class ChatSendRequest(BaseModel):
    conversation_id: str | None = None
    message: str = Field(..., min_length=1)


def _conversation_to_response(conversation: Conversation) -> ConversationResponse:
    return ConversationResponse(
        id=conversation.id,
        title=conversation.title,
        message_count=conversation.message_count,
        created_at=conversation.created_at.isoformat(),
        updated_at=conversation.updated_at.isoformat(),
    )


def _message_to_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        sender=message.sender,
        content=message.content,
        created_at=message.created_at.isoformat(),
        provider=message.provider,
        model=message.model,
        tokens_used=message.tokens_used,
    )


@router.get("/conversations")
def list_conversations_route(
    auth: RequireAuth,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    user, _ = auth
    conversations = list_user_conversations(db, user.id)
    return {
        "conversations": [_conversation_to_response(conv) for conv in conversations]
    }


@router.post("/conversations")
def create_conversation_route(
    body: CreateConversationRequest,
    auth: RequireAuth,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    user, _ = auth
    conversation = create_conversation(db, user.id, title=body.title)
    log_conversation_created(db, user.id, conversation.id)
    return {"conversation_id": conversation.id}


@router.delete("/conversations/{conversation_id}")
def delete_conversation_route(
    conversation_id: str,
    auth: RequireAuth,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    user, _ = auth
    if not get_user_conversation(db, user.id, conversation_id):
        raise ConversationAccessError()
    delete_conversation(db, conversation_id)
    log_conversation_deleted(db, user.id, conversation_id)
    return {"success": True}


@router.get("/conversations/{conversation_id}/messages")
def list_messages_route(
    conversation_id: str,
    auth: RequireAuth,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    user, _ = auth
    if not get_user_conversation(db, user.id, conversation_id):
        raise ConversationAccessError()
    messages = get_conversation_messages(db, conversation_id)
    return {"messages": [_message_to_response(msg) for msg in messages]}


@router.post("/chat/send")
async def chat_send_route(
    auth: RequireAuth,
    body: ChatSendRequest = Body(...),
    chat_service: ChatService = Depends(get_chat_service),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    user, _ = auth
    conversation_id = body.conversation_id
    if conversation_id is None:
        conversation_id = chat_service.start_conversation(db, user.id, body.message).id

    result = await chat_service.send_turn(db, user.id, conversation_id, body.message)
    return {
        "response": result.reply,
        "conversation_id": result.conversation_id,
        "provider": result.provider,
        "model": result.model,
        "tokens_used": result.tokens_used,
    }
