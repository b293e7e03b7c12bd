"""Repository helpers for conversations and messages."""

from datetime import datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from aiunk.core.time import utcnow
from aiunk.db.models import Conversation, Message

DEFAULT_TITLE = "New Chat"


def create_conversation(db: Session, user_id: str, title: str | None = None) -> Conversation:
    """Create a new conversation for the given user."""
    conversation = Conversation(
        user_id=user_id,
        title=title.strip() if title and title.strip() else DEFAULT_TITLE,
        message_count=0,
    )
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    return conversation


def get_conversation(db: Session, conversation_id: str) -> Conversation | None:
    """Fetch a conversation regardless of owner."""
    return db.get(Conversation, conversation_id)


def get_user_conversation(
    db: Session, user_id: str, conversation_id: str
) -> Conversation | None:
    """Fetch conversation owned by user."""
    stmt = select(Conversation).where(
        Conversation.id == conversation_id,
        Conversation.user_id == user_id,
    )
    return db.execute(stmt).scalar_one_or_none()


def list_user_conversations(db: Session, user_id: str) -> list[Conversation]:
    """List conversations belonging to the user, most recently updated first."""
    stmt = (
        select(Conversation)
        .where(Conversation.user_id == user_id)
        .order_by(Conversation.updated_at.desc(), Conversation.created_at.desc())
    )
    return list(db.execute(stmt).scalars().all())


def delete_conversation(db: Session, conversation_id: str) -> bool:
    """Delete a conversation, removing its messages first."""
    conversation = get_conversation(db, conversation_id)
    if not conversation:
        return False
    db.execute(delete(Message).where(Message.conversation_id == conversation_id))
    db.delete(conversation)
    db.commit()
    return True


def record_completed_turn(db: Session, conversation: Conversation) -> Conversation:
    """Count a finished user/assistant exchange and bump ``updated_at``."""
    conversation.message_count = (conversation.message_count or 0) + 2
    conversation.updated_at = utcnow()
    db.commit()
    db.refresh(conversation)
    return conversation


def _next_message_timestamp(db: Session, conversation_id: str) -> datetime:
    """Return now, or 1µs past the newest message when the clock hasn't moved."""
    now = utcnow()
    stmt = select(func.max(Message.created_at)).where(
        Message.conversation_id == conversation_id
    )
    latest = db.execute(stmt).scalar_one_or_none()
    if latest is not None and now <= latest:
        return latest + timedelta(microseconds=1)
    return now


def create_message(
    db: Session,
    conversation_id: str,
    sender: str,
    content: str,
    *,
    provider: str | None = None,
    model: str | None = None,
    tokens_used: int | None = None,
) -> Message:
    """Insert a chat message."""
    message = Message(
        conversation_id=conversation_id,
        sender=sender,
        content=content,
        created_at=_next_message_timestamp(db, conversation_id),
        provider=provider,
        model=model,
        tokens_used=tokens_used,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def get_conversation_messages(
    db: Session, conversation_id: str, limit: int | None = None
) -> list[Message]:
    """
    Get messages for a conversation ordered oldest to newest.

    With ``limit``, only the most recent ``limit`` messages are returned
    (still oldest to newest).
    """
    if limit is None:
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
        )
        return list(db.execute(stmt).scalars().all())

    stmt = (
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc())
        .limit(limit)
    )
    recent = list(db.execute(stmt).scalars().all())
    recent.reverse()
    return recent
