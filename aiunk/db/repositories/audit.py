"""
Audit log repository for accountability and debugging.

Every event kind has its own payload type; ``log_audit`` refuses a payload
that does not belong to the event kind being recorded.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from aiunk.core.logging import request_id_ctx
from aiunk.db.models import AuditLog


class AuditEventType(str, Enum):
    """Audit event kinds."""

    CONVERSATION_CREATED = "conversation_created"
    CONVERSATION_DELETED = "conversation_deleted"
    CHAT = "chat"
    ERROR = "error"
    PROVIDER_SWITCHED = "provider_switched"
    PROVIDER_TEST = "provider_test"

    # Identity bridge
    LOGIN = "login"
    LOGOUT = "logout"


@dataclass(frozen=True)
class ConversationEventDetails:
    conversation_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"conversationId": self.conversation_id}


@dataclass(frozen=True)
class ChatEventDetails:
    conversation_id: str
    provider: str | None
    tokens_used: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversationId": self.conversation_id,
            "provider": self.provider,
            "tokensUsed": self.tokens_used,
        }


@dataclass(frozen=True)
class ChatErrorDetails:
    conversation_id: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"conversationId": self.conversation_id, "error": self.error}


@dataclass(frozen=True)
class ProviderSwitchedDetails:
    provider_id: str
    model: str
    is_active: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "providerId": self.provider_id,
            "model": self.model,
            "isActive": self.is_active,
        }


@dataclass(frozen=True)
class ProviderTestDetails:
    provider_id: str
    model: str
    success: bool
    latency_ms: int
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        details: dict[str, Any] = {
            "providerId": self.provider_id,
            "model": self.model,
            "success": self.success,
            "latencyMs": self.latency_ms,
        }
        if self.error is not None:
            details["error"] = self.error
        return details


@dataclass(frozen=True)
class SessionEventDetails:
    session_id: str
    login_method: str | None = None

    def to_dict(self) -> dict[str, Any]:
        details: dict[str, Any] = {"sessionId": self.session_id}
        if self.login_method:
            details["loginMethod"] = self.login_method
        return details


AuditDetails = Union[
    ConversationEventDetails,
    ChatEventDetails,
    ChatErrorDetails,
    ProviderSwitchedDetails,
    ProviderTestDetails,
    SessionEventDetails,
]

_PAYLOAD_TYPES: dict[AuditEventType, type] = {
    AuditEventType.CONVERSATION_CREATED: ConversationEventDetails,
    AuditEventType.CONVERSATION_DELETED: ConversationEventDetails,
    AuditEventType.CHAT: ChatEventDetails,
    AuditEventType.ERROR: ChatErrorDetails,
    AuditEventType.PROVIDER_SWITCHED: ProviderSwitchedDetails,
    AuditEventType.PROVIDER_TEST: ProviderTestDetails,
    AuditEventType.LOGIN: SessionEventDetails,
    AuditEventType.LOGOUT: SessionEventDetails,
}


def log_audit(
    db: Session,
    event_type: AuditEventType,
    user_id: str | None = None,
    details: AuditDetails | None = None,
) -> AuditLog:
    """
    Append an audit log entry.

    Persistence errors are not swallowed: a failed audit write fails the
    enclosing operation.

    Args:
        db: Database session.
        event_type: Kind of event being recorded.
        user_id: Acting user (None for system events).
        details: Payload matching ``event_type``.

    Returns:
        Created AuditLog entry.

    Raises:
        TypeError: If ``details`` is not the payload type for ``event_type``.
    """
    expected = _PAYLOAD_TYPES[event_type]
    if details is not None and not isinstance(details, expected):
        raise TypeError(
            f"{event_type.value} expects {expected.__name__}, got {type(details).__name__}"
        )

    entry = AuditLog(
        event_type=event_type.value,
        user_id=user_id,
        details=json.dumps(details.to_dict()) if details is not None else None,
        request_id=request_id_ctx.get(),
    )
    db.add(entry)
    db.commit()
    return entry


def log_conversation_created(db: Session, user_id: str, conversation_id: str) -> AuditLog:
    """Log a conversation creation."""
    return log_audit(
        db,
        AuditEventType.CONVERSATION_CREATED,
        user_id=user_id,
        details=ConversationEventDetails(conversation_id=conversation_id),
    )


def log_conversation_deleted(db: Session, user_id: str, conversation_id: str) -> AuditLog:
    """Log a conversation deletion."""
    return log_audit(
        db,
        AuditEventType.CONVERSATION_DELETED,
        user_id=user_id,
        details=ConversationEventDetails(conversation_id=conversation_id),
    )


def log_chat(
    db: Session,
    user_id: str,
    conversation_id: str,
    provider: str | None,
    tokens_used: int | None,
) -> AuditLog:
    """Log a successful chat turn."""
    return log_audit(
        db,
        AuditEventType.CHAT,
        user_id=user_id,
        details=ChatEventDetails(
            conversation_id=conversation_id,
            provider=provider,
            tokens_used=tokens_used,
        ),
    )


def log_chat_error(db: Session, user_id: str, conversation_id: str, error: str) -> AuditLog:
    """Log a failed chat turn with the full provider error."""
    return log_audit(
        db,
        AuditEventType.ERROR,
        user_id=user_id,
        details=ChatErrorDetails(conversation_id=conversation_id, error=error),
    )


def log_provider_switched(
    db: Session, user_id: str, provider_id: str, model: str, is_active: bool
) -> AuditLog:
    """Log an admin provider update."""
    return log_audit(
        db,
        AuditEventType.PROVIDER_SWITCHED,
        user_id=user_id,
        details=ProviderSwitchedDetails(
            provider_id=provider_id, model=model, is_active=is_active
        ),
    )


def log_provider_test(
    db: Session,
    user_id: str | None,
    provider_id: str,
    model: str,
    success: bool,
    latency_ms: int,
    error: str | None = None,
) -> AuditLog:
    """Log a provider connectivity probe."""
    return log_audit(
        db,
        AuditEventType.PROVIDER_TEST,
        user_id=user_id,
        details=ProviderTestDetails(
            provider_id=provider_id,
            model=model,
            success=success,
            latency_ms=latency_ms,
            error=error,
        ),
    )


def log_login(
    db: Session, user_id: str, session_id: str, login_method: str | None = None
) -> AuditLog:
    """Log a login through the identity bridge."""
    return log_audit(
        db,
        AuditEventType.LOGIN,
        user_id=user_id,
        details=SessionEventDetails(session_id=session_id, login_method=login_method),
    )


def log_logout(db: Session, user_id: str, session_id: str) -> AuditLog:
    """Log a logout."""
    return log_audit(
        db,
        AuditEventType.LOGOUT,
        user_id=user_id,
        details=SessionEventDetails(session_id=session_id),
    )


def list_audit_entries(
    db: Session,
    *,
    limit: int = 100,
    event_type: str | None = None,
    offset: int = 0,
) -> list[AuditLog]:
    """Return recent audit entries, newest first."""
    stmt = select(AuditLog)
    if event_type:
        stmt = stmt.where(AuditLog.event_type == event_type)
    stmt = (
        stmt.order_by(AuditLog.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(db.execute(stmt).scalars().all())
