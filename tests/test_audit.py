"""Tests for the audit recorder."""

import pytest
from sqlalchemy.exc import IntegrityError

from aiunk.core.logging import request_id_ctx
from aiunk.db.repositories import (
    AuditEventType,
    ChatEventDetails,
    ConversationEventDetails,
    ProviderTestDetails,
    list_audit_entries,
    log_audit,
    log_provider_test,
)


def test_log_audit_serialises_camel_case(db_session, user) -> None:
    entry = log_audit(
        db_session,
        AuditEventType.CHAT,
        user_id=user.id,
        details=ChatEventDetails(conversation_id="c1", provider="openai", tokens_used=42),
    )

    assert entry.event_type == "chat"
    assert entry.details_dict() == {"conversationId": "c1", "provider": "openai", "tokensUsed": 42}


def test_log_audit_rejects_mismatched_payload(db_session, user) -> None:
    with pytest.raises(TypeError):
        log_audit(
            db_session,
            AuditEventType.CHAT,
            user_id=user.id,
            details=ConversationEventDetails(conversation_id="c1"),
        )

    assert list_audit_entries(db_session) == []


def test_log_audit_captures_request_id(db_session, user) -> None:
    token = request_id_ctx.set("req-abc")
    try:
        entry = log_audit(
            db_session,
            AuditEventType.CONVERSATION_CREATED,
            user_id=user.id,
            details=ConversationEventDetails(conversation_id="c1"),
        )
    finally:
        request_id_ctx.reset(token)

    assert entry.request_id == "req-abc"


def test_log_audit_persistence_errors_propagate(db_session) -> None:
    with pytest.raises(IntegrityError):
        log_audit(
            db_session,
            AuditEventType.CONVERSATION_DELETED,
            user_id="no-such-user",
            details=ConversationEventDetails(conversation_id="c1"),
        )
    db_session.rollback()


def test_provider_test_details_omit_error_on_success(db_session, user) -> None:
    entry = log_provider_test(db_session, user.id, "openai", "gpt", success=True, latency_ms=15)

    assert entry.details_dict() == {
        "providerId": "openai",
        "model": "gpt",
        "success": True,
        "latencyMs": 15,
    }
    failure = ProviderTestDetails("openai", "gpt", False, 20, error="boom").to_dict()
    assert failure["error"] == "boom"


def test_list_audit_entries_filters_and_limits(db_session, user) -> None:
    for i in range(3):
        log_audit(
            db_session,
            AuditEventType.CONVERSATION_CREATED,
            user_id=user.id,
            details=ConversationEventDetails(conversation_id=f"c{i}"),
        )
    log_audit(
        db_session,
        AuditEventType.CHAT,
        user_id=user.id,
        details=ChatEventDetails(conversation_id="c0", provider=None, tokens_used=None),
    )

    created = list_audit_entries(db_session, event_type="conversation_created", limit=2)

    assert [e.details_dict()["conversationId"] for e in created] == ["c2", "c1"]
    assert len(list_audit_entries(db_session)) == 4
