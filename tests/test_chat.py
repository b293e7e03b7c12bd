"""
Tests for chat turn orchestration and context assembly.
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from aiunk.core import ChatTurnFailedError, ConversationAccessError, ErrorCode, ProviderAuthError
from aiunk.db.models import AuditLog, Message
from aiunk.db.repositories import (
    create_conversation,
    create_message,
    get_conversation,
    get_conversation_messages,
    list_audit_entries,
    upsert_provider_setting,
)
from aiunk.prompts import FALLBACK_REPLY, PERSONA_PROMPT, load_persona_file
from aiunk.providers import ChatResponse, PartsReply, ReplyPart
from aiunk.services import ChatService, assemble_context
from conftest import StubProvider, StubRegistry


def _message_count(db, conversation_id: str) -> int:
    stmt = select(func.count()).select_from(Message).where(
        Message.conversation_id == conversation_id
    )
    return db.execute(stmt).scalar_one()


@pytest.mark.asyncio
async def test_send_turn_persists_exchange(db_session, user, chat_service) -> None:
    """A successful turn stores user + assistant messages and bumps the count by 2."""
    conversation = create_conversation(db_session, user.id, "Test")

    result = await chat_service.send_turn(db_session, user.id, conversation.id, "Hello AI Unk!")

    assert result.reply == "Bet, lil' nephew!"
    assert result.tokens_used == 12
    assert result.conversation_id == conversation.id

    messages = get_conversation_messages(db_session, conversation.id)
    assert [m.sender for m in messages] == ["user", "assistant"]
    assert messages[0].content == "Hello AI Unk!"
    assert messages[1].content == "Bet, lil' nephew!"
    assert messages[1].tokens_used == 12
    assert messages[0].created_at < messages[1].created_at

    refreshed = get_conversation(db_session, conversation.id)
    assert refreshed.message_count == 2


@pytest.mark.asyncio
async def test_send_turn_without_active_provider_uses_default(
    db_session, user, chat_service, stub_registry
) -> None:
    """No active provider: the default adapter answers, labelled "default"."""
    conversation = create_conversation(db_session, user.id, "Test")

    result = await chat_service.send_turn(db_session, user.id, conversation.id, "Yo")

    assert result.provider == "default"
    assert result.model == "gpt-default"
    assert stub_registry.resolved == [None]
    assistant = get_conversation_messages(db_session, conversation.id)[-1]
    assert assistant.provider == "default"
    assert assistant.model == "gpt-default"


@pytest.mark.asyncio
async def test_send_turn_with_active_provider_counts_usage(
    db_session, user, chat_service, stub_registry, stub_provider
) -> None:
    """The active provider's model is requested and its usage counter grows."""
    upsert_provider_setting(db_session, "anthropic", "claude-test", "sk-ant", True)
    conversation = create_conversation(db_session, user.id, "Test")

    result = await chat_service.send_turn(db_session, user.id, conversation.id, "Yo")

    assert result.provider == "anthropic"
    assert result.model == "claude-test"
    assert stub_provider.requests[0].model == "claude-test"

    setting = stub_registry.get_active(db_session)
    assert setting.usage_count == 1
    assert setting.last_used is not None
    chat_entry = list_audit_entries(db_session, event_type="chat")[0]
    assert chat_entry.details_dict()["provider"] == "anthropic"


@pytest.mark.asyncio
async def test_send_turn_audits_chat_without_registry_provider(
    db_session, user, chat_service
) -> None:
    """The default adapter is not a registry entry, so the audit names no provider."""
    conversation = create_conversation(db_session, user.id, "Test")

    await chat_service.send_turn(db_session, user.id, conversation.id, "Yo")

    entries = list_audit_entries(db_session, event_type="chat")
    assert len(entries) == 1
    assert entries[0].user_id == user.id
    assert entries[0].details_dict() == {
        "conversationId": conversation.id,
        "provider": None,
        "tokensUsed": 12,
    }


@pytest.mark.asyncio
async def test_send_turn_context_has_persona_and_history(
    db_session, user, chat_service, stub_provider
) -> None:
    conversation = create_conversation(db_session, user.id, "Test")
    create_message(db_session, conversation.id, "user", "first")
    create_message(db_session, conversation.id, "assistant", "reply")

    await chat_service.send_turn(db_session, user.id, conversation.id, "second")

    sent = stub_provider.requests[0].messages
    assert sent[0].role == "system"
    assert sent[0].content == PERSONA_PROMPT
    assert [(m.role, m.content) for m in sent[1:]] == [
        ("user", "first"),
        ("assistant", "reply"),
        ("user", "second"),
    ]


@pytest.mark.asyncio
async def test_send_turn_failure_keeps_user_message_only(db_session, user, settings) -> None:
    """Provider failure: user message kept, nothing else written, error audited."""
    provider = StubProvider(
        error=ProviderAuthError(details={"status": 401, "body": "bad key sk-secret"})
    )
    service = ChatService(StubRegistry(settings, provider), settings)
    conversation = create_conversation(db_session, user.id, "Test")

    with pytest.raises(ChatTurnFailedError) as exc_info:
        await service.send_turn(db_session, user.id, conversation.id, "Hello?")

    assert exc_info.value.code == ErrorCode.CHAT_TURN_FAILED
    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "Failed to get AI response"
    assert "sk-secret" not in exc_info.value.message

    messages = get_conversation_messages(db_session, conversation.id)
    assert [m.sender for m in messages] == ["user"]
    assert get_conversation(db_session, conversation.id).message_count == 0

    errors = list_audit_entries(db_session, event_type="error")
    assert len(errors) == 1
    details = errors[0].details_dict()
    assert details["conversationId"] == conversation.id
    assert "sk-secret" in details["error"]
    assert list_audit_entries(db_session, event_type="chat") == []


@pytest.mark.asyncio
async def test_send_turn_unexpected_exception_is_turn_failure(
    db_session, user, settings
) -> None:
    provider = StubProvider(error=RuntimeError("socket exploded"))
    service = ChatService(StubRegistry(settings, provider), settings)
    conversation = create_conversation(db_session, user.id, "Test")

    with pytest.raises(ChatTurnFailedError):
        await service.send_turn(db_session, user.id, conversation.id, "Hello?")

    assert _message_count(db_session, conversation.id) == 1


@pytest.mark.asyncio
async def test_send_turn_rejects_non_owner_without_writing(
    db_session, user, other_user, chat_service, stub_provider
) -> None:
    conversation = create_conversation(db_session, user.id, "Mine")

    with pytest.raises(ConversationAccessError) as exc_info:
        await chat_service.send_turn(db_session, other_user.id, conversation.id, "hijack")

    assert exc_info.value.status_code == 403
    assert exc_info.value.message == "Not your conversation"
    assert _message_count(db_session, conversation.id) == 0
    assert stub_provider.requests == []
    assert db_session.execute(select(func.count()).select_from(AuditLog)).scalar_one() == 0


@pytest.mark.asyncio
async def test_send_turn_unknown_conversation(db_session, user, chat_service) -> None:
    with pytest.raises(ConversationAccessError):
        await chat_service.send_turn(db_session, user.id, "missing-id", "hello")


@pytest.mark.asyncio
async def test_send_turn_parts_reply_extracts_text(db_session, user, settings) -> None:
    provider = StubProvider(
        response=ChatResponse(
            reply=PartsReply(
                parts=[
                    ReplyPart(kind="text", payload="Say less. "),
                    ReplyPart(kind="image_url", payload={"url": "http://img"}),
                    ReplyPart(kind="text", payload="Here's the cheat code."),
                ]
            ),
            model="m",
            prompt_tokens=3,
            completion_tokens=4,
        )
    )
    service = ChatService(StubRegistry(settings, provider), settings)
    conversation = create_conversation(db_session, user.id, "Test")

    result = await service.send_turn(db_session, user.id, conversation.id, "tips?")

    assert result.reply == "Say less. Here's the cheat code."
    assert result.tokens_used == 7


@pytest.mark.asyncio
async def test_send_turn_empty_reply_uses_fallback(db_session, user, settings) -> None:
    provider = StubProvider(response=ChatResponse(reply=PartsReply(parts=[]), model="m"))
    service = ChatService(StubRegistry(settings, provider), settings)
    conversation = create_conversation(db_session, user.id, "Test")

    result = await service.send_turn(db_session, user.id, conversation.id, "hello")

    assert result.reply == FALLBACK_REPLY
    assert result.tokens_used is None
    assert get_conversation(db_session, conversation.id).message_count == 2


def test_start_conversation_titles_from_message(db_session, user, chat_service) -> None:
    text = "How do I get started with Python automation and make money from it?"
    conversation = chat_service.start_conversation(db_session, user.id, text)

    assert conversation.title == text[:50]
    entries = list_audit_entries(db_session, event_type="conversation_created")
    assert entries[0].details_dict() == {"conversationId": conversation.id}


def test_assemble_context_keeps_last_ten(db_session, user) -> None:
    """15 stored messages: the oldest 5 are dropped, order stays ascending."""
    conversation = create_conversation(db_session, user.id, "Long")
    for i in range(15):
        create_message(
            db_session, conversation.id, "user" if i % 2 == 0 else "assistant", f"m{i}"
        )

    context = assemble_context(db_session, conversation.id, "persona", limit=10)

    assert len(context) == 11
    assert context[0].role == "system"
    assert context[0].content == "persona"
    assert [m.content for m in context[1:]] == [f"m{i}" for i in range(5, 15)]
    assert context[1].role == "assistant"
    assert context[2].role == "user"


def test_assemble_context_empty_conversation(db_session, user) -> None:
    conversation = create_conversation(db_session, user.id, "Empty")

    context = assemble_context(db_session, conversation.id, "persona")

    assert [(m.role, m.content) for m in context] == [("system", "persona")]


@pytest.mark.asyncio
async def test_persona_file_is_read_once(
    db_session, user, settings, stub_provider, tmp_path
) -> None:
    persona_file = tmp_path / "persona.txt"
    persona_file.write_text("Custom Unk persona\n", encoding="utf-8")
    custom = settings.model_copy(update={"persona_prompt_path": str(persona_file)})
    service = ChatService(StubRegistry(custom, stub_provider), custom)
    conversation = create_conversation(db_session, user.id, "Test")

    load_persona_file.cache_clear()
    try:
        await service.send_turn(db_session, user.id, conversation.id, "one")
        persona_file.write_text("Edited persona", encoding="utf-8")
        await service.send_turn(db_session, user.id, conversation.id, "two")
    finally:
        load_persona_file.cache_clear()

    personas = [request.messages[0].content for request in stub_provider.requests]
    assert personas == ["Custom Unk persona", "Custom Unk persona"]
