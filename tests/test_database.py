"""Tests for migrations and repository-level invariants."""

from __future__ import annotations

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, select

from aiunk.db.models import Message
from aiunk.db.repositories import (
    create_conversation,
    create_message,
    delete_conversation,
    get_active_provider_setting,
    get_conversation_messages,
    increment_provider_usage,
    list_provider_settings,
    list_user_conversations,
    record_completed_turn,
    upsert_provider_setting,
)

EXPECTED_TABLES = {
    "users",
    "sessions",
    "conversations",
    "messages",
    "user_progress",
    "provider_settings",
    "audit_log",
}


def _alembic_config(project_root, db_url: str) -> Config:
    cfg = Config(str(project_root / "alembic.ini"))
    cfg.set_main_option("script_location", str(project_root / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def test_migrations_create_schema(tmp_path, project_root) -> None:
    db_url = f"sqlite:///{tmp_path / 'migrated.db'}"
    cfg = _alembic_config(project_root, db_url)

    command.upgrade(cfg, "head")

    engine = create_engine(db_url)
    try:
        inspector = inspect(engine)
        assert EXPECTED_TABLES.issubset(set(inspector.get_table_names()))
        message_columns = {c["name"] for c in inspector.get_columns("messages")}
        assert {"sender", "content", "provider", "model", "tokens_used"} <= message_columns
        provider_uniques = inspector.get_unique_constraints("provider_settings")
        assert any(u["column_names"] == ["provider_id"] for u in provider_uniques)
    finally:
        engine.dispose()

    command.downgrade(cfg, "base")
    engine = create_engine(db_url)
    try:
        assert EXPECTED_TABLES.isdisjoint(set(inspect(engine).get_table_names()))
    finally:
        engine.dispose()


def test_single_active_provider(db_session) -> None:
    upsert_provider_setting(db_session, "openai", "gpt", "k1", True)
    upsert_provider_setting(db_session, "anthropic", "claude", "k2", True)
    upsert_provider_setting(db_session, "openai", "gpt-2", "k1", False)

    active = [p.provider_id for p in list_provider_settings(db_session) if p.is_active]
    assert active == ["anthropic"]
    assert get_active_provider_setting(db_session).provider_id == "anthropic"

    upsert_provider_setting(db_session, "openai", "gpt-2", "k1", True)
    active = [p.provider_id for p in list_provider_settings(db_session) if p.is_active]
    assert active == ["openai"]


def test_increment_provider_usage(db_session) -> None:
    upsert_provider_setting(db_session, "google", "gemini", "k", True)

    increment_provider_usage(db_session, "google")
    setting = increment_provider_usage(db_session, "google")

    assert setting.usage_count == 2
    assert setting.last_used is not None
    assert increment_provider_usage(db_session, "ollama") is None


def test_message_timestamps_strictly_increase(db_session, user) -> None:
    conversation = create_conversation(db_session, user.id, "Fast")
    for i in range(20):
        create_message(db_session, conversation.id, "user", f"m{i}")

    stamps = [m.created_at for m in get_conversation_messages(db_session, conversation.id)]
    assert all(earlier < later for earlier, later in zip(stamps, stamps[1:]))


def test_get_conversation_messages_limit(db_session, user) -> None:
    conversation = create_conversation(db_session, user.id, "Window")
    for i in range(5):
        create_message(db_session, conversation.id, "user", f"m{i}")

    recent = get_conversation_messages(db_session, conversation.id, limit=2)

    assert [m.content for m in recent] == ["m3", "m4"]


def test_delete_conversation_removes_messages(db_session, user) -> None:
    conversation = create_conversation(db_session, user.id, "Gone")
    create_message(db_session, conversation.id, "user", "bye")

    assert delete_conversation(db_session, conversation.id) is True
    assert delete_conversation(db_session, conversation.id) is False
    remaining = db_session.execute(
        select(Message).where(Message.conversation_id == conversation.id)
    ).scalars().all()
    assert remaining == []


def test_conversation_defaults_and_ordering(db_session, user) -> None:
    older = create_conversation(db_session, user.id, None)
    newer = create_conversation(db_session, user.id, "Second")

    assert older.title == "New Chat"
    assert older.message_count == 0

    record_completed_turn(db_session, older)
    assert older.message_count == 2
    assert [c.id for c in list_user_conversations(db_session, user.id)] == [older.id, newer.id]
