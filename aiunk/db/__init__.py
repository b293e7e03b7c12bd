"""Database models, engine, and session management."""

from aiunk.db.base import Base, TimestampMixin
from aiunk.db.engine import build_engine, dispose_engine, get_engine, verify_database_connection
from aiunk.db.models import (
    AuditLog,
    Conversation,
    Message,
    ProviderSetting,
    User,
    UserProgress,
    UserSession,
)
from aiunk.db.session import get_db, get_session_factory, reset_session_factory

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Engine
    "build_engine",
    "get_engine",
    "verify_database_connection",
    "dispose_engine",
    # Session
    "get_db",
    "get_session_factory",
    "reset_session_factory",
    # Models
    "AuditLog",
    "Conversation",
    "Message",
    "ProviderSetting",
    "User",
    "UserProgress",
    "UserSession",
]
