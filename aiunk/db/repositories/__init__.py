"""Database repositories for data access."""

from aiunk.db.repositories.audit import (
    AuditEventType,
    ChatErrorDetails,
    ChatEventDetails,
    ConversationEventDetails,
    ProviderSwitchedDetails,
    ProviderTestDetails,
    SessionEventDetails,
    list_audit_entries,
    log_audit,
    log_chat,
    log_chat_error,
    log_conversation_created,
    log_conversation_deleted,
    log_login,
    log_logout,
    log_provider_switched,
    log_provider_test,
)
from aiunk.db.repositories.conversation import (
    create_conversation,
    create_message,
    delete_conversation,
    get_conversation,
    get_conversation_messages,
    get_user_conversation,
    list_user_conversations,
    record_completed_turn,
)
from aiunk.db.repositories.progress import (
    get_or_create_user_progress,
    get_user_progress,
    update_user_progress,
)
from aiunk.db.repositories.provider import (
    get_active_provider_setting,
    get_provider_setting,
    increment_provider_usage,
    list_provider_settings,
    upsert_provider_setting,
)
from aiunk.db.repositories.user import (
    get_user_by_id,
    get_user_by_open_id,
    upsert_user,
)

__all__ = [
    # User
    "get_user_by_id",
    "get_user_by_open_id",
    "upsert_user",
    # Audit
    "AuditEventType",
    "ChatErrorDetails",
    "ChatEventDetails",
    "ConversationEventDetails",
    "ProviderSwitchedDetails",
    "ProviderTestDetails",
    "SessionEventDetails",
    "list_audit_entries",
    "log_audit",
    "log_chat",
    "log_chat_error",
    "log_conversation_created",
    "log_conversation_deleted",
    "log_login",
    "log_logout",
    "log_provider_switched",
    "log_provider_test",
    # Conversations
    "create_conversation",
    "create_message",
    "delete_conversation",
    "get_conversation",
    "get_conversation_messages",
    "get_user_conversation",
    "list_user_conversations",
    "record_completed_turn",
    # Progress
    "get_or_create_user_progress",
    "get_user_progress",
    "update_user_progress",
    # Providers
    "get_active_provider_setting",
    "get_provider_setting",
    "increment_provider_usage",
    "list_provider_settings",
    "upsert_provider_setting",
]
