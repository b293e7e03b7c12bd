"""Chat turn orchestration: persist, build context, call the provider, record."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from aiunk.config import Settings
from aiunk.core import AppError, ChatTurnFailedError, ConversationAccessError, get_logger
from aiunk.db.models import Conversation
from aiunk.db.repositories import (
    create_conversation,
    create_message,
    get_user_conversation,
    log_chat,
    log_chat_error,
    log_conversation_created,
    record_completed_turn,
)
from aiunk.prompts import get_persona_prompt
from aiunk.providers import ProviderRegistry
from aiunk.providers.base import ChatRequest, extract_text
from aiunk.services.context import assemble_context

logger = get_logger(__name__)

DEFAULT_PROVIDER_LABEL = "default"
TITLE_MAX_CHARS = 50


@dataclass(frozen=True)
class TurnResult:
    """Outcome of a successful chat turn."""

    conversation_id: str
    reply: str
    provider: str
    model: str
    tokens_used: int | None


class ChatService:
    """Runs one user/assistant exchange against the configured provider."""

    def __init__(self, registry: ProviderRegistry, settings: Settings):
        self.registry = registry
        self.settings = settings

    def start_conversation(self, db: Session, user_id: str, first_message: str) -> Conversation:
        """Create a conversation titled after the opening message."""
        title = first_message.strip()[:TITLE_MAX_CHARS]
        conversation = create_conversation(db, user_id, title)
        log_conversation_created(db, user_id, conversation.id)
        return conversation

    async def send_turn(
        self,
        db: Session,
        user_id: str,
        conversation_id: str,
        text: str,
    ) -> TurnResult:
        """
        Run a chat turn in ``conversation_id`` on behalf of ``user_id``.

        The user message is always persisted once ownership is confirmed.
        The assistant message, counters and usage are only written when the
        provider answers.

        Raises:
            ConversationAccessError: Conversation missing or owned by another user.
            ChatTurnFailedError: The provider could not produce a reply.
        """
        conversation = get_user_conversation(db, user_id, conversation_id)
        if conversation is None:
            raise ConversationAccessError()

        create_message(db, conversation_id, "user", text)

        context = assemble_context(
            db,
            conversation_id,
            get_persona_prompt(self.settings),
            limit=self.settings.context_window_messages,
        )

        setting = self.registry.get_active(db)
        if setting is not None:
            provider_label, model = setting.provider_id, setting.model
        else:
            provider_label, model = DEFAULT_PROVIDER_LABEL, self.settings.default_model

        try:
            adapter = self.registry.provider_for(setting)
            response = await adapter.chat_once(ChatRequest(messages=context, model=model))
        except Exception as exc:
            self._record_failure(db, user_id, conversation_id, provider_label, _describe(exc))
            raise ChatTurnFailedError() from exc

        reply = extract_text(response.reply)
        tokens_used = response.tokens_used

        create_message(
            db,
            conversation_id,
            "assistant",
            reply,
            provider=provider_label,
            model=model,
            tokens_used=tokens_used,
        )
        record_completed_turn(db, conversation)
        if setting is not None:
            self.registry.increment_usage(db, setting.provider_id)
        log_chat(
            db,
            user_id,
            conversation_id,
            setting.provider_id if setting is not None else None,
            tokens_used,
        )

        logger.info(
            "Chat turn completed",
            data={
                "conversation_id": conversation_id,
                "provider": provider_label,
                "model": model,
                "tokens_used": tokens_used,
            },
        )
        return TurnResult(
            conversation_id=conversation_id,
            reply=reply,
            provider=provider_label,
            model=model,
            tokens_used=tokens_used,
        )

    def _record_failure(
        self,
        db: Session,
        user_id: str,
        conversation_id: str,
        provider_label: str,
        error: str,
    ) -> None:
        logger.error(
            "Chat turn failed",
            data={"conversation_id": conversation_id, "provider": provider_label, "error": error},
        )
        log_chat_error(db, user_id, conversation_id, error)


def _describe(exc: Exception) -> str:
    if not isinstance(exc, AppError):
        return repr(exc)
    if exc.details:
        return f"{exc.code.value} {exc.message}: {exc.details}"
    return f"{exc.code.value} {exc.message}"
