"""Build the provider prompt from persisted conversation history."""

from sqlalchemy.orm import Session

from aiunk.db.repositories import get_conversation_messages
from aiunk.providers.base import ChatMessage

_ROLE_BY_SENDER = {"user": "user", "assistant": "assistant"}


def assemble_context(
    db: Session,
    conversation_id: str,
    persona: str,
    limit: int = 10,
) -> list[ChatMessage]:
    """
    Return the persona system entry followed by the last ``limit`` messages.

    History is ordered oldest to newest; older messages beyond the window
    are dropped.
    """
    history = get_conversation_messages(db, conversation_id, limit=limit)
    context = [ChatMessage(role="system", content=persona)]
    context.extend(
        ChatMessage(role=_ROLE_BY_SENDER.get(message.sender, "user"), content=message.content)
        for message in history
    )
    return context
