"""Application services."""

from aiunk.services.chat_service import ChatService, TurnResult
from aiunk.services.context import assemble_context

__all__ = ["ChatService", "TurnResult", "assemble_context"]
