"""AI provider adapters and registry."""

from aiunk.providers.base import (
    BaseProvider,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    PartsReply,
    ProviderType,
    Reply,
    ReplyPart,
    TextReply,
    extract_text,
)
from aiunk.providers.registry import SUPPORTED_PROVIDERS, ProviderRegistry, ProviderTestResult

__all__ = [
    "BaseProvider",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "PartsReply",
    "ProviderRegistry",
    "ProviderTestResult",
    "ProviderType",
    "Reply",
    "ReplyPart",
    "SUPPORTED_PROVIDERS",
    "TextReply",
    "extract_text",
]
