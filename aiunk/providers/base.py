"""
Base provider interface.

Defines the contract that all AI providers must implement and the tagged
reply shapes they return.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from aiunk.prompts import FALLBACK_REPLY


class ProviderType(str, Enum):
    """Supported provider types."""

    OPENAI = "openai"
    OPENAI_COMPAT = "openai_compat"
    LMSTUDIO = "lmstudio"
    OLLAMA = "ollama"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


@dataclass
class ChatMessage:
    """A single chat message."""

    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class ChatRequest:
    """Request for chat completion."""

    messages: list[ChatMessage]
    model: str
    temperature: float | None = 0.7
    max_tokens: int | None = None


@dataclass(frozen=True)
class ReplyPart:
    """One typed part of a structured reply (text, image_url, tool_use, ...)."""

    kind: str
    payload: Any


@dataclass(frozen=True)
class TextReply:
    text: str


@dataclass(frozen=True)
class PartsReply:
    parts: list[ReplyPart] = field(default_factory=list)


Reply = Union[TextReply, PartsReply]


@dataclass
class ChatResponse:
    """Complete chat response (non-streaming)."""

    reply: Reply
    model: str
    finish_reason: str = "stop"
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    @property
    def tokens_used(self) -> int | None:
        if self.total_tokens is not None:
            return self.total_tokens
        if self.prompt_tokens is not None and self.completion_tokens is not None:
            return self.prompt_tokens + self.completion_tokens
        return None


def extract_text(reply: Reply) -> str:
    """
    Flatten a provider reply to plain text.

    Only ``text`` parts are kept, concatenated in order. A reply with no
    usable text yields the fixed fallback apology.
    """
    if isinstance(reply, TextReply):
        text = reply.text
    else:
        text = "".join(
            part.payload
            for part in reply.parts
            if part.kind == "text" and isinstance(part.payload, str)
        )
    if not text or not text.strip():
        return FALLBACK_REPLY
    return text


class BaseProvider(ABC):
    """
    Abstract base class for AI providers.

    All providers must implement this interface to ensure consistent
    behavior across hosted APIs and local OpenAI-compatible servers.
    """

    provider_type: ProviderType
    display_name: str = ""

    async def aclose(self) -> None:
        """Close any underlying resources (optional)."""
        return None

    @abstractmethod
    async def chat_once(self, request: ChatRequest) -> ChatResponse:
        """
        Send a chat request and wait for complete response.

        Raises:
            ProviderError: If the provider returns an error
            ProviderUnavailableError: If the provider is not available
        """
        ...
