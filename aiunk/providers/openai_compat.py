"""OpenAI-compatible provider adapter (OpenAI, LM Studio, generic /v1 servers)."""

from __future__ import annotations

from typing import Any

import httpx

from aiunk.core import ProviderBadResponseError
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
)
from aiunk.providers.http_client import (
    create_http_client,
    parse_json,
    raise_for_status,
    request_with_retries,
)


class OpenAICompatProvider(BaseProvider):
    """Adapter for the OpenAI chat completions API surface."""

    def __init__(
        self,
        base_url: str,
        timeout: int,
        max_retries: int,
        api_key: str | None = None,
        provider_type: ProviderType = ProviderType.OPENAI_COMPAT,
        display_name: str = "OpenAI-compatible",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider_type = provider_type
        self.display_name = display_name
        self.max_retries = max_retries
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        self.client = create_http_client(
            base_url=base_url,
            timeout_seconds=timeout,
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def chat_once(self, request: ChatRequest) -> ChatResponse:
        """Send a single chat request (non-streaming)."""
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": _format_messages(request.messages),
            "stream": False,
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.max_tokens is not None:
            payload["max_tokens"] = request.max_tokens

        response = await request_with_retries(
            self.client,
            "POST",
            "/chat/completions",
            json=payload,
            max_retries=self.max_retries,
        )
        raise_for_status(response)
        data = parse_json(response)

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices, list):
            raise ProviderBadResponseError(
                "Provider returned invalid response", details={"body": data}
            )

        choice = choices[0] or {}
        message = choice.get("message") or {}
        usage = data.get("usage") or {}

        return ChatResponse(
            reply=_parse_content(message.get("content")),
            model=data.get("model", request.model),
            finish_reason=choice.get("finish_reason") or "stop",
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
            total_tokens=usage.get("total_tokens"),
        )


def _parse_content(content: Any) -> Reply:
    """Content is either a plain string or a list of typed parts."""
    if content is None:
        return TextReply(text="")
    if isinstance(content, str):
        return TextReply(text=content)
    if isinstance(content, list):
        parts: list[ReplyPart] = []
        for item in content:
            if not isinstance(item, dict):
                continue
            kind = item.get("type", "unknown")
            parts.append(ReplyPart(kind=kind, payload=item.get("text") if kind == "text" else item))
        return PartsReply(parts=parts)
    raise ProviderBadResponseError(
        "Provider returned invalid response", details={"content": str(content)[:300]}
    )


def _format_messages(messages: list[ChatMessage]) -> list[dict[str, str]]:
    return [{"role": msg.role, "content": msg.content} for msg in messages]
