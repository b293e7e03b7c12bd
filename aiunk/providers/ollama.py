"""Ollama native provider adapter."""

from __future__ import annotations

from typing import Any

import httpx

from aiunk.core import ProviderBadResponseError
from aiunk.providers.base import (
    BaseProvider,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ProviderType,
    TextReply,
)
from aiunk.providers.http_client import (
    create_http_client,
    parse_json,
    raise_for_status,
    request_with_retries,
)


class OllamaProvider(BaseProvider):
    """Adapter for Ollama's native HTTP API."""

    provider_type = ProviderType.OLLAMA

    def __init__(
        self,
        base_url: str,
        timeout: int,
        max_retries: int,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.display_name = "Ollama"
        self.max_retries = max_retries
        self.client = create_http_client(
            base_url=base_url,
            timeout_seconds=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def chat_once(self, request: ChatRequest) -> ChatResponse:
        """Send a single chat request (non-streaming)."""
        options: dict[str, Any] = {}
        if request.temperature is not None:
            options["temperature"] = request.temperature
        if request.max_tokens is not None:
            options["num_predict"] = request.max_tokens

        payload: dict[str, Any] = {
            "model": request.model,
            "messages": _format_messages(request.messages),
            "stream": False,
        }
        if options:
            payload["options"] = options

        response = await request_with_retries(
            self.client,
            "POST",
            "/api/chat",
            json=payload,
            max_retries=self.max_retries,
        )
        raise_for_status(response)
        data = parse_json(response)

        message = (data.get("message") or {}).get("content")
        if message is None:
            raise ProviderBadResponseError(
                "Provider returned invalid response", details={"body": data}
            )

        finish_reason = data.get("done_reason") or ("stop" if data.get("done") else None)

        return ChatResponse(
            reply=TextReply(text=message),
            model=data.get("model", request.model),
            finish_reason=finish_reason or "stop",
            prompt_tokens=data.get("prompt_eval_count"),
            completion_tokens=data.get("eval_count"),
        )


def _format_messages(messages: list[ChatMessage]) -> list[dict[str, str]]:
    """Convert ChatMessage objects to Ollama's expected shape."""
    return [{"role": msg.role, "content": msg.content} for msg in messages]
