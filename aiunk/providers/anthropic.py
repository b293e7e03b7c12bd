"""Anthropic Messages API adapter."""

from __future__ import annotations

from typing import Any

import httpx

from aiunk.core import ProviderBadResponseError
from aiunk.providers.base import (
    BaseProvider,
    ChatRequest,
    ChatResponse,
    PartsReply,
    ProviderType,
    ReplyPart,
)
from aiunk.providers.http_client import (
    create_http_client,
    parse_json,
    raise_for_status,
    request_with_retries,
)

ANTHROPIC_VERSION = "2023-06-01"
# The Messages API requires an explicit output cap
DEFAULT_MAX_TOKENS = 1024


class AnthropicProvider(BaseProvider):
    """Adapter for Anthropic's /v1/messages endpoint."""

    provider_type = ProviderType.ANTHROPIC

    def __init__(
        self,
        base_url: str,
        timeout: int,
        max_retries: int,
        api_key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.display_name = "Anthropic"
        self.max_retries = max_retries
        self.client = create_http_client(
            base_url=base_url,
            timeout_seconds=timeout,
            headers={"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def chat_once(self, request: ChatRequest) -> ChatResponse:
        system = "\n\n".join(m.content for m in request.messages if m.role == "system")
        payload: dict[str, Any] = {
            "model": request.model,
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "messages": [
                {"role": m.role, "content": m.content}
                for m in request.messages
                if m.role != "system"
            ],
        }
        if system:
            payload["system"] = system
        if request.temperature is not None:
            payload["temperature"] = request.temperature

        response = await request_with_retries(
            self.client,
            "POST",
            "/v1/messages",
            json=payload,
            max_retries=self.max_retries,
        )
        raise_for_status(response)
        data = parse_json(response)

        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, list):
            raise ProviderBadResponseError(
                "Provider returned invalid response", details={"body": data}
            )

        parts = [
            ReplyPart(
                kind=block.get("type", "unknown"),
                payload=block.get("text") if block.get("type") == "text" else block,
            )
            for block in content
            if isinstance(block, dict)
        ]
        usage = data.get("usage") or {}

        return ChatResponse(
            reply=PartsReply(parts=parts),
            model=data.get("model", request.model),
            finish_reason=data.get("stop_reason") or "stop",
            prompt_tokens=usage.get("input_tokens"),
            completion_tokens=usage.get("output_tokens"),
        )
