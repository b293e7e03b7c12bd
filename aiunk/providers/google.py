"""Google Gemini generateContent adapter."""

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


class GoogleProvider(BaseProvider):
    """Adapter for the Gemini ``models/{model}:generateContent`` endpoint."""

    provider_type = ProviderType.GOOGLE

    def __init__(
        self,
        base_url: str,
        timeout: int,
        max_retries: int,
        api_key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.display_name = "Google Gemini"
        self.max_retries = max_retries
        self.client = create_http_client(
            base_url=base_url,
            timeout_seconds=timeout,
            headers={"x-goog-api-key": api_key},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def chat_once(self, request: ChatRequest) -> ChatResponse:
        system = "\n\n".join(m.content for m in request.messages if m.role == "system")
        payload: dict[str, Any] = {
            "contents": [
                {
                    # Gemini names the assistant role "model"
                    "role": "model" if m.role == "assistant" else "user",
                    "parts": [{"text": m.content}],
                }
                for m in request.messages
                if m.role != "system"
            ],
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        generation_config: dict[str, Any] = {}
        if request.temperature is not None:
            generation_config["temperature"] = request.temperature
        if request.max_tokens is not None:
            generation_config["maxOutputTokens"] = request.max_tokens
        if generation_config:
            payload["generationConfig"] = generation_config

        response = await request_with_retries(
            self.client,
            "POST",
            f"/v1beta/models/{request.model}:generateContent",
            json=payload,
            max_retries=self.max_retries,
        )
        raise_for_status(response)
        data = parse_json(response)

        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates or not isinstance(candidates, list):
            raise ProviderBadResponseError(
                "Provider returned invalid response", details={"body": data}
            )

        candidate = candidates[0] or {}
        raw_parts = (candidate.get("content") or {}).get("parts") or []
        parts: list[ReplyPart] = []
        for part in raw_parts:
            if not isinstance(part, dict):
                continue
            if "text" in part:
                parts.append(ReplyPart(kind="text", payload=part["text"]))
            else:
                kind = next(iter(part), "unknown")
                parts.append(ReplyPart(kind=kind, payload=part))

        usage = data.get("usageMetadata") or {}

        return ChatResponse(
            reply=PartsReply(parts=parts),
            model=data.get("modelVersion", request.model),
            finish_reason=(candidate.get("finishReason") or "stop").lower(),
            prompt_tokens=usage.get("promptTokenCount"),
            completion_tokens=usage.get("candidatesTokenCount"),
            total_tokens=usage.get("totalTokenCount"),
        )
