"""LM Studio provider (OpenAI-compatible) adapter."""

from __future__ import annotations

import httpx

from aiunk.providers.base import ProviderType
from aiunk.providers.openai_compat import OpenAICompatProvider


class LMStudioProvider(OpenAICompatProvider):
    """LM Studio uses the OpenAI-compatible API surface."""

    def __init__(
        self,
        base_url: str,
        timeout: int,
        max_retries: int,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        # LM Studio ignores the key; it is only forwarded when configured
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            api_key=api_key or None,
            provider_type=ProviderType.LMSTUDIO,
            display_name="LM Studio",
            transport=transport,
        )
