"""Provider registry: admin-managed provider settings and adapter lifecycle."""

from __future__ import annotations

import time
from dataclasses import dataclass

import httpx
from sqlalchemy.orm import Session

from aiunk.config import Settings
from aiunk.core import AppError, ValidationError, get_logger
from aiunk.db.models import ProviderSetting
from aiunk.db.repositories import (
    get_active_provider_setting,
    increment_provider_usage,
    list_provider_settings,
    log_provider_switched,
    log_provider_test,
    upsert_provider_setting,
)
from aiunk.providers.anthropic import AnthropicProvider
from aiunk.providers.base import BaseProvider, ChatMessage, ChatRequest, ProviderType
from aiunk.providers.google import GoogleProvider
from aiunk.providers.lmstudio import LMStudioProvider
from aiunk.providers.ollama import OllamaProvider
from aiunk.providers.openai_compat import OpenAICompatProvider

logger = get_logger(__name__)

SUPPORTED_PROVIDERS: frozenset[str] = frozenset(p.value for p in ProviderType)

PROBE_MESSAGES = [
    ChatMessage(role="system", content="You are a helpful assistant."),
    ChatMessage(role="user", content='Say "test successful" if you can read this.'),
]
PROBE_MAX_TOKENS = 20


@dataclass(frozen=True)
class ProviderTestResult:
    """Outcome of a connectivity probe."""

    success: bool
    message: str
    latency_ms: int


class ProviderRegistry:
    """Resolve, build and cache provider adapters."""

    def __init__(
        self,
        settings: Settings,
        transport_overrides: dict[str, httpx.AsyncBaseTransport] | None = None,
    ):
        self.settings = settings
        self._transport_overrides = transport_overrides or {}
        # (provider_id, api_key) -> adapter
        self._adapters: dict[tuple[str, str], BaseProvider] = {}
        self._default: BaseProvider | None = None
        # Evicted adapters may still serve in-flight turns; closed on shutdown
        self._retired: list[BaseProvider] = []

    def _transport(self, provider_id: str) -> httpx.AsyncBaseTransport | None:
        return self._transport_overrides.get(provider_id)

    @staticmethod
    def validate_provider_id(provider_id: str) -> None:
        if provider_id not in SUPPORTED_PROVIDERS:
            raise ValidationError(
                f"Unsupported provider '{provider_id}'",
                details={"supported": sorted(SUPPORTED_PROVIDERS)},
            )

    def build(self, provider_id: str, api_key: str) -> BaseProvider:
        """Construct a fresh adapter for ``provider_id`` using ``api_key``."""
        self.validate_provider_id(provider_id)
        timeout = self.settings.provider_timeout_seconds
        retries = self.settings.provider_max_retries
        transport = self._transport(provider_id)

        if provider_id == ProviderType.OPENAI.value:
            return OpenAICompatProvider(
                base_url=self.settings.openai_base_url,
                timeout=timeout,
                max_retries=retries,
                api_key=api_key,
                provider_type=ProviderType.OPENAI,
                display_name="OpenAI",
                transport=transport,
            )
        if provider_id == ProviderType.OPENAI_COMPAT.value:
            if not self.settings.openai_compat_base_url:
                raise ValidationError("OPENAI_COMPAT_BASE_URL is not configured")
            return OpenAICompatProvider(
                base_url=self.settings.openai_compat_base_url,
                timeout=timeout,
                max_retries=retries,
                api_key=api_key or None,
                transport=transport,
            )
        if provider_id == ProviderType.LMSTUDIO.value:
            return LMStudioProvider(
                base_url=self.settings.lmstudio_base_url,
                timeout=timeout,
                max_retries=retries,
                api_key=api_key,
                transport=transport,
            )
        if provider_id == ProviderType.OLLAMA.value:
            return OllamaProvider(
                base_url=self.settings.ollama_base_url,
                timeout=timeout,
                max_retries=retries,
                transport=transport,
            )
        if provider_id == ProviderType.ANTHROPIC.value:
            return AnthropicProvider(
                base_url=self.settings.anthropic_base_url,
                timeout=timeout,
                max_retries=retries,
                api_key=api_key,
                transport=transport,
            )
        return GoogleProvider(
            base_url=self.settings.google_base_url,
            timeout=timeout,
            max_retries=retries,
            api_key=api_key,
            transport=transport,
        )

    def provider_for(self, setting: ProviderSetting | None) -> BaseProvider:
        """Return the adapter for ``setting``, or the default adapter when None."""
        if setting is None:
            if self._default is None:
                self._default = self.build(
                    self.settings.default_provider, self.settings.default_api_key
                )
            return self._default

        key = (setting.provider_id, setting.api_key)
        adapter = self._adapters.get(key)
        if adapter is None:
            adapter = self.build(setting.provider_id, setting.api_key)
            self._adapters[key] = adapter
        return adapter

    def list_providers(self, db: Session) -> list[ProviderSetting]:
        return list_provider_settings(db)

    def get_active(self, db: Session) -> ProviderSetting | None:
        return get_active_provider_setting(db)

    def increment_usage(self, db: Session, provider_id: str) -> None:
        increment_provider_usage(db, provider_id)

    async def upsert(
        self,
        db: Session,
        provider_id: str,
        model: str,
        api_key: str,
        is_active: bool,
        actor_user_id: str,
    ) -> ProviderSetting:
        """
        Create or update a provider setting.

        Activating a provider deactivates every other one; the switch is
        audited and cached adapters for ``provider_id`` are dropped from the
        cache. Dropped adapters stay open until ``aclose`` so turns already
        awaiting them can finish.
        """
        self.validate_provider_id(provider_id)

        setting = upsert_provider_setting(db, provider_id, model, api_key, is_active)
        log_provider_switched(db, actor_user_id, provider_id, model, is_active)

        self._evict(provider_id)

        logger.info(
            "Provider setting updated",
            data={"provider_id": provider_id, "model": model, "is_active": is_active},
        )
        return setting

    async def test_connection(
        self,
        db: Session,
        provider_id: str,
        model: str,
        api_key: str,
        actor_user_id: str | None,
    ) -> ProviderTestResult:
        """
        Probe a provider with the supplied credentials.

        Provider faults are reported in the result, never raised. The
        credentials are used for this probe only and are not stored.
        An unsupported ``provider_id`` is reported as a failed probe.
        """
        start = time.perf_counter()
        adapter: BaseProvider | None = None
        error: str | None = None
        try:
            adapter = self.build(provider_id, api_key)
            await adapter.chat_once(
                ChatRequest(messages=PROBE_MESSAGES, model=model, max_tokens=PROBE_MAX_TOKENS)
            )
        except AppError as exc:
            error = exc.message
            if exc.details:
                error = f"{exc.message}: {exc.details}"
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
        finally:
            if adapter is not None:
                await adapter.aclose()
        latency_ms = int((time.perf_counter() - start) * 1000)

        success = error is None
        message = "Connection successful" if success else error
        log_provider_test(
            db,
            actor_user_id,
            provider_id,
            model,
            success=success,
            latency_ms=latency_ms,
            error=error,
        )

        if not success:
            logger.warning(
                "Provider test failed",
                data={"provider_id": provider_id, "model": model, "error": error},
            )
        return ProviderTestResult(success=success, message=message, latency_ms=latency_ms)

    def _evict(self, provider_id: str) -> None:
        stale = [key for key in self._adapters if key[0] == provider_id]
        for key in stale:
            self._retired.append(self._adapters.pop(key))

    async def aclose(self) -> None:
        """Close all provider clients, including evicted ones."""
        adapters = list(self._adapters.values()) + self._retired
        if self._default is not None:
            adapters.append(self._default)
        self._adapters.clear()
        self._retired = []
        self._default = None
        for adapter in adapters:
            try:
                await adapter.aclose()
            except Exception:  # pragma: no cover
                logger.warning(
                    "Error closing provider client",
                    data={"provider": adapter.provider_type.value},
                )
