"""Shared FastAPI dependencies for application services."""

from fastapi import Request

from aiunk.config import get_settings
from aiunk.providers import ProviderRegistry
from aiunk.services.chat_service import ChatService


def get_registry(request: Request) -> ProviderRegistry:
    registry = getattr(request.app.state, "provider_registry", None)
    if registry is None:
        registry = ProviderRegistry(get_settings())
        request.app.state.provider_registry = registry
    return registry


def get_chat_service(request: Request) -> ChatService:
    service = getattr(request.app.state, "chat_service", None)
    if service:
        return service
    service = ChatService(get_registry(request), get_settings())
    request.app.state.chat_service = service
    return service
