"""
Admin API endpoints.

Provider configuration, connectivity probes and the audit trail.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from aiunk.api.deps import get_registry
from aiunk.auth import RequireAdmin
from aiunk.config import get_settings
from aiunk.db import get_db
from aiunk.db.models import AuditLog, ProviderSetting
from aiunk.db.repositories import list_audit_entries
from aiunk.providers import ProviderRegistry

router = APIRouter(prefix="/admin", tags=["admin"])


class UpdateProviderRequest(BaseModel):
    provider_id: str = Field(..., min_length=1, max_length=64)
    model: str = Field(..., min_length=1, max_length=128)
    api_key: str = Field(..., min_length=1)
    is_active: bool = False


class TestProviderRequest(BaseModel):
    provider_id: str = Field(..., min_length=1, max_length=64)
    model: str = Field(..., min_length=1, max_length=128)
    api_key: str = Field(..., min_length=1)


def mask_api_key(api_key: str) -> str:
    """Keep the last four characters of a key visible."""
    if len(api_key) <= 4:
        return "*" * len(api_key)
    return f"{'*' * 8}{api_key[-4:]}"


def _provider_to_dict(setting: ProviderSetting) -> dict[str, Any]:
    return {
        "id": setting.id,
        "provider_id": setting.provider_id,
        "model": setting.model,
        "api_key": mask_api_key(setting.api_key),
        "is_active": setting.is_active,
        "usage_count": setting.usage_count,
        "last_used": setting.last_used.isoformat() if setting.last_used else None,
        "updated_at": setting.updated_at.isoformat(),
    }


def _audit_to_dict(entry: AuditLog) -> dict[str, Any]:
    return {
        "id": entry.id,
        "event_type": entry.event_type,
        "user_id": entry.user_id,
        "details": entry.details_dict(),
        "request_id": entry.request_id,
        "created_at": entry.created_at.isoformat(),
    }


@router.get("/providers")
async def list_providers(
    _auth: RequireAdmin,
    db: Annotated[Session, Depends(get_db)],
    registry: Annotated[ProviderRegistry, Depends(get_registry)],
) -> dict[str, Any]:
    """List configured providers with masked credentials."""
    return {"providers": [_provider_to_dict(p) for p in registry.list_providers(db)]}


@router.put("/providers")
async def update_provider(
    body: UpdateProviderRequest,
    auth: RequireAdmin,
    db: Annotated[Session, Depends(get_db)],
    registry: Annotated[ProviderRegistry, Depends(get_registry)],
) -> dict[str, Any]:
    """Create or update a provider; activating it deactivates the others."""
    user, _ = auth
    await registry.upsert(
        db,
        provider_id=body.provider_id,
        model=body.model,
        api_key=body.api_key,
        is_active=body.is_active,
        actor_user_id=user.id,
    )
    return {"success": True}


@router.post("/providers/test")
async def test_provider(
    body: TestProviderRequest,
    auth: RequireAdmin,
    db: Annotated[Session, Depends(get_db)],
    registry: Annotated[ProviderRegistry, Depends(get_registry)],
) -> dict[str, Any]:
    """Probe a provider with the supplied credentials without saving them."""
    user, _ = auth
    result = await registry.test_connection(
        db,
        provider_id=body.provider_id,
        model=body.model,
        api_key=body.api_key,
        actor_user_id=user.id,
    )
    return {
        "success": result.success,
        "message": result.message,
        "latency_ms": result.latency_ms,
    }


@router.get("/audit")
async def list_audit(
    _auth: RequireAdmin,
    db: Annotated[Session, Depends(get_db)],
    limit: int | None = Query(None, ge=1, le=1000),
    event_type: str | None = Query(None),
) -> dict[str, Any]:
    """Recent audit entries, newest first."""
    entries = list_audit_entries(
        db,
        limit=limit or get_settings().audit_log_default_limit,
        event_type=event_type,
    )
    return {"entries": [_audit_to_dict(e) for e in entries]}
