"""Per-user progress endpoints."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from aiunk.auth import RequireAuth
from aiunk.db import get_db
from aiunk.db.repositories import get_or_create_user_progress, update_user_progress

router = APIRouter(prefix="/progress", tags=["progress"])


class UpdateProgressRequest(BaseModel):
    """Partial progress update; omitted fields are left untouched."""

    total_conversations: int | None = Field(None, ge=0)
    total_messages: int | None = Field(None, ge=0)
    topics_discussed: list[str] | None = None
    achievements: list[str] | None = None
    last_topic: str | None = None


@router.get("")
def get_progress_route(
    auth: RequireAuth,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    user, _ = auth
    progress = get_or_create_user_progress(db, user.id)
    return {
        "user_id": progress.user_id,
        "total_conversations": progress.total_conversations,
        "total_messages": progress.total_messages,
        "topics_discussed": list(progress.topics_discussed or []),
        "achievements": list(progress.achievements or []),
        "last_topic": progress.last_topic,
        "updated_at": progress.updated_at.isoformat(),
    }


@router.patch("")
def update_progress_route(
    body: UpdateProgressRequest,
    auth: RequireAuth,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    user, _ = auth
    update_user_progress(db, user.id, **body.model_dump(exclude_unset=True))
    return {"success": True}
