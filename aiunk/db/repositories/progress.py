"""Repository helpers for per-user progress."""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from aiunk.db.models import UserProgress


def get_user_progress(db: Session, user_id: str) -> UserProgress | None:
    """Get the progress record for a user, if any."""
    stmt = select(UserProgress).where(UserProgress.user_id == user_id)
    return db.execute(stmt).scalar_one_or_none()


def get_or_create_user_progress(db: Session, user_id: str) -> UserProgress:
    """Return the user's progress, creating a zeroed record on first access."""
    progress = get_user_progress(db, user_id)
    if progress:
        return progress

    progress = UserProgress(
        user_id=user_id,
        total_conversations=0,
        total_messages=0,
        topics_discussed=[],
        achievements=[],
    )
    db.add(progress)
    db.commit()
    db.refresh(progress)
    return progress


def _merge_unique(existing: Iterable[str] | None, incoming: Iterable[str]) -> list[str]:
    merged = list(existing or [])
    for item in incoming:
        if item not in merged:
            merged.append(item)
    return merged


def update_user_progress(
    db: Session,
    user_id: str,
    *,
    total_conversations: int | None = None,
    total_messages: int | None = None,
    topics_discussed: list[str] | None = None,
    achievements: list[str] | None = None,
    last_topic: str | None = None,
) -> UserProgress:
    """
    Apply a partial progress update, creating the record if needed.

    Counters are replaced by the supplied values. Topics and achievements are
    merged into the stored sets, preserving first-seen order.
    """
    progress = get_or_create_user_progress(db, user_id)

    if total_conversations is not None:
        progress.total_conversations = total_conversations
    if total_messages is not None:
        progress.total_messages = total_messages
    if topics_discussed is not None:
        # Reassign so the JSON column is flagged dirty
        progress.topics_discussed = _merge_unique(progress.topics_discussed, topics_discussed)
    if achievements is not None:
        progress.achievements = _merge_unique(progress.achievements, achievements)
    if last_topic is not None:
        progress.last_topic = last_topic

    db.commit()
    db.refresh(progress)
    return progress
