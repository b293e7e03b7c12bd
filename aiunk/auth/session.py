"""
Session management for authentication.

Sessions are stored server-side in the database with the session token
hashed (not stored in plain text). The plain token is sent to the client
in an HttpOnly cookie.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from aiunk.config import get_settings
from aiunk.core.time import utcnow
from aiunk.db.models import User, UserSession


@dataclass
class SessionData:
    """Session data returned from session operations."""

    session_id: str
    user_id: str
    token: str  # Plain token for cookie
    expires_at: datetime


def _hash_token(token: str) -> str:
    """
    Hash a session token for storage.

    The token itself has sufficient entropy (32 bytes), so a fast
    deterministic digest is enough.
    """
    return hashlib.sha256(token.encode()).hexdigest()


def generate_session_token() -> str:
    """Generate a URL-safe session token (32 random bytes)."""
    return secrets.token_urlsafe(32)


def create_session(
    db: Session,
    user: User,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SessionData:
    """
    Create a new session for a user.

    Args:
        db: Database session.
        user: User to create session for.
        ip_address: Client IP address.
        user_agent: Client User-Agent header.

    Returns:
        SessionData carrying the plain token for the cookie.
    """
    settings = get_settings()

    token = generate_session_token()
    expires_at = utcnow() + timedelta(seconds=settings.session_ttl_seconds)

    session = UserSession(
        user_id=user.id,
        token_hash=_hash_token(token),
        expires_at=expires_at,
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
    )
    db.add(session)
    db.commit()

    return SessionData(
        session_id=session.id,
        user_id=user.id,
        token=token,
        expires_at=expires_at,
    )


def validate_session(
    db: Session,
    token: str,
) -> tuple[UserSession, User] | None:
    """
    Validate a session token and return session + user.

    Returns:
        Tuple of (UserSession, User) if valid, None otherwise.
    """
    stmt = (
        select(UserSession)
        .where(UserSession.token_hash == _hash_token(token))
        .where(UserSession.expires_at > utcnow())
    )
    session = db.execute(stmt).scalar_one_or_none()
    if not session:
        return None

    user = db.get(User, session.user_id)
    if not user:
        return None

    return session, user


def delete_session(db: Session, session_id: str) -> bool:
    """Delete a session by ID."""
    stmt = delete(UserSession).where(UserSession.id == session_id)
    result = db.execute(stmt)
    db.commit()
    return result.rowcount > 0


def cleanup_expired_sessions(db: Session) -> int:
    """Delete all expired sessions and return how many were removed."""
    stmt = delete(UserSession).where(UserSession.expires_at <= utcnow())
    result = db.execute(stmt)
    db.commit()
    return result.rowcount
