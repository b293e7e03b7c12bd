"""
FastAPI dependencies for authentication.

These dependencies are used to protect routes and extract
the current user from the session.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from aiunk.auth.session import validate_session
from aiunk.config import get_settings
from aiunk.core import ForbiddenError, SessionExpiredError, UnauthorizedError, user_id_ctx
from aiunk.db import get_db
from aiunk.db.models import User, UserSession


def get_session_token(request: Request) -> str | None:
    """Extract session token from cookie."""
    settings = get_settings()
    return request.cookies.get(settings.session_cookie_name)


async def get_current_user(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> tuple[User, UserSession] | None:
    """
    Get current authenticated user from session cookie.

    Does NOT enforce authentication - returns None if not authenticated.
    Use require_auth() dependency to enforce authentication.
    """
    token = get_session_token(request)
    if not token:
        return None

    result = validate_session(db, token)
    if not result:
        return None

    session, user = result
    user_id_ctx.set(user.id)
    return user, session


async def require_auth(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> tuple[User, UserSession]:
    """
    Require authentication - raises if not authenticated.

    Raises:
        UnauthorizedError: If no session cookie.
        SessionExpiredError: If session is expired/invalid.
    """
    token = get_session_token(request)
    if not token:
        raise UnauthorizedError("Authentication required")

    result = validate_session(db, token)
    if not result:
        raise SessionExpiredError("Session expired or invalid")

    session, user = result
    user_id_ctx.set(user.id)
    return user, session


async def require_admin(
    auth: Annotated[tuple[User, UserSession], Depends(require_auth)],
) -> tuple[User, UserSession]:
    """
    Require admin role - raises if not admin.

    Raises:
        ForbiddenError: If user is not admin.
    """
    user, session = auth
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user, session


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[tuple[User, UserSession] | None, Depends(get_current_user)]
RequireAuth = Annotated[tuple[User, UserSession], Depends(require_auth)]
RequireAdmin = Annotated[tuple[User, UserSession], Depends(require_admin)]
