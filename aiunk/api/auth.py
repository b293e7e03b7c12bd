"""
Identity bridge endpoints.

The external sign-in service verifies the user and then calls ``/auth/login``
with the shared bridge token. This service only manages the resulting
session cookie.
"""

import secrets
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from aiunk.auth import CurrentUser, RequireAuth, create_session, delete_session
from aiunk.config import get_settings
from aiunk.core import ForbiddenError, UnauthorizedError, get_logger
from aiunk.db import get_db
from aiunk.db.models import User
from aiunk.db.repositories import log_login, log_logout, upsert_user

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    """Identity asserted by the sign-in service."""

    open_id: str = Field(..., min_length=1, max_length=64)
    name: str | None = None
    email: str | None = Field(None, max_length=320)
    login_method: str | None = Field(None, max_length=64)


class UserResponse(BaseModel):
    id: str
    open_id: str
    name: str | None
    email: str | None
    role: str


def _user_response(user: User) -> dict[str, Any]:
    return UserResponse(
        id=user.id,
        open_id=user.open_id,
        name=user.name,
        email=user.email,
        role=user.role,
    ).model_dump()


def get_client_ip(request: Request) -> str | None:
    """Extract client IP address from request."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    secure = settings.cookie_secure if settings.is_production else False
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=secure,
        samesite=settings.cookie_samesite,
        max_age=settings.session_ttl_seconds,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=get_settings().session_cookie_name)


@router.post("/login")
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
    x_identity_token: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    """Start a session for a user verified by the sign-in service."""
    settings = get_settings()
    if not settings.identity_bridge_token:
        raise ForbiddenError("Identity bridge is disabled")
    if not x_identity_token or not secrets.compare_digest(
        x_identity_token, settings.identity_bridge_token
    ):
        raise UnauthorizedError("Invalid identity token")

    user = upsert_user(
        db,
        body.open_id,
        name=body.name,
        email=body.email,
        login_method=body.login_method,
        owner_open_id=settings.owner_open_id or None,
    )
    session_data = create_session(
        db,
        user,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    set_session_cookie(response, session_data.token)
    log_login(db, user.id, session_data.session_id, login_method=body.login_method)

    logger.info("User signed in", data={"user_id": user.id, "role": user.role})
    return {"user": _user_response(user)}


@router.post("/logout")
async def logout(
    response: Response,
    auth: RequireAuth,
    db: Annotated[Session, Depends(get_db)],
) -> dict[str, Any]:
    """Invalidate the current session."""
    user, session = auth
    delete_session(db, session.id)
    clear_session_cookie(response)
    log_logout(db, user.id, session.id)
    return {"success": True}


@router.get("/me")
async def me(current: CurrentUser) -> dict[str, Any]:
    """Return the signed-in user, or ``null``."""
    if current is None:
        return {"user": None}
    user, _ = current
    return {"user": _user_response(user)}
