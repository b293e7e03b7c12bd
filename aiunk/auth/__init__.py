"""Authentication: identity-bridge sessions and route guards."""

from aiunk.auth.dependencies import (
    CurrentUser,
    RequireAdmin,
    RequireAuth,
    get_current_user,
    require_admin,
    require_auth,
)
from aiunk.auth.session import (
    SessionData,
    cleanup_expired_sessions,
    create_session,
    delete_session,
    validate_session,
)

__all__ = [
    "CurrentUser",
    "RequireAdmin",
    "RequireAuth",
    "SessionData",
    "cleanup_expired_sessions",
    "create_session",
    "delete_session",
    "get_current_user",
    "require_admin",
    "require_auth",
    "validate_session",
]
