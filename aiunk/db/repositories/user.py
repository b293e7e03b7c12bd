"""
User repository for database operations.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from aiunk.core.time import utcnow
from aiunk.db.models import User


def get_user_by_id(db: Session, user_id: str) -> User | None:
    """Get user by ID."""
    return db.get(User, user_id)


def get_user_by_open_id(db: Session, open_id: str) -> User | None:
    """Get user by external login id."""
    stmt = select(User).where(User.open_id == open_id)
    return db.execute(stmt).scalar_one_or_none()


def upsert_user(
    db: Session,
    open_id: str,
    *,
    name: str | None = None,
    email: str | None = None,
    login_method: str | None = None,
    role: str | None = None,
    owner_open_id: str | None = None,
) -> User:
    """
    Create or refresh a user on login.

    Display fields are only overwritten when supplied. When no explicit role
    is given, the configured owner identity is promoted to admin; other
    users keep their current role.

    Args:
        db: Database session.
        open_id: External login id (required).
        name: Display name.
        email: Email address.
        login_method: Identity provider label (e.g. "google").
        role: Explicit role override.
        owner_open_id: Identity that is always promoted to admin.

    Returns:
        The persisted User.
    """
    if not open_id:
        raise ValueError("open_id is required for upsert")

    user = get_user_by_open_id(db, open_id)
    if user is None:
        user = User(open_id=open_id)
        db.add(user)

    if name is not None:
        user.name = name
    if email is not None:
        user.email = email.lower()
    if login_method is not None:
        user.login_method = login_method

    if role is not None:
        user.role = role
    elif owner_open_id and open_id == owner_open_id:
        user.role = "admin"
    elif user.role is None:
        user.role = "user"

    user.last_signed_in = utcnow()
    db.commit()
    db.refresh(user)
    return user
