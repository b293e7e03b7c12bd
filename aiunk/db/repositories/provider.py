"""Repository helpers for admin-managed provider settings."""

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from aiunk.core.time import utcnow
from aiunk.db.models import ProviderSetting


def list_provider_settings(db: Session) -> list[ProviderSetting]:
    """Return every configured provider."""
    stmt = select(ProviderSetting).order_by(ProviderSetting.provider_id.asc())
    return list(db.execute(stmt).scalars().all())


def get_provider_setting(db: Session, provider_id: str) -> ProviderSetting | None:
    """Fetch a provider by its logical id (e.g. "openai")."""
    stmt = select(ProviderSetting).where(ProviderSetting.provider_id == provider_id)
    return db.execute(stmt).scalar_one_or_none()


def get_active_provider_setting(db: Session) -> ProviderSetting | None:
    """Return the single active provider, if one is configured."""
    stmt = (
        select(ProviderSetting)
        .where(ProviderSetting.is_active.is_(True))
        .order_by(ProviderSetting.updated_at.desc())
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def upsert_provider_setting(
    db: Session,
    provider_id: str,
    model: str,
    api_key: str,
    is_active: bool,
) -> ProviderSetting:
    """
    Insert or update a provider keyed by ``provider_id``.

    Activating a provider deactivates every other row in the same
    transaction, so at most one row is active after commit.
    """
    if is_active:
        db.execute(
            update(ProviderSetting)
            .where(ProviderSetting.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )

    setting = get_provider_setting(db, provider_id)
    if setting is None:
        setting = ProviderSetting(provider_id=provider_id, usage_count=0)
        db.add(setting)

    setting.model = model
    setting.api_key = api_key
    setting.is_active = is_active

    db.commit()
    db.refresh(setting)
    return setting


def increment_provider_usage(db: Session, provider_id: str) -> ProviderSetting | None:
    """Count one served turn; no-op when the provider does not exist."""
    setting = get_provider_setting(db, provider_id)
    if setting is None:
        return None
    setting.usage_count = (setting.usage_count or 0) + 1
    setting.last_used = utcnow()
    db.commit()
    db.refresh(setting)
    return setting
