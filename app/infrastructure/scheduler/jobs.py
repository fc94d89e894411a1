from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import scheduler_logger, settings
from app.core.db import AsyncSessionLocal
from app.core.db.crud import refresh_token_db


async def purge_expired_tokens(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> dict[str, int]:
    """
    Periodic task to permanently delete refresh tokens that have expired.

    Args:
        session_factory: Session factory to use. Defaults to ``AsyncSessionLocal``.

    Returns:
        dict: ``{"deleted": n, "errors": 0}``, or ``{"deleted": 0, "errors": 1}``
            if the purge failed. Errors are logged, never raised.
    """
    session_factory = session_factory or AsyncSessionLocal
    now = datetime.now(timezone.utc)
    try:
        async with session_factory.begin() as session:
            scheduler_logger.info(f"Starting purge of expired refresh tokens (now: {now})")
            deleted_count = await refresh_token_db.delete_expired(
                session, now=now, commit_self=False
            )
        scheduler_logger.info(
            f"Completed purge of expired refresh tokens. Deleted {deleted_count} record(s)."
        )
        return {"deleted": deleted_count, "errors": 0}
    except Exception as e:
        scheduler_logger.error(f"Purge of expired refresh tokens failed: {e}")
        return {"deleted": 0, "errors": 1}


async def purge_old_tokens(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    days_threshold: int | None = None,
) -> dict[str, int]:
    """
    Periodic task to permanently delete refresh tokens created more than
    ``days_threshold`` days ago, expired or not.

    Args:
        session_factory: Session factory to use. Defaults to ``AsyncSessionLocal``.
        days_threshold: Age limit in days. Defaults to ``TOKEN_RETENTION_DAYS``.
    """
    session_factory = session_factory or AsyncSessionLocal
    if days_threshold is None:
        days_threshold = settings.TOKEN_RETENTION_DAYS
    try:
        async with session_factory.begin() as session:
            scheduler_logger.info(
                f"Starting purge of refresh tokens older than {days_threshold} days"
            )
            deleted_count = await refresh_token_db.delete_older_than(
                session, days=days_threshold, commit_self=False
            )
        scheduler_logger.info(
            f"Completed purge of old refresh tokens. Deleted {deleted_count} record(s)."
        )
        return {"deleted": deleted_count, "errors": 0}
    except Exception as e:
        scheduler_logger.error(f"Purge of old refresh tokens failed: {e}")
        return {"deleted": 0, "errors": 1}


async def log_token_stats(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    old_after_days: int | None = None,
) -> dict[str, int]:
    """Periodic read-only task logging refresh token counts."""
    session_factory = session_factory or AsyncSessionLocal
    if old_after_days is None:
        old_after_days = settings.TOKEN_RETENTION_DAYS
    try:
        async with session_factory() as session:
            stats = await refresh_token_db.get_stats(
                session, old_after_days=old_after_days
            )
        scheduler_logger.info(
            f"Refresh token stats: total={stats['total']}, expired={stats['expired']}, "
            f"active={stats['active']}, old={stats['old']}"
        )
        return stats
    except Exception as e:
        scheduler_logger.error(f"Collecting refresh token stats failed: {e}")
        return {"total": 0, "expired": 0, "active": 0, "old": 0}
