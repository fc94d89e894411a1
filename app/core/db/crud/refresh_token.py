"""
CRUD operations for RefreshToken model.

- Creating new tokens
- Purging expired and aged-out tokens (hard delete)
- Aggregate statistics for monitoring
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.crud.base import BaseDB
from app.core.db.models.refresh_token import RefreshToken


class RefreshTokenDB(BaseDB[RefreshToken]):
    """
    Database operations for RefreshToken model.

    Refresh tokens are not soft-deletable: expired and old tokens are
    removed physically by the cleanup jobs.

    Example:
        >>> db = RefreshTokenDB()
        >>> token = await db.create(session, data={...})
        >>> deleted = await db.delete_expired(session, commit_self=False)
    """

    def __init__(self):
        super().__init__(model=RefreshToken)

    async def delete_expired(
        self,
        session: AsyncSession,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> int:
        """
        Physically delete every token whose ``expires_at`` is in the past.

        Args:
            session: The database session.
            now: Reference time. Defaults to the current UTC time.
            commit_self: Whether to commit the transaction.

        Returns:
            The number of tokens deleted.
        """
        now = now or datetime.now(timezone.utc)
        return await self.delete_by_conditions(
            session,
            [self.model.expires_at < now],
            commit_self=commit_self,
        )

    async def delete_older_than(
        self,
        session: AsyncSession,
        days: int,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> int:
        """
        Physically delete tokens created more than ``days`` days ago,
        whether or not they have expired.

        Returns:
            The number of tokens deleted.
        """
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
        return await self.delete_by_conditions(
            session,
            [self.model.created_at < cutoff],
            commit_self=commit_self,
        )

    async def get_stats(
        self,
        session: AsyncSession,
        old_after_days: int,
        now: datetime | None = None,
    ) -> dict[str, int]:
        """
        Count tokens by lifecycle state in a single query.

        Returns:
            dict with ``total``, ``expired``, ``active`` and ``old`` counts.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=old_after_days)

        stmt = select(
            func.count(self.model.id),
            func.count(case((self.model.expires_at < now, 1))),
            func.count(case((self.model.expires_at >= now, 1))),
            func.count(case((self.model.created_at < cutoff, 1))),
        )
        total, expired, active, old = (await session.execute(stmt)).one()

        return {
            "total": int(total),
            "expired": int(expired),
            "active": int(active),
            "old": int(old),
        }
