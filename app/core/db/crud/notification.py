from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.crud.base import BaseDB
from app.core.db.models import Notification


class NotificationDB(BaseDB[Notification]):
    """
    Database operations for in-app notifications.

    Every delete is scoped to the owning user, so a user can never
    dismiss someone else's notification even with a guessed id.
    """

    def __init__(self):
        super().__init__(model=Notification)

    async def get_for_user(
        self,
        session: AsyncSession,
        user_id: UUID,
        limit: int | None = None,
        include_deleted: bool = False,
    ) -> Sequence[Notification]:
        """Visible notifications of a user, newest first."""
        return await self.get_all(
            session,
            filters=[self.model.user_id == user_id],
            order_by=[self.model.created_at.desc()],
            limit=limit,
            include_deleted=include_deleted,
        )

    async def soft_delete_for_user(
        self, session: AsyncSession, notification_id: UUID, user_id: UUID
    ) -> bool:
        """Returns True if the notification was active and owned by the user."""
        return await self.soft_delete(session, notification_id, user_id=user_id) > 0

    async def batch_soft_delete_for_user(
        self,
        session: AsyncSession,
        notification_ids: Iterable[UUID] | None,
        user_id: UUID,
    ) -> int:
        """
        Soft-delete the user's notifications among ``notification_ids``.

        Ids belonging to other users and already-deleted ones are skipped
        silently; the return value is the number actually marked.
        """
        return await self.batch_soft_delete(
            session, notification_ids, user_id=user_id
        )
