from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db.crud.base import BaseDB
from app.core.db.models import User


class UserDB(BaseDB[User]):
    def __init__(self):
        super().__init__(model=User)

    async def get_by_email(
        self, session: AsyncSession, email: str, include_deleted: bool = False
    ) -> User | None:
        return await self.get_one_by_filters(
            session, {"email": email.lower()}, include_deleted=include_deleted
        )

    async def soft_delete_user(self, session: AsyncSession, user_id: UUID) -> bool:
        """
        Mark a user account as deleted.

        The account disappears from every default read path but stays in
        the table; notifications and tokens are left as they are.

        Returns:
            bool: True if an active user was deleted, False otherwise.
        """
        return await self.soft_delete(session, user_id) > 0
