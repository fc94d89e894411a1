"""
Refresh token model for persistent sessions.

Refresh tokens are security artifacts, not user-facing records: once they
expire or age out they are removed physically by the cleanup scheduler
instead of being soft-deleted.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db.models.base import BaseModel

if TYPE_CHECKING:
    from app.core.db.models.user import User


class RefreshToken(BaseModel):
    """
    Model for storing refresh tokens.

    Attributes:
        user_id: Foreign key to the user who owns this token.
        token_hash: SHA256 hash of the refresh token (plain tokens are never stored).
        expires_at: When this token expires.
        user: Relationship to the User model.

    Example:
        >>> token = RefreshToken(
        ...     user_id=user.id,
        ...     token_hash=sha256_hash(refresh_token),
        ...     expires_at=datetime.now(timezone.utc) + timedelta(days=7),
        ... )
    """

    __tablename__ = "refresh_tokens"

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    token_hash: Mapped[str] = mapped_column(
        String(64),  # SHA256 produces 64 hex characters
        unique=True,
        index=True,
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="refresh_tokens",
    )

    def __repr__(self) -> str:
        return (
            f"<RefreshToken(id={self.id}, user_id={self.user_id}, "
            f"expires_at={self.expires_at})>"
        )
