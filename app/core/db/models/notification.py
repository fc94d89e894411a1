"""
In-app notification model.

Notifications are owned by a user and are soft-deleted when the user
dismisses them, so the history stays available for support and audits.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db.models.base import BaseModel, SoftDeleteMixin
from app.core.enums import NotificationType

if TYPE_CHECKING:
    from app.core.db.models.user import User


class Notification(SoftDeleteMixin, BaseModel):
    __tablename__ = "notifications"

    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, native_enum=False, name="notification_type"),
        default=NotificationType.INFO,
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    body: Mapped[str | None] = mapped_column(Text, nullable=True)

    data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    user: Mapped["User"] = relationship("User", back_populates="notifications")

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, user_id={self.user_id}, "
            f"title={self.title!r}, deleted={self.is_deleted})>"
        )
