from app.core.db.models.base import BaseModel, SoftDeleteMixin
from app.core.db.models.notification import Notification
from app.core.db.models.refresh_token import RefreshToken
from app.core.db.models.user import User

__all__ = [
    "BaseModel",
    "Notification",
    "RefreshToken",
    "SoftDeleteMixin",
    "User",
]
