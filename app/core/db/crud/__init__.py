from app.core.db.crud.base import BaseDB
from app.core.db.crud.notification import NotificationDB
from app.core.db.crud.refresh_token import RefreshTokenDB
from app.core.db.crud.user import UserDB

# Global CRUD instances - use these instead of creating new instances
user_db = UserDB()
notification_db = NotificationDB()
refresh_token_db = RefreshTokenDB()

__all__ = [
    # Classes (for type hints and subclassing)
    "BaseDB",
    "NotificationDB",
    "RefreshTokenDB",
    "UserDB",
    # Global instances (for actual usage)
    "notification_db",
    "refresh_token_db",
    "user_db",
]
