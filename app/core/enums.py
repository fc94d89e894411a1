from enum import Enum


class UserRole(str, Enum):
    """Account type of a user."""

    DOCTOR = "doctor"
    HOSPITAL = "hospital"
    ADMIN = "admin"


class NotificationType(str, Enum):
    """Severity shown with an in-app notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ResetSource(str, Enum):
    """Client that requested a password reset; decides the link format."""

    WEB = "web"
    MOBILE = "mobile"


class ErrorClass(str, Enum):
    """Classification of an email delivery failure."""

    RETRYABLE = "retryable"
    NON_RETRYABLE = "non_retryable"
