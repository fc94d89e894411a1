from fastapi import status


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
        self.details = details
        super().__init__(message)


class DatabaseException(AppException):
    """Exception raised for database-related errors."""

    def __init__(self, message: str = "A database error occurred."):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class EmailDeliveryException(AppException):
    """
    Raised when an email could not be delivered.

    Carries how many attempts were made, whether the last error was
    considered transient, and the per-attempt log collected by the
    dispatcher. The transport error is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str = "The email could not be sent. Please try again later.",
        attempts: int = 0,
        retryable: bool = False,
        attempt_log: list | None = None,
    ):
        super().__init__(
            message,
            status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"attempts": attempts, "retryable": retryable},
        )
        self.attempts = attempts
        self.retryable = retryable
        self.attempt_log = attempt_log or []
