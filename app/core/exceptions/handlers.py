from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.config import request_logger
from app.core.exceptions.types import (
    AppException,
    DatabaseException,
    EmailDeliveryException,
)


async def general_exception_handler(request: Request, exc: AppException):
    """
    Handles application exceptions that have no dedicated handler.

    Args:
        request: The request object.
        exc (AppException): The exception instance.

    Returns:
        JSONResponse: The error message with the exception's status code.
    """
    request_logger.error(f"AppException on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )


async def database_exception_handler(request: Request, exc: DatabaseException):
    """
    Handles database exceptions without leaking SQL details to the client.

    Args:
        request: The request object.
        exc (DatabaseException): The database exception instance.

    Returns:
        JSONResponse: A generic message with status code 500.
    """
    request_logger.error(f"DatabaseException on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": "A database error occurred."},
    )


async def email_delivery_exception_handler(
    request: Request, exc: EmailDeliveryException
):
    """
    Handles failed deliveries of critical emails (e.g. password reset).

    The client receives an actionable message and a Retry-After hint when
    the last failure was transient; transport details stay in the logs.

    Args:
        request: The request object.
        exc (EmailDeliveryException): The delivery exception instance.

    Returns:
        JSONResponse: Status code 503 with a user-facing message.
    """
    request_logger.error(
        f"EmailDeliveryException on {request.url.path}: {exc} "
        f"(attempts={exc.attempts}, retryable={exc.retryable}, cause={exc.__cause__!r})"
    )
    headers = {"Retry-After": "60"} if exc.retryable else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the handlers above, most specific first."""
    app.add_exception_handler(EmailDeliveryException, email_delivery_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DatabaseException, database_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(AppException, general_exception_handler)  # type: ignore[arg-type]


exception_schema = {
    status.HTTP_500_INTERNAL_SERVER_ERROR: {
        "description": "Internal Server Error",
        "content": {
            "application/json": {
                "example": {"detail": "A database error occurred."},
            }
        },
    },
    status.HTTP_503_SERVICE_UNAVAILABLE: {
        "description": "Email Delivery Failed",
        "content": {
            "application/json": {
                "example": {
                    "detail": "The email could not be sent. Please try again later."
                },
            }
        },
    },
}


__all__ = [
    "general_exception_handler",
    "database_exception_handler",
    "email_delivery_exception_handler",
    "register_exception_handlers",
    "exception_schema",
]
