"""
Notification dispatcher: email delivery with bounded retries.

The dispatcher sends an ``EmailMessage`` through the configured transport,
retrying transient failures with exponential backoff:

    attempt 1 -> fail -> sleep 1s -> attempt 2 -> fail -> sleep 2s -> attempt 3

Permanent failures (bad credentials, a malformed message, 5xx replies)
stop immediately. When no transport is configured the dispatcher runs in
simulation mode: the message is logged and reported as delivered with
``simulated=True``.

Example:
    >>> dispatcher = NotificationDispatcher(lambda: create_transport(settings))
    >>> result = await dispatcher.send(
    ...     EmailMessage(to="user@example.com", subject="Hi", text="Hello")
    ... )
    >>> result.success, result.simulated
    (True, True)
"""

import asyncio
import email.errors
import socket
from typing import Any, Awaitable, Callable, Protocol

import aiosmtplib
from pydantic import BaseModel, Field

from app.core.config import email_logger
from app.core.enums import ErrorClass
from app.core.exceptions.types import EmailDeliveryException


__all__ = [
    "DeliveryAttempt",
    "DeliveryResult",
    "EmailMessage",
    "NotificationDispatcher",
    "Transport",
    "classify_error",
]


class Transport(Protocol):
    async def send(
        self, to: str, subject: str, text: str, html: str | None = None
    ) -> str: ...


class EmailMessage(BaseModel):
    to: str
    subject: str
    text: str
    html: str | None = None
    template: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class DeliveryAttempt(BaseModel):
    attempt: int
    success: bool
    error: str | None = None
    error_class: ErrorClass | None = None
    delay_before_next: float | None = None


class DeliveryResult(BaseModel):
    success: bool
    simulated: bool = False
    attempts: int = 0
    message_id: str | None = None
    error: str | None = None
    attempt_log: list[DeliveryAttempt] = Field(default_factory=list)


def _classify_code(code: int | None) -> ErrorClass:
    if code is not None and 400 <= code < 500:
        return ErrorClass.RETRYABLE
    if code is not None and 500 <= code < 600:
        return ErrorClass.NON_RETRYABLE
    return ErrorClass.RETRYABLE


def classify_error(error: BaseException) -> ErrorClass:
    """
    Decide whether a delivery error is worth another attempt.

    Unknown errors are treated as retryable.
    """
    if isinstance(error, aiosmtplib.SMTPAuthenticationError):
        return ErrorClass.NON_RETRYABLE

    if isinstance(error, aiosmtplib.SMTPRecipientsRefused):
        codes = [refused.code for refused in error.recipients]
        if codes and all(400 <= code < 500 for code in codes):
            return ErrorClass.RETRYABLE
        return ErrorClass.NON_RETRYABLE

    if isinstance(error, aiosmtplib.SMTPResponseException):
        return _classify_code(error.code)

    if isinstance(
        error,
        (
            aiosmtplib.SMTPNotSupported,
            email.errors.MessageError,
            ValueError,
            TypeError,
        ),
    ):
        return ErrorClass.NON_RETRYABLE

    if isinstance(
        error,
        (
            aiosmtplib.SMTPServerDisconnected,
            aiosmtplib.SMTPConnectError,
            aiosmtplib.SMTPTimeoutError,
            asyncio.TimeoutError,
            TimeoutError,
            ConnectionError,
            socket.gaierror,
            OSError,
        ),
    ):
        return ErrorClass.RETRYABLE

    return ErrorClass.RETRYABLE


class NotificationDispatcher:
    """
    Sends email with retry, or simulates delivery when no transport exists.

    Args:
        transport_factory: Called once, on first send, to obtain the
            transport. Its result (including None) is memoized.
        sleep: Awaitable used between attempts. Defaults to ``asyncio.sleep``.
    """

    MAX_ATTEMPTS = 3
    BASE_DELAY = 1.0
    MULTIPLIER = 2

    def __init__(
        self,
        transport_factory: Callable[[], Transport | None],
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._transport_factory = transport_factory
        self._transport: Transport | None = None
        self._resolved = False
        self._sleep = sleep

    @property
    def transport(self) -> Transport | None:
        if not self._resolved:
            self._transport = self._transport_factory()
            self._resolved = True
        return self._transport

    @property
    def simulated(self) -> bool:
        return self.transport is None

    @classmethod
    def backoff(cls, attempt: int) -> float:
        """Delay in seconds after failed attempt ``attempt`` (1-based)."""
        return cls.BASE_DELAY * (cls.MULTIPLIER ** (attempt - 1))

    async def send(self, message: EmailMessage) -> DeliveryResult:
        """
        Deliver a message.

        Returns:
            DeliveryResult: ``success=True`` with the number of attempts and
                the transport's message id, or ``simulated=True`` when no
                transport is configured.

        Raises:
            EmailDeliveryException: When a non-retryable error occurs or all
                attempts fail. The last transport error is the ``__cause__``.
        """
        transport = self.transport
        if transport is None:
            email_logger.info(
                f"Simulated email to {message.to} (subject: {message.subject!r})"
            )
            return DeliveryResult(success=True, simulated=True, attempts=0)

        attempt_log: list[DeliveryAttempt] = []
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            try:
                message_id = await transport.send(
                    message.to, message.subject, message.text, message.html
                )
            except Exception as exc:
                error_class = classify_error(exc)
                last_attempt = attempt == self.MAX_ATTEMPTS
                retry = error_class == ErrorClass.RETRYABLE and not last_attempt
                wait = self.backoff(attempt) if retry else None
                attempt_log.append(
                    DeliveryAttempt(
                        attempt=attempt,
                        success=False,
                        error=f"{type(exc).__name__}: {exc}",
                        error_class=error_class,
                        delay_before_next=wait,
                    )
                )

                if wait is not None:
                    email_logger.warning(
                        f"Email to {message.to} (subject: {message.subject!r}) failed; "
                        f"attempt {attempt}/{self.MAX_ATTEMPTS}; wait={wait:.1f}s; "
                        f"error={type(exc).__name__}: {exc}"
                    )
                    await self._sleep(wait)
                    continue

                email_logger.error(
                    f"Email to {message.to} (subject: {message.subject!r}) failed "
                    f"after {attempt} attempt(s) ({error_class.value}): "
                    f"{type(exc).__name__}: {exc}"
                )
                raise EmailDeliveryException(
                    attempts=attempt,
                    retryable=error_class == ErrorClass.RETRYABLE,
                    attempt_log=attempt_log,
                ) from exc

            attempt_log.append(DeliveryAttempt(attempt=attempt, success=True))
            email_logger.info(
                f"Email sent to {message.to} (subject: {message.subject!r}) "
                f"on attempt {attempt}; message_id={message_id}"
            )
            return DeliveryResult(
                success=True,
                attempts=attempt,
                message_id=message_id,
                attempt_log=attempt_log,
            )

        # The loop always returns or raises
        raise EmailDeliveryException(attempts=self.MAX_ATTEMPTS, attempt_log=attempt_log)
