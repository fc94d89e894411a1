"""
SMTP transport built on aiosmtplib.

Each ``send`` opens its own connection, so a retry never reuses a socket
left broken by the previous attempt.
"""

from email.message import EmailMessage as MIMEMessage
from email.utils import make_msgid

import aiosmtplib

from app.core.config import Settings, email_logger

IMPLICIT_TLS_PORT = 465


class SMTPTransport:
    """
    Delivers messages to a single SMTP relay.

    Args:
        host (str): SMTP server hostname.
        port (int): SMTP server port.
        username (str): Login user.
        password (str): Login password.
        sender (str): ``From`` address.
        secure (bool): Force implicit TLS. Port 465 always uses it.
        ignore_tls (bool): Do not upgrade plain connections with STARTTLS.
        timeout (float): Connect and per-command timeout in seconds.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str,
        secure: bool = False,
        ignore_tls: bool = False,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_tls = secure or port == IMPLICIT_TLS_PORT
        self.start_tls = False if (self.use_tls or ignore_tls) else None
        self.timeout = timeout

    def build_message(
        self, to: str, subject: str, text: str, html: str | None = None
    ) -> MIMEMessage:
        message = MIMEMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain=self.sender.rpartition("@")[2] or None)
        message.set_content(text)
        if html:
            message.add_alternative(html, subtype="html")
        return message

    async def send(
        self, to: str, subject: str, text: str, html: str | None = None
    ) -> str:
        """
        Send one message.

        Returns:
            str: The Message-ID assigned to the message.

        Raises:
            aiosmtplib.SMTPException: On any SMTP-level failure.
            OSError: On network failures.
        """
        message = self.build_message(to, subject, text, html)
        await aiosmtplib.send(
            message,
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            use_tls=self.use_tls,
            start_tls=self.start_tls,
            timeout=self.timeout,
        )
        return message["Message-ID"]


def create_transport(settings: Settings) -> SMTPTransport | None:
    """
    Build the SMTP transport from settings.

    Returns None when email should be simulated: host or port missing
    (normal for local development), or credentials missing (a
    misconfiguration, logged as an error).
    """
    if not settings.smtp_configured:
        email_logger.warning(
            "SMTP_HOST/SMTP_PORT not set; emails will be simulated and not delivered"
        )
        return None

    if not (settings.SMTP_USER and settings.SMTP_PASSWORD):
        email_logger.error(
            f"SMTP server {settings.SMTP_HOST}:{settings.SMTP_PORT} is configured "
            "without SMTP_USER/SMTP_PASSWORD; falling back to simulated delivery"
        )
        return None

    transport = SMTPTransport(
        host=settings.SMTP_HOST,  # type: ignore[arg-type]
        port=settings.SMTP_PORT,  # type: ignore[arg-type]
        username=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        sender=settings.EMAIL_FROM,
        secure=settings.SMTP_SECURE,
        ignore_tls=settings.SMTP_IGNORE_TLS,
        timeout=settings.SMTP_TIMEOUT_SECONDS,
    )
    email_logger.info(
        f"SMTP transport ready: {transport.host}:{transport.port} "
        f"(implicit TLS: {transport.use_tls})"
    )
    return transport
