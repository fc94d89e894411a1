"""
Email Manager Service for transactional emails.

This module provides the email flows of the platform: password reset
(critical, failures propagate), welcome (best effort, failures are
reported in the result) and a generic send used by the CLI and other
services. Delivery goes through the ``NotificationDispatcher``; HTML is
built by the ``TemplateRenderer``.

Example usage:
    manager = EmailManagerService(dispatcher, renderer, settings)

    await manager.send_password_reset_email(
        to="doctor@example.com",
        token="abc123",
        name="Dr. Ada",
    )

    await manager.send_welcome_email(
        to="hospital@example.com",
        name="City Hospital",
        user_type=UserRole.HOSPITAL,
    )
"""

from datetime import datetime
from typing import Any
from urllib.parse import quote

from app.core.config import Settings, email_logger
from app.core.enums import ResetSource, UserRole
from app.core.services.dispatcher import (
    DeliveryResult,
    EmailMessage,
    NotificationDispatcher,
)
from app.core.services.template import TemplateRenderer


__all__ = ["EmailManagerService"]

TOKEN_PLACEHOLDER = "{token}"


class EmailManagerService:
    """
    Centralized email flows.

    Args:
        dispatcher: Delivers messages (or simulates delivery).
        renderer: Composes HTML from the email templates.
        settings: Application settings (URLs, expiry, app name).
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        renderer: TemplateRenderer,
        settings: Settings,
    ):
        self.dispatcher = dispatcher
        self.renderer = renderer
        self.settings = settings

    def build_reset_link(
        self, token: str, source: ResetSource | str = ResetSource.WEB
    ) -> str:
        """
        Build the link a user follows to choose a new password.

        Mobile requests get the app deep link. Web requests use
        ``FRONTEND_RESET_PASSWORD_URL``: a ``{token}`` placeholder is
        replaced, otherwise ``token=`` is appended as a query parameter.
        Without that setting the link points to ``<APP_WEB_URL>/reset-password``.
        """
        encoded = quote(token, safe="")
        if ResetSource(source) == ResetSource.MOBILE:
            return f"{self.settings.MOBILE_RESET_PASSWORD_URL}?token={encoded}"

        base = (
            self.settings.FRONTEND_RESET_PASSWORD_URL
            or f"{self.settings.APP_WEB_URL.rstrip('/')}/reset-password"
        )
        if TOKEN_PLACEHOLDER in base:
            return base.replace(TOKEN_PLACEHOLDER, encoded)
        separator = "&" if "?" in base else "?"
        return f"{base}{separator}token={encoded}"

    async def send_email(
        self,
        to: str,
        subject: str,
        text: str,
        html: str | None = None,
        template: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> DeliveryResult:
        """
        Send an email, optionally rendering its HTML from a template.

        When ``template`` is given it takes precedence over ``html``; the
        subject is added to the template data.

        Raises:
            EmailDeliveryException: If delivery fails.
        """
        if template:
            html = self.renderer.compose(template, {**(data or {}), "subject": subject})

        try:
            return await self.dispatcher.send(
                EmailMessage(
                    to=to,
                    subject=subject,
                    text=text,
                    html=html,
                    template=template,
                    data=data or {},
                )
            )
        except Exception as e:
            email_logger.error(f"Failed to send email to {to} ({subject!r}): {e}")
            raise

    async def send_password_reset_email(
        self,
        to: str,
        token: str,
        name: str | None = None,
        expires_at: datetime | None = None,
        source: ResetSource | str = ResetSource.WEB,
    ) -> DeliveryResult:
        """
        Send the password reset link.

        Raises:
            EmailDeliveryException: If delivery fails. The caller must tell
                the user, since the reset cannot proceed without the email.
        """
        reset_link = self.build_reset_link(token, source)
        expires_in = self.settings.PASSWORD_RESET_EXPIRY_MINUTES
        app_name = self.settings.APP_NAME
        subject = f"{app_name} | Password Reset Request"

        text = "\n".join(
            [
                f"Hello{' ' + name if name else ''},",
                "",
                "Use the link below to reset your password:",
                reset_link,
                "",
                f"This link is valid for {expires_in} minutes.",
                "",
                "If you did not request a password reset, you can ignore this email.",
                "",
                f"The {app_name} Support Team",
            ]
        )
        html = self.renderer.compose(
            "password_reset",
            {
                "name": name,
                "reset_link": reset_link,
                "expires_in_minutes": expires_in,
                "is_mobile": ResetSource(source) == ResetSource.MOBILE,
                "app_name": app_name,
                "subject": subject,
            },
        )

        try:
            result = await self.dispatcher.send(
                EmailMessage(
                    to=to,
                    subject=subject,
                    text=text,
                    html=html,
                    template="password_reset",
                )
            )
        except Exception as e:
            email_logger.error(f"Failed to send password reset email to {to}: {e}")
            raise

        email_logger.info(
            f"Password reset email sent to {to} (simulated={result.simulated}, "
            f"attempts={result.attempts}, "
            f"expires_at={expires_at.isoformat() if expires_at else None})"
        )
        return result

    async def send_welcome_email(
        self,
        to: str,
        name: str | None,
        user_type: UserRole | str,
    ) -> DeliveryResult:
        """
        Send the welcome email after registration.

        Failures never reach the caller; they are logged and returned as
        ``DeliveryResult(success=False, error=...)`` so registration goes on.
        """
        try:
            role = UserRole(user_type)
        except ValueError as e:
            email_logger.error(f"Welcome email to {to} skipped: {e}")
            return DeliveryResult(success=False, error=str(e))

        app_name = self.settings.APP_NAME
        login_url = f"{self.settings.APP_WEB_URL.rstrip('/')}/login"
        subject = f"Welcome to {app_name}!"

        if role == UserRole.HOSPITAL:
            next_steps = (
                "Your account is pending administrator approval. Once approved "
                "you can publish job postings and review applications."
            )
        else:
            next_steps = (
                "Complete your profile so hospitals can find you, then start "
                "applying to job postings."
            )

        text = "\n".join(
            [
                f"Hello{' ' + name if name else ''},",
                "",
                f"Welcome to {app_name}!",
                "",
                next_steps,
                "",
                f"Sign in: {login_url}",
                "",
                f"The {app_name} Team",
            ]
        )
        html = self.renderer.compose(
            "welcome",
            {
                "name": name,
                "is_doctor": role == UserRole.DOCTOR,
                "is_hospital": role == UserRole.HOSPITAL,
                "login_url": login_url,
                "app_name": app_name,
                "subject": subject,
            },
        )

        try:
            result = await self.dispatcher.send(
                EmailMessage(
                    to=to, subject=subject, text=text, html=html, template="welcome"
                )
            )
        except Exception as e:
            email_logger.error(f"Failed to send welcome email to {to}: {e}")
            return DeliveryResult(success=False, error=str(e))

        email_logger.info(
            f"Welcome email sent to {to} ({role.value}, simulated={result.simulated})"
        )
        return result

    def clear_template_cache(self) -> None:
        self.renderer.store.clear_cache()
