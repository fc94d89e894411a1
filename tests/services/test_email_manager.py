"""
Test suite for EmailManagerService.

- Reset link building (web placeholder, query parameter, mobile deep link)
- Password reset email: content and failure propagation
- Welcome email: role flags and swallowed failures
- Generic send with and without templates

Run tests:
    pytest tests/services/test_email_manager.py -v

Run with coverage:
    pytest tests/services/test_email_manager.py --cov=app.core.services.email_manager --cov-report=term-missing -v
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.config import settings
from app.core.enums import ResetSource, UserRole
from app.core.exceptions.types import EmailDeliveryException
from app.core.services.dispatcher import DeliveryResult, EmailMessage
from app.core.services.email_manager import EmailManagerService
from app.core.services.template import TemplateRenderer, TemplateStore


@pytest.fixture
def test_settings():
    return settings.model_copy(
        update={
            "APP_NAME": "MedJobs",
            "APP_WEB_URL": "https://medjobs.test",
            "FRONTEND_RESET_PASSWORD_URL": None,
            "MOBILE_RESET_PASSWORD_URL": "medjobs://reset-password",
            "PASSWORD_RESET_EXPIRY_MINUTES": 45,
        }
    )


@pytest.fixture
def dispatcher():
    dispatcher = MagicMock()
    dispatcher.send = AsyncMock(
        return_value=DeliveryResult(success=True, simulated=True, attempts=0)
    )
    return dispatcher


@pytest.fixture
def renderer(test_settings):
    return TemplateRenderer(
        TemplateStore(test_settings.EMAIL_TEMPLATE_DIR),
        website_url=test_settings.APP_WEB_URL,
    )


@pytest.fixture
def manager(dispatcher, renderer, test_settings):
    return EmailManagerService(dispatcher, renderer, test_settings)


def _sent(dispatcher) -> EmailMessage:
    return dispatcher.send.await_args.args[0]


class TestBuildResetLink:

    def test_default_web_link(self, manager):
        assert manager.build_reset_link("abc123") == "https://medjobs.test/reset-password?token=abc123"

    def test_placeholder_is_replaced(self, manager, test_settings):
        manager.settings = test_settings.model_copy(
            update={"FRONTEND_RESET_PASSWORD_URL": "https://app.test/reset/{token}/confirm"}
        )

        assert manager.build_reset_link("abc123") == "https://app.test/reset/abc123/confirm"

    def test_existing_query_string_uses_ampersand(self, manager, test_settings):
        manager.settings = test_settings.model_copy(
            update={"FRONTEND_RESET_PASSWORD_URL": "https://app.test/reset?lang=en"}
        )

        assert manager.build_reset_link("abc123") == "https://app.test/reset?lang=en&token=abc123"

    def test_mobile_deep_link(self, manager):
        assert (
            manager.build_reset_link("abc123", ResetSource.MOBILE)
            == "medjobs://reset-password?token=abc123"
        )

    def test_source_accepts_plain_string(self, manager):
        assert manager.build_reset_link("abc123", "mobile").startswith("medjobs://")

    def test_token_is_url_encoded(self, manager):
        assert manager.build_reset_link("a b/c").endswith("token=a%20b%2Fc")


class TestSendPasswordResetEmail:

    async def test_sends_text_and_html(self, manager, dispatcher):
        result = await manager.send_password_reset_email(
            to="doctor@example.com", token="abc123", name="Ada"
        )

        assert result.success is True
        message = _sent(dispatcher)
        assert message.to == "doctor@example.com"
        assert message.subject == "MedJobs | Password Reset Request"
        assert message.text.startswith("Hello Ada,")
        assert "https://medjobs.test/reset-password?token=abc123" in message.text
        assert "valid for 45 minutes" in message.text
        assert "https://medjobs.test/reset-password?token=abc123" in message.html
        assert "copy this address" in message.html

    async def test_mobile_source_uses_deep_link(self, manager, dispatcher):
        await manager.send_password_reset_email(
            to="doctor@example.com", token="abc123", source="mobile"
        )

        message = _sent(dispatcher)
        assert "medjobs://reset-password?token=abc123" in message.text
        assert "copy this address" not in message.html
        assert message.text.startswith("Hello,")

    async def test_failure_propagates(self, manager, dispatcher):
        dispatcher.send.side_effect = EmailDeliveryException(attempts=3, retryable=True)

        with pytest.raises(EmailDeliveryException):
            await manager.send_password_reset_email(to="doctor@example.com", token="abc123")


class TestSendWelcomeEmail:

    async def test_doctor_flags(self, manager, dispatcher):
        await manager.send_welcome_email("doctor@example.com", "Ada", UserRole.DOCTOR)

        message = _sent(dispatcher)
        assert "doctor account is ready" in message.html
        assert "pending administrator approval" not in message.html
        assert "https://medjobs.test/login" in message.html
        assert "https://medjobs.test/login" in message.text

    async def test_hospital_flags(self, manager, dispatcher):
        await manager.send_welcome_email("hr@hospital.test", "City Hospital", "hospital")

        message = _sent(dispatcher)
        assert "pending administrator approval" in message.html
        assert "doctor account is ready" not in message.html

    async def test_failure_is_returned_not_raised(self, manager, dispatcher):
        dispatcher.send.side_effect = EmailDeliveryException(attempts=1)

        result = await manager.send_welcome_email("doctor@example.com", "Ada", UserRole.DOCTOR)

        assert result.success is False
        assert result.error == "The email could not be sent. Please try again later."

    async def test_unknown_role_is_returned_not_raised(self, manager, dispatcher):
        result = await manager.send_welcome_email("nurse@example.com", "Bo", "nurse")

        assert result.success is False
        assert "nurse" in result.error
        dispatcher.send.assert_not_called()


class TestSendEmail:

    async def test_template_renders_html_with_subject(self, manager, dispatcher):
        await manager.send_email(
            to="a@example.com",
            subject="Application received",
            text="plain",
            template="notification",
            data={"title": "New application", "message": "Dr. Ada applied."},
        )

        message = _sent(dispatcher)
        assert "<title>Application received</title>" in message.html
        assert "Dr. Ada applied." in message.html
        assert message.template == "notification"

    async def test_raw_html_without_template(self, manager, dispatcher):
        await manager.send_email(to="a@example.com", subject="S", text="t", html="<b>x</b>")

        assert _sent(dispatcher).html == "<b>x</b>"

    async def test_failure_propagates(self, manager, dispatcher):
        dispatcher.send.side_effect = EmailDeliveryException(attempts=1)

        with pytest.raises(EmailDeliveryException):
            await manager.send_email(to="a@example.com", subject="S", text="t")

    def test_clear_template_cache(self, manager, renderer):
        renderer.store.load("welcome")
        assert renderer.store._cache

        manager.clear_template_cache()

        assert renderer.store._cache == {}
