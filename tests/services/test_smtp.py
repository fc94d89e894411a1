"""
Test suite for the SMTP transport.

- create_transport: simulation fallbacks and TLS selection
- SMTPTransport.send: message building and aiosmtplib call

Run tests:
    pytest tests/services/test_smtp.py -v

Run with coverage:
    pytest tests/services/test_smtp.py --cov=app.core.services.smtp --cov-report=term-missing -v
"""

from unittest.mock import AsyncMock, patch

import pytest

from app.core.config import Settings
from app.core.services.smtp import SMTPTransport, create_transport


def _settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "SMTP_HOST": "smtp.example.com",
        "SMTP_PORT": 587,
        "SMTP_USER": "mailer",
        "SMTP_PASSWORD": "secret",
        "EMAIL_FROM": "no-reply@medjobs.test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestCreateTransport:

    @pytest.mark.parametrize(
        "overrides", [{"SMTP_HOST": None}, {"SMTP_PORT": None}, {"SMTP_HOST": None, "SMTP_PORT": None}]
    )
    def test_missing_host_or_port_returns_none(self, overrides):
        with patch("app.core.services.smtp.email_logger") as mock_logger:
            assert create_transport(_settings(**overrides)) is None

            mock_logger.warning.assert_called_once()

    @pytest.mark.parametrize("overrides", [{"SMTP_USER": None}, {"SMTP_PASSWORD": None}])
    def test_missing_credentials_returns_none_and_logs_error(self, overrides):
        with patch("app.core.services.smtp.email_logger") as mock_logger:
            assert create_transport(_settings(**overrides)) is None

            mock_logger.error.assert_called_once()

    def test_starttls_on_submission_port(self):
        transport = create_transport(_settings())

        assert isinstance(transport, SMTPTransport)
        assert transport.use_tls is False
        assert transport.start_tls is None

    def test_implicit_tls_on_port_465(self):
        transport = create_transport(_settings(SMTP_PORT=465))

        assert transport.use_tls is True
        assert transport.start_tls is False

    def test_secure_flag_forces_implicit_tls(self):
        transport = create_transport(_settings(SMTP_PORT=2525, SMTP_SECURE=True))

        assert transport.use_tls is True

    def test_ignore_tls_disables_starttls(self):
        transport = create_transport(_settings(SMTP_PORT=25, SMTP_IGNORE_TLS=True))

        assert transport.use_tls is False
        assert transport.start_tls is False


class TestSMTPTransportSend:

    @pytest.fixture
    def transport(self):
        return SMTPTransport(
            host="smtp.example.com",
            port=587,
            username="mailer",
            password="secret",
            sender="no-reply@medjobs.test",
            timeout=10,
        )

    def test_build_message_with_html_alternative(self, transport):
        message = transport.build_message("a@example.com", "Subject", "plain", "<p>html</p>")

        assert message["To"] == "a@example.com"
        assert message["From"] == "no-reply@medjobs.test"
        assert message["Subject"] == "Subject"
        assert message["Message-ID"].endswith("@medjobs.test>")
        assert message.is_multipart()

    def test_build_message_text_only(self, transport):
        message = transport.build_message("a@example.com", "Subject", "plain")

        assert not message.is_multipart()
        assert message.get_content().strip() == "plain"

    async def test_send_calls_aiosmtplib_and_returns_message_id(self, transport):
        with patch("app.core.services.smtp.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            message_id = await transport.send("a@example.com", "Subject", "plain")

            mock_send.assert_awaited_once()
            sent_message = mock_send.call_args.args[0]
            kwargs = mock_send.call_args.kwargs
            assert message_id == sent_message["Message-ID"]
            assert kwargs["hostname"] == "smtp.example.com"
            assert kwargs["port"] == 587
            assert kwargs["username"] == "mailer"
            assert kwargs["password"] == "secret"
            assert kwargs["timeout"] == 10

    async def test_send_propagates_errors(self, transport):
        with patch(
            "app.core.services.smtp.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=ConnectionRefusedError("refused"),
        ):
            with pytest.raises(ConnectionRefusedError):
                await transport.send("a@example.com", "Subject", "plain")
