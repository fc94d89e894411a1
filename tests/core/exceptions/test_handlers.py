"""
Test suite for exception types and FastAPI exception handlers.

Run tests:
    pytest tests/core/exceptions/test_handlers.py -v
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI

from app.core.exceptions.handlers import (
    database_exception_handler,
    email_delivery_exception_handler,
    general_exception_handler,
    register_exception_handlers,
)
from app.core.exceptions.types import (
    AppException,
    DatabaseException,
    EmailDeliveryException,
)


@pytest.fixture
def mock_request():
    request = MagicMock()
    request.url.path = "/test"
    return request


def _body(response) -> dict:
    return json.loads(response.body)


class TestExceptionTypes:

    def test_app_exception_defaults_to_500(self):
        exc = AppException("boom")

        assert exc.status_code == 500
        assert exc.message == "boom"
        assert str(exc) == "boom"

    def test_status_codes(self):
        assert DatabaseException().status_code == 500
        assert EmailDeliveryException().status_code == 503

    def test_email_delivery_exception_details(self):
        exc = EmailDeliveryException(attempts=3, retryable=True)

        assert exc.details == {"attempts": 3, "retryable": True}
        assert exc.attempt_log == []
        assert isinstance(exc, AppException)


class TestHandlers:

    async def test_general_handler(self, mock_request):
        with patch("app.core.exceptions.handlers.request_logger"):
            response = await general_exception_handler(mock_request, AppException("nope", 418))

        assert response.status_code == 418
        assert _body(response) == {"detail": "nope"}

    async def test_database_handler_hides_details(self, mock_request):
        with patch("app.core.exceptions.handlers.request_logger") as mock_logger:
            response = await database_exception_handler(
                mock_request, DatabaseException("SELECT * FROM secret failed")
            )

            mock_logger.error.assert_called_once()

        assert response.status_code == 500
        assert _body(response) == {"detail": "A database error occurred."}

    async def test_email_delivery_retryable_sets_retry_after(self, mock_request):
        with patch("app.core.exceptions.handlers.request_logger"):
            response = await email_delivery_exception_handler(
                mock_request, EmailDeliveryException(attempts=3, retryable=True)
            )

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "60"
        assert _body(response) == {
            "detail": "The email could not be sent. Please try again later."
        }

    async def test_email_delivery_permanent_has_no_retry_after(self, mock_request):
        with patch("app.core.exceptions.handlers.request_logger"):
            response = await email_delivery_exception_handler(
                mock_request, EmailDeliveryException(attempts=1, retryable=False)
            )

        assert "Retry-After" not in response.headers

    def test_register_exception_handlers(self):
        app = FastAPI()

        register_exception_handlers(app)

        for exc_class in (
            AppException,
            DatabaseException,
            EmailDeliveryException,
        ):
            assert exc_class in app.exception_handlers
