from app.core.services.container import ServiceContainer
from app.core.services.dispatcher import (
    DeliveryAttempt,
    DeliveryResult,
    EmailMessage,
    NotificationDispatcher,
    classify_error,
)
from app.core.services.email_manager import EmailManagerService
from app.core.services.smtp import SMTPTransport, create_transport
from app.core.services.template import TemplateRenderer, TemplateStore

__all__ = [
    # Composition root
    "ServiceContainer",
    # Delivery
    "DeliveryAttempt",
    "DeliveryResult",
    "EmailMessage",
    "NotificationDispatcher",
    "classify_error",
    "SMTPTransport",
    "create_transport",
    # Email flows
    "EmailManagerService",
    # Templates
    "TemplateRenderer",
    "TemplateStore",
]
