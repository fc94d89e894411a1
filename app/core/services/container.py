"""
Composition root for the delivery services.

Everything that used to be a process-wide singleton (transport, template
cache, dispatcher) is built here once per application and passed to the
code that needs it, so tests can build a container with fakes.
"""

from dataclasses import dataclass

from app.core.config import Settings, app_logger
from app.core.services.dispatcher import NotificationDispatcher
from app.core.services.email_manager import EmailManagerService
from app.core.services.smtp import create_transport
from app.core.services.template import TemplateRenderer, TemplateStore


@dataclass
class ServiceContainer:
    settings: Settings
    template_store: TemplateStore
    renderer: TemplateRenderer
    dispatcher: NotificationDispatcher
    email_manager: EmailManagerService

    @classmethod
    def build(
        cls,
        settings: Settings,
        dispatcher: NotificationDispatcher | None = None,
    ) -> "ServiceContainer":
        """
        Wire the services from settings.

        Args:
            settings: Application settings.
            dispatcher: Optional prebuilt dispatcher (e.g. with a fake
                transport in tests). Defaults to one using the SMTP
                transport described by ``settings``.
        """
        store = TemplateStore(settings.EMAIL_TEMPLATE_DIR)
        renderer = TemplateRenderer(store, website_url=settings.APP_WEB_URL)
        dispatcher = dispatcher or NotificationDispatcher(
            lambda: create_transport(settings)
        )
        email_manager = EmailManagerService(dispatcher, renderer, settings)

        app_logger.info(
            f"Services built (templates: {settings.EMAIL_TEMPLATE_DIR})"
        )
        return cls(
            settings=settings,
            template_store=store,
            renderer=renderer,
            dispatcher=dispatcher,
            email_manager=email_manager,
        )
