"""
Service wiring — builds every collaborator from Settings.

There are no module-level singletons: the API, the CLI and the tests each
call build_services() and own the result.
"""
from __future__ import annotations

import dataclasses
import structlog
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from channels.base import EmailTransport
from channels.email_adapter import ResendEmailTransport
from channels.email_service import EmailService
from config.settings import Settings, load_settings
from core.notifier import WorkspaceActivityNotifier
from core.preferences import NotificationPreferencesService
from database.store_base import BaseNotificationStore
from database.store_factory import create_store
from job_queue.notification_queue import NotificationQueue
from models.schemas import utcnow
from templates.renderer import TemplateRenderer

logger = structlog.get_logger()


@dataclass
class Services:
    settings: Settings
    store: BaseNotificationStore
    transport: EmailTransport
    email: EmailService
    queue: NotificationQueue
    preferences: NotificationPreferencesService
    notifier: WorkspaceActivityNotifier

    async def startup(self):
        await self.store.initialize()
        logger.info("notification_services_started",
                    store=type(self.store).__name__,
                    provider=self.transport.provider)

    async def shutdown(self):
        await self.transport.close()
        await self.store.close()
        logger.info("notification_services_stopped")


def build_services(
    settings: Optional[Settings] = None,
    store: Optional[BaseNotificationStore] = None,
    transport: Optional[EmailTransport] = None,
    clock: Callable[[], datetime] = utcnow,
) -> Services:
    """Wire the notification stack. Explicit store/transport override the configured ones."""
    settings = settings or load_settings()

    if store is None:
        store = create_store(dataclasses.asdict(settings.database), echo=settings.debug)
    if transport is None:
        transport = ResendEmailTransport(settings.email)

    renderer = TemplateRenderer(app_url=settings.app.url)
    email = EmailService(
        transport,
        renderer,
        from_address=settings.email.from_address,
        reply_to=settings.email.reply_to or None,
    )
    queue = NotificationQueue(store, email, clock=clock)
    preferences = NotificationPreferencesService(store)
    notifier = WorkspaceActivityNotifier(queue, preferences, settings.app.url)

    return Services(
        settings=settings,
        store=store,
        transport=transport,
        email=email,
        queue=queue,
        preferences=preferences,
        notifier=notifier,
    )
