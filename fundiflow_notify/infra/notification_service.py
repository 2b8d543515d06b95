# fundiflow_notify/infra/notification_service.py
"""
Wiring for the notification engine.

``build_runtime`` assembles the dispatcher and its collaborators from
settings plus the four repositories, once per process.  The HTTP app, the
deadline-scan CLI and the tests all go through it, so nothing in the core
reaches for module-level singletons.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from fundiflow_notify.core.notifications.audience import AudienceResolver
from fundiflow_notify.core.notifications.deadline_scanner import DeadlineScanner
from fundiflow_notify.core.notifications.dispatcher import Dispatcher
from fundiflow_notify.core.notifications.ports import (
    NotificationInbox,
    PreferenceStore,
    ProjectDirectory,
    UserDirectory,
)
from fundiflow_notify.core.notifications.preferences import PreferenceAccessor, PreferenceGate
from fundiflow_notify.core.notifications.templates import TemplateRegistry, default_registry
from fundiflow_notify.core.notifications.triggers import NotificationTriggers
from fundiflow_notify.infra.dispatch_pool import DispatchPool
from fundiflow_notify.infra.email_transports import EmailTransport, build_email_transport
from fundiflow_notify.infra.logging_config import get_logger
from fundiflow_notify.infra.notification_channels import EmailSink, InAppSink

logger = get_logger(__name__)


@dataclass
class NotificationRuntime:
    dispatcher: Dispatcher
    pool: DispatchPool
    triggers: NotificationTriggers
    scanner: DeadlineScanner
    preferences: PreferenceAccessor
    notifications: NotificationInbox
    transport: EmailTransport


def build_runtime(
    settings,
    *,
    users: UserDirectory,
    preferences: PreferenceStore,
    notifications: NotificationInbox,
    projects: ProjectDirectory,
    transport: Optional[EmailTransport] = None,
    templates: Optional[TemplateRegistry] = None,
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> NotificationRuntime:
    """Raises ConfigurationError for a broken template set or email configuration."""
    transport = transport or build_email_transport(settings)
    accessor = PreferenceAccessor(preferences)

    dispatcher = Dispatcher(
        audience=AudienceResolver(users),
        gate=PreferenceGate(accessor, clock=clock),
        in_app=InAppSink(notifications),
        email=EmailSink(
            transport,
            users,
            app_url=settings.app_url,
            footer_enabled=settings.email_footer_enabled,
        ),
        templates=templates or default_registry(),
        app_url=settings.app_url,
        max_concurrency=settings.dispatch_max_concurrency,
        channel_timeout=settings.dispatch_channel_timeout_seconds,
        clock=clock,
    )
    pool = DispatchPool(dispatcher, max_pending=settings.dispatch_pool_max_pending)

    logger.info(
        f"Notification runtime ready: transport={transport.name} "
        f"concurrency={settings.dispatch_max_concurrency} "
        f"timeout={settings.dispatch_channel_timeout_seconds:.1f}s"
    )
    return NotificationRuntime(
        dispatcher=dispatcher,
        pool=pool,
        triggers=NotificationTriggers(dispatcher, pool),
        scanner=DeadlineScanner(
            projects, dispatcher, horizon_days=settings.deadline_horizon_days, clock=clock
        ),
        preferences=accessor,
        notifications=notifications,
        transport=transport,
    )
