# fundiflow_notify/core/notifications/dispatcher.py
"""
Notification dispatcher: trigger event in, DispatchResult out.

    1. resolve the audience
    2. per recipient, concurrently (a semaphore caps channel calls in flight):
         a. render + store the in-app notification
         b. gate email on preferences, resolve the address, render + send
    3. aggregate the outcomes

Only programmer/configuration errors escape ``dispatch`` (unsupported event
type, missing template).  Every per-recipient or per-channel problem,
including a channel call that overruns its timeout, is logged and counted.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Tuple, TypeVar

from fundiflow_notify.core.notifications import messages
from fundiflow_notify.core.notifications.audience import AudienceResolver
from fundiflow_notify.core.notifications.domain import (
    Channel,
    DispatchResult,
    EmailOutcome,
    Recipient,
    TriggerEvent,
)
from fundiflow_notify.core.notifications.errors import UnknownEventError
from fundiflow_notify.core.notifications.messages import RecipientMessage
from fundiflow_notify.core.notifications.preferences import PreferenceGate
from fundiflow_notify.core.notifications.renderer import render_email, render_in_app
from fundiflow_notify.core.notifications.templates import TemplateRegistry
from fundiflow_notify.infra.logging_config import LogContext, get_logger
from fundiflow_notify.infra.metrics import NotificationMetrics
from fundiflow_notify.infra.notification_channels import EmailSink, InAppSink

logger = get_logger(__name__)

T = TypeVar("T")


class Dispatcher:
    def __init__(
        self,
        *,
        audience: AudienceResolver,
        gate: PreferenceGate,
        in_app: InAppSink,
        email: EmailSink,
        templates: TemplateRegistry,
        app_url: str,
        max_concurrency: int = 20,
        channel_timeout: float = 15.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")

        # Fail at construction if any template a builder can emit is missing
        templates.require(in_app_keys=messages.IN_APP_KEYS, email_keys=messages.EMAIL_KEYS)

        self._audience = audience
        self._gate = gate
        self._in_app = in_app
        self._email = email
        self._templates = templates
        self._app_url = app_url
        self._max_concurrency = max_concurrency
        self._channel_timeout = channel_timeout
        self._clock = clock

    async def dispatch(self, event: TriggerEvent) -> DispatchResult:
        if not messages.supports(event):
            raise UnknownEventError(event)

        log = LogContext(logger, event_type=event.event_type)

        with NotificationMetrics.track_dispatch_time(event.event_type):
            try:
                recipients = await self._audience.resolve(event)
            except UnknownEventError:
                raise
            except Exception as exc:
                log.error(f"Audience resolution failed: {type(exc).__name__}", exc_info=True)
                NotificationMetrics.database_error("audience_resolve")
                return DispatchResult()

            result = DispatchResult(recipients_considered=len(recipients))
            if not recipients:
                log.info("No recipients for event")
                NotificationMetrics.dispatched(event.event_type, 0)
                return result

            now = self._clock()
            # Build every message up front so template defects surface before any send
            planned = [
                (r, messages.build_message(event, r, app_url=self._app_url, now=now))
                for r in recipients
            ]

            # The cap counts channel calls in flight, not recipients
            sem = asyncio.Semaphore(self._max_concurrency)

            async def bounded(call: Awaitable[T]) -> T:
                async with sem:
                    return await call

            async def worker(recipient: Recipient, msg: RecipientMessage) -> Tuple[bool, EmailOutcome]:
                in_app_ok, email_outcome = await asyncio.gather(
                    bounded(self._deliver_in_app(recipient, msg)),
                    bounded(self._deliver_email(recipient, msg)),
                )
                return in_app_ok, email_outcome

            outcomes: List[Tuple[bool, EmailOutcome]] = await asyncio.gather(
                *(worker(r, m) for r, m in planned)
            )

        for in_app_ok, email_outcome in outcomes:
            if in_app_ok:
                result.in_app_delivered += 1
            else:
                result.failures += 1
            if email_outcome is EmailOutcome.SENT:
                result.email_delivered += 1
            elif email_outcome is EmailOutcome.SKIPPED:
                result.email_skipped += 1
            else:
                result.failures += 1

        NotificationMetrics.dispatched(event.event_type, result.recipients_considered)
        log.info(
            f"Dispatch complete: considered={result.recipients_considered} "
            f"in_app={result.in_app_delivered} email={result.email_delivered} "
            f"skipped={result.email_skipped} failures={result.failures}"
        )
        return result

    # ------------------------------------------------------------------
    # Per-channel delivery
    # ------------------------------------------------------------------

    async def _deliver_in_app(self, recipient: Recipient, msg: RecipientMessage) -> bool:
        rendered = render_in_app(self._templates.in_app(msg.in_app_key), msg.variables)
        metadata = {**msg.metadata, "template": msg.in_app_key}
        try:
            return await asyncio.wait_for(
                self._in_app.deliver(recipient.user_id, rendered, metadata),
                timeout=self._channel_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"In-app delivery timed out after {self._channel_timeout:.1f}s",
                extra={"user_id": recipient.user_id, "channel": Channel.IN_APP.value},
            )
            NotificationMetrics.channel_timeout(Channel.IN_APP.value)
            return False
        except Exception as exc:
            logger.error(
                f"In-app delivery raised: {type(exc).__name__}",
                extra={"user_id": recipient.user_id, "channel": Channel.IN_APP.value},
                exc_info=True,
            )
            return False

    async def _deliver_email(self, recipient: Recipient, msg: RecipientMessage) -> EmailOutcome:
        try:
            return await asyncio.wait_for(
                self._email_attempt(recipient, msg),
                timeout=self._channel_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Email delivery timed out after {self._channel_timeout:.1f}s",
                extra={"user_id": recipient.user_id, "channel": Channel.EMAIL.value},
            )
            NotificationMetrics.channel_timeout(Channel.EMAIL.value)
            return EmailOutcome.FAILED
        except Exception as exc:
            logger.error(
                f"Email delivery raised: {type(exc).__name__}",
                extra={"user_id": recipient.user_id, "channel": Channel.EMAIL.value},
                exc_info=True,
            )
            return EmailOutcome.FAILED

    async def _email_attempt(self, recipient: Recipient, msg: RecipientMessage) -> EmailOutcome:
        category = self._templates.in_app(msg.in_app_key).category
        if not await self._gate.allows(recipient.user_id, category, Channel.EMAIL):
            NotificationMetrics.email("skipped")
            return EmailOutcome.SKIPPED

        to = await self._email.resolve_recipient(recipient)
        if to is None:
            NotificationMetrics.email("skipped")
            return EmailOutcome.SKIPPED

        variables = dict(msg.variables)
        for key in msg.recipient_name_keys:
            variables[key] = to.name

        rendered = render_email(self._templates.email(msg.email_key), variables)
        sent = await self._email.deliver(to, rendered)
        return EmailOutcome.SENT if sent else EmailOutcome.FAILED
