# fundiflow_notify/infra/notification_channels.py
"""
Delivery channels used by the dispatcher.

- ``InAppSink``  persists a Notification record through the NotificationStore
- ``EmailSink``  resolves the recipient's address and sends through the
                 configured ``EmailTransport``

Both return booleans and swallow store/transport errors after logging them;
one recipient's failure never aborts a sibling delivery.

Usage:
    sink = EmailSink(build_email_transport(settings), users, app_url=settings.app_url)
    to = await sink.resolve_recipient(recipient)
    if to:
        await sink.deliver(to, rendered)
"""
from __future__ import annotations

import base64
from typing import Any, Mapping, Optional

from fundiflow_notify.core.notifications.domain import EmailRecipient, Notification, Recipient
from fundiflow_notify.core.notifications.ports import NotificationStore, UserDirectory
from fundiflow_notify.core.notifications.renderer import RenderedEmail, RenderedInApp
from fundiflow_notify.infra.email_transports import EmailTransport
from fundiflow_notify.infra.logging_config import get_logger
from fundiflow_notify.infra.metrics import NotificationMetrics

logger = get_logger(__name__)

PREFERENCES_PATH = "/dashboard/settings/notifications"


class InAppSink:
    """Persists one in-app notification per call."""

    name = "in_app"

    def __init__(self, store: NotificationStore):
        self._store = store

    async def deliver(
        self,
        user_id: str,
        rendered: RenderedInApp,
        metadata: Mapping[str, Any] | None = None,
    ) -> bool:
        notification = Notification(
            user_id=user_id,
            type=rendered.type,
            title=rendered.title,
            message=rendered.message,
            category=rendered.category,
            metadata=dict(metadata or {}),
        )
        try:
            notification_id = await self._store.create(notification)
        except Exception as exc:
            logger.error(
                f"In-app notification failed: {type(exc).__name__}",
                extra={"user_id": user_id, "channel": self.name},
                exc_info=True,
            )
            NotificationMetrics.in_app("failed")
            return False

        logger.debug(
            f"In-app notification stored: id={notification_id}",
            extra={"user_id": user_id, "channel": self.name, "notification_id": notification_id},
        )
        NotificationMetrics.in_app("delivered")
        return True


def unsubscribe_token(user_id: str) -> str:
    return base64.b64encode(user_id.encode("utf-8")).decode("ascii")


class EmailSink:
    """Address resolution plus templated send through one transport."""

    name = "email"

    def __init__(
        self,
        transport: EmailTransport,
        users: UserDirectory,
        app_url: str,
        footer_enabled: bool = True,
    ):
        self._transport = transport
        self._users = users
        self._app_url = app_url.rstrip("/")
        self._footer_enabled = footer_enabled

    async def resolve_recipient(self, recipient: Recipient) -> Optional[EmailRecipient]:
        """
        Address and display name for ``recipient``.

        None means skip: no such user, or no usable address.  Directory
        errors propagate and are counted as failures by the caller.
        """
        user = recipient.user
        if user is None:
            user = await self._users.find_by_id(recipient.user_id)

        if user is None:
            logger.info("Email skipped: user not found", extra={"user_id": recipient.user_id, "channel": self.name})
            return None

        email = (user.email or "").strip()
        if "@" not in email:
            logger.info(
                "Email skipped: no valid address",
                extra={"user_id": recipient.user_id, "channel": self.name},
            )
            return None

        return EmailRecipient(user_id=user.id, email=email, name=user.name)

    def footer(self, user_id: str) -> tuple[str, str]:
        prefs_url = f"{self._app_url}{PREFERENCES_PATH}"
        unsubscribe_url = f"{self._app_url}/unsubscribe?token={unsubscribe_token(user_id)}"
        html = (
            '\n<div style="margin-top: 30px; padding-top: 20px; border-top: 1px solid #e5e7eb; '
            'font-size: 12px; color: #6b7280;">\n'
            "  <p>You received this email because you're subscribed to FundiFlow notifications.</p>\n"
            "  <p>\n"
            f'    <a href="{prefs_url}" style="color: #2563eb;">Manage email preferences</a> |\n'
            f'    <a href="{unsubscribe_url}" style="color: #6b7280;">Unsubscribe</a>\n'
            "  </p>\n"
            "</div>"
        )
        text = (
            "\n\n---\n"
            "You received this email because you're subscribed to FundiFlow notifications.\n"
            f"Manage preferences: {prefs_url}\n"
            f"Unsubscribe: {unsubscribe_url}"
        )
        return html, text

    async def deliver(self, to: EmailRecipient, rendered: RenderedEmail) -> bool:
        html, text = rendered.html, rendered.text
        if self._footer_enabled:
            footer_html, footer_text = self.footer(to.user_id)
            html += footer_html
            text += footer_text

        try:
            return bool(await self._transport.send(to, rendered.subject, html, text))
        except Exception as exc:
            logger.error(
                f"Email transport {self._transport.name} raised: {type(exc).__name__}",
                extra={"user_id": to.user_id, "channel": self.name},
                exc_info=True,
            )
            NotificationMetrics.email("failed", provider=self._transport.name)
            return False
