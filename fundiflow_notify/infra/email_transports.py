# fundiflow_notify/infra/email_transports.py
"""
Outbound email transports.

All transports share one contract::

    await transport.send(recipient, subject, html, text) -> bool

- ``console``   - logs the message, no network I/O (dev/test)
- ``smtp``      - authenticated SMTP relay; smtplib runs in the default executor
- ``api-relay`` - POSTs the message as JSON to an HTTP endpoint that owns
                  the SMTP credentials (``POST /api/send-email`` on this service)

``build_email_transport(settings)`` picks one from configuration and raises
``ConfigurationError`` when the chosen provider is missing credentials.
"""
from __future__ import annotations

import abc
import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid

import aiohttp

from fundiflow_notify.core.notifications.domain import EmailRecipient
from fundiflow_notify.core.notifications.errors import ConfigurationError
from fundiflow_notify.infra.http_client import get_relay_session
from fundiflow_notify.infra.logging_config import get_logger, mask_email
from fundiflow_notify.infra.metrics import NotificationMetrics

logger = get_logger(__name__)

HTML_PREVIEW_CHARS = 200


class EmailTransport(abc.ABC):
    """Abstract base class for email transports"""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Transport name for logging/metrics"""
        pass

    @abc.abstractmethod
    async def send(self, recipient: EmailRecipient, subject: str, html: str, text: str) -> bool:
        """
        Send one message.

        Returns:
            True if the provider accepted it, False otherwise
        """
        pass

    @abc.abstractmethod
    def is_configured(self) -> bool:
        pass


class ConsoleEmailTransport(EmailTransport):
    """Logs emails instead of sending them."""

    @property
    def name(self) -> str:
        return "console"

    def is_configured(self) -> bool:
        return True

    async def send(self, recipient: EmailRecipient, subject: str, html: str, text: str) -> bool:
        logger.info(
            f"EMAIL (console mode)\nTo: {recipient.name} <{recipient.email}>\nSubject: {subject}\n"
            f"--- TEXT ---\n{text}\n"
            f"--- HTML (first {HTML_PREVIEW_CHARS} chars) ---\n{html[:HTML_PREVIEW_CHARS]}",
            extra={"user_id": recipient.user_id, "channel": "email"},
        )
        NotificationMetrics.email("sent", provider=self.name)
        return True


class SmtpEmailTransport(EmailTransport):
    """
    Direct SMTP relay.

    Port 465 uses implicit TLS (``SMTP_SSL``); any other port connects in
    plain text and upgrades with STARTTLS.
    """

    def __init__(
        self,
        host: str | None,
        port: int,
        user: str | None,
        password: str | None,
        from_email: str,
        from_name: str,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._from_email = from_email
        self._from_name = from_name
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "smtp"

    def is_configured(self) -> bool:
        return bool(self._host and self._user and self._password)

    def build_message(self, recipient: EmailRecipient, subject: str, html: str, text: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((self._from_name, self._from_email))
        msg["To"] = formataddr((recipient.name, recipient.email))
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid(domain=self._from_email.partition("@")[2] or None)
        # Last part is the preferred rendering
        if text:
            msg.attach(MIMEText(text, "plain", "utf-8"))
        if html:
            msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    async def send(self, recipient: EmailRecipient, subject: str, html: str, text: str) -> bool:
        if not self.is_configured():
            logger.warning("SMTP transport not configured")
            NotificationMetrics.email("failed", provider=self.name)
            return False

        masked = mask_email(recipient.email)
        try:
            msg = self.build_message(recipient, subject, html, text)
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._send_smtp, msg)
        except Exception as exc:
            logger.error(
                f"SMTP send failed to {masked}: {type(exc).__name__}",
                extra={"user_id": recipient.user_id, "channel": "email"},
                exc_info=True,
            )
            NotificationMetrics.email("failed", provider=self.name)
            return False

        logger.info(
            f"Email sent via SMTP to {masked}",
            extra={"user_id": recipient.user_id, "channel": "email"},
        )
        NotificationMetrics.email("sent", provider=self.name)
        return True

    def _send_smtp(self, msg: MIMEMultipart) -> None:
        """Send email via SMTP (blocking)"""
        if self._port == 465:
            with smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout) as server:
                server.login(self._user, self._password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                server.starttls()
                server.login(self._user, self._password)
                server.send_message(msg)


class ApiRelayEmailTransport(EmailTransport):
    """Delegates delivery to an HTTP endpoint accepting ``{to, subject, html, text}``."""

    def __init__(self, endpoint: str | None, token: str | None = None, timeout: float = 10.0) -> None:
        self._endpoint = endpoint
        self._token = token
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "api-relay"

    def is_configured(self) -> bool:
        return bool(self._endpoint)

    async def send(self, recipient: EmailRecipient, subject: str, html: str, text: str) -> bool:
        if not self.is_configured():
            logger.warning("Email relay endpoint not configured")
            NotificationMetrics.email("failed", provider=self.name)
            return False

        payload = {"to": recipient.email, "subject": subject, "html": html, "text": text}
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        masked = mask_email(recipient.email)
        _extra = {"user_id": recipient.user_id, "channel": "email"}

        try:
            session = get_relay_session(self._timeout)
            async with session.post(self._endpoint, json=payload, headers=headers) as resp:
                if resp.status != 200:
                    logger.error(f"Email relay error: status={resp.status} to={masked}", extra=_extra)
                    NotificationMetrics.email("failed", provider=self.name)
                    return False
                result = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.error(f"Email relay request failed: {type(exc).__name__}", extra=_extra)
            NotificationMetrics.email("failed", provider=self.name)
            return False

        if not isinstance(result, dict) or not result.get("success"):
            logger.error(f"Email relay rejected message to {masked}", extra=_extra)
            NotificationMetrics.email("failed", provider=self.name)
            return False

        logger.info(
            f"Email sent via relay to {masked} (message_id={result.get('messageId')})",
            extra=_extra,
        )
        NotificationMetrics.email("sent", provider=self.name)
        return True


# Transport registry
_TRANSPORTS: dict[str, type[EmailTransport]] = {
    "console": ConsoleEmailTransport,
    "smtp": SmtpEmailTransport,
    "api-relay": ApiRelayEmailTransport,
}


def build_email_transport(settings) -> EmailTransport:
    """Build the transport selected by ``settings.email_provider``."""
    provider = settings.email_provider
    if provider not in _TRANSPORTS:
        raise ConfigurationError(f"Unknown email provider: {provider}")

    missing = settings.validate_email_config()
    if missing:
        raise ConfigurationError(
            f"email_provider={provider} is missing settings: {', '.join(missing)}"
        )

    if provider == "smtp":
        transport: EmailTransport = SmtpEmailTransport(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_pass,
            from_email=settings.from_email,
            from_name=settings.from_name,
            timeout=settings.email_timeout_seconds,
        )
    elif provider == "api-relay":
        transport = ApiRelayEmailTransport(
            endpoint=settings.email_relay_endpoint,
            token=settings.email_relay_token,
            timeout=settings.email_timeout_seconds,
        )
    else:
        transport = ConsoleEmailTransport()

    logger.info(f"Email transport: {transport.name}")
    return transport


def build_relay_receiver_transport(settings) -> EmailTransport:
    """Transport behind ``POST /api/send-email``: SMTP when credentials are present, else console."""
    if settings.smtp_configured:
        return SmtpEmailTransport(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_pass,
            from_email=settings.from_email,
            from_name=settings.from_name,
            timeout=settings.email_timeout_seconds,
        )
    return ConsoleEmailTransport()
