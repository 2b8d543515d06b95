# tests/test_email_transports.py
"""Tests for console, SMTP and API-relay email transports."""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from fundiflow_notify.core.notifications.domain import EmailRecipient
from fundiflow_notify.core.notifications.errors import ConfigurationError
from fundiflow_notify.infra.email_transports import (
    ApiRelayEmailTransport,
    ConsoleEmailTransport,
    EmailTransport,
    SmtpEmailTransport,
    build_email_transport,
    build_relay_receiver_transport,
)
from fundiflow_notify.infra.metrics import get_metrics_collector

RECIPIENT = EmailRecipient(user_id="u1", email="jane@example.com", name="Jane")


def _smtp(port: int = 587, **overrides) -> SmtpEmailTransport:
    values = dict(
        host="smtp.example.com",
        port=port,
        user="mailer",
        password="pw",
        from_email="notifications@fundiflow.com",
        from_name="FundiFlow",
    )
    values.update(overrides)
    return SmtpEmailTransport(**values)


def _relay_session(status: int = 200, payload=None, exc: Exception | None = None) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)

    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    if exc is not None:
        session.post.side_effect = exc
    else:
        session.post.return_value = ctx
    return session


def _settings(**overrides) -> SimpleNamespace:
    values = dict(
        email_provider="console",
        from_email="notifications@fundiflow.com",
        from_name="FundiFlow",
        smtp_host=None,
        smtp_port=587,
        smtp_user=None,
        smtp_pass=None,
        email_relay_endpoint=None,
        email_relay_token=None,
        email_timeout_seconds=5.0,
    )
    values.update(overrides)
    s = SimpleNamespace(**values)

    def validate_email_config():
        missing = []
        if s.email_provider == "smtp":
            missing += [n for n in ("smtp_host", "smtp_user", "smtp_pass") if not getattr(s, n)]
        if s.email_provider == "api-relay" and not s.email_relay_endpoint:
            missing.append("email_relay_endpoint")
        return missing

    s.validate_email_config = validate_email_config
    s.smtp_configured = bool(s.smtp_host and s.smtp_user and s.smtp_pass)
    return s


class TestConsoleTransport:
    @pytest.mark.asyncio
    async def test_always_succeeds(self):
        transport = ConsoleEmailTransport()
        assert await transport.send(RECIPIENT, "Subject", "<p>hi</p>", "hi") is True
        assert get_metrics_collector().get_counter(
            "notifications_email_total", status="sent", provider="console"
        ) == 1


class TestSmtpTransport:
    def test_builds_multipart_alternative(self):
        msg = _smtp().build_message(RECIPIENT, "Hello", "<p>html</p>", "text")
        assert msg.get_content_subtype() == "alternative"
        assert msg["To"] == "Jane <jane@example.com>"
        assert msg["From"] == "FundiFlow <notifications@fundiflow.com>"
        assert msg["Subject"] == "Hello"
        parts = [p.get_content_type() for p in msg.get_payload()]
        assert parts == ["text/plain", "text/html"]

    @pytest.mark.asyncio
    async def test_starttls_on_587(self):
        with patch("fundiflow_notify.infra.email_transports.smtplib") as smtplib_mock:
            server = smtplib_mock.SMTP.return_value.__enter__.return_value
            ok = await _smtp(587).send(RECIPIENT, "S", "<p>h</p>", "t")

        assert ok is True
        smtplib_mock.SMTP.assert_called_once_with("smtp.example.com", 587, timeout=10.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("mailer", "pw")
        server.send_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_implicit_tls_on_465(self):
        with patch("fundiflow_notify.infra.email_transports.smtplib") as smtplib_mock:
            ok = await _smtp(465).send(RECIPIENT, "S", "<p>h</p>", "t")

        assert ok is True
        smtplib_mock.SMTP_SSL.assert_called_once()
        smtplib_mock.SMTP.assert_not_called()

    @pytest.mark.asyncio
    async def test_smtp_error_returns_false(self):
        with patch("fundiflow_notify.infra.email_transports.smtplib") as smtplib_mock:
            smtplib_mock.SMTP.side_effect = OSError("connection refused")
            ok = await _smtp().send(RECIPIENT, "S", "<p>h</p>", "t")

        assert ok is False
        assert get_metrics_collector().get_counter(
            "notifications_email_total", status="failed", provider="smtp"
        ) == 1

    @pytest.mark.asyncio
    async def test_unconfigured_returns_false(self):
        assert await _smtp(password=None).send(RECIPIENT, "S", "h", "t") is False


class TestApiRelayTransport:
    @pytest.mark.asyncio
    async def test_posts_json_with_bearer(self):
        session = _relay_session(payload={"success": True, "messageId": "m-1"})
        transport = ApiRelayEmailTransport("https://dash.example.com/api/send-email", token="tok")
        with patch("fundiflow_notify.infra.email_transports.get_relay_session", return_value=session):
            ok = await transport.send(RECIPIENT, "S", "<p>h</p>", "t")

        assert ok is True
        args, kwargs = session.post.call_args
        assert args == ("https://dash.example.com/api/send-email",)
        assert kwargs["json"] == {"to": "jane@example.com", "subject": "S", "html": "<p>h</p>", "text": "t"}
        assert kwargs["headers"] == {"Authorization": "Bearer tok"}

    @pytest.mark.asyncio
    async def test_no_token_no_header(self):
        session = _relay_session(payload={"success": True})
        transport = ApiRelayEmailTransport("https://relay.test/send")
        with patch("fundiflow_notify.infra.email_transports.get_relay_session", return_value=session):
            await transport.send(RECIPIENT, "S", "h", "t")
        assert session.post.call_args.kwargs["headers"] == {}

    @pytest.mark.asyncio
    async def test_non_200_is_failure(self):
        session = _relay_session(status=502)
        transport = ApiRelayEmailTransport("https://relay.test/send")
        with patch("fundiflow_notify.infra.email_transports.get_relay_session", return_value=session):
            assert await transport.send(RECIPIENT, "S", "h", "t") is False

    @pytest.mark.asyncio
    async def test_success_false_is_failure(self):
        session = _relay_session(payload={"success": False, "error": "Missing required fields"})
        transport = ApiRelayEmailTransport("https://relay.test/send")
        with patch("fundiflow_notify.infra.email_transports.get_relay_session", return_value=session):
            assert await transport.send(RECIPIENT, "S", "h", "t") is False

    @pytest.mark.asyncio
    async def test_network_error_is_failure(self):
        session = _relay_session(exc=aiohttp.ClientConnectionError("down"))
        transport = ApiRelayEmailTransport("https://relay.test/send")
        with patch("fundiflow_notify.infra.email_transports.get_relay_session", return_value=session):
            assert await transport.send(RECIPIENT, "S", "h", "t") is False

    @pytest.mark.asyncio
    async def test_timeout_is_failure(self):
        session = _relay_session(exc=asyncio.TimeoutError())
        transport = ApiRelayEmailTransport("https://relay.test/send")
        with patch("fundiflow_notify.infra.email_transports.get_relay_session", return_value=session):
            assert await transport.send(RECIPIENT, "S", "h", "t") is False


class TestBuildEmailTransport:
    def test_console_default(self):
        assert build_email_transport(_settings()).name == "console"

    def test_smtp(self):
        transport = build_email_transport(
            _settings(email_provider="smtp", smtp_host="h", smtp_user="u", smtp_pass="p")
        )
        assert isinstance(transport, SmtpEmailTransport)

    def test_smtp_missing_credentials(self):
        with pytest.raises(ConfigurationError) as exc_info:
            build_email_transport(_settings(email_provider="smtp", smtp_host="h"))
        assert "smtp_user" in exc_info.value.detail

    def test_relay_missing_endpoint(self):
        with pytest.raises(ConfigurationError):
            build_email_transport(_settings(email_provider="api-relay"))

    def test_relay(self):
        transport = build_email_transport(
            _settings(email_provider="api-relay", email_relay_endpoint="https://relay.test/send")
        )
        assert transport.name == "api-relay"

    @pytest.mark.parametrize(
        "overrides",
        [
            {},
            {"email_provider": "smtp", "smtp_host": "h", "smtp_user": "u", "smtp_pass": "p"},
            {"email_provider": "api-relay", "email_relay_endpoint": "https://relay.test/send"},
        ],
    )
    def test_every_provider_implements_one_interface(self, overrides):
        from fundiflow_notify.core.notifications import ports

        assert isinstance(build_email_transport(_settings(**overrides)), EmailTransport)
        assert not hasattr(ports, "EmailTransport")

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            build_email_transport(_settings(email_provider="carrier-pigeon"))

    def test_relay_receiver_prefers_smtp(self):
        assert build_relay_receiver_transport(_settings()).name == "console"
        configured = _settings(smtp_host="h", smtp_user="u", smtp_pass="p")
        assert build_relay_receiver_transport(configured).name == "smtp"
