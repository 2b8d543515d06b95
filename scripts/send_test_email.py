#!/usr/bin/env python3
"""
Send the "email test" message through the configured transport.

Usage:
    python scripts/send_test_email.py you@example.com
    python scripts/send_test_email.py you@example.com --name "Jane" --provider smtp

Exit code 0 when the transport accepted the message.
"""
import argparse
import asyncio
import sys

from fundiflow_notify.config import settings
from fundiflow_notify.core.notifications.domain import EmailRecipient, utcnow
from fundiflow_notify.core.notifications.errors import ConfigurationError
from fundiflow_notify.core.notifications.renderer import render_email
from fundiflow_notify.core.notifications.templates import EMAIL_TEST, default_registry
from fundiflow_notify.infra.email_transports import build_email_transport
from fundiflow_notify.infra.http_client import close_relay_session
from fundiflow_notify.infra.logging_config import setup_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a FundiFlow test email.")
    parser.add_argument("to", help="recipient address")
    parser.add_argument("--name", default=None, help="recipient display name")
    parser.add_argument(
        "--provider",
        choices=["console", "smtp", "api-relay"],
        default=None,
        help="override EMAIL_PROVIDER for this run",
    )
    args = parser.parse_args(argv)
    if "@" not in args.to:
        parser.error(f"not an email address: {args.to}")
    return args


async def send(args: argparse.Namespace) -> bool:
    cfg = settings.model_copy(update={"email_provider": args.provider}) if args.provider else settings
    transport = build_email_transport(cfg)

    recipient = EmailRecipient(user_id="", email=args.to, name=args.name or args.to.partition("@")[0])
    rendered = render_email(
        default_registry().email(EMAIL_TEST),
        {
            "recipientName": recipient.name,
            "sentAt": utcnow().strftime("%Y-%m-%d %H:%M:%S UTC"),
            "provider": transport.name,
        },
    )
    try:
        return await transport.send(recipient, rendered.subject, rendered.html, rendered.text)
    finally:
        await close_relay_session()


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(level=settings.log_level, use_json=False)
    try:
        ok = asyncio.run(send(args))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc.detail}", file=sys.stderr)
        return 2

    print("Test email sent" if ok else "Test email failed")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
