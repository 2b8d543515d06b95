# fundiflow_notify/core/notifications/errors.py
"""
Typed errors for the notification engine.

Only programmer/configuration defects are raised out of the dispatcher.
Per-recipient delivery problems are counted, never raised.  The transport
layer maps ``NotificationError`` subtypes to HTTP responses using
``status_code``.
"""
from __future__ import annotations


class NotificationError(Exception):
    """Base class for all notification errors."""

    status_code: int = 500

    def __init__(self, detail: str = "Internal error"):
        self.detail = detail
        super().__init__(detail)


class ConfigurationError(NotificationError):
    """Missing transport credentials, unknown provider or broken template set."""


class TemplateNotFoundError(ConfigurationError):
    """A notification references a template key the registry does not hold."""

    def __init__(self, key: str, kind: str = "in-app"):
        self.key = key
        self.kind = kind
        super().__init__(f"No {kind} template registered for '{key}'")


class UnknownEventError(NotificationError):
    """The dispatcher was handed an event type it has no route for."""

    def __init__(self, event: object):
        super().__init__(f"Unsupported trigger event: {type(event).__name__}")


class ValidationError(NotificationError):
    """Invalid request payload (400)."""

    status_code = 400


class NotFoundError(NotificationError):
    """Resource not found (404)."""

    status_code = 404
