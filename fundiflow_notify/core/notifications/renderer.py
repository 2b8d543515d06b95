# fundiflow_notify/core/notifications/renderer.py
"""
Placeholder substitution for notification templates.

Tokens look like ``{projectName}``.  Substitution is a single left-to-right
pass: a value that itself contains ``{...}`` is emitted as-is and never
re-scanned.  Token names are case-sensitive and tokens with no matching
variable stay in the output untouched, which makes template/payload
mismatches visible in tests.
"""
from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any, Mapping

from fundiflow_notify.core.notifications.domain import Category
from fundiflow_notify.core.notifications.templates import EmailTemplate, InAppTemplate

_TOKEN_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render(pattern: str, variables: Mapping[str, Any]) -> str:
    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return format_value(variables[name])

    return _TOKEN_RE.sub(_replace, pattern)


def unresolved_tokens(text: str) -> list[str]:
    """Token names still present after rendering (useful for logging mismatches)."""
    return _TOKEN_RE.findall(text)


# ============================================================================
# TEMPLATE RENDERING
# ============================================================================

@dataclass(frozen=True)
class RenderedInApp:
    title: str
    message: str
    category: Category
    type: str


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


def render_in_app(template: InAppTemplate, variables: Mapping[str, Any]) -> RenderedInApp:
    return RenderedInApp(
        title=render(template.title, variables),
        message=render(template.message, variables),
        category=template.category,
        type=template.notification_type,
    )


def render_email(template: EmailTemplate, variables: Mapping[str, Any]) -> RenderedEmail:
    """Subject and text get values verbatim; the html body gets them HTML-escaped."""
    escaped = {name: html.escape(format_value(value)) for name, value in variables.items()}
    return RenderedEmail(
        subject=render(template.subject, variables),
        html=render(template.html, escaped),
        text=render(template.text, variables),
    )
