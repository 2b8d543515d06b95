# tests/test_renderer.py
"""Tests for placeholder substitution and template rendering."""
from __future__ import annotations

from fundiflow_notify.core.notifications.domain import Category, Priority
from fundiflow_notify.core.notifications.renderer import (
    format_value,
    render,
    render_email,
    render_in_app,
    unresolved_tokens,
)
from fundiflow_notify.core.notifications.templates import EmailTemplate, InAppTemplate


class TestRender:
    def test_substitutes_known_tokens(self):
        assert render('Project "{projectName}" is due in {days} days', {"projectName": "Kitchen", "days": 2}) == (
            'Project "Kitchen" is due in 2 days'
        )

    def test_unknown_token_left_verbatim(self):
        assert render("Hello {recipientName}", {}) == "Hello {recipientName}"

    def test_tokens_are_case_sensitive(self):
        assert render("{ProjectName}", {"projectName": "x"}) == "{ProjectName}"

    def test_repeated_token(self):
        assert render("{a}-{a}", {"a": "z"}) == "z-z"

    def test_value_with_braces_not_rescanned(self):
        out = render("{title} / {other}", {"title": "{other}", "other": "X"})
        assert out == "{other} / X"

    def test_no_tokens(self):
        assert render("plain text", {"unused": 1}) == "plain text"

    def test_empty_variables_returns_pattern(self):
        pattern = "Due {deadlineDate} ({days} days)"
        assert render(pattern, {}) == pattern

    def test_unresolved_tokens(self):
        assert unresolved_tokens(render("{a} {b} {c}", {"b": 1})) == ["a", "c"]


class TestFormatValue:
    def test_none_is_empty(self):
        assert format_value(None) == ""

    def test_integral_float_has_no_fraction(self):
        assert format_value(4.0) == "4"

    def test_fractional_float_kept(self):
        assert format_value(2.5) == "2.5"

    def test_bool(self):
        assert format_value(True) == "true"
        assert format_value(False) == "false"

    def test_int_and_str(self):
        assert format_value(60) == "60"
        assert format_value("x") == "x"


class TestRenderTemplates:
    def test_render_in_app_carries_category_and_type(self):
        tpl = InAppTemplate(
            title="Alert {x}", message="Body {y}", category=Category.REMINDER, priority=Priority.HIGH
        )
        rendered = render_in_app(tpl, {"x": 1, "y": "two"})
        assert rendered.title == "Alert 1"
        assert rendered.message == "Body two"
        assert rendered.category is Category.REMINDER
        assert rendered.type == "warning"

    def test_in_app_type_from_priority(self):
        low = InAppTemplate("t", "m", Category.SYSTEM, Priority.LOW)
        medium = InAppTemplate("t", "m", Category.SYSTEM, Priority.MEDIUM)
        assert render_in_app(low, {}).type == "info"
        assert render_in_app(medium, {}).type == "success"

    def test_render_email_all_parts(self):
        tpl = EmailTemplate(subject="S {a}", html="<p>{a}</p>", text="T {a}")
        rendered = render_email(tpl, {"a": "v"})
        assert (rendered.subject, rendered.html, rendered.text) == ("S v", "<p>v</p>", "T v")

    def test_render_email_escapes_html_body_only(self):
        tpl = EmailTemplate(subject="New: {name}", html="<h2>{name}</h2>", text="Project {name}")
        rendered = render_email(tpl, {"name": "<script>alert(1)</script> & co"})
        assert rendered.html == "<h2>&lt;script&gt;alert(1)&lt;/script&gt; &amp; co</h2>"
        assert rendered.subject == "New: <script>alert(1)</script> & co"
        assert rendered.text == "Project <script>alert(1)</script> & co"
