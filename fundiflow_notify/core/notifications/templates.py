# fundiflow_notify/core/notifications/templates.py
"""
Static notification templates.

Two independent tables, both keyed by template key:

* in-app templates: title/message patterns plus category and priority
* email templates: subject/html/text patterns

``TemplateRegistry`` wraps both tables in read-only mappings.  It is built
once at startup (``default_registry()``) and handed to the dispatcher, which
calls ``require()`` for every key it can emit so a broken template set fails
at construction, not mid-dispatch.
"""
from __future__ import annotations

from dataclasses import dataclass
from textwrap import dedent
from types import MappingProxyType
from typing import Iterable, Mapping

from fundiflow_notify.core.notifications.domain import Category, Priority
from fundiflow_notify.core.notifications.errors import ConfigurationError, TemplateNotFoundError


@dataclass(frozen=True)
class InAppTemplate:
    title: str
    message: str
    category: Category
    priority: Priority = Priority.MEDIUM

    @property
    def notification_type(self) -> str:
        """Severity shown by the UI badge."""
        if self.priority is Priority.HIGH:
            return "warning"
        if self.priority is Priority.LOW:
            return "info"
        return "success"


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    html: str
    text: str


# ============================================================================
# TEMPLATE KEYS
# ============================================================================

PROJECT_CREATED_FOR_ASSEMBLERS = "PROJECT_CREATED_FOR_ASSEMBLERS"
PROJECT_ASSIGNED_TO_ASSEMBLER = "PROJECT_ASSIGNED_TO_ASSEMBLER"
WORK_SESSION_COMPLETED = "WORK_SESSION_COMPLETED"
PROJECT_DEADLINE_APPROACHING = "PROJECT_DEADLINE_APPROACHING"
PROJECT_DEADLINE_APPROACHING_ASSEMBLERS = "PROJECT_DEADLINE_APPROACHING_ASSEMBLERS"
PROJECT_DEADLINE_APPROACHING_LEADS = "PROJECT_DEADLINE_APPROACHING_LEADS"
NEW_ANNOUNCEMENT = "NEW_ANNOUNCEMENT"
EMAIL_TEST = "EMAIL_TEST"


# ============================================================================
# IN-APP
# ============================================================================

IN_APP_TEMPLATES: dict[str, InAppTemplate] = {
    PROJECT_CREATED_FOR_ASSEMBLERS: InAppTemplate(
        title="New Project Available",
        message='A new project "{projectName}" has been created and is available for assignment.',
        category=Category.PROJECT,
        priority=Priority.MEDIUM,
    ),
    PROJECT_ASSIGNED_TO_ASSEMBLER: InAppTemplate(
        title="Project Assigned to You",
        message=(
            'You have been assigned to work on project "{projectName}". '
            "Please review the project details and start your work session."
        ),
        category=Category.PROJECT,
        priority=Priority.HIGH,
    ),
    WORK_SESSION_COMPLETED: InAppTemplate(
        title="Work Session Completed",
        message=(
            '{assemblerName} has completed a work session on project "{projectName}". '
            "Duration: {duration} hours. Progress: {progress}%"
        ),
        category=Category.WORKER,
        priority=Priority.HIGH,
    ),
    PROJECT_DEADLINE_APPROACHING_ASSEMBLERS: InAppTemplate(
        title="Project Deadline Approaching",
        message=(
            'Project "{projectName}" is due in {days} days. '
            "Please ensure your work is completed on time."
        ),
        category=Category.REMINDER,
        priority=Priority.HIGH,
    ),
    PROJECT_DEADLINE_APPROACHING_LEADS: InAppTemplate(
        title="Project Deadline Alert",
        message=(
            'Project "{projectName}" is due in {days} days. '
            "Current progress: {progress}%. Please review and take necessary actions."
        ),
        category=Category.REMINDER,
        priority=Priority.HIGH,
    ),
    NEW_ANNOUNCEMENT: InAppTemplate(
        title="New Announcement",
        message='New announcement from project lead: "{announcementTitle}". Click to read the full message.',
        category=Category.SYSTEM,
        priority=Priority.MEDIUM,
    ),
}


# ============================================================================
# EMAIL
# ============================================================================

def _block(text: str) -> str:
    return dedent(text).strip("\n")


_BUTTON_STYLE = (
    "background-color: {color}; color: white; padding: 12px 24px; "
    "text-decoration: none; border-radius: 6px; display: inline-block;"
)


def _html(color: str, heading: str, body: str, button: str) -> str:
    style = _BUTTON_STYLE.format(color=color)
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">\n'
        f'  <h2 style="color: {color};">{heading}</h2>\n'
        f"{_block(body)}\n"
        f'  <p>\n    <a href="{{actionUrl}}" style="{style}">\n      {button}\n    </a>\n  </p>\n'
        "  <p>Best regards,<br>FundiFlow Team</p>\n"
        "</div>"
    )


EMAIL_TEMPLATES: dict[str, EmailTemplate] = {
    PROJECT_CREATED_FOR_ASSEMBLERS: EmailTemplate(
        subject="New Project Available - {projectName}",
        html=_html("#2563eb", "🔧 New Project Available", """
              <p>Hello {assemblerName},</p>
              <p>A new project "<strong>{projectName}</strong>" has been created and is now available for assignment.</p>
              <div style="background-color: #f3f4f6; padding: 15px; border-radius: 8px; margin: 20px 0;">
                <h3>Project Details:</h3>
                <ul>
                  <li><strong>Project Name:</strong> {projectName}</li>
                  <li><strong>Created:</strong> {createdDate}</li>
                  <li><strong>Status:</strong> Available for Assignment</li>
                </ul>
              </div>
        """, "View Project Details"),
        text=_block("""
            New Project Available - {projectName}

            Hello {assemblerName},

            A new project "{projectName}" has been created and is now available for assignment.

            Project Details:
            - Project Name: {projectName}
            - Created: {createdDate}
            - Status: Available for Assignment

            View project details: {actionUrl}

            Best regards,
            FundiFlow Team
        """),
    ),
    PROJECT_ASSIGNED_TO_ASSEMBLER: EmailTemplate(
        subject="Project Assigned - {projectName}",
        html=_html("#16a34a", "✅ Project Assigned to You", """
              <p>Hello {assemblerName},</p>
              <p>You have been assigned to work on project "<strong>{projectName}</strong>".</p>
              <div style="background-color: #f0fdf4; padding: 15px; border-radius: 8px; margin: 20px 0; border-left: 4px solid #16a34a;">
                <h3>Assignment Details:</h3>
                <ul>
                  <li><strong>Project:</strong> {projectName}</li>
                  <li><strong>Assigned Date:</strong> {assignedDate}</li>
                  <li><strong>Expected Start:</strong> As soon as possible</li>
                </ul>
              </div>
              <p>Please review the project details and start your work session when ready.</p>
        """, "Start Work Session"),
        text=_block("""
            Project Assigned - {projectName}

            Hello {assemblerName},

            You have been assigned to work on project "{projectName}".

            Assignment Details:
            - Project: {projectName}
            - Assigned Date: {assignedDate}
            - Expected Start: As soon as possible

            Please review the project details and start your work session when ready.

            Start work session: {actionUrl}

            Best regards,
            FundiFlow Team
        """),
    ),
    WORK_SESSION_COMPLETED: EmailTemplate(
        subject="Work Session Completed - {projectName}",
        html=_html("#2563eb", "📋 Work Session Completed", """
              <p>Hello Project Lead,</p>
              <p><strong>{assemblerName}</strong> has completed a work session on project "<strong>{projectName}</strong>".</p>
              <div style="background-color: #eff6ff; padding: 15px; border-radius: 8px; margin: 20px 0; border-left: 4px solid #2563eb;">
                <h3>Session Summary:</h3>
                <ul>
                  <li><strong>Assembler:</strong> {assemblerName}</li>
                  <li><strong>Duration:</strong> {duration} hours</li>
                  <li><strong>Progress:</strong> {progress}%</li>
                  <li><strong>Completed:</strong> {completedDate}</li>
                </ul>
                <p><strong>Notes:</strong> {notes}</p>
              </div>
        """, "Review Work Session"),
        text=_block("""
            Work Session Completed - {projectName}

            Hello Project Lead,

            {assemblerName} has completed a work session on project "{projectName}".

            Session Summary:
            - Assembler: {assemblerName}
            - Duration: {duration} hours
            - Progress: {progress}%
            - Completed: {completedDate}
            - Notes: {notes}

            Review work session: {actionUrl}

            Best regards,
            FundiFlow Team
        """),
    ),
    PROJECT_DEADLINE_APPROACHING: EmailTemplate(
        subject="⚠️ Deadline Alert - {projectName} ({days} days remaining)",
        html=_html("#dc2626", "⚠️ Project Deadline Approaching", """
              <p>Hello {recipientName},</p>
              <p>This is a reminder that project "<strong>{projectName}</strong>" is due in <strong>{days} days</strong>.</p>
              <div style="background-color: #fef2f2; padding: 15px; border-radius: 8px; margin: 20px 0; border-left: 4px solid #dc2626;">
                <h3>Project Status:</h3>
                <ul>
                  <li><strong>Project:</strong> {projectName}</li>
                  <li><strong>Days Remaining:</strong> {days}</li>
                  <li><strong>Current Progress:</strong> {progress}%</li>
                  <li><strong>Deadline:</strong> {deadlineDate}</li>
                </ul>
              </div>
              <p>{actionMessage}</p>
        """, "{actionButtonText}"),
        text=_block("""
            Project Deadline Approaching - {projectName}

            Hello {recipientName},

            This is a reminder that project "{projectName}" is due in {days} days.

            Project Status:
            - Project: {projectName}
            - Days Remaining: {days}
            - Current Progress: {progress}%
            - Deadline: {deadlineDate}

            {actionMessage}

            {actionButtonText}: {actionUrl}

            Best regards,
            FundiFlow Team
        """),
    ),
    NEW_ANNOUNCEMENT: EmailTemplate(
        subject="📢 New Announcement - {announcementTitle}",
        html=_html("#7c3aed", "📢 New Announcement", """
              <p>Hello {recipientName},</p>
              <p>A new announcement has been posted by the project lead.</p>
              <div style="background-color: #faf5ff; padding: 15px; border-radius: 8px; margin: 20px 0; border-left: 4px solid #7c3aed;">
                <h3>{announcementTitle}</h3>
                <p>{announcementPreview}...</p>
              </div>
        """, "Read Full Announcement"),
        text=_block("""
            New Announcement - {announcementTitle}

            Hello {recipientName},

            A new announcement has been posted by the project lead.

            {announcementTitle}
            {announcementPreview}...

            Read full announcement: {actionUrl}

            Best regards,
            FundiFlow Team
        """),
    ),
    EMAIL_TEST: EmailTemplate(
        subject="🧪 FundiFlow Email Test",
        html=_block("""
            <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
              <h2 style="color: #2563eb;">🎉 Email Test Successful!</h2>
              <p>Hello {recipientName},</p>
              <p>This is a test email to verify that your FundiFlow email notifications are working correctly.</p>
              <div style="background-color: #f3f4f6; padding: 15px; border-radius: 8px; margin: 20px 0;">
                <h3>Test Details:</h3>
                <ul>
                  <li><strong>Sent:</strong> {sentAt}</li>
                  <li><strong>Provider:</strong> {provider}</li>
                  <li><strong>Status:</strong> ✅ Working</li>
                </ul>
              </div>
              <p>If you received this email, your notification system is configured correctly!</p>
              <p>Best regards,<br>FundiFlow Team</p>
            </div>
        """),
        text=_block("""
            FundiFlow Email Test

            Hello {recipientName},

            This is a test email to verify that your FundiFlow email notifications are working correctly.

            Test Details:
            - Sent: {sentAt}
            - Provider: {provider}
            - Status: ✅ Working

            If you received this email, your notification system is configured correctly!

            Best regards,
            FundiFlow Team
        """),
    ),
}


# ============================================================================
# REGISTRY
# ============================================================================

class TemplateRegistry:
    """Read-only view over both template tables."""

    def __init__(
        self,
        in_app: Mapping[str, InAppTemplate],
        email: Mapping[str, EmailTemplate],
    ) -> None:
        for key, tpl in in_app.items():
            if not isinstance(tpl, InAppTemplate) or not tpl.title or not tpl.message:
                raise ConfigurationError(f"Malformed in-app template '{key}'")
        for key, tpl in email.items():
            if not isinstance(tpl, EmailTemplate) or not tpl.subject or not (tpl.html or tpl.text):
                raise ConfigurationError(f"Malformed email template '{key}'")

        self._in_app = MappingProxyType(dict(in_app))
        self._email = MappingProxyType(dict(email))

    @property
    def in_app_keys(self) -> frozenset[str]:
        return frozenset(self._in_app)

    @property
    def email_keys(self) -> frozenset[str]:
        return frozenset(self._email)

    def in_app(self, key: str) -> InAppTemplate:
        try:
            return self._in_app[key]
        except KeyError:
            raise TemplateNotFoundError(key, "in-app") from None

    def email(self, key: str) -> EmailTemplate:
        try:
            return self._email[key]
        except KeyError:
            raise TemplateNotFoundError(key, "email") from None

    def require(self, in_app_keys: Iterable[str] = (), email_keys: Iterable[str] = ()) -> None:
        """Raise ``TemplateNotFoundError`` for the first missing key."""
        for key in in_app_keys:
            self.in_app(key)
        for key in email_keys:
            self.email(key)


def default_registry() -> TemplateRegistry:
    return TemplateRegistry(IN_APP_TEMPLATES, EMAIL_TEMPLATES)
