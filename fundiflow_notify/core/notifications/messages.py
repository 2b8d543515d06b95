# fundiflow_notify/core/notifications/messages.py
"""
Per-event content builders.

Each trigger event maps to a builder that, for one resolved recipient,
picks the in-app and email template keys and assembles the variable map
and in-app metadata.  The recipient's display name is filled in later by
the email sink (it is only known once the user record is loaded), under
the variable names listed in ``recipient_name_keys``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Mapping, Tuple, Type

from fundiflow_notify.core.notifications import templates as tpl
from fundiflow_notify.core.notifications.domain import (
    AnnouncementCreated,
    DeadlineApproaching,
    ProjectAssigned,
    ProjectCreated,
    Recipient,
    TriggerEvent,
    WorkSessionCompleted,
)
from fundiflow_notify.core.notifications.errors import UnknownEventError

ANNOUNCEMENT_PREVIEW_CHARS = 150
DEFAULT_SESSION_NOTES = "No additional notes provided."

ASSEMBLER_DEADLINE_ACTION = ("Please ensure your work is completed on time.", "View Project")
ADMIN_DEADLINE_ACTION = ("Please review the project status and take necessary actions.", "Manage Project")


@dataclass(frozen=True)
class RecipientMessage:
    in_app_key: str
    email_key: str
    variables: Mapping[str, Any]
    metadata: Mapping[str, Any] = field(default_factory=dict)
    recipient_name_keys: Tuple[str, ...] = ("recipientName",)


def format_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def project_path(project_id: str) -> str:
    return f"/dashboard/projects/{project_id}"


def announcement_path(announcement_id: str) -> str:
    return f"/dashboard/announcements/{announcement_id}"


def _absolute(app_url: str, path: str) -> str:
    return f"{app_url.rstrip('/')}{path}"


# ============================================================================
# BUILDERS
# ============================================================================

def _project_created(event: ProjectCreated, recipient: Recipient, app_url: str, now: datetime) -> RecipientMessage:
    path = project_path(event.project_id)
    return RecipientMessage(
        in_app_key=tpl.PROJECT_CREATED_FOR_ASSEMBLERS,
        email_key=tpl.PROJECT_CREATED_FOR_ASSEMBLERS,
        variables={
            "projectName": event.project_name,
            "createdDate": format_date(now),
            "actionUrl": _absolute(app_url, path),
        },
        metadata={"project_id": event.project_id, "action_url": path, "action_label": "View Project"},
        recipient_name_keys=("assemblerName", "recipientName"),
    )


def _project_assigned(event: ProjectAssigned, recipient: Recipient, app_url: str, now: datetime) -> RecipientMessage:
    path = project_path(event.project_id)
    return RecipientMessage(
        in_app_key=tpl.PROJECT_ASSIGNED_TO_ASSEMBLER,
        email_key=tpl.PROJECT_ASSIGNED_TO_ASSEMBLER,
        variables={
            "projectName": event.project_name,
            "assemblerName": event.assembler_name,
            "assignedDate": format_date(now),
            "actionUrl": _absolute(app_url, path),
        },
        metadata={"project_id": event.project_id, "action_url": path, "action_label": "View Assignment"},
    )


def _work_session_completed(
    event: WorkSessionCompleted, recipient: Recipient, app_url: str, now: datetime
) -> RecipientMessage:
    path = project_path(event.project_id)
    return RecipientMessage(
        in_app_key=tpl.WORK_SESSION_COMPLETED,
        email_key=tpl.WORK_SESSION_COMPLETED,
        variables={
            "projectName": event.project_name,
            "assemblerName": event.assembler_name,
            "duration": event.duration,
            "progress": event.progress,
            "completedDate": format_date(now),
            "notes": event.notes or DEFAULT_SESSION_NOTES,
            "actionUrl": _absolute(app_url, path),
        },
        metadata={"project_id": event.project_id, "action_url": path, "action_label": "View Details"},
    )


def _deadline_approaching(
    event: DeadlineApproaching, recipient: Recipient, app_url: str, now: datetime
) -> RecipientMessage:
    path = project_path(event.project_id)
    if recipient.is_assembler:
        in_app_key = tpl.PROJECT_DEADLINE_APPROACHING_ASSEMBLERS
        action_message, action_button = ASSEMBLER_DEADLINE_ACTION
    else:
        in_app_key = tpl.PROJECT_DEADLINE_APPROACHING_LEADS
        action_message, action_button = ADMIN_DEADLINE_ACTION

    return RecipientMessage(
        in_app_key=in_app_key,
        email_key=tpl.PROJECT_DEADLINE_APPROACHING,
        variables={
            "projectName": event.project_name,
            "days": event.days_remaining,
            "progress": event.current_progress,
            "deadlineDate": format_date(now + timedelta(days=event.days_remaining)),
            "actionMessage": action_message,
            "actionButtonText": action_button,
            "actionUrl": _absolute(app_url, path),
        },
        metadata={
            "project_id": event.project_id,
            "days_remaining": event.days_remaining,
            "action_url": path,
            "action_label": action_button,
        },
    )


def _announcement_created(
    event: AnnouncementCreated, recipient: Recipient, app_url: str, now: datetime
) -> RecipientMessage:
    path = announcement_path(event.announcement_id)
    return RecipientMessage(
        in_app_key=tpl.NEW_ANNOUNCEMENT,
        email_key=tpl.NEW_ANNOUNCEMENT,
        variables={
            "announcementTitle": event.title,
            "announcementPreview": event.content[:ANNOUNCEMENT_PREVIEW_CHARS],
            "actionUrl": _absolute(app_url, path),
        },
        metadata={
            "announcement_id": event.announcement_id,
            "action_url": path,
            "action_label": "Read Announcement",
        },
    )


Builder = Callable[[Any, Recipient, str, datetime], RecipientMessage]

_BUILDERS: Dict[Type[TriggerEvent], Builder] = {
    ProjectCreated: _project_created,
    ProjectAssigned: _project_assigned,
    WorkSessionCompleted: _work_session_completed,
    DeadlineApproaching: _deadline_approaching,
    AnnouncementCreated: _announcement_created,
}

# Every template key a builder can emit; checked against the registry at startup
IN_APP_KEYS = (
    tpl.PROJECT_CREATED_FOR_ASSEMBLERS,
    tpl.PROJECT_ASSIGNED_TO_ASSEMBLER,
    tpl.WORK_SESSION_COMPLETED,
    tpl.PROJECT_DEADLINE_APPROACHING_ASSEMBLERS,
    tpl.PROJECT_DEADLINE_APPROACHING_LEADS,
    tpl.NEW_ANNOUNCEMENT,
)
EMAIL_KEYS = (
    tpl.PROJECT_CREATED_FOR_ASSEMBLERS,
    tpl.PROJECT_ASSIGNED_TO_ASSEMBLER,
    tpl.WORK_SESSION_COMPLETED,
    tpl.PROJECT_DEADLINE_APPROACHING,
    tpl.NEW_ANNOUNCEMENT,
)


def supports(event: object) -> bool:
    return type(event) in _BUILDERS


def build_message(event: TriggerEvent, recipient: Recipient, *, app_url: str, now: datetime) -> RecipientMessage:
    builder = _BUILDERS.get(type(event))
    if builder is None:
        raise UnknownEventError(event)
    return builder(event, recipient, app_url, now)
