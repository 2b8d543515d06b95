# fundiflow_notify/core/notifications/__init__.py
"""
Notification engine: trigger events in, in-app notifications and emails out.

Audience resolution, preference gating, rendering and dispatch live here;
storage and transports are reached through the protocols in ``ports``.
"""
from fundiflow_notify.core.notifications.domain import (
    AnnouncementAudience,
    AnnouncementCreated,
    Category,
    Channel,
    DeadlineApproaching,
    DispatchResult,
    Notification,
    NotificationPreference,
    ProjectAssigned,
    ProjectCreated,
    Role,
    TriggerEvent,
    User,
    WorkSessionCompleted,
)
from fundiflow_notify.core.notifications.errors import (
    ConfigurationError,
    NotificationError,
    TemplateNotFoundError,
    UnknownEventError,
)

__all__ = [
    "AnnouncementAudience",
    "AnnouncementCreated",
    "Category",
    "Channel",
    "DeadlineApproaching",
    "DispatchResult",
    "Notification",
    "NotificationPreference",
    "ProjectAssigned",
    "ProjectCreated",
    "Role",
    "TriggerEvent",
    "User",
    "WorkSessionCompleted",
    "ConfigurationError",
    "NotificationError",
    "TemplateNotFoundError",
    "UnknownEventError",
]
