# fundiflow_notify/core/notifications/ports.py
from __future__ import annotations
from datetime import datetime
from typing import Protocol, Optional, Sequence

from fundiflow_notify.core.notifications.domain import (
    Notification,
    NotificationPreference,
    ProjectSummary,
    Role,
    User,
)


# ============================================================================
# REPOSITORIES (read side owned by external collaborators)
# ============================================================================

class UserDirectory(Protocol):
    async def find_by_role(self, role: Role) -> Sequence[User]: ...
    async def find_by_id(self, user_id: str) -> Optional[User]: ...


class ProjectDirectory(Protocol):
    async def find_approaching_deadlines(
        self, horizon_days: int, now: Optional[datetime] = None
    ) -> Sequence[ProjectSummary]:
        """Projects not yet completed whose deadline falls within ``horizon_days`` of ``now``."""
        ...


# ============================================================================
# REPOSITORIES (owned by this service)
# ============================================================================

class PreferenceStore(Protocol):
    async def get(self, user_id: str) -> Optional[NotificationPreference]:
        """None => no record yet (caller applies defaults)"""
        ...

    async def upsert(self, pref: NotificationPreference) -> None: ...


class NotificationStore(Protocol):
    async def create(self, notification: Notification) -> str:
        """Persist and return the new notification id."""
        ...


class NotificationInbox(NotificationStore, Protocol):
    """Read/mutate side used by the inbox endpoints."""

    async def list_for_user(
        self, user_id: str, limit: int = 50, unread_only: bool = False
    ) -> Sequence[Notification]: ...

    async def unread_count(self, user_id: str) -> int: ...
    async def mark_read(self, notification_id: str) -> bool: ...
    async def mark_all_read(self, user_id: str) -> int: ...
    async def delete(self, notification_id: str) -> bool: ...
