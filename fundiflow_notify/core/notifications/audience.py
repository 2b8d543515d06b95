# fundiflow_notify/core/notifications/audience.py
from __future__ import annotations

from typing import Iterable, List, Optional

from fundiflow_notify.core.notifications.domain import (
    AnnouncementAudience,
    AnnouncementCreated,
    DeadlineApproaching,
    ProjectAssigned,
    ProjectCreated,
    Recipient,
    Role,
    TriggerEvent,
    WorkSessionCompleted,
)
from fundiflow_notify.core.notifications.errors import UnknownEventError
from fundiflow_notify.core.notifications.ports import UserDirectory


def _dedupe(recipients: Iterable[Recipient], exclude: Optional[str] = None) -> List[Recipient]:
    """Keep first occurrence of each user id, dropping ``exclude``."""
    seen: set[str] = set()
    out: List[Recipient] = []
    for r in recipients:
        if not r.user_id or r.user_id in seen or r.user_id == exclude:
            continue
        seen.add(r.user_id)
        out.append(r)
    return out


class AudienceResolver:
    """
    Turns a trigger event into the ordered, distinct list of recipients.

    Project broadcasts go to every assembler, actor included.  Only
    announcements exclude the acting user.
    """

    def __init__(self, users: UserDirectory):
        self._users = users

    async def _by_role(self, role: Role) -> List[Recipient]:
        users = await self._users.find_by_role(role)
        return [
            Recipient(user_id=u.id, is_assembler=role is Role.ASSEMBLER, user=u)
            for u in users
        ]

    async def resolve(self, event: TriggerEvent) -> List[Recipient]:
        if isinstance(event, ProjectCreated):
            return _dedupe(await self._by_role(Role.ASSEMBLER))

        if isinstance(event, ProjectAssigned):
            return _dedupe([Recipient(user_id=event.assembler_id, is_assembler=True)])

        if isinstance(event, WorkSessionCompleted):
            return _dedupe([Recipient(user_id=event.project_lead_id, is_assembler=False)])

        if isinstance(event, DeadlineApproaching):
            assemblers = await self._by_role(Role.ASSEMBLER)
            admins = await self._by_role(Role.ADMIN)
            return _dedupe(assemblers + admins)

        if isinstance(event, AnnouncementCreated):
            recipients: List[Recipient] = []
            if event.audience in (AnnouncementAudience.ALL, AnnouncementAudience.ASSEMBLERS):
                recipients += await self._by_role(Role.ASSEMBLER)
            if event.audience in (AnnouncementAudience.ALL, AnnouncementAudience.LEADS):
                recipients += await self._by_role(Role.ADMIN)
            return _dedupe(recipients, exclude=event.actor_id)

        raise UnknownEventError(event)
