# fundiflow_notify/core/notifications/triggers.py
"""
Entry points called by the CRUD layer after it commits a change.

Each ``on_*`` method builds the matching trigger event and passes it to the
dispatcher.  With a ``DispatchPool`` the call only schedules the dispatch
and returns None; without one it awaits and returns the DispatchResult.
Either way a delivery problem never raises into the business operation.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from fundiflow_notify.core.notifications.domain import (
    AnnouncementAudience,
    AnnouncementCreated,
    DeadlineApproaching,
    DispatchResult,
    ProjectAssigned,
    ProjectCreated,
    TriggerEvent,
    WorkSessionCompleted,
)
from fundiflow_notify.infra.logging_config import get_logger

if TYPE_CHECKING:
    from fundiflow_notify.core.notifications.dispatcher import Dispatcher
    from fundiflow_notify.infra.dispatch_pool import DispatchPool

logger = get_logger(__name__)


class NotificationTriggers:
    def __init__(self, dispatcher: "Dispatcher", pool: Optional["DispatchPool"] = None):
        self._dispatcher = dispatcher
        self._pool = pool

    async def fire(self, event: TriggerEvent) -> Optional[DispatchResult]:
        if self._pool is not None:
            self._pool.submit(event)
            return None
        return await self._dispatcher.dispatch(event)

    async def on_project_created(
        self, project_id: str, project_name: str, actor_id: str | None = None
    ) -> Optional[DispatchResult]:
        return await self.fire(ProjectCreated(project_id, project_name, actor_id))

    async def on_project_assigned(
        self,
        project_id: str,
        project_name: str,
        assembler_id: str,
        assembler_name: str,
        actor_id: str | None = None,
    ) -> Optional[DispatchResult]:
        return await self.fire(
            ProjectAssigned(project_id, project_name, assembler_id, assembler_name, actor_id)
        )

    async def on_work_session_completed(
        self,
        project_id: str,
        project_name: str,
        project_lead_id: str,
        assembler_name: str,
        duration: float,
        progress: float,
        notes: str | None = None,
    ) -> Optional[DispatchResult]:
        return await self.fire(
            WorkSessionCompleted(
                project_id, project_name, project_lead_id, assembler_name, duration, progress, notes
            )
        )

    async def on_deadline_approaching(
        self, project_id: str, project_name: str, days_remaining: int, current_progress: float = 0
    ) -> Optional[DispatchResult]:
        return await self.fire(
            DeadlineApproaching(project_id, project_name, days_remaining, current_progress)
        )

    async def on_announcement_created(
        self,
        announcement_id: str,
        title: str,
        content: str,
        actor_id: str | None = None,
        audience: AnnouncementAudience = AnnouncementAudience.ALL,
    ) -> Optional[DispatchResult]:
        return await self.fire(
            AnnouncementCreated(announcement_id, title, content, actor_id, AnnouncementAudience(audience))
        )
