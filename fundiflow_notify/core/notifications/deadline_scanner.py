# fundiflow_notify/core/notifications/deadline_scanner.py
"""
Deadline scanner: turns approaching project deadlines into
``DeadlineApproaching`` dispatches.

``DeadlineScanner.scan()`` is one pass and is meant to be scheduled from
outside (cron, ``POST /jobs/deadline-scan`` or
``python -m fundiflow_notify.scan_deadlines``).  ``DeadlineScannerWorker``
runs the same pass on an interval inside the service process.

There is no record of what was already sent: every pass re-notifies each
project still inside the horizon.
"""
from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List

from fundiflow_notify.core.notifications.dispatcher import Dispatcher
from fundiflow_notify.core.notifications.domain import DeadlineApproaching, DispatchResult, ProjectSummary
from fundiflow_notify.core.notifications.ports import ProjectDirectory
from fundiflow_notify.infra.logging_config import get_logger
from fundiflow_notify.infra.metrics import inc_counter

logger = get_logger(__name__)

SECONDS_PER_DAY = 86400


def days_until(deadline: datetime, now: datetime) -> int:
    """Whole days left, rounded up: 1.2 days -> 2."""
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=timezone.utc)
    return math.ceil((deadline - now).total_seconds() / SECONDS_PER_DAY)


def deadline_window(now: datetime, horizon_days: int) -> tuple[datetime, datetime]:
    """
    ``(after, until)`` bounds for deadlines the scanner reports: ``after < deadline <= until``.

    Matches ``0 <= days_until(deadline, now) <= horizon_days``, so a deadline
    that passed less than a day ago still counts as due today (0 days).
    """
    return now - timedelta(days=1), now + timedelta(days=horizon_days)


@dataclass
class ScanReport:
    projects_found: int = 0
    notified: int = 0
    results: List[DispatchResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "projects_found": self.projects_found,
            "notified": self.notified,
            "in_app_delivered": sum(r.in_app_delivered for r in self.results),
            "email_delivered": sum(r.email_delivered for r in self.results),
        }


class DeadlineScanner:
    def __init__(
        self,
        projects: ProjectDirectory,
        dispatcher: Dispatcher,
        horizon_days: int = 3,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._projects = projects
        self._dispatcher = dispatcher
        self._horizon_days = horizon_days
        self._clock = clock

    def event_for(self, project: ProjectSummary, now: datetime) -> DeadlineApproaching | None:
        if project.is_completed:
            return None
        days = days_until(project.deadline, now)
        if days < 0 or days > self._horizon_days:
            return None
        return DeadlineApproaching(
            project_id=project.id,
            project_name=project.name,
            days_remaining=days,
            current_progress=project.progress,
        )

    async def scan(self, now: datetime | None = None) -> ScanReport:
        now = now or self._clock()
        projects = await self._projects.find_approaching_deadlines(self._horizon_days, now)
        report = ScanReport(projects_found=len(projects))

        for project in projects:
            event = self.event_for(project, now)
            if event is None:
                continue
            result = await self._dispatcher.dispatch(event)
            report.notified += 1
            report.results.append(result)
            logger.info(
                f"Deadline reminder dispatched: project={project.id} days={event.days_remaining}",
                extra={"event_type": event.event_type},
            )

        inc_counter("deadline_scans_total")
        inc_counter("deadline_projects_notified_total", report.notified)
        logger.info(f"Deadline scan complete: found={report.projects_found} notified={report.notified}")
        return report


class DeadlineScannerWorker:
    """
    Runs ``DeadlineScanner.scan`` every ``interval`` seconds.

    Usage:
        worker = DeadlineScannerWorker(scanner, interval=86400)
        await worker.start()
        ...
        await worker.stop()
    """

    def __init__(self, scanner: DeadlineScanner, *, interval: float = 86400.0):
        self._scanner = scanner
        self._interval = interval
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="deadline_scanner")
        self._task.add_done_callback(self._on_task_done)
        logger.info(f"Deadline scanner started: interval={self._interval}s")

    async def stop(self) -> None:
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Deadline scanner stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self._scanner.scan()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(f"Deadline scan failed: {exc}", exc_info=True)
                inc_counter("deadline_scan_errors_total")
            await asyncio.sleep(self._interval)

    @staticmethod
    def _on_task_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error(
                f"Deadline scanner task died unexpectedly: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
