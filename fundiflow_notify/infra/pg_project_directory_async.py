# fundiflow_notify/infra/pg_project_directory_async.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional, Sequence

from fundiflow_notify.core.notifications.deadline_scanner import deadline_window
from fundiflow_notify.core.notifications.domain import ProjectSummary
from fundiflow_notify.core.notifications.ports import ProjectDirectory
from fundiflow_notify.infra.db_resilience_async import safe_db_conn
from fundiflow_notify.infra.logging_config import get_logger
from fundiflow_notify.infra.metrics import NotificationMetrics

logger = get_logger(__name__)


class AsyncPostgresProjectDirectory(ProjectDirectory):
    """Read-only view over the dashboard's ``projects`` table"""

    async def find_approaching_deadlines(
        self, horizon_days: int, now: Optional[datetime] = None
    ) -> Sequence[ProjectSummary]:
        now = now or datetime.now(timezone.utc)
        after, until = deadline_window(now, horizon_days)
        try:
            async with safe_db_conn() as conn:
                rows = await conn.fetch(
                    """
                    SELECT id, name, deadline, status, progress
                    FROM projects
                    WHERE status <> 'completed'
                      AND deadline IS NOT NULL
                      AND deadline > $1
                      AND deadline <= $2
                    ORDER BY deadline
                    """,
                    after, until,
                )
        except Exception:
            logger.error(f"Failed to query approaching deadlines: horizon={horizon_days}d", exc_info=True)
            NotificationMetrics.database_error("project_deadlines")
            raise

        return [
            ProjectSummary(
                id=r["id"],
                name=r["name"],
                deadline=r["deadline"],
                status=r["status"],
                progress=float(r["progress"]),
            )
            for r in rows
        ]
