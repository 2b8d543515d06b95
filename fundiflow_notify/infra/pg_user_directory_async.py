# fundiflow_notify/infra/pg_user_directory_async.py
from __future__ import annotations
from typing import Optional, Sequence

from fundiflow_notify.core.notifications.domain import Role, User
from fundiflow_notify.core.notifications.ports import UserDirectory
from fundiflow_notify.infra.db_resilience_async import safe_db_conn
from fundiflow_notify.infra.logging_config import get_logger
from fundiflow_notify.infra.metrics import NotificationMetrics

logger = get_logger(__name__)


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        role=Role(row["role"]),
        email=row["email"],
        display_name=row["display_name"],
    )


class AsyncPostgresUserDirectory(UserDirectory):
    """Read-only view over the dashboard's ``users`` table"""

    async def find_by_role(self, role: Role) -> Sequence[User]:
        try:
            async with safe_db_conn() as conn:
                rows = await conn.fetch(
                    "SELECT id, role, email, display_name FROM users WHERE role=$1 ORDER BY created_at, id",
                    Role(role).value,
                )
        except Exception:
            logger.error(f"Failed to list users: role={role}", exc_info=True)
            NotificationMetrics.database_error("user_find_by_role")
            raise
        return [_row_to_user(r) for r in rows]

    async def find_by_id(self, user_id: str) -> Optional[User]:
        try:
            async with safe_db_conn() as conn:
                row = await conn.fetchrow(
                    "SELECT id, role, email, display_name FROM users WHERE id=$1",
                    user_id,
                )
        except Exception:
            logger.error("Failed to load user", extra={"user_id": user_id}, exc_info=True)
            NotificationMetrics.database_error("user_find_by_id")
            raise
        return _row_to_user(row) if row else None
