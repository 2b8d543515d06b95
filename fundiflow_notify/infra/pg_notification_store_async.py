# fundiflow_notify/infra/pg_notification_store_async.py
from __future__ import annotations
import json
import uuid
from typing import Sequence

from fundiflow_notify.core.notifications.domain import Category, Notification
from fundiflow_notify.core.notifications.ports import NotificationInbox
from fundiflow_notify.infra.db_resilience_async import safe_db_conn
from fundiflow_notify.infra.logging_config import get_logger
from fundiflow_notify.infra.metrics import NotificationMetrics

logger = get_logger(__name__)

_COLUMNS = "id::text AS id, user_id, type, title, message, category, is_read, metadata::text AS metadata, created_at, updated_at"


def _row_count(status: str) -> int:
    # asyncpg execute returns e.g. "UPDATE 3"
    return int(status.split()[-1]) if status else 0


def _valid_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, TypeError):
        return False
    return True


def _row_to_notification(row) -> Notification:
    try:
        category = Category(row["category"])
    except ValueError:
        category = Category.SYSTEM
    return Notification(
        id=row["id"],
        user_id=row["user_id"],
        type=row["type"],
        title=row["title"],
        message=row["message"],
        category=category,
        is_read=row["is_read"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        metadata=json.loads(row["metadata"] or "{}"),
    )


class AsyncPostgresNotificationStore(NotificationInbox):
    """In-app notification records plus the inbox queries the UI needs"""

    async def create(self, notification: Notification) -> str:
        try:
            async with safe_db_conn() as conn:
                notification_id = await conn.fetchval(
                    """
                    INSERT INTO notifications(user_id, type, title, message, category, is_read, metadata,
                                              created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8, $9)
                    RETURNING id::text
                    """,
                    notification.user_id,
                    notification.type,
                    notification.title,
                    notification.message,
                    notification.category.value,
                    notification.is_read,
                    json.dumps(notification.metadata, default=str),
                    notification.created_at,
                    notification.updated_at,
                )
        except Exception:
            logger.error("Failed to create notification", extra={"user_id": notification.user_id}, exc_info=True)
            NotificationMetrics.database_error("notification_create")
            raise
        notification.id = notification_id
        return notification_id

    async def list_for_user(self, user_id: str, limit: int = 50, unread_only: bool = False) -> Sequence[Notification]:
        query = f"SELECT {_COLUMNS} FROM notifications WHERE user_id=$1"
        if unread_only:
            query += " AND is_read = false"
        query += " ORDER BY created_at DESC LIMIT $2"
        try:
            async with safe_db_conn() as conn:
                rows = await conn.fetch(query, user_id, limit)
        except Exception:
            logger.error("Failed to list notifications", extra={"user_id": user_id}, exc_info=True)
            NotificationMetrics.database_error("notification_list")
            raise
        return [_row_to_notification(r) for r in rows]

    async def unread_count(self, user_id: str) -> int:
        try:
            async with safe_db_conn() as conn:
                return await conn.fetchval(
                    "SELECT COUNT(*) FROM notifications WHERE user_id=$1 AND is_read = false",
                    user_id,
                )
        except Exception:
            logger.error("Failed to count unread notifications", extra={"user_id": user_id}, exc_info=True)
            NotificationMetrics.database_error("notification_unread_count")
            raise

    async def mark_read(self, notification_id: str) -> bool:
        if not _valid_uuid(notification_id):
            return False
        try:
            async with safe_db_conn() as conn:
                status = await conn.execute(
                    "UPDATE notifications SET is_read = true, updated_at = now() WHERE id=$1::uuid",
                    notification_id,
                )
        except Exception:
            logger.error(f"Failed to mark notification read: id={notification_id}", exc_info=True)
            NotificationMetrics.database_error("notification_mark_read")
            raise
        return _row_count(status) > 0

    async def mark_all_read(self, user_id: str) -> int:
        try:
            async with safe_db_conn() as conn:
                status = await conn.execute(
                    "UPDATE notifications SET is_read = true, updated_at = now() "
                    "WHERE user_id=$1 AND is_read = false",
                    user_id,
                )
        except Exception:
            logger.error("Failed to mark all notifications read", extra={"user_id": user_id}, exc_info=True)
            NotificationMetrics.database_error("notification_mark_all_read")
            raise
        return _row_count(status)

    async def delete(self, notification_id: str) -> bool:
        if not _valid_uuid(notification_id):
            return False
        try:
            async with safe_db_conn() as conn:
                status = await conn.execute("DELETE FROM notifications WHERE id=$1::uuid", notification_id)
        except Exception:
            logger.error(f"Failed to delete notification: id={notification_id}", exc_info=True)
            NotificationMetrics.database_error("notification_delete")
            raise
        return _row_count(status) > 0
