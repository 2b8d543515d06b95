# fundiflow_notify/infra/pg_preference_store_async.py
from __future__ import annotations
import json
from typing import Optional

from fundiflow_notify.core.notifications.domain import NotificationPreference
from fundiflow_notify.core.notifications.ports import PreferenceStore
from fundiflow_notify.infra.db_resilience_async import safe_db_conn
from fundiflow_notify.infra.logging_config import get_logger
from fundiflow_notify.infra.metrics import NotificationMetrics

logger = get_logger(__name__)


class AsyncPostgresPreferenceStore(PreferenceStore):
    """Preferences stored as one JSON document per user"""

    async def get(self, user_id: str) -> Optional[NotificationPreference]:
        try:
            async with safe_db_conn() as conn:
                raw = await conn.fetchval(
                    "SELECT prefs_json::text FROM notification_preferences WHERE user_id=$1",
                    user_id,
                )
        except Exception:
            logger.error("Failed to get preferences", extra={"user_id": user_id}, exc_info=True)
            NotificationMetrics.database_error("preference_get")
            raise

        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Malformed preference document, using defaults", extra={"user_id": user_id})
            data = None
        return NotificationPreference.from_dict(user_id, data)

    async def upsert(self, pref: NotificationPreference) -> None:
        try:
            async with safe_db_conn() as conn:
                await conn.execute(
                    """
                    INSERT INTO notification_preferences(user_id, prefs_json)
                    VALUES ($1, $2::jsonb)
                    ON CONFLICT (user_id)
                    DO UPDATE SET
                      prefs_json = EXCLUDED.prefs_json,
                      updated_at = now()
                    """,
                    pref.user_id, json.dumps(pref.to_dict()),
                )
        except Exception:
            logger.error("Failed to upsert preferences", extra={"user_id": pref.user_id}, exc_info=True)
            NotificationMetrics.database_error("preference_upsert")
            raise
