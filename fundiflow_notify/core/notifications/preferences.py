# fundiflow_notify/core/notifications/preferences.py
"""
Preference Store Accessor and Preference Gate.

The accessor is the only place that talks to the ``PreferenceStore``.
The dispatcher uses the read-only path (``get_or_default``) which never
writes and never raises; the settings endpoints use ``get_or_create`` and
``update``.

The gate answers "may this user get this channel for this category right
now".  In-app always passes.  Email requires the master switch, the
category toggle, and that the recipient's local time is outside an enabled
quiet window.  Anything unreadable fails open.
"""
from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fundiflow_notify.core.notifications.domain import (
    Category,
    Channel,
    NotificationPreference,
    QuietHours,
)
from fundiflow_notify.core.notifications.errors import ValidationError
from fundiflow_notify.core.notifications.ports import PreferenceStore
from fundiflow_notify.infra.logging_config import get_logger
from fundiflow_notify.infra.metrics import NotificationMetrics

logger = get_logger(__name__)


def parse_hhmm(value: str) -> Optional[time]:
    """``"22:00"`` -> ``time(22, 0)``; None when malformed."""
    try:
        hours, minutes = str(value).strip().split(":")
        return time(int(hours), int(minutes))
    except (ValueError, TypeError):
        return None


def _resolve_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r}, falling back to UTC")
        return ZoneInfo("UTC")


def in_quiet_window(quiet: QuietHours, local_now: time) -> bool:
    """
    True when ``local_now`` falls in ``[start, end)``.

    Windows where ``start > end`` wrap past midnight.  ``start == end`` and
    malformed bounds are treated as no window at all.
    """
    if not quiet.enabled:
        return False

    start = parse_hhmm(quiet.start)
    end = parse_hhmm(quiet.end)
    if start is None or end is None or start == end:
        return False

    now = local_now.replace(second=0, microsecond=0, tzinfo=None)
    if start < end:
        return start <= now < end
    return now >= start or now < end


# ============================================================================
# ACCESSOR
# ============================================================================

class PreferenceAccessor:
    def __init__(self, store: PreferenceStore):
        self._store = store

    async def get_or_default(self, user_id: str) -> NotificationPreference:
        """Read-only lookup; defaults on a missing record or a store failure."""
        try:
            pref = await self._store.get(user_id)
        except Exception as exc:
            logger.warning(
                f"Preference read failed, using defaults: {type(exc).__name__}",
                extra={"user_id": user_id},
            )
            NotificationMetrics.database_error("preference_get")
            return NotificationPreference.defaults(user_id)

        if pref is None:
            return NotificationPreference.defaults(user_id)
        return pref

    async def get_or_create(self, user_id: str) -> NotificationPreference:
        pref = await self._store.get(user_id)
        if pref is None:
            pref = NotificationPreference.defaults(user_id)
            await self._store.upsert(pref)
            logger.info("Default notification preferences created", extra={"user_id": user_id})
        return pref

    async def update(self, user_id: str, changes: Dict[str, Any]) -> NotificationPreference:
        """Apply a partial update and persist it."""
        current = await self.get_or_create(user_id)
        merged = current.to_dict()

        for key, value in changes.items():
            if value is None:
                continue
            if key in ("categories", "quiet_hours") and isinstance(value, dict):
                merged[key] = {**merged[key], **value}
            elif key in merged and key != "user_id":
                merged[key] = value
            else:
                raise ValidationError(f"Unknown preference field: {key}")

        quiet = merged["quiet_hours"]
        for bound in ("start", "end"):
            if parse_hhmm(quiet.get(bound, "")) is None:
                raise ValidationError(f"quiet_hours.{bound} must be HH:MM")

        try:
            ZoneInfo(merged["timezone"])
        except (ZoneInfoNotFoundError, ValueError, TypeError):
            raise ValidationError(f"Unknown timezone: {merged['timezone']}") from None

        updated = NotificationPreference.from_dict(user_id, merged)
        await self._store.upsert(updated)
        return updated


# ============================================================================
# GATE
# ============================================================================

class PreferenceGate:
    def __init__(
        self,
        accessor: PreferenceAccessor,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._accessor = accessor
        self._clock = clock

    def evaluate(self, pref: NotificationPreference, category: Category, channel: Channel) -> bool:
        if channel is Channel.IN_APP:
            return True

        if not pref.allows_email(category):
            return False

        local_now = self._clock().astimezone(_resolve_zone(pref.timezone)).time()
        if in_quiet_window(pref.quiet_hours, local_now):
            logger.info(
                f"Email suppressed by quiet hours ({pref.quiet_hours.start}-{pref.quiet_hours.end} {pref.timezone})",
                extra={"user_id": pref.user_id, "channel": channel.value},
            )
            return False

        return True

    async def allows(self, user_id: str, category: Category, channel: Channel) -> bool:
        if channel is Channel.IN_APP:
            return True
        pref = await self._accessor.get_or_default(user_id)
        return self.evaluate(pref, category, channel)
