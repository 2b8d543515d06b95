# tests/conftest.py
"""Pytest configuration, in-memory repositories and fixtures"""
from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from fundiflow_notify.core.notifications.domain import (
    EmailRecipient,
    Notification,
    NotificationPreference,
    ProjectSummary,
    Role,
    User,
)
from fundiflow_notify.infra.email_transports import EmailTransport
from fundiflow_notify.infra.metrics import get_metrics_collector

FIXED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# FAKE REPOSITORIES
# ============================================================================

class InMemoryUserDirectory:
    def __init__(self, users: list[User] | None = None):
        self.users: dict[str, User] = {u.id: u for u in users or []}
        self.fail = False
        self.role_lookups = 0

    def add(self, user: User) -> User:
        self.users[user.id] = user
        return user

    async def find_by_role(self, role: Role):
        self.role_lookups += 1
        if self.fail:
            raise ConnectionError("directory down")
        return [u for u in self.users.values() if u.role is role]

    async def find_by_id(self, user_id: str):
        if self.fail:
            raise ConnectionError("directory down")
        return self.users.get(user_id)


class InMemoryPreferenceStore:
    def __init__(self):
        self.records: dict[str, NotificationPreference] = {}
        self.fail_reads = False
        self.upserts = 0

    async def get(self, user_id: str):
        if self.fail_reads:
            raise ConnectionError("preferences unavailable")
        return self.records.get(user_id)

    async def upsert(self, pref: NotificationPreference) -> None:
        self.upserts += 1
        self.records[pref.user_id] = pref


class InMemoryNotificationStore:
    def __init__(self):
        self.items: dict[str, Notification] = {}
        self.fail_for: set[str] = set()
        self.delay = 0.0
        self._ids = itertools.count(1)

    @property
    def created(self) -> list[Notification]:
        return list(self.items.values())

    def for_user(self, user_id: str) -> list[Notification]:
        return [n for n in self.items.values() if n.user_id == user_id]

    async def create(self, notification: Notification) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        if notification.user_id in self.fail_for:
            raise ConnectionError("insert failed")
        notification.id = f"n-{next(self._ids)}"
        self.items[notification.id] = notification
        return notification.id

    async def list_for_user(self, user_id: str, limit: int = 50, unread_only: bool = False):
        rows = [n for n in self.for_user(user_id) if not (unread_only and n.is_read)]
        rows.sort(key=lambda n: n.created_at, reverse=True)
        return rows[:limit]

    async def unread_count(self, user_id: str) -> int:
        return sum(1 for n in self.for_user(user_id) if not n.is_read)

    async def mark_read(self, notification_id: str) -> bool:
        n = self.items.get(notification_id)
        if n is None:
            return False
        n.is_read = True
        return True

    async def mark_all_read(self, user_id: str) -> int:
        unread = [n for n in self.for_user(user_id) if not n.is_read]
        for n in unread:
            n.is_read = True
        return len(unread)

    async def delete(self, notification_id: str) -> bool:
        return self.items.pop(notification_id, None) is not None


class InMemoryProjectDirectory:
    def __init__(self, projects: list[ProjectSummary] | None = None):
        self.projects = list(projects or [])
        self.calls: list[tuple[int, datetime | None]] = []

    async def find_approaching_deadlines(self, horizon_days: int, now: datetime | None = None):
        self.calls.append((horizon_days, now))
        return list(self.projects)


class RecordingTransport(EmailTransport):
    """Collects sent messages; ``fail_for`` addresses return False."""

    def __init__(self, fail_for: set[str] | None = None, delay: float = 0.0):
        self.sent: list[dict] = []
        self.fail_for = fail_for or set()
        self.delay = delay

    @property
    def name(self) -> str:
        return "recording"

    def is_configured(self) -> bool:
        return True

    async def send(self, recipient: EmailRecipient, subject: str, html: str, text: str) -> bool:
        if self.delay:
            await asyncio.sleep(self.delay)
        if recipient.email in self.fail_for:
            return False
        self.sent.append({"to": recipient, "subject": subject, "html": html, "text": text})
        return True

    def sent_to(self) -> list[str]:
        return [m["to"].email for m in self.sent]


class RaisingTransport(RecordingTransport):
    async def send(self, recipient, subject, html, text) -> bool:
        raise RuntimeError("smtp exploded")


# ============================================================================
# FIXTURES
# ============================================================================

def make_settings(**overrides) -> SimpleNamespace:
    values = dict(
        app_url="https://app.fundiflow.test",
        email_footer_enabled=True,
        dispatch_max_concurrency=20,
        dispatch_channel_timeout_seconds=1.0,
        dispatch_pool_max_pending=100,
        deadline_horizon_days=3,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture(autouse=True)
def reset_metrics():
    get_metrics_collector().reset()
    yield
    get_metrics_collector().reset()


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def users():
    return InMemoryUserDirectory([
        User(id="a1", role=Role.ASSEMBLER, email="ann@example.com", display_name="Ann"),
        User(id="a2", role=Role.ASSEMBLER, email="bob@example.com"),
        User(id="a3", role=Role.ASSEMBLER, email=None),
        User(id="lead", role=Role.ADMIN, email="lead@example.com", display_name="Lee"),
    ])


@pytest.fixture
def preference_store():
    return InMemoryPreferenceStore()


@pytest.fixture
def notification_store():
    return InMemoryNotificationStore()


@pytest.fixture
def project_directory():
    return InMemoryProjectDirectory()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def raising_transport():
    return RaisingTransport()


@pytest.fixture
def make_runtime(users, preference_store, notification_store, project_directory, transport, now):
    """Factory: ``make_runtime(transport=RaisingTransport(), dispatch_channel_timeout_seconds=0.05)``"""
    from fundiflow_notify.infra.notification_service import build_runtime

    def _make(transport=transport, templates=None, clock=lambda: now, **settings_overrides):
        return build_runtime(
            make_settings(**settings_overrides),
            users=users,
            preferences=preference_store,
            notifications=notification_store,
            projects=project_directory,
            transport=transport,
            templates=templates,
            clock=clock,
        )

    return _make


@pytest.fixture
def runtime(make_runtime):
    return make_runtime()
