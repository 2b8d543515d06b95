# tests/test_audience.py
"""Tests for AudienceResolver."""
from __future__ import annotations

import pytest

from fundiflow_notify.core.notifications.audience import AudienceResolver
from fundiflow_notify.core.notifications.domain import (
    AnnouncementAudience,
    AnnouncementCreated,
    DeadlineApproaching,
    ProjectAssigned,
    ProjectCreated,
    Role,
    TriggerEvent,
    User,
    WorkSessionCompleted,
)
from fundiflow_notify.core.notifications.errors import UnknownEventError


def _ids(recipients):
    return [r.user_id for r in recipients]


class TestAudienceResolver:
    @pytest.mark.asyncio
    async def test_project_created_goes_to_all_assemblers(self, users):
        recipients = await AudienceResolver(users).resolve(ProjectCreated("p1", "Kitchen", actor_id="a1"))
        # Actor is not excluded for project broadcasts
        assert _ids(recipients) == ["a1", "a2", "a3"]
        assert all(r.is_assembler for r in recipients)
        assert recipients[0].user.display_name == "Ann"

    @pytest.mark.asyncio
    async def test_project_assigned_single_assembler(self, users):
        recipients = await AudienceResolver(users).resolve(ProjectAssigned("p1", "Kitchen", "a2", "Bob"))
        assert _ids(recipients) == ["a2"]
        assert recipients[0].is_assembler
        assert users.role_lookups == 0

    @pytest.mark.asyncio
    async def test_work_session_goes_to_project_lead(self, users):
        event = WorkSessionCompleted("p1", "Kitchen", "lead", "Ann", 4, 60)
        recipients = await AudienceResolver(users).resolve(event)
        assert _ids(recipients) == ["lead"]
        assert not recipients[0].is_assembler

    @pytest.mark.asyncio
    async def test_work_session_without_lead_is_empty(self, users):
        event = WorkSessionCompleted("p1", "Kitchen", "", "Ann", 4, 60)
        assert await AudienceResolver(users).resolve(event) == []

    @pytest.mark.asyncio
    async def test_deadline_goes_to_assemblers_then_admins(self, users):
        recipients = await AudienceResolver(users).resolve(DeadlineApproaching("p1", "Kitchen", 2))
        assert _ids(recipients) == ["a1", "a2", "a3", "lead"]
        assert [r.is_assembler for r in recipients] == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_announcement_excludes_actor(self, users):
        event = AnnouncementCreated("ann1", "Hello", "Body", actor_id="lead")
        recipients = await AudienceResolver(users).resolve(event)
        assert _ids(recipients) == ["a1", "a2", "a3"]

    @pytest.mark.asyncio
    async def test_announcement_audience_filter(self, users):
        resolver = AudienceResolver(users)
        leads_only = await resolver.resolve(
            AnnouncementCreated("ann1", "Hi", "", actor_id="a1", audience=AnnouncementAudience.LEADS)
        )
        assemblers_only = await resolver.resolve(
            AnnouncementCreated("ann1", "Hi", "", actor_id="a1", audience=AnnouncementAudience.ASSEMBLERS)
        )
        assert _ids(leads_only) == ["lead"]
        assert _ids(assemblers_only) == ["a2", "a3"]

    @pytest.mark.asyncio
    async def test_duplicate_users_collapsed(self, users):
        # A directory that returns the same user twice
        users.users["a1-dup"] = User(id="a1", role=Role.ASSEMBLER, email="ann@example.com")
        recipients = await AudienceResolver(users).resolve(ProjectCreated("p1", "Kitchen"))
        assert _ids(recipients).count("a1") == 1

    @pytest.mark.asyncio
    async def test_empty_directory(self, users):
        users.users.clear()
        recipients = await AudienceResolver(users).resolve(ProjectCreated("p1", "Kitchen"))
        assert recipients == []

    @pytest.mark.asyncio
    async def test_unknown_event(self, users):
        with pytest.raises(UnknownEventError):
            await AudienceResolver(users).resolve(TriggerEvent())

    @pytest.mark.asyncio
    async def test_directory_errors_propagate(self, users):
        users.fail = True
        with pytest.raises(ConnectionError):
            await AudienceResolver(users).resolve(ProjectCreated("p1", "Kitchen"))
