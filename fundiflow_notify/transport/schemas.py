# fundiflow_notify/transport/schemas.py
from pydantic import BaseModel, Field

from fundiflow_notify.core.notifications.domain import (
    AnnouncementAudience,
    AnnouncementCreated,
    DeadlineApproaching,
    Frequency,
    ProjectAssigned,
    ProjectCreated,
    WorkSessionCompleted,
)


# ============================================================================
# TRIGGER EVENTS
# ============================================================================

class ProjectCreatedIn(BaseModel):
    project_id: str = Field(min_length=1, max_length=128)
    project_name: str = Field(min_length=1, max_length=200)
    actor_id: str | None = None

    def to_event(self) -> ProjectCreated:
        return ProjectCreated(self.project_id, self.project_name, self.actor_id)


class ProjectAssignedIn(BaseModel):
    project_id: str = Field(min_length=1, max_length=128)
    project_name: str = Field(min_length=1, max_length=200)
    assembler_id: str = Field(min_length=1, max_length=128)
    assembler_name: str = Field(min_length=1, max_length=200)
    actor_id: str | None = None

    def to_event(self) -> ProjectAssigned:
        return ProjectAssigned(
            self.project_id, self.project_name, self.assembler_id, self.assembler_name, self.actor_id
        )


class WorkSessionCompletedIn(BaseModel):
    project_id: str = Field(min_length=1, max_length=128)
    project_name: str = Field(min_length=1, max_length=200)
    project_lead_id: str = Field(min_length=1, max_length=128)
    assembler_name: str = Field(min_length=1, max_length=200)
    duration: float = Field(ge=0)
    progress: float = Field(ge=0, le=100)
    notes: str | None = Field(default=None, max_length=5000)

    def to_event(self) -> WorkSessionCompleted:
        return WorkSessionCompleted(
            self.project_id,
            self.project_name,
            self.project_lead_id,
            self.assembler_name,
            self.duration,
            self.progress,
            self.notes,
        )


class DeadlineApproachingIn(BaseModel):
    project_id: str = Field(min_length=1, max_length=128)
    project_name: str = Field(min_length=1, max_length=200)
    days_remaining: int = Field(ge=0)
    current_progress: float = Field(default=0, ge=0, le=100)

    def to_event(self) -> DeadlineApproaching:
        return DeadlineApproaching(
            self.project_id, self.project_name, self.days_remaining, self.current_progress
        )


class AnnouncementCreatedIn(BaseModel):
    announcement_id: str = Field(min_length=1, max_length=128)
    title: str = Field(min_length=1, max_length=300)
    content: str = Field(default="", max_length=20000)
    actor_id: str | None = None
    audience: AnnouncementAudience = AnnouncementAudience.ALL

    def to_event(self) -> AnnouncementCreated:
        return AnnouncementCreated(
            self.announcement_id, self.title, self.content, self.actor_id, self.audience
        )


# ============================================================================
# EMAIL RELAY
# ============================================================================

class SendEmailIn(BaseModel):
    to: str | None = None
    subject: str | None = None
    html: str | None = None
    text: str | None = None


# ============================================================================
# PREFERENCES
# ============================================================================

class QuietHoursIn(BaseModel):
    enabled: bool | None = None
    start: str | None = Field(default=None, pattern=r"^\d{1,2}:\d{2}$")
    end: str | None = Field(default=None, pattern=r"^\d{1,2}:\d{2}$")


class PreferenceUpdateIn(BaseModel):
    email_enabled: bool | None = None
    push_enabled: bool | None = None
    categories: dict[str, bool] | None = None
    frequency: Frequency | None = None
    quiet_hours: QuietHoursIn | None = None
    timezone: str | None = Field(default=None, max_length=64)

    def to_changes(self) -> dict:
        changes = self.model_dump(exclude_none=True, mode="json")
        if "quiet_hours" in changes and not changes["quiet_hours"]:
            del changes["quiet_hours"]
        return changes
