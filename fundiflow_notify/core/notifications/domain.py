# fundiflow_notify/core/notifications/domain.py
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Optional


# ============================================================================
# ENUMS
# ============================================================================

class Role(str, Enum):
    ADMIN = "admin"
    ASSEMBLER = "assembler"


class Category(str, Enum):
    """Coarse notification grouping used for preference gating."""
    PROJECT = "project"
    WORKER = "worker"
    PAYMENT = "payment"
    SYSTEM = "system"
    REMINDER = "reminder"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Frequency(str, Enum):
    IMMEDIATE = "immediate"
    DAILY = "daily"
    WEEKLY = "weekly"


class Channel(str, Enum):
    IN_APP = "in_app"
    EMAIL = "email"


class AnnouncementAudience(str, Enum):
    ALL = "all"
    ASSEMBLERS = "assemblers"
    LEADS = "leads"


class EmailOutcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"  # gated by preferences or no usable address
    FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# DIRECTORY ENTITIES (read-only for the dispatcher)
# ============================================================================

@dataclass(frozen=True)
class User:
    id: str
    role: Role
    email: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def name(self) -> str:
        """Name used in email greetings: display name, else the address local part."""
        if self.display_name:
            return self.display_name
        if self.email and "@" in self.email:
            return self.email.split("@")[0]
        return self.id


@dataclass(frozen=True)
class ProjectSummary:
    id: str
    name: str
    deadline: datetime
    status: str = "active"
    progress: float = 0

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


@dataclass(frozen=True)
class EmailRecipient:
    user_id: str
    email: str
    name: str


# ============================================================================
# PREFERENCES
# ============================================================================

def _default_categories() -> Dict[Category, bool]:
    return {category: True for category in Category}


@dataclass
class QuietHours:
    enabled: bool = False
    start: str = "22:00"  # HH:MM
    end: str = "08:00"    # HH:MM


@dataclass
class NotificationPreference:
    """
    Per-user notification settings.

    Created lazily with everything enabled.  Only the user mutates it
    (through the settings surface); the dispatcher only reads it.
    """
    user_id: str
    email_enabled: bool = True
    push_enabled: bool = True
    categories: Dict[Category, bool] = field(default_factory=_default_categories)
    frequency: Frequency = Frequency.IMMEDIATE
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    timezone: str = "UTC"

    @classmethod
    def defaults(cls, user_id: str) -> "NotificationPreference":
        return cls(user_id=user_id)

    def category_enabled(self, category: Category) -> bool:
        # Unknown/missing categories fail open
        return self.categories.get(category, True) is not False

    def allows_email(self, category: Category) -> bool:
        return bool(self.email_enabled) and self.category_enabled(category)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "email_enabled": self.email_enabled,
            "push_enabled": self.push_enabled,
            "categories": {c.value: enabled for c, enabled in self.categories.items()},
            "frequency": self.frequency.value,
            "quiet_hours": asdict(self.quiet_hours),
            "timezone": self.timezone,
        }

    @classmethod
    def from_dict(cls, user_id: str, data: Dict[str, Any] | None) -> "NotificationPreference":
        """
        Build preferences from a stored document.

        Anything missing or of the wrong type keeps its default, so a
        partially written record never disables a channel by accident.
        """
        pref = cls.defaults(user_id)
        if not isinstance(data, dict):
            return pref

        if isinstance(data.get("email_enabled"), bool):
            pref.email_enabled = data["email_enabled"]
        if isinstance(data.get("push_enabled"), bool):
            pref.push_enabled = data["push_enabled"]

        categories = data.get("categories")
        if isinstance(categories, dict):
            for key, enabled in categories.items():
                try:
                    category = Category(key)
                except ValueError:
                    continue
                if isinstance(enabled, bool):
                    pref.categories[category] = enabled

        try:
            pref.frequency = Frequency(data.get("frequency", Frequency.IMMEDIATE.value))
        except ValueError:
            pass

        quiet = data.get("quiet_hours")
        if isinstance(quiet, dict):
            pref.quiet_hours = QuietHours(
                enabled=quiet.get("enabled") is True,
                start=str(quiet.get("start") or QuietHours.start),
                end=str(quiet.get("end") or QuietHours.end),
            )

        if isinstance(data.get("timezone"), str) and data["timezone"]:
            pref.timezone = data["timezone"]

        return pref


# ============================================================================
# IN-APP NOTIFICATION RECORD
# ============================================================================

@dataclass
class Notification:
    user_id: str
    type: str  # info | success | warning | error
    title: str
    message: str
    category: Category
    is_read: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.updated_at < self.created_at:
            self.updated_at = self.created_at

    @property
    def action_url(self) -> Optional[str]:
        return self.metadata.get("action_url")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "category": self.category.value,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "metadata": self.metadata,
        }


# ============================================================================
# TRIGGER EVENTS
# ============================================================================

@dataclass(frozen=True)
class TriggerEvent:
    """Base class for business events that may warrant notification."""
    event_type: ClassVar[str] = "unknown"


@dataclass(frozen=True)
class ProjectCreated(TriggerEvent):
    event_type: ClassVar[str] = "project_created"

    project_id: str
    project_name: str
    actor_id: Optional[str] = None


@dataclass(frozen=True)
class ProjectAssigned(TriggerEvent):
    event_type: ClassVar[str] = "project_assigned"

    project_id: str
    project_name: str
    assembler_id: str
    assembler_name: str
    actor_id: Optional[str] = None


@dataclass(frozen=True)
class WorkSessionCompleted(TriggerEvent):
    event_type: ClassVar[str] = "work_session_completed"

    project_id: str
    project_name: str
    project_lead_id: str
    assembler_name: str
    duration: float  # hours
    progress: float  # percent 0-100
    notes: Optional[str] = None


@dataclass(frozen=True)
class DeadlineApproaching(TriggerEvent):
    event_type: ClassVar[str] = "deadline_approaching"

    project_id: str
    project_name: str
    days_remaining: int
    current_progress: float = 0


@dataclass(frozen=True)
class AnnouncementCreated(TriggerEvent):
    event_type: ClassVar[str] = "announcement_created"

    announcement_id: str
    title: str
    content: str
    actor_id: Optional[str] = None
    audience: AnnouncementAudience = AnnouncementAudience.ALL


# ============================================================================
# DISPATCH
# ============================================================================

@dataclass(frozen=True)
class Recipient:
    """A resolved audience member.  ``user`` is carried when the lookup already loaded it."""
    user_id: str
    is_assembler: bool = False
    user: Optional[User] = field(default=None, compare=False)


@dataclass
class DispatchResult:
    in_app_delivered: int = 0
    email_delivered: int = 0
    recipients_considered: int = 0
    email_skipped: int = 0
    failures: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)
