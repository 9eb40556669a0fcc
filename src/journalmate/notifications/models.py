"""Domain records for the smart notification core.

Records are plain dataclasses with ``to_dict``/``from_dict`` helpers so they
can round-trip through JSON-backed stores and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .timeutil import DEFAULT_TIMEZONE, parse_clock, parse_instant, resolve_timezone, utcnow


class NotificationStatus(str, Enum):
    """Lifecycle states of a scheduled notification."""

    PENDING = "pending"  # Waiting for its scheduled instant
    SENT = "sent"  # Delivered by the dispatcher
    FAILED = "failed"  # Delivery raised; not retried
    CANCELLED = "cancelled"  # Source entity changed or went away

    @property
    def is_terminal(self) -> bool:
        return self is not NotificationStatus.PENDING


class HapticType(str, Enum):
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"
    CELEBRATION = "celebration"
    URGENT = "urgent"


class NotificationPriority(str, Enum):
    LOW = "low"
    DEFAULT = "default"
    HIGH = "high"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class TimeField:
    """A time-bearing field found on a domain entity.

    Attributes:
        field_name: Dotted path into the source entity (``timeline[2].scheduledAt``)
        value: Aware UTC instant
        context: Semantic context driving the interval policy (``due``, ``starts``...)
        label: Human readable label used in rendered copy
    """

    field_name: str
    value: datetime
    context: str
    label: str = ""


@dataclass
class ScheduledNotification:
    """A persisted reminder waiting for (or done with) dispatch."""

    user_id: str
    source_type: str
    source_id: Optional[str]
    notification_type: str
    title: str
    body: str
    scheduled_at: datetime
    notification_id: str = field(default_factory=lambda: str(uuid4()))
    timezone: str = DEFAULT_TIMEZONE
    route: Optional[str] = None
    status: NotificationStatus = NotificationStatus.PENDING
    metadata: Dict[str, Any] = field(default_factory=dict)
    sent_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def source_key(self) -> tuple[str, Optional[str]]:
        return (self.source_type, self.source_id)

    def with_changes(self, **changes: Any) -> "ScheduledNotification":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "notification_id": self.notification_id,
            "user_id": self.user_id,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "notification_type": self.notification_type,
            "title": self.title,
            "body": self.body,
            "scheduled_at": _iso(self.scheduled_at),
            "timezone": self.timezone,
            "route": self.route,
            "status": self.status.value,
            "metadata": self.metadata,
            "sent_at": _iso(self.sent_at),
            "failure_reason": self.failure_reason,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduledNotification":
        return cls(
            notification_id=data.get("notification_id", str(uuid4())),
            user_id=data["user_id"],
            source_type=data["source_type"],
            source_id=data.get("source_id"),
            notification_type=data["notification_type"],
            title=data.get("title", ""),
            body=data.get("body", ""),
            scheduled_at=parse_instant(data["scheduled_at"]),
            timezone=data.get("timezone") or DEFAULT_TIMEZONE,
            route=data.get("route"),
            status=NotificationStatus(data.get("status", "pending")),
            metadata=data.get("metadata", {}),
            sent_at=parse_instant(data.get("sent_at")),
            failure_reason=data.get("failure_reason"),
            created_at=parse_instant(data.get("created_at")) or utcnow(),
            updated_at=parse_instant(data.get("updated_at")) or utcnow(),
        )


@dataclass
class NotificationPreferences:
    """Per-user notification settings, owned by the user settings screen.

    The notification core only reads these. ``quiet_hours_start`` and
    ``quiet_hours_end`` are ``HH:mm`` local times; quiet hours are compared at
    hour precision.
    """

    user_id: str
    enable_browser_notifications: bool = True
    enable_task_reminders: bool = True
    enable_deadline_warnings: bool = True
    enable_daily_planning: bool = False
    enable_group_notifications: bool = True
    enable_streak_reminders: bool = True
    enable_accountability_reminders: bool = True
    enable_media_release_alerts: bool = True
    enable_trip_prep_reminders: bool = True
    reminder_lead_time: int = 30
    daily_planning_time: str = "09:00"
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None
    timezone: Optional[str] = None
    weekly_checkin_day: str = "sunday"
    weekly_checkin_time: str = "10:00"
    streak_reminder_time: str = "18:00"

    def is_in_quiet_hours(self, now: datetime, timezone_name: Optional[str]) -> bool:
        """Check whether ``now`` falls inside the user's quiet hours.

        The window is ``[start, end)`` on local hours; a start later than the
        end spans midnight (22:00 - 08:00).
        """
        start = parse_clock(self.quiet_hours_start)
        end = parse_clock(self.quiet_hours_end)
        if start is None or end is None:
            return False

        current_hour = now.astimezone(resolve_timezone(timezone_name)).hour
        start_hour, end_hour = start[0], end[0]

        if start_hour <= end_hour:
            return start_hour <= current_hour < end_hour
        # Overnight window
        return current_hour >= start_hour or current_hour < end_hour

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotificationPreferences":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def default_preferences(user_id: str) -> NotificationPreferences:
    """Preferences created for users who never opened notification settings."""
    return NotificationPreferences(
        user_id=user_id,
        enable_browser_notifications=True,
        enable_task_reminders=True,
        enable_deadline_warnings=True,
        enable_daily_planning=False,
        enable_group_notifications=True,
        enable_streak_reminders=True,
        enable_accountability_reminders=True,
        reminder_lead_time=30,
        daily_planning_time="09:00",
        quiet_hours_start="22:00",
        quiet_hours_end="08:00",
    )


@dataclass
class NotificationHistory:
    """Append-only record of a dispatched notification."""

    user_id: str
    notification_type: str
    title: str
    body: str
    sent_at: datetime
    channel: Optional[str] = None
    haptic_type: Optional[str] = None
    source_type: Optional[str] = None
    source_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    history_id: str = field(default_factory=lambda: str(uuid4()))

    @classmethod
    def from_scheduled(
        cls, row: ScheduledNotification, sent_at: datetime
    ) -> "NotificationHistory":
        return cls(
            user_id=row.user_id,
            notification_type=row.notification_type,
            title=row.title,
            body=row.body,
            sent_at=sent_at,
            channel=row.metadata.get("channel"),
            haptic_type=row.metadata.get("haptic"),
            source_type=row.source_type,
            source_id=row.source_id,
            metadata=dict(row.metadata),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "history_id": self.history_id,
            "user_id": self.user_id,
            "notification_type": self.notification_type,
            "title": self.title,
            "body": self.body,
            "sent_at": _iso(self.sent_at),
            "channel": self.channel,
            "haptic_type": self.haptic_type,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "metadata": self.metadata,
        }


@dataclass
class InAppNotification:
    """Bell-icon record written for every delivered notification."""

    user_id: str
    type: str
    title: str
    body: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    read: bool = False
    notification_id: str = field(default_factory=lambda: str(uuid4()))


@dataclass
class UserProfile:
    user_id: str
    timezone: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None

    @property
    def friendly_name(self) -> str:
        return self.display_name or self.email or "Someone"


@dataclass
class UserStreak:
    """Consecutive-day activity streak. Dates are ``YYYY-MM-DD`` (UTC)."""

    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[str] = None
    streak_start_date: Optional[str] = None
    total_active_days: int = 0


@dataclass
class DeviceToken:
    user_id: str
    token: str
    platform: str = "android"
    is_active: bool = True


@dataclass
class PushResult:
    sent_count: int = 0
    failed_count: int = 0
    errors: List[str] = field(default_factory=list)
