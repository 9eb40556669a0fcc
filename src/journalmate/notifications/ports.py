"""Ports consumed by the notification core.

The core never owns persistence or transports. It talks to a backing store
through :class:`NotificationStorage` and fans deliveries out through
:class:`SocketEmitter` and :class:`PushSender`. All methods are coroutines so
implementations can suspend on real I/O.

Domain entities (tasks, activities, goals, groups) cross this boundary as
plain mappings using the web layer's camelCase keys.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .models import (
    DeviceToken,
    InAppNotification,
    NotificationHistory,
    NotificationPreferences,
    NotificationStatus,
    PushResult,
    ScheduledNotification,
    UserProfile,
    UserStreak,
)

Entity = Dict[str, Any]

# Statuses that count as "already notified", most relevant first
DEDUP_STATUSES = (NotificationStatus.PENDING, NotificationStatus.SENT)


class NotificationStorage(ABC):
    """Async storage contract for scheduled notifications and their context."""

    # ------------------------------------------------------------------
    # Scheduled notifications
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_smart_notification(
        self, record: ScheduledNotification
    ) -> ScheduledNotification:
        """Persist a new row and return the stored copy."""

    @abstractmethod
    async def get_pending_smart_notifications(
        self, now: datetime
    ) -> List[ScheduledNotification]:
        """Return every pending row with ``scheduled_at <= now``."""

    @abstractmethod
    async def get_smart_notification(
        self, notification_id: str
    ) -> Optional[ScheduledNotification]:
        """Fetch one row by id, or ``None``."""

    @abstractmethod
    async def update_smart_notification(
        self, notification_id: str, patch: Mapping[str, Any]
    ) -> ScheduledNotification:
        """Apply ``patch`` to a row.

        Raises:
            NotificationNotFoundError: If the id is unknown
            InvalidStatusTransitionError: If the patch leaves a terminal status
        """

    @abstractmethod
    async def cancel_smart_notifications(
        self, source_type: str, source_id: Optional[str]
    ) -> int:
        """Cancel every pending row of a source; returns the number cancelled."""

    @abstractmethod
    async def find_pending_smart_notification(
        self,
        user_id: str,
        source_type: str,
        source_id: Optional[str],
        notification_type: str,
        statuses: Sequence[NotificationStatus] = DEDUP_STATUSES,
    ) -> Optional[ScheduledNotification]:
        """Find a row for the dedup key in one of ``statuses``, or ``None``.

        A row in an earlier status wins over one in a later status, so the
        default lookup returns the live pending row ahead of any sent one.
        """

    @abstractmethod
    async def cancel_all_pending_notifications_for_user(self, user_id: str) -> int:
        """Cancel every pending row owned by ``user_id``."""

    # ------------------------------------------------------------------
    # History, preferences and in-app records
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_notification_history(
        self, record: NotificationHistory
    ) -> NotificationHistory:
        """Append a history row."""

    @abstractmethod
    async def get_notification_preferences(
        self, user_id: str
    ) -> Optional[NotificationPreferences]:
        """Preferences for ``user_id``, or ``None`` when never created."""

    @abstractmethod
    async def create_notification_preferences(
        self, preferences: NotificationPreferences
    ) -> NotificationPreferences:
        """Store preferences created with the documented defaults."""

    @abstractmethod
    async def create_user_notification(
        self, notification: InAppNotification
    ) -> InAppNotification:
        """Write the bell-icon record."""

    @abstractmethod
    async def get_user_device_tokens(self, user_id: str) -> List[DeviceToken]:
        """Active and inactive device tokens registered by the user."""

    # ------------------------------------------------------------------
    # Users and planner entities
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        """User profile (timezone, display name), or ``None``."""

    @abstractmethod
    async def get_user_tasks(self, user_id: str) -> List[Entity]:
        """Every task owned by the user."""

    @abstractmethod
    async def get_user_goals(self, user_id: str) -> List[Entity]:
        """Every goal owned by the user."""

    @abstractmethod
    async def get_user_activities(self, user_id: str) -> List[Entity]:
        """Every activity owned by the user."""

    @abstractmethod
    async def get_activity(self, activity_id: str, user_id: str) -> Optional[Entity]:
        """One activity, or ``None``."""

    @abstractmethod
    async def get_activity_tasks(self, activity_id: str, user_id: str) -> List[Entity]:
        """Tasks linked to an activity."""

    @abstractmethod
    async def get_activity_tasks_for_task(self, task_id: str) -> List[Entity]:
        """Activity links of a task; each mapping carries ``activityId``."""

    @abstractmethod
    async def get_tasks_with_due_dates(self, user_id: str) -> List[Entity]:
        """Tasks with a due date, completed or not."""

    @abstractmethod
    async def get_activities_with_dates(self, user_id: str) -> List[Entity]:
        """Activities with a start or end date."""

    @abstractmethod
    async def get_goals_with_deadlines(self, user_id: str) -> List[Entity]:
        """Goals with a deadline, completed or not."""

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_group(self, group_id: str) -> Optional[Entity]:
        """One group (``id``, ``name``), or ``None``."""

    @abstractmethod
    async def get_group_members(self, group_id: str) -> List[Entity]:
        """Memberships of a group; each mapping carries ``userId``."""

    # ------------------------------------------------------------------
    # Streaks and accountability
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_user_streak(self, user_id: str) -> Optional[UserStreak]:
        """Streak record, or ``None`` for users who never completed anything."""

    @abstractmethod
    async def create_user_streak(self, streak: UserStreak) -> UserStreak:
        """Store a new streak record."""

    @abstractmethod
    async def update_user_streak(
        self, user_id: str, patch: Mapping[str, Any]
    ) -> UserStreak:
        """Apply ``patch`` to a streak record."""

    @abstractmethod
    async def get_users_with_active_streaks(self, min_days: int) -> List[UserStreak]:
        """Streaks with ``current_streak >= min_days``."""

    @abstractmethod
    async def get_users_with_accountability_enabled(
        self,
    ) -> List[NotificationPreferences]:
        """Preferences of users with accountability reminders switched on."""


class SocketEmitter(ABC):
    """Live push to connected web clients."""

    @abstractmethod
    async def emit_to_user(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        """Emit ``event`` to every socket the user has open."""


class PushSender(ABC):
    """Mobile push transport (FCM/APNs)."""

    @abstractmethod
    async def send_to_user(
        self, user_id: str, tokens: List[DeviceToken], payload: Dict[str, Any]
    ) -> PushResult:
        """Send ``payload`` to the given device tokens."""
