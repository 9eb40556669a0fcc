"""In-memory implementation of the notification storage port.

Used by the test-suite and by the CLI's dry-run preview. Every read returns a
copy so callers cannot mutate stored state behind the store's back, mirroring
the behaviour of a real database round-trip.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .exceptions import NotificationNotFoundError
from .models import (
    DeviceToken,
    InAppNotification,
    NotificationHistory,
    NotificationPreferences,
    NotificationStatus,
    ScheduledNotification,
    UserProfile,
    UserStreak,
)
from .ports import DEDUP_STATUSES, Entity, NotificationStorage
from .state_machine import NotificationStateValidator
from .timeutil import utcnow

logger = logging.getLogger(__name__)


def _owned_by(entity: Mapping[str, Any], user_id: str) -> bool:
    return (entity.get("userId") or entity.get("user_id")) == user_id


class InMemoryNotificationStore(NotificationStorage):
    """Dictionary-backed store.

    Seeding helpers (``add_user``, ``add_task``...) are not part of the port;
    they populate the collaborator data hooks and periodic services read.
    """

    def __init__(self) -> None:
        self.notifications: Dict[str, ScheduledNotification] = {}
        self.history: List[NotificationHistory] = []
        self.in_app: List[InAppNotification] = []
        self.preferences: Dict[str, NotificationPreferences] = {}
        self.users: Dict[str, UserProfile] = {}
        self.device_tokens: Dict[str, List[DeviceToken]] = {}
        self.streaks: Dict[str, UserStreak] = {}
        self.tasks: Dict[str, Entity] = {}
        self.goals: Dict[str, Entity] = {}
        self.activities: Dict[str, Entity] = {}
        self.activity_task_links: List[Entity] = []
        self.groups: Dict[str, Entity] = {}
        self.group_members: Dict[str, List[Entity]] = {}
        self._validator = NotificationStateValidator()

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------

    def add_user(self, user: UserProfile) -> UserProfile:
        self.users[user.user_id] = user
        return user

    def set_preferences(self, preferences: NotificationPreferences) -> None:
        self.preferences[preferences.user_id] = preferences

    def add_device_token(self, token: DeviceToken) -> None:
        self.device_tokens.setdefault(token.user_id, []).append(token)

    def add_task(self, task: Entity, activity_id: Optional[str] = None) -> Entity:
        self.tasks[str(task["id"])] = dict(task)
        if activity_id is not None:
            self.activity_task_links.append(
                {"activityId": activity_id, "taskId": str(task["id"])}
            )
        return task

    def add_goal(self, goal: Entity) -> Entity:
        self.goals[str(goal["id"])] = dict(goal)
        return goal

    def add_activity(self, activity: Entity) -> Entity:
        self.activities[str(activity["id"])] = dict(activity)
        return activity

    def add_group(self, group: Entity, member_ids: List[str]) -> Entity:
        self.groups[str(group["id"])] = dict(group)
        self.group_members[str(group["id"])] = [
            {"groupId": group["id"], "userId": member_id} for member_id in member_ids
        ]
        return group

    def complete_task(self, task_id: str) -> Entity:
        self.tasks[task_id]["completed"] = True
        return dict(self.tasks[task_id])

    def rows(
        self, status: Optional[NotificationStatus] = None
    ) -> List[ScheduledNotification]:
        """Snapshot of stored rows, optionally filtered by status."""
        return [
            replace(row)
            for row in self.notifications.values()
            if status is None or row.status == status
        ]

    # ------------------------------------------------------------------
    # Scheduled notifications
    # ------------------------------------------------------------------

    async def create_smart_notification(
        self, record: ScheduledNotification
    ) -> ScheduledNotification:
        stored = replace(record, metadata=dict(record.metadata))
        self.notifications[stored.notification_id] = stored
        return replace(stored)

    async def get_pending_smart_notifications(
        self, now: datetime
    ) -> List[ScheduledNotification]:
        due = [
            row
            for row in self.notifications.values()
            if row.status == NotificationStatus.PENDING and row.scheduled_at <= now
        ]
        return [replace(row) for row in sorted(due, key=lambda r: r.scheduled_at)]

    async def get_smart_notification(
        self, notification_id: str
    ) -> Optional[ScheduledNotification]:
        row = self.notifications.get(notification_id)
        return replace(row) if row else None

    async def update_smart_notification(
        self, notification_id: str, patch: Mapping[str, Any]
    ) -> ScheduledNotification:
        row = self.notifications.get(notification_id)
        if row is None:
            raise NotificationNotFoundError(notification_id)

        changes = dict(patch)
        if "status" in changes:
            changes["status"] = NotificationStatus(changes["status"])
            self._validator.validate_transition(
                notification_id,
                row.status,
                changes["status"],
                reason=changes.get("failure_reason"),
            )
        changes.setdefault("updated_at", utcnow())

        updated = replace(row, **changes)
        self.notifications[notification_id] = updated
        return replace(updated)

    async def cancel_smart_notifications(
        self, source_type: str, source_id: Optional[str]
    ) -> int:
        return self._cancel_where(
            lambda row: row.source_type == source_type and row.source_id == source_id
        )

    async def find_pending_smart_notification(
        self,
        user_id: str,
        source_type: str,
        source_id: Optional[str],
        notification_type: str,
        statuses: Sequence[NotificationStatus] = DEDUP_STATUSES,
    ) -> Optional[ScheduledNotification]:
        matches = [
            row
            for row in self.notifications.values()
            if row.user_id == user_id
            and row.source_type == source_type
            and row.source_id == source_id
            and row.notification_type == notification_type
        ]
        for status in statuses:
            for row in matches:
                if row.status == status:
                    return replace(row)
        return None

    async def cancel_all_pending_notifications_for_user(self, user_id: str) -> int:
        return self._cancel_where(lambda row: row.user_id == user_id)

    def _cancel_where(self, predicate) -> int:
        count = 0
        now = utcnow()
        for notification_id, row in list(self.notifications.items()):
            if row.status == NotificationStatus.PENDING and predicate(row):
                self.notifications[notification_id] = replace(
                    row, status=NotificationStatus.CANCELLED, updated_at=now
                )
                count += 1
        return count

    # ------------------------------------------------------------------
    # History, preferences and in-app records
    # ------------------------------------------------------------------

    async def create_notification_history(
        self, record: NotificationHistory
    ) -> NotificationHistory:
        self.history.append(record)
        return record

    async def get_notification_preferences(
        self, user_id: str
    ) -> Optional[NotificationPreferences]:
        prefs = self.preferences.get(user_id)
        return replace(prefs) if prefs else None

    async def create_notification_preferences(
        self, preferences: NotificationPreferences
    ) -> NotificationPreferences:
        self.preferences[preferences.user_id] = replace(preferences)
        return preferences

    async def create_user_notification(
        self, notification: InAppNotification
    ) -> InAppNotification:
        self.in_app.append(notification)
        return notification

    async def get_user_device_tokens(self, user_id: str) -> List[DeviceToken]:
        return list(self.device_tokens.get(user_id, []))

    # ------------------------------------------------------------------
    # Users and planner entities
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        user = self.users.get(user_id)
        return replace(user) if user else None

    async def get_user_tasks(self, user_id: str) -> List[Entity]:
        return [copy.deepcopy(t) for t in self.tasks.values() if _owned_by(t, user_id)]

    async def get_user_goals(self, user_id: str) -> List[Entity]:
        return [copy.deepcopy(g) for g in self.goals.values() if _owned_by(g, user_id)]

    async def get_user_activities(self, user_id: str) -> List[Entity]:
        return [
            copy.deepcopy(a) for a in self.activities.values() if _owned_by(a, user_id)
        ]

    async def get_activity(self, activity_id: str, user_id: str) -> Optional[Entity]:
        activity = self.activities.get(str(activity_id))
        if activity is None or not _owned_by(activity, user_id):
            return None
        return copy.deepcopy(activity)

    async def get_activity_tasks(self, activity_id: str, user_id: str) -> List[Entity]:
        task_ids = [
            link["taskId"]
            for link in self.activity_task_links
            if link["activityId"] == activity_id
        ]
        return [
            copy.deepcopy(self.tasks[task_id])
            for task_id in task_ids
            if task_id in self.tasks and _owned_by(self.tasks[task_id], user_id)
        ]

    async def get_activity_tasks_for_task(self, task_id: str) -> List[Entity]:
        return [dict(link) for link in self.activity_task_links if link["taskId"] == task_id]

    async def get_tasks_with_due_dates(self, user_id: str) -> List[Entity]:
        return [
            t for t in await self.get_user_tasks(user_id) if t.get("dueDate") or t.get("due_date")
        ]

    async def get_activities_with_dates(self, user_id: str) -> List[Entity]:
        return [
            a
            for a in await self.get_user_activities(user_id)
            if a.get("startDate") or a.get("endDate") or a.get("start_date") or a.get("end_date")
        ]

    async def get_goals_with_deadlines(self, user_id: str) -> List[Entity]:
        return [g for g in await self.get_user_goals(user_id) if g.get("deadline")]

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def get_group(self, group_id: str) -> Optional[Entity]:
        group = self.groups.get(str(group_id))
        return dict(group) if group else None

    async def get_group_members(self, group_id: str) -> List[Entity]:
        return [dict(m) for m in self.group_members.get(str(group_id), [])]

    # ------------------------------------------------------------------
    # Streaks and accountability
    # ------------------------------------------------------------------

    async def get_user_streak(self, user_id: str) -> Optional[UserStreak]:
        streak = self.streaks.get(user_id)
        return replace(streak) if streak else None

    async def create_user_streak(self, streak: UserStreak) -> UserStreak:
        self.streaks[streak.user_id] = replace(streak)
        return streak

    async def update_user_streak(
        self, user_id: str, patch: Mapping[str, Any]
    ) -> UserStreak:
        streak = self.streaks.get(user_id) or UserStreak(user_id=user_id)
        updated = replace(streak, **dict(patch))
        self.streaks[user_id] = updated
        return replace(updated)

    async def get_users_with_active_streaks(self, min_days: int) -> List[UserStreak]:
        return [
            replace(s) for s in self.streaks.values() if (s.current_streak or 0) >= min_days
        ]

    async def get_users_with_accountability_enabled(
        self,
    ) -> List[NotificationPreferences]:
        return [
            replace(p)
            for p in self.preferences.values()
            if p.enable_accountability_reminders
        ]
