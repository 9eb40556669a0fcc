"""Periodic accountability check-ins.

Weekly check-ins land on the user's chosen weekday and time (Sunday 10:00 by
default); monthly reviews on the 1st of next month and quarterly reviews on
the first day of next quarter, both at 10:00 local time. The periodic job only
enqueues them inside a short daily window so a five-minute poll schedules each
one once.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from dateutil.relativedelta import relativedelta

from .models import NotificationPreferences, ScheduledNotification
from .scheduler import SmartNotificationScheduler
from .templates import generate_notification_message
from .timeutil import local_at, parse_clock, parse_instant, resolve_timezone

logger = logging.getLogger(__name__)

ACCOUNTABILITY_SOURCE = "accountability"
REVIEW_HOUR = 10
REPORTS_ROUTE = "/app?tab=reports"
VISION_ROUTE = "/app?tab=reports&view=vision"

WEEKDAYS: Mapping[str, int] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}
QUARTER_START_MONTHS = (1, 4, 7, 10)


def next_checkin_date(day_name: str, clock_time: str, now: datetime, timezone_name: str) -> datetime:
    """Next occurrence of ``day_name`` at ``clock_time`` local, never today."""
    zone = resolve_timezone(timezone_name)
    target = WEEKDAYS.get((day_name or "").lower(), WEEKDAYS["sunday"])
    hour, minute = parse_clock(clock_time) or (REVIEW_HOUR, 0)

    local_today = now.astimezone(zone).date()
    days_ahead = (target - local_today.weekday()) % 7 or 7
    return local_at(local_today + timedelta(days=days_ahead), hour, minute, zone)


def first_of_next_month(now: datetime, timezone_name: str) -> datetime:
    zone = resolve_timezone(timezone_name)
    local_today = now.astimezone(zone).date()
    target = local_today.replace(day=1) + relativedelta(months=1)
    return local_at(target, REVIEW_HOUR, 0, zone)


def start_of_next_quarter(now: datetime, timezone_name: str) -> datetime:
    zone = resolve_timezone(timezone_name)
    local_today = now.astimezone(zone).date()
    quarter_start = date(local_today.year, 3 * ((local_today.month - 1) // 3) + 1, 1)
    return local_at(quarter_start + relativedelta(months=3), REVIEW_HOUR, 0, zone)


def _completed_since(tasks: List[Mapping[str, Any]], since: datetime) -> int:
    count = 0
    for task in tasks:
        if not task.get("completed"):
            continue
        completed_at = parse_instant(task.get("completedAt") or task.get("completed_at"))
        if completed_at is not None and completed_at > since:
            count += 1
    return count


def _created_since(entities: List[Mapping[str, Any]], since: datetime) -> int:
    count = 0
    for entity in entities:
        created_at = parse_instant(entity.get("createdAt") or entity.get("created_at"))
        if created_at is not None and created_at > since:
            count += 1
    return count


class AccountabilityService:
    """Schedules weekly, monthly and quarterly check-in notifications."""

    def __init__(self, scheduler: SmartNotificationScheduler):
        self.scheduler = scheduler
        self._storage = scheduler.storage

    async def _preferences(self, user_id: str) -> Optional[NotificationPreferences]:
        prefs = await self._storage.get_notification_preferences(user_id)
        if prefs is not None and not prefs.enable_accountability_reminders:
            return None
        return prefs or NotificationPreferences(user_id=user_id)

    async def _timezone(self, user_id: str, prefs: NotificationPreferences) -> str:
        return await self.scheduler.resolve_user_timezone(user_id, prefs)

    async def _schedule(
        self,
        user_id: str,
        source_id: str,
        notification_type: str,
        context: Dict[str, Any],
        scheduled_at: datetime,
        timezone_name: str,
        route: str,
        haptic: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Optional[ScheduledNotification]:
        message = generate_notification_message(notification_type, context)
        if message is None:
            return None
        now = self.scheduler.now()
        return await self.scheduler.schedule_smart_notification(
            ScheduledNotification(
                user_id=user_id,
                source_type=ACCOUNTABILITY_SOURCE,
                source_id=source_id,
                notification_type=notification_type,
                title=message.title,
                body=message.body,
                scheduled_at=scheduled_at,
                timezone=timezone_name,
                route=route,
                metadata={"haptic": haptic, "channel": message.channel, **(extra or {})},
                created_at=now,
                updated_at=now,
            )
        )

    async def schedule_weekly_checkin(self, user_id: str) -> Optional[ScheduledNotification]:
        try:
            prefs = await self._preferences(user_id)
            if prefs is None:
                return None
            timezone_name = await self._timezone(user_id, prefs)
            now = self.scheduler.now()
            scheduled_at = next_checkin_date(
                prefs.weekly_checkin_day, prefs.weekly_checkin_time, now, timezone_name
            )
            stats = await self.weekly_stats(user_id)
            return await self._schedule(
                user_id,
                f"weekly_{user_id}",
                "weekly_checkin",
                {
                    "tasks_completed": stats["tasks_completed"],
                    "streak_days": stats["streak_days"],
                    "goals_count": stats["active_goals"],
                },
                scheduled_at,
                timezone_name,
                REPORTS_ROUTE,
                "light",
                extra={
                    "tasks_completed": stats["tasks_completed"],
                    "streak_days": stats["streak_days"],
                },
            )
        except Exception as exc:
            logger.error(f"Error scheduling weekly check-in for {user_id}: {exc}")
            return None

    async def schedule_monthly_review(self, user_id: str) -> Optional[ScheduledNotification]:
        try:
            prefs = await self._preferences(user_id)
            if prefs is None:
                return None
            timezone_name = await self._timezone(user_id, prefs)
            scheduled_at = first_of_next_month(self.scheduler.now(), timezone_name)
            month_name = scheduled_at.astimezone(resolve_timezone(timezone_name)).strftime("%B")
            stats = await self.monthly_stats(user_id)
            return await self._schedule(
                user_id,
                f"monthly_{user_id}",
                "monthly_review",
                {
                    "month_name": month_name,
                    "tasks_completed": stats["tasks_completed"],
                    "activities_planned": stats["activities_planned"],
                },
                scheduled_at,
                timezone_name,
                REPORTS_ROUTE,
                "medium",
            )
        except Exception as exc:
            logger.error(f"Error scheduling monthly review for {user_id}: {exc}")
            return None

    async def schedule_quarterly_review(self, user_id: str) -> Optional[ScheduledNotification]:
        try:
            prefs = await self._preferences(user_id)
            if prefs is None:
                return None
            timezone_name = await self._timezone(user_id, prefs)
            scheduled_at = start_of_next_quarter(self.scheduler.now(), timezone_name)
            stats = await self.quarterly_stats(user_id)
            return await self._schedule(
                user_id,
                f"quarterly_{user_id}",
                "quarterly_review",
                stats,
                scheduled_at,
                timezone_name,
                VISION_ROUTE,
                "medium",
            )
        except Exception as exc:
            logger.error(f"Error scheduling quarterly review for {user_id}: {exc}")
            return None

    def in_processing_window(self, now: Optional[datetime] = None) -> bool:
        settings = self.scheduler.settings
        local = (now or self.scheduler.now()).astimezone(
            resolve_timezone(settings.default_timezone)
        )
        return (
            local.hour == settings.accountability_hour
            and local.minute < settings.accountability_window_minutes
        )

    async def process_accountability_checkins(self) -> Dict[str, int]:
        """Enqueue due check-ins; a no-op outside the daily window.

        Returns:
            Number of rows scheduled per cadence
        """
        counts = {"weekly": 0, "monthly": 0, "quarterly": 0}
        now = self.scheduler.now()
        if not self.in_processing_window(now):
            return counts

        local = now.astimezone(resolve_timezone(self.scheduler.settings.default_timezone))
        cadences = []
        if local.weekday() == WEEKDAYS["sunday"]:
            cadences.append(("weekly", self.schedule_weekly_checkin))
        if local.day == 1:
            cadences.append(("monthly", self.schedule_monthly_review))
            if local.month in QUARTER_START_MONTHS:
                cadences.append(("quarterly", self.schedule_quarterly_review))
        if not cadences:
            return counts

        try:
            users = await self._storage.get_users_with_accountability_enabled()
        except Exception as exc:
            logger.error(f"Error loading accountability users: {exc}")
            return counts

        for name, schedule in cadences:
            logger.info(f"Processing {name} check-ins for {len(users)} users")
            for prefs in users:
                if await schedule(prefs.user_id) is not None:
                    counts[name] += 1
        return counts

    # ------------------------------------------------------------------
    # Stats for rendered copy
    # ------------------------------------------------------------------

    async def weekly_stats(self, user_id: str) -> Dict[str, int]:
        try:
            since = self.scheduler.now() - timedelta(days=7)
            tasks = await self._storage.get_user_tasks(user_id)
            streak = await self._storage.get_user_streak(user_id)
            goals = await self._storage.get_user_goals(user_id)
            return {
                "tasks_completed": _completed_since(tasks, since),
                "streak_days": streak.current_streak if streak else 0,
                "active_goals": sum(1 for g in goals if not g.get("completed")),
            }
        except Exception as exc:
            logger.warning(f"Weekly stats unavailable for {user_id}: {exc}")
            return {"tasks_completed": 0, "streak_days": 0, "active_goals": 0}

    async def monthly_stats(self, user_id: str) -> Dict[str, int]:
        try:
            since = self.scheduler.now() - relativedelta(months=1)
            tasks = await self._storage.get_user_tasks(user_id)
            activities = await self._storage.get_user_activities(user_id)
            return {
                "tasks_completed": _completed_since(tasks, since),
                "activities_planned": _created_since(activities, since),
            }
        except Exception as exc:
            logger.warning(f"Monthly stats unavailable for {user_id}: {exc}")
            return {"tasks_completed": 0, "activities_planned": 0}

    async def quarterly_stats(self, user_id: str) -> Dict[str, int]:
        try:
            since = self.scheduler.now() - relativedelta(months=3)
            tasks = await self._storage.get_user_tasks(user_id)
            goals = await self._storage.get_user_goals(user_id)
            activities = await self._storage.get_user_activities(user_id)

            goals_completed = 0
            for goal in goals:
                goal_tasks = [
                    t for t in tasks if str(t.get("goalId") or t.get("goal_id")) == str(goal.get("id"))
                ]
                if goal_tasks and all(t.get("completed") for t in goal_tasks):
                    goals_completed += 1

            return {
                "goals_completed": goals_completed,
                "tasks_completed": _completed_since(tasks, since),
                "activities_completed": _created_since(activities, since),
            }
        except Exception as exc:
            logger.warning(f"Quarterly stats unavailable for {user_id}: {exc}")
            return {"goals_completed": 0, "tasks_completed": 0, "activities_completed": 0}
