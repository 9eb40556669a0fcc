"""Activity streak tracking.

A streak counts consecutive UTC calendar days with at least one completed task,
activity or journal entry. Reaching 7, 14, 30, 60, 100 or 365 days sends a
celebration; a streak of two or more days that has seen no activity today gets
a single "at risk" reminder at the user's configured evening time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Optional

from .models import NotificationStatus, ScheduledNotification, UserStreak
from .scheduler import SmartNotificationScheduler
from .templates import (
    STREAK_MILESTONES,
    generate_notification_message,
    get_streak_milestone_template,
)
from .timeutil import local_at, parse_clock, resolve_timezone

logger = logging.getLogger(__name__)

STREAK_SOURCE = "streak"
STREAK_AT_RISK = "streak_at_risk"
DEFAULT_REMINDER_TIME = "18:00"
STREAK_ROUTE = "/app?tab=tasks"


def is_milestone(streak_count: int) -> bool:
    return streak_count in STREAK_MILESTONES


def days_until_next_milestone(current_streak: int) -> Optional[int]:
    for milestone in STREAK_MILESTONES:
        if milestone > current_streak:
            return milestone - current_streak
    return None


@dataclass
class StreakUpdate:
    current_streak: int
    longest_streak: int
    is_milestone: bool = False
    milestone_reached: Optional[int] = None


class StreakService:
    """Maintains streak records and the notifications they trigger."""

    def __init__(self, scheduler: SmartNotificationScheduler):
        self.scheduler = scheduler
        self._storage = scheduler.storage

    def _today(self) -> date:
        return self.scheduler.now().date()

    async def update_user_streak(self, user_id: str, activity_type: str = "task") -> StreakUpdate:
        """Record activity for today and celebrate milestones.

        Args:
            user_id: Owner of the streak
            activity_type: ``task``, ``activity`` or ``journal``; informational
        """
        today = self._today()
        today_text = today.isoformat()
        streak = await self._storage.get_user_streak(user_id)

        if streak is None:
            await self._storage.create_user_streak(
                UserStreak(
                    user_id=user_id,
                    current_streak=1,
                    longest_streak=1,
                    last_activity_date=today_text,
                    streak_start_date=today_text,
                    total_active_days=1,
                )
            )
            return StreakUpdate(current_streak=1, longest_streak=1)

        if streak.last_activity_date == today_text:
            return StreakUpdate(
                current_streak=streak.current_streak or 0,
                longest_streak=streak.longest_streak or 0,
            )

        days_since = None
        if streak.last_activity_date:
            try:
                days_since = (today - date.fromisoformat(streak.last_activity_date)).days
            except ValueError:
                days_since = None

        start_date = streak.streak_start_date
        if days_since == 1:
            current = (streak.current_streak or 0) + 1
        else:
            current = 1
            start_date = today_text
        longest = max(current, streak.longest_streak or 0)

        await self._storage.update_user_streak(
            user_id,
            {
                "current_streak": current,
                "longest_streak": longest,
                "last_activity_date": today_text,
                "streak_start_date": start_date,
                "total_active_days": (streak.total_active_days or 0) + 1,
            },
        )
        logger.debug(
            f"Streak for {user_id} now {current} days",
            extra={"activity_type": activity_type},
        )

        update = StreakUpdate(current_streak=current, longest_streak=longest)
        if is_milestone(current):
            update.is_milestone = True
            update.milestone_reached = current
            await self._celebrate(user_id, current)
        return update

    async def _celebrate(self, user_id: str, streak_count: int) -> None:
        template_type = get_streak_milestone_template(streak_count)
        if template_type is None:
            return
        message = generate_notification_message(template_type, {"streak_count": streak_count})
        if message is None:
            return
        await self.scheduler.send_immediate_notification(
            user_id,
            template_type,
            message.title,
            message.body,
            route=STREAK_ROUTE,
            haptic="celebration",
            channel=message.channel,
            source_type=STREAK_SOURCE,
            source_id=user_id,
        )

    async def check_streak_at_risk(
        self, user_id: str, timezone_name: Optional[str] = None
    ) -> bool:
        """Schedule a streak-at-risk reminder when today has no activity yet.

        Returns:
            True when the streak is at risk (reminder scheduled or already pending)
        """
        streak = await self._storage.get_user_streak(user_id)
        min_days = self.scheduler.settings.streak_min_days
        if streak is None or (streak.current_streak or 0) < min_days:
            return False

        if streak.last_activity_date == self._today().isoformat():
            return False

        existing = await self._storage.find_pending_smart_notification(
            user_id,
            STREAK_SOURCE,
            user_id,
            STREAK_AT_RISK,
            statuses=(NotificationStatus.PENDING,),
        )
        if existing is not None:
            return True

        prefs = await self._storage.get_notification_preferences(user_id)
        timezone_name = timezone_name or await self.scheduler.resolve_user_timezone(
            user_id, prefs
        )
        reminder = parse_clock(prefs.streak_reminder_time if prefs else None) or parse_clock(
            DEFAULT_REMINDER_TIME
        )

        now = self.scheduler.now()
        zone = resolve_timezone(timezone_name)
        local_today = now.astimezone(zone).date()
        scheduled_at = local_at(local_today, reminder[0], reminder[1], zone)
        if scheduled_at < now:
            scheduled_at = local_at(local_today + timedelta(days=1), reminder[0], reminder[1], zone)

        message = generate_notification_message(
            STREAK_AT_RISK, {"streak_count": streak.current_streak}
        )
        if message is None:
            return True

        await self.scheduler.schedule_smart_notification(
            ScheduledNotification(
                user_id=user_id,
                source_type=STREAK_SOURCE,
                source_id=user_id,
                notification_type=STREAK_AT_RISK,
                title=message.title,
                body=message.body,
                scheduled_at=scheduled_at,
                timezone=timezone_name,
                route=STREAK_ROUTE,
                metadata={
                    "streak_count": streak.current_streak,
                    "haptic": "heavy",
                    "channel": message.channel,
                },
                created_at=now,
                updated_at=now,
            )
        )
        return True

    async def process_streak_reminders(self) -> int:
        """Check every active streak; returns the number found at risk."""
        at_risk = 0
        try:
            streaks = await self._storage.get_users_with_active_streaks(
                self.scheduler.settings.streak_min_days
            )
            today_text = self._today().isoformat()
            for streak in streaks:
                if streak.last_activity_date == today_text:
                    continue
                try:
                    prefs = await self._storage.get_notification_preferences(streak.user_id)
                    if prefs is not None and not prefs.enable_streak_reminders:
                        continue
                    if await self.check_streak_at_risk(
                        streak.user_id, prefs.timezone if prefs else None
                    ):
                        at_risk += 1
                except Exception as exc:
                    logger.error(f"Streak reminder failed for {streak.user_id}: {exc}")
        except Exception as exc:
            logger.error(f"Error processing streak reminders: {exc}")
        return at_risk

    async def get_user_streak_info(self, user_id: str) -> Dict[str, Any]:
        streak = await self._storage.get_user_streak(user_id)
        if streak is None:
            return {
                "current_streak": 0,
                "longest_streak": 0,
                "last_activity_date": None,
                "streak_start_date": None,
                "total_active_days": 0,
                "is_at_risk": False,
                "next_milestone": STREAK_MILESTONES[0],
            }

        current = streak.current_streak or 0
        remaining = days_until_next_milestone(current)
        return {
            "current_streak": current,
            "longest_streak": streak.longest_streak or 0,
            "last_activity_date": streak.last_activity_date,
            "streak_start_date": streak.streak_start_date,
            "total_active_days": streak.total_active_days or 0,
            "is_at_risk": streak.last_activity_date != self._today().isoformat() and current >= 2,
            "next_milestone": current + remaining if remaining is not None else None,
        }

    async def reset_user_streak(self, user_id: str) -> None:
        await self._storage.update_user_streak(
            user_id,
            {"current_streak": 0, "streak_start_date": None, "last_activity_date": None},
        )
