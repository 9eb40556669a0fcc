"""Notification content templates.

Each template pairs two pure rendering functions (title, body) with the
haptic intensity, platform channel, category label and delivery priority of
the notification. Rendering functions receive a free-form context mapping and
must cope with any key being absent.

Interpolated free text is truncated so push payloads stay within platform
limits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

Context = Mapping[str, Any]
Renderer = Callable[[Context], str]

CHANNEL_TASKS = "journalmate_tasks"
CHANNEL_ACTIVITIES = "journalmate_activities"
CHANNEL_GROUPS = "journalmate_groups"
CHANNEL_STREAKS = "journalmate_streaks"
CHANNEL_ACHIEVEMENTS = "journalmate_achievements"
CHANNEL_ASSISTANT = "journalmate_assistant"

STREAK_MILESTONES = (7, 14, 30, 60, 100, 365)


@dataclass(frozen=True)
class NotificationTemplate:
    title: Renderer
    body: Renderer
    category: str
    haptic: str
    channel: str
    priority: str


@dataclass(frozen=True)
class RenderedMessage:
    """Output of :func:`generate_notification_message`."""

    title: str
    body: str
    haptic: str
    channel: str
    category: str
    priority: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "title": self.title,
            "body": self.body,
            "haptic": self.haptic,
            "channel": self.channel,
            "category": self.category,
            "priority": self.priority,
        }


def truncate(value: Any, max_length: int) -> str:
    """Cut ``value`` to ``max_length`` characters, ending in ``...`` when cut."""
    if not value:
        return ""
    text = str(value)
    if len(text) <= max_length:
        return text
    if max_length <= 3:
        return text[: max(max_length, 0)]
    return text[: max_length - 3] + "..."


def _get(ctx: Context, key: str, default: Any = None) -> Any:
    value = ctx.get(key)
    return default if value in (None, "") else value


def _name(ctx: Context, key: str, max_length: int, default: str) -> str:
    return truncate(_get(ctx, key, default), max_length)


def _plural(count: Any, word: str) -> str:
    try:
        return word if int(count) == 1 else f"{word}s"
    except (TypeError, ValueError):
        return f"{word}s"


def lead_phrase(minutes: Any) -> str:
    """Human phrase for a lead time: ``in 3 days``, ``tomorrow``, ``in 1 hour``."""
    try:
        minutes = int(minutes)
    except (TypeError, ValueError):
        return "soon"
    if minutes <= 0:
        return "today"
    if minutes == 1440:
        return "tomorrow"
    if minutes % 10080 == 0:
        weeks = minutes // 10080
        return f"in {weeks} {_plural(weeks, 'week')}"
    if minutes % 1440 == 0:
        days = minutes // 1440
        return f"in {days} {_plural(days, 'day')}"
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"in {hours} {_plural(hours, 'hour')}"
    return f"in {minutes} {_plural(minutes, 'minute')}"


# ============================================================================
# Task templates
# ============================================================================


def _task_due_body(ctx: Context) -> str:
    mins = _get(ctx, "minutes_until", 30)
    if mins <= 5:
        return f"Due in {mins} minutes. Time to wrap up!"
    if mins <= 15:
        return f"Due in {mins} minutes. Almost there!"
    return f"Due in {mins} minutes. You've got this!"


TASK_TEMPLATES: Dict[str, NotificationTemplate] = {
    "task_due_soon": NotificationTemplate(
        title=lambda ctx: f"📋 {_name(ctx, 'title', 40, 'Task')}",
        body=_task_due_body,
        category="TASK REMINDER",
        haptic="medium",
        channel=CHANNEL_TASKS,
        priority="high",
    ),
    "task_overdue": NotificationTemplate(
        title=lambda ctx: f"⏰ Overdue: {_name(ctx, 'title', 35, 'Task')}",
        body=lambda ctx: "This task is past due. Reschedule or mark complete?",
        category="TASK ALERT",
        haptic="heavy",
        channel=CHANNEL_TASKS,
        priority="high",
    ),
    "task_morning_reminder": NotificationTemplate(
        title=lambda ctx: (
            f"🌅 {_get(ctx, 'task_count', 0)} "
            f"{_plural(_get(ctx, 'task_count', 0), 'task')} due today"
        ),
        body=lambda ctx: (
            f"Starting with: {truncate(ctx['first_task'], 50)}"
            if _get(ctx, "first_task")
            else "Check your tasks for today"
        ),
        category="DAILY TASKS",
        haptic="light",
        channel=CHANNEL_TASKS,
        priority="default",
    ),
}


# ============================================================================
# Activity / trip templates
# ============================================================================


def _one_week_body(ctx: Context) -> str:
    if _get(ctx, "location"):
        return f"Time to prepare for {truncate(ctx['location'], 40)}! Get your tickets sorted."
    return "One week to go! Time to finalize your plans."


def _three_days_body(ctx: Context) -> str:
    if _get(ctx, "location"):
        return f"{truncate(ctx['location'], 40)} is coming up! Time to start packing."
    return "3 days away! Double-check your preparations."


def _one_day_body(ctx: Context) -> str:
    if _get(ctx, "weather"):
        return f"Weather: {truncate(ctx['weather'], 40)}. Everything packed?"
    if _get(ctx, "location"):
        return f"{truncate(ctx['location'], 40)} awaits! Final checks time."
    return "Tomorrow's the day! Make sure you're ready."


def _morning_of_body(ctx: Context) -> str:
    if _get(ctx, "first_task"):
        return f"First up: {truncate(ctx['first_task'], 50)}"
    if _get(ctx, "location"):
        return f"Heading to {truncate(ctx['location'], 40)}! Have an amazing time."
    return "The day is here! Enjoy every moment."


def _timeline_body(ctx: Context) -> str:
    mins = _get(ctx, "minutes_until", 30)
    if _get(ctx, "location"):
        return f"Starts in {mins} min at {truncate(ctx['location'], 40)}"
    return f"Coming up in {mins} minutes"


ACTIVITY_TEMPLATES: Dict[str, NotificationTemplate] = {
    "activity_one_week": NotificationTemplate(
        title=lambda ctx: f"✈️ {_name(ctx, 'title', 35, 'Your plan')} in 1 week",
        body=_one_week_body,
        category="TRIP PREP",
        haptic="medium",
        channel=CHANNEL_ACTIVITIES,
        priority="high",
    ),
    "activity_three_days": NotificationTemplate(
        title=lambda ctx: f"📅 {_name(ctx, 'title', 35, 'Your plan')} in 3 days",
        body=_three_days_body,
        category="TRIP PREP",
        haptic="medium",
        channel=CHANNEL_ACTIVITIES,
        priority="high",
    ),
    "activity_one_day": NotificationTemplate(
        title=lambda ctx: f"🎯 {_name(ctx, 'title', 35, 'Your plan')} is tomorrow!",
        body=_one_day_body,
        category="TRIP PREP",
        haptic="heavy",
        channel=CHANNEL_ACTIVITIES,
        priority="high",
    ),
    "activity_morning_of": NotificationTemplate(
        title=lambda ctx: f"🌟 Today: {_name(ctx, 'title', 40, 'Your plan')}",
        body=_morning_of_body,
        category="TODAY",
        haptic="heavy",
        channel=CHANNEL_ACTIVITIES,
        priority="high",
    ),
    "timeline_item_soon": NotificationTemplate(
        title=lambda ctx: f"⏱️ {_name(ctx, 'item_title', 40, 'Next step')}",
        body=_timeline_body,
        category="TIMELINE",
        haptic="medium",
        channel=CHANNEL_ACTIVITIES,
        priority="high",
    ),
    "activity_departure": NotificationTemplate(
        title=lambda ctx: f"🚀 Departure in {_get(ctx, 'hours_until', 4)} hours",
        body=lambda ctx: "Passport, tickets, essentials - ready? Have a safe journey!",
        category="TRAVEL",
        haptic="heavy",
        channel=CHANNEL_ACTIVITIES,
        priority="high",
    ),
    "activity_completion": NotificationTemplate(
        title=lambda ctx: f"🎉 {_name(ctx, 'title', 35, 'Plan')} complete!",
        body=lambda ctx: (
            f"All {ctx['task_count']} {_plural(ctx['task_count'], 'task')} done. Amazing work!"
            if _get(ctx, "task_count")
            else "Every task is done. Amazing work!"
        ),
        category="ACHIEVEMENT",
        haptic="celebration",
        channel=CHANNEL_ACHIEVEMENTS,
        priority="default",
    ),
    "event_upcoming": NotificationTemplate(
        title=lambda ctx: (
            f"📌 {_name(ctx, 'title', 35, 'Event')} {lead_phrase(_get(ctx, 'minutes_until'))}"
        ),
        body=lambda ctx: (
            f"At {truncate(ctx['location'], 40)}. Don't be late!"
            if _get(ctx, "location")
            else "Your event is coming up. Don't be late!"
        ),
        category="EVENT",
        haptic="medium",
        channel=CHANNEL_ACTIVITIES,
        priority="default",
    ),
    "arrival_soon": NotificationTemplate(
        title=lambda ctx: f"🛬 Arriving {lead_phrase(_get(ctx, 'minutes_until', 60))}",
        body=lambda ctx: (
            f"Almost at {truncate(ctx['location'], 40)}. Get ready to land!"
            if _get(ctx, "location")
            else "Almost there. Gather your things!"
        ),
        category="TRAVEL",
        haptic="medium",
        channel=CHANNEL_ACTIVITIES,
        priority="default",
    ),
}


# ============================================================================
# Goal templates
# ============================================================================

GOAL_TEMPLATES: Dict[str, NotificationTemplate] = {
    "goal_deadline_week": NotificationTemplate(
        title=lambda ctx: "🎯 Goal deadline in 1 week",
        body=lambda ctx: f'"{_name(ctx, "title", 40, "Your goal")}" - How\'s your progress?',
        category="GOAL REMINDER",
        haptic="medium",
        channel=CHANNEL_TASKS,
        priority="default",
    ),
    "goal_deadline_three_days": NotificationTemplate(
        title=lambda ctx: "🎯 Goal deadline in 3 days",
        body=lambda ctx: f'"{_name(ctx, "title", 40, "Your goal")}" - Final push time!',
        category="GOAL REMINDER",
        haptic="medium",
        channel=CHANNEL_TASKS,
        priority="high",
    ),
    "goal_deadline_tomorrow": NotificationTemplate(
        title=lambda ctx: "⚡ Goal deadline tomorrow",
        body=lambda ctx: f'"{_name(ctx, "title", 40, "Your goal")}" - You can do this!',
        category="GOAL ALERT",
        haptic="heavy",
        channel=CHANNEL_TASKS,
        priority="high",
    ),
    "goal_deadline_hour": NotificationTemplate(
        title=lambda ctx: "⏰ Goal deadline in 1 hour",
        body=lambda ctx: f'"{_name(ctx, "title", 40, "Your goal")}" - Finish strong!',
        category="GOAL ALERT",
        haptic="urgent",
        channel=CHANNEL_TASKS,
        priority="high",
    ),
    "goal_milestone": NotificationTemplate(
        title=lambda ctx: f"🏅 {_get(ctx, 'percentage', 50)}% of your goal done",
        body=lambda ctx: (
            f'"{_name(ctx, "title", 36, "Your goal")}" - '
            f"{_get(ctx, 'completed_count', '?')}/{_get(ctx, 'total_count', '?')} tasks complete"
        ),
        category="GOAL PROGRESS",
        haptic="medium",
        channel=CHANNEL_ACHIEVEMENTS,
        priority="default",
    ),
    "goal_completed": NotificationTemplate(
        title=lambda ctx: "🏆 Goal achieved!",
        body=lambda ctx: f'"{_name(ctx, "title", 40, "Your goal")}" is complete. Celebrate!',
        category="ACHIEVEMENT",
        haptic="celebration",
        channel=CHANNEL_ACHIEVEMENTS,
        priority="high",
    ),
    "deadline_upcoming": NotificationTemplate(
        title=lambda ctx: f"⏳ Deadline {lead_phrase(_get(ctx, 'minutes_until'))}",
        body=lambda ctx: f'"{_name(ctx, "title", 40, "Your plan")}" - Stay on track!',
        category="DEADLINE",
        haptic="medium",
        channel=CHANNEL_TASKS,
        priority="high",
    ),
}


# ============================================================================
# Group templates
# ============================================================================

GROUP_TEMPLATES: Dict[str, NotificationTemplate] = {
    "group_invite_received": NotificationTemplate(
        title=lambda ctx: f"📬 {_name(ctx, 'inviter_name', 30, 'Someone')} invited you",
        body=lambda ctx: (
            f'Join "{_name(ctx, "group_name", 30, "a group")}" to collaborate on plans together'
        ),
        category="GROUP INVITE",
        haptic="heavy",
        channel=CHANNEL_GROUPS,
        priority="high",
    ),
    "group_invite_accepted": NotificationTemplate(
        title=lambda ctx: f"🎉 {_name(ctx, 'user_name', 30, 'Someone')} joined!",
        body=lambda ctx: f'Your group "{_name(ctx, "group_name", 30, "group")}" has a new member',
        category="GROUP UPDATE",
        haptic="medium",
        channel=CHANNEL_GROUPS,
        priority="default",
    ),
    "group_member_left": NotificationTemplate(
        title=lambda ctx: f"👋 {_name(ctx, 'user_name', 30, 'Someone')} left",
        body=lambda ctx: (
            f"{_name(ctx, 'user_name', 30, 'Someone')} has left "
            f'"{_name(ctx, "group_name", 30, "your group")}"'
        ),
        category="GROUP UPDATE",
        haptic="light",
        channel=CHANNEL_GROUPS,
        priority="low",
    ),
    "group_activity_shared": NotificationTemplate(
        title=lambda ctx: f"📍 {_name(ctx, 'sharer_name', 30, 'Someone')} shared a plan",
        body=lambda ctx: (
            f'"{_name(ctx, "activity_title", 30, "A plan")}" shared with '
            f"{_name(ctx, 'group_name', 20, 'your group')}"
        ),
        category="GROUP ACTIVITY",
        haptic="medium",
        channel=CHANNEL_GROUPS,
        priority="default",
    ),
    "group_task_completed": NotificationTemplate(
        title=lambda ctx: f"✅ {_name(ctx, 'user_name', 30, 'Someone')} completed a task",
        body=lambda ctx: (
            f'"{_name(ctx, "task_title", 35, "A task")}" in '
            f"{_name(ctx, 'group_name', 20, 'your group')}"
        ),
        category="GROUP ACTIVITY",
        haptic="light",
        channel=CHANNEL_GROUPS,
        priority="low",
    ),
    "group_goal_milestone": NotificationTemplate(
        title=lambda ctx: "🏆 Group milestone reached!",
        body=lambda ctx: (
            f'"{_name(ctx, "group_name", 25, "Your group")}" is {_get(ctx, "progress", 0)}% '
            f'to completing "{_name(ctx, "goal_title", 25, "its goal")}"'
        ),
        category="GROUP ACHIEVEMENT",
        haptic="celebration",
        channel=CHANNEL_GROUPS,
        priority="default",
    ),
}


# ============================================================================
# Streak templates
# ============================================================================


def _streak_milestone(title: str, body: str, priority: str = "default") -> NotificationTemplate:
    return NotificationTemplate(
        title=lambda ctx: title,
        body=lambda ctx: body,
        category="ACHIEVEMENT",
        haptic="celebration",
        channel=CHANNEL_ACHIEVEMENTS,
        priority=priority,
    )


STREAK_TEMPLATES: Dict[str, NotificationTemplate] = {
    "streak_at_risk": NotificationTemplate(
        title=lambda ctx: f"🔥 {_get(ctx, 'streak_count', 0)}-day streak at risk!",
        body=lambda ctx: "Complete any task before midnight to keep it going",
        category="STREAK ALERT",
        haptic="heavy",
        channel=CHANNEL_STREAKS,
        priority="high",
    ),
    "streak_milestone_7": _streak_milestone(
        "🔥 1 Week Streak!", "7 days of consistency! You're building a great habit."
    ),
    "streak_milestone_14": _streak_milestone(
        "🔥 2 Week Streak!", "14 days strong! Your dedication is paying off."
    ),
    "streak_milestone_30": _streak_milestone(
        "🏆 30 Day Streak!", "A full month of consistency! You're unstoppable."
    ),
    "streak_milestone_60": _streak_milestone(
        "🏆 60 Day Streak!", "Two months of dedication! Incredible commitment."
    ),
    "streak_milestone_100": _streak_milestone(
        "👑 100 Day Streak!", "Triple digits! You've mastered the art of consistency.", "high"
    ),
    "streak_milestone_365": _streak_milestone(
        "🎖️ 1 Year Streak!", "365 days! An entire year of dedication. Legendary!", "high"
    ),
}


# ============================================================================
# Accountability templates
# ============================================================================


def _weekly_body(ctx: Context) -> str:
    if _get(ctx, "tasks_completed") and _get(ctx, "streak_days"):
        return (
            f"{ctx['tasks_completed']} tasks completed, {ctx['streak_days']} day streak. "
            "Review your progress?"
        )
    return "How are your goals progressing this week?"


def _monthly_body(ctx: Context) -> str:
    if _get(ctx, "tasks_completed") and _get(ctx, "activities_planned"):
        return (
            f"You crushed {ctx['tasks_completed']} tasks and planned "
            f"{ctx['activities_planned']} adventures!"
        )
    return "Let's look back at what you accomplished this month."


def _quarterly_body(ctx: Context) -> str:
    if _get(ctx, "goals_completed"):
        return (
            f"{ctx['goals_completed']} {_plural(ctx['goals_completed'], 'goal')} reached. "
            "Time to reflect and plan ahead"
        )
    return "Time to reflect on the past 3 months and plan ahead"


ACCOUNTABILITY_TEMPLATES: Dict[str, NotificationTemplate] = {
    "weekly_checkin": NotificationTemplate(
        title=lambda ctx: "📊 Weekly Check-in",
        body=_weekly_body,
        category="WEEKLY REVIEW",
        haptic="light",
        channel=CHANNEL_ASSISTANT,
        priority="default",
    ),
    "monthly_review": NotificationTemplate(
        title=lambda ctx: f"📈 {_get(ctx, 'month_name', 'Monthly')} Review",
        body=_monthly_body,
        category="MONTHLY REVIEW",
        haptic="medium",
        channel=CHANNEL_ASSISTANT,
        priority="default",
    ),
    "quarterly_review": NotificationTemplate(
        title=lambda ctx: "📅 Quarterly Goals Review",
        body=_quarterly_body,
        category="QUARTERLY REVIEW",
        haptic="medium",
        channel=CHANNEL_ASSISTANT,
        priority="default",
    ),
}


# ============================================================================
# Media, reservation and travel templates
# ============================================================================

MEDIA_TEMPLATES: Dict[str, NotificationTemplate] = {
    "movie_theater_release": NotificationTemplate(
        title=lambda ctx: (
            f"🎬 {truncate(_get(ctx, 'movie_title') or _get(ctx, 'title', 'Your pick'), 40)} is out!"
        ),
        body=lambda ctx: "Now available. Time to check it off your list!",
        category="ENTERTAINMENT",
        haptic="medium",
        channel=CHANNEL_ACTIVITIES,
        priority="default",
    ),
    "movie_streaming_release": NotificationTemplate(
        title=lambda ctx: f"🎬 {_name(ctx, 'movie_title', 35, 'Your pick')} is streaming",
        body=lambda ctx: (
            f"Now available on {truncate(ctx['platform'], 30)}!"
            if _get(ctx, "platform")
            else "Now available for streaming!"
        ),
        category="ENTERTAINMENT",
        haptic="medium",
        channel=CHANNEL_ACTIVITIES,
        priority="default",
    ),
    "show_new_season": NotificationTemplate(
        title=lambda ctx: (
            f"📺 {_name(ctx, 'show_title', 35, 'Your show')} Season {_get(ctx, 'season', '')}"
        ).rstrip(),
        body=lambda ctx: "New season is out! Time to binge.",
        category="ENTERTAINMENT",
        haptic="medium",
        channel=CHANNEL_ACTIVITIES,
        priority="default",
    ),
}


def _reservation_day_body(ctx: Context) -> str:
    if _get(ctx, "venue_name") and _get(ctx, "time"):
        return f"{truncate(ctx['venue_name'], 36)} at {ctx['time']}. Don't forget!"
    return "You have a reservation tomorrow. Check the details!"


def _flight_day_body(ctx: Context) -> str:
    if _get(ctx, "destination") and _get(ctx, "departure_time"):
        return f"{truncate(ctx['destination'], 36)} at {ctx['departure_time']}. Pack your bags!"
    return "Your flight is tomorrow. Double-check everything!"


RESERVATION_TEMPLATES: Dict[str, NotificationTemplate] = {
    "reservation_day_before": NotificationTemplate(
        title=lambda ctx: "🍽️ Reservation tomorrow",
        body=_reservation_day_body,
        category="RESERVATION",
        haptic="medium",
        channel=CHANNEL_ACTIVITIES,
        priority="high",
    ),
    "reservation_hours_before": NotificationTemplate(
        title=lambda ctx: f"🍽️ Reservation in {_get(ctx, 'hours_until', 2)} hours",
        body=lambda ctx: (
            f"{truncate(ctx['venue_name'], 36)} is expecting you!"
            if _get(ctx, "venue_name")
            else "Your reservation is coming up soon!"
        ),
        category="RESERVATION",
        haptic="heavy",
        channel=CHANNEL_ACTIVITIES,
        priority="high",
    ),
    "hotel_checkin_reminder": NotificationTemplate(
        title=lambda ctx: "🏨 Hotel check-in today",
        body=lambda ctx: (
            f"Check-in at {truncate(ctx['hotel_name'], 36)}. Have a great stay!"
            if _get(ctx, "hotel_name")
            else "Your hotel check-in is today. Safe travels!"
        ),
        category="TRAVEL",
        haptic="medium",
        channel=CHANNEL_ACTIVITIES,
        priority="high",
    ),
    "checkin_upcoming": NotificationTemplate(
        title=lambda ctx: f"🏨 Check-in {lead_phrase(_get(ctx, 'minutes_until'))}",
        body=lambda ctx: (
            f"{truncate(ctx['location'], 40)} is ready for you."
            if _get(ctx, "location")
            else "Have your booking details handy."
        ),
        category="TRAVEL",
        haptic="medium",
        channel=CHANNEL_ACTIVITIES,
        priority="high",
    ),
    "flight_day_before": NotificationTemplate(
        title=lambda ctx: "✈️ Flight tomorrow",
        body=_flight_day_body,
        category="TRAVEL",
        haptic="heavy",
        channel=CHANNEL_ACTIVITIES,
        priority="high",
    ),
    "flight_hours_before": NotificationTemplate(
        title=lambda ctx: (
            f"✈️ Flight in {_get(ctx, 'hours_until', 4)} "
            f"{_plural(_get(ctx, 'hours_until', 4), 'hour')}"
        ),
        body=lambda ctx: "Passport, tickets, essentials - all ready? Safe travels!",
        category="TRAVEL",
        haptic="urgent",
        channel=CHANNEL_ACTIVITIES,
        priority="high",
    ),
}


# ============================================================================
# Assistant and journal templates
# ============================================================================

ASSISTANT_TEMPLATES: Dict[str, NotificationTemplate] = {
    "idle_reminder": NotificationTemplate(
        title=lambda ctx: "👋 We miss you!",
        body=lambda ctx: "Ready to plan your next adventure?",
        category="ASSISTANT",
        haptic="light",
        channel=CHANNEL_ASSISTANT,
        priority="low",
    ),
    "unfinished_planning": NotificationTemplate(
        title=lambda ctx: "📝 Continue planning?",
        body=lambda ctx: (
            f'You started "{_name(ctx, "activity_title", 35, "a plan")}" - want to finish it?'
        ),
        category="ASSISTANT",
        haptic="light",
        channel=CHANNEL_ASSISTANT,
        priority="low",
    ),
    "suggested_activity": NotificationTemplate(
        title=lambda ctx: "💡 Activity suggestion",
        body=lambda ctx: (
            f"Based on your interests: {truncate(ctx['suggestion'], 45)}"
            if _get(ctx, "suggestion")
            else "We have a suggestion based on your interests!"
        ),
        category="ASSISTANT",
        haptic="light",
        channel=CHANNEL_ASSISTANT,
        priority="low",
    ),
    "calendar_conflict": NotificationTemplate(
        title=lambda ctx: "⚠️ Schedule conflict detected",
        body=lambda ctx: (
            f'"{_name(ctx, "activity1", 20, "One plan")}" overlaps with '
            f'"{_name(ctx, "activity2", 20, "another")}"'
        ),
        category="ASSISTANT",
        haptic="heavy",
        channel=CHANNEL_ASSISTANT,
        priority="high",
    ),
    "weather_alert": NotificationTemplate(
        title=lambda ctx: "🌤️ Weather update",
        body=lambda ctx: (
            f"{_name(ctx, 'weather', 30, 'A change in weather')} expected for "
            f'"{_name(ctx, "activity_title", 30, "your plan")}" - plan accordingly'
        ),
        category="ASSISTANT",
        haptic="medium",
        channel=CHANNEL_ASSISTANT,
        priority="default",
    ),
}

JOURNAL_TEMPLATES: Dict[str, NotificationTemplate] = {
    "daily_journal_prompt": NotificationTemplate(
        title=lambda ctx: "📔 Time to reflect",
        body=lambda ctx: "Take a moment to journal about your day",
        category="JOURNAL",
        haptic="light",
        channel=CHANNEL_ASSISTANT,
        priority="low",
    ),
    "journal_streak": NotificationTemplate(
        title=lambda ctx: f"📔 {_get(ctx, 'streak_count', 0)}-day journal streak!",
        body=lambda ctx: "Keep the momentum going with today's entry",
        category="JOURNAL",
        haptic="medium",
        channel=CHANNEL_ACHIEVEMENTS,
        priority="default",
    ),
}


def _build_registry() -> Mapping[str, NotificationTemplate]:
    registry: Dict[str, NotificationTemplate] = {}
    for group in (
        TASK_TEMPLATES,
        ACTIVITY_TEMPLATES,
        GOAL_TEMPLATES,
        GROUP_TEMPLATES,
        STREAK_TEMPLATES,
        ACCOUNTABILITY_TEMPLATES,
        MEDIA_TEMPLATES,
        RESERVATION_TEMPLATES,
        ASSISTANT_TEMPLATES,
        JOURNAL_TEMPLATES,
    ):
        registry.update(group)

    # Scheduling keys: "{entityType}_{context}_{lead}" and "{context}_{lead}"
    aliases = {
        "task_due_30": "task_due_soon",
        "activity_starts_10080": "activity_one_week",
        "activity_starts_4320": "activity_three_days",
        "activity_starts_1440": "activity_one_day",
        "activity_starts_0": "activity_morning_of",
        "starts_10080": "activity_one_week",
        "starts_4320": "activity_three_days",
        "starts_1440": "activity_one_day",
        "starts_0": "activity_morning_of",
        "goal_deadline_10080": "goal_deadline_week",
        "goal_deadline_4320": "goal_deadline_three_days",
        "goal_deadline_1440": "goal_deadline_tomorrow",
        "goal_deadline_60": "goal_deadline_hour",
        "deadline_10080": "deadline_upcoming",
        "deadline_4320": "deadline_upcoming",
        "deadline_1440": "deadline_upcoming",
        "deadline_60": "deadline_upcoming",
        "scheduled_30": "timeline_item_soon",
        "departs_1440": "flight_day_before",
        "departs_240": "flight_hours_before",
        "departs_60": "flight_hours_before",
        "arrives_60": "arrival_soon",
        "check-in_1440": "checkin_upcoming",
        "check-in_120": "checkin_upcoming",
        "reservation_1440": "reservation_day_before",
        "reservation_120": "reservation_hours_before",
        "releases_0": "movie_theater_release",
        "event_1440": "event_upcoming",
        "event_60": "event_upcoming",
        "event_30": "event_upcoming",
    }
    for alias, target in aliases.items():
        registry[alias] = registry[target]

    return MappingProxyType(registry)


TEMPLATES: Mapping[str, NotificationTemplate] = _build_registry()


def get_template(notification_type: str) -> Optional[NotificationTemplate]:
    return TEMPLATES.get(notification_type)


def generate_notification_message(
    notification_type: str, context: Optional[Context] = None
) -> Optional[RenderedMessage]:
    """Render the template registered for ``notification_type``.

    Returns:
        The rendered message, or ``None`` when no template is registered. Callers
        treat ``None`` as "skip".
    """
    template = get_template(notification_type)
    if template is None:
        logger.warning(f"No template found for notification type: {notification_type}")
        return None

    ctx = context or {}
    return RenderedMessage(
        title=template.title(ctx),
        body=template.body(ctx),
        haptic=template.haptic,
        channel=template.channel,
        category=template.category,
        priority=template.priority,
    )


def get_streak_milestone_template(streak_count: int) -> Optional[str]:
    if streak_count in STREAK_MILESTONES:
        return f"streak_milestone_{streak_count}"
    return None


def get_notification_channels() -> List[Dict[str, str]]:
    """Platform notification channels (Android channel ids and importance)."""
    return [
        {
            "id": CHANNEL_TASKS,
            "name": "Task Reminders",
            "description": "Reminders for upcoming and overdue tasks",
            "importance": "high",
        },
        {
            "id": CHANNEL_ACTIVITIES,
            "name": "Activity Updates",
            "description": "Updates about your planned activities and trips",
            "importance": "high",
        },
        {
            "id": CHANNEL_GROUPS,
            "name": "Group Activity",
            "description": "Invites, joins, and updates from your groups",
            "importance": "high",
        },
        {
            "id": CHANNEL_STREAKS,
            "name": "Streak Reminders",
            "description": "Reminders to maintain your activity streaks",
            "importance": "default",
        },
        {
            "id": CHANNEL_ACHIEVEMENTS,
            "name": "Achievements",
            "description": "Milestone celebrations and badge unlocks",
            "importance": "default",
        },
        {
            "id": CHANNEL_ASSISTANT,
            "name": "Smart Assistant",
            "description": "Suggestions, tips, and check-in reminders",
            "importance": "low",
        },
    ]


HAPTIC_PATTERNS: Mapping[str, tuple[int, ...]] = MappingProxyType(
    {
        "light": (0, 50),
        "medium": (0, 100, 50, 100),
        "heavy": (0, 200, 100, 200),
        "celebration": (0, 100, 50, 100, 50, 200, 100, 300),
        "urgent": (0, 300, 100, 300, 100, 300),
    }
)


def get_haptic_pattern(haptic_type: str) -> List[int]:
    """Vibration pattern in milliseconds; unknown types vibrate as ``medium``."""
    return list(HAPTIC_PATTERNS.get(haptic_type, HAPTIC_PATTERNS["medium"]))
