"""Tests for SmartNotificationScheduler."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from journalmate.notifications.models import (
    NotificationPreferences,
    NotificationStatus,
    UserProfile,
)
from journalmate.notifications.scheduler import (
    FALLBACK_BODY,
    SmartNotificationScheduler,
    generate_deep_link,
    get_channel_for_entity_type,
    get_haptic_for_context,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


PARIS_TRIP = {
    "id": "a1",
    "title": "Paris Trip",
    "startDate": "2025-09-01",
    "location": "Paris",
}


class TestModuleHelpers:
    def test_deep_links(self) -> None:
        assert generate_deep_link("task", "t1") == "/app?tab=tasks&task=t1"
        assert generate_deep_link("goal", 7) == "/app?tab=goals&goal=7"
        assert generate_deep_link("activityTask", "a1") == "/app?tab=activities&activity=a1"
        assert generate_deep_link("somethingElse", "x") == "/app"

    @pytest.mark.parametrize(
        "context,lead,expected",
        [
            ("due", 30, "urgent"),
            ("deadline", 60, "urgent"),
            ("departs", 60, "urgent"),
            ("departs", 240, "light"),
            ("scheduled", 30, "medium"),
            ("event", 60, "medium"),
            ("starts", 1440, "light"),
            ("starts", 0, "medium"),
        ],
    )
    def test_haptic_for_context(self, context: str, lead: int, expected: str) -> None:
        assert get_haptic_for_context(context, lead) == expected

    def test_channel_for_entity_type(self) -> None:
        assert get_channel_for_entity_type("task") == "journalmate_tasks"
        assert get_channel_for_entity_type("activity") == "journalmate_activities"
        assert get_channel_for_entity_type("group") == "journalmate_groups"
        assert get_channel_for_entity_type("unknown") == "journalmate_assistant"


class TestMorningOf:
    def test_utc_morning_keeps_calendar_day(self, scheduler) -> None:
        assert scheduler.morning_of(utc(2025, 6, 15, 23, 0), "UTC") == utc(2025, 6, 15, 8, 0)

    def test_local_day_is_used_for_eastern_zones(self, scheduler) -> None:
        # 23:00Z is already 08:00 on the 16th in Tokyo
        assert scheduler.morning_of(utc(2025, 6, 15, 23, 0), "Asia/Tokyo") == utc(
            2025, 6, 15, 23, 0
        )

    def test_local_day_is_used_for_western_zones(self, scheduler) -> None:
        assert scheduler.morning_of(utc(2025, 6, 15, 23, 0), "America/New_York") == utc(
            2025, 6, 15, 12, 0
        )


class TestAutoSchedule:
    @pytest.mark.asyncio
    async def test_trip_gets_full_reminder_ladder(self, store, scheduler, clock) -> None:
        clock.set(utc(2025, 8, 1))
        store.add_user(UserProfile(user_id="u1", timezone="UTC"))

        rows = await scheduler.auto_schedule_notifications(PARIS_TRIP, "activity", "a1", "u1")

        assert [r.scheduled_at for r in rows] == [
            utc(2025, 8, 25),
            utc(2025, 8, 29),
            utc(2025, 8, 31),
            utc(2025, 9, 1, 8, 0),
        ]
        assert [r.notification_type for r in rows] == [
            "activity_starts_10080",
            "activity_starts_4320",
            "activity_starts_1440",
            "activity_starts_0",
        ]
        assert rows[0].title == "✈️ Paris Trip in 1 week"
        assert all(r.status == NotificationStatus.PENDING for r in rows)
        assert all(r.route == "/app?tab=activities&activity=a1" for r in rows)
        assert rows[0].metadata["location"] == "Paris"
        assert rows[3].metadata["lead_minutes"] == 0
        assert len(store.rows()) == 4

    @pytest.mark.asyncio
    async def test_past_candidates_are_dropped(self, store, scheduler, clock) -> None:
        clock.set(utc(2025, 8, 30))

        rows = await scheduler.auto_schedule_notifications(PARIS_TRIP, "activity", "a1", "u1")

        assert [r.notification_type for r in rows] == [
            "activity_starts_1440",
            "activity_starts_0",
        ]

    @pytest.mark.asyncio
    async def test_candidate_equal_to_now_is_dropped(self, store, scheduler, clock) -> None:
        task = {"id": "t1", "title": "Call mom", "dueDate": clock() + timedelta(minutes=30)}

        rows = await scheduler.auto_schedule_notifications(task, "task", "t1", "u1")

        assert rows == []

    @pytest.mark.asyncio
    async def test_task_due_reminder(self, store, scheduler, clock) -> None:
        task = {"id": "t1", "title": "Pay rent", "dueDate": clock() + timedelta(hours=1)}

        rows = await scheduler.auto_schedule_notifications(task, "task", "t1", "u1")

        assert len(rows) == 1
        row = rows[0]
        assert row.notification_type == "task_due_30"
        assert row.scheduled_at == clock() + timedelta(minutes=30)
        assert row.title == "📋 Pay rent"
        assert row.route == "/app?tab=tasks&task=t1"
        assert row.metadata["haptic"] == "urgent"
        assert row.metadata["channel"] == "journalmate_tasks"

    @pytest.mark.asyncio
    async def test_rescheduling_unchanged_entity_is_idempotent(
        self, store, scheduler, clock
    ) -> None:
        clock.set(utc(2025, 8, 1))

        first = await scheduler.auto_schedule_notifications(PARIS_TRIP, "activity", "a1", "u1")
        second = await scheduler.auto_schedule_notifications(PARIS_TRIP, "activity", "a1", "u1")

        assert len(store.rows()) == 4
        assert [r.notification_id for r in first] == [r.notification_id for r in second]

    @pytest.mark.asyncio
    async def test_terminal_rows_do_not_hide_pending_ones(self, store, scheduler) -> None:
        goal = {"id": "g1", "title": "Ship v1", "deadline": "2025-08-11T12:00:00Z"}
        first = await scheduler.auto_schedule_notifications(goal, "goal", "g1", "u1")
        week_ahead = next(r for r in first if r.notification_type == "goal_deadline_10080")
        await store.update_smart_notification(week_ahead.notification_id, {"status": "sent"})

        await scheduler.cancel_notifications_for_source("goal", "g1")
        moved = dict(goal, deadline="2025-08-13T12:00:00Z")
        await scheduler.auto_schedule_notifications(moved, "goal", "g1", "u1")
        await scheduler.auto_schedule_notifications(moved, "goal", "g1", "u1")

        pending = [r.notification_type for r in store.rows(NotificationStatus.PENDING)]
        assert sorted(pending) == sorted(
            ["goal_deadline_10080", "goal_deadline_4320", "goal_deadline_1440", "goal_deadline_60"]
        )
        assert len(store.rows(NotificationStatus.SENT)) == 1
        assert len(store.rows(NotificationStatus.CANCELLED)) == 3

    @pytest.mark.asyncio
    async def test_fields_sharing_a_context_get_qualified_types(
        self, store, scheduler, clock
    ) -> None:
        activity = {
            "id": "a2",
            "title": "Museum day",
            "timeline": [
                {"title": "Louvre", "scheduledAt": clock() + timedelta(hours=2)},
                {"title": "Orsay", "scheduledAt": clock() + timedelta(hours=5)},
            ],
        }

        rows = await scheduler.auto_schedule_notifications(activity, "activity", "a2", "u1")

        assert [r.notification_type for r in rows] == [
            "activity_scheduled_30:timeline[0].scheduledAt",
            "activity_scheduled_30:timeline[1].scheduledAt",
        ]
        assert rows[0].title == "⏱️ Louvre"

    @pytest.mark.asyncio
    async def test_unknown_context_uses_preference_lead(self, store, scheduler, clock) -> None:
        store.set_preferences(NotificationPreferences(user_id="u1", reminder_lead_time=45))
        activity = {"id": "a3", "title": "Concert", "endDate": clock() + timedelta(hours=3)}

        rows = await scheduler.auto_schedule_notifications(activity, "activity", "a3", "u1")

        assert len(rows) == 1
        assert rows[0].notification_type == "activity_ends_45"
        assert rows[0].scheduled_at == clock() + timedelta(hours=3, minutes=-45)
        assert rows[0].title == "🔔 Concert"
        assert rows[0].body == FALLBACK_BODY

    @pytest.mark.asyncio
    async def test_disabled_category_schedules_nothing(self, store, scheduler, clock) -> None:
        store.set_preferences(NotificationPreferences(user_id="u1", enable_task_reminders=False))
        task = {"id": "t1", "title": "Pay rent", "dueDate": clock() + timedelta(hours=2)}

        assert await scheduler.auto_schedule_notifications(task, "task", "t1", "u1") == []
        assert store.rows() == []

    @pytest.mark.asyncio
    async def test_entity_without_time_fields(self, store, scheduler) -> None:
        assert await scheduler.auto_schedule_notifications({"title": "x"}, "task", "t1", "u1") == []
        assert await scheduler.auto_schedule_notifications(None, "task", "t1", "u1") == []

    @pytest.mark.asyncio
    async def test_store_failure_for_one_candidate_is_isolated(
        self, store, scheduler, clock
    ) -> None:
        clock.set(utc(2025, 8, 1))
        original = store.create_smart_notification
        calls = {"count": 0}

        async def flaky(record):
            calls["count"] += 1
            if calls["count"] == 2:
                raise RuntimeError("write failed")
            return await original(record)

        store.create_smart_notification = AsyncMock(side_effect=flaky)

        rows = await scheduler.auto_schedule_notifications(PARIS_TRIP, "activity", "a1", "u1")

        assert [r.notification_type for r in rows] == [
            "activity_starts_10080",
            "activity_starts_1440",
            "activity_starts_0",
        ]

    @pytest.mark.asyncio
    async def test_store_read_failure_never_raises(self, store, scheduler, clock) -> None:
        store.get_notification_preferences = AsyncMock(side_effect=RuntimeError("down"))
        task = {"id": "t1", "dueDate": clock() + timedelta(hours=2)}

        assert await scheduler.auto_schedule_notifications(task, "task", "t1", "u1") == []

    @pytest.mark.asyncio
    async def test_user_timezone_beats_preference_timezone(self, store, scheduler, clock) -> None:
        clock.set(utc(2025, 8, 1))
        store.add_user(UserProfile(user_id="u1", timezone="Asia/Tokyo"))
        store.set_preferences(NotificationPreferences(user_id="u1", timezone="America/New_York"))

        rows = await scheduler.auto_schedule_notifications(PARIS_TRIP, "activity", "a1", "u1")

        morning = rows[-1]
        assert morning.timezone == "Asia/Tokyo"
        # 2025-09-01T00:00Z is 09:00 in Tokyo, so the morning-of lands at 08:00 JST
        assert morning.scheduled_at == utc(2025, 8, 31, 23, 0)


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, store, scheduler, clock) -> None:
        task = {"id": "t1", "title": "Pay rent", "dueDate": clock() + timedelta(hours=2)}
        await scheduler.auto_schedule_notifications(task, "task", "t1", "u1")

        assert await scheduler.cancel_notifications_for_source("task", "t1") == 1
        assert await scheduler.cancel_notifications_for_source("task", "t1") == 0
        assert [r.status for r in store.rows()] == [NotificationStatus.CANCELLED]

    @pytest.mark.asyncio
    async def test_cancel_then_reschedule_creates_fresh_rows(
        self, store, scheduler, clock
    ) -> None:
        task = {"id": "t1", "title": "Pay rent", "dueDate": clock() + timedelta(hours=2)}
        await scheduler.auto_schedule_notifications(task, "task", "t1", "u1")
        await scheduler.cancel_notifications_for_source("task", "t1")

        task["dueDate"] = clock() + timedelta(hours=4)
        rows = await scheduler.auto_schedule_notifications(task, "task", "t1", "u1")

        assert len(rows) == 1
        assert len(store.rows(NotificationStatus.PENDING)) == 1
        assert len(store.rows(NotificationStatus.CANCELLED)) == 1

    @pytest.mark.asyncio
    async def test_cancel_store_failure_returns_zero(self, store, scheduler) -> None:
        store.cancel_smart_notifications = AsyncMock(side_effect=RuntimeError("down"))

        assert await scheduler.cancel_notifications_for_source("task", "t1") == 0


class TestImmediate:
    @pytest.mark.asyncio
    async def test_outside_quiet_hours_delivers_now(self, store, scheduler, clock) -> None:
        row = await scheduler.send_immediate_notification(
            "u1", "activity_ready", "🎯 Plan", "Ready", route="/app", source_id="a1"
        )

        assert row is not None
        assert row.status == NotificationStatus.SENT
        assert row.sent_at == clock()
        assert row.source_type == "immediate"
        assert len(store.in_app) == 1
        assert store.in_app[0].title == "🎯 Plan"
        assert len(store.history) == 1

    @pytest.mark.asyncio
    async def test_inside_quiet_hours_defers(self, store, scheduler, clock) -> None:
        clock.set(utc(2025, 8, 1, 23, 0))
        store.set_preferences(
            NotificationPreferences(
                user_id="u1", quiet_hours_start="22:00", quiet_hours_end="08:00"
            )
        )

        row = await scheduler.send_immediate_notification("u1", "activity_ready", "Plan", "Ready")

        assert row is not None
        assert row.status == NotificationStatus.PENDING
        assert row.scheduled_at == clock()
        assert store.in_app == []

    @pytest.mark.asyncio
    async def test_delivery_failure_returns_none(self, store, scheduler) -> None:
        scheduler.delivery.send_user_notification = AsyncMock(side_effect=RuntimeError("down"))

        assert await scheduler.send_immediate_notification("u1", "x", "T", "B") is None
        assert store.rows() == []


@pytest.mark.asyncio
async def test_scheduler_works_without_explicit_collaborators(store) -> None:
    scheduler = SmartNotificationScheduler(store)
    task = {"id": "t1", "dueDate": scheduler.now() + timedelta(days=1)}

    rows = await scheduler.auto_schedule_notifications(task, "task", "t1", "u1")

    assert len(rows) == 1
