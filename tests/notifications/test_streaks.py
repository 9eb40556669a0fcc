"""Tests for streak tracking and streak notifications."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from journalmate.notifications.models import (
    NotificationPreferences,
    NotificationStatus,
    UserProfile,
    UserStreak,
)
from journalmate.notifications.streaks import (
    StreakService,
    days_until_next_milestone,
    is_milestone,
)


@pytest.fixture
def streaks(scheduler) -> StreakService:
    return StreakService(scheduler)


def test_milestone_helpers() -> None:
    assert is_milestone(7)
    assert not is_milestone(8)
    assert days_until_next_milestone(5) == 2
    assert days_until_next_milestone(100) == 265
    assert days_until_next_milestone(400) is None


class TestUpdateStreak:
    @pytest.mark.asyncio
    async def test_first_activity_starts_streak(self, store, streaks) -> None:
        update = await streaks.update_user_streak("u1")

        assert update.current_streak == 1
        assert store.streaks["u1"].last_activity_date == "2025-08-01"
        assert store.streaks["u1"].total_active_days == 1

    @pytest.mark.asyncio
    async def test_same_day_activity_is_counted_once(self, store, streaks) -> None:
        await streaks.update_user_streak("u1")
        update = await streaks.update_user_streak("u1", "journal")

        assert update.current_streak == 1
        assert store.streaks["u1"].total_active_days == 1

    @pytest.mark.asyncio
    async def test_consecutive_days_extend_streak(self, store, streaks, clock) -> None:
        await streaks.update_user_streak("u1")
        clock.advance(days=1)

        update = await streaks.update_user_streak("u1")

        assert (update.current_streak, update.longest_streak) == (2, 2)
        assert store.streaks["u1"].streak_start_date == "2025-08-01"

    @pytest.mark.asyncio
    async def test_gap_resets_streak_but_keeps_longest(self, store, streaks, clock) -> None:
        store.streaks["u1"] = UserStreak(
            user_id="u1",
            current_streak=5,
            longest_streak=5,
            last_activity_date="2025-07-28",
            streak_start_date="2025-07-24",
            total_active_days=5,
        )

        update = await streaks.update_user_streak("u1")

        assert (update.current_streak, update.longest_streak) == (1, 5)
        assert store.streaks["u1"].streak_start_date == "2025-08-01"
        assert store.streaks["u1"].total_active_days == 6

    @pytest.mark.asyncio
    async def test_milestone_is_celebrated(self, store, streaks) -> None:
        store.streaks["u1"] = UserStreak(
            user_id="u1", current_streak=6, longest_streak=6, last_activity_date="2025-07-31"
        )

        update = await streaks.update_user_streak("u1")

        assert update.is_milestone
        assert update.milestone_reached == 7
        row = store.rows(NotificationStatus.SENT)[0]
        assert row.notification_type == "streak_milestone_7"
        assert (row.source_type, row.source_id) == ("streak", "u1")
        assert store.in_app[0].title == "🔥 1 Week Streak!"


class TestStreakAtRisk:
    @pytest.fixture
    def active_streak(self, store):
        store.streaks["u1"] = UserStreak(
            user_id="u1", current_streak=3, longest_streak=3, last_activity_date="2025-07-31"
        )
        return store

    @pytest.mark.asyncio
    async def test_reminder_at_evening_local_time(self, active_streak, streaks) -> None:
        assert await streaks.check_streak_at_risk("u1") is True

        row = active_streak.rows()[0]
        assert row.notification_type == "streak_at_risk"
        assert row.scheduled_at == datetime(2025, 8, 1, 18, 0, tzinfo=timezone.utc)
        assert row.title == "🔥 3-day streak at risk!"

    @pytest.mark.asyncio
    async def test_reminder_is_not_duplicated(self, active_streak, streaks) -> None:
        await streaks.check_streak_at_risk("u1")
        assert await streaks.check_streak_at_risk("u1") is True

        assert len(active_streak.rows()) == 1

    @pytest.mark.asyncio
    async def test_sent_reminder_does_not_hide_the_pending_one(
        self, active_streak, streaks, clock
    ) -> None:
        await streaks.check_streak_at_risk("u1")
        yesterday = active_streak.rows()[0]
        await active_streak.update_smart_notification(
            yesterday.notification_id, {"status": "sent"}
        )

        clock.set(datetime(2025, 8, 2, 12, 0, tzinfo=timezone.utc))
        for _ in range(3):
            assert await streaks.process_streak_reminders() == 1

        pending = active_streak.rows(NotificationStatus.PENDING)
        assert len(pending) == 1
        assert pending[0].scheduled_at == datetime(2025, 8, 2, 18, 0, tzinfo=timezone.utc)
        assert len(active_streak.rows(NotificationStatus.SENT)) == 1

    @pytest.mark.asyncio
    async def test_cancelled_reminder_is_replaced_once(self, active_streak, streaks) -> None:
        await streaks.check_streak_at_risk("u1")
        await active_streak.cancel_smart_notifications("streak", "u1")

        await streaks.check_streak_at_risk("u1")
        await streaks.check_streak_at_risk("u1")

        assert len(active_streak.rows(NotificationStatus.PENDING)) == 1
        assert len(active_streak.rows(NotificationStatus.CANCELLED)) == 1

    @pytest.mark.asyncio
    async def test_reminder_uses_user_timezone(self, active_streak, streaks) -> None:
        active_streak.add_user(UserProfile(user_id="u1", timezone="America/New_York"))

        await streaks.check_streak_at_risk("u1")

        row = active_streak.rows()[0]
        assert row.scheduled_at == datetime(2025, 8, 1, 22, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_passed_reminder_time_rolls_to_tomorrow(
        self, active_streak, streaks, clock
    ) -> None:
        clock.set(datetime(2025, 8, 1, 19, 0, tzinfo=timezone.utc))

        await streaks.check_streak_at_risk("u1")

        row = active_streak.rows()[0]
        assert row.scheduled_at == datetime(2025, 8, 2, 18, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_active_today_is_not_at_risk(self, active_streak, streaks) -> None:
        active_streak.streaks["u1"].last_activity_date = "2025-08-01"

        assert await streaks.check_streak_at_risk("u1") is False

    @pytest.mark.asyncio
    async def test_short_streaks_are_ignored(self, store, streaks) -> None:
        store.streaks["u1"] = UserStreak(user_id="u1", current_streak=1, last_activity_date="2025-07-31")

        assert await streaks.check_streak_at_risk("u1") is False
        assert store.rows() == []

    @pytest.mark.asyncio
    async def test_process_skips_users_with_reminders_disabled(
        self, active_streak, streaks
    ) -> None:
        active_streak.streaks["u2"] = UserStreak(
            user_id="u2", current_streak=4, last_activity_date="2025-07-31"
        )
        active_streak.set_preferences(
            NotificationPreferences(user_id="u2", enable_streak_reminders=False)
        )

        assert await streaks.process_streak_reminders() == 1
        assert [r.user_id for r in active_streak.rows()] == ["u1"]


@pytest.mark.asyncio
async def test_streak_info(store, streaks) -> None:
    empty = await streaks.get_user_streak_info("u1")
    assert empty["current_streak"] == 0
    assert empty["next_milestone"] == 7

    store.streaks["u1"] = UserStreak(user_id="u1", current_streak=10, last_activity_date="2025-07-31")
    info = await streaks.get_user_streak_info("u1")
    assert info["next_milestone"] == 14
    assert info["is_at_risk"] is True

    await streaks.reset_user_streak("u1")
    assert store.streaks["u1"].current_streak == 0
