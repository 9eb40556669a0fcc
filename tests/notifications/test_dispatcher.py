"""Tests for NotificationDispatcher."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from journalmate.configuration.settings import NotificationSettings
from journalmate.notifications.dispatcher import DispatchOutcome, NotificationDispatcher
from journalmate.notifications.exceptions import DeliveryError
from journalmate.notifications.models import (
    NotificationPreferences,
    NotificationStatus,
    ScheduledNotification,
    UserProfile,
)


def _row(user_id: str, scheduled_at: datetime, **kwargs) -> ScheduledNotification:
    defaults = dict(
        source_type="task",
        source_id="t1",
        notification_type="task_due_30",
        title="📋 Pay rent",
        body="Due in 30 minutes. You've got this!",
        metadata={"haptic": "urgent", "channel": "journalmate_tasks"},
    )
    defaults.update(kwargs)
    return ScheduledNotification(user_id=user_id, scheduled_at=scheduled_at, **defaults)


@pytest.mark.asyncio
async def test_due_row_is_sent_and_recorded(store, dispatcher, clock) -> None:
    row = await store.create_smart_notification(_row("u1", clock() - timedelta(minutes=1)))

    summary = await dispatcher.process_scheduled_notifications()

    assert summary.fetched == 1
    assert summary.sent == 1
    assert summary.notification_ids == [row.notification_id]
    stored = await store.get_smart_notification(row.notification_id)
    assert stored.status == NotificationStatus.SENT
    assert stored.sent_at == clock()
    assert len(store.in_app) == 1
    assert store.in_app[0].metadata["route"] is None
    history = store.history[0]
    assert history.channel == "journalmate_tasks"
    assert history.haptic_type == "urgent"
    assert history.source_id == "t1"


@pytest.mark.asyncio
async def test_future_rows_are_not_fetched(store, dispatcher, clock) -> None:
    await store.create_smart_notification(_row("u1", clock() + timedelta(minutes=5)))

    summary = await dispatcher.process_scheduled_notifications()

    assert summary.fetched == 0
    assert store.in_app == []


@pytest.mark.asyncio
async def test_quiet_hours_defer_then_send(store, dispatcher, clock) -> None:
    clock.set(datetime(2025, 8, 1, 23, 30, tzinfo=timezone.utc))
    store.set_preferences(
        NotificationPreferences(user_id="u1", quiet_hours_start="22:00", quiet_hours_end="08:00")
    )
    row = await store.create_smart_notification(_row("u1", clock() - timedelta(minutes=1)))

    summary = await dispatcher.process_scheduled_notifications()

    assert summary.deferred == 1
    assert (await store.get_smart_notification(row.notification_id)).status == (
        NotificationStatus.PENDING
    )
    assert store.in_app == []

    clock.set(datetime(2025, 8, 2, 8, 0, tzinfo=timezone.utc))
    summary = await dispatcher.process_scheduled_notifications()

    assert summary.sent == 1
    assert (await store.get_smart_notification(row.notification_id)).status == (
        NotificationStatus.SENT
    )


@pytest.mark.asyncio
async def test_quiet_hours_use_user_timezone(store, dispatcher, clock) -> None:
    # 12:00Z is 21:00 in Tokyo, inside a 20:00-07:00 window
    store.add_user(UserProfile(user_id="u1", timezone="Asia/Tokyo"))
    store.set_preferences(
        NotificationPreferences(user_id="u1", quiet_hours_start="20:00", quiet_hours_end="07:00")
    )
    await store.create_smart_notification(_row("u1", clock() - timedelta(minutes=1)))

    summary = await dispatcher.process_scheduled_notifications()

    assert summary.deferred == 1


@pytest.mark.asyncio
async def test_delivery_failure_marks_row_failed(store, delivery, settings, clock) -> None:
    delivery.send_user_notification = AsyncMock(side_effect=DeliveryError("push gateway down"))
    dispatcher = NotificationDispatcher(store, delivery, settings, clock)
    row = await store.create_smart_notification(_row("u1", clock() - timedelta(minutes=1)))

    summary = await dispatcher.process_scheduled_notifications()

    assert summary.failed == 1
    stored = await store.get_smart_notification(row.notification_id)
    assert stored.status == NotificationStatus.FAILED
    assert stored.failure_reason == "push gateway down"
    assert store.history == []

    # Failed rows are never retried
    summary = await dispatcher.process_scheduled_notifications()
    assert summary.fetched == 0


@pytest.mark.asyncio
async def test_failure_reason_falls_back_to_exception_name(
    store, delivery, settings, clock
) -> None:
    delivery.send_user_notification = AsyncMock(side_effect=TimeoutError())
    dispatcher = NotificationDispatcher(store, delivery, settings, clock)
    row = await store.create_smart_notification(_row("u1", clock() - timedelta(minutes=1)))

    await dispatcher.process_scheduled_notifications()

    stored = await store.get_smart_notification(row.notification_id)
    assert stored.failure_reason == "TimeoutError"


@pytest.mark.asyncio
async def test_one_failing_row_does_not_block_the_batch(
    store, delivery, settings, clock
) -> None:
    original = delivery.send_user_notification

    async def selective(user_id, payload):
        if user_id == "broken":
            raise DeliveryError("bad token")
        return await original(user_id, payload)

    delivery.send_user_notification = AsyncMock(side_effect=selective)
    dispatcher = NotificationDispatcher(store, delivery, settings, clock)
    await store.create_smart_notification(_row("broken", clock() - timedelta(minutes=3)))
    await store.create_smart_notification(_row("u1", clock() - timedelta(minutes=2)))
    await store.create_smart_notification(_row("u2", clock() - timedelta(minutes=1)))

    summary = await dispatcher.process_scheduled_notifications()

    assert (summary.sent, summary.failed) == (2, 1)
    assert sorted(n.user_id for n in store.in_app) == ["u1", "u2"]


@pytest.mark.asyncio
async def test_row_cancelled_mid_batch_is_skipped(store, delivery, settings, clock) -> None:
    first = await store.create_smart_notification(
        _row("u1", clock() - timedelta(minutes=2), source_id="t1")
    )
    second = await store.create_smart_notification(
        _row("u1", clock() - timedelta(minutes=1), source_id="t2")
    )
    original = delivery.send_user_notification

    async def cancel_second(user_id, payload):
        await store.cancel_smart_notifications("task", "t2")
        return await original(user_id, payload)

    delivery.send_user_notification = AsyncMock(side_effect=cancel_second)
    dispatcher = NotificationDispatcher(store, delivery, settings, clock)

    summary = await dispatcher.process_scheduled_notifications()

    assert (summary.sent, summary.skipped) == (1, 1)
    assert (await store.get_smart_notification(first.notification_id)).status == (
        NotificationStatus.SENT
    )
    assert (await store.get_smart_notification(second.notification_id)).status == (
        NotificationStatus.CANCELLED
    )
    assert len(store.in_app) == 1


@pytest.mark.asyncio
async def test_row_cancelled_during_delivery_is_skipped(
    store, delivery, settings, clock
) -> None:
    row = await store.create_smart_notification(_row("u1", clock() - timedelta(minutes=1)))
    original = delivery.send_user_notification

    async def cancel_self(user_id, payload):
        result = await original(user_id, payload)
        await store.cancel_smart_notifications("task", "t1")
        return result

    delivery.send_user_notification = AsyncMock(side_effect=cancel_self)
    dispatcher = NotificationDispatcher(store, delivery, settings, clock)

    outcome = await dispatcher.dispatch_notification(row)

    assert outcome is DispatchOutcome.SKIPPED
    assert store.history == []


@pytest.mark.asyncio
async def test_history_can_be_disabled(store, delivery, clock) -> None:
    dispatcher = NotificationDispatcher(
        store, delivery, NotificationSettings(history_enabled=False), clock
    )
    await store.create_smart_notification(_row("u1", clock() - timedelta(minutes=1)))

    summary = await dispatcher.process_scheduled_notifications()

    assert summary.sent == 1
    assert store.history == []


@pytest.mark.asyncio
async def test_fetch_failure_returns_empty_summary(store, dispatcher) -> None:
    store.get_pending_smart_notifications = AsyncMock(side_effect=RuntimeError("db down"))

    summary = await dispatcher.process_scheduled_notifications()

    assert summary.fetched == 0
    assert summary.sent == 0
