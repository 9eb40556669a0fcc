"""Shared fixtures for the notification test-suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from journalmate.configuration.settings import NotificationSettings
from journalmate.notifications.delivery import UserNotificationService
from journalmate.notifications.dispatcher import NotificationDispatcher
from journalmate.notifications.memory import InMemoryNotificationStore
from journalmate.notifications.scheduler import SmartNotificationScheduler

# Friday, outside the default 22:00-08:00 quiet hours in UTC
NOON = datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Injectable clock that only moves when a test advances it."""

    def __init__(self, start: datetime = NOON) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, instant: datetime) -> None:
        self.current = instant


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def settings() -> NotificationSettings:
    return NotificationSettings()


@pytest.fixture
def store() -> InMemoryNotificationStore:
    return InMemoryNotificationStore()


@pytest.fixture
def delivery(store: InMemoryNotificationStore) -> UserNotificationService:
    return UserNotificationService(store)


@pytest.fixture
def scheduler(store, delivery, settings, clock) -> SmartNotificationScheduler:
    return SmartNotificationScheduler(store, delivery, settings, clock)


@pytest.fixture
def dispatcher(store, delivery, settings, clock) -> NotificationDispatcher:
    return NotificationDispatcher(store, delivery, settings, clock)
