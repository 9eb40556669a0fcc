"""Smart notification scheduling for JournalMate.

Scans domain entities for time-bearing fields, derives reminder instants from
context-specific lead times, persists them idempotently and dispatches them
later subject to quiet hours and user preferences.
"""

from journalmate.notifications.dispatcher import DispatchSummary, NotificationDispatcher
from journalmate.notifications.extractor import extract_time_fields
from journalmate.notifications.hooks import NotificationHooks
from journalmate.notifications.intervals import get_intervals_for_context
from journalmate.notifications.memory import InMemoryNotificationStore
from journalmate.notifications.models import (
    NotificationPreferences,
    NotificationStatus,
    ScheduledNotification,
    TimeField,
)
from journalmate.notifications.ports import NotificationStorage, PushSender, SocketEmitter
from journalmate.notifications.processor import ReminderProcessor
from journalmate.notifications.scheduler import SmartNotificationScheduler
from journalmate.notifications.service import NotificationService
from journalmate.notifications.templates import generate_notification_message

__all__ = [
    "DispatchSummary",
    "InMemoryNotificationStore",
    "NotificationDispatcher",
    "NotificationHooks",
    "NotificationPreferences",
    "NotificationService",
    "NotificationStatus",
    "NotificationStorage",
    "PushSender",
    "ReminderProcessor",
    "ScheduledNotification",
    "SmartNotificationScheduler",
    "SocketEmitter",
    "TimeField",
    "extract_time_fields",
    "generate_notification_message",
    "get_intervals_for_context",
]
