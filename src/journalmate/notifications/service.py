"""Wiring for the notification core.

``NotificationService`` builds the scheduler, dispatcher, hooks and periodic
services around one storage port so the web layer has a single object to hold.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..configuration.settings import NotificationSettings
from .accountability import AccountabilityService
from .delivery import UserNotificationService
from .dispatcher import NotificationDispatcher
from .hooks import NotificationHooks
from .models import NotificationStatus
from .ports import NotificationStorage, PushSender, SocketEmitter
from .processor import ReminderProcessor
from .scheduler import SmartNotificationScheduler
from .streaks import StreakService
from .timeutil import utcnow

logger = logging.getLogger(__name__)


class NotificationService:
    """Smart notification core bound to one store.

    Usage:
        service = NotificationService(store, socket_emitter=io, push_sender=fcm)
        await service.hooks.on_task_created(task, user_id)
        service.processor.start()
    """

    def __init__(
        self,
        storage: NotificationStorage,
        settings: Optional[NotificationSettings] = None,
        *,
        socket_emitter: Optional[SocketEmitter] = None,
        push_sender: Optional[PushSender] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or NotificationSettings()
        self.storage = storage
        self.delivery = UserNotificationService(storage, socket_emitter, push_sender)
        self.scheduler = SmartNotificationScheduler(
            storage, self.delivery, self.settings, clock
        )
        self.dispatcher = NotificationDispatcher(storage, self.delivery, self.settings, clock)
        self.streaks = StreakService(self.scheduler)
        self.accountability = AccountabilityService(self.scheduler)
        self.hooks = NotificationHooks(self.scheduler, self.streaks)
        self.processor = ReminderProcessor(
            self.dispatcher,
            self.streaks,
            self.accountability,
            interval_seconds=self.settings.poll_interval_seconds,
        )

        logger.info(
            "NotificationService initialized "
            f"(poll={self.settings.poll_interval_seconds}s, tz={self.settings.default_timezone})"
        )

    def get_status(self) -> Dict[str, Any]:
        return {
            "processor_running": self.processor.running,
            "processor_busy": self.processor.busy,
            "poll_interval_seconds": self.settings.poll_interval_seconds,
            "default_timezone": self.settings.default_timezone,
            "morning_of_hour": self.settings.morning_of_hour,
            "history_enabled": self.settings.history_enabled,
            "statuses": [status.value for status in NotificationStatus],
        }
