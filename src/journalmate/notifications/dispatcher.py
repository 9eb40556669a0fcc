"""Dispatch of due scheduled notifications.

Each poll fetches pending rows whose instant has passed and handles them one
by one:

- rows no longer pending when re-read are skipped (cancelled mid-batch),
- rows whose owner is inside quiet hours stay pending for a later poll,
- everything else is delivered and marked ``sent``, or marked ``failed`` with
  the delivery error as reason. Failed rows are never retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from ..configuration.settings import NotificationSettings
from .delivery import NotificationPayload, UserNotificationService
from .exceptions import InvalidStatusTransitionError
from .models import NotificationHistory, NotificationStatus, ScheduledNotification
from .ports import NotificationStorage
from .timeutil import first_known_timezone, utcnow

logger = logging.getLogger(__name__)


class DispatchOutcome(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    DEFERRED = "deferred"  # Quiet hours; stays pending
    SKIPPED = "skipped"  # No longer pending when re-read


@dataclass
class DispatchSummary:
    """Counts for one poll cycle."""

    fetched: int = 0
    sent: int = 0
    failed: int = 0
    deferred: int = 0
    skipped: int = 0
    errors: int = 0
    notification_ids: List[str] = field(default_factory=list)

    def record(self, notification_id: str, outcome: DispatchOutcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)
        if outcome is DispatchOutcome.SENT:
            self.notification_ids.append(notification_id)


class NotificationDispatcher:
    """Polls storage for due rows and hands them to the delivery port."""

    def __init__(
        self,
        storage: NotificationStorage,
        delivery: Optional[UserNotificationService] = None,
        settings: Optional[NotificationSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._storage = storage
        self._delivery = delivery or UserNotificationService(storage)
        self.settings = settings or NotificationSettings()
        self._clock = clock

    async def process_scheduled_notifications(self) -> DispatchSummary:
        """Run one poll cycle. Never raises; per-row failures are isolated."""
        summary = DispatchSummary()
        now = self._clock()

        try:
            rows = await self._storage.get_pending_smart_notifications(now)
        except Exception as exc:
            logger.error(f"Failed to fetch pending notifications: {exc}")
            return summary

        summary.fetched = len(rows)
        if rows:
            logger.info(f"Processing {len(rows)} due notifications")

        for row in rows:
            try:
                outcome = await self.dispatch_notification(row, now)
            except Exception as exc:
                summary.errors += 1
                logger.error(
                    f"Unhandled error dispatching {row.notification_id}: {exc}",
                    extra={"notification_id": row.notification_id},
                )
                continue
            summary.record(row.notification_id, outcome)

        if rows:
            logger.info(
                "Dispatch cycle complete",
                extra={
                    "sent": summary.sent,
                    "failed": summary.failed,
                    "deferred": summary.deferred,
                    "skipped": summary.skipped,
                },
            )
        return summary

    async def dispatch_notification(
        self, row: ScheduledNotification, now: Optional[datetime] = None
    ) -> DispatchOutcome:
        """Deliver one due row.

        Args:
            row: Row fetched by the poll; re-read before acting on it
            now: Poll instant; defaults to the injected clock

        Returns:
            What happened to the row
        """
        now = now or self._clock()

        current = await self._storage.get_smart_notification(row.notification_id)
        if current is None or current.status != NotificationStatus.PENDING:
            logger.debug(
                f"Skipping {row.notification_id}: no longer pending",
                extra={"notification_id": row.notification_id},
            )
            return DispatchOutcome.SKIPPED

        prefs = await self._storage.get_notification_preferences(current.user_id)
        user = await self._storage.get_user(current.user_id)
        timezone_name = first_known_timezone(
            user.timezone if user else None,
            prefs.timezone if prefs else None,
            current.timezone,
            fallback=self.settings.default_timezone,
        )

        if prefs is not None and prefs.is_in_quiet_hours(now, timezone_name):
            logger.info(
                f"Deferring {current.notification_id}: user in quiet hours",
                extra={"user_id": current.user_id},
            )
            return DispatchOutcome.DEFERRED

        try:
            await self._delivery.send_user_notification(
                current.user_id, NotificationPayload.from_scheduled(current)
            )
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__
            logger.warning(
                f"Delivery failed for {current.notification_id}: {reason}",
                extra={"user_id": current.user_id},
            )
            await self._storage.update_smart_notification(
                current.notification_id,
                {"status": NotificationStatus.FAILED, "failure_reason": reason},
            )
            return DispatchOutcome.FAILED

        try:
            await self._storage.update_smart_notification(
                current.notification_id,
                {"status": NotificationStatus.SENT, "sent_at": now},
            )
        except InvalidStatusTransitionError:
            # Cancelled between the re-read and delivery
            logger.warning(
                f"Notification {current.notification_id} left pending during delivery"
            )
            return DispatchOutcome.SKIPPED

        if self.settings.history_enabled:
            try:
                await self._storage.create_notification_history(
                    NotificationHistory.from_scheduled(current, now)
                )
            except Exception as exc:
                logger.error(
                    f"Failed to record history for {current.notification_id}: {exc}"
                )

        logger.info(
            f"Dispatched {current.notification_id}: {current.title[:50]}",
            extra={"user_id": current.user_id},
        )
        return DispatchOutcome.SENT
