"""Periodic reminder processor.

Owns the interval job that drives the notification core: each cycle runs the
dispatcher, then the streak-at-risk sweep, then accountability check-ins. A
busy flag keeps cycles from overlapping so the same due rows are never
dispatched twice.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .accountability import AccountabilityService
from .dispatcher import DispatchSummary, NotificationDispatcher
from .streaks import StreakService

logger = logging.getLogger(__name__)

JOB_ID = "reminder-processor"


@dataclass
class CycleReport:
    """Outcome of one processor cycle; a failed step leaves its field unset."""

    dispatch: Optional[DispatchSummary] = None
    streaks_at_risk: Optional[int] = None
    accountability: Optional[Dict[str, int]] = None
    errors: Dict[str, str] = field(default_factory=dict)


class ReminderProcessor:
    """Interval-driven owner of the poll cycle.

    Usage:
        processor = ReminderProcessor(dispatcher, streaks, accountability)
        processor.start()
        ...
        await processor.shutdown()
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        streaks: Optional[StreakService] = None,
        accountability: Optional[AccountabilityService] = None,
        *,
        interval_seconds: Optional[int] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._streaks = streaks
        self._accountability = accountability
        self._interval_seconds = interval_seconds or dispatcher.settings.poll_interval_seconds
        self._loop = loop
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._busy = False
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def busy(self) -> bool:
        return self._busy

    def start(self, *, run_immediately: bool = True) -> None:
        if self._running:
            logger.info("Reminder processor already running")
            return

        loop = self._loop or asyncio.get_event_loop()
        self._scheduler = AsyncIOScheduler(event_loop=loop)
        job_kwargs: Dict[str, Any] = {}
        if run_immediately:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)
        self._scheduler.add_job(
            self.run_cycle,
            trigger=IntervalTrigger(seconds=self._interval_seconds),
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **job_kwargs,
        )
        self._scheduler.start()
        self._running = True
        logger.info(f"Reminder processor started ({self._interval_seconds}s interval)")

    async def shutdown(self) -> None:
        if not self._running:
            return
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        self._running = False
        logger.info("Reminder processor stopped")

    async def run_cycle(self) -> Optional[CycleReport]:
        """Run one cycle.

        Returns:
            The cycle report, or ``None`` when a previous cycle is still running
        """
        if self._busy:
            logger.debug("Previous reminder cycle still running, skipping")
            return None

        self._busy = True
        report = CycleReport()
        try:
            try:
                report.dispatch = await self._dispatcher.process_scheduled_notifications()
            except Exception as exc:
                report.errors["dispatch"] = str(exc)
                logger.error(f"Dispatch step failed: {exc}")

            if self._streaks is not None:
                try:
                    report.streaks_at_risk = await self._streaks.process_streak_reminders()
                except Exception as exc:
                    report.errors["streaks"] = str(exc)
                    logger.error(f"Streak step failed: {exc}")

            if self._accountability is not None:
                try:
                    report.accountability = (
                        await self._accountability.process_accountability_checkins()
                    )
                except Exception as exc:
                    report.errors["accountability"] = str(exc)
                    logger.error(f"Accountability step failed: {exc}")
        finally:
            self._busy = False

        return report
