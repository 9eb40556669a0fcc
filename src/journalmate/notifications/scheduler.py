"""Smart notification scheduler.

Turns any time-bearing entity into a set of persisted reminders:

1. extract the entity's time fields,
2. expand each field into candidate instants using the interval policy,
3. drop candidates that are not strictly in the future,
4. render the copy from the template registry and persist one row per
   surviving candidate.

Rescheduling is always cancel-then-recreate; the scheduler never diffs old and
new values. Failures are isolated per field and per candidate so one bad value
cannot stop its siblings from being scheduled.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..configuration.settings import NotificationSettings
from .delivery import NotificationPayload, UserNotificationService
from .extractor import extract_time_fields
from .intervals import MORNING_OF, get_intervals_for_context, has_morning_of
from .models import (
    NotificationHistory,
    NotificationPreferences,
    NotificationStatus,
    ScheduledNotification,
    TimeField,
)
from .ports import NotificationStorage
from .templates import (
    CHANNEL_ACHIEVEMENTS,
    CHANNEL_ACTIVITIES,
    CHANNEL_ASSISTANT,
    CHANNEL_GROUPS,
    CHANNEL_STREAKS,
    CHANNEL_TASKS,
    RenderedMessage,
    generate_notification_message,
    get_template,
)
from .timeutil import first_known_timezone, resolve_timezone, utcnow

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

IMMEDIATE_SOURCE = "immediate"

FALLBACK_BODY = "Reminder for your upcoming event."

DEEP_LINKS: Mapping[str, str] = {
    "task": "/app?tab=tasks&task={id}",
    "activity": "/app?tab=activities&activity={id}",
    "activityTask": "/app?tab=activities&activity={id}",
    "goal": "/app?tab=goals&goal={id}",
    "group": "/app?tab=groups&group={id}",
}
DEFAULT_DEEP_LINK = "/app"

ENTITY_CHANNELS: Mapping[str, str] = {
    "task": CHANNEL_TASKS,
    "goal": CHANNEL_TASKS,
    "activity": CHANNEL_ACTIVITIES,
    "activityTask": CHANNEL_ACTIVITIES,
    "calendarEvent": CHANNEL_ACTIVITIES,
    "media": CHANNEL_ACTIVITIES,
    "group": CHANNEL_GROUPS,
    "streak": CHANNEL_STREAKS,
    "achievement": CHANNEL_ACHIEVEMENTS,
}

# Preference flag gating automatic scheduling per entity type
CATEGORY_FLAGS: Mapping[str, str] = {
    "task": "enable_task_reminders",
    "goal": "enable_task_reminders",
    "activity": "enable_trip_prep_reminders",
    "activityTask": "enable_trip_prep_reminders",
    "calendarEvent": "enable_trip_prep_reminders",
    "media": "enable_media_release_alerts",
}

# (context, largest lead still considered urgent)
_URGENT_LEADS: Mapping[str, int] = {"due": 30, "deadline": 60, "departs": 60}


def generate_deep_link(entity_type: str, entity_id: Any) -> str:
    template = DEEP_LINKS.get(entity_type)
    return template.format(id=entity_id) if template else DEFAULT_DEEP_LINK


def get_haptic_for_context(context: str, lead_minutes: int) -> str:
    """Haptic intensity for a reminder.

    ``urgent`` for the closing reminder of due dates, deadlines and departures,
    ``medium`` for anything within the hour, ``light`` otherwise.
    """
    urgent_lead = _URGENT_LEADS.get(context)
    if urgent_lead is not None and lead_minutes <= urgent_lead:
        return "urgent"
    if lead_minutes <= 60:
        return "medium"
    return "light"


def get_channel_for_entity_type(entity_type: str) -> str:
    return ENTITY_CHANNELS.get(entity_type, CHANNEL_ASSISTANT)


def notification_type_for(entity_type: str, context: str, lead_minutes: int) -> str:
    return f"{entity_type}_{context}_{lead_minutes}"


def category_enabled(entity_type: str, prefs: Optional[NotificationPreferences]) -> bool:
    flag = CATEGORY_FLAGS.get(entity_type)
    if prefs is None or flag is None:
        return True
    return bool(getattr(prefs, flag, True))


class SmartNotificationScheduler:
    """Computes, persists and cancels reminders for domain entities.

    Usage:
        scheduler = SmartNotificationScheduler(store, delivery)
        await scheduler.auto_schedule_notifications(task, "task", task["id"], user_id)
        await scheduler.cancel_notifications_for_source("task", task["id"])
    """

    def __init__(
        self,
        storage: NotificationStorage,
        delivery: Optional[UserNotificationService] = None,
        settings: Optional[NotificationSettings] = None,
        clock: Clock = utcnow,
    ):
        self._storage = storage
        self._delivery = delivery or UserNotificationService(storage)
        self.settings = settings or NotificationSettings()
        self._clock = clock

    @property
    def storage(self) -> NotificationStorage:
        return self._storage

    @property
    def delivery(self) -> UserNotificationService:
        return self._delivery

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Timezone and time helpers
    # ------------------------------------------------------------------

    async def resolve_user_timezone(
        self, user_id: str, prefs: Optional[NotificationPreferences] = None
    ) -> str:
        """User profile zone, then preference zone, then the configured default."""
        user = await self._storage.get_user(user_id)
        return first_known_timezone(
            user.timezone if user else None,
            prefs.timezone if prefs else None,
            fallback=self.settings.default_timezone,
        )

    def morning_of(self, instant: datetime, timezone_name: Optional[str]) -> datetime:
        """``morning_of_hour``:00 local time on the instant's local calendar day."""
        zone = resolve_timezone(timezone_name, self.settings.default_timezone)
        local = instant.astimezone(zone)
        morning = local.replace(
            hour=self.settings.morning_of_hour, minute=0, second=0, microsecond=0
        )
        return morning.astimezone(timezone.utc)

    def candidate_instant(
        self, field: TimeField, lead_minutes: int, timezone_name: Optional[str]
    ) -> datetime:
        if lead_minutes == MORNING_OF and has_morning_of(field.context):
            return self.morning_of(field.value, timezone_name)
        return field.value - timedelta(minutes=lead_minutes)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def auto_schedule_notifications(
        self,
        entity: Any,
        entity_type: str,
        entity_id: Any,
        user_id: str,
    ) -> List[ScheduledNotification]:
        """Schedule every reminder implied by ``entity``'s time fields.

        Never raises: extraction failures schedule nothing, and failures on one
        field are logged without affecting the others.

        Returns:
            The rows persisted by this call
        """
        created: List[ScheduledNotification] = []
        try:
            fields = extract_time_fields(entity, entity_type)
            if not fields:
                return created

            prefs = await self._storage.get_notification_preferences(user_id)
            if not category_enabled(entity_type, prefs):
                logger.info(
                    f"Skipping {entity_type} reminders: category disabled",
                    extra={"user_id": user_id, "entity_id": entity_id},
                )
                return created

            timezone_name = await self.resolve_user_timezone(user_id, prefs)
            shared_contexts = {
                context
                for context, count in Counter(f.context for f in fields).items()
                if count > 1
            }

            for field in fields:
                try:
                    created.extend(
                        await self._schedule_for_time_field(
                            entity,
                            entity_type,
                            str(entity_id),
                            user_id,
                            field,
                            timezone_name,
                            prefs,
                            qualify=field.context in shared_contexts,
                        )
                    )
                except Exception as exc:
                    logger.error(
                        f"Failed to schedule {field.field_name}: {exc}",
                        extra={"entity_type": entity_type, "entity_id": entity_id},
                    )
        except Exception as exc:
            logger.error(
                f"Failed to auto-schedule {entity_type} {entity_id}: {exc}",
                extra={"user_id": user_id},
            )
            return created

        logger.info(
            f"Auto-scheduled {len(created)} notifications for {entity_type} {entity_id}",
            extra={"user_id": user_id},
        )
        return created

    async def _schedule_for_time_field(
        self,
        entity: Mapping[str, Any],
        entity_type: str,
        entity_id: str,
        user_id: str,
        field: TimeField,
        timezone_name: str,
        prefs: Optional[NotificationPreferences],
        *,
        qualify: bool = False,
    ) -> List[ScheduledNotification]:
        now = self.now()
        default_lead = (
            prefs.reminder_lead_time if prefs else self.settings.default_lead_minutes
        )
        created = []

        for lead in get_intervals_for_context(field.context, default_lead):
            scheduled_at = self.candidate_instant(field, lead, timezone_name)
            if scheduled_at <= now:
                logger.debug(
                    f"Dropping past candidate {field.context}/{lead} for {entity_type} {entity_id}"
                )
                continue

            base_type = notification_type_for(entity_type, field.context, lead)
            # Fields sharing a context would collide on one dedup key and all but
            # the first would be dropped, so the key carries the field name. The
            # key of an existing field changes once a second field with its
            # context appears; cancel-then-reschedule keeps that consistent.
            notification_type = f"{base_type}:{field.field_name}" if qualify else base_type
            message = self._render(entity, entity_type, field, lead)

            row = ScheduledNotification(
                user_id=user_id,
                source_type=entity_type,
                source_id=entity_id,
                notification_type=notification_type,
                title=message.title,
                body=message.body,
                scheduled_at=scheduled_at,
                timezone=timezone_name,
                route=generate_deep_link(entity_type, entity_id),
                metadata={
                    "haptic": get_haptic_for_context(field.context, lead),
                    "channel": get_channel_for_entity_type(entity_type),
                    "priority": message.priority,
                    "category": message.category,
                    "field": field.field_name,
                    "context": field.context,
                    "lead_minutes": lead,
                    "location": entity.get("location"),
                },
                created_at=now,
                updated_at=now,
            )
            stored = await self.schedule_smart_notification(row)
            if stored is not None:
                created.append(stored)

        return created

    def _render(
        self,
        entity: Mapping[str, Any],
        entity_type: str,
        field: TimeField,
        lead_minutes: int,
    ) -> RenderedMessage:
        title = entity.get("title") or entity.get("name") or field.label or ""
        context = {
            "title": title,
            "item_title": field.label,
            "movie_title": title if entity_type == "media" else None,
            "location": entity.get("location"),
            "minutes_until": lead_minutes,
            "hours_until": max(lead_minutes // 60, 1),
        }
        for key in (
            f"{entity_type}_{field.context}_{lead_minutes}",
            f"{field.context}_{lead_minutes}",
        ):
            if get_template(key) is not None:
                message = generate_notification_message(key, context)
                if message is not None:
                    return message

        return RenderedMessage(
            title=f"🔔 {title}".strip(),
            body=FALLBACK_BODY,
            haptic=get_haptic_for_context(field.context, lead_minutes),
            channel=get_channel_for_entity_type(entity_type),
            category="REMINDER",
            priority="default",
        )

    async def schedule_smart_notification(
        self, record: ScheduledNotification
    ) -> Optional[ScheduledNotification]:
        """Persist one row, keeping at most one pending row per dedup key.

        Returns:
            The stored row, the already pending row for the same key, or ``None``
            when the store failed
        """
        try:
            existing = await self._storage.find_pending_smart_notification(
                record.user_id,
                record.source_type,
                record.source_id,
                record.notification_type,
                statuses=(NotificationStatus.PENDING,),
            )
            if existing is not None:
                logger.debug(
                    f"Pending {record.notification_type} already exists, keeping it",
                    extra={"notification_id": existing.notification_id},
                )
                return existing

            stored = await self._storage.create_smart_notification(record)
        except Exception as exc:
            logger.error(
                f"Failed to schedule {record.notification_type}: {exc}",
                extra={"user_id": record.user_id, "source_id": record.source_id},
            )
            return None

        logger.debug(
            f"Scheduled {stored.notification_type} for {stored.scheduled_at.isoformat()}",
            extra={"notification_id": stored.notification_id},
        )
        return stored

    async def cancel_notifications_for_source(
        self, source_type: str, source_id: Any
    ) -> int:
        """Cancel every pending row of a source; 0 when nothing was pending or the store failed."""
        try:
            count = await self._storage.cancel_smart_notifications(
                source_type, None if source_id is None else str(source_id)
            )
        except Exception as exc:
            logger.error(
                f"Failed to cancel notifications for {source_type} {source_id}: {exc}"
            )
            return 0

        if count:
            logger.info(f"Cancelled {count} notifications for {source_type} {source_id}")
        return count

    # ------------------------------------------------------------------
    # Immediate notifications
    # ------------------------------------------------------------------

    async def send_immediate_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        body: str,
        *,
        route: Optional[str] = None,
        haptic: str = "medium",
        channel: str = CHANNEL_ASSISTANT,
        actions: Optional[List[Dict[str, str]]] = None,
        source_type: Optional[str] = None,
        source_id: Optional[str] = None,
    ) -> Optional[ScheduledNotification]:
        """Send a notification now, or defer it past the user's quiet hours.

        The send is recorded as a ScheduledNotification row (``sent``, or
        ``pending`` and due now when deferred) so dedup lookups can see it.

        Returns:
            The recorded row, or ``None`` when delivery failed
        """
        now = self.now()
        try:
            prefs = await self._storage.get_notification_preferences(user_id)
            timezone_name = await self.resolve_user_timezone(user_id, prefs)
            row = ScheduledNotification(
                user_id=user_id,
                source_type=source_type or IMMEDIATE_SOURCE,
                source_id=None if source_id is None else str(source_id),
                notification_type=notification_type,
                title=title,
                body=body,
                scheduled_at=now,
                timezone=timezone_name,
                route=route,
                metadata={"haptic": haptic, "channel": channel, "actions": actions},
                created_at=now,
                updated_at=now,
            )

            if prefs is not None and prefs.is_in_quiet_hours(now, timezone_name):
                logger.info(
                    f"Deferring immediate {notification_type}: user in quiet hours",
                    extra={"user_id": user_id},
                )
                return await self._storage.create_smart_notification(row)

            await self._delivery.send_user_notification(
                user_id, NotificationPayload.from_scheduled(row)
            )
            sent = await self._storage.create_smart_notification(
                row.with_changes(status=NotificationStatus.SENT, sent_at=now)
            )
            if self.settings.history_enabled:
                await self._storage.create_notification_history(
                    NotificationHistory.from_scheduled(sent, now)
                )
        except Exception as exc:
            logger.error(
                f"Failed to send immediate {notification_type}: {exc}",
                extra={"user_id": user_id},
            )
            return None

        logger.info(f"Sent immediate notification: {title[:50]}", extra={"user_id": user_id})
        return sent
