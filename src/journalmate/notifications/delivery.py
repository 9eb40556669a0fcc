"""Notification delivery fan-out.

``send_user_notification`` is the delivery port the scheduler and dispatcher
hand rendered notifications to. It always writes the in-app (bell icon) record
and emits a live-socket event; mobile push is sent only when the user allows
it and has an active device registered.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .exceptions import DeliveryError
from .models import (
    InAppNotification,
    NotificationPreferences,
    PushResult,
    ScheduledNotification,
    default_preferences,
)
from .ports import NotificationStorage, PushSender, SocketEmitter
from .timeutil import utcnow

logger = logging.getLogger(__name__)

SOCKET_EVENT = "notification"


@dataclass
class NotificationPayload:
    """Rendered content handed to the delivery port.

    Attributes:
        title: Final title
        body: Final body
        type: Notification type key, stored on the in-app record
        route: Deep link opened when the notification is tapped
        metadata: Haptic, channel, source and action hints for clients
    """

    title: str
    body: str
    type: str = "general"
    route: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_scheduled(cls, row: ScheduledNotification) -> "NotificationPayload":
        return cls(
            title=row.title,
            body=row.body,
            type=row.notification_type,
            route=row.route,
            metadata={
                **row.metadata,
                "notificationId": row.notification_id,
                "sourceType": row.source_type,
                "sourceId": row.source_id,
            },
        )

    def push_data(self) -> Dict[str, str]:
        """Push data payloads only carry strings."""
        data = {k: str(v) for k, v in self.metadata.items() if v is not None}
        data["notificationType"] = self.type
        if self.route:
            data["route"] = self.route
        return data


@dataclass
class DeliveryReport:
    """What each channel did for one delivery."""

    in_app: bool = False
    socket: bool = False
    push: Optional[PushResult] = None

    @property
    def pushed(self) -> bool:
        return self.push is not None and self.push.sent_count > 0


class DeliveryChannel(ABC):
    """A single leg of the delivery fan-out."""

    name: str = "channel"

    @abstractmethod
    async def deliver(
        self,
        user_id: str,
        payload: NotificationPayload,
        preferences: NotificationPreferences,
    ) -> Any:
        """Deliver ``payload`` through this channel.

        Returns:
            A channel-specific result, ``None`` when the channel skipped
        """

    def is_available(self) -> bool:
        return True


class InAppChannel(DeliveryChannel):
    """Persists the bell-icon record; always fires."""

    name = "in_app"

    def __init__(self, storage: NotificationStorage):
        self._storage = storage

    async def deliver(self, user_id, payload, preferences) -> InAppNotification:
        record = await self._storage.create_user_notification(
            InAppNotification(
                user_id=user_id,
                type=payload.type,
                title=payload.title,
                body=payload.body or None,
                metadata={**payload.metadata, "route": payload.route},
            )
        )
        logger.debug(
            f"Created in-app notification: {payload.title[:50]}",
            extra={"user_id": user_id, "type": payload.type},
        )
        return record


class SocketChannel(DeliveryChannel):
    """Real-time event to connected clients so the bell updates live."""

    name = "socket"

    def __init__(self, emitter: Optional[SocketEmitter] = None):
        self._emitter = emitter

    def is_available(self) -> bool:
        return self._emitter is not None

    async def deliver(self, user_id, payload, preferences) -> Optional[bool]:
        if self._emitter is None:
            return None
        await self._emitter.emit_to_user(
            user_id,
            SOCKET_EVENT,
            {
                "title": payload.title,
                "body": payload.body,
                "type": payload.type,
                "timestamp": utcnow().isoformat(),
            },
        )
        return True


class PushChannel(DeliveryChannel):
    """Mobile push through device tokens, gated by the browser flag."""

    name = "push"

    def __init__(self, storage: NotificationStorage, sender: Optional[PushSender] = None):
        self._storage = storage
        self._sender = sender

    def is_available(self) -> bool:
        return self._sender is not None

    async def deliver(self, user_id, payload, preferences) -> Optional[PushResult]:
        if not preferences.enable_browser_notifications:
            logger.debug(f"Push disabled for user {user_id}, skipping push")
            return None
        if self._sender is None:
            return None

        devices = await self._storage.get_user_device_tokens(user_id)
        active = [d for d in devices if d.is_active]
        if not active:
            logger.debug(f"No active devices for user {user_id}, skipping push")
            return None

        result = await self._sender.send_to_user(
            user_id,
            active,
            {"title": payload.title, "body": payload.body, "data": payload.push_data()},
        )
        logger.info(
            f"Push sent to user {user_id}",
            extra={
                "devices": len(active),
                "sent": result.sent_count,
                "failed": result.failed_count,
            },
        )
        return result


class UserNotificationService:
    """Delivery port implementation.

    Usage:
        service = UserNotificationService(store, socket_emitter=io, push_sender=fcm)
        await service.send_user_notification(user_id, payload)
    """

    def __init__(
        self,
        storage: NotificationStorage,
        socket_emitter: Optional[SocketEmitter] = None,
        push_sender: Optional[PushSender] = None,
    ):
        self._storage = storage
        self.in_app = InAppChannel(storage)
        self.socket = SocketChannel(socket_emitter)
        self.push = PushChannel(storage, push_sender)

        logger.info(
            "UserNotificationService initialized "
            f"(socket={self.socket.is_available()}, push={self.push.is_available()})"
        )

    @property
    def channels(self) -> List[DeliveryChannel]:
        return [self.in_app, self.socket, self.push]

    async def load_preferences(self, user_id: str) -> NotificationPreferences:
        """Preferences for ``user_id``, creating the defaults when absent."""
        prefs = await self._storage.get_notification_preferences(user_id)
        if prefs is None:
            logger.info(f"Creating default notification preferences for user {user_id}")
            prefs = await self._storage.create_notification_preferences(
                default_preferences(user_id)
            )
        return prefs

    async def send_user_notification(
        self, user_id: str, payload: NotificationPayload
    ) -> DeliveryReport:
        """Fan ``payload`` out to in-app, socket and push channels.

        Raises:
            DeliveryError: If any channel raised
        """
        report = DeliveryReport()
        try:
            prefs = await self.load_preferences(user_id)
            report.in_app = await self.in_app.deliver(user_id, payload, prefs) is not None
            report.socket = bool(await self.socket.deliver(user_id, payload, prefs))
            report.push = await self.push.deliver(user_id, payload, prefs)
        except DeliveryError:
            raise
        except Exception as exc:
            logger.error(
                f"Failed to send notification to user {user_id}: {exc}",
                extra={"user_id": user_id, "type": payload.type},
            )
            raise DeliveryError(str(exc) or exc.__class__.__name__) from exc

        return report
