"""Lifecycle validation for scheduled notifications.

A row starts ``pending`` and leaves it exactly once: to ``sent`` after a
successful delivery, to ``failed`` when delivery raised, or to ``cancelled``
when its source entity changed. Terminal states are closed; a fresh row must
be created instead of resurrecting one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from .exceptions import InvalidStatusTransitionError
from .models import NotificationStatus
from .timeutil import utcnow

logger = logging.getLogger(__name__)


VALID_TRANSITIONS: Dict[NotificationStatus, Set[NotificationStatus]] = {
    NotificationStatus.PENDING: {
        NotificationStatus.SENT,  # Delivered
        NotificationStatus.FAILED,  # Delivery raised
        NotificationStatus.CANCELLED,  # Source changed or removed
        NotificationStatus.PENDING,  # Deferred by quiet hours (idempotent)
    },
    NotificationStatus.SENT: {NotificationStatus.SENT},
    NotificationStatus.FAILED: {NotificationStatus.FAILED},
    NotificationStatus.CANCELLED: {NotificationStatus.CANCELLED},
}


@dataclass
class StatusTransition:
    """Records a status transition attempt for one notification row."""

    notification_id: str
    from_status: NotificationStatus
    to_status: NotificationStatus
    timestamp: datetime
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_valid(self) -> bool:
        return self.to_status in VALID_TRANSITIONS.get(self.from_status, set())

    def is_idempotent(self) -> bool:
        return self.from_status == self.to_status


class NotificationStateValidator:
    """Validates status changes before they reach the store.

    Stores call :meth:`validate_transition` inside ``update_smart_notification``
    so that no code path can move a row out of a terminal status.
    """

    def __init__(self, keep_history: bool = False):
        self._keep_history = keep_history
        self._history: List[StatusTransition] = []

    @property
    def history(self) -> List[StatusTransition]:
        return list(self._history)

    def validate_transition(
        self,
        notification_id: str,
        from_status: NotificationStatus,
        to_status: NotificationStatus,
        *,
        reason: Optional[str] = None,
    ) -> StatusTransition:
        """Validate a status transition.

        Args:
            notification_id: Row identifier
            from_status: Current stored status
            to_status: Requested status
            reason: Optional failure or cancellation reason

        Returns:
            The validated StatusTransition

        Raises:
            InvalidStatusTransitionError: If the row would leave a terminal status
        """
        transition = StatusTransition(
            notification_id=notification_id,
            from_status=from_status,
            to_status=to_status,
            timestamp=utcnow(),
            reason=reason,
        )

        if not transition.is_valid():
            logger.error(
                "Invalid notification status transition",
                extra={
                    "notification_id": notification_id,
                    "from_status": from_status.value,
                    "to_status": to_status.value,
                },
            )
            raise InvalidStatusTransitionError(
                f"Invalid transition: {from_status.value} → {to_status.value}"
            )

        if transition.is_idempotent():
            logger.debug(
                "Idempotent status transition",
                extra={"notification_id": notification_id, "status": from_status.value},
            )

        if self._keep_history:
            self._history.append(transition)
        return transition
