"""Custom exceptions for the notification core."""

from __future__ import annotations


class NotificationError(Exception):
    """Base exception for notification scheduling and dispatch errors."""


class InvalidStatusTransitionError(NotificationError, ValueError):
    """Raised when a scheduled notification would leave a terminal status.

    Example:
        Attempting to move a row from SENT back to PENDING raises this
        exception; a fresh row must be created instead.
    """


class NotificationNotFoundError(NotificationError, KeyError):
    """Raised when a store is asked to update an unknown notification id."""


class DeliveryError(NotificationError):
    """Raised when a delivery channel fails to hand off a notification.

    The dispatcher records ``str(exc)`` as the row's ``failure_reason``.
    """
