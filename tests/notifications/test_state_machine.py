"""Tests for notification status transitions."""

from __future__ import annotations

import pytest

from journalmate.notifications.exceptions import InvalidStatusTransitionError
from journalmate.notifications.models import NotificationStatus
from journalmate.notifications.state_machine import NotificationStateValidator

PENDING = NotificationStatus.PENDING
SENT = NotificationStatus.SENT
FAILED = NotificationStatus.FAILED
CANCELLED = NotificationStatus.CANCELLED


@pytest.mark.parametrize("target", [SENT, FAILED, CANCELLED, PENDING])
def test_pending_may_move_anywhere(target: NotificationStatus) -> None:
    transition = NotificationStateValidator().validate_transition("n1", PENDING, target)

    assert transition.to_status is target


@pytest.mark.parametrize("terminal", [SENT, FAILED, CANCELLED])
@pytest.mark.parametrize("target", [PENDING, SENT, FAILED, CANCELLED])
def test_terminal_states_are_closed(
    terminal: NotificationStatus, target: NotificationStatus
) -> None:
    validator = NotificationStateValidator()

    if target is terminal:
        assert validator.validate_transition("n1", terminal, target).is_idempotent()
    else:
        with pytest.raises(InvalidStatusTransitionError, match="Invalid transition"):
            validator.validate_transition("n1", terminal, target)


def test_history_is_kept_when_requested() -> None:
    validator = NotificationStateValidator(keep_history=True)
    validator.validate_transition("n1", PENDING, FAILED, reason="timeout")

    assert [t.reason for t in validator.history] == ["timeout"]
    assert NotificationStateValidator().history == []


def test_terminal_flag() -> None:
    assert not PENDING.is_terminal
    assert all(s.is_terminal for s in (SENT, FAILED, CANCELLED))
