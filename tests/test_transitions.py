"""Tests for the appointment and queue session state machines."""

import pytest

from clinicq.core.exceptions import InvalidTransitionException
from clinicq.schemas.appointments import AppointmentStatus
from clinicq.schemas.queue import QueueStatus
from clinicq.services.transitions import (
    apply_queue_action,
    can_transition,
    check_transition,
    is_terminal,
)

ALLOWED = {
    ("booked", "in_session"),
    ("booked", "cancelled"),
    ("in_session", "completed"),
    ("in_session", "cancelled"),
}


@pytest.mark.parametrize("current", [s.value for s in AppointmentStatus])
@pytest.mark.parametrize("target", [s.value for s in AppointmentStatus])
def test_appointment_transition_table(current, target):
    allowed = (current, target) in ALLOWED

    assert can_transition(current, target) is allowed
    if allowed:
        assert check_transition(current, target) == AppointmentStatus(target)
    else:
        with pytest.raises(InvalidTransitionException):
            check_transition(current, target)


def test_invalid_transition_message():
    with pytest.raises(InvalidTransitionException) as exc_info:
        check_transition("completed", "booked")

    assert exc_info.value.status_code == 409
    assert exc_info.value.message == "Cannot move appointment from 'completed' to 'booked'"


def test_terminal_statuses():
    assert is_terminal("completed")
    assert is_terminal(AppointmentStatus.CANCELLED)
    assert not is_terminal("booked")
    assert not is_terminal("in_session")


@pytest.mark.parametrize(
    ("current", "action", "expected"),
    [
        ("stopped", "start", QueueStatus.ACTIVE),
        ("active", "pause", QueueStatus.PAUSED),
        ("paused", "resume", QueueStatus.ACTIVE),
        ("active", "stop", QueueStatus.STOPPED),
        ("paused", "stop", QueueStatus.STOPPED),
    ],
)
def test_queue_actions(current, action, expected):
    assert apply_queue_action(current, action) == expected


@pytest.mark.parametrize(
    ("current", "action"),
    [
        ("paused", "pause"),
        ("stopped", "pause"),
        ("active", "resume"),
        ("stopped", "resume"),
        ("active", "start"),
        ("stopped", "stop"),
    ],
)
def test_invalid_queue_actions(current, action):
    with pytest.raises(InvalidTransitionException, match="Cannot move queue"):
        apply_queue_action(current, action)
