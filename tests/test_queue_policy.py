"""Tests for waiting-list ordering rules."""

from uuid import uuid4

import pytest

from clinicq.schemas.appointments import AppointmentPriority, AppointmentSource
from clinicq.services import queue_policy


def appt(number: int, status: str = "booked", priority: str = "normal") -> dict:
    return {"id": uuid4(), "queue_number": number, "status": status, "priority": priority}


class TestClassifyNotes:
    """Legacy free-text markers."""

    @pytest.mark.parametrize(
        ("notes", "priority", "source"),
        [
            (None, AppointmentPriority.NORMAL, AppointmentSource.BOOKED),
            ("", AppointmentPriority.NORMAL, AppointmentSource.BOOKED),
            ("Follow-up visit", AppointmentPriority.NORMAL, AppointmentSource.BOOKED),
            ("URGENT: chest pain", AppointmentPriority.URGENT, AppointmentSource.BOOKED),
            ("VIP guest", AppointmentPriority.VIP, AppointmentSource.BOOKED),
            ("[WALK-IN] fever", AppointmentPriority.NORMAL, AppointmentSource.WALK_IN),
            ("[WALK-IN] vip and urgent", AppointmentPriority.URGENT, AppointmentSource.WALK_IN),
            ("[walk-in] lowercase", AppointmentPriority.NORMAL, AppointmentSource.BOOKED),
        ],
    )
    def test_classify(self, notes, priority, source):
        assert queue_policy.classify_notes(notes) == (priority, source)


def test_waiting_list_is_fifo_and_only_booked():
    group = [
        appt(3),
        appt(1, status="completed"),
        appt(2, status="in_session"),
        appt(5),
        appt(4, status="cancelled"),
    ]

    waiting = queue_policy.waiting_list(group)

    assert [a["queue_number"] for a in waiting] == [3, 5]


def test_prioritized_puts_urgent_then_vip_first_fifo_within_tier():
    group = [
        appt(1),
        appt(2, priority="vip"),
        appt(3, priority="urgent"),
        appt(4),
        appt(5, priority="urgent"),
        appt(6, priority="vip", status="cancelled"),
    ]

    ordered = queue_policy.prioritized(group)

    assert [a["queue_number"] for a in ordered] == [3, 5, 2, 1, 4]


def test_next_in_line_ignores_priority():
    group = [appt(2), appt(1, status="completed"), appt(3, priority="urgent")]

    assert queue_policy.next_in_line(group)["queue_number"] == 2


def test_next_in_line_empty_queue():
    assert queue_policy.next_in_line([appt(1, status="completed")]) is None
    assert queue_policy.next_in_line([]) is None


def test_plan_reorder_reuses_waiting_numbers():
    in_session = appt(1, status="in_session")
    normal_a = appt(2)
    normal_b = appt(3)
    urgent = appt(5, priority="urgent")
    done = appt(4, status="completed")

    plan = queue_policy.plan_reorder([in_session, normal_a, normal_b, urgent, done])

    assert plan == {urgent["id"]: 2, normal_a["id"]: 3, normal_b["id"]: 5}
    assert sorted(plan.values()) == [2, 3, 5]


def test_plan_reorder_noop_when_already_ordered():
    group = [appt(1, priority="urgent"), appt(2, priority="vip"), appt(3)]

    assert queue_policy.plan_reorder(group) == {}
