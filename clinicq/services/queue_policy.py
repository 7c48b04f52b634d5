"""Ordering rules for a doctor's waiting list.

All functions are pure: they take appointment mappings (rows or dicts with
``id``, ``status``, ``queue_number`` and ``priority`` keys) and never touch
storage.
"""

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from clinicq.schemas.appointments import (
    AppointmentPriority,
    AppointmentSource,
    AppointmentStatus,
)

WALK_IN_MARKER = "[WALK-IN]"

# Lower rank is called first
PRIORITY_RANK = {
    AppointmentPriority.URGENT: 0,
    AppointmentPriority.VIP: 1,
    AppointmentPriority.NORMAL: 2,
}


def classify_notes(notes: str | None) -> tuple[AppointmentPriority, AppointmentSource]:
    """
    Derive priority and source from legacy free-text markers.

    Used once at creation when a client does not send structured fields.
    ``urgent`` and ``vip`` match case-insensitively, ``[WALK-IN]`` exactly.
    """
    if not notes:
        return AppointmentPriority.NORMAL, AppointmentSource.BOOKED

    lowered = notes.lower()
    if "urgent" in lowered:
        priority = AppointmentPriority.URGENT
    elif "vip" in lowered:
        priority = AppointmentPriority.VIP
    else:
        priority = AppointmentPriority.NORMAL

    source = AppointmentSource.WALK_IN if WALK_IN_MARKER in notes else AppointmentSource.BOOKED
    return priority, source


def _is_waiting(appointment: Mapping[str, Any]) -> bool:
    return AppointmentStatus(appointment["status"]) == AppointmentStatus.BOOKED


def _priority_key(appointment: Mapping[str, Any]) -> tuple[int, int]:
    priority = AppointmentPriority(appointment.get("priority") or AppointmentPriority.NORMAL)
    return PRIORITY_RANK[priority], appointment["queue_number"]


def waiting_list(appointments: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Booked appointments in plain FIFO order (ascending queue number)."""
    return sorted(
        (a for a in appointments if _is_waiting(a)),
        key=lambda a: a["queue_number"],
    )


def prioritized(appointments: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Booked appointments with urgent, then VIP, ahead of normal; FIFO within a tier."""
    return sorted((a for a in appointments if _is_waiting(a)), key=_priority_key)


def next_in_line(appointments: Iterable[Mapping[str, Any]]) -> Mapping[str, Any] | None:
    """The appointment a call-next would pick, if any."""
    waiting = waiting_list(appointments)
    return waiting[0] if waiting else None


def plan_reorder(appointments: Iterable[Mapping[str, Any]]) -> dict[UUID, int]:
    """
    Compute new queue numbers that make FIFO order match priority order.

    The booked appointments' existing numbers are handed out again in priority
    order, so numbers held by non-waiting appointments are never reused.

    Returns:
        Mapping of appointment id to new queue number, only for changed entries
    """
    appointments = list(appointments)
    numbers = sorted(a["queue_number"] for a in appointments if _is_waiting(a))
    plan: dict[UUID, int] = {}
    for number, appointment in zip(numbers, prioritized(appointments), strict=True):
        if appointment["queue_number"] != number:
            plan[appointment["id"]] = number
    return plan
