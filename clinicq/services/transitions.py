"""State machines for appointments and queue sessions.

Appointments::

    booked -> in_session -> completed
       \\          \\
        +-----------+--> cancelled

Queue sessions::

    stopped -> active <-> paused
                  \\         /
                   +--------+--> stopped
"""

from clinicq.core.exceptions import InvalidTransitionException
from clinicq.schemas.appointments import AppointmentStatus
from clinicq.schemas.queue import QueueStatus

APPOINTMENT_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.BOOKED: frozenset(
        {AppointmentStatus.IN_SESSION, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.IN_SESSION: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in APPOINTMENT_TRANSITIONS.items() if not targets
)

# Queue actions mapped to (allowed source states, resulting state)
QUEUE_ACTIONS: dict[str, tuple[frozenset[QueueStatus], QueueStatus]] = {
    "start": (frozenset({QueueStatus.STOPPED}), QueueStatus.ACTIVE),
    "pause": (frozenset({QueueStatus.ACTIVE}), QueueStatus.PAUSED),
    "resume": (frozenset({QueueStatus.PAUSED}), QueueStatus.ACTIVE),
    "stop": (frozenset({QueueStatus.ACTIVE, QueueStatus.PAUSED}), QueueStatus.STOPPED),
}


def can_transition(current: AppointmentStatus | str, target: AppointmentStatus | str) -> bool:
    """Whether an appointment may move from ``current`` to ``target``."""
    return AppointmentStatus(target) in APPOINTMENT_TRANSITIONS[AppointmentStatus(current)]


def check_transition(
    current: AppointmentStatus | str,
    target: AppointmentStatus | str,
) -> AppointmentStatus:
    """
    Validate an appointment status change.

    Returns:
        The target status

    Raises:
        InvalidTransitionException: If the change is not allowed
    """
    current = AppointmentStatus(current)
    target = AppointmentStatus(target)
    if target not in APPOINTMENT_TRANSITIONS[current]:
        raise InvalidTransitionException(current.value, target.value)
    return target


def is_terminal(status: AppointmentStatus | str) -> bool:
    """Whether no further transitions are possible."""
    return AppointmentStatus(status) in TERMINAL_STATUSES


def apply_queue_action(current: QueueStatus | str, action: str) -> QueueStatus:
    """
    Resolve the queue state reached by ``action``.

    Raises:
        InvalidTransitionException: If the action is not valid in ``current``
    """
    current = QueueStatus(current)
    sources, result = QUEUE_ACTIONS[action]
    if current not in sources:
        raise InvalidTransitionException(current.value, result.value, entity="queue")
    return result
