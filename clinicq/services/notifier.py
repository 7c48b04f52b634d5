"""Real-time fan-out of queue and appointment changes over WebSockets."""

from collections import defaultdict
from collections.abc import Mapping
from datetime import date
from typing import Any, Protocol
from uuid import UUID

import structlog
from fastapi.encoders import jsonable_encoder

from clinicq.core.clock import utcnow

logger = structlog.get_logger(__name__)

ADMIN_ROOM = "admin_room"


class Connection(Protocol):
    """Anything that can push a JSON message to a client."""

    async def send_json(self, data: Any) -> None: ...


def queue_room(doctor_id: UUID | str, queue_date: date | str) -> str:
    """Room for everyone watching one doctor's queue on one day."""
    return f"queue_{doctor_id}_{queue_date}"


def doctor_room(doctor_id: UUID | str) -> str:
    """Room for a doctor's own dashboards."""
    return f"doctor_{doctor_id}"


def patient_room(patient_id: UUID | str) -> str:
    """Room for a patient's own devices."""
    return f"patient_{patient_id}"


def appointment_message(action: str, payload: Mapping[str, Any]) -> str:
    """Human-readable text shown to patients for an appointment event."""
    reason = payload.get("reason")
    suffix = f". Reason: {reason}" if reason else ""
    if action == "rescheduled":
        return (
            f"Your appointment has been rescheduled to {payload.get('date')} "
            f"at {payload.get('time')}{suffix}"
        )
    if action == "cancelled":
        return f"Your appointment has been cancelled{suffix}"
    if action == "called":
        return f"Queue number {payload.get('queue_number')} is now being called"
    if action == "completed":
        return "Your consultation has been completed"
    if action == "updated":
        return "Your appointment has been updated"
    return "Your appointment has been modified"


def queue_message(status: str, pause_reason: str | None = None) -> str:
    """Human-readable text shown to patients for a queue status change."""
    if status == "paused":
        return f"Queue paused by doctor{f': {pause_reason}' if pause_reason else ''}"
    if status == "stopped":
        return "Queue closed by doctor"
    return "Queue resumed by doctor"


class RealtimeNotifier:
    """
    In-process room registry and broadcaster.

    Delivery is best-effort: nothing is buffered for absent clients, and a
    connection that fails on send is dropped from every room.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, set[Connection]] = defaultdict(set)

    def join(self, connection: Connection, room: str) -> None:
        """Add a connection to a room."""
        self._rooms[room].add(connection)

    def leave(self, connection: Connection, room: str) -> None:
        """Remove a connection from a room."""
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(connection)
        if not members:
            del self._rooms[room]

    def disconnect(self, connection: Connection) -> None:
        """Remove a connection from all rooms."""
        for room in [r for r, members in self._rooms.items() if connection in members]:
            self.leave(connection, room)

    def members(self, room: str) -> frozenset[Connection]:
        """Current members of a room."""
        return frozenset(self._rooms.get(room, ()))

    def rooms_of(self, connection: Connection) -> list[str]:
        """Rooms a connection belongs to."""
        return sorted(room for room, members in self._rooms.items() if connection in members)

    @property
    def connection_count(self) -> int:
        """Number of distinct connections in any room."""
        return len(set().union(*self._rooms.values())) if self._rooms else 0

    async def emit(self, room: str, event: str, data: Mapping[str, Any]) -> int:
        """
        Send an event to every member of a room.

        Returns:
            Number of connections the message was delivered to
        """
        message = {"event": event, "data": jsonable_encoder(dict(data))}
        delivered = 0
        for connection in list(self._rooms.get(room, ())):
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning("broadcast_failed", room=room, event_name=event, error=str(e))
                self.disconnect(connection)
        return delivered

    async def broadcast_queue_update(
        self,
        doctor_id: UUID,
        queue_date: date,
        status: str,
        pause_reason: str | None = None,
    ) -> None:
        """Publish ``queue_status_updated`` to the queue, doctor and admin rooms."""
        payload = {
            "doctor_id": doctor_id,
            "date": queue_date,
            "status": status,
            "pause_reason": pause_reason,
            "timestamp": utcnow(),
        }
        await self.emit(
            queue_room(doctor_id, queue_date),
            "queue_status_updated",
            {**payload, "message": queue_message(status, pause_reason)},
        )
        await self.emit(doctor_room(doctor_id), "queue_status_updated", payload)
        await self.emit(ADMIN_ROOM, "queue_status_updated", {**payload, "admin_notification": True})
        logger.info(
            "queue_update_broadcast",
            doctor_id=str(doctor_id),
            date=str(queue_date),
            status=status,
        )

    async def broadcast_appointment_update(
        self,
        appointment: Mapping[str, Any],
        action: str,
        reason: str | None = None,
    ) -> None:
        """
        Publish ``appointment_updated`` to the doctor, patient, admin and queue rooms.

        A reschedule to another date also reaches the queue room of the date it
        left, so watchers there drop the entry.
        """
        payload = {
            "appointment_id": appointment["id"],
            "doctor_id": appointment["doctor_id"],
            "patient_id": appointment["patient_id"],
            "date": appointment["date"],
            "time": appointment["time"],
            "queue_number": appointment["queue_number"],
            "status": appointment["status"],
            "action": action,
            "reason": reason,
            "timestamp": utcnow(),
        }
        message = appointment_message(action, payload)
        previous_date = appointment.get("rescheduled_from_date")
        left_queue = (
            action == "rescheduled"
            and previous_date is not None
            and previous_date != appointment["date"]
        )
        if left_queue:
            payload["previous_date"] = previous_date

        await self.emit(doctor_room(appointment["doctor_id"]), "appointment_updated", payload)
        await self.emit(
            patient_room(appointment["patient_id"]),
            "appointment_updated",
            {**payload, "message": message},
        )
        await self.emit(ADMIN_ROOM, "appointment_updated", {**payload, "admin_notification": True})
        await self.emit(
            queue_room(appointment["doctor_id"], appointment["date"]),
            "appointment_updated",
            {**payload, "message": message},
        )
        if left_queue:
            await self.emit(
                queue_room(appointment["doctor_id"], previous_date),
                "appointment_updated",
                {**payload, "message": message},
            )


# Global notifier instance
notifier = RealtimeNotifier()


def get_notifier() -> RealtimeNotifier:
    """Dependency returning the process-wide notifier."""
    return notifier
