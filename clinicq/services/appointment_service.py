"""Appointment service: booking, rescheduling and status transitions."""

from datetime import date
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinicq.core.clock import clinic_today, current_slot, utcnow
from clinicq.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    SessionInProgressException,
    SlotUnavailableException,
    ValidationException,
)
from clinicq.core.locks import queue_locks
from clinicq.models.appointments import appointments
from clinicq.schemas.appointments import (
    Actor,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentPriority,
    AppointmentResponse,
    AppointmentSource,
    AppointmentStatus,
    AppointmentUpdate,
    WalkInCreate,
)
from clinicq.schemas.auth import TokenUser, UserRole
from clinicq.schemas.queue import QueueStatus
from clinicq.services import queue_policy
from clinicq.services.access import (
    actor_for,
    ensure_appointment_access,
    ensure_doctor_access,
    ensure_patient_access,
    resolve_doctor_id,
)
from clinicq.services.notifier import RealtimeNotifier
from clinicq.services.queue_service import as_entries, get_or_create_session, get_session_status
from clinicq.services.transitions import check_transition, is_terminal

logger = structlog.get_logger(__name__)

# Actions published for each status a transition lands on
TRANSITION_ACTIONS = {
    AppointmentStatus.IN_SESSION: "called",
    AppointmentStatus.COMPLETED: "completed",
    AppointmentStatus.CANCELLED: "cancelled",
}


class AppointmentService:
    """Service for managing appointments and their queue lifecycle."""

    def __init__(self, db: AsyncSession, notifier: RealtimeNotifier | None = None):
        """Initialize service with database session and optional notifier."""
        self.db = db
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch(self, appointment_id: UUID) -> dict[str, Any]:
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        row = (await self.db.execute(stmt)).mappings().first()
        if not row:
            raise NotFoundException("Appointment not found")
        return dict(row)

    async def _group(self, doctor_id: UUID, day: date) -> list[dict[str, Any]]:
        stmt = (
            select(appointments)
            .where(and_(appointments.c.doctor_id == doctor_id, appointments.c.date == day))
            .order_by(appointments.c.queue_number)
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def _next_queue_number(self, doctor_id: UUID, day: date) -> int:
        stmt = select(func.max(appointments.c.queue_number)).where(
            and_(appointments.c.doctor_id == doctor_id, appointments.c.date == day)
        )
        current = (await self.db.execute(stmt)).scalar()
        return (current or 0) + 1

    async def _ensure_slot_free(
        self,
        doctor_id: UUID,
        day: date,
        time: str,
        exclude_id: UUID | None = None,
    ) -> None:
        conditions = [
            appointments.c.doctor_id == doctor_id,
            appointments.c.date == day,
            appointments.c.time == time,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        ]
        if exclude_id is not None:
            conditions.append(appointments.c.id != exclude_id)

        stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        if (await self.db.execute(stmt)).scalar():
            raise SlotUnavailableException()

    async def _ensure_queue_open(self, doctor_id: UUID, day: date) -> None:
        if await get_session_status(self.db, doctor_id, day) == QueueStatus.STOPPED:
            raise ConflictException("The doctor's queue is closed for this date")

    async def _publish(
        self,
        appointment: dict[str, Any],
        action: str,
        reason: str | None = None,
    ) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.broadcast_appointment_update(appointment, action, reason)
        except Exception as e:
            # Log error but don't fail the request
            logger.warning("failed_to_broadcast_appointment_update", error=str(e))

    async def _insert(
        self,
        values: dict[str, Any],
        check_slot: bool = True,
    ) -> dict[str, Any]:
        doctor_id, day = values["doctor_id"], values["date"]

        async with queue_locks.hold((doctor_id, day)):
            await self._ensure_queue_open(doctor_id, day)
            if check_slot:
                await self._ensure_slot_free(doctor_id, day, values["time"])

            now = utcnow()
            values = {
                **values,
                "queue_number": await self._next_queue_number(doctor_id, day),
                "status": AppointmentStatus.BOOKED.value,
                "created_at": now,
                "updated_at": now,
            }
            try:
                result = await self.db.execute(
                    insert(appointments).values(**values).returning(appointments)
                )
                row = dict(result.mappings().one())
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                raise ConflictException("Could not allocate a queue number, please retry") from e

        return row

    async def _set_status(
        self,
        appointment: dict[str, Any],
        target: AppointmentStatus,
        reason: str | None = None,
        actor: Actor | None = None,
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Write a validated transition as a check-and-set on the current status.

        ``extra`` column values are written by the same statement.

        Raises:
            SessionInProgressException: If the in-session index rejects the write
            ConflictException: If the appointment changed since it was read
        """
        now = utcnow()
        values: dict[str, Any] = {**(extra or {}), "status": target.value, "updated_at": now}
        if target == AppointmentStatus.IN_SESSION:
            values["called_at"] = now
        elif target == AppointmentStatus.COMPLETED:
            values["completed_at"] = now
        elif target == AppointmentStatus.CANCELLED:
            values.update(
                cancelled_at=now,
                cancellation_reason=reason,
                cancelled_by=actor.value if actor else None,
            )

        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment["id"],
                    appointments.c.status == appointment["status"],
                )
            )
            .values(**values)
            .returning(appointments)
        )
        try:
            row = (await self.db.execute(stmt)).mappings().first()
        except IntegrityError as e:
            await self.db.rollback()
            raise SessionInProgressException() from e

        if row is None:
            await self.db.rollback()
            raise ConflictException("Appointment was modified concurrently, please retry")

        updated = dict(row)
        await self.db.commit()

        logger.info(
            "appointment_status_changed",
            appointment_id=str(updated["id"]),
            old_status=appointment["status"],
            new_status=target.value,
        )
        return updated

    async def _ensure_can_call(self, doctor_id: UUID, day: date) -> list[dict[str, Any]]:
        """
        Check a patient may be called into session; the caller holds the queue lock.

        Returns:
            The queue's appointments, in queue-number order
        """
        session = await get_or_create_session(self.db, doctor_id, day)
        if session["status"] != QueueStatus.ACTIVE.value:
            raise ConflictException(
                f"The queue is {session['status']}; resume it before calling patients"
            )

        group = await self._group(doctor_id, day)
        if any(a["status"] == AppointmentStatus.IN_SESSION.value for a in group):
            raise SessionInProgressException()
        return group

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def book(self, data: AppointmentCreate, user: TokenUser) -> AppointmentResponse:
        """
        Book an appointment slot and take the next queue number.

        Args:
            data: Booking data
            user: Authenticated caller

        Returns:
            Created appointment

        Raises:
            SlotUnavailableException: If the slot is taken
            ConflictException: If the doctor's queue is closed for the date
        """
        ensure_patient_access(user, data.patient_id)

        priority, source = queue_policy.classify_notes(data.notes)
        row = await self._insert(
            {
                "patient_id": data.patient_id,
                "doctor_id": data.doctor_id,
                "date": data.date,
                "time": data.time,
                "notes": data.notes,
                "priority": (data.priority or priority).value,
                "source": source.value,
            }
        )

        logger.info(
            "appointment_booked",
            appointment_id=str(row["id"]),
            doctor_id=str(row["doctor_id"]),
            date=str(row["date"]),
            queue_number=row["queue_number"],
        )
        await self._publish(row, "booked")
        return AppointmentResponse.model_validate(row)

    async def add_walk_in(self, data: WalkInCreate, user: TokenUser) -> AppointmentResponse:
        """
        Add a walk-in patient to a doctor's queue.

        Walk-ins default to today and the current half-hour slot, and may share
        a slot with a booked patient.
        """
        doctor_id = resolve_doctor_id(user, data.doctor_id)
        priority, _ = queue_policy.classify_notes(data.notes)

        row = await self._insert(
            {
                "patient_id": data.patient_id,
                "doctor_id": doctor_id,
                "date": data.date or clinic_today(),
                "time": data.time or current_slot(),
                "notes": data.notes,
                "priority": (data.priority or priority).value,
                "source": AppointmentSource.WALK_IN.value,
            },
            check_slot=False,
        )

        logger.info(
            "walk_in_added",
            appointment_id=str(row["id"]),
            doctor_id=str(doctor_id),
            queue_number=row["queue_number"],
        )
        await self._publish(row, "booked")
        return AppointmentResponse.model_validate(row)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_appointment(self, appointment_id: UUID, user: TokenUser) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If user doesn't have access
        """
        row = await self._fetch(appointment_id)
        ensure_appointment_access(user, row)
        return AppointmentResponse.model_validate(row)

    async def list_appointments(
        self,
        user: TokenUser,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Patients only ever see their own appointments and doctors their own queue.
        """
        conditions: list = []

        if user.role == UserRole.PATIENT:
            conditions.append(appointments.c.patient_id == user.id)
        elif user.is_doctor:
            conditions.append(appointments.c.doctor_id == user.id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.date:
            conditions.append(appointments.c.date == filters.date)

        where = and_(true(), *conditions)

        count_stmt = select(func.count()).select_from(appointments).where(where)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        offset = (filters.page - 1) * filters.page_size
        stmt = (
            select(appointments)
            .where(where)
            .order_by(appointments.c.date.desc(), appointments.c.queue_number)
            .limit(filters.page_size)
            .offset(offset)
        )
        rows = (await self.db.execute(stmt)).mappings().all()

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[AppointmentResponse.model_validate(dict(r)) for r in rows],
        )

    async def list_for_queue(
        self,
        doctor_id: UUID,
        day: date,
        viewer: TokenUser | None = None,
    ) -> list[AppointmentResponse]:
        """All appointments of a doctor's day in queue-number order, redacted for ``viewer``."""
        return as_entries(await self._group(doctor_id, day), viewer)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def change_status(
        self,
        appointment_id: UUID,
        target: AppointmentStatus,
        user: TokenUser,
        reason: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> AppointmentResponse:
        """
        Apply a status transition.

        ``extra`` holds plain field changes written together with the new status.

        Raises:
            InvalidTransitionException: If the transition is not allowed
            SessionInProgressException: If another patient of the queue is in session
            ForbiddenException: If a patient tries anything but cancelling
        """
        row = await self._fetch(appointment_id)
        ensure_appointment_access(user, row)
        target = AppointmentStatus(target)

        if user.role == UserRole.PATIENT and target != AppointmentStatus.CANCELLED:
            raise ForbiddenException("Patients can only cancel their appointments")

        check_transition(row["status"], target)

        if target == AppointmentStatus.IN_SESSION:
            async with queue_locks.hold((row["doctor_id"], row["date"])):
                # Re-read under the lock so the guard sees committed state
                row = await self._fetch(appointment_id)
                check_transition(row["status"], target)
                await self._ensure_can_call(row["doctor_id"], row["date"])
                updated = await self._set_status(row, target, extra=extra)
        else:
            updated = await self._set_status(
                row, target, reason=reason, actor=actor_for(user), extra=extra
            )

        await self._publish(updated, TRANSITION_ACTIONS[target], reason)
        return AppointmentResponse.model_validate(updated)

    async def call_next(self, doctor_id: UUID, day: date, user: TokenUser) -> AppointmentResponse:
        """
        Call the next waiting patient into session.

        Picks the booked appointment with the lowest queue number.

        Raises:
            ConflictException: If the queue is paused or stopped
            SessionInProgressException: If a patient is still in session
            NotFoundException: If nobody is waiting
        """
        ensure_doctor_access(user, doctor_id)

        async with queue_locks.hold((doctor_id, day)):
            group = await self._ensure_can_call(doctor_id, day)
            nxt = queue_policy.next_in_line(group)
            if nxt is None:
                raise NotFoundException("No patients waiting")
            updated = await self._set_status(dict(nxt), AppointmentStatus.IN_SESSION)

        logger.info(
            "patient_called",
            doctor_id=str(doctor_id),
            date=str(day),
            queue_number=updated["queue_number"],
        )
        await self._publish(updated, "called")
        return AppointmentResponse.model_validate(updated)

    async def cancel(
        self,
        appointment_id: UUID,
        user: TokenUser,
        reason: str | None = None,
    ) -> AppointmentResponse:
        """Soft-delete an appointment by moving it to ``cancelled``."""
        return await self.change_status(
            appointment_id, AppointmentStatus.CANCELLED, user, reason=reason
        )

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    async def reschedule(
        self,
        appointment_id: UUID,
        new_date: date,
        new_time: str,
        user: TokenUser,
        reason: str | None = None,
    ) -> AppointmentResponse:
        """
        Move a waiting appointment to another slot.

        A move to another date takes the next queue number of that day; a move
        within the same day keeps the current number.

        Raises:
            ConflictException: If the appointment is not waiting
            SlotUnavailableException: If the new slot is taken
        """
        row = await self._fetch(appointment_id)
        ensure_appointment_access(user, row)
        updated = await self._reschedule(row, new_date, new_time, user, reason)
        await self._publish(updated, "rescheduled", updated["rescheduled_reason"])
        return AppointmentResponse.model_validate(updated)

    async def _reschedule(
        self,
        row: dict[str, Any],
        new_date: date,
        new_time: str,
        user: TokenUser,
        reason: str | None,
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if row["status"] != AppointmentStatus.BOOKED.value:
            raise ConflictException(f"Cannot reschedule a {row['status']} appointment")

        doctor_id = row["doctor_id"]
        async with queue_locks.hold((doctor_id, new_date)):
            await self._ensure_queue_open(doctor_id, new_date)
            await self._ensure_slot_free(doctor_id, new_date, new_time, exclude_id=row["id"])

            if new_date == row["date"]:
                queue_number = row["queue_number"]
            else:
                queue_number = await self._next_queue_number(doctor_id, new_date)

            now = utcnow()
            stmt = (
                update(appointments)
                .where(
                    and_(
                        appointments.c.id == row["id"],
                        appointments.c.status == AppointmentStatus.BOOKED.value,
                    )
                )
                .values(
                    **(extra or {}),
                    date=new_date,
                    time=new_time,
                    queue_number=queue_number,
                    rescheduled_from_date=row["date"],
                    rescheduled_from_time=row["time"],
                    rescheduled_reason=reason or f"Rescheduled by {actor_for(user).value}",
                    rescheduled_at=now,
                    updated_at=now,
                )
                .returning(appointments)
            )
            try:
                updated = (await self.db.execute(stmt)).mappings().first()
            except IntegrityError as e:
                await self.db.rollback()
                raise ConflictException("Could not allocate a queue number, please retry") from e
            if updated is None:
                await self.db.rollback()
                raise ConflictException("Appointment was modified concurrently, please retry")
            updated = dict(updated)
            await self.db.commit()

        logger.info(
            "appointment_rescheduled",
            appointment_id=str(row["id"]),
            from_date=str(row["date"]),
            to_date=str(new_date),
        )
        return updated

    async def update_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
        user: TokenUser,
    ) -> AppointmentResponse:
        """
        Update an appointment.

        A date/time change is applied as a reschedule and a status change goes
        through the transition rules. Notes and priority are written by the same
        statement, so a rejected request leaves the appointment untouched.

        Raises:
            ValidationException: If a status change is combined with a new slot
            ConflictException: If the appointment is finished or cannot move
            InvalidTransitionException: If the status change is not allowed
        """
        row = await self._fetch(appointment_id)
        ensure_appointment_access(user, row)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        if not changes:
            return AppointmentResponse.model_validate(row)

        if is_terminal(row["status"]):
            raise ConflictException(f"Cannot update a {row['status']} appointment")

        moving = "date" in changes or "time" in changes
        if moving and "status" in changes:
            raise ValidationException("Change the status and the schedule in separate requests")

        plain = {
            k: (v.value if isinstance(v, AppointmentPriority) else v)
            for k, v in changes.items()
            if k in ("notes", "priority")
        }

        if "status" in changes:
            return await self.change_status(
                appointment_id, changes["status"], user, data.reason, extra=plain
            )

        if moving:
            updated = await self._reschedule(
                row,
                changes.get("date", row["date"]),
                changes.get("time", row["time"]),
                user,
                data.reason,
                extra=plain,
            )
            await self._publish(updated, "rescheduled", updated["rescheduled_reason"])
            return AppointmentResponse.model_validate(updated)

        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status == row["status"],
                )
            )
            .values(**plain, updated_at=utcnow())
            .returning(appointments)
        )
        updated = (await self.db.execute(stmt)).mappings().first()
        if updated is None:
            await self.db.rollback()
            raise ConflictException("Appointment was modified concurrently, please retry")
        updated = dict(updated)
        await self.db.commit()

        await self._publish(updated, "updated")
        return AppointmentResponse.model_validate(updated)
