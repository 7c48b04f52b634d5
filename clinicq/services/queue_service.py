"""Queue session service: per-doctor, per-day queue state."""

from datetime import date
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinicq.config import settings
from clinicq.core.clock import clinic_today, utcnow
from clinicq.core.exceptions import ConflictException, ValidationException
from clinicq.core.locks import queue_locks
from clinicq.models.appointments import appointments
from clinicq.models.queue_sessions import queue_sessions
from clinicq.schemas.appointments import (
    AppointmentPriority,
    AppointmentResponse,
    AppointmentSource,
    AppointmentStatus,
)
from clinicq.schemas.auth import TokenUser
from clinicq.schemas.queue import (
    QueueAnalyticsResponse,
    QueueSessionResponse,
    QueueStatsResponse,
    QueueStatus,
    QueueStatusResponse,
    WaitingListResponse,
)
from clinicq.services import queue_policy
from clinicq.services.access import visible_to
from clinicq.services.notifier import RealtimeNotifier
from clinicq.services.transitions import apply_queue_action

logger = structlog.get_logger(__name__)


def as_entries(
    rows: list[dict[str, Any]],
    viewer: TokenUser | None = None,
) -> list[AppointmentResponse]:
    """Queue rows as responses, redacted for ``viewer`` when one is given."""
    entries = [AppointmentResponse.model_validate(row) for row in rows]
    if viewer is None:
        return entries
    return [visible_to(viewer, entry) for entry in entries]


async def get_or_create_session(db: AsyncSession, doctor_id: UUID, day: date) -> dict[str, Any]:
    """
    Fetch the queue session for ``(doctor_id, day)``, creating it on first access.

    A new session starts ``active`` when ``QUEUE_AUTO_START`` is set, else ``stopped``.
    """
    stmt = select(queue_sessions).where(
        and_(queue_sessions.c.doctor_id == doctor_id, queue_sessions.c.date == day)
    )
    row = (await db.execute(stmt)).mappings().first()
    if row:
        return dict(row)

    now = utcnow()
    initial = QueueStatus.ACTIVE if settings.queue_auto_start else QueueStatus.STOPPED
    values = {
        "doctor_id": doctor_id,
        "date": day,
        "status": initial.value,
        "started_at": now if initial == QueueStatus.ACTIVE else None,
        "created_at": now,
        "updated_at": now,
    }
    try:
        result = await db.execute(insert(queue_sessions).values(**values).returning(queue_sessions))
        row = result.mappings().one()
        await db.commit()
    except IntegrityError:
        # Created by a concurrent request
        await db.rollback()
        row = (await db.execute(stmt)).mappings().one()
    else:
        logger.info("queue_session_created", doctor_id=str(doctor_id), date=str(day))

    return dict(row)


async def get_session_status(db: AsyncSession, doctor_id: UUID, day: date) -> QueueStatus | None:
    """Stored session status, without creating a session."""
    stmt = select(queue_sessions.c.status).where(
        and_(queue_sessions.c.doctor_id == doctor_id, queue_sessions.c.date == day)
    )
    status = (await db.execute(stmt)).scalar()
    return QueueStatus(status) if status else None


class QueueService:
    """Service for pausing, resuming and inspecting doctors' queues."""

    def __init__(self, db: AsyncSession, notifier: RealtimeNotifier | None = None):
        """Initialize service with database session and optional notifier."""
        self.db = db
        self.notifier = notifier

    async def _group(self, doctor_id: UUID, day: date) -> list[dict[str, Any]]:
        stmt = (
            select(appointments)
            .where(and_(appointments.c.doctor_id == doctor_id, appointments.c.date == day))
            .order_by(appointments.c.queue_number)
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def _publish(self, session: dict[str, Any]) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.broadcast_queue_update(
                doctor_id=session["doctor_id"],
                queue_date=session["date"],
                status=session["status"],
                pause_reason=session.get("pause_reason"),
            )
        except Exception as e:
            # Log error but don't fail the request
            logger.warning("failed_to_broadcast_queue_update", error=str(e))

    async def get_session(self, doctor_id: UUID, day: date) -> QueueSessionResponse:
        """Get (or implicitly create) the session for a doctor's day."""
        session = await get_or_create_session(self.db, doctor_id, day)
        return QueueSessionResponse.model_validate(session)

    async def queue_status(
        self,
        doctor_id: UUID,
        day: date,
        viewer: TokenUser | None = None,
    ) -> QueueStatusResponse:
        """
        Build the derived queue view.

        Args:
            doctor_id: Doctor whose queue is inspected
            day: Clinic-local date
            viewer: Caller the appointments are redacted for, if any

        Returns:
            Session state together with the live (booked and in-session) appointments
        """
        session = await get_or_create_session(self.db, doctor_id, day)
        group = await self._group(doctor_id, day)

        live = as_entries(
            [
                a
                for a in group
                if a["status"]
                in (AppointmentStatus.BOOKED.value, AppointmentStatus.IN_SESSION.value)
            ],
            viewer,
        )
        serving = next((a for a in live if a.status == AppointmentStatus.IN_SESSION), None)

        return QueueStatusResponse(
            doctor_id=doctor_id,
            date=day,
            status=session["status"],
            pause_reason=session["pause_reason"],
            paused_at=session["paused_at"],
            resumed_at=session["resumed_at"],
            started_at=session["started_at"],
            stopped_at=session["stopped_at"],
            accepting_appointments=session["status"] != QueueStatus.STOPPED.value,
            now_serving=serving,
            current_appointments=live,
            waiting_count=len(queue_policy.waiting_list(group)),
        )

    async def _apply_action(
        self,
        doctor_id: UUID,
        day: date,
        action: str,
        reason: str | None = None,
    ) -> QueueSessionResponse:
        async with queue_locks.hold((doctor_id, day)):
            session = await get_or_create_session(self.db, doctor_id, day)
            target = apply_queue_action(session["status"], action)

            now = utcnow()
            values: dict[str, Any] = {"status": target.value, "updated_at": now}
            if action == "pause":
                values.update(pause_reason=reason, paused_at=now)
            elif action == "resume":
                values.update(pause_reason=None, paused_at=None, resumed_at=now)
            elif action == "start":
                values.update(started_at=now, stopped_at=None)
            elif action == "stop":
                values.update(stopped_at=now, pause_reason=None, paused_at=None)

            stmt = (
                update(queue_sessions)
                .where(
                    and_(
                        queue_sessions.c.id == session["id"],
                        queue_sessions.c.status == session["status"],
                    )
                )
                .values(**values)
                .returning(queue_sessions)
            )
            row = (await self.db.execute(stmt)).mappings().first()
            if row is None:
                await self.db.rollback()
                raise ConflictException("Queue status changed concurrently, please retry")
            updated = dict(row)
            await self.db.commit()

        logger.info(
            f"queue_{action}",
            doctor_id=str(doctor_id),
            date=str(day),
            status=target.value,
            reason=reason,
        )
        await self._publish(updated)
        return QueueSessionResponse.model_validate(updated)

    async def pause(self, doctor_id: UUID, day: date, reason: str | None) -> QueueSessionResponse:
        """
        Pause an active queue.

        Raises:
            ValidationException: If the reason is blank
            InvalidTransitionException: If the queue is not active
        """
        if reason is None or not reason.strip():
            raise ValidationException("A reason is required to pause the queue")
        return await self._apply_action(doctor_id, day, "pause", reason.strip())

    async def resume(self, doctor_id: UUID, day: date) -> QueueSessionResponse:
        """Resume a paused queue."""
        return await self._apply_action(doctor_id, day, "resume")

    async def start(self, doctor_id: UUID, day: date) -> QueueSessionResponse:
        """Open a stopped queue."""
        return await self._apply_action(doctor_id, day, "start")

    async def stop(self, doctor_id: UUID, day: date) -> QueueSessionResponse:
        """Close the queue for the day."""
        return await self._apply_action(doctor_id, day, "stop")

    async def waiting(
        self,
        doctor_id: UUID,
        day: date,
        prioritized: bool = False,
        viewer: TokenUser | None = None,
    ) -> WaitingListResponse:
        """List waiting patients in FIFO order, or in priority order when asked."""
        group = await self._group(doctor_id, day)
        if prioritized:
            ordered = queue_policy.prioritized(group)
        else:
            ordered = queue_policy.waiting_list(group)
        return WaitingListResponse(
            doctor_id=doctor_id,
            date=day,
            prioritized=prioritized,
            items=as_entries(ordered, viewer),
        )

    async def reorder(self, doctor_id: UUID, day: date) -> WaitingListResponse:
        """
        Persist priority order as queue numbers.

        Numbers are first moved to negative placeholders so that the unique
        ``(doctor_id, date, queue_number)`` constraint holds after every row update.
        """
        async with queue_locks.hold((doctor_id, day)):
            group = await self._group(doctor_id, day)
            plan = queue_policy.plan_reorder(group)

            if plan:
                now = utcnow()
                for appointment_id in plan:
                    current = next(a["queue_number"] for a in group if a["id"] == appointment_id)
                    await self.db.execute(
                        update(appointments)
                        .where(appointments.c.id == appointment_id)
                        .values(queue_number=-current)
                    )
                for appointment_id, number in plan.items():
                    await self.db.execute(
                        update(appointments)
                        .where(appointments.c.id == appointment_id)
                        .values(queue_number=number, updated_at=now)
                    )
                await self.db.commit()

        logger.info("queue_reordered", doctor_id=str(doctor_id), date=str(day), moved=len(plan))

        if plan:
            session = await get_or_create_session(self.db, doctor_id, day)
            await self._publish(session)

        return await self.waiting(doctor_id, day)

    async def doctor_sessions(self, doctor_id: UUID) -> list[QueueSessionResponse]:
        """All sessions of a doctor, newest date first."""
        stmt = (
            select(queue_sessions)
            .where(queue_sessions.c.doctor_id == doctor_id)
            .order_by(queue_sessions.c.date.desc())
        )
        result = await self.db.execute(stmt)
        return [QueueSessionResponse.model_validate(dict(r)) for r in result.mappings().all()]

    async def all_sessions(
        self,
        day: date | None = None,
        status: QueueStatus | None = None,
    ) -> list[QueueSessionResponse]:
        """Sessions across all doctors, for admin monitoring."""
        conditions: list = []
        if day is not None:
            conditions.append(queue_sessions.c.date == day)
        if status is not None:
            conditions.append(queue_sessions.c.status == status.value)

        stmt = (
            select(queue_sessions)
            .where(and_(true(), *conditions))
            .order_by(queue_sessions.c.date.desc(), queue_sessions.c.created_at)
        )
        result = await self.db.execute(stmt)
        return [QueueSessionResponse.model_validate(dict(r)) for r in result.mappings().all()]

    async def stats(self) -> QueueStatsResponse:
        """Count sessions by state, plus those for today."""
        by_status = await self.db.execute(
            select(queue_sessions.c.status, func.count()).group_by(queue_sessions.c.status)
        )
        counts = {status: count for status, count in by_status.all()}

        today = await self.db.execute(
            select(func.count())
            .select_from(queue_sessions)
            .where(queue_sessions.c.date == clinic_today())
        )

        return QueueStatsResponse(
            total=sum(counts.values()),
            active=counts.get(QueueStatus.ACTIVE.value, 0),
            paused=counts.get(QueueStatus.PAUSED.value, 0),
            stopped=counts.get(QueueStatus.STOPPED.value, 0),
            today=today.scalar() or 0,
        )

    async def analytics(self, doctor_id: UUID, day: date) -> QueueAnalyticsResponse:
        """
        Count a day's appointments by status, source and priority.

        Cancelled appointments still count towards the walk-in and priority totals.
        """
        stmt = (
            select(
                appointments.c.status,
                appointments.c.source,
                appointments.c.priority,
                func.count(),
            )
            .where(and_(appointments.c.doctor_id == doctor_id, appointments.c.date == day))
            .group_by(appointments.c.status, appointments.c.source, appointments.c.priority)
        )
        rows = (await self.db.execute(stmt)).all()

        def total(column: int, value: str) -> int:
            return sum(row[3] for row in rows if row[column] == value)

        return QueueAnalyticsResponse(
            doctor_id=doctor_id,
            date=day,
            total_appointments=sum(row[3] for row in rows),
            waiting=total(0, AppointmentStatus.BOOKED.value),
            in_session=total(0, AppointmentStatus.IN_SESSION.value),
            completed=total(0, AppointmentStatus.COMPLETED.value),
            cancelled=total(0, AppointmentStatus.CANCELLED.value),
            walk_ins=total(1, AppointmentSource.WALK_IN.value),
            urgent=total(2, AppointmentPriority.URGENT.value),
            vip=total(2, AppointmentPriority.VIP.value),
        )
