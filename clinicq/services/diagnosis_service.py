"""Diagnosis service: consultation outcomes, billing and revenue statistics."""

from collections import defaultdict
from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import and_, delete, func, insert, select, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinicq.config import settings
from clinicq.core.clock import utcnow
from clinicq.core.exceptions import (
    DuplicateDiagnosisException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from clinicq.core.redis_client import CacheManager
from clinicq.models.appointments import appointments
from clinicq.models.diagnoses import diagnoses, diagnosis_drugs
from clinicq.schemas.appointments import AppointmentStatus
from clinicq.schemas.auth import TokenUser, UserRole
from clinicq.schemas.diagnoses import (
    DiagnosisCreate,
    DiagnosisResponse,
    DiagnosisUpdate,
    DrugItem,
    RevenueStatsResponse,
)
from clinicq.services.access import (
    ensure_appointment_access,
    ensure_doctor_access,
    ensure_patient_access,
)
from clinicq.services.notifier import RealtimeNotifier

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")


def money(value: Any) -> Decimal:
    """Coerce a numeric value to a Decimal rounded to cents."""
    return Decimal(str(value or 0)).quantize(CENTS)


def compute_bill(
    drugs: list[DrugItem],
    doctor_fee: Decimal,
    registration_fee: Decimal,
) -> dict[str, Decimal]:
    """
    Compute the bill for a consultation.

    Args:
        drugs: Prescribed drugs, each with a unit price and quantity
        doctor_fee: The doctor's consultation fee
        registration_fee: Fixed clinic registration fee

    Returns:
        ``registration_fee``, ``doctor_fee``, ``drugs_cost`` and ``total_amount``
    """
    drugs_cost = money(sum((d.price * d.quantity for d in drugs), Decimal(0)))
    registration_fee = money(registration_fee)
    doctor_fee = money(doctor_fee)
    return {
        "registration_fee": registration_fee,
        "doctor_fee": doctor_fee,
        "drugs_cost": drugs_cost,
        "total_amount": registration_fee + doctor_fee + drugs_cost,
    }


class DiagnosisService:
    """Service for diagnoses and billing."""

    def __init__(
        self,
        db: AsyncSession,
        cache_manager: CacheManager | None = None,
        notifier: RealtimeNotifier | None = None,
    ):
        """Initialize service with database session, cache and notifier."""
        self.db = db
        self.cache = cache_manager
        self.notifier = notifier

    @staticmethod
    def _revenue_cache_key(
        start_date: date | None,
        end_date: date | None,
        doctor_id: UUID | None,
    ) -> str:
        """Generate cache key for revenue statistics."""
        return f"revenue:{start_date or 'all'}:{end_date or 'all'}:{doctor_id or 'all'}"

    def _invalidate_revenue(self) -> None:
        if self.cache:
            self.cache.delete_pattern("revenue:*")

    async def _drugs_for(self, diagnosis_ids: list[UUID]) -> dict[UUID, list[dict[str, Any]]]:
        if not diagnosis_ids:
            return {}
        stmt = (
            select(diagnosis_drugs)
            .where(diagnosis_drugs.c.diagnosis_id.in_(diagnosis_ids))
            .order_by(diagnosis_drugs.c.position)
        )
        grouped: dict[UUID, list[dict[str, Any]]] = defaultdict(list)
        for row in (await self.db.execute(stmt)).mappings().all():
            grouped[row["diagnosis_id"]].append(dict(row))
        return grouped

    async def _with_drugs(self, rows: list[dict[str, Any]]) -> list[DiagnosisResponse]:
        drugs = await self._drugs_for([r["id"] for r in rows])
        return [
            DiagnosisResponse.model_validate({**r, "drugs": drugs.get(r["id"], [])}) for r in rows
        ]

    async def _insert_drugs(self, diagnosis_id: UUID, drugs: list[DrugItem]) -> None:
        if not drugs:
            return
        await self.db.execute(
            insert(diagnosis_drugs),
            [
                {"diagnosis_id": diagnosis_id, "position": i, **drug.model_dump()}
                for i, drug in enumerate(drugs)
            ],
        )

    async def _fetch(self, diagnosis_id: UUID) -> dict[str, Any]:
        stmt = select(diagnoses).where(diagnoses.c.id == diagnosis_id)
        row = (await self.db.execute(stmt)).mappings().first()
        if not row:
            raise NotFoundException("Diagnosis not found")
        return dict(row)

    async def _list(self, conditions: list, skip: int, limit: int) -> list[DiagnosisResponse]:
        stmt = (
            select(diagnoses)
            .where(and_(true(), *conditions))
            .order_by(diagnoses.c.prescribed_at.desc())
            .offset(skip)
            .limit(limit)
        )
        rows = [dict(r) for r in (await self.db.execute(stmt)).mappings().all()]
        return await self._with_drugs(rows)

    async def create(self, data: DiagnosisCreate, user: TokenUser) -> DiagnosisResponse:
        """
        Record a diagnosis and bill, completing the appointment.

        Args:
            data: Diagnosis details with prescribed drugs and doctor fee
            user: Authenticated doctor or admin

        Returns:
            Created diagnosis with computed totals

        Raises:
            NotFoundException: If the appointment does not exist
            ValidationException: If patient or doctor do not match the appointment
            DuplicateDiagnosisException: If the appointment already has a diagnosis
        """
        ensure_doctor_access(user, data.doctor_id)

        stmt = select(appointments).where(appointments.c.id == data.appointment_id)
        appointment = (await self.db.execute(stmt)).mappings().first()
        if not appointment:
            raise NotFoundException("Appointment not found")

        if (
            appointment["patient_id"] != data.patient_id
            or appointment["doctor_id"] != data.doctor_id
        ):
            raise ValidationException("Patient and doctor must match the appointment")

        existing = await self.db.execute(
            select(diagnoses.c.id).where(diagnoses.c.appointment_id == data.appointment_id)
        )
        if existing.first():
            raise DuplicateDiagnosisException()

        now = utcnow()
        bill = compute_bill(data.drugs, data.doctor_fee, settings.registration_fee)
        try:
            result = await self.db.execute(
                insert(diagnoses)
                .values(
                    appointment_id=data.appointment_id,
                    patient_id=data.patient_id,
                    doctor_id=data.doctor_id,
                    diagnosis=data.diagnosis,
                    symptoms=data.symptoms,
                    notes=data.notes,
                    prescribed_at=now,
                    created_at=now,
                    updated_at=now,
                    **bill,
                )
                .returning(diagnoses)
            )
            row = dict(result.mappings().one())
            await self._insert_drugs(row["id"], data.drugs)
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateDiagnosisException() from e

        # A recorded diagnosis closes the consultation whatever its state
        completed = await self.db.execute(
            update(appointments)
            .where(appointments.c.id == data.appointment_id)
            .values(
                status=AppointmentStatus.COMPLETED.value,
                completed_at=appointment["completed_at"] or now,
                updated_at=now,
            )
            .returning(appointments)
        )
        completed_row = dict(completed.mappings().one())
        await self.db.commit()

        logger.info(
            "diagnosis_created",
            diagnosis_id=str(row["id"]),
            appointment_id=str(data.appointment_id),
            total_amount=str(bill["total_amount"]),
        )

        self._invalidate_revenue()
        if self.notifier is not None:
            try:
                await self.notifier.broadcast_appointment_update(completed_row, "completed")
            except Exception as e:
                logger.warning("failed_to_broadcast_appointment_update", error=str(e))

        return DiagnosisResponse.model_validate(
            {**row, "drugs": [d.model_dump() for d in data.drugs]}
        )

    async def get_by_appointment(self, appointment_id: UUID, user: TokenUser) -> DiagnosisResponse:
        """Get the diagnosis of an appointment."""
        stmt = select(diagnoses).where(diagnoses.c.appointment_id == appointment_id)
        row = (await self.db.execute(stmt)).mappings().first()
        if not row:
            raise NotFoundException("Diagnosis not found for this appointment")
        ensure_appointment_access(user, row)
        return (await self._with_drugs([dict(row)]))[0]

    async def list_by_doctor(
        self,
        doctor_id: UUID,
        user: TokenUser,
        skip: int = 0,
        limit: int = 50,
    ) -> list[DiagnosisResponse]:
        """Diagnoses written by a doctor, newest first."""
        ensure_doctor_access(user, doctor_id)
        return await self._list([diagnoses.c.doctor_id == doctor_id], skip, limit)

    async def list_by_patient(
        self,
        patient_id: UUID,
        user: TokenUser,
        skip: int = 0,
        limit: int = 50,
    ) -> list[DiagnosisResponse]:
        """A patient's medical history, newest first."""
        ensure_patient_access(user, patient_id)
        conditions = [diagnoses.c.patient_id == patient_id]
        if user.is_doctor:
            conditions.append(diagnoses.c.doctor_id == user.id)
        return await self._list(conditions, skip, limit)

    async def list_all(
        self,
        user: TokenUser,
        skip: int = 0,
        limit: int = 50,
    ) -> list[DiagnosisResponse]:
        """All diagnoses visible to the caller."""
        conditions: list = []
        if user.is_doctor:
            conditions.append(diagnoses.c.doctor_id == user.id)
        elif user.role == UserRole.PATIENT:
            conditions.append(diagnoses.c.patient_id == user.id)
        return await self._list(conditions, skip, limit)

    async def update(
        self,
        diagnosis_id: UUID,
        data: DiagnosisUpdate,
        user: TokenUser,
    ) -> DiagnosisResponse:
        """
        Partially update a diagnosis.

        Totals are recomputed when the drugs or the doctor fee change; the
        registration fee recorded at creation is kept.
        """
        row = await self._fetch(diagnosis_id)
        ensure_doctor_access(user, row["doctor_id"])

        changes = data.model_dump(exclude_unset=True, exclude_none=True, exclude={"drugs"})
        for field in ("diagnosis", "symptoms"):
            if field in changes:
                changes[field] = changes[field].strip()
                if not changes[field]:
                    raise ValidationException(f"{field} cannot be blank")

        if data.drugs is not None or data.doctor_fee is not None:
            if data.drugs is not None:
                drugs = data.drugs
            else:
                current = await self._drugs_for([diagnosis_id])
                drugs = [DrugItem.model_validate(d) for d in current.get(diagnosis_id, [])]
            doctor_fee = data.doctor_fee if data.doctor_fee is not None else row["doctor_fee"]
            changes.update(compute_bill(drugs, doctor_fee, row["registration_fee"]))

        if data.drugs is not None:
            await self.db.execute(
                delete(diagnosis_drugs).where(diagnosis_drugs.c.diagnosis_id == diagnosis_id)
            )
            await self._insert_drugs(diagnosis_id, data.drugs)

        if changes:
            await self.db.execute(
                update(diagnoses)
                .where(diagnoses.c.id == diagnosis_id)
                .values(**changes, updated_at=utcnow())
            )
        await self.db.commit()

        logger.info("diagnosis_updated", diagnosis_id=str(diagnosis_id), fields=sorted(changes))
        self._invalidate_revenue()

        return (await self._with_drugs([await self._fetch(diagnosis_id)]))[0]

    async def revenue_stats(
        self,
        user: TokenUser,
        start_date: date | None = None,
        end_date: date | None = None,
        doctor_id: UUID | None = None,
    ) -> RevenueStatsResponse:
        """
        Aggregate billing figures over a clinic-local date range.

        Doctors only ever see their own figures.
        """
        if user.role == UserRole.PATIENT:
            raise ForbiddenException("Revenue statistics are restricted to staff")
        if user.is_doctor:
            doctor_id = user.id

        cache_key = self._revenue_cache_key(start_date, end_date, doctor_id)
        if self.cache:
            cached = self.cache.get_json(cache_key)
            if cached:
                return RevenueStatsResponse.model_validate(cached)

        tz = ZoneInfo(settings.clinic_timezone)
        conditions: list = []
        if start_date:
            start = datetime.combine(start_date, time.min, tzinfo=tz).astimezone(UTC)
            conditions.append(diagnoses.c.prescribed_at >= start)
        if end_date:
            end = datetime.combine(end_date, time.max, tzinfo=tz).astimezone(UTC)
            conditions.append(diagnoses.c.prescribed_at <= end)
        if doctor_id:
            conditions.append(diagnoses.c.doctor_id == doctor_id)

        stmt = select(
            func.count(diagnoses.c.id),
            func.sum(diagnoses.c.registration_fee),
            func.sum(diagnoses.c.doctor_fee),
            func.sum(diagnoses.c.drugs_cost),
            func.sum(diagnoses.c.total_amount),
        ).where(and_(true(), *conditions))
        count, registration, doctor, drugs, total = (await self.db.execute(stmt)).one()

        count = count or 0
        total = money(total)
        stats = RevenueStatsResponse(
            total_diagnoses=count,
            total_registration_fees=money(registration),
            total_doctor_fees=money(doctor),
            total_drugs_cost=money(drugs),
            total_revenue=total,
            average_per_diagnosis=money(total / count) if count else money(0),
        )

        if self.cache:
            self.cache.set_json(cache_key, stats.model_dump(), ttl=settings.revenue_cache_ttl)

        return stats
