"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)

from clinicq.core.clock import utcnow
from clinicq.models.base import metadata

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references (patients and doctors live in the user service)
    Column("patient_id", Uuid, nullable=False, index=True),
    Column("doctor_id", Uuid, nullable=False),
    # Slot
    Column("date", Date, nullable=False),
    Column("time", String(5), nullable=False),
    # Queue
    Column("status", String(20), nullable=False, default="booked", server_default="booked"),
    Column("queue_number", Integer, nullable=False),
    Column("priority", String(10), nullable=False, default="normal", server_default="normal"),
    Column("source", String(10), nullable=False, default="booked", server_default="booked"),
    Column("notes", Text, nullable=True),
    # Cancellation
    Column("cancellation_reason", Text, nullable=True),
    Column("cancelled_by", String(10), nullable=True),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    # Rescheduling
    Column("rescheduled_from_date", Date, nullable=True),
    Column("rescheduled_from_time", String(5), nullable=True),
    Column("rescheduled_reason", Text, nullable=True),
    Column("rescheduled_at", DateTime(timezone=True), nullable=True),
    # Session timestamps
    Column("called_at", DateTime(timezone=True), nullable=True),
    Column("completed_at", DateTime(timezone=True), nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utcnow),
    # Constraints
    UniqueConstraint("doctor_id", "date", "queue_number", name="uq_appointments_queue_number"),
    CheckConstraint(
        "status IN ('booked', 'in_session', 'completed', 'cancelled')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "priority IN ('normal', 'urgent', 'vip')",
        name="appointments_priority_check",
    ),
    CheckConstraint(
        "source IN ('booked', 'walk_in')",
        name="appointments_source_check",
    ),
)

Index("ix_appointments_doctor_date", appointments.c.doctor_id, appointments.c.date)

# At most one appointment per doctor and day may be in session
Index(
    "uq_appointments_one_in_session",
    appointments.c.doctor_id,
    appointments.c.date,
    unique=True,
    postgresql_where=text("status = 'in_session'"),
    sqlite_where=text("status = 'in_session'"),
)
