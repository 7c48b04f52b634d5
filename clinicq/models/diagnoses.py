"""Diagnosis and prescribed drug tables."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
)

from clinicq.core.clock import utcnow
from clinicq.models.base import metadata

diagnoses = Table(
    "diagnoses",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("patient_id", Uuid, nullable=False, index=True),
    Column("doctor_id", Uuid, nullable=False, index=True),
    # Medical details
    Column("diagnosis", String(1000), nullable=False),
    Column("symptoms", String(1000), nullable=False),
    Column("notes", Text, nullable=True),
    # Billing (fixed point, two decimal places)
    Column("registration_fee", Numeric(12, 2), nullable=False),
    Column("doctor_fee", Numeric(12, 2), nullable=False),
    Column("drugs_cost", Numeric(12, 2), nullable=False, default=0),
    Column("total_amount", Numeric(12, 2), nullable=False),
    Column("prescribed_at", DateTime(timezone=True), nullable=False, default=utcnow, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utcnow),
    CheckConstraint("doctor_fee >= 0", name="diagnoses_doctor_fee_check"),
    CheckConstraint("drugs_cost >= 0", name="diagnoses_drugs_cost_check"),
)

diagnosis_drugs = Table(
    "diagnosis_drugs",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "diagnosis_id",
        Uuid,
        ForeignKey("diagnoses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("position", Integer, nullable=False),
    Column("name", String(200), nullable=False),
    Column("dosage", String(100), nullable=False),
    Column("frequency", String(100), nullable=False),
    Column("duration", String(100), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("price", Numeric(12, 2), nullable=False),
    CheckConstraint("quantity >= 1", name="diagnosis_drugs_quantity_check"),
    CheckConstraint("price >= 0", name="diagnosis_drugs_price_check"),
)
