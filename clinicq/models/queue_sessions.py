"""Per-doctor, per-day queue session table."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    String,
    Table,
    UniqueConstraint,
    Uuid,
)

from clinicq.core.clock import utcnow
from clinicq.models.base import metadata

queue_sessions = Table(
    "queue_sessions",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("doctor_id", Uuid, nullable=False),
    Column("date", Date, nullable=False, index=True),
    Column("status", String(10), nullable=False, default="active", server_default="active"),
    Column("pause_reason", String(500), nullable=True),
    Column("paused_at", DateTime(timezone=True), nullable=True),
    Column("resumed_at", DateTime(timezone=True), nullable=True),
    Column("started_at", DateTime(timezone=True), nullable=True),
    Column("stopped_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utcnow),
    UniqueConstraint("doctor_id", "date", name="uq_queue_sessions_doctor_date"),
    CheckConstraint(
        "status IN ('stopped', 'active', 'paused')",
        name="queue_sessions_status_check",
    ),
)
