"""Create appointments table.

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        "appointments",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.VARCHAR(length=5), nullable=False),
        sa.Column("status", sa.VARCHAR(length=20), server_default="booked", nullable=False),
        sa.Column("queue_number", sa.Integer(), nullable=False),
        sa.Column("priority", sa.VARCHAR(length=10), server_default="normal", nullable=False),
        sa.Column("source", sa.VARCHAR(length=10), server_default="booked", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by", sa.VARCHAR(length=10), nullable=True),
        sa.Column("cancelled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("rescheduled_from_date", sa.Date(), nullable=True),
        sa.Column("rescheduled_from_time", sa.VARCHAR(length=5), nullable=True),
        sa.Column("rescheduled_reason", sa.Text(), nullable=True),
        sa.Column("rescheduled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("called_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "status IN ('booked', 'in_session', 'completed', 'cancelled')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "priority IN ('normal', 'urgent', 'vip')", name="appointments_priority_check"
        ),
        sa.CheckConstraint("source IN ('booked', 'walk_in')", name="appointments_source_check"),
        sa.UniqueConstraint(
            "doctor_id", "date", "queue_number", name="uq_appointments_queue_number"
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("ix_appointments_doctor_date", "appointments", ["doctor_id", "date"])
    op.create_index(
        "uq_appointments_one_in_session",
        "appointments",
        ["doctor_id", "date"],
        unique=True,
        postgresql_where=sa.text("status = 'in_session'"),
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("uq_appointments_one_in_session", table_name="appointments")
    op.drop_index("ix_appointments_doctor_date", table_name="appointments")
    op.drop_index("ix_appointments_patient_id", table_name="appointments")
    op.drop_table("appointments")
