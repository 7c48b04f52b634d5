"""Create diagnoses and diagnosis_drugs tables.

Revision ID: 003
Revises: 002
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "diagnoses",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("diagnosis", sa.VARCHAR(length=1000), nullable=False),
        sa.Column("symptoms", sa.VARCHAR(length=1000), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("registration_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("doctor_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("drugs_cost", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "prescribed_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
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
        sa.CheckConstraint("doctor_fee >= 0", name="diagnoses_doctor_fee_check"),
        sa.CheckConstraint("drugs_cost >= 0", name="diagnoses_drugs_cost_check"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("appointment_id", name="uq_diagnoses_appointment_id"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_diagnoses_patient_id", "diagnoses", ["patient_id"])
    op.create_index("ix_diagnoses_doctor_id", "diagnoses", ["doctor_id"])
    op.create_index("ix_diagnoses_prescribed_at", "diagnoses", ["prescribed_at"])

    op.create_table(
        "diagnosis_drugs",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("diagnosis_id", postgresql.UUID(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.VARCHAR(length=200), nullable=False),
        sa.Column("dosage", sa.VARCHAR(length=100), nullable=False),
        sa.Column("frequency", sa.VARCHAR(length=100), nullable=False),
        sa.Column("duration", sa.VARCHAR(length=100), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint("quantity >= 1", name="diagnosis_drugs_quantity_check"),
        sa.CheckConstraint("price >= 0", name="diagnosis_drugs_price_check"),
        sa.ForeignKeyConstraint(["diagnosis_id"], ["diagnoses.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_diagnosis_drugs_diagnosis_id", "diagnosis_drugs", ["diagnosis_id"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("ix_diagnosis_drugs_diagnosis_id", table_name="diagnosis_drugs")
    op.drop_table("diagnosis_drugs")
    op.drop_index("ix_diagnoses_prescribed_at", table_name="diagnoses")
    op.drop_index("ix_diagnoses_doctor_id", table_name="diagnoses")
    op.drop_index("ix_diagnoses_patient_id", table_name="diagnoses")
    op.drop_table("diagnoses")
