"""Create queue_sessions table.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "queue_sessions",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.VARCHAR(length=10), server_default="active", nullable=False),
        sa.Column("pause_reason", sa.VARCHAR(length=500), nullable=True),
        sa.Column("paused_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("resumed_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("started_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("stopped_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
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
            "status IN ('stopped', 'active', 'paused')", name="queue_sessions_status_check"
        ),
        sa.UniqueConstraint("doctor_id", "date", name="uq_queue_sessions_doctor_date"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index("ix_queue_sessions_date", "queue_sessions", ["date"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("ix_queue_sessions_date", table_name="queue_sessions")
    op.drop_table("queue_sessions")
