"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union
import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Portable column types so the same migration runs on PostgreSQL and SQLite
UUID_TYPE = sa.String(36).with_variant(postgresql.UUID(as_uuid=True), "postgresql")
JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

JOB_STATUSES = ("pending", "queued", "processing", "completed", "failed")


def _status_column(name: str, nullable: bool, **kwargs) -> sa.Column:
    return sa.Column(
        name,
        sa.Enum(*JOB_STATUSES, name="jobstatus", native_enum=False, length=20),
        nullable=nullable,
        **kwargs,
    )


def upgrade() -> None:
    op.create_table(
        "jobs",
        sa.Column("id", UUID_TYPE, nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False, server_default="10"),
        sa.Column(
            "quality",
            sa.Enum("low", "medium", "high", name="quality", native_enum=False, length=10),
            nullable=False,
            server_default="medium",
        ),
        sa.Column("mode", sa.String(100), nullable=False, server_default="default"),
        _status_column("status", nullable=False, server_default="pending"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("wav_url", sa.Text(), nullable=True),
        sa.Column("mp3_url", sa.Text(), nullable=True),
        sa.Column("result_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_jobs_status_created", "jobs", ["status", "created_at"])
    op.create_index("idx_jobs_user_created", "jobs", ["user_id", "created_at"])

    op.create_table(
        "job_events",
        sa.Column("id", UUID_TYPE, nullable=False),
        sa.Column("job_id", UUID_TYPE, nullable=False),
        sa.Column("event_type", sa.String(50), nullable=False),
        _status_column("old_status", nullable=True),
        _status_column("new_status", nullable=True),
        sa.Column("event_data", JSON_TYPE, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["job_id"], ["jobs.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_job_events_job_id", "job_events", ["job_id"])


def downgrade() -> None:
    op.drop_table("job_events")
    op.drop_index("idx_jobs_user_created", table_name="jobs")
    op.drop_index("idx_jobs_status_created", table_name="jobs")
    op.drop_table("jobs")
