import uuid
from datetime import datetime, timezone

from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sona.core.lifecycle import JobStatus, Quality

from .base import Base
from .types import GUID, JSONType, UTCDateTime


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def _status_type() -> Enum:
    return Enum(JobStatus, name="jobstatus", values_callable=_enum_values, native_enum=False, length=20)


def _quality_type() -> Enum:
    return Enum(Quality, name="quality", values_callable=_enum_values, native_enum=False, length=10)


class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = (
        Index("idx_jobs_status_created", "status", "created_at"),
        Index("idx_jobs_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    quality: Mapped[Quality] = mapped_column(_quality_type(), default=Quality.MEDIUM, nullable=False)
    mode: Mapped[str] = mapped_column(String(100), default="default", nullable=False)

    status: Mapped[JobStatus] = mapped_column(_status_type(), default=JobStatus.PENDING, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    wav_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    mp3_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Legacy single reference, mirrors mp3_url
    result_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    def __repr__(self) -> str:
        return f"<Job {self.id} {self.status.value}>"


class JobEvent(Base):
    __tablename__ = "job_events"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    old_status: Mapped[JobStatus | None] = mapped_column(_status_type(), nullable=True)
    new_status: Mapped[JobStatus | None] = mapped_column(_status_type(), nullable=True)
    event_data: Mapped[dict | None] = mapped_column(JSONType(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=lambda: datetime.now(timezone.utc), nullable=False
    )
