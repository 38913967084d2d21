"""
Job record store.

Every mutation after creation goes through `compare_and_set`, a single
conditional UPDATE that only applies while the row still carries the expected
status. That primitive is what makes claiming safe across worker processes;
nothing here relies on in-process locks.
"""

import time
import uuid
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy import func, inspect, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from sona.core.errors import InvalidTransition, StorageError
from sona.core.lifecycle import READY_STATUSES, JobStatus, Quality, check_transition
from sona.models import Job, JobEvent, SessionLocal

logger = structlog.get_logger()

EVENT_TYPES = {
    JobStatus.PROCESSING: "PROCESSING_STARTED",
    JobStatus.COMPLETED: "PROCESSING_COMPLETED",
    JobStatus.FAILED: "PROCESSING_FAILED",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_uuid(job_id: uuid.UUID | str) -> uuid.UUID | None:
    if isinstance(job_id, uuid.UUID):
        return job_id
    try:
        return uuid.UUID(str(job_id))
    except ValueError:
        return None


class JobStore:
    """Durable keyed storage for jobs with atomic conditional updates."""

    def __init__(self, session_factory: sessionmaker | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("store_error", error=str(e))
            raise StorageError(str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def _detach(db: Session, job: Job) -> Job:
        db.refresh(job)
        db.expunge(job)
        return job

    def ping(self) -> None:
        with self._session() as db:
            db.execute(text("SELECT 1"))

    def insert(
        self,
        user_id: str,
        prompt: str,
        duration: int = 10,
        quality: Quality = Quality.MEDIUM,
        mode: str = "default",
    ) -> Job:
        now = _utcnow()
        job = Job(
            id=uuid.uuid4(),
            user_id=user_id,
            prompt=prompt,
            duration=duration,
            quality=quality,
            mode=mode,
            status=JobStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        with self._session() as db:
            db.add(job)
            db.flush()
            db.add(JobEvent(job_id=job.id, event_type="JOB_CREATED", new_status=JobStatus.PENDING, created_at=now))
            db.commit()
            return self._detach(db, job)

    def get(self, job_id: uuid.UUID | str) -> Job | None:
        key = _as_uuid(job_id)
        if key is None:
            return None
        with self._session() as db:
            job = db.get(Job, key)
            if job is None:
                return None
            db.expunge(job)
            return job

    def list_by_status(self, statuses: Iterable[JobStatus], limit: int = 1) -> list[Job]:
        """Oldest first, ties broken by id so every worker sees the same order."""
        stmt = (
            select(Job)
            .where(Job.status.in_(list(statuses)))
            .order_by(Job.created_at.asc(), Job.id.asc())
            .limit(limit)
        )
        with self._session() as db:
            jobs = list(db.scalars(stmt))
            db.expunge_all()
            return jobs

    def list_ready(self, limit: int = 1) -> list[Job]:
        return self.list_by_status(READY_STATUSES, limit=limit)

    def list_for_user(self, user_id: str, limit: int = 50, offset: int = 0) -> list[Job]:
        stmt = (
            select(Job)
            .where(Job.user_id == user_id)
            .order_by(Job.created_at.desc(), Job.id.desc())
            .offset(offset)
            .limit(limit)
        )
        with self._session() as db:
            jobs = list(db.scalars(stmt))
            db.expunge_all()
            return jobs

    def count_for_user(self, user_id: str) -> int:
        with self._session() as db:
            return db.scalar(select(func.count()).select_from(Job).where(Job.user_id == user_id)) or 0

    def list_stale_processing(self, older_than: timedelta) -> list[Job]:
        cutoff = _utcnow() - older_than
        stmt = (
            select(Job)
            .where(Job.status == JobStatus.PROCESSING, Job.updated_at < cutoff)
            .order_by(Job.updated_at.asc())
        )
        with self._session() as db:
            jobs = list(db.scalars(stmt))
            db.expunge_all()
            return jobs

    def events(self, job_id: uuid.UUID | str) -> list[JobEvent]:
        key = _as_uuid(job_id)
        if key is None:
            return []
        stmt = select(JobEvent).where(JobEvent.job_id == key).order_by(JobEvent.created_at.asc())
        with self._session() as db:
            events = list(db.scalars(stmt))
            db.expunge_all()
            return events

    def compare_and_set(
        self,
        job_id: uuid.UUID | str,
        expected: JobStatus,
        target: JobStatus,
        event_data: dict[str, Any] | None = None,
        **fields: Any,
    ) -> bool:
        """
        Move a job from `expected` to `target` if and only if its status still equals `expected`.

        Returns False when another writer got there first. The status change, the
        extra fields and the audit event are committed together or not at all.
        """
        return self._apply(job_id, expected, target, event_data, fields) is not None

    def _apply(
        self,
        job_id: uuid.UUID | str,
        expected: JobStatus,
        target: JobStatus,
        event_data: dict[str, Any] | None,
        fields: dict[str, Any],
    ) -> datetime | None:
        """Run the conditional update; returns the change timestamp, or None if it did not apply."""
        check_transition(expected, target)
        key = _as_uuid(job_id)
        if key is None:
            return None

        now = _utcnow()
        if target is JobStatus.COMPLETED:
            if not fields.get("wav_url") or not fields.get("mp3_url"):
                raise InvalidTransition("completed jobs need both artifact references")
            fields.setdefault("result_url", fields["mp3_url"])
            fields.setdefault("completed_at", now)
        elif target is JobStatus.FAILED:
            if not fields.get("error_message"):
                raise InvalidTransition("failed jobs need an error message")

        stmt = (
            update(Job)
            .where(Job.id == key, Job.status == expected)
            .values(status=target, updated_at=now, **fields)
            .execution_options(synchronize_session=False)
        )

        with self._session() as db:
            result = db.execute(stmt)
            if result.rowcount != 1:
                db.rollback()
                return None

            db.add(
                JobEvent(
                    job_id=key,
                    event_type=EVENT_TYPES[target],
                    old_status=expected,
                    new_status=target,
                    event_data=event_data,
                    created_at=now,
                )
            )
            db.commit()

        logger.debug("job_transitioned", job_id=str(key), old_status=expected.value, new_status=target.value)
        return now

    def claim(self, job: Job) -> Job | None:
        """Hand `job` to the caller exclusively, using the status observed when it was read."""
        if not job.status.is_ready:
            return None
        changed_at = self._apply(job.id, job.status, JobStatus.PROCESSING, None, {})
        if changed_at is None:
            return None

        snapshot = Job(**{attr.key: getattr(job, attr.key) for attr in inspect(Job).column_attrs})
        snapshot.status = JobStatus.PROCESSING
        snapshot.updated_at = changed_at
        return snapshot

    def watch(
        self,
        job_id: uuid.UUID | str,
        interval: float = 1.0,
        timeout: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Iterator[Job]:
        """Yield the job every time it changes, ending after a terminal snapshot."""
        started = time.monotonic()
        last_seen: datetime | None = None

        while True:
            job = self.get(job_id)
            if job is None:
                return

            if job.updated_at != last_seen:
                last_seen = job.updated_at
                yield job

            if job.status.is_terminal:
                return
            if timeout is not None and time.monotonic() - started >= timeout:
                return
            sleep(interval)
