"""
Shared fixtures for sona tests.
"""

import os
import uuid
from datetime import datetime
from unittest.mock import MagicMock

# ============================================================================
# Set test environment BEFORE any sona imports
# ============================================================================
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["GENERATION_API_URL"] = "https://provider.test/v1/generate"
os.environ["GENERATION_API_KEY"] = "test-provider-key-0123456789abcdef"
os.environ["S3_ENDPOINT"] = "http://localhost:9000"
os.environ["S3_ACCESS_KEY"] = "minioadmin"
os.environ["S3_SECRET_KEY"] = "minioadmin"
os.environ["STORAGE_BUCKET"] = "test-bucket"

# Clear cached settings before any import
import sona.core.config
sona.core.config.get_settings.cache_clear()

import pytest
import structlog
from faker import Faker
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sona.core.lifecycle import JobStatus
from sona.core.security import create_access_token
from sona.models import Base, Job
from sona.services import JobStore

fake = Faker()


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo logging configuration made during a test (e.g. bound to a CliRunner stream)."""
    yield
    structlog.reset_defaults()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create in-memory SQLite engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=db_engine)


@pytest.fixture(scope="function")
def store(session_factory) -> JobStore:
    return JobStore(session_factory)


# ============================================================================
# Principal Fixtures
# ============================================================================


@pytest.fixture
def principal() -> str:
    """Random principal id, as the auth provider would issue."""
    return str(uuid.uuid4())


@pytest.fixture
def auth_token(principal: str) -> str:
    return create_access_token(data={"sub": principal, "email": fake.email()})


@pytest.fixture
def auth_headers(auth_token: str) -> dict:
    return {"Authorization": f"Bearer {auth_token}"}


# ============================================================================
# Job Fixtures
# ============================================================================


@pytest.fixture
def pending_job(store: JobStore, principal: str) -> Job:
    """Create and return a job waiting for a worker."""
    return store.insert(user_id=principal, prompt=fake.sentence(nb_words=8))


@pytest.fixture
def processing_job(store: JobStore, pending_job: Job) -> Job:
    """Create and return a job claimed by a worker."""
    return store.claim(pending_job)


@pytest.fixture
def completed_job(store: JobStore, processing_job: Job) -> Job:
    """Create and return a completed job with both artifacts."""
    base = f"http://localhost:9000/test-bucket/generated/{processing_job.id}_1700000000000"
    store.compare_and_set(
        processing_job.id,
        JobStatus.PROCESSING,
        JobStatus.COMPLETED,
        wav_url=f"{base}.wav",
        mp3_url=f"{base}.mp3",
    )
    return store.get(processing_job.id)


@pytest.fixture
def make_job(session_factory):
    """Insert job rows directly, with full control over their timestamps."""

    def _make(created_at: datetime, status: JobStatus = JobStatus.PENDING, **fields) -> Job:
        job = Job(
            id=fields.pop("id", uuid.uuid4()),
            user_id=fields.pop("user_id", str(uuid.uuid4())),
            prompt=fields.pop("prompt", fake.sentence()),
            status=status,
            created_at=created_at,
            updated_at=fields.pop("updated_at", created_at),
            **fields,
        )
        with session_factory() as db:
            db.add(job)
            db.commit()
            db.expunge(job)
        return job

    return _make


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_storage():
    """StorageService stand-in that records uploads and returns MinIO-style URLs."""
    storage = MagicMock()
    storage.bucket = "test-bucket"
    storage.put.side_effect = lambda key, data, content_type: f"http://localhost:9000/test-bucket/{key}"
    storage.bucket_exists.return_value = True
    storage.ensure_bucket_exists.return_value = None
    return storage


# ============================================================================
# Test Data Generators
# ============================================================================


def generate_wav_bytes(size_kb: int = 4) -> bytes:
    """Generate fake WAV bytes with a RIFF header."""
    header = b"RIFF" + (size_kb * 1024).to_bytes(4, "little") + b"WAVEfmt "
    return header + os.urandom(size_kb * 1024 - len(header))


@pytest.fixture
def sample_wav_bytes() -> bytes:
    return generate_wav_bytes()
