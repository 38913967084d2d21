"""
Integration test fixtures.

These fixtures provide a full FastAPI test client backed by the in-memory job store.
"""

from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from sona.api.dependencies import get_job_store
from sona.api.main import app
from sona.core.security import create_access_token
from sona.services import JobStore


@pytest.fixture(scope="function")
def client(store: JobStore) -> Generator[TestClient, None, None]:
    """Create a test client whose routes use the test store."""
    app.dependency_overrides[get_job_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def broken_store_client() -> Generator[tuple[TestClient, MagicMock], None, None]:
    """Test client whose store fails every call."""
    broken = MagicMock(spec=JobStore)
    app.dependency_overrides[get_job_store] = lambda: broken
    with TestClient(app) as test_client:
        yield test_client, broken
    app.dependency_overrides.clear()


@pytest.fixture
def other_headers() -> dict:
    """Authorization headers for a second principal."""
    token = create_access_token(data={"sub": "another-principal"})
    return {"Authorization": f"Bearer {token}"}
