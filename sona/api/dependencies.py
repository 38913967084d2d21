from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sona.core.security import principal_from_token
from sona.models import Job
from sona.services import JobStore

# auto_error is off so a missing header is reported as 401, like a bad token
security = HTTPBearer(auto_error=False)

_store = JobStore()


def get_job_store() -> JobStore:
    return _store


def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    return principal_from_token(credentials.credentials if credentials else None)


CurrentPrincipal = Annotated[str, Depends(get_current_principal)]
Store = Annotated[JobStore, Depends(get_job_store)]


def verify_job_ownership(job_id: UUID, principal: str, store: JobStore) -> Job:
    job = store.get(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    if job.user_id != principal:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return job
