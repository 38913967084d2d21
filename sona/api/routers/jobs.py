from collections.abc import Iterator
from uuid import UUID

import structlog
from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from sona.api.dependencies import CurrentPrincipal, Store, verify_job_ownership
from sona.api.schemas import JobEventResponse, JobListResponse, JobResponse
from sona.core.config import settings

logger = structlog.get_logger()
router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get(
    "",
    response_model=JobListResponse,
    summary="List jobs",
    description="Jobs of the authenticated user, newest first.",
)
async def list_jobs(
    principal: CurrentPrincipal,
    store: Store,
    limit: int = Query(50, ge=1, le=100, description="Number of jobs to return"),
    offset: int = Query(0, ge=0, description="Number of jobs to skip"),
):
    jobs = store.list_for_user(principal, limit=limit, offset=offset)
    total = store.count_for_user(principal)
    return JobListResponse(jobs=[JobResponse.model_validate(j) for j in jobs], total=total)


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Job details",
    description="""
Returns the full job record.

**Status values:**
- `pending` / `queued` - Waiting for a worker
- `processing` - Generating audio
- `completed` - `wav_url` and `mp3_url` are set
- `failed` - `error_message` explains why
    """,
)
async def get_job(job_id: UUID, principal: CurrentPrincipal, store: Store):
    job = verify_job_ownership(job_id, principal, store)
    return JobResponse.model_validate(job)


@router.get(
    "/{job_id}/history",
    response_model=list[JobEventResponse],
    summary="Job history",
    description="Audit trail of the job: creation and every status change, oldest first.",
)
async def get_job_history(job_id: UUID, principal: CurrentPrincipal, store: Store):
    verify_job_ownership(job_id, principal, store)
    return [JobEventResponse.model_validate(event) for event in store.events(job_id)]


@router.get(
    "/{job_id}/events",
    summary="Subscribe to job changes",
    description="""
Server-sent events stream. Emits a `job` event with the full record every time
the job changes and closes after the job reaches `completed` or `failed`.
    """,
    response_class=StreamingResponse,
)
async def subscribe_to_job(job_id: UUID, principal: CurrentPrincipal, store: Store):
    verify_job_ownership(job_id, principal, store)

    def event_stream() -> Iterator[str]:
        for job in store.watch(
            job_id,
            interval=settings.subscription_poll_interval_seconds,
            timeout=settings.subscription_timeout_seconds,
        ):
            payload = JobResponse.model_validate(job).model_dump_json()
            yield f"event: job\ndata: {payload}\n\n"
        logger.debug("subscription_closed", job_id=str(job_id))

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
