import structlog
from fastapi import APIRouter, Request, status

from sona.api.dependencies import CurrentPrincipal, Store
from sona.api.schemas import ErrorResponse, GenerateResponse, JobSummary, validate_generate_request
from sona.core.errors import ValidationError

logger = structlog.get_logger()
router = APIRouter(tags=["Generation"])


@router.post(
    "/generate",
    response_model=GenerateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a prompt",
    description="""
Creates an audio generation job for the authenticated user.

**Body:** `{prompt, duration?, quality?, mode?}`
- `prompt` - 1 to 500 characters after trimming
- `duration` - 1 to 60 seconds (default 10)
- `quality` - `low`, `medium` or `high` (default `medium`)
- `mode` - free-form tag (default `default`)

The job starts as `pending`; a worker picks it up and moves it to
`processing`, then `completed` or `failed`. Poll `/jobs/{id}` or subscribe to
`/jobs/{id}/events` to follow it.
    """,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def create_generation_job(request: Request, principal: CurrentPrincipal, store: Store) -> GenerateResponse:
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError(["Invalid JSON in request body"])

    payload = validate_generate_request(body)
    job = store.insert(
        user_id=principal,
        prompt=payload.prompt,
        duration=payload.duration,
        quality=payload.quality,
        mode=payload.mode,
    )

    logger.info("job_created", job_id=str(job.id), user_id=principal, duration=job.duration, quality=job.quality.value)

    return GenerateResponse(
        job_id=job.id,
        status=job.status,
        message="Job created successfully",
        job=JobSummary.model_validate(job),
    )
