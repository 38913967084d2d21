from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from sona.core.errors import ValidationError
from sona.core.lifecycle import JobStatus, Quality

MAX_PROMPT_LENGTH = 500
MIN_DURATION = 1
MAX_DURATION = 60

# Messages for type errors pydantic reports on its own
TYPE_MESSAGES = {
    "prompt": "Prompt is required and must be a string",
    "duration": "Duration must be a whole number of seconds",
    "quality": "Quality must be one of: low, medium, high",
    "mode": "Mode must be a string",
}


class GenerateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prompt: StrictStr
    duration: StrictInt = 10
    quality: Quality = Quality.MEDIUM
    mode: StrictStr = "default"

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Prompt cannot be empty")
        if len(v) > MAX_PROMPT_LENGTH:
            raise ValueError(f"Prompt must be {MAX_PROMPT_LENGTH} characters or less")
        return v

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: int) -> int:
        if v < MIN_DURATION or v > MAX_DURATION:
            raise ValueError(f"Duration must be between {MIN_DURATION} and {MAX_DURATION} seconds")
        return v


def _message(error: dict) -> str:
    field = str(error["loc"][0]) if error["loc"] else ""
    if error["type"] == "value_error":
        return str(error["ctx"]["error"])
    return TYPE_MESSAGES.get(field, f"{field}: {error['msg']}")


def validate_generate_request(body: Any) -> GenerateRequest:
    """Validate a submission body, collecting every violation before rejecting it."""
    if not isinstance(body, dict):
        raise ValidationError(["Request body must be a JSON object"])

    # Explicit nulls count as "not supplied" for the optional fields
    data = {key: value for key, value in body.items() if value is not None or key == "prompt"}
    try:
        return GenerateRequest.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError([_message(err) for err in e.errors()]) from e


class JobSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    prompt: str
    duration: int
    quality: Quality
    mode: str
    status: JobStatus
    created_at: datetime


class GenerateResponse(BaseModel):
    success: bool = True
    job_id: UUID
    status: JobStatus
    message: str
    job: JobSummary


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    prompt: str
    duration: int
    quality: Quality
    mode: str
    status: JobStatus
    error_message: str | None = None
    result_url: str | None = None
    wav_url: str | None = None
    mp3_url: str | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None


class JobEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_type: str
    old_status: JobStatus | None = None
    new_status: JobStatus | None = None
    event_data: dict[str, Any] | None = None
    created_at: datetime


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: list[str] | str | None = None
