from .job import (
    ErrorResponse,
    GenerateRequest,
    GenerateResponse,
    JobEventResponse,
    JobListResponse,
    JobResponse,
    JobSummary,
    validate_generate_request,
)

__all__ = [
    "ErrorResponse",
    "GenerateRequest",
    "GenerateResponse",
    "JobEventResponse",
    "JobListResponse",
    "JobResponse",
    "JobSummary",
    "validate_generate_request",
]
