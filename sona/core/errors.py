"""Error taxonomy shared by the API and the worker."""


class SonaError(Exception):
    """Base class for every error raised by this service."""


class ValidationError(SonaError):
    """Bad input from the submitter. Never retried."""

    def __init__(self, details: list[str], message: str = "Invalid input parameters") -> None:
        super().__init__(message)
        self.message = message
        self.details = list(details)


class AuthenticationError(SonaError):
    """Missing, malformed or expired credentials."""


class TransientProviderError(SonaError):
    """A single generation attempt failed (transport error, non-2xx or empty body)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PermanentJobFailure(SonaError):
    """Unrecoverable error for a job. Recorded on the job, never re-queued."""


class GenerationFailed(PermanentJobFailure):
    """The generation provider kept failing until retries ran out."""

    def __init__(self, last_error: Exception | None, attempts: int) -> None:
        reason = str(last_error) if last_error is not None else "no response from provider"
        super().__init__(f"Audio generation failed after {attempts} attempt(s): {reason}")
        self.last_error = last_error
        self.attempts = attempts


class StorageError(SonaError):
    """Persistence or object storage failure."""


class UploadError(StorageError):
    """An artifact could not be written to object storage."""


class ConfigurationError(SonaError):
    """Startup-fatal configuration problem."""

    def __init__(self, details: list[str]) -> None:
        super().__init__("Configuration validation failed:\n" + "\n".join(details))
        self.details = list(details)


class InvalidTransition(SonaError):
    """An update the job state machine does not allow."""
