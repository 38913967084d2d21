"""
Client for the external audio generation provider.

Each call is all-or-nothing. Failed attempts are retried with linear backoff:
attempt 0 runs immediately, attempt N waits `retry_delay * N` first.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx
import structlog

from sona.core.config import Settings, settings as default_settings
from sona.core.errors import GenerationFailed, TransientProviderError

logger = structlog.get_logger()

MIN_REQUEST_TIMEOUT = 1.0


@dataclass(frozen=True)
class GeneratedAudio:
    audio: bytes
    format: str
    content_type: str


def format_from_content_type(content_type: str | None) -> str:
    """Map a response content type to an audio format; anything unclear is wav."""
    value = (content_type or "").lower()
    if "audio/mpeg" in value or "audio/mp3" in value:
        return "mp3"
    return "wav"


class GenerationClient:
    def __init__(
        self,
        config: Settings | None = None,
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        config = config or default_settings
        self.api_url = config.generation_api_url
        self.api_key = config.generation_api_key
        self.max_retries = config.max_retries
        self.retry_delay = config.retry_delay_seconds
        self.request_timeout = config.generation_request_timeout_seconds

        self._http = http_client or httpx.Client(timeout=self.request_timeout)
        self._sleep = sleep
        self._clock = clock

    def close(self) -> None:
        self._http.close()

    def generate(self, prompt: str, duration: int, quality: str, deadline: float | None = None) -> GeneratedAudio:
        """
        Generate audio, retrying up to `max_retries` times.

        `deadline` is a value of `clock()` after which no new attempt is started.
        Raises GenerationFailed carrying the last provider error once attempts run out.
        """
        last_error: Exception | None = None
        attempts = 0

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                delay = self.retry_delay * attempt
                if deadline is not None and self._clock() + delay >= deadline:
                    logger.warning("generation_deadline_reached", attempts=attempts)
                    break
                logger.info("generation_retry", attempt=attempt, max_retries=self.max_retries, delay=delay)
                self._sleep(delay)

            attempts += 1
            try:
                result = self._call_provider(prompt, duration, quality, self._timeout_for(deadline))
            except TransientProviderError as e:
                last_error = e
                logger.warning("generation_attempt_failed", attempt=attempts, error=str(e))
                continue

            logger.info("generation_succeeded", attempt=attempts, size=len(result.audio), format=result.format)
            return result

        logger.error("generation_exhausted", attempts=attempts, error=str(last_error))
        raise GenerationFailed(last_error, attempts)

    def _timeout_for(self, deadline: float | None) -> float:
        if deadline is None:
            return self.request_timeout
        remaining = deadline - self._clock()
        return max(MIN_REQUEST_TIMEOUT, min(self.request_timeout, remaining))

    def _call_provider(self, prompt: str, duration: int, quality: str, timeout: float) -> GeneratedAudio:
        logger.info("generation_request", duration=duration, quality=quality, prompt_length=len(prompt))

        payload = {"prompt": prompt, "duration": duration}
        if quality:
            payload["quality"] = quality

        try:
            response = self._http.post(
                self.api_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Accept": "audio/wav",
                },
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise TransientProviderError(f"Request to provider failed: {e}") from e

        if not response.is_success:
            raise TransientProviderError(
                f"API error ({response.status_code}): {response.text[:500]}",
                status_code=response.status_code,
            )

        audio = response.content
        if not audio:
            raise TransientProviderError("Received empty audio buffer from API", status_code=response.status_code)

        content_type = response.headers.get("content-type", "")
        audio_format = format_from_content_type(content_type)
        logger.debug("generation_response", size=len(audio), format=audio_format)
        return GeneratedAudio(audio=audio, format=audio_format, content_type=content_type)
