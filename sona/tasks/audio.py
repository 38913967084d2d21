import time
from collections.abc import Callable

import structlog

from sona.core.errors import StorageError
from sona.core.lifecycle import JobStatus
from sona.models import Job
from sona.services import AudioProcessor, GenerationClient, JobStore, StorageService

logger = structlog.get_logger()

MAX_ERROR_LENGTH = 2000


def _prompt_preview(prompt: str) -> str:
    return prompt[:50] + ("..." if len(prompt) > 50 else "")


def claim_next_job(store: JobStore) -> Job | None:
    """Claim the oldest ready job. Losing the race to another worker returns None."""
    candidates = store.list_ready(limit=1)
    if not candidates:
        return None

    job = candidates[0]
    claimed = store.claim(job)
    if claimed is None:
        logger.debug("claim_lost", job_id=str(job.id), observed_status=job.status.value)
        return None

    logger.info("job_claimed", job_id=str(claimed.id), previous_status=job.status.value)
    return claimed


def build_artifact_paths(prefix: str, job_id, timestamp_ms: int) -> tuple[str, str]:
    """Destination keys for the master (wav) and preview (mp3) artifacts."""
    stem = f"{job_id}_{timestamp_ms}"
    if prefix:
        stem = f"{prefix}/{stem}"
    return f"{stem}.wav", f"{stem}.mp3"


def process_job(
    job: Job,
    store: JobStore,
    generator: GenerationClient,
    processor: AudioProcessor,
    storage: StorageService,
    path_prefix: str,
    job_timeout: float | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> dict:
    """Drive a claimed job to `completed` or `failed`. Never raises."""
    logger.info(
        "processing_started",
        job_id=str(job.id),
        prompt=_prompt_preview(job.prompt),
        duration=job.duration,
        quality=job.quality.value,
    )
    start_time = time.time()
    deadline = clock() + job_timeout if job_timeout else None

    try:
        audio = generator.generate(job.prompt, job.duration, job.quality.value, deadline=deadline)
        artifacts = processor.process(audio.audio, audio.format)

        wav_key, mp3_key = build_artifact_paths(path_prefix, job.id, int(time.time() * 1000))
        wav_url = storage.put(wav_key, artifacts.master, "audio/wav")
        mp3_url = storage.put(mp3_key, artifacts.preview, processor.encoder.content_type)

        processing_time = round(time.time() - start_time, 3)
        completed = store.compare_and_set(
            job.id,
            JobStatus.PROCESSING,
            JobStatus.COMPLETED,
            event_data={"size_bytes": len(artifacts.master), "processing_time": processing_time},
            wav_url=wav_url,
            mp3_url=mp3_url,
        )
        if not completed:
            logger.warning("job_status_changed", job_id=str(job.id))
            return {"status": "skipped", "job_id": str(job.id), "reason": "status_changed"}

        logger.info(
            "processing_completed",
            job_id=str(job.id),
            processing_time=processing_time,
            wav_url=wav_url,
            mp3_url=mp3_url,
        )
        return {"status": "success", "job_id": str(job.id), "wav_url": wav_url, "mp3_url": mp3_url}

    except Exception as e:
        message = (str(e) or type(e).__name__)[:MAX_ERROR_LENGTH]
        logger.error("processing_failed", job_id=str(job.id), error=message, error_type=type(e).__name__)

        try:
            recorded = store.compare_and_set(
                job.id,
                JobStatus.PROCESSING,
                JobStatus.FAILED,
                event_data={"error_type": type(e).__name__},
                error_message=message,
            )
        except StorageError as store_error:
            logger.error("failure_not_recorded", job_id=str(job.id), error=str(store_error))
            recorded = False

        return {"status": "failed", "job_id": str(job.id), "error": message, "recorded": recorded}
