"""
Polling scheduler with bounded concurrency.

A single loop polls the store once per interval. A job is only claimed after
an execution slot has been reserved, so this worker never holds more than
`max_concurrent_jobs` jobs in `processing` at once. Cross-worker exclusivity
comes from the store's conditional update, not from anything in this module.
"""

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait

import structlog

from sona.models import Job
from sona.services import JobStore
from sona.tasks.audio import claim_next_job

logger = structlog.get_logger()


class JobScheduler:
    def __init__(
        self,
        store: JobStore,
        handler: Callable[[Job], dict],
        max_concurrent_jobs: int = 2,
        poll_interval: float = 5.0,
        claim: Callable[[JobStore], Job | None] = claim_next_job,
    ) -> None:
        self.store = store
        self.handler = handler
        self.max_concurrent_jobs = max_concurrent_jobs
        self.poll_interval = poll_interval
        self._claim = claim

        self._running = threading.Event()
        self._wakeup = threading.Event()
        self._slots = threading.BoundedSemaphore(max_concurrent_jobs)
        self._executor = ThreadPoolExecutor(max_workers=max_concurrent_jobs, thread_name_prefix="sona-job")
        self._in_flight: set[Future] = set()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def tick(self) -> Job | None:
        """Reserve a slot, claim the oldest ready job and start it. Returns the started job."""
        if not self._slots.acquire(blocking=False):
            logger.debug("all_slots_busy", max_concurrent_jobs=self.max_concurrent_jobs)
            return None

        try:
            job = self._claim(self.store)
        except Exception as e:
            self._slots.release()
            logger.error("poll_failed", error=str(e))
            return None

        if job is None:
            self._slots.release()
            return None

        future = self._executor.submit(self._execute, job)
        with self._lock:
            self._in_flight.add(future)
        future.add_done_callback(self._forget)
        return job

    def _execute(self, job: Job) -> dict | None:
        try:
            return self.handler(job)
        except Exception as e:
            logger.error("job_handler_crashed", job_id=str(job.id), error=str(e))
            return None
        finally:
            self._slots.release()

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._in_flight.discard(future)

    def run(self) -> None:
        """Poll until `stop()` is called."""
        self._running.set()
        logger.info(
            "worker_started",
            max_concurrent_jobs=self.max_concurrent_jobs,
            poll_interval=self.poll_interval,
        )

        while self._running.is_set():
            self.tick()
            self._wakeup.wait(self.poll_interval)

        logger.info("poll_loop_stopped", in_flight=self.in_flight)

    def stop(self) -> None:
        logger.info("worker_stopping")
        self._running.clear()
        self._wakeup.set()

    def shutdown(self, grace_seconds: float) -> bool:
        """Wait up to `grace_seconds` for admitted jobs. Returns True if all of them finished."""
        with self._lock:
            pending = set(self._in_flight)

        done, not_done = wait(pending, timeout=grace_seconds)
        self._executor.shutdown(wait=False)

        if not_done:
            logger.warning("shutdown_grace_expired", unfinished=len(not_done), finished=len(done))
            return False

        logger.info("shutdown_complete", finished=len(done))
        return True
