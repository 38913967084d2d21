"""
Sona audio worker - polls the job store and turns prompts into audio.
"""

import os
import signal
import sys
from datetime import timedelta
from functools import partial

import structlog
import typer
from rich.console import Console
from rich.markup import escape

from sona.core.errors import ConfigurationError, StorageError

logger = structlog.get_logger()

app = typer.Typer(help="sona-worker - audio generation worker for queued prompt jobs.", add_completion=False)
console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)

SECRET_FIELDS = {"generation_api_key", "s3_secret_key", "s3_access_key", "jwt_secret"}


def load_worker_settings():
    """Load and validate worker settings; raises ConfigurationError listing every problem."""
    from sona.core.config import WorkerSettings, load_settings

    return load_settings(WorkerSettings)


def _mask(name: str, value) -> str:
    if name in SECRET_FIELDS and value:
        return f"{str(value)[:4]}..."
    return str(value)


def check_config(config) -> int:
    """Print the effective configuration and check the database and the bucket."""
    from sona.services import JobStore, StorageService

    console.print("[bold]Configuration:[/bold]")
    for name in sorted(type(config).model_fields):
        console.print(f"  - {name}: {escape(_mask(name, getattr(config, name)))}")

    failures = 0
    try:
        JobStore().ping()
        console.print("Database connection: [green]ok[/green]")
    except StorageError as e:
        console.print(f"Database connection: [red]FAILED[/red] ({escape(str(e))})")
        failures += 1

    storage = StorageService(config)
    if storage.bucket_exists():
        console.print(f"Storage bucket '{storage.bucket}': [green]ok[/green]")
    else:
        console.print(f"Storage bucket '{storage.bucket}': [yellow]missing[/yellow] (the worker creates it on start)")

    return 1 if failures else 0


def build_scheduler(config):
    from sona.services import AudioProcessor, GenerationClient, JobStore, StorageService, get_preview_encoder
    from sona.tasks.audio import process_job
    from sona.worker.scheduler import JobScheduler

    store = JobStore()
    storage = StorageService(config)
    generator = GenerationClient(config)
    processor = AudioProcessor(get_preview_encoder(config.preview_encoder))

    handler = partial(
        process_job,
        store=store,
        generator=generator,
        processor=processor,
        storage=storage,
        path_prefix=config.storage_path_prefix,
        job_timeout=config.job_timeout_seconds,
    )
    scheduler = JobScheduler(
        store,
        handler,
        max_concurrent_jobs=config.max_concurrent_jobs,
        poll_interval=config.poll_interval_seconds,
    )
    return scheduler, storage, generator


def serve(config) -> int:
    """Run the worker until SIGTERM/SIGINT. Returns the process exit code."""
    scheduler, storage, generator = build_scheduler(config)

    try:
        storage.ensure_bucket_exists()
    except StorageError as e:
        logger.error("bucket_unavailable", error=str(e))
        return 1

    stale = scheduler.store.list_stale_processing(timedelta(milliseconds=config.job_timeout_ms))
    if stale:
        logger.warning("stale_processing_jobs", count=len(stale), job_ids=[str(job.id) for job in stale])

    def signal_handler(signum, frame):
        logger.info("shutdown_requested", signal=signum)
        scheduler.stop()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    scheduler.run()

    finished = scheduler.shutdown(config.shutdown_grace_seconds)
    generator.close()
    logger.info("worker_stopped", clean=finished)

    if not finished:
        # Worker threads still hold provider calls; exit without joining them.
        sys.stdout.flush()
        os._exit(0)
    return 0


@app.command()
def main(
    check: bool = typer.Option(False, "--check-config", help="Validate configuration, check the database and the bucket, then exit."),
) -> None:
    """Start the worker."""
    try:
        config = load_worker_settings()
    except ConfigurationError as e:
        err_console.print(str(e), markup=False, highlight=False)
        raise typer.Exit(code=1)

    from sona.core.logging import configure_logging

    configure_logging(config.log_level, config.log_json)

    code = check_config(config) if check else serve(config)
    raise typer.Exit(code=code)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
