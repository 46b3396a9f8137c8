"""
Job observers.

Observers receive job and batch events from the scheduler. They are called
from worker threads, so implementations must be thread-safe; an observer
that raises is logged and otherwise ignored.
"""

import threading
from typing import Any

from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from weir.core.models import ErrorInfo, JobStatus
from weir.orchestration.job import Job
from weir.utils.logging_utils import get_logger
from weir.utils.rich_utils import get_console

logger = get_logger(__name__)


class JobObserver:
    """Base observer; every hook is a no-op."""

    def on_job_start(self, job: Job) -> None:
        pass

    def on_batch_processed(
        self, job: Job, source_id: str, sequence: int, records_in: int, records_out: int
    ) -> None:
        pass

    def on_batch_failed(self, job: Job, error: ErrorInfo) -> None:
        pass

    def on_job_end(self, job: Job, status: JobStatus) -> None:
        pass


class LoggingObserver(JobObserver):
    """Log job lifecycle and batch failures through structlog."""

    def __init__(self, log_batches: bool = False):
        self.log_batches = log_batches

    def on_job_start(self, job: Job) -> None:
        logger.info(f"Job started: {job.job_id} ({job.name or 'unnamed'})")

    def on_batch_processed(
        self, job: Job, source_id: str, sequence: int, records_in: int, records_out: int
    ) -> None:
        if self.log_batches:
            logger.debug(
                f"Batch {source_id}#{sequence}: {records_in} in, {records_out} out"
            )

    def on_batch_failed(self, job: Job, error: ErrorInfo) -> None:
        where = f" in stage '{error.stage}'" if error.stage else ""
        logger.warning(
            f"Batch {error.source_id}#{error.sequence} failed{where}: "
            f"{error.kind}: {error.message}"
        )

    def on_job_end(self, job: Job, status: JobStatus) -> None:
        duration = status.duration_seconds or 0.0
        message = (
            f"Job {status.state.value}: {status.job_id} "
            f"({status.records_processed} processed, {status.records_failed} failed, "
            f"{duration:.2f}s)"
        )
        if status.cause is not None:
            logger.error(f"{message} cause={status.cause.kind}: {status.cause.message}")
        else:
            logger.info(message)


class ProgressObserver(JobObserver):
    """
    Live Rich progress display of processed and failed records.

    Example:
        observer = ProgressObserver()
        run_job(..., observers=[observer])
    """

    def __init__(self, total_records: int | None = None):
        self.total_records = total_records
        self._lock = threading.Lock()
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            TextColumn("[green]{task.completed} records"),
            TextColumn("[red]{task.fields[failed]} failed"),
            TimeElapsedColumn(),
            console=get_console(),
            transient=True,
        )
        self._task: Any = None
        self._failed = 0

    def on_job_start(self, job: Job) -> None:
        self._progress.start()
        self._task = self._progress.add_task(
            job.name or str(job.job_id), total=self.total_records, failed=0
        )

    def on_batch_processed(
        self, job: Job, source_id: str, sequence: int, records_in: int, records_out: int
    ) -> None:
        with self._lock:
            self._progress.update(self._task, advance=records_in)

    def on_batch_failed(self, job: Job, error: ErrorInfo) -> None:
        with self._lock:
            self._failed += error.record_count
            self._progress.update(
                self._task, advance=error.record_count, failed=self._failed
            )

    def on_job_end(self, job: Job, status: JobStatus) -> None:
        self._progress.stop()
