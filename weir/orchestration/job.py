"""
Job state and accounting.

A Job is the live, thread-safe record of one pipeline run: its lifecycle
state, counters, and a bounded error log. Workers update it concurrently;
readers take snapshots through ``status()``.
"""

import threading
from collections.abc import Callable
from datetime import datetime
from uuid import UUID, uuid4

from weir.core.exceptions import JobStateError
from weir.core.models import ErrorInfo, JobState, JobStatus, utcnow
from weir.utils.logging_utils import get_logger

logger = get_logger(__name__)

_TRANSITIONS: dict[JobState, tuple[JobState, ...]] = {
    JobState.PENDING: (JobState.RUNNING, JobState.CANCELLED),
    JobState.RUNNING: (JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED),
    JobState.COMPLETED: (),
    JobState.FAILED: (),
    JobState.CANCELLED: (),
}


class Job:
    """
    Lifecycle and counters of one pipeline run.

    States move PENDING -> RUNNING -> one of COMPLETED, FAILED, CANCELLED.
    A pending job may also be cancelled before it starts. Any other
    transition raises ``JobStateError``.

    Example:
        job = Job(name="nightly", max_errors_retained=50)
        job.start()
        job.record_success(records_in=100, records_out=80)
        job.complete()
    """

    def __init__(
        self,
        job_id: UUID | None = None,
        name: str | None = None,
        max_errors_retained: int = 100,
        max_failed_batches: int | None = None,
    ):
        self.job_id = job_id or uuid4()
        self.name = name
        self.max_errors_retained = max_errors_retained
        self.max_failed_batches = max_failed_batches

        self._lock = threading.Lock()
        self._state = JobState.PENDING
        self._done = threading.Event()
        self._cancel_requested = threading.Event()
        self._cancel_listeners: list[Callable[[], None]] = []

        self.records_processed = 0
        self.records_failed = 0
        self.records_emitted = 0
        self.batches_processed = 0
        self.batches_failed = 0
        self.batches_filtered = 0
        self._errors: list[ErrorInfo] = []
        self._errors_dropped = 0
        self._cause: ErrorInfo | None = None

        self.created_at: datetime = utcnow()
        self.started_at: datetime | None = None
        self.finished_at: datetime | None = None

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state.is_terminal

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_requested

    @property
    def cause(self) -> ErrorInfo | None:
        return self._cause

    def _transition(self, target: JobState) -> None:
        """Move to ``target``; caller holds the lock."""
        if target not in _TRANSITIONS[self._state]:
            raise JobStateError(
                f"Job {self.job_id}: cannot go from {self._state.value} "
                f"to {target.value}"
            )
        logger.debug(f"Job {self.job_id}: {self._state.value} -> {target.value}")
        self._state = target
        if target is JobState.RUNNING:
            self.started_at = utcnow()
        if target.is_terminal:
            self.finished_at = utcnow()
            self._cancel_listeners.clear()
            self._done.set()

    def start(self) -> None:
        with self._lock:
            self._transition(JobState.RUNNING)

    def complete(self) -> None:
        with self._lock:
            self._transition(JobState.COMPLETED)

    def fail(self, cause: BaseException | ErrorInfo) -> None:
        with self._lock:
            if not isinstance(cause, ErrorInfo):
                cause = ErrorInfo.from_exception(cause)
            self._transition(JobState.FAILED)
            self._cause = cause

    def mark_cancelled(self) -> None:
        with self._lock:
            self._transition(JobState.CANCELLED)

    def request_cancel(self) -> bool:
        """
        Ask the job to stop.

        A pending job is cancelled immediately. A running job stops
        claiming new batches and drains what is in flight; the scheduler
        then moves it to CANCELLED.

        Returns:
            False if the job had already finished
        """
        with self._lock:
            if self._state.is_terminal:
                return False
            self._cancel_requested.set()
            listeners = list(self._cancel_listeners)
            if self._state is JobState.PENDING:
                self._transition(JobState.CANCELLED)
        for listener in listeners:
            listener()
        return True

    def add_cancel_listener(self, listener: Callable[[], None]) -> None:
        """Call ``listener`` on cancellation; listeners are dropped once finished."""
        with self._lock:
            if not self._state.is_terminal:
                self._cancel_listeners.append(listener)

    def record_success(self, records_in: int, records_out: int) -> None:
        """A batch went through every stage and reached every sink."""
        with self._lock:
            self.batches_processed += 1
            self.records_processed += records_in
            self.records_emitted += records_out

    def record_filtered(self, records_in: int) -> None:
        """A batch was processed and every record was filtered out."""
        with self._lock:
            self.batches_processed += 1
            self.batches_filtered += 1
            self.records_processed += records_in

    def record_emitted(self, records_out: int) -> None:
        """Records delivered without a matching input batch (end-of-stream flush)."""
        with self._lock:
            self.records_emitted += records_out

    def record_batch_failure(self, error: ErrorInfo) -> bool:
        """
        Count a failed batch and log its error.

        Returns:
            True if the failed-batch budget is now exceeded
        """
        with self._lock:
            self.batches_failed += 1
            self.records_failed += error.record_count
            self._append_error(error)
            return (
                self.max_failed_batches is not None
                and self.batches_failed > self.max_failed_batches
            )

    def _append_error(self, error: ErrorInfo) -> None:
        if len(self._errors) < self.max_errors_retained:
            self._errors.append(error)
        else:
            self._errors_dropped += 1

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the job is terminal. Returns False on timeout."""
        return self._done.wait(timeout)

    def status(self) -> JobStatus:
        with self._lock:
            return JobStatus(
                job_id=self.job_id,
                name=self.name,
                state=self._state,
                records_processed=self.records_processed,
                records_failed=self.records_failed,
                records_emitted=self.records_emitted,
                batches_processed=self.batches_processed,
                batches_failed=self.batches_failed,
                batches_filtered=self.batches_filtered,
                errors=list(self._errors),
                errors_dropped=self._errors_dropped,
                cause=self._cause,
                created_at=self.created_at,
                started_at=self.started_at,
                finished_at=self.finished_at,
            )

    def __repr__(self) -> str:
        return f"Job(id={self.job_id}, name={self.name!r}, state={self._state.value})"
