"""
Job registry and controller.

The registry is an explicit, process-wide table of live jobs. It owns the
threads that run them and must be started before use and shut down when
done; shutdown cancels whatever is still running and waits for it.
``JobController`` is the submit/status/cancel facade on top of it.
"""

import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from uuid import UUID

from weir.adapters.base import SinkAdapter, SourceAdapter
from weir.core.exceptions import JobNotFoundError, JobStateError
from weir.core.models import JobStatus
from weir.core.specifications import EngineSettings
from weir.orchestration.concurrency_controller import ConcurrencyController
from weir.orchestration.job import Job
from weir.orchestration.observers import JobObserver, LoggingObserver
from weir.orchestration.scheduler import Scheduler
from weir.stages.pipeline import Pipeline
from weir.utils.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass
class JobHandle:
    """
    A registered job with the scheduler and thread running it.

    ``scheduler`` and ``thread`` are dropped once the job finishes so its
    pipeline and adapters can be garbage collected; ``job`` keeps the status.
    """

    job: Job
    scheduler: Scheduler | None
    thread: threading.Thread | None = field(default=None, repr=False)


class JobRegistry:
    """
    In-memory table of jobs, keyed by job id.

    Finished jobs are kept for status queries. With ``max_finished_jobs``
    set, the oldest finished jobs are forgotten once there are more than
    that many.

    Example:
        registry = JobRegistry(max_concurrent_jobs=4)
        registry.start()
        try:
            controller = JobController(registry)
            job_id = controller.submit(pipeline, [source], [sink])
        finally:
            registry.shutdown()
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        max_concurrent_jobs: int | None = None,
        max_finished_jobs: int | None = None,
    ):
        if max_finished_jobs is not None and max_finished_jobs < 0:
            raise ValueError("max_finished_jobs must be non-negative")
        self.settings = settings or EngineSettings()
        self.max_finished_jobs = max_finished_jobs
        self._controller = ConcurrencyController(max_concurrent_jobs)
        self._lock = threading.Lock()
        self._jobs: dict[UUID, JobHandle] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> "JobRegistry":
        with self._lock:
            self._running = True
        logger.debug("Job registry started")
        return self

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop accepting jobs, cancel live ones and wait for their threads."""
        with self._lock:
            self._running = False
            handles = list(self._jobs.values())
        for handle in handles:
            if not handle.job.is_terminal:
                handle.job.request_cancel()
        for handle in handles:
            if handle.thread is not None:
                handle.thread.join(timeout)
        logger.debug(f"Job registry stopped ({len(handles)} jobs)")

    def launch(self, scheduler: Scheduler) -> JobHandle:
        """Register a job and start running it in a background thread."""
        job = scheduler.job
        handle = JobHandle(job=job, scheduler=scheduler)
        handle.thread = threading.Thread(
            target=self._run, args=(handle,), name=f"weir-job-{job.job_id}", daemon=True
        )
        with self._lock:
            if not self._running:
                raise JobStateError("Job registry is not running")
            self._evict_finished()
            self._jobs[job.job_id] = handle
        handle.thread.start()
        return handle

    def _evict_finished(self) -> None:
        """Forget the oldest finished jobs beyond the limit; caller holds the lock."""
        if self.max_finished_jobs is None:
            return
        finished = [job_id for job_id, h in self._jobs.items() if h.job.is_terminal]
        excess = len(finished) - self.max_finished_jobs
        for job_id in finished[: max(excess, 0)]:
            del self._jobs[job_id]
        if excess > 0:
            logger.debug(f"Evicted {excess} finished jobs")

    def _run(self, handle: JobHandle) -> None:
        try:
            with self._controller.slot(handle.job.cancel_event):
                try:
                    handle.scheduler.run()
                except Exception as e:
                    logger.error(f"Job {handle.job.job_id} crashed: {e}")
                    if not handle.job.is_terminal:
                        handle.job.fail(e)
        finally:
            handle.scheduler = None
            handle.thread = None

    def get(self, job_id: UUID) -> JobHandle:
        with self._lock:
            handle = self._jobs.get(job_id)
        if handle is None:
            raise JobNotFoundError(f"Unknown job: {job_id}")
        return handle

    def handles(self) -> list[JobHandle]:
        with self._lock:
            return list(self._jobs.values())

    def __enter__(self) -> "JobRegistry":
        return self.start()

    def __exit__(self, *exc: object) -> None:
        self.shutdown()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)


class JobController:
    """Submit, inspect and cancel jobs held by a registry."""

    def __init__(self, registry: JobRegistry):
        self.registry = registry

    def submit(
        self,
        pipeline: Pipeline,
        sources: Sequence[SourceAdapter],
        sinks: Sequence[SinkAdapter],
        settings: EngineSettings | None = None,
        name: str | None = None,
        observers: Iterable[JobObserver] | None = None,
    ) -> UUID:
        """
        Validate and start a job.

        Returns:
            The new job's id

        Raises:
            PipelineValidationError: Stage schemas do not fit the sources
            ConfigurationError: Duplicate adapter ids, or no source/sink
            JobStateError: The registry is not running
        """
        settings = settings or self.registry.settings
        job = Job(
            name=name,
            max_errors_retained=settings.max_errors_retained,
            max_failed_batches=settings.max_failed_batches,
        )
        scheduler = Scheduler(
            job,
            pipeline,
            sources,
            sinks,
            settings,
            observers=[LoggingObserver()] if observers is None else observers,
        )
        self.registry.launch(scheduler)
        logger.info(f"Submitted job {job.job_id} ({name or 'unnamed'})")
        return job.job_id

    def status(self, job_id: UUID) -> JobStatus:
        return self.registry.get(job_id).job.status()

    def cancel(self, job_id: UUID) -> bool:
        """Request cancellation. Returns False if the job already finished."""
        return self.registry.get(job_id).job.request_cancel()

    def wait(self, job_id: UUID, timeout: float | None = None) -> JobStatus:
        """Block until the job finishes or ``timeout`` elapses; return its status."""
        handle = self.registry.get(job_id)
        handle.job.wait(timeout)
        return handle.job.status()

    def list_jobs(self) -> list[JobStatus]:
        return [handle.job.status() for handle in self.registry.handles()]
