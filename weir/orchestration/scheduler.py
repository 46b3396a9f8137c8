"""
Multi-threaded batch scheduler.

Moves batches from source intakes through the pipeline on a fixed pool of
worker threads and into sink intakes.

Claiming is FIFO within a source and round-robin across sources. When the
pipeline holds state, a source has at most one batch in flight, which
keeps stateful stages seeing batches in sequence order. Stateless
pipelines fan batches of one source out across all workers; the sequence
tracker still delivers them to sinks in claim order.

Workers look at the cancel and failure flags only when claiming, so a
batch that has been claimed always runs to completion.
"""

import threading
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from weir.adapters.base import SinkAdapter, SourceAdapter
from weir.core.batch import Batch
from weir.core.exceptions import (
    BatchError,
    ConfigurationError,
    JobStateError,
    WeirError,
)
from weir.core.models import ErrorInfo, JobState, JobStatus
from weir.core.specifications import EngineSettings
from weir.orchestration.intake import SinkIntake, SourceIntake
from weir.orchestration.job import Job
from weir.orchestration.observers import JobObserver
from weir.orchestration.sequencer import SequenceTracker
from weir.stages.outcome import Emitted, Filtered, Outcome
from weir.stages.pipeline import Pipeline
from weir.utils.logging_utils import get_logger
from weir.utils.retry_handler import RetryHandler

logger = get_logger(__name__)


@dataclass
class _Task:
    intake: SourceIntake
    ticket: int
    batch: Batch | None  # None: end-of-stream flush


class Scheduler:
    """
    Runs one job to completion.

    Example:
        job = Job(name="orders")
        settings = EngineSettings(workers=4)
        scheduler = Scheduler(job, pipeline, [source], [sink], settings)
        status = scheduler.run()
    """

    def __init__(
        self,
        job: Job,
        pipeline: Pipeline,
        sources: Sequence[SourceAdapter],
        sinks: Sequence[SinkAdapter],
        settings: EngineSettings | None = None,
        observers: Iterable[JobObserver] = (),
    ):
        if not sources:
            raise ConfigurationError("A job needs at least one source")
        if not sinks:
            raise ConfigurationError("A job needs at least one sink")
        _check_unique([s.source_id for s in sources], "source")
        _check_unique([s.sink_id for s in sinks], "sink")
        for source in sources:
            pipeline.validate(source.schema)

        self.job = job
        self.pipeline = pipeline
        self.sources = list(sources)
        self.sinks = list(sinks)
        self.settings = settings or EngineSettings()
        self.observers = list(observers)
        if job.max_failed_batches is None:
            job.max_failed_batches = self.settings.max_failed_batches
        self.workers = self.settings.resolved_workers
        self.sink_stats: dict[str, dict[str, Any]] = {}

        self._cond = threading.Condition()
        self._tracker = SequenceTracker()
        self._retry = RetryHandler.from_settings(self.settings.retry)
        self._fatal: BaseException | None = None
        self._next_source = 0
        self._stateful = pipeline.is_stateful

        self.source_intakes = [
            SourceIntake(
                source,
                capacity=self.settings.source_queue_capacity,
                cond=self._cond,
                job_id=job.job_id,
                retry=self._retry,
                on_batch_error=self._on_source_error,
                on_fatal=self._escalate,
                max_batch_size=self.settings.max_batch_size,
            )
            for source in self.sources
        ]
        self.sink_intakes = [
            SinkIntake(
                sink,
                capacity=self.settings.sink_queue_capacity,
                retry=self._retry,
                on_fatal=self._escalate,
            )
            for sink in self.sinks
        ]
        job.add_cancel_listener(self._wake)

    def run(self) -> JobStatus:
        """Execute the job and return its final status."""
        if self.job.state is JobState.CANCELLED:
            logger.info(f"Job {self.job.job_id} cancelled before start")
            self._close_adapters()
            return self.job.status()

        try:
            self.job.start()
        except JobStateError:
            # Cancelled between the check above and start
            self._close_adapters()
            return self.job.status()
        self.pipeline.reset()
        self._notify("on_job_start", self.job)
        logger.info(
            f"Job {self.job.job_id} running: {len(self.sources)} sources, "
            f"{len(self.sinks)} sinks, {self.workers} workers, {self.pipeline!r}"
        )

        try:
            for intake in self.sink_intakes:
                intake.start()
            for intake in self.source_intakes:
                intake.start()

            with ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="weir-worker"
            ) as pool:
                futures = [pool.submit(self._work) for _ in range(self.workers)]
                for future in futures:
                    error = future.exception()
                    if error is not None:
                        self._escalate(error)
        except Exception as e:
            self._escalate(e)
        finally:
            self._shutdown_intakes()
            self._close_adapters()
            self._finish_job()

        status = self.job.status()
        self._notify("on_job_end", self.job, status)
        return status

    def _work(self) -> None:
        while True:
            task = self._claim()
            if task is None:
                return
            try:
                self._execute(task)
            except Exception as e:
                self._escalate(e)
            finally:
                self._tracker.release(task.intake.source_id, task.ticket)
                with self._cond:
                    task.intake.in_flight -= 1
                    self._cond.notify_all()

    def _claim(self) -> _Task | None:
        with self._cond:
            while True:
                if self._stopping:
                    return None
                count = len(self.source_intakes)
                for offset in range(count):
                    index = (self._next_source + offset) % count
                    intake = self.source_intakes[index]
                    if self._stateful and intake.in_flight:
                        continue
                    if intake.queue:
                        batch = intake.queue.popleft()
                    elif self._stateful and intake.drained and not intake.flushed:
                        intake.flushed = True
                        batch = None
                    else:
                        continue
                    intake.in_flight += 1
                    self._next_source = (index + 1) % count
                    ticket = self._tracker.issue(intake.source_id)
                    # Frees a slot for the reader
                    self._cond.notify_all()
                    return _Task(intake, ticket, batch)

                if all(self._finished(intake) for intake in self.source_intakes):
                    self._cond.notify_all()
                    return None
                self._cond.wait()

    def _finished(self, intake: SourceIntake) -> bool:
        return intake.drained and (intake.flushed or not self._stateful)

    def _execute(self, task: _Task) -> None:
        intake = task.intake
        if task.batch is None:
            self._flush(task)
            return

        outcome = self.pipeline.apply(task.batch)
        records_in = len(task.batch)
        if isinstance(outcome, Emitted):
            self._deliver(task, outcome.batch)
            self.job.record_success(records_in, len(outcome.batch))
            self._notify(
                "on_batch_processed",
                self.job,
                intake.source_id,
                task.batch.sequence,
                records_in,
                len(outcome.batch),
            )
        elif isinstance(outcome, Filtered):
            self.job.record_filtered(records_in)
            self._notify(
                "on_batch_processed",
                self.job,
                intake.source_id,
                task.batch.sequence,
                records_in,
                0,
            )
        else:
            self._record_failure(outcome.to_error_info())

    def _flush(self, task: _Task) -> None:
        intake = task.intake
        try:
            outcomes: list[Outcome] = self.pipeline.finish(
                intake.source_id, intake.adapter.schema, intake.last_sequence + 1
            )
        except Exception as e:
            self._record_failure(
                ErrorInfo.from_exception(
                    e, source_id=intake.source_id, sequence=intake.last_sequence + 1
                )
            )
            return

        for outcome in outcomes:
            if isinstance(outcome, Emitted):
                self._deliver(task, outcome.batch)
                self.job.record_emitted(len(outcome.batch))
            elif not isinstance(outcome, Filtered):
                self._record_failure(outcome.to_error_info())

    def _deliver(self, task: _Task, batch: Batch) -> None:
        """Push to every sink once all earlier batches of the source are delivered."""
        self._tracker.wait_turn(task.intake.source_id, task.ticket)
        if batch.job_id is None:
            batch = batch.with_job(self.job.job_id)
        for intake in self.sink_intakes:
            intake.put(batch)

    def _on_source_error(self, error: BatchError) -> None:
        self._record_failure(ErrorInfo.from_exception(error))

    def _record_failure(self, info: ErrorInfo) -> None:
        exceeded = self.job.record_batch_failure(info)
        self._notify("on_batch_failed", self.job, info)
        if exceeded:
            self._escalate(
                WeirError(
                    f"Failed batches exceeded the limit of "
                    f"{self.job.max_failed_batches}"
                )
            )

    @property
    def _stopping(self) -> bool:
        return self._fatal is not None or self.job.cancel_requested

    def _escalate(self, error: BaseException) -> None:
        with self._cond:
            if self._fatal is None:
                logger.error(f"Job {self.job.job_id} failing: {error}")
                self._fatal = error
            self._cond.notify_all()

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def _shutdown_intakes(self) -> None:
        with self._cond:
            for intake in self.source_intakes:
                intake.stop()
            self._cond.notify_all()
        for intake in self.source_intakes:
            intake.join()
        for intake in self.sink_intakes:
            intake.close()

    def _close_adapters(self) -> None:
        for source in self.sources:
            try:
                source.close()
            except Exception as e:
                logger.warning(f"Error closing source {source.source_id}: {e}")
        for sink in self.sinks:
            try:
                self.sink_stats[sink.sink_id] = sink.close()
            except Exception as e:
                self._escalate(e)

    def _finish_job(self) -> None:
        if self._fatal is not None:
            self.job.fail(self._fatal)
        elif self.job.cancel_requested:
            self.job.mark_cancelled()
        else:
            self.job.complete()

    def _notify(self, hook: str, *args: Any) -> None:
        for observer in self.observers:
            try:
                getattr(observer, hook)(*args)
            except Exception as e:
                logger.warning(
                    f"Observer {type(observer).__name__}.{hook} raised: {e}"
                )


def _check_unique(ids: list[str], kind: str) -> None:
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate {kind} ids: {', '.join(duplicates)}")
