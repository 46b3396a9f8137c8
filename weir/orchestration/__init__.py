"""Job execution: scheduling, lifecycle and the job registry."""

from weir.orchestration.concurrency_controller import ConcurrencyController
from weir.orchestration.intake import SinkIntake, SourceIntake
from weir.orchestration.job import Job
from weir.orchestration.observers import JobObserver, LoggingObserver, ProgressObserver
from weir.orchestration.registry import JobController, JobHandle, JobRegistry
from weir.orchestration.scheduler import Scheduler
from weir.orchestration.sequencer import SequenceTracker

__all__ = [
    "Job",
    "Scheduler",
    "JobRegistry",
    "JobController",
    "JobHandle",
    # Observers
    "JobObserver",
    "LoggingObserver",
    "ProgressObserver",
    # Internals exposed for tuning and tests
    "SourceIntake",
    "SinkIntake",
    "SequenceTracker",
    "ConcurrencyController",
]
