"""
JobDefinition - the facade for running a pipeline over adapters.

Bundles a pipeline with its sources, sinks and engine settings, and runs
it either in the calling thread or through a ``JobController``.
"""

from collections.abc import Iterable
from uuid import UUID

from weir.adapters.base import SinkAdapter, SourceAdapter
from weir.core.models import JobStatus
from weir.core.schema import Schema
from weir.core.specifications import EngineSettings
from weir.orchestration import (
    Job,
    JobController,
    JobObserver,
    LoggingObserver,
    Scheduler,
)
from weir.stages.pipeline import Pipeline
from weir.utils import get_logger

logger = get_logger(__name__)


class JobDefinition:
    """
    A runnable job: pipeline, adapters and settings.

    Usually created with ``JobBuilder`` or ``build_job``.

    Example:
        definition = (
            JobBuilder.create()
            .from_csv("orders.csv")
            .filter_where("amount", "gt", 100)
            .to_csv("big_orders.csv")
            .build()
        )
        status = definition.run()
        print(f"Processed {status.records_processed} records")
    """

    def __init__(
        self,
        pipeline: Pipeline,
        sources: list[SourceAdapter],
        sinks: list[SinkAdapter],
        settings: EngineSettings | None = None,
        name: str | None = None,
        observers: Iterable[JobObserver] | None = None,
    ):
        self.pipeline = pipeline
        self.sources = sources
        self.sinks = sinks
        self.settings = settings or EngineSettings()
        self.name = name
        self.observers: list[JobObserver] = (
            [LoggingObserver()] if observers is None else list(observers)
        )

    def add_observer(self, observer: JobObserver) -> "JobDefinition":
        self.observers.append(observer)
        return self

    def validate(self) -> dict[str, Schema]:
        """
        Check every source schema against the pipeline.

        Returns:
            Output schema per source id

        Raises:
            PipelineValidationError: If a stage cannot accept its input
        """
        return {
            source.source_id: self.pipeline.validate(source.schema)
            for source in self.sources
        }

    def run(self) -> JobStatus:
        """Run the job in the calling thread and return its final status."""
        job = Job(
            name=self.name,
            max_errors_retained=self.settings.max_errors_retained,
            max_failed_batches=self.settings.max_failed_batches,
        )
        scheduler = Scheduler(
            job, self.pipeline, self.sources, self.sinks, self.settings, self.observers
        )
        return scheduler.run()

    def submit(self, controller: JobController) -> UUID:
        """Hand the job to a controller to run in the background."""
        return controller.submit(
            self.pipeline,
            self.sources,
            self.sinks,
            settings=self.settings,
            name=self.name,
            observers=self.observers,
        )

    def __repr__(self) -> str:
        return (
            f"JobDefinition(name={self.name!r}, sources={len(self.sources)}, "
            f"sinks={len(self.sinks)}, {self.pipeline!r})"
        )
