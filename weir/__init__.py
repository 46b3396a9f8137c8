"""
Weir - a multi-threaded batch pipeline engine.

Records flow from sources through a chain of stages into sinks, one batch
at a time, with bounded queues between each step.

Quick start:
    from weir import JobBuilder

    status = (
        JobBuilder.create()
        .from_csv("orders.csv")
        .filter_where("amount", "gt", 100)
        .to_csv("big_orders.csv")
        .build()
        .run()
    )
"""

__version__ = "0.3.0"

from weir.api import JobBuilder, JobDefinition, build_job
from weir.core import (
    Batch,
    EngineSettings,
    FieldType,
    JobSpec,
    JobState,
    JobStatus,
    Record,
    Schema,
)
from weir.orchestration import Job, JobController, JobRegistry, Scheduler
from weir.stages import Pipeline, Stage

__all__ = [
    "__version__",
    "JobBuilder",
    "JobDefinition",
    "build_job",
    "Batch",
    "Record",
    "Schema",
    "FieldType",
    "JobSpec",
    "JobState",
    "JobStatus",
    "EngineSettings",
    "Job",
    "Scheduler",
    "JobRegistry",
    "JobController",
    "Pipeline",
    "Stage",
]
