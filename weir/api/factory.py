"""Assemble a runnable job from a declarative ``JobSpec``."""

from weir.adapters.base import SourceAdapter
from weir.adapters.factory import create_sink, create_source
from weir.api.job_definition import JobDefinition
from weir.core.specifications import JobSpec
from weir.orchestration.observers import JobObserver
from weir.stages.registry import build_pipeline


def build_job(
    spec: JobSpec, observers: list[JobObserver] | None = None
) -> JobDefinition:
    """
    Open the job's adapters and build its pipeline.

    Sources opened before a failure are closed again.

    Raises:
        ConfigurationError: Invalid stage parameters or formats
        FileNotFoundError: A source file is missing
        PipelineValidationError: Stages do not fit the source schemas
    """
    pipeline = build_pipeline(spec.stages, name=spec.name or "pipeline")
    sources: list[SourceAdapter] = []
    try:
        for source_spec in spec.sources:
            sources.append(create_source(source_spec, spec.engine))
        definition = JobDefinition(
            pipeline,
            sources,
            [create_sink(sink_spec) for sink_spec in spec.sinks],
            settings=spec.engine,
            name=spec.name,
            observers=observers,
        )
        definition.validate()
    except Exception:
        for source in sources:
            source.close()
        raise
    return definition
