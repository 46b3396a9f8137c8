"""
Fluent builder for jobs.

Sources and sinks are opened when ``build()`` is called, so settings
applied later in the chain (batch size, limits) still reach them.
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pandas as pd
import polars as pl

from weir.adapters import (
    CollectingSink,
    CSVSink,
    CSVSource,
    DataFrameSink,
    DataFrameSource,
    InMemorySource,
    NDJSONSink,
    NDJSONSource,
    ParquetSink,
    ParquetSource,
    SinkAdapter,
    SourceAdapter,
)
from weir.api.job_definition import JobDefinition
from weir.core.exceptions import ConfigurationError
from weir.core.schema import FieldType, Schema
from weir.core.specifications import EngineSettings
from weir.orchestration.observers import JobObserver
from weir.stages import (
    AggregateStage,
    CastStage,
    FilterStage,
    FunctionStage,
    LimitStage,
    MapStage,
    Pipeline,
    ProjectStage,
    Stage,
    WindowStage,
)

SourceFactory = Callable[[EngineSettings], SourceAdapter]


class JobBuilder:
    """
    Fluent builder for constructing jobs.

    Example:
        definition = (
            JobBuilder.create()
            .from_records(rows, source_id="users")
            .filter(lambda r: r.get_bool("active"))
            .project(select=["id", "name"])
            .to_memory()
            .with_workers(4)
            .build()
        )
        status = definition.run()
    """

    def __init__(self):
        self._sources: list[SourceFactory] = []
        self._stages: list[Stage] = []
        self._sinks: list[SinkAdapter] = []
        self._observers: list[JobObserver] | None = None
        self._settings: dict[str, Any] = {}
        self._base_settings: EngineSettings | None = None
        self._name: str | None = None

    @classmethod
    def create(cls) -> "JobBuilder":
        return cls()

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def from_source(self, adapter: SourceAdapter) -> "JobBuilder":
        self._sources.append(lambda settings: adapter)
        return self

    def from_records(
        self,
        rows: Sequence[Mapping[str, Any]],
        source_id: str = "records",
        schema: Schema | None = None,
        batch_size: int | None = None,
    ) -> "JobBuilder":
        self._sources.append(
            lambda settings: InMemorySource(
                source_id,
                rows,
                schema=schema,
                batch_size=batch_size or settings.default_batch_size,
                max_batch_size=settings.max_batch_size,
            )
        )
        return self

    def from_csv(
        self,
        path: str | Path,
        source_id: str | None = None,
        schema: Schema | None = None,
        batch_size: int | None = None,
        delimiter: str = ",",
    ) -> "JobBuilder":
        self._sources.append(
            lambda settings: CSVSource(
                source_id or Path(path).stem,
                path,
                schema=schema,
                batch_size=batch_size or settings.default_batch_size,
                delimiter=delimiter,
                max_batch_size=settings.max_batch_size,
            )
        )
        return self

    def from_ndjson(
        self,
        path: str | Path,
        source_id: str | None = None,
        schema: Schema | None = None,
        batch_size: int | None = None,
    ) -> "JobBuilder":
        self._sources.append(
            lambda settings: NDJSONSource(
                source_id or Path(path).stem,
                path,
                schema=schema,
                batch_size=batch_size or settings.default_batch_size,
                max_batch_size=settings.max_batch_size,
            )
        )
        return self

    def from_parquet(
        self,
        path: str | Path,
        source_id: str | None = None,
        schema: Schema | None = None,
        batch_size: int | None = None,
    ) -> "JobBuilder":
        self._sources.append(
            lambda settings: ParquetSource(
                source_id or Path(path).stem,
                path,
                schema=schema,
                batch_size=batch_size or settings.default_batch_size,
                max_batch_size=settings.max_batch_size,
            )
        )
        return self

    def from_dataframe(
        self,
        frame: pd.DataFrame | pl.DataFrame,
        source_id: str = "dataframe",
        batch_size: int | None = None,
    ) -> "JobBuilder":
        self._sources.append(
            lambda settings: DataFrameSource(
                source_id,
                frame,
                batch_size=batch_size or settings.default_batch_size,
                max_batch_size=settings.max_batch_size,
            )
        )
        return self

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _stage_name(self, kind: str, name: str | None) -> str:
        return name or f"{kind}-{len(self._stages)}"

    def with_stage(self, stage: Stage) -> "JobBuilder":
        self._stages.append(stage)
        return self

    def map(
        self,
        fn: Callable,
        output_schema: Schema | None = None,
        name: str | None = None,
    ) -> "JobBuilder":
        return self.with_stage(
            MapStage(
                fn,
                output_schema=output_schema,
                name=self._stage_name("map", name),
            )
        )

    def filter(self, predicate: Callable, name: str | None = None) -> "JobBuilder":
        return self.with_stage(
            FilterStage(predicate, name=self._stage_name("filter", name))
        )

    def filter_where(
        self, column: str, op: str, value: Any = None, name: str | None = None
    ) -> "JobBuilder":
        return self.with_stage(
            FilterStage.where(column, op, value, name=self._stage_name("filter", name))
        )

    def project(
        self,
        select: Iterable[str] | None = None,
        drop: Iterable[str] | None = None,
        rename: Mapping[str, str] | None = None,
        name: str | None = None,
    ) -> "JobBuilder":
        return self.with_stage(
            ProjectStage(
                select=select,
                drop=drop,
                rename=rename,
                name=self._stage_name("project", name),
            )
        )

    def cast(
        self, column: str, to: FieldType | str, name: str | None = None
    ) -> "JobBuilder":
        return self.with_stage(
            CastStage(column, to, name=self._stage_name("cast", name))
        )

    def aggregate(
        self,
        group_by: Iterable[str],
        aggregations: Iterable[Any],
        emit: str = "running",
        name: str | None = None,
    ) -> "JobBuilder":
        return self.with_stage(
            AggregateStage(
                group_by,
                aggregations,
                emit=emit,
                name=self._stage_name("aggregate", name),
            )
        )

    def window(
        self, function: str, output: str, name: str | None = None, **options: Any
    ) -> "JobBuilder":
        return self.with_stage(
            WindowStage(
                function, output, name=self._stage_name("window", name), **options
            )
        )

    def limit(self, limit: int, name: str | None = None) -> "JobBuilder":
        return self.with_stage(LimitStage(limit, name=self._stage_name("limit", name)))

    def apply(
        self,
        fn: Callable,
        output_schema: Schema | None = None,
        stateful: bool = False,
        name: str | None = None,
    ) -> "JobBuilder":
        """Add an arbitrary batch function as a stage."""
        return self.with_stage(
            FunctionStage(
                fn,
                output_schema=output_schema,
                stateful=stateful,
                name=self._stage_name("function", name),
            )
        )

    # ------------------------------------------------------------------
    # Sinks
    # ------------------------------------------------------------------

    def to_sink(self, adapter: SinkAdapter) -> "JobBuilder":
        self._sinks.append(adapter)
        return self

    def to_memory(self, sink_id: str = "memory") -> "JobBuilder":
        return self.to_sink(CollectingSink(sink_id))

    def to_dataframe(self, sink_id: str = "dataframe") -> "JobBuilder":
        return self.to_sink(DataFrameSink(sink_id))

    def to_csv(
        self, path: str | Path, sink_id: str | None = None, delimiter: str = ","
    ) -> "JobBuilder":
        sink = CSVSink(sink_id or Path(path).stem, path, delimiter=delimiter)
        return self.to_sink(sink)

    def to_ndjson(self, path: str | Path, sink_id: str | None = None) -> "JobBuilder":
        return self.to_sink(NDJSONSink(sink_id or Path(path).stem, path))

    def to_parquet(self, path: str | Path, sink_id: str | None = None) -> "JobBuilder":
        return self.to_sink(ParquetSink(sink_id or Path(path).stem, path))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def named(self, name: str) -> "JobBuilder":
        self._name = name
        return self

    def with_settings(self, settings: EngineSettings) -> "JobBuilder":
        self._base_settings = settings
        return self

    def with_workers(self, workers: int) -> "JobBuilder":
        self._settings["workers"] = workers
        return self

    def with_batch_size(self, batch_size: int) -> "JobBuilder":
        self._settings["default_batch_size"] = batch_size
        return self

    def with_queue_capacity(
        self, source: int | None = None, sink: int | None = None
    ) -> "JobBuilder":
        if source is not None:
            self._settings["source_queue_capacity"] = source
        if sink is not None:
            self._settings["sink_queue_capacity"] = sink
        return self

    def with_max_failed_batches(self, limit: int | None) -> "JobBuilder":
        self._settings["max_failed_batches"] = limit
        return self

    def with_observer(self, observer: JobObserver) -> "JobBuilder":
        if self._observers is None:
            self._observers = []
        self._observers.append(observer)
        return self

    def build(self) -> JobDefinition:
        """
        Open the sources and assemble the job.

        Raises:
            ConfigurationError: No source or no sink was configured
            PipelineValidationError: Stages do not fit the source schemas
        """
        if not self._sources:
            raise ConfigurationError("No source configured. Call from_*() first")
        if not self._sinks:
            raise ConfigurationError("No sink configured. Call to_*() first")

        base = self._base_settings or EngineSettings()
        settings = EngineSettings.model_validate(
            {**base.model_dump(), **self._settings}
        )
        sources = [factory(settings) for factory in self._sources]
        definition = JobDefinition(
            Pipeline(self._stages, name=self._name or "pipeline"),
            sources,
            list(self._sinks),
            settings=settings,
            name=self._name,
            observers=self._observers,
        )
        definition.validate()
        return definition
