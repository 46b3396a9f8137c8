"""
Declarative specifications.

Pydantic models for everything that can be written in a job or service
configuration file: sources, stages, sinks, engine tuning and the HTTP
service. ``weir.api.factory`` turns a ``JobSpec`` into live adapters and a
pipeline.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from weir.core.exceptions import ConfigurationError
from weir.core.schema import Field as SchemaField
from weir.core.schema import FieldType, Schema


class DataFormat(str, Enum):
    """File formats understood by the built-in adapters."""

    CSV = "csv"
    NDJSON = "ndjson"
    PARQUET = "parquet"

    @classmethod
    def from_path(cls, path: str | Path) -> "DataFormat":
        suffix = Path(path).suffix.lower().lstrip(".")
        aliases = {"tsv": "csv", "jsonl": "ndjson", "json": "ndjson", "pq": "parquet"}
        try:
            return cls(aliases.get(suffix, suffix))
        except ValueError:
            raise ValueError(f"Cannot infer data format from path: {path}") from None


class FieldSpec(BaseModel):
    """One column of a declared schema."""

    name: str = Field(..., min_length=1)
    type: FieldType
    nullable: bool = True

    def to_field(self) -> SchemaField:
        return SchemaField(self.name, self.type, self.nullable)


def fields_to_schema(fields: list[FieldSpec]) -> Schema:
    return Schema(f.to_field() for f in fields)


class SourceSpec(BaseModel):
    """
    Where records come from.

    When ``fields`` is omitted the schema is inferred from the data.
    """

    id: str = Field(..., min_length=1, description="Unique source identifier")
    path: Path
    format: DataFormat | None = Field(
        default=None, description="Defaults to the format implied by the path"
    )
    fields: list[FieldSpec] | None = Field(default=None, description="Declared schema")
    batch_size: int | None = Field(default=None, ge=1)
    delimiter: str = Field(default=",", min_length=1, max_length=1)
    encoding: str = "utf-8"
    infer_rows: int = Field(default=100, ge=1, description="Rows sampled for inference")

    @property
    def resolved_format(self) -> DataFormat:
        return self.format or DataFormat.from_path(self.path)


class SinkSpec(BaseModel):
    """Where results go."""

    id: str = Field(..., min_length=1, description="Unique sink identifier")
    path: Path
    format: DataFormat | None = None
    delimiter: str = Field(default=",", min_length=1, max_length=1)

    @property
    def resolved_format(self) -> DataFormat:
        return self.format or DataFormat.from_path(self.path)


class StageType(str, Enum):
    """Stage kinds that can be built from configuration."""

    FILTER = "filter"
    PROJECT = "project"
    CAST = "cast"
    AGGREGATE = "aggregate"
    WINDOW = "window"
    LIMIT = "limit"


class StageSpec(BaseModel):
    """
    A configured stage.

    ``params`` are passed to the stage constructor; see
    ``weir.stages.registry`` for what each type expects.
    """

    type: StageType
    name: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class RetrySettings(BaseModel):
    """Backoff for transient adapter errors."""

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=0.5, ge=0)
    max_delay: float = Field(default=10.0, ge=0)
    exponential_base: float = Field(default=2.0, ge=1)


class EngineSettings(BaseModel):
    """Scheduler and job tuning."""

    workers: int | None = Field(
        default=None, ge=1, description="Worker threads; defaults to CPU count"
    )
    source_queue_capacity: int = Field(default=4, ge=1)
    sink_queue_capacity: int = Field(default=4, ge=1)
    default_batch_size: int = Field(default=1000, ge=1)
    max_batch_size: int = Field(default=10_000, ge=1)
    max_errors_retained: int = Field(default=100, ge=0)
    max_failed_batches: int | None = Field(
        default=None, ge=0, description="Fail the job beyond this many failed batches"
    )
    retry: RetrySettings = Field(default_factory=RetrySettings)

    @model_validator(mode="after")
    def check_batch_sizes(self) -> "EngineSettings":
        if self.default_batch_size > self.max_batch_size:
            raise ValueError("default_batch_size must not exceed max_batch_size")
        return self

    @property
    def resolved_workers(self) -> int:
        return self.workers or os.cpu_count() or 1


class JobSpec(BaseModel):
    """A complete job: sources, stage chain, sinks and engine settings."""

    name: str | None = None
    sources: list[SourceSpec] = Field(..., min_length=1)
    stages: list[StageSpec] = Field(default_factory=list)
    sinks: list[SinkSpec] = Field(..., min_length=1)
    engine: EngineSettings = Field(default_factory=EngineSettings)

    @field_validator("sources", "sinks")
    @classmethod
    def validate_unique_ids(cls, v: list) -> list:
        ids = [item.id for item in v]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate ids: {', '.join(duplicates)}")
        return v

    def confined_to(self, root: Path) -> "JobSpec":
        """
        Return a copy whose source and sink paths all live under ``root``.

        Relative paths resolve against ``root``.

        Raises:
            ConfigurationError: A path resolves outside ``root``
        """
        root = Path(root).resolve()

        def confine(item):
            path = (root / item.path).resolve()
            if not path.is_relative_to(root):
                raise ConfigurationError(
                    f"Path for '{item.id}' is outside the data root: {item.path}"
                )
            return item.model_copy(update={"path": path})

        return self.model_copy(
            update={
                "sources": [confine(s) for s in self.sources],
                "sinks": [confine(s) for s in self.sinks],
            }
        )


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level


class ServiceSettings(BaseModel):
    """HTTP service configuration."""

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=list)
    data_root: Path | None = Field(
        default=None,
        description="Directory submitted jobs must read from and write to",
    )
    max_finished_jobs: int | None = Field(
        default=1000, ge=0, description="Finished jobs kept for status queries"
    )
    engine: EngineSettings = Field(default_factory=EngineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
