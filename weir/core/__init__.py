"""Core data model, configuration and error types."""

from weir.core.batch import Batch
from weir.core.exceptions import (
    AdapterError,
    BatchError,
    BatchTooLarge,
    ConfigurationError,
    JobNotFoundError,
    JobStateError,
    PipelineValidationError,
    SchemaViolation,
    StageRejected,
    TransientAdapterError,
    TypeMismatch,
    WeirError,
)
from weir.core.models import ErrorInfo, JobState, JobStatus
from weir.core.record import Record
from weir.core.schema import Field, FieldType, Schema
from weir.core.specifications import (
    DataFormat,
    EngineSettings,
    FieldSpec,
    JobSpec,
    LoggingSettings,
    RetrySettings,
    ServiceSettings,
    SinkSpec,
    SourceSpec,
    StageSpec,
    StageType,
)

__all__ = [
    # Data model
    "FieldType",
    "Field",
    "Schema",
    "Record",
    "Batch",
    # Specifications
    "DataFormat",
    "FieldSpec",
    "SourceSpec",
    "SinkSpec",
    "StageSpec",
    "StageType",
    "RetrySettings",
    "EngineSettings",
    "JobSpec",
    "LoggingSettings",
    "ServiceSettings",
    # Models
    "JobState",
    "JobStatus",
    "ErrorInfo",
    # Exceptions
    "WeirError",
    "BatchError",
    "SchemaViolation",
    "BatchTooLarge",
    "TypeMismatch",
    "StageRejected",
    "AdapterError",
    "TransientAdapterError",
    "PipelineValidationError",
    "JobStateError",
    "JobNotFoundError",
    "ConfigurationError",
]
