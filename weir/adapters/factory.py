"""Build adapters from source and sink specifications."""

from weir.adapters.base import SinkAdapter, SourceAdapter
from weir.adapters.csv_adapter import CSVSink, CSVSource
from weir.adapters.json_adapter import NDJSONSink, NDJSONSource
from weir.adapters.parquet_adapter import ParquetSink, ParquetSource
from weir.core.exceptions import ConfigurationError
from weir.core.specifications import (
    DataFormat,
    EngineSettings,
    SinkSpec,
    SourceSpec,
    fields_to_schema,
)


def create_source(
    spec: SourceSpec, settings: EngineSettings | None = None
) -> SourceAdapter:
    """
    Open the source described by ``spec``.

    Raises:
        ConfigurationError: Unknown format
        FileNotFoundError: The source file does not exist
    """
    settings = settings or EngineSettings()
    schema = fields_to_schema(spec.fields) if spec.fields else None
    batch_size = spec.batch_size or settings.default_batch_size
    try:
        data_format = spec.resolved_format
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    if data_format is DataFormat.CSV:
        return CSVSource(
            spec.id,
            spec.path,
            schema=schema,
            batch_size=batch_size,
            delimiter=spec.delimiter,
            encoding=spec.encoding,
            infer_rows=spec.infer_rows,
            max_batch_size=settings.max_batch_size,
        )
    if data_format is DataFormat.NDJSON:
        return NDJSONSource(
            spec.id,
            spec.path,
            schema=schema,
            batch_size=batch_size,
            encoding=spec.encoding,
            infer_rows=spec.infer_rows,
            max_batch_size=settings.max_batch_size,
        )
    return ParquetSource(
        spec.id,
        spec.path,
        schema=schema,
        batch_size=batch_size,
        max_batch_size=settings.max_batch_size,
    )


def create_sink(spec: SinkSpec) -> SinkAdapter:
    """Create the sink described by ``spec``."""
    try:
        data_format = spec.resolved_format
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    if data_format is DataFormat.CSV:
        return CSVSink(spec.id, spec.path, delimiter=spec.delimiter)
    if data_format is DataFormat.NDJSON:
        return NDJSONSink(spec.id, spec.path)
    return ParquetSink(spec.id, spec.path)
