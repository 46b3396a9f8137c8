"""Source and sink adapters."""

from weir.adapters.base import (
    END_OF_STREAM,
    Ack,
    ChunkedSource,
    SinkAdapter,
    SourceAdapter,
)
from weir.adapters.csv_adapter import CSVSink, CSVSource
from weir.adapters.dataframe import DataFrameSink, DataFrameSource
from weir.adapters.factory import create_sink, create_source
from weir.adapters.json_adapter import NDJSONSink, NDJSONSource
from weir.adapters.memory import CollectingSink, InMemorySource
from weir.adapters.parquet_adapter import ParquetSink, ParquetSource

__all__ = [
    # Interfaces
    "SourceAdapter",
    "SinkAdapter",
    "ChunkedSource",
    "Ack",
    "END_OF_STREAM",
    # Implementations
    "InMemorySource",
    "CollectingSink",
    "CSVSource",
    "CSVSink",
    "NDJSONSource",
    "NDJSONSink",
    "ParquetSource",
    "ParquetSink",
    "DataFrameSource",
    "DataFrameSink",
    # Factory
    "create_source",
    "create_sink",
]
