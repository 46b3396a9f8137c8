"""
DataFrame source and sink.

Bridges pandas and polars frames into the engine. pandas frames are
converted to polars once (NaN becomes null), then served in row slices.
"""

from typing import Any

import pandas as pd
import polars as pl

from weir.adapters.base import ChunkedSource, SinkAdapter
from weir.core.batch import Batch
from weir.core.exceptions import AdapterError
from weir.core.schema import Field, FieldType, Schema

_POLARS_TO_FIELD = {
    pl.Int8: FieldType.INTEGER,
    pl.Int16: FieldType.INTEGER,
    pl.Int32: FieldType.INTEGER,
    pl.Int64: FieldType.INTEGER,
    pl.UInt8: FieldType.INTEGER,
    pl.UInt16: FieldType.INTEGER,
    pl.UInt32: FieldType.INTEGER,
    pl.UInt64: FieldType.INTEGER,
    pl.Float32: FieldType.FLOAT,
    pl.Float64: FieldType.FLOAT,
    pl.Boolean: FieldType.BOOLEAN,
    pl.Utf8: FieldType.TEXT,
    pl.String: FieldType.TEXT,
    pl.Datetime: FieldType.TIMESTAMP,
    pl.Binary: FieldType.BINARY,
    pl.Null: FieldType.NULL,
}

_FIELD_TO_POLARS = {
    FieldType.INTEGER: pl.Int64,
    FieldType.FLOAT: pl.Float64,
    FieldType.BOOLEAN: pl.Boolean,
    FieldType.TEXT: pl.Utf8,
    FieldType.TIMESTAMP: pl.Datetime("us"),
    FieldType.BINARY: pl.Binary,
    FieldType.NULL: pl.Null,
}


def schema_from_polars(frame_schema: Any) -> Schema:
    """Map a polars schema to a nullable engine schema."""
    fields = []
    for name, dtype in frame_schema.items():
        field_type = _POLARS_TO_FIELD.get(dtype.base_type())
        if field_type is None:
            raise AdapterError(f"Unsupported column type for '{name}': {dtype}")
        fields.append(Field(name, field_type))
    return Schema(fields)


def polars_schema(schema: Schema) -> dict[str, Any]:
    return {field.name: _FIELD_TO_POLARS[field.type] for field in schema}


def batches_to_polars(batches: list[Batch], schema: Schema) -> pl.DataFrame:
    """Collect batches into one polars frame with the schema's dtypes."""
    columns: dict[str, list[Any]] = {name: [] for name in schema.names}
    for batch in batches:
        for record in batch:
            for name in schema.names:
                columns[name].append(record[name])
    return pl.DataFrame(columns, schema=polars_schema(schema))


class DataFrameSource(ChunkedSource):
    """
    Serve a pandas or polars DataFrame in batches.

    Example:
        source = DataFrameSource("sales", pd.read_csv("sales.csv"))
    """

    def __init__(
        self,
        source_id: str,
        frame: pd.DataFrame | pl.DataFrame,
        schema: Schema | None = None,
        batch_size: int = 1000,
        max_batch_size: int | None = None,
    ):
        super().__init__(source_id, batch_size, max_batch_size)
        if isinstance(frame, pd.DataFrame):
            frame = pl.from_pandas(frame)
        self._frame = frame
        self._offset = 0
        self._schema = schema or schema_from_polars(frame.schema)

    @property
    def schema(self) -> Schema:
        return self._schema

    def _read_chunk(self, size: int) -> list[dict[str, Any]]:
        chunk = self._frame.slice(self._offset, size)
        self._offset += len(chunk)
        return chunk.to_dicts()


class DataFrameSink(SinkAdapter):
    """
    Collect results into a DataFrame, built when the sink is closed.

    Example:
        sink = DataFrameSink("out")
        ...
        sink.to_pandas()
    """

    def __init__(self, sink_id: str = "dataframe"):
        super().__init__(sink_id)
        self._batches: list[Batch] = []
        self._schema: Schema | None = None
        self.frame: pl.DataFrame | None = None

    def _write(self, batch: Batch) -> None:
        if self._schema is None:
            self._schema = batch.schema
        elif not batch.schema.is_compatible(self._schema):
            raise AdapterError(
                f"Sink {self.sink_id} expects {self._schema!r}, got {batch.schema!r}",
                adapter_id=self.sink_id,
            )
        self._batches.append(batch)

    def _finalize(self) -> dict[str, Any]:
        if self._schema is not None:
            self.frame = batches_to_polars(self._batches, self._schema)
            self._batches.clear()
        else:
            self.frame = pl.DataFrame()
        return {"rows": len(self.frame), "columns": self.frame.columns}

    def to_polars(self) -> pl.DataFrame:
        if self.frame is None:
            raise AdapterError(f"Sink {self.sink_id} has not been closed yet")
        return self.frame

    def to_pandas(self) -> pd.DataFrame:
        return self.to_polars().to_pandas()
