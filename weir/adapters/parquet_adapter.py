"""
Parquet source and sink.

The source streams record batches with PyArrow; the sink accumulates
batches and writes one file through polars when closed, since Parquet
cannot be appended to.
"""

from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.parquet as pq

from weir.adapters.base import ChunkedSource, SinkAdapter
from weir.adapters.dataframe import batches_to_polars
from weir.core.batch import Batch
from weir.core.exceptions import AdapterError
from weir.core.schema import Field, FieldType, Schema


def field_type_from_arrow(data_type: pa.DataType) -> FieldType | None:
    if pa.types.is_boolean(data_type):
        return FieldType.BOOLEAN
    if pa.types.is_integer(data_type):
        return FieldType.INTEGER
    if pa.types.is_floating(data_type):
        return FieldType.FLOAT
    if pa.types.is_string(data_type) or pa.types.is_large_string(data_type):
        return FieldType.TEXT
    if pa.types.is_timestamp(data_type):
        return FieldType.TIMESTAMP
    if pa.types.is_binary(data_type) or pa.types.is_large_binary(data_type):
        return FieldType.BINARY
    if pa.types.is_null(data_type):
        return FieldType.NULL
    return None


def schema_from_arrow(arrow_schema: pa.Schema) -> Schema:
    fields = []
    for arrow_field in arrow_schema:
        field_type = field_type_from_arrow(arrow_field.type)
        if field_type is None:
            raise AdapterError(
                f"Unsupported Parquet type for '{arrow_field.name}': {arrow_field.type}"
            )
        fields.append(Field(arrow_field.name, field_type, arrow_field.nullable))
    return Schema(fields)


class ParquetSource(ChunkedSource):
    """
    Stream a Parquet file in batches of ``batch_size`` rows.

    With a declared schema, only its columns are read.
    """

    def __init__(
        self,
        source_id: str,
        path: str | Path,
        schema: Schema | None = None,
        batch_size: int = 1000,
        max_batch_size: int | None = None,
    ):
        super().__init__(source_id, batch_size, max_batch_size)
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Source file not found: {self.path}")
        self._file = pq.ParquetFile(self.path)
        self._schema = schema or schema_from_arrow(self._file.schema_arrow)
        self._batches = self._file.iter_batches(
            batch_size=batch_size, columns=list(self._schema.names)
        )

    @property
    def schema(self) -> Schema:
        return self._schema

    def _read_chunk(self, size: int) -> list[dict[str, Any]]:
        record_batch = next(self._batches, None)
        if record_batch is None:
            return []
        return record_batch.to_pylist()

    def close(self) -> None:
        self._file.close()


class ParquetSink(SinkAdapter):
    """Write all received batches to one Parquet file on close."""

    def __init__(self, sink_id: str, path: str | Path, **write_options: Any):
        super().__init__(sink_id)
        self.path = Path(path)
        self.write_options = write_options
        self._batches: list[Batch] = []
        self._schema: Schema | None = None

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
        if self._schema is None:
            return {"path": str(self.path), "format": "parquet"}
        frame = batches_to_polars(self._batches, self._schema)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        frame.write_parquet(self.path, **self.write_options)
        self._batches.clear()
        return {"path": str(self.path), "format": "parquet"}
