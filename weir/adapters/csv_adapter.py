"""
Delimited-text source and sink.

Streams rows with the built-in csv module, so memory use is bounded by the
batch size regardless of file size. Cells are text; they are parsed into
the schema's types on read and rendered back on write (timestamps as
ISO-8601, binary as base64, empty cell as null).
"""

import csv
from collections import deque
from itertools import islice
from pathlib import Path
from typing import Any

from weir.adapters.base import ChunkedSource, SinkAdapter
from weir.adapters.coercion import format_text, infer_text_schema, parse_text
from weir.core.batch import Batch
from weir.core.exceptions import AdapterError, SchemaViolation
from weir.core.schema import Schema


class CSVSource(ChunkedSource):
    """
    Read a delimited file in batches.

    Only schema columns are read; extra columns in the file are ignored
    and missing ones read as null. Without a declared schema, column
    types are inferred from the first ``infer_rows`` rows.

    Example:
        source = CSVSource("orders", "orders.csv", batch_size=500)
    """

    def __init__(
        self,
        source_id: str,
        path: str | Path,
        schema: Schema | None = None,
        batch_size: int = 1000,
        delimiter: str = ",",
        encoding: str = "utf-8",
        infer_rows: int = 100,
        max_batch_size: int | None = None,
    ):
        super().__init__(source_id, batch_size, max_batch_size)
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Source file not found: {self.path}")
        self.delimiter = delimiter
        self.encoding = encoding

        self._file = open(self.path, newline="", encoding=encoding)
        self._reader = csv.DictReader(self._file, delimiter=delimiter)
        self._buffer: deque[dict[str, str]] = deque()
        if schema is None:
            sample = list(islice(self._reader, infer_rows))
            self._buffer.extend(sample)
            schema = infer_text_schema(self._reader.fieldnames or [], sample)
            self.logger.debug(f"Inferred schema for {source_id}: {schema!r}")
        self._schema = schema

    @property
    def schema(self) -> Schema:
        return self._schema

    def _read_chunk(self, size: int) -> list[dict[str, str]]:
        chunk = []
        while self._buffer and len(chunk) < size:
            chunk.append(self._buffer.popleft())
        if len(chunk) < size:
            try:
                chunk.extend(islice(self._reader, size - len(chunk)))
            except csv.Error as e:
                raise AdapterError(
                    f"Malformed CSV in {self.path}: {e}", adapter_id=self.source_id
                ) from e
        return chunk

    def _decode(self, raw: dict[str, str]) -> dict[str, Any]:
        row = {}
        for field in self._schema:
            try:
                row[field.name] = parse_text(raw.get(field.name), field.type)
            except SchemaViolation as e:
                raise SchemaViolation(f"Column '{field.name}': {e.message}") from e
        return row

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()


class CSVSink(SinkAdapter):
    """
    Append batches to a delimited file.

    The header is taken from the first batch; every later batch must have
    a compatible schema.
    """

    def __init__(
        self,
        sink_id: str,
        path: str | Path,
        delimiter: str = ",",
        encoding: str = "utf-8",
    ):
        super().__init__(sink_id)
        self.path = Path(path)
        self.delimiter = delimiter
        self.encoding = encoding
        self._file = None
        self._writer = None
        self._schema: Schema | None = None

    def _write(self, batch: Batch) -> None:
        if self._writer is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "w", newline="", encoding=self.encoding)
            self._writer = csv.writer(self._file, delimiter=self.delimiter)
            self._schema = batch.schema
            self._writer.writerow(batch.schema.names)
        elif not batch.schema.is_compatible(self._schema):
            raise AdapterError(
                f"Sink {self.sink_id} expects {self._schema!r}, got {batch.schema!r}",
                adapter_id=self.sink_id,
            )
        self._writer.writerows(
            [format_text(value) for value in record.values()] for record in batch
        )
        self._file.flush()

    def _finalize(self) -> dict[str, Any]:
        if self._file is not None:
            self._file.close()
        return {"path": str(self.path), "format": "csv"}
