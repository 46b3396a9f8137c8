"""
Newline-delimited JSON source and sink.

One JSON object per line. Timestamps are ISO-8601 strings and binary
values base64 strings on the wire.
"""

import json
from collections import deque
from pathlib import Path
from typing import Any

from weir.adapters.base import ChunkedSource, SinkAdapter
from weir.adapters.coercion import from_json_value, infer_value_schema, to_json_value
from weir.core.batch import Batch
from weir.core.exceptions import SchemaViolation
from weir.core.schema import Schema


def _parse_line(line: str) -> dict[str, Any]:
    try:
        value = json.loads(line)
    except json.JSONDecodeError as e:
        raise SchemaViolation(f"Invalid JSON: {e}") from e
    if not isinstance(value, dict):
        raise SchemaViolation(f"Expected a JSON object, got {type(value).__name__}")
    return value


class NDJSONSource(ChunkedSource):
    """
    Read an NDJSON file in batches.

    Blank lines are skipped. Without a declared schema, types are inferred
    from the first ``infer_rows`` objects (ISO strings stay text).
    """

    def __init__(
        self,
        source_id: str,
        path: str | Path,
        schema: Schema | None = None,
        batch_size: int = 1000,
        encoding: str = "utf-8",
        infer_rows: int = 100,
        max_batch_size: int | None = None,
    ):
        super().__init__(source_id, batch_size, max_batch_size)
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Source file not found: {self.path}")
        self._file = open(self.path, encoding=encoding)
        self._buffer: deque[str] = deque()
        if schema is None:
            sample = self._read_chunk(infer_rows)
            self._buffer.extend(sample)
            objects = []
            for line in sample:
                try:
                    objects.append(_parse_line(line))
                except SchemaViolation:
                    continue
            columns: list[str] = []
            for obj in objects:
                columns.extend(k for k in obj if k not in columns)
            schema = infer_value_schema(columns, objects)
            self.logger.debug(f"Inferred schema for {source_id}: {schema!r}")
        self._schema = schema

    @property
    def schema(self) -> Schema:
        return self._schema

    def _read_chunk(self, size: int) -> list[str]:
        chunk = []
        while self._buffer and len(chunk) < size:
            chunk.append(self._buffer.popleft())
        while len(chunk) < size:
            line = self._file.readline()
            if not line:
                break
            if line.strip():
                chunk.append(line)
        return chunk

    def _decode(self, raw: str) -> dict[str, Any]:
        obj = _parse_line(raw)
        row = {}
        for key, value in obj.items():
            if key in self._schema:
                value = from_json_value(value, self._schema.field(key).type)
            row[key] = value
        return row

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()


class NDJSONSink(SinkAdapter):
    """Append each record as one JSON line."""

    def __init__(self, sink_id: str, path: str | Path, encoding: str = "utf-8"):
        super().__init__(sink_id)
        self.path = Path(path)
        self.encoding = encoding
        self._file = None

    def _write(self, batch: Batch) -> None:
        if self._file is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "w", encoding=self.encoding)
        lines = [
            json.dumps({k: to_json_value(v) for k, v in record.items()})
            for record in batch
        ]
        self._file.write("\n".join(lines) + "\n")
        self._file.flush()

    def _finalize(self) -> dict[str, Any]:
        if self._file is not None:
            self._file.close()
        return {"path": str(self.path), "format": "ndjson"}
