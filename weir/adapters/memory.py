"""In-memory source and sink, mostly for tests and the builder API."""

from collections.abc import Mapping, Sequence
from typing import Any

from weir.adapters.base import ChunkedSource, SinkAdapter
from weir.adapters.coercion import infer_value_schema
from weir.core.batch import Batch
from weir.core.record import Record
from weir.core.schema import Schema


class InMemorySource(ChunkedSource):
    """
    Serve a list of row mappings in fixed-size batches.

    Rows are validated when their batch is produced, so one bad row fails
    only its own batch.

    Example:
        source = InMemorySource("users", rows, batch_size=100)
    """

    def __init__(
        self,
        source_id: str,
        rows: Sequence[Mapping[str, Any]],
        schema: Schema | None = None,
        batch_size: int = 1000,
        max_batch_size: int | None = None,
    ):
        super().__init__(source_id, batch_size, max_batch_size)
        self._rows = rows
        self._position = 0
        if schema is None:
            columns: list[str] = []
            for row in rows[:100]:
                columns.extend(k for k in row if k not in columns)
            schema = infer_value_schema(columns, rows[:100])
        self._schema = schema

    @property
    def schema(self) -> Schema:
        return self._schema

    def _read_chunk(self, size: int) -> list[Mapping[str, Any]]:
        chunk = self._rows[self._position : self._position + size]
        self._position += len(chunk)
        return list(chunk)


class CollectingSink(SinkAdapter):
    """Keep every written batch in memory."""

    def __init__(self, sink_id: str = "memory"):
        super().__init__(sink_id)
        self.batches: list[Batch] = []

    def _write(self, batch: Batch) -> None:
        self.batches.append(batch)

    @property
    def records(self) -> list[Record]:
        return [record for batch in self.batches for record in batch]

    def rows(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self.records]

    def batches_for(self, source_id: str) -> list[Batch]:
        return [b for b in self.batches if b.source_id == source_id]
