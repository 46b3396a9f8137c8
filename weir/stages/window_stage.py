"""
Order-dependent stages: row-wise window functions and limits.

Both keep per-source state and rely on batches of a source arriving in
sequence order, one at a time.
"""

import threading
from collections import deque
from collections.abc import Iterable
from typing import Any

from weir.core.batch import Batch
from weir.core.exceptions import SchemaViolation
from weir.core.record import Record
from weir.core.schema import Field, FieldType, Schema
from weir.stages.pipeline_stage import Stage

WINDOW_FUNCTIONS = ("row_number", "lag", "running_sum")


class _Partition:
    __slots__ = ("rows", "previous", "total")

    def __init__(self, offset: int):
        self.rows = 0
        self.previous: deque = deque(maxlen=offset)
        self.total = 0

    def copy(self, offset: int) -> "_Partition":
        clone = _Partition(offset)
        clone.rows = self.rows
        clone.previous.extend(self.previous)
        clone.total = self.total
        return clone


class WindowStage(Stage):
    """
    Append a window-function column computed over the stream.

    Functions:
        row_number: 1-based position of the record within its partition
        lag: value of ``column`` ``offset`` records earlier in the partition
        running_sum: cumulative sum of ``column`` within the partition

    Example:
        WindowStage("row_number", output="n", partition_by=["user"])
    """

    stateful = True

    def __init__(
        self,
        function: str,
        output: str,
        column: str | None = None,
        partition_by: Iterable[str] = (),
        offset: int = 1,
        default: Any = None,
        name: str | None = None,
    ):
        super().__init__(name=name or f"window[{function}]")
        if function not in WINDOW_FUNCTIONS:
            raise ValueError(
                f"Unknown window function '{function}'. "
                f"Expected one of: {', '.join(WINDOW_FUNCTIONS)}"
            )
        if function != "row_number" and column is None:
            raise ValueError(f"Window function '{function}' needs a column")
        if offset < 1:
            raise ValueError("offset must be at least 1")
        self.function = function
        self.output = output
        self.column = column
        self.partition_by = list(partition_by)
        self.offset = offset
        self.default = default
        self._lock = threading.Lock()
        self._partitions: dict[str, dict[tuple, _Partition]] = {}

    def output_schema(self, input_schema: Schema) -> Schema:
        for name in self.partition_by:
            input_schema.field(name)
        if self.output in input_schema:
            raise SchemaViolation(f"Output column '{self.output}' already exists")
        if self.function == "row_number":
            field = Field(self.output, FieldType.INTEGER, nullable=False)
        else:
            source = input_schema.field(self.column)
            if self.function == "running_sum" and source.type not in (
                FieldType.INTEGER,
                FieldType.FLOAT,
            ):
                raise SchemaViolation(
                    f"running_sum needs a numeric column, '{self.column}' is "
                    f"{source.type.value}"
                )
            field = Field(self.output, source.type, nullable=self.function == "lag")
        return input_schema.with_field(field)

    def transform(self, batch: Batch) -> Batch:
        schema = self.output_schema(batch.schema)
        with self._lock:
            committed = self._partitions.get(batch.source_id, {})
        # Work on copies and commit only once the whole batch succeeded
        touched: dict[tuple, _Partition] = {}
        output_type = schema.field(self.output).type
        records = []
        for record in batch:
            key = tuple(record[name] for name in self.partition_by)
            partition = touched.get(key)
            if partition is None:
                base = committed.get(key)
                partition = base.copy(self.offset) if base else _Partition(self.offset)
                touched[key] = partition
            value = self._next(partition, record, output_type)
            records.append(record.replace(schema, **{self.output: value}))
        with self._lock:
            self._partitions.setdefault(batch.source_id, {}).update(touched)
        return batch.derive(records, schema)

    def _next(
        self, partition: _Partition, record: Record, output_type: FieldType
    ) -> Any:
        partition.rows += 1
        if self.function == "row_number":
            return partition.rows
        value = record[self.column]
        if self.function == "running_sum":
            if value is not None:
                partition.total += value
            if output_type is FieldType.FLOAT:
                return float(partition.total)
            return partition.total
        result = (
            partition.previous[0]
            if len(partition.previous) == self.offset
            else self.default
        )
        partition.previous.append(value)
        return result

    def finish(
        self, source_id: str, input_schema: Schema, sequence: int
    ) -> Batch | None:
        with self._lock:
            self._partitions.pop(source_id, None)
        return None

    def reset(self) -> None:
        with self._lock:
            self._partitions.clear()


class LimitStage(Stage):
    """Pass through the first ``limit`` records of each source."""

    stateful = True

    def __init__(self, limit: int, name: str = "limit"):
        super().__init__(name=name)
        if limit < 0:
            raise ValueError("limit must be non-negative")
        self.limit = limit
        self._lock = threading.Lock()
        self._seen: dict[str, int] = {}

    def transform(self, batch: Batch) -> Batch | None:
        with self._lock:
            seen = self._seen.get(batch.source_id, 0)
            remaining = max(self.limit - seen, 0)
            self._seen[batch.source_id] = seen + min(remaining, len(batch))
        if remaining == 0:
            return None
        if remaining >= len(batch):
            return batch
        return batch.derive(batch.records[:remaining])

    def finish(
        self, source_id: str, input_schema: Schema, sequence: int
    ) -> Batch | None:
        with self._lock:
            self._seen.pop(source_id, None)
        return None

    def reset(self) -> None:
        with self._lock:
            self._seen.clear()
