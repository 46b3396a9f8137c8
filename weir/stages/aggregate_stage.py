"""
Group-by aggregation.

Keeps running aggregates per source and per group key. In ``running``
mode each batch emits the updated totals of the groups it touched; in
``final`` mode nothing is emitted until the source is exhausted, then one
batch with every group is flushed.
"""

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from weir.core.batch import Batch
from weir.core.exceptions import SchemaViolation
from weir.core.record import Record
from weir.core.schema import Field, FieldType, Schema
from weir.stages.pipeline_stage import Stage

NUMERIC_TYPES = (FieldType.INTEGER, FieldType.FLOAT)
ORDERED_TYPES = (
    FieldType.INTEGER,
    FieldType.FLOAT,
    FieldType.TEXT,
    FieldType.TIMESTAMP,
)


@dataclass(frozen=True)
class Aggregation:
    """
    One aggregate column.

    Attributes:
        function: count, sum, avg, min or max
        column: Input column (``None`` for ``count`` counts rows)
        output: Output column name, defaults to ``<function>_<column>``
    """

    function: str
    column: str | None = None
    output: str | None = None

    def __post_init__(self):
        if self.function not in ("count", "sum", "avg", "min", "max"):
            raise ValueError(f"Unknown aggregate function: {self.function}")
        if self.column is None and self.function != "count":
            raise ValueError(f"Aggregate '{self.function}' needs a column")
        if self.output is None:
            default = self.function
            if self.column is not None:
                default = f"{self.function}_{self.column}"
            object.__setattr__(self, "output", default)

    @classmethod
    def coerce(cls, value: "Aggregation | Mapping[str, Any] | tuple") -> "Aggregation":
        if isinstance(value, Aggregation):
            return value
        if isinstance(value, Mapping):
            return cls(**value)
        return cls(*value)

    def output_field(self, input_schema: Schema) -> Field:
        if self.column is None:
            return Field(self.output, FieldType.INTEGER, nullable=False)
        source = input_schema.field(self.column)
        if self.function == "count":
            return Field(self.output, FieldType.INTEGER, nullable=False)
        if self.function in ("sum", "avg") and source.type not in NUMERIC_TYPES:
            raise SchemaViolation(
                f"'{self.function}' needs a numeric column, "
                f"'{self.column}' is {source.type.value}"
            )
        if self.function == "sum":
            return Field(self.output, source.type, nullable=False)
        if self.function == "avg":
            return Field(self.output, FieldType.FLOAT)
        if source.type not in ORDERED_TYPES:
            raise SchemaViolation(
                f"'{self.function}' cannot order {source.type.value} values"
            )
        return Field(self.output, source.type)


class _Accumulator:
    """Running count/sum/min/max of one column within one group."""

    __slots__ = ("rows", "count", "total", "minimum", "maximum")

    def __init__(self):
        self.rows = 0
        self.count = 0
        self.total = 0
        self.minimum = None
        self.maximum = None

    def add(self, value: Any) -> None:
        self.rows += 1
        if value is None:
            return
        self.count += 1
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            self.total += value
        if self.minimum is None or value < self.minimum:
            self.minimum = value
        if self.maximum is None or value > self.maximum:
            self.maximum = value

    def merge(self, other: "_Accumulator") -> None:
        self.rows += other.rows
        self.count += other.count
        self.total += other.total
        if other.minimum is not None and (
            self.minimum is None or other.minimum < self.minimum
        ):
            self.minimum = other.minimum
        if other.maximum is not None and (
            self.maximum is None or other.maximum > self.maximum
        ):
            self.maximum = other.maximum

    def result(self, aggregation: Aggregation, field: Field) -> Any:
        function = aggregation.function
        if function == "count":
            return self.rows if aggregation.column is None else self.count
        if function == "sum":
            return float(self.total) if field.type is FieldType.FLOAT else self.total
        if function == "avg":
            return self.total / self.count if self.count else None
        if function == "min":
            return self.minimum
        return self.maximum


class AggregateStage(Stage):
    """
    Running group-by aggregation.

    Example:
        AggregateStage(
            group_by=["region"],
            aggregations=[("sum", "amount", "total"), ("count",)],
            emit="final",
        )
    """

    stateful = True

    def __init__(
        self,
        group_by: Iterable[str],
        aggregations: Iterable[Aggregation | Mapping[str, Any] | tuple],
        emit: str = "running",
        name: str = "aggregate",
    ):
        super().__init__(name=name)
        if emit not in ("running", "final"):
            raise ValueError("emit must be 'running' or 'final'")
        self.group_by = list(group_by)
        self.aggregations = [Aggregation.coerce(a) for a in aggregations]
        if not self.aggregations:
            raise ValueError("AggregateStage needs at least one aggregation")
        self.emit = emit
        self._lock = threading.Lock()
        self._groups: dict[str, dict[tuple, list[_Accumulator]]] = {}

    def output_schema(self, input_schema: Schema) -> Schema:
        fields = [input_schema.field(name) for name in self.group_by]
        fields.extend(a.output_field(input_schema) for a in self.aggregations)
        return Schema(fields)

    def transform(self, batch: Batch) -> Batch | None:
        schema = self.output_schema(batch.schema)

        # Fold the batch on its own first so a failure leaves state untouched
        partial: dict[tuple, list[_Accumulator]] = {}
        for record in batch:
            key = tuple(record[name] for name in self.group_by)
            accumulators = partial.get(key)
            if accumulators is None:
                accumulators = [_Accumulator() for _ in self.aggregations]
                partial[key] = accumulators
            for accumulator, aggregation in zip(accumulators, self.aggregations):
                value = record[aggregation.column] if aggregation.column else None
                accumulator.add(value)

        with self._lock:
            groups = self._groups.setdefault(batch.source_id, {})
            for key, accumulators in partial.items():
                existing = groups.get(key)
                if existing is None:
                    groups[key] = accumulators
                else:
                    for current, update in zip(existing, accumulators):
                        current.merge(update)
            if self.emit == "final":
                return None
            records = [self._record(schema, key, groups[key]) for key in partial]

        return batch.derive(records, schema)

    def finish(
        self, source_id: str, input_schema: Schema, sequence: int
    ) -> Batch | None:
        with self._lock:
            groups = self._groups.pop(source_id, {})
        if self.emit != "final" or not groups:
            return None
        schema = self.output_schema(input_schema)
        self.logger.debug(f"Flushing {len(groups)} groups for source {source_id}")
        return Batch(
            schema,
            tuple(self._record(schema, key, acc) for key, acc in groups.items()),
            sequence,
            source_id,
        )

    def _record(
        self, schema: Schema, key: tuple, accumulators: list[_Accumulator]
    ) -> Record:
        values = dict(zip(self.group_by, key))
        for accumulator, aggregation in zip(accumulators, self.aggregations):
            field = schema.field(aggregation.output)
            values[aggregation.output] = accumulator.result(aggregation, field)
        return Record(schema, values)

    def reset(self) -> None:
        with self._lock:
            self._groups.clear()
