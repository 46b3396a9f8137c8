"""
Stateless record-level stages.

Each of these is a pure function of its input batch, so the scheduler is
free to run batches of the same source through them concurrently.
"""

import operator
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from weir.adapters.coercion import convert
from weir.core.batch import Batch
from weir.core.exceptions import StageRejected
from weir.core.record import Record
from weir.core.schema import Field, FieldType, Schema
from weir.stages.pipeline_stage import Stage

RecordFn = Callable[[Record], Record | Mapping[str, Any]]
Predicate = Callable[[Record], bool]


def _bind(record: Record | Mapping[str, Any], schema: Schema) -> Record:
    if isinstance(record, Record) and record.schema.is_compatible(schema):
        return record
    return Record(schema, dict(record))


class MapStage(Stage):
    """
    Apply a function to every record.

    The function returns a Record or a plain mapping; results are validated
    against ``output_schema`` (the input schema when omitted).

    Example:
        MapStage(lambda r: {**r, "amount": r["amount"] * 2})
    """

    def __init__(
        self,
        fn: RecordFn,
        output_schema: Schema | None = None,
        name: str = "map",
    ):
        super().__init__(name=name)
        self.fn = fn
        self._output_schema = output_schema

    def output_schema(self, input_schema: Schema) -> Schema:
        return self._output_schema or input_schema

    def transform(self, batch: Batch) -> Batch:
        schema = self.output_schema(batch.schema)
        return batch.derive((_bind(self.fn(r), schema) for r in batch), schema)


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(value: Any, expected: Any) -> bool:
        if value is None or expected is None:
            return False
        return op(value, expected)

    return check


def _contains(value: Any, expected: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, (str, bytes)):
        raise StageRejected(
            f"'contains' needs text or binary, got {type(value).__name__}"
        )
    return expected in value


PREDICATE_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "eq": lambda value, expected: value == expected,
    "ne": lambda value, expected: value != expected,
    "gt": _compare(operator.gt),
    "ge": _compare(operator.ge),
    "lt": _compare(operator.lt),
    "le": _compare(operator.le),
    "is_null": lambda value, _: value is None,
    "not_null": lambda value, _: value is not None,
    "contains": _contains,
}


class FilterStage(Stage):
    """
    Keep records for which a predicate holds.

    A batch whose records are all rejected is reported as filtered.

    Example:
        FilterStage(lambda r: r.get_bool("active"))
        FilterStage.where("amount", "gt", 100)
    """

    def __init__(
        self,
        predicate: Predicate,
        name: str = "filter",
        columns: Iterable[str] = (),
    ):
        super().__init__(name=name)
        self.predicate = predicate
        self.columns = tuple(columns)

    @classmethod
    def where(
        cls, column: str, op: str, value: Any = None, name: str | None = None
    ) -> "FilterStage":
        """Filter on a single ``column <op> value`` comparison."""
        if op not in PREDICATE_OPERATORS:
            raise ValueError(
                f"Unknown filter operator '{op}'. "
                f"Expected one of: {', '.join(PREDICATE_OPERATORS)}"
            )
        check = PREDICATE_OPERATORS[op]
        return cls(
            lambda record: check(record[column], value),
            name=name or f"filter[{column} {op}]",
            columns=[column],
        )

    def output_schema(self, input_schema: Schema) -> Schema:
        for column in self.columns:
            input_schema.field(column)
        return input_schema

    def transform(self, batch: Batch) -> Batch:
        kept = []
        for record in batch:
            keep = self.predicate(record)
            # A null predicate result drops the record
            if keep is None:
                continue
            if not isinstance(keep, bool):
                raise StageRejected(
                    f"Predicate returned {type(keep).__name__}, expected bool"
                )
            if keep:
                kept.append(record)
        if len(kept) == len(batch):
            return batch
        return batch.derive(kept)


class ProjectStage(Stage):
    """
    Select, drop and rename columns.

    Applied in that order: ``select`` narrows (and reorders) the columns,
    ``drop`` removes columns, ``rename`` maps old names to new ones.
    """

    def __init__(
        self,
        select: Iterable[str] | None = None,
        drop: Iterable[str] | None = None,
        rename: Mapping[str, str] | None = None,
        name: str = "project",
    ):
        super().__init__(name=name)
        self.select = list(select) if select is not None else None
        self.drop = list(drop or [])
        self.rename = dict(rename or {})
        if self.select is None and not self.drop and not self.rename:
            raise ValueError("ProjectStage needs at least one of select, drop, rename")

    def output_schema(self, input_schema: Schema) -> Schema:
        schema = input_schema
        if self.select is not None:
            schema = schema.select(self.select)
        if self.drop:
            schema = schema.drop(self.drop)
        if self.rename:
            # Schema() rejects the collision if two columns end up with one name
            schema = schema.rename(self.rename)
        return schema

    def transform(self, batch: Batch) -> Batch:
        schema = self.output_schema(batch.schema)
        original = {new: old for old, new in self.rename.items()}
        sources = [original.get(n, n) for n in schema.names]
        return batch.derive(
            (
                Record(schema, dict(zip(schema.names, (r[s] for s in sources))))
                for r in batch
            ),
            schema,
        )


class CastStage(Stage):
    """Convert one column to another field type."""

    def __init__(self, column: str, to: FieldType | str, name: str | None = None):
        super().__init__(name=name or f"cast[{column}]")
        self.column = column
        self.to = FieldType(to)

    def output_schema(self, input_schema: Schema) -> Schema:
        field = input_schema.field(self.column)
        return input_schema.with_field(Field(field.name, self.to, field.nullable))

    def transform(self, batch: Batch) -> Batch:
        schema = self.output_schema(batch.schema)
        return batch.derive(
            (
                r.replace(schema, **{self.column: convert(r[self.column], self.to)})
                for r in batch
            ),
            schema,
        )


class FunctionStage(Stage):
    """
    Wrap an arbitrary batch function.

    The function receives the input batch and returns a Batch, an iterable
    of records/mappings, or None. Set ``stateful=True`` if it keeps state
    across calls so the scheduler serializes batches per source.
    """

    def __init__(
        self,
        fn: Callable[[Batch], Batch | Iterable[Record | Mapping[str, Any]] | None],
        output_schema: Schema | None = None,
        stateful: bool = False,
        name: str = "function",
    ):
        super().__init__(name=name)
        self.fn = fn
        self.stateful = stateful
        self._output_schema = output_schema

    def output_schema(self, input_schema: Schema) -> Schema:
        return self._output_schema or input_schema

    def transform(self, batch: Batch) -> Batch | None:
        result = self.fn(batch)
        if result is None or isinstance(result, Batch):
            return result
        schema = self.output_schema(batch.schema)
        return batch.derive((_bind(r, schema) for r in result), schema)
