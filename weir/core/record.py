"""Immutable, schema-bound records."""

from collections.abc import Iterator, Mapping
from datetime import datetime
from typing import Any

from weir.core.exceptions import SchemaViolation, TypeMismatch
from weir.core.schema import FieldType, Schema


class Record(Mapping):
    """
    A single row: an immutable mapping of field name to value.

    Values are validated against the schema at construction. A field absent
    from ``values`` is treated as null, so it is only allowed when the field
    is nullable. Transformations build new records with ``replace``.

    Example:
        schema = Schema.of(id="integer", name="text")
        record = Record(schema, {"id": 1, "name": "a"})
        record.get_int("id")  # 1
    """

    __slots__ = ("_schema", "_values")

    def __init__(self, schema: Schema, values: Mapping[str, Any] | None = None):
        values = values or {}
        for key in values:
            if key not in schema:
                raise SchemaViolation(f"Field '{key}' is not in the schema")

        stored = []
        for field in schema:
            value = values.get(field.name)
            field.check(value)
            stored.append(value)

        self._schema = schema
        self._values = tuple(stored)

    @property
    def schema(self) -> Schema:
        return self._schema

    def __getitem__(self, name: str) -> Any:
        return self._values[self._schema.position(name)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._schema.names)

    def __len__(self) -> int:
        return len(self._values)

    def _typed(self, name: str, expected: FieldType) -> Any:
        field = self._schema.field(name)
        if field.type is not expected:
            raise TypeMismatch(
                f"Field '{name}' is {field.type.value}, not {expected.value}"
            )
        return self[name]

    def get_int(self, name: str) -> int | None:
        return self._typed(name, FieldType.INTEGER)

    def get_float(self, name: str) -> float | None:
        return self._typed(name, FieldType.FLOAT)

    def get_bool(self, name: str) -> bool | None:
        return self._typed(name, FieldType.BOOLEAN)

    def get_text(self, name: str) -> str | None:
        return self._typed(name, FieldType.TEXT)

    def get_timestamp(self, name: str) -> datetime | None:
        return self._typed(name, FieldType.TIMESTAMP)

    def get_binary(self, name: str) -> bytes | None:
        return self._typed(name, FieldType.BINARY)

    def replace(self, schema: Schema | None = None, **changes: Any) -> "Record":
        """Return a new record with some values changed (and re-validated)."""
        target = schema or self._schema
        values = {k: v for k, v in self.to_dict().items() if k in target}
        values.update(changes)
        return Record(target, values)

    def to_dict(self) -> dict[str, Any]:
        return dict(zip(self._schema.names, self._values))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Record):
            return (
                self._schema.is_compatible(other._schema)
                and self._values == other._values
            )
        return super().__eq__(other)

    def __hash__(self) -> int:
        return hash((self._schema.names, self._values))

    def __repr__(self) -> str:
        return f"Record({self.to_dict()!r})"
