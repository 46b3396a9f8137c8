"""
Field types and schemas.

A Schema is an ordered, immutable list of named, typed fields. Records and
batches are always bound to one, and stages declare the schema they emit
for a given input schema.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from weir.core.exceptions import SchemaViolation


class FieldType(str, Enum):
    """Closed set of value types a field may carry."""

    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    TEXT = "text"
    TIMESTAMP = "timestamp"
    BINARY = "binary"
    NULL = "null"

    def accepts(self, value: Any) -> bool:
        """
        Check whether a non-null Python value belongs to this type.

        No coercion: an ``int`` is not a FLOAT and a ``bool`` is not an
        INTEGER.
        """
        if self is FieldType.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        if self is FieldType.FLOAT:
            return isinstance(value, float)
        if self is FieldType.BOOLEAN:
            return isinstance(value, bool)
        if self is FieldType.TEXT:
            return isinstance(value, str)
        if self is FieldType.TIMESTAMP:
            return isinstance(value, datetime)
        if self is FieldType.BINARY:
            return isinstance(value, bytes)
        return False

    @classmethod
    def of_value(cls, value: Any) -> "FieldType":
        """Infer the field type of a Python value."""
        if value is None:
            return cls.NULL
        for field_type in (
            cls.BOOLEAN,
            cls.INTEGER,
            cls.FLOAT,
            cls.TEXT,
            cls.TIMESTAMP,
            cls.BINARY,
        ):
            if field_type.accepts(value):
                return field_type
        raise SchemaViolation(f"Unsupported value type: {type(value).__name__}")


@dataclass(frozen=True)
class Field:
    """A named, typed column."""

    name: str
    type: FieldType
    nullable: bool = True

    def check(self, value: Any) -> None:
        """Raise SchemaViolation if ``value`` is not valid for this field."""
        if value is None:
            if not self.nullable:
                raise SchemaViolation(f"Field '{self.name}' is not nullable")
            return
        if not self.type.accepts(value):
            raise SchemaViolation(
                f"Field '{self.name}' expects {self.type.value}, "
                f"got {type(value).__name__}"
            )


class Schema:
    """
    Ordered, immutable collection of fields.

    Two schemas are compatible when their (name, type) sequences match;
    nullability is a per-record constraint and does not affect
    compatibility.

    Example:
        schema = Schema.of(id=FieldType.INTEGER, name=FieldType.TEXT)
        schema.names  # ("id", "name")
    """

    __slots__ = ("_fields", "_index")

    def __init__(self, fields: Iterable[Field]):
        fields = tuple(fields)
        index: dict[str, int] = {}
        for position, field in enumerate(fields):
            if field.name in index:
                raise SchemaViolation(f"Duplicate field name: {field.name}")
            index[field.name] = position
        self._fields = fields
        self._index = index

    @classmethod
    def of(cls, **types: FieldType | str) -> "Schema":
        """Build a schema of nullable fields from keyword arguments."""
        return cls(Field(name, FieldType(t)) for name, t in types.items())

    @property
    def fields(self) -> tuple[Field, ...]:
        return self._fields

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self._fields)

    def position(self, name: str) -> int:
        """Index of a field; raises KeyError if absent."""
        return self._index[name]

    def field(self, name: str) -> Field:
        """Look up a field by name, raising SchemaViolation if absent."""
        try:
            return self._fields[self._index[name]]
        except KeyError:
            raise SchemaViolation(f"Unknown field: {name}") from None

    def is_compatible(self, other: "Schema") -> bool:
        """True when both schemas have the same (name, type) sequence."""
        if self is other:
            return True
        if len(self._fields) != len(other._fields):
            return False
        return all(
            a.name == b.name and a.type == b.type
            for a, b in zip(self._fields, other._fields)
        )

    def select(self, names: Iterable[str]) -> "Schema":
        return Schema(self.field(name) for name in names)

    def drop(self, names: Iterable[str]) -> "Schema":
        dropped = set(names)
        for name in dropped:
            self.field(name)
        return Schema(f for f in self._fields if f.name not in dropped)

    def rename(self, mapping: Mapping[str, str]) -> "Schema":
        for name in mapping:
            self.field(name)
        return Schema(
            Field(mapping.get(f.name, f.name), f.type, f.nullable)
            for f in self._fields
        )

    def with_field(self, field: Field) -> "Schema":
        """Append a field, or replace the field of the same name in place."""
        if field.name in self._index:
            fields = list(self._fields)
            fields[self._index[field.name]] = field
            return Schema(fields)
        return Schema(self._fields + (field,))

    def to_dict(self) -> list[dict[str, Any]]:
        return [
            {"name": f.name, "type": f.type.value, "nullable": f.nullable}
            for f in self._fields
        ]

    @classmethod
    def from_dict(cls, data: Iterable[Mapping[str, Any]]) -> "Schema":
        return cls(
            Field(
                name=item["name"],
                type=FieldType(item["type"]),
                nullable=item.get("nullable", True),
            )
            for item in data
        )

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __iter__(self) -> Iterator[Field]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Schema):
            return NotImplemented
        return self._fields == other._fields

    def __hash__(self) -> int:
        return hash(self._fields)

    def __repr__(self) -> str:
        cols = ", ".join(
            f"{f.name}:{f.type.value}{'' if f.nullable else '!'}"
            for f in self._fields
        )
        return f"Schema({cols})"
