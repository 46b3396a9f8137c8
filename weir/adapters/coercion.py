"""
Value conversion between Python values and text-based formats.

Text formats (CSV, NDJSON) cannot carry every field type natively:
timestamps travel as ISO-8601 strings and binary values as base64.
"""

import base64
import binascii
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from weir.core.exceptions import SchemaViolation, TypeMismatch
from weir.core.schema import Field, FieldType, Schema

TRUE_STRINGS = frozenset({"true", "t", "yes", "y", "1"})
FALSE_STRINGS = frozenset({"false", "f", "no", "n", "0"})


def parse_text(text: str | None, field_type: FieldType) -> Any:
    """
    Parse a text cell into a value of ``field_type``.

    An empty cell is null.

    Raises:
        SchemaViolation: If the text is not a valid literal for the type
    """
    if text is None or text == "":
        return None
    try:
        if field_type is FieldType.TEXT:
            return text
        if field_type is FieldType.INTEGER:
            return int(text)
        if field_type is FieldType.FLOAT:
            return float(text)
        if field_type is FieldType.BOOLEAN:
            lowered = text.strip().lower()
            if lowered in TRUE_STRINGS:
                return True
            if lowered in FALSE_STRINGS:
                return False
            raise ValueError(text)
        if field_type is FieldType.TIMESTAMP:
            return datetime.fromisoformat(text)
        if field_type is FieldType.BINARY:
            return base64.b64decode(text, validate=True)
    except (ValueError, binascii.Error):
        raise SchemaViolation(
            f"Cannot parse {text!r} as {field_type.value}"
        ) from None
    raise SchemaViolation(f"Cannot parse {text!r} as {field_type.value}")


def format_text(value: Any) -> str:
    """Render a value for a text cell (inverse of ``parse_text``)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return str(value)


def to_json_value(value: Any) -> Any:
    """Make a value JSON-serializable."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return value


def from_json_value(value: Any, field_type: FieldType) -> Any:
    """
    Restore a decoded JSON value to the Python type of ``field_type``.

    Integral JSON numbers are accepted for FLOAT fields. Values that do not
    fit are returned unchanged so record validation reports them.
    """
    if value is None:
        return None
    if field_type is FieldType.FLOAT and isinstance(value, int) and not isinstance(
        value, bool
    ):
        return float(value)
    if isinstance(value, str) and field_type in (FieldType.TIMESTAMP, FieldType.BINARY):
        return parse_text(value, field_type)
    return value


def convert(value: Any, target: FieldType) -> Any:
    """
    Explicitly convert a value to ``target``.

    Raises:
        TypeMismatch: If no conversion exists
    """
    if value is None or target.accepts(value):
        return value
    try:
        if isinstance(value, str):
            if target is FieldType.BINARY:
                return value.encode("utf-8")
            return parse_text(value, target)
        if target is FieldType.TEXT:
            return format_text(value)
        if target is FieldType.INTEGER and isinstance(value, (bool, float)):
            return int(value)
        if target is FieldType.FLOAT and isinstance(value, (bool, int)):
            return float(value)
        if target is FieldType.BOOLEAN and isinstance(value, (int, float)):
            return value != 0
        if target is FieldType.TIMESTAMP and isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        if target is FieldType.INTEGER and isinstance(value, datetime):
            return int(value.timestamp())
    except (SchemaViolation, ValueError, OverflowError) as e:
        raise TypeMismatch(f"Cannot convert {value!r} to {target.value}: {e}") from e
    raise TypeMismatch(
        f"Cannot convert {type(value).__name__} to {target.value}"
    )


def infer_text_type(values: Iterable[str]) -> FieldType:
    """Infer the narrowest type that parses every non-empty sample."""
    samples = [v for v in values if v not in (None, "")]
    if not samples:
        return FieldType.TEXT
    for candidate in (FieldType.INTEGER, FieldType.FLOAT, FieldType.BOOLEAN):
        try:
            for sample in samples:
                parse_text(sample, candidate)
        except SchemaViolation:
            continue
        if candidate is FieldType.BOOLEAN and not all(
            s.lower() in ("true", "false") for s in samples
        ):
            continue
        return candidate
    return FieldType.TEXT


def infer_text_schema(
    columns: Sequence[str], rows: Iterable[Mapping[str, str]]
) -> Schema:
    """Infer a nullable schema for text rows, column by column."""
    rows = list(rows)
    return Schema(
        Field(name, infer_text_type(row.get(name, "") for row in rows))
        for name in columns
    )


def infer_value_schema(
    columns: Sequence[str], rows: Iterable[Mapping[str, Any]]
) -> Schema:
    """Infer a nullable schema from already-typed values (first non-null wins)."""
    rows = list(rows)
    fields = []
    for name in columns:
        field_type = FieldType.NULL
        for row in rows:
            value = row.get(name)
            if value is not None:
                field_type = FieldType.of_value(value)
                break
        fields.append(Field(name, field_type))
    return Schema(fields)
