"""Tests for text/JSON value conversion and schema inference."""

from datetime import datetime, timezone

import pytest

from weir.adapters.coercion import (
    convert,
    format_text,
    from_json_value,
    infer_text_schema,
    infer_text_type,
    infer_value_schema,
    parse_text,
)
from weir.core import FieldType, SchemaViolation, TypeMismatch


class TestParseText:
    @pytest.mark.parametrize(
        "text,field_type,expected",
        [
            ("42", FieldType.INTEGER, 42),
            ("-1.5", FieldType.FLOAT, -1.5),
            ("Yes", FieldType.BOOLEAN, True),
            ("0", FieldType.BOOLEAN, False),
            ("2024-03-01T12:00:00", FieldType.TIMESTAMP, datetime(2024, 3, 1, 12)),
            ("aGk=", FieldType.BINARY, b"hi"),
            ("", FieldType.INTEGER, None),
            (None, FieldType.TEXT, None),
        ],
    )
    def test_valid(self, text, field_type, expected):
        assert parse_text(text, field_type) == expected

    @pytest.mark.parametrize(
        "text,field_type",
        [
            ("4.2", FieldType.INTEGER),
            ("maybe", FieldType.BOOLEAN),
            ("yesterday", FieldType.TIMESTAMP),
            ("!!", FieldType.BINARY),
            ("x", FieldType.NULL),
        ],
    )
    def test_invalid(self, text, field_type):
        with pytest.raises(SchemaViolation, match="Cannot parse"):
            parse_text(text, field_type)

    def test_format_text(self):
        assert format_text(None) == ""
        assert format_text(False) == "false"
        assert format_text(2.5) == "2.5"
        assert format_text(b"hi") == "aGk="


class TestJsonValues:
    def test_integral_number_becomes_float(self):
        assert from_json_value(3, FieldType.FLOAT) == 3.0
        assert isinstance(from_json_value(3, FieldType.FLOAT), float)

    def test_bool_is_not_widened(self):
        assert from_json_value(True, FieldType.FLOAT) is True

    def test_mismatch_left_for_validation(self):
        assert from_json_value("abc", FieldType.INTEGER) == "abc"


class TestConvert:
    @pytest.mark.parametrize(
        "value,target,expected",
        [
            ("12", FieldType.INTEGER, 12),
            (12, FieldType.TEXT, "12"),
            (3.9, FieldType.INTEGER, 3),
            (2, FieldType.FLOAT, 2.0),
            (0, FieldType.BOOLEAN, False),
            ("abc", FieldType.BINARY, b"abc"),
            (0, FieldType.TIMESTAMP, datetime(1970, 1, 1, tzinfo=timezone.utc)),
            (None, FieldType.INTEGER, None),
            (7, FieldType.INTEGER, 7),
        ],
    )
    def test_supported(self, value, target, expected):
        assert convert(value, target) == expected

    def test_unparseable_text(self):
        with pytest.raises(TypeMismatch, match="Cannot convert 'abc' to integer"):
            convert("abc", FieldType.INTEGER)

    def test_no_conversion(self):
        with pytest.raises(TypeMismatch, match="Cannot convert bytes to integer"):
            convert(b"\x01", FieldType.INTEGER)


class TestInference:
    def test_text_type_narrowest_first(self):
        assert infer_text_type(["1", "2", ""]) is FieldType.INTEGER
        assert infer_text_type(["1", "2.5"]) is FieldType.FLOAT
        assert infer_text_type(["true", "False"]) is FieldType.BOOLEAN
        assert infer_text_type(["yes", "no"]) is FieldType.TEXT
        assert infer_text_type(["", ""]) is FieldType.TEXT

    def test_text_schema_is_nullable(self):
        schema = infer_text_schema(["a", "b"], [{"a": "1", "b": "x"}, {"a": ""}])
        assert [(f.name, f.type, f.nullable) for f in schema] == [
            ("a", FieldType.INTEGER, True),
            ("b", FieldType.TEXT, True),
        ]

    def test_value_schema_first_non_null_wins(self):
        schema = infer_value_schema(["a", "b"], [{"a": None, "b": None}, {"a": 1.5}])
        assert schema.field("a").type is FieldType.FLOAT
        assert schema.field("b").type is FieldType.NULL
