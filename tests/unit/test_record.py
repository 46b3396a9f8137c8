"""Tests for Record."""

from datetime import datetime

import pytest

from weir.core import Record, Schema, SchemaViolation, TypeMismatch


class TestRecord:
    """Construction, access and replacement of records."""

    def test_values_in_schema_order(self, user_schema):
        """Iteration follows the schema, not the input mapping."""
        record = Record(user_schema, {"name": "a", "id": 1})
        assert list(record) == ["id", "name", "score", "active"]
        assert record.to_dict() == {
            "id": 1,
            "name": "a",
            "score": None,
            "active": None,
        }

    def test_missing_required_field(self, user_schema):
        """An absent non-nullable field counts as null and is rejected."""
        with pytest.raises(SchemaViolation, match="'id' is not nullable"):
            Record(user_schema, {"name": "a"})

    def test_unknown_field(self, user_schema):
        """Keys outside the schema are rejected."""
        with pytest.raises(SchemaViolation, match="'bogus' is not in the schema"):
            Record(user_schema, {"id": 1, "bogus": 2})

    def test_type_checked_at_construction(self, user_schema):
        """A value of the wrong type fails construction."""
        with pytest.raises(SchemaViolation):
            Record(user_schema, {"id": 1, "score": 3})

    def test_typed_accessors(self, user_schema):
        """Accessors return values of their declared type."""
        record = Record(user_schema, {"id": 7, "name": "x", "active": True})
        assert record.get_int("id") == 7
        assert record.get_text("name") == "x"
        assert record.get_bool("active") is True
        assert record.get_float("score") is None

    def test_typed_accessor_mismatch(self, user_schema):
        """Calling the wrong accessor raises TypeMismatch."""
        record = Record(user_schema, {"id": 7})
        with pytest.raises(TypeMismatch, match="'id' is integer, not text"):
            record.get_text("id")

    def test_accessor_unknown_field(self, user_schema):
        record = Record(user_schema, {"id": 7})
        with pytest.raises(SchemaViolation):
            record.get_int("missing")

    def test_timestamp_and_binary(self):
        """Timestamp and binary values round through their accessors."""
        schema = Schema.of(at="timestamp", blob="binary")
        at = datetime(2024, 5, 1, 12, 0)
        record = Record(schema, {"at": at, "blob": b"\x00\x01"})
        assert record.get_timestamp("at") == at
        assert record.get_binary("blob") == b"\x00\x01"

    def test_replace_builds_new_record(self, user_schema):
        """replace leaves the original untouched and re-validates."""
        record = Record(user_schema, {"id": 1, "name": "a"})
        changed = record.replace(name="b")
        assert record["name"] == "a"
        assert changed["name"] == "b"
        with pytest.raises(SchemaViolation):
            record.replace(id=None)

    def test_replace_with_narrower_schema(self, user_schema):
        """Values outside the target schema are dropped."""
        record = Record(user_schema, {"id": 1, "name": "a"})
        narrow = record.replace(Schema.of(name="text"))
        assert narrow.to_dict() == {"name": "a"}

    def test_equality_and_hash(self, user_schema):
        """Records with compatible schemas and equal values are equal."""
        a = Record(user_schema, {"id": 1})
        b = Record(user_schema, {"id": 1})
        assert a == b
        assert hash(a) == hash(b)
        assert a != Record(user_schema, {"id": 2})

    def test_mapping_protocol(self, user_schema):
        """Records behave as read-only mappings."""
        record = Record(user_schema, {"id": 1, "name": "a"})
        assert "name" in record
        assert len(record) == 4
        assert dict(record)["id"] == 1
        with pytest.raises(TypeError):
            record["id"] = 2
