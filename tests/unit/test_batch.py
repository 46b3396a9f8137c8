"""Tests for Batch."""

from uuid import uuid4

import pytest

from weir.core import Batch, BatchTooLarge, Record, Schema, SchemaViolation


class TestBatch:
    """Batch construction and derivation."""

    def test_from_rows(self, user_schema, user_rows):
        """Rows become records in order."""
        batch = Batch.from_rows(user_schema, user_rows, 3, "users")
        assert len(batch) == 10
        assert batch.sequence == 3
        assert batch.source_id == "users"
        assert [r["id"] for r in batch] == list(range(10))
        assert batch.to_rows() == user_rows

    def test_bad_row_fails_whole_batch(self, user_schema, user_rows):
        """One invalid row fails the batch with its position and identity."""
        rows = list(user_rows)
        rows[4] = {**rows[4], "score": "high"}
        with pytest.raises(SchemaViolation, match="Row 4") as info:
            Batch.from_rows(user_schema, rows, 5, "users")
        assert info.value.sequence == 5
        assert info.value.source_id == "users"
        assert info.value.record_count == 10

    def test_too_large(self, user_schema, user_rows):
        """Exceeding max_records raises BatchTooLarge, a SchemaViolation."""
        with pytest.raises(BatchTooLarge) as info:
            Batch.from_rows(user_schema, user_rows, 0, "users", max_records=5)
        assert isinstance(info.value, SchemaViolation)
        assert info.value.record_count == 10

    def test_incompatible_record(self, user_schema):
        """Records must share the batch schema."""
        other = Record(Schema.of(x="integer"), {"x": 1})
        with pytest.raises(SchemaViolation, match="does not match"):
            Batch(user_schema, (other,), 0, "users")

    def test_negative_sequence(self, user_schema):
        with pytest.raises(ValueError):
            Batch(user_schema, (), -1, "users")

    def test_records_become_tuple(self, user_schema):
        """A list of records is frozen into a tuple."""
        batch = Batch(user_schema, [Record(user_schema, {"id": 1})], 0, "users")
        assert isinstance(batch.records, tuple)

    def test_derive_keeps_identity(self, make_batch, user_rows):
        """A derived batch keeps sequence, source and job."""
        job_id = uuid4()
        batch = make_batch(user_rows, sequence=2).with_job(job_id)
        narrow = Schema.of(id="integer")
        derived = batch.derive([r.replace(narrow) for r in batch], narrow)
        assert derived.sequence == 2
        assert derived.source_id == "users"
        assert derived.job_id == job_id
        assert derived.schema == narrow

    def test_job_id_not_part_of_equality(self, make_batch, user_rows):
        """Stamping a job id does not change batch equality."""
        batch = make_batch(user_rows)
        assert batch.with_job(uuid4()) == batch
