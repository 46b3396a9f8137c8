"""Tests for the built-in source and sink adapters."""

import json
from datetime import datetime

import pandas as pd
import polars as pl
import pytest

from weir.adapters import (
    END_OF_STREAM,
    CollectingSink,
    CSVSink,
    CSVSource,
    DataFrameSink,
    DataFrameSource,
    InMemorySource,
    NDJSONSink,
    NDJSONSource,
    ParquetSink,
    ParquetSource,
    create_sink,
    create_source,
)
from weir.core import (
    AdapterError,
    Batch,
    ConfigurationError,
    EngineSettings,
    FieldType,
    SchemaViolation,
)
from weir.core.schema import Field, Schema
from weir.core.specifications import FieldSpec, SinkSpec, SourceSpec


def drain(source):
    batches = []
    while True:
        batch = source.next_batch()
        if batch is END_OF_STREAM:
            return batches
        batches.append(batch)


@pytest.fixture
def orders_csv(tmp_path):
    path = tmp_path / "orders.csv"
    path.write_text(
        "id,customer,amount,paid,note\n"
        "1,alice,10.5,true,first\n"
        "2,bob,3.0,false,\n"
        "3,carol,7.25,true,x\n"
        "4,dave,1.0,false,y\n"
        "5,erin,2.5,true,z\n"
    )
    return path


class TestInMemorySource:
    def test_batches_in_order(self, user_rows, user_schema):
        source = InMemorySource("users", user_rows, schema=user_schema, batch_size=4)
        batches = drain(source)
        assert [len(b) for b in batches] == [4, 4, 2]
        assert [b.sequence for b in batches] == [0, 1, 2]
        assert source.next_batch() is END_OF_STREAM

    def test_infers_schema(self):
        source = InMemorySource("s", [{"a": 1, "b": None}, {"a": 2, "b": "x"}])
        assert source.schema.field("a").type is FieldType.INTEGER
        assert source.schema.field("b").type is FieldType.TEXT

    def test_bad_row_fails_only_its_batch(self, user_schema):
        rows = [{"id": 1}, {"id": 2}, {"id": "three"}, {"id": 4}]
        source = InMemorySource("users", rows, schema=user_schema, batch_size=2)
        assert len(source.next_batch()) == 2
        with pytest.raises(SchemaViolation) as exc_info:
            source.next_batch()
        assert exc_info.value.sequence == 1
        assert exc_info.value.record_count == 2
        assert exc_info.value.message.startswith("Row 0:")

    def test_rejects_zero_batch_size(self):
        with pytest.raises(ValueError):
            InMemorySource("s", [], schema=Schema.of(a="integer"), batch_size=0)


class TestSinkDelivery:
    """Delivery bookkeeping shared by every sink."""

    def test_duplicate_delivery_written_once(self, make_batch, user_rows):
        sink = CollectingSink()
        batch = make_batch(user_rows)
        first = sink.write(batch)
        second = sink.write(batch)
        assert (first.records, first.duplicate) == (10, False)
        assert (second.records, second.duplicate) == (0, True)
        assert len(sink.batches) == 1
        assert sink.records_written == 10

    def test_write_after_close(self, make_batch, user_rows):
        sink = CollectingSink()
        stats = sink.close()
        assert stats["batches_written"] == 0
        with pytest.raises(AdapterError, match="closed"):
            sink.write(make_batch(user_rows))

    def test_batches_for(self, make_batch, user_rows):
        sink = CollectingSink()
        sink.write(make_batch(user_rows, source_id="a"))
        sink.write(make_batch(user_rows, source_id="b"))
        assert [b.source_id for b in sink.batches_for("b")] == ["b"]
        assert len(sink.rows()) == 20


class TestCSVSource:
    def test_infers_types(self, orders_csv):
        source = CSVSource("orders", orders_csv, batch_size=2)
        types = {f.name: f.type for f in source.schema}
        assert types == {
            "id": FieldType.INTEGER,
            "customer": FieldType.TEXT,
            "amount": FieldType.FLOAT,
            "paid": FieldType.BOOLEAN,
            "note": FieldType.TEXT,
        }
        batches = drain(source)
        source.close()
        assert [len(b) for b in batches] == [2, 2, 1]
        first = batches[0].records[0]
        assert first["amount"] == 10.5
        assert first["paid"] is True
        assert batches[0].records[1]["note"] is None

    def test_declared_schema_reads_only_its_columns(self, orders_csv):
        schema = Schema(
            [Field("id", FieldType.INTEGER), Field("missing", FieldType.TEXT)]
        )
        source = CSVSource("orders", orders_csv, schema=schema)
        (batch,) = drain(source)
        source.close()
        assert batch.schema.names == ("id", "missing")
        assert [r.to_dict() for r in batch][0] == {"id": 1, "missing": None}

    def test_unparseable_cell_fails_batch(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("n\n1\n2\nthree\n4\n")
        source = CSVSource("bad", path, schema=Schema.of(n="integer"), batch_size=2)
        assert len(source.next_batch()) == 2
        with pytest.raises(SchemaViolation, match="Column 'n'"):
            source.next_batch()
        assert source.next_batch() is END_OF_STREAM
        source.close()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CSVSource("x", tmp_path / "nope.csv")


class TestCSVSink:
    def test_writes_header_and_rows(self, tmp_path, make_batch):
        schema = Schema.of(id="integer", at="timestamp", ok="boolean", blob="binary")
        rows = [
            {"id": 1, "at": datetime(2024, 1, 2, 3, 4, 5), "ok": True, "blob": b"hi"},
            {"id": 2, "at": None, "ok": False, "blob": None},
        ]
        sink = CSVSink("out", tmp_path / "sub" / "out.csv")
        sink.write(make_batch(rows, schema=schema))
        stats = sink.close()
        lines = (tmp_path / "sub" / "out.csv").read_text().splitlines()
        assert lines == [
            "id,at,ok,blob",
            "1,2024-01-02T03:04:05,true,aGk=",
            "2,,false,",
        ]
        assert stats["records_written"] == 2
        assert stats["format"] == "csv"

    def test_incompatible_schema_rejected(self, tmp_path, make_batch, user_rows):
        sink = CSVSink("out", tmp_path / "out.csv")
        sink.write(make_batch(user_rows))
        other = make_batch([{"x": 1}], sequence=1, schema=Schema.of(x="integer"))
        with pytest.raises(AdapterError, match="expects"):
            sink.write(other)
        sink.close()

    def test_nothing_written_creates_no_file(self, tmp_path):
        sink = CSVSink("out", tmp_path / "out.csv")
        sink.close()
        assert not (tmp_path / "out.csv").exists()


class TestNDJSON:
    def test_source_skips_blank_lines(self, tmp_path):
        path = tmp_path / "events.ndjson"
        path.write_text('{"id": 1, "v": 2.5}\n\n{"id": 2, "v": 3}\n')
        source = NDJSONSource("events", path)
        (batch,) = drain(source)
        source.close()
        assert source.schema.field("v").type is FieldType.FLOAT
        # Integral JSON numbers are accepted for float fields
        assert [r["v"] for r in batch] == [2.5, 3.0]

    def test_invalid_line_fails_batch(self, tmp_path):
        path = tmp_path / "events.ndjson"
        path.write_text('{"id": 1}\n{"id": 2}\nnot json\n{"id": 4}\n')
        schema = Schema.of(id="integer")
        source = NDJSONSource("events", path, schema=schema, batch_size=2)
        assert len(source.next_batch()) == 2
        with pytest.raises(SchemaViolation, match="Invalid JSON") as exc_info:
            source.next_batch()
        assert exc_info.value.sequence == 1
        source.close()

    def test_sink_encodes_timestamps_and_binary(self, tmp_path, make_batch):
        schema = Schema.of(at="timestamp", blob="binary")
        rows = [{"at": datetime(2024, 5, 6), "blob": b"\x00\x01"}]
        sink = NDJSONSink("out", tmp_path / "out.ndjson")
        sink.write(make_batch(rows, schema=schema))
        sink.close()
        line = json.loads((tmp_path / "out.ndjson").read_text())
        assert line == {"at": "2024-05-06T00:00:00", "blob": "AAE="}

    def test_declared_schema_restores_types(self, tmp_path):
        path = tmp_path / "in.ndjson"
        path.write_text('{"at": "2024-05-06T00:00:00", "blob": "AAE="}\n')
        schema = Schema.of(at="timestamp", blob="binary")
        source = NDJSONSource("in", path, schema=schema)
        (batch,) = drain(source)
        source.close()
        record = batch.records[0]
        assert record["at"] == datetime(2024, 5, 6)
        assert record["blob"] == b"\x00\x01"


class TestParquet:
    def test_sink_then_source(self, tmp_path, make_batch, user_rows, user_schema):
        path = tmp_path / "users.parquet"
        sink = ParquetSink("out", path)
        sink.write(make_batch(user_rows[:5], sequence=0))
        sink.write(make_batch(user_rows[5:], sequence=1))
        assert not path.exists()
        sink.close()

        source = ParquetSource("users", path, batch_size=4)
        assert [f.type for f in source.schema] == [f.type for f in user_schema]
        batches = drain(source)
        source.close()
        assert [len(b) for b in batches] == [4, 4, 2]
        assert [r.to_dict() for b in batches for r in b] == user_rows

    def test_declared_schema_selects_columns(self, tmp_path):
        path = tmp_path / "wide.parquet"
        frame = pl.DataFrame({"a": [1, 2], "b": ["x", "y"], "c": [0.5, 1.5]})
        frame.write_parquet(path)
        schema = Schema.of(c="float", a="integer")
        source = ParquetSource("wide", path, schema=schema)
        (batch,) = drain(source)
        source.close()
        assert batch.to_rows() == [{"c": 0.5, "a": 1}, {"c": 1.5, "a": 2}]


class TestDataFrames:
    def test_pandas_source_nan_becomes_null(self):
        frame = pd.DataFrame({"id": [1, 2, 3], "score": [1.0, float("nan"), 3.0]})
        source = DataFrameSource("frame", frame, batch_size=2)
        assert source.schema.field("score").type is FieldType.FLOAT
        rows = [r.to_dict() for b in drain(source) for r in b]
        assert rows == [
            {"id": 1, "score": 1.0},
            {"id": 2, "score": None},
            {"id": 3, "score": 3.0},
        ]

    def test_sink_builds_frame_on_close(self, make_batch, user_rows):
        sink = DataFrameSink()
        sink.write(make_batch(user_rows))
        with pytest.raises(AdapterError, match="not been closed"):
            sink.to_polars()
        stats = sink.close()
        assert stats["rows"] == 10
        frame = sink.to_pandas()
        assert list(frame.columns) == ["id", "name", "score", "active"]
        assert frame["id"].tolist() == list(range(10))

    def test_empty_sink(self):
        sink = DataFrameSink()
        sink.close()
        assert sink.to_polars().is_empty()


class TestFactory:
    def test_creates_by_extension(self, orders_csv, tmp_path):
        spec = SourceSpec(id="orders", path=orders_csv)
        source = create_source(spec, EngineSettings(default_batch_size=2))
        assert isinstance(source, CSVSource)
        assert source.batch_size == 2
        source.close()
        ndjson = create_sink(SinkSpec(id="o", path=tmp_path / "o.jsonl"))
        parquet = create_sink(SinkSpec(id="p", path=tmp_path / "o.pq"))
        assert isinstance(ndjson, NDJSONSink)
        assert isinstance(parquet, ParquetSink)

    def test_declared_fields(self, orders_csv):
        spec = SourceSpec(
            id="orders",
            path=orders_csv,
            fields=[FieldSpec(name="id", type="integer", nullable=False)],
            batch_size=3,
        )
        source = create_source(spec)
        assert source.schema == Schema([Field("id", FieldType.INTEGER, False)])
        assert source.batch_size == 3
        source.close()

    def test_unknown_extension(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot infer data format"):
            create_sink(SinkSpec(id="x", path=tmp_path / "out.xlsx"))

    def test_explicit_format_wins(self, tmp_path):
        sink = create_sink(SinkSpec(id="x", path=tmp_path / "out.txt", format="csv"))
        assert isinstance(sink, CSVSink)


def test_batch_from_reader_keeps_source_identity(orders_csv):
    source = CSVSource("orders", orders_csv)
    (batch,) = drain(source)
    source.close()
    assert isinstance(batch, Batch)
    assert (batch.source_id, batch.sequence) == ("orders", 0)
