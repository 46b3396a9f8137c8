"""
End-to-end runs of the engine.

Each test wires real adapters, stages and the multi-threaded scheduler
together and checks the final job status and sink contents.
"""

from pathlib import Path

import polars as pl
import pytest

from weir import JobBuilder, JobState
from weir.adapters import CollectingSink, InMemorySource
from weir.api import build_job
from weir.config import ConfigLoader
from weir.core import EngineSettings, RetrySettings, Schema
from weir.orchestration import Job, Scheduler
from weir.stages import FilterStage, Pipeline

SCHEMA = Schema.of(id="integer", keep="boolean", label="text")


def thousand_rows():
    return [{"id": i, "keep": i % 4 != 0, "label": f"row-{i}"} for i in range(1000)]


def settings(workers=4):
    return EngineSettings(
        workers=workers,
        source_queue_capacity=2,
        sink_queue_capacity=2,
        default_batch_size=100,
        retry=RetrySettings(max_attempts=2, initial_delay=0, max_delay=0),
    )


@pytest.mark.integration
def test_boolean_filter_over_ten_batches():
    """1000 records in batches of 100; only kept records reach the sink."""
    source = InMemorySource("rows", thousand_rows(), schema=SCHEMA, batch_size=100)
    sink = CollectingSink()
    pipeline = Pipeline([FilterStage(lambda r: r.get_bool("keep"))])

    status = Scheduler(Job(), pipeline, [source], [sink], settings()).run()

    assert status.state is JobState.COMPLETED
    assert status.records_processed == 1000
    assert status.records_failed == 0
    assert status.records_emitted == 750
    assert all(r["keep"] for r in sink.records)
    assert [r["id"] for r in sink.records] == [i for i in range(1000) if i % 4]


@pytest.mark.integration
def test_malformed_record_fails_only_its_batch():
    """A bad value in the fifth batch costs exactly that batch."""
    rows = thousand_rows()
    rows[450]["id"] = "four-fifty"
    source = InMemorySource("rows", rows, schema=SCHEMA, batch_size=100)
    sink = CollectingSink()

    status = Scheduler(Job(), Pipeline(), [source], [sink], settings()).run()

    assert status.state is JobState.COMPLETED
    assert status.batches_failed == 1
    assert status.records_failed == 100
    assert status.records_processed == 900
    error = status.errors[0]
    assert error.kind == "SchemaViolation"
    assert (error.source_id, error.sequence) == ("rows", 4)
    assert "Row 50" in error.message
    assert [b.sequence for b in sink.batches] == [0, 1, 2, 3, 5, 6, 7, 8, 9]


@pytest.mark.integration
@pytest.mark.parametrize("workers", [1, 3, 8])
def test_csv_to_parquet_is_worker_independent(tmp_path: Path, workers):
    """Same input and pipeline give the same Parquet file for any worker count."""
    source_path = tmp_path / "events.csv"
    pl.DataFrame(
        {
            "id": list(range(2000)),
            "kind": [f"k{i % 7}" for i in range(2000)],
            "value": [i * 0.25 for i in range(2000)],
        }
    ).write_csv(source_path)

    out = tmp_path / f"out-{workers}.parquet"
    status = (
        JobBuilder.create()
        .from_csv(source_path, batch_size=64)
        .filter_where("kind", "ne", "k3")
        .window("running_sum", "total", column="value", partition_by=["kind"])
        .project(drop=["value"])
        .to_parquet(out)
        .with_workers(workers)
        .with_queue_capacity(source=2, sink=2)
        .build()
        .run()
    )

    assert status.state is JobState.COMPLETED
    frame = pl.read_parquet(out)
    expected = [i for i in range(2000) if i % 7 != 3]
    assert frame["id"].to_list() == expected
    k0 = frame.filter(pl.col("kind") == "k0")["total"].to_list()
    assert k0[:3] == [0.0, 1.75, 5.25]


@pytest.mark.integration
def test_yaml_job_end_to_end(tmp_path: Path):
    """A job described in YAML runs through build_job to CSV and NDJSON sinks."""
    (tmp_path / "data").mkdir()
    (tmp_path / "data" / "sales.csv").write_text(
        "region,amount\n" + "".join(f"r{i % 3},{i}\n" for i in range(300))
    )
    config = tmp_path / "job.yaml"
    config.write_text(
        """
name: sales-by-region
sources:
  - id: sales
    path: data/sales.csv
    batch_size: 25
stages:
  - type: aggregate
    params:
      group_by: [region]
      aggregations:
        - {function: sum, column: amount, output: total}
        - {function: count}
      emit: final
sinks:
  - id: summary
    path: out/summary.ndjson
  - id: summary-csv
    path: out/summary.csv
engine:
  workers: 4
  source_queue_capacity: 2
  sink_queue_capacity: 2
"""
    )

    definition = build_job(ConfigLoader.load_job(config), observers=[])
    status = definition.run()

    assert status.state is JobState.COMPLETED
    assert status.records_processed == 300
    assert status.batches_filtered == 12
    assert status.records_emitted == 3
    summary = pl.read_ndjson(tmp_path / "out" / "summary.ndjson").sort("region")
    assert summary["region"].to_list() == ["r0", "r1", "r2"]
    assert summary["count"].to_list() == [100, 100, 100]
    assert summary["total"].to_list() == [
        sum(range(0, 300, 3)),
        sum(range(1, 300, 3)),
        sum(range(2, 300, 3)),
    ]
    assert (tmp_path / "out" / "summary.csv").read_text().startswith(
        "region,total,count"
    )


@pytest.mark.integration
def test_many_sources_share_the_pool():
    sources = [
        InMemorySource(f"s{n}", thousand_rows(), schema=SCHEMA, batch_size=50)
        for n in range(5)
    ]
    sink = CollectingSink()
    status = Scheduler(Job(), Pipeline(), sources, [sink], settings(workers=6)).run()

    assert status.state is JobState.COMPLETED
    assert status.records_processed == 5000
    for n in range(5):
        ids = [r["id"] for b in sink.batches_for(f"s{n}") for r in b]
        assert ids == list(range(1000))
