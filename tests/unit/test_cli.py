"""Tests for the weir command-line interface."""

import pytest
from click.testing import CliRunner

from weir import __version__
from weir.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def job_file(tmp_path):
    (tmp_path / "scores.csv").write_text(
        "id,score\n" + "".join(f"{i},{i * 0.5}\n" for i in range(40))
    )
    path = tmp_path / "job.yaml"
    path.write_text(
        "name: scores\n"
        "sources:\n"
        "  - {id: scores, path: scores.csv, batch_size: 10}\n"
        "stages:\n"
        "  - {type: filter, params: {column: score, op: ge, value: 10.0}}\n"
        "sinks:\n"
        "  - {id: high, path: high.ndjson}\n"
    )
    return path


class TestCLI:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "validate", "serve"):
            assert command in result.output

    def test_run(self, runner, job_file, tmp_path):
        result = runner.invoke(
            cli, ["run", "--config", str(job_file), "--no-progress", "-w", "2"]
        )
        assert result.exit_code == 0, result.output
        lines = (tmp_path / "high.ndjson").read_text().splitlines()
        assert len(lines) == 20

    def test_validate(self, runner, job_file, tmp_path):
        result = runner.invoke(cli, ["validate", "-c", str(job_file)])
        assert result.exit_code == 0, result.output
        assert "Configuration is valid" in result.output
        assert not (tmp_path / "high.ndjson").exists()

    def test_invalid_config_exits_2(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("sources: []\n")
        result = runner.invoke(cli, ["run", "--config", str(path)])
        assert result.exit_code == 2

    def test_validate_reports_bad_stage(self, runner, job_file):
        job_file.write_text(
            job_file.read_text().replace("column: score", "column: grade")
        )
        result = runner.invoke(cli, ["validate", "--config", str(job_file)])
        assert result.exit_code == 1
        assert "Validation failed" in result.output

    def test_failed_job_exits_1(self, runner, job_file, tmp_path):
        """A job whose source breaks mid-stream fails the command."""
        (tmp_path / "scores.csv").write_text("id,score\n1,0.5\n2,not-a-number\n")
        job_file.write_text(
            job_file.read_text().replace(
                "batch_size: 10}",
                "batch_size: 1, fields: [{name: id, type: integer},"
                " {name: score, type: float}]}",
            )
            + "engine: {max_failed_batches: 0}\n"
        )
        result = runner.invoke(cli, ["run", "--config", str(job_file), "--no-progress"])
        assert result.exit_code == 1

    def test_missing_config_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["run", "--config", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 2
        assert "does not exist" in result.output
