"""
Command-line entry point.

Usage:
    weir run --config job.yaml
    weir validate --config job.yaml
    weir serve --config service.yaml --port 9000
"""

import sys
from pathlib import Path

import click
from rich.table import Table

from weir import __version__
from weir.api.factory import build_job
from weir.config import ConfigLoader
from weir.core.exceptions import WeirError
from weir.core.models import JobState
from weir.core.specifications import JobSpec, ServiceSettings
from weir.orchestration.observers import LoggingObserver, ProgressObserver
from weir.utils import (
    configure_logging,
    display_errors,
    display_job_summary,
    get_console,
    get_logger,
    print_error,
    print_success,
    sanitize_for_logging,
)

logger = get_logger(__name__)

_CONFIG_OPTION = click.option(
    "--config",
    "-c",
    "config_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to a YAML or JSON job file",
)


def _load_job(config_path: Path, workers: int | None = None) -> JobSpec:
    try:
        spec = ConfigLoader.load_job(config_path)
    except (WeirError, FileNotFoundError) as e:
        print_error(f"Invalid configuration: {e}")
        sys.exit(2)
    if workers is not None:
        spec.engine = spec.engine.model_copy(update={"workers": workers})
    dumped = sanitize_for_logging(spec.model_dump(mode="json"))
    logger.debug(f"Loaded job config: {dumped}")
    return spec


@click.group()
@click.version_option(version=__version__, prog_name="weir")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override WEIR_LOG_LEVEL",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None):
    """Weir - multi-threaded batch pipelines over files and frames."""
    ctx.obj = {"log_level": log_level}
    configure_logging(level=log_level)


@cli.command()
@_CONFIG_OPTION
@click.option("--workers", "-w", type=click.IntRange(min=1), help="Worker threads")
@click.option("--no-progress", is_flag=True, help="Disable the progress display")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def run(
    ctx: click.Context,
    config_path: Path,
    workers: int | None,
    no_progress: bool,
    json_logs: bool,
):
    """Run a job to completion and print its summary."""
    if json_logs:
        configure_logging(level=ctx.obj["log_level"], json_format=True)
    spec = _load_job(config_path, workers)
    observers = [LoggingObserver()]
    if not no_progress:
        observers.append(ProgressObserver())

    try:
        definition = build_job(spec, observers=observers)
    except (WeirError, FileNotFoundError) as e:
        print_error(f"Cannot build job: {e}")
        sys.exit(2)

    status = definition.run()
    display_job_summary(status)
    display_errors(status)
    if status.state != JobState.COMPLETED:
        sys.exit(1)


@cli.command()
@_CONFIG_OPTION
def validate(config_path: Path):
    """Check a job file and show each source's output schema."""
    spec = _load_job(config_path)
    try:
        definition = build_job(spec, observers=[])
    except (WeirError, FileNotFoundError) as e:
        print_error(f"Validation failed: {e}")
        sys.exit(1)

    try:
        schemas = definition.validate()
    finally:
        for source in definition.sources:
            source.close()

    table = Table(title="Output Schemas", show_header=True)
    table.add_column("Source")
    table.add_column("Fields")
    for source_id, schema in schemas.items():
        table.add_row(
            source_id,
            ", ".join(f"{f.name}: {f.type.value}" for f in schema.fields),
        )
    get_console().print(table)
    print_success(f"Configuration is valid ({len(definition.pipeline)} stages)")


@cli.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to a YAML or JSON service file",
)
@click.option("--host", default=None, help="Bind address")
@click.option("--port", type=int, default=None, help="Bind port")
@click.option(
    "--data-root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Only allow job paths under this directory",
)
def serve(
    config_path: Path | None,
    host: str | None,
    port: int | None,
    data_root: Path | None,
):
    """Serve the job HTTP API."""
    import uvicorn

    from weir.service import create_app

    try:
        settings = (
            ConfigLoader.load_service(config_path) if config_path else ServiceSettings()
        )
    except WeirError as e:
        print_error(f"Invalid configuration: {e}")
        sys.exit(2)
    overrides = (("host", host), ("port", port), ("data_root", data_root))
    updates = {k: v for k, v in overrides if v is not None}
    settings = settings.model_copy(update=updates)
    configure_logging(settings.logging.level, json_format=settings.logging.json_format)

    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    cli()
