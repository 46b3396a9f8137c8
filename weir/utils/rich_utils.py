"""
Rich console utilities for terminal output.

Centralized Rich integration for consistent styling across the CLI:
job summaries, error tables and status messages.
"""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from weir.core.models import JobState, JobStatus

_console: Console | None = None


def get_console() -> Console:
    """Get shared Rich console instance (lazy initialization)."""
    global _console
    if _console is None:
        _console = Console()
    return _console


# =============================================================================
# Color Theme
# =============================================================================

THEME = {
    "success": "bold green",
    "error": "bold red",
    "warning": "bold yellow",
    "info": "bold cyan",
    "dim": "dim white",
    "label": "cyan",
    "value": "green",
    "number": "yellow",
    "header": "bold cyan",
}

STATE_STYLES = {
    JobState.PENDING: THEME["dim"],
    JobState.RUNNING: THEME["info"],
    JobState.COMPLETED: THEME["success"],
    JobState.FAILED: THEME["error"],
    JobState.CANCELLED: THEME["warning"],
}


# =============================================================================
# Job Display
# =============================================================================


def display_job_summary(status: JobStatus) -> None:
    """
    Display the outcome of a job as a panel.

    Args:
        status: Final job status
    """
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style=THEME["label"])
    table.add_column("Value", style=THEME["value"])

    state_style = STATE_STYLES[status.state]
    table.add_row("Job", str(status.job_id))
    if status.name:
        table.add_row("Name", escape(status.name))
    table.add_row("State", f"[{state_style}]{status.state.value}[/{state_style}]")
    table.add_row("Processed", f"{status.records_processed:,} records")
    table.add_row("Emitted", f"{status.records_emitted:,} records")

    failed_style = THEME["error"] if status.records_failed else THEME["value"]
    table.add_row(
        "Failed",
        f"[{failed_style}]{status.records_failed:,} records "
        f"({status.batches_failed} batches)[/{failed_style}]",
    )

    duration = status.duration_seconds
    if duration:
        table.add_row("Duration", f"{duration:.2f}s")
        table.add_row(
            "Throughput", f"{status.records_processed / duration:,.1f} records/sec"
        )
    if status.cause is not None:
        cause = f"{status.cause.kind}: {escape(status.cause.message)}"
        table.add_row("Cause", f"[{THEME['error']}]{cause}")

    get_console().print(
        Panel(
            table,
            title=f"[{state_style}]Job {status.state.value.title()}[/{state_style}]",
            border_style=state_style.split()[-1],
        )
    )


def display_errors(status: JobStatus, max_rows: int = 10) -> None:
    """Display the first recorded batch errors of a job."""
    if not status.errors:
        return

    table = Table(title="Batch Errors", show_header=True, header_style=THEME["header"])
    table.add_column("Source", style=THEME["label"])
    table.add_column("Seq", justify="right", style=THEME["number"])
    table.add_column("Stage")
    table.add_column("Records", justify="right", style=THEME["number"])
    table.add_column("Error", style=THEME["error"], overflow="ellipsis", max_width=60)

    for error in status.errors[:max_rows]:
        table.add_row(
            error.source_id or "-",
            "-" if error.sequence is None else str(error.sequence),
            error.stage or "-",
            str(error.record_count),
            f"{error.kind}: {escape(error.message)}",
        )

    console = get_console()
    console.print(table)
    hidden = len(status.errors) - max_rows + status.errors_dropped
    if hidden > 0:
        console.print(f"[dim]... and {hidden} more errors[/dim]")


# =============================================================================
# Status Messages
# =============================================================================


def print_success(message: str) -> None:
    get_console().print(escape(message), style=THEME["success"])


def print_error(message: str) -> None:
    get_console().print(escape(message), style=THEME["error"])


def print_warning(message: str) -> None:
    get_console().print(f"WARNING: {escape(message)}", style=THEME["warning"])


def print_info(message: str) -> None:
    get_console().print(escape(message), style=THEME["info"])
