"""Utility modules for cross-cutting concerns."""

from weir.utils.logging_utils import (
    configure_logging,
    get_logger,
    sanitize_for_logging,
)
from weir.utils.retry_handler import RetryHandler, is_transient
from weir.utils.rich_utils import (
    display_errors,
    display_job_summary,
    get_console,
    print_error,
    print_info,
    print_success,
    print_warning,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "sanitize_for_logging",
    "RetryHandler",
    "is_transient",
    # Rich utilities
    "get_console",
    "display_job_summary",
    "display_errors",
    "print_success",
    "print_error",
    "print_warning",
    "print_info",
]
