"""
Structured logging utilities.

Provides consistent logging configuration across the engine using structlog.
"""

import logging
import os
import sys
from typing import Any

import structlog
from rich.logging import RichHandler

# Track if logging has been configured
_logging_configured = False

_NOISY_LOGGERS = [
    "asyncio",
    "httpx",
    "httpcore",
    "urllib3",
    "uvicorn.access",
    "multipart",
]


def configure_logging(
    level: str | None = None,
    json_format: bool = False,
    include_timestamp: bool = True,
) -> None:
    """
    Configure structured logging for the engine.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WEIR_LOG_LEVEL env var, or INFO.
        json_format: Use JSON output format
        include_timestamp: Include timestamps in logs
    """
    global _logging_configured

    if level is None:
        level = os.getenv("WEIR_LOG_LEVEL", "INFO")
    level = level.upper()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level),
    )

    # Library chatter stays at WARNING unless WEIR_TRACE is set
    trace_mode = os.getenv("WEIR_TRACE", "false").lower() in ("true", "1", "yes")
    if not trace_mode:
        for logger_name in _NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"))

    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        logging.getLogger().handlers = [
            RichHandler(
                rich_tracebacks=True,
                markup=False,
                show_time=include_timestamp,
                show_path=False,
            )
        ]
        processors.append(structlog.dev.ConsoleRenderer(colors=True, pad_level=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _logging_configured = True


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Auto-configures logging on first use if not already configured.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    if not _logging_configured:
        configure_logging()

    return structlog.get_logger(name)


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """
    Mask credentials in a configuration mapping before it is logged.

    Args:
        data: Dictionary potentially containing sensitive data

    Returns:
        Sanitized dictionary
    """
    sensitive_keys = {
        "password",
        "secret",
        "token",
        "authorization",
        "credential",
    }

    sanitized = {}
    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in sensitive_keys):
            sanitized[key] = "***REDACTED***"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_for_logging(value)
        else:
            sanitized[key] = value

    return sanitized
