"""Command-line interface."""

from weir.cli.main import cli

__all__ = ["cli"]
