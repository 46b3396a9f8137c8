"""Configuration file loading."""

from weir.config.config_loader import ConfigLoader

__all__ = ["ConfigLoader"]
