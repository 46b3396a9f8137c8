"""HTTP service for submitting and tracking jobs."""

from weir.service.app import create_app

__all__ = ["create_app"]
