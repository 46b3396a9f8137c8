"""High-level API for defining and running jobs."""

from weir.api.builder import JobBuilder
from weir.api.factory import build_job
from weir.api.job_definition import JobDefinition

__all__ = ["JobBuilder", "JobDefinition", "build_job"]
