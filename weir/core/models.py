"""
Reporting models.

Pydantic models describing job status and recorded errors. These are what
the controller, the CLI and the HTTP service hand out; live job state is
kept in ``weir.orchestration.job``.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobState(str, Enum):
    """Lifecycle states of a job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED)


class ErrorInfo(BaseModel):
    """One entry of a job's error log."""

    kind: str = Field(..., description="Exception class name")
    message: str
    stage: str | None = Field(default=None, description="Failing stage, if any")
    source_id: str | None = None
    sequence: int | None = None
    record_count: int = 0
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_exception(
        cls,
        error: BaseException,
        stage: str | None = None,
        source_id: str | None = None,
        sequence: int | None = None,
        record_count: int = 0,
    ) -> "ErrorInfo":
        if source_id is None:
            source_id = getattr(error, "source_id", None)
        if sequence is None:
            sequence = getattr(error, "sequence", None)
        return cls(
            kind=type(error).__name__,
            message=str(error),
            stage=stage,
            source_id=source_id,
            sequence=sequence,
            record_count=record_count or getattr(error, "record_count", 0),
        )


class JobStatus(BaseModel):
    """Point-in-time snapshot of a job."""

    job_id: UUID
    name: str | None = None
    state: JobState
    records_processed: int = 0
    records_failed: int = 0
    records_emitted: int = 0
    batches_processed: int = 0
    batches_failed: int = 0
    batches_filtered: int = 0
    errors: list[ErrorInfo] = Field(default_factory=list)
    errors_dropped: int = Field(
        default=0, description="Errors counted but not retained in the log"
    )
    cause: ErrorInfo | None = Field(
        default=None, description="Error that failed the job"
    )
    created_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None:
            return None
        end = self.finished_at or utcnow()
        return (end - self.started_at).total_seconds()
