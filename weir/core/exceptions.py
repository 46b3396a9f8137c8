"""
Exception hierarchy for the pipeline engine.

Batch-scoped errors (``BatchError`` and its subclasses) are isolated by the
scheduler: the offending batch is recorded as failed and the job carries on.
Everything else either escalates the job (adapter failures after retries)
or is raised straight to the caller (validation, lifecycle misuse).
"""


class WeirError(Exception):
    """Base class for all engine errors."""


class BatchError(WeirError):
    """
    Error confined to a single batch.

    Carries enough context to identify the batch in the job error log
    without holding a reference to the batch itself.
    """

    def __init__(
        self,
        message: str,
        sequence: int | None = None,
        source_id: str | None = None,
        record_count: int = 0,
    ):
        super().__init__(message)
        self.message = message
        self.sequence = sequence
        self.source_id = source_id
        self.record_count = record_count

    def bind(
        self, sequence: int, source_id: str, record_count: int
    ) -> "BatchError":
        """Attach batch identity if it was not known where the error was raised."""
        if self.sequence is None:
            self.sequence = sequence
        if self.source_id is None:
            self.source_id = source_id
        if not self.record_count:
            self.record_count = record_count
        return self


class SchemaViolation(BatchError):
    """A record or batch does not conform to its declared schema."""


class BatchTooLarge(SchemaViolation):
    """A batch exceeds the configured maximum batch size."""


class TypeMismatch(BatchError):
    """A typed accessor was called on a field of a different type."""


class StageRejected(BatchError):
    """A stage explicitly refused a batch."""


class AdapterError(WeirError):
    """
    Failure reported by a source or sink adapter.

    ``transient`` errors are retried with backoff; anything else fails the
    job immediately.
    """

    def __init__(
        self, message: str, transient: bool = False, adapter_id: str | None = None
    ):
        super().__init__(message)
        self.message = message
        self.transient = transient
        self.adapter_id = adapter_id


class TransientAdapterError(AdapterError):
    """Adapter failure that is expected to clear on retry."""

    def __init__(self, message: str, adapter_id: str | None = None):
        super().__init__(message, transient=True, adapter_id=adapter_id)


class PipelineValidationError(WeirError):
    """Stage schemas do not line up, or a stage is misconfigured."""


class JobStateError(WeirError):
    """Illegal job lifecycle transition."""


class JobNotFoundError(WeirError):
    """No job with the given id is known to the registry."""


class ConfigurationError(WeirError):
    """Invalid or incomplete configuration."""
