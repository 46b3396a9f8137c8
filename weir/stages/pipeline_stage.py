"""
Base class for pipeline stages.

A stage turns one batch into zero or one batch. Subclasses implement
``transform`` and, when they change the shape of records,
``output_schema``; ``apply`` wraps both into the outcome contract the
scheduler relies on: exceptions never escape, they become
``StageFailure``.
"""

from abc import ABC, abstractmethod

from weir.core.batch import Batch
from weir.core.exceptions import BatchError, SchemaViolation
from weir.core.schema import Schema
from weir.stages.outcome import Emitted, Filtered, Outcome, StageFailure
from weir.utils.logging_utils import get_logger


class Stage(ABC):
    """
    One step of a pipeline.

    Stateless stages must be pure functions of their input batch. Stateful
    stages (``stateful = True``) keep an accumulator per source, guarded by
    their own lock; the scheduler never hands them two batches of the same
    source at once.
    """

    stateful: bool = False

    def __init__(self, name: str):
        self.name = name
        self.logger = get_logger(f"{__name__}.{name}")

    def output_schema(self, input_schema: Schema) -> Schema:
        """
        Schema of batches this stage emits for the given input schema.

        Raises:
            SchemaViolation: If the input schema is unusable for this stage
        """
        return input_schema

    @abstractmethod
    def transform(self, batch: Batch) -> Batch | None:
        """
        Produce the output batch.

        Return ``None`` or an empty batch to drop every record. Must not
        mutate ``batch``.
        """

    def apply(self, batch: Batch) -> Outcome:
        """Run ``transform`` and classify the result."""
        try:
            expected = self.output_schema(batch.schema)
            result = self.transform(batch)
        except BatchError as e:
            e.bind(batch.sequence, batch.source_id, len(batch))
            return self._failure(batch, e)
        except Exception as e:
            self.logger.debug(
                f"Stage raised {type(e).__name__} on batch "
                f"{batch.source_id}#{batch.sequence}"
            )
            return self._failure(batch, e)

        if result is None or len(result) == 0:
            return Filtered(batch.sequence, batch.source_id, len(batch))

        if not result.schema.is_compatible(expected):
            return self._failure(
                batch,
                SchemaViolation(
                    f"Stage '{self.name}' emitted {result.schema!r}, "
                    f"declared {expected!r}",
                    sequence=batch.sequence,
                    source_id=batch.source_id,
                    record_count=len(batch),
                ),
            )
        if result.sequence != batch.sequence or result.source_id != batch.source_id:
            return self._failure(
                batch,
                SchemaViolation(
                    f"Stage '{self.name}' changed batch identity",
                    sequence=batch.sequence,
                    source_id=batch.source_id,
                    record_count=len(batch),
                ),
            )
        return Emitted(result)

    def _failure(self, batch: Batch, cause: BaseException) -> StageFailure:
        return StageFailure(
            stage=self.name,
            sequence=batch.sequence,
            source_id=batch.source_id,
            record_count=len(batch),
            cause=cause,
        )

    def finish(
        self, source_id: str, input_schema: Schema, sequence: int
    ) -> Batch | None:
        """
        Flush state for a source that reached end-of-stream.

        Args:
            source_id: Exhausted source
            input_schema: Schema of batches this stage received
            sequence: Sequence number to give the flushed batch

        Returns:
            A batch of remaining output, or None
        """
        return None

    def reset(self) -> None:
        """Discard accumulated state."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
