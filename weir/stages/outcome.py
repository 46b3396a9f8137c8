"""Result of applying a stage (or a whole pipeline) to one batch."""

from dataclasses import dataclass

from weir.core.batch import Batch
from weir.core.models import ErrorInfo


@dataclass(frozen=True)
class Emitted:
    """The stage produced a non-empty batch."""

    batch: Batch


@dataclass(frozen=True)
class Filtered:
    """Every record of the batch was dropped."""

    sequence: int
    source_id: str
    record_count: int = 0


@dataclass(frozen=True)
class StageFailure:
    """The stage raised while processing the batch."""

    stage: str
    sequence: int
    source_id: str
    record_count: int
    cause: BaseException

    def to_error_info(self) -> ErrorInfo:
        return ErrorInfo.from_exception(
            self.cause,
            stage=self.stage,
            source_id=self.source_id,
            sequence=self.sequence,
            record_count=self.record_count,
        )


Outcome = Emitted | Filtered | StageFailure
