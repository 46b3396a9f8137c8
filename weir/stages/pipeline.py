"""Ordered composition of stages."""

from collections.abc import Iterable
from dataclasses import replace

from weir.core.batch import Batch
from weir.core.exceptions import PipelineValidationError, WeirError
from weir.core.schema import Schema
from weir.stages.outcome import Emitted, Outcome
from weir.stages.pipeline_stage import Stage
from weir.utils.logging_utils import get_logger

logger = get_logger(__name__)


class Pipeline:
    """
    A left-to-right chain of stages.

    Applying a pipeline runs each stage on the previous stage's output and
    stops at the first stage that filters the batch out or fails. An empty
    pipeline passes batches through unchanged.

    Example:
        pipeline = Pipeline([
            FilterStage.where("active", "eq", True),
            ProjectStage(select=["id", "amount"]),
        ])
        pipeline.validate(source.schema)
    """

    def __init__(self, stages: Iterable[Stage] = (), name: str = "pipeline"):
        self.stages: list[Stage] = list(stages)
        self.name = name
        names = [stage.name for stage in self.stages]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise PipelineValidationError(
                f"Duplicate stage names: {', '.join(duplicates)}"
            )

    @property
    def is_stateful(self) -> bool:
        return any(stage.stateful for stage in self.stages)

    def input_schemas(self, input_schema: Schema) -> list[Schema]:
        """
        Schema each stage receives, plus the pipeline's output schema last.

        Raises:
            PipelineValidationError: If a stage rejects its input schema
        """
        schemas = [input_schema]
        for stage in self.stages:
            try:
                schemas.append(stage.output_schema(schemas[-1]))
            except WeirError as e:
                raise PipelineValidationError(
                    f"Stage '{stage.name}' cannot accept {schemas[-1]!r}: {e}"
                ) from e
        return schemas

    def validate(self, input_schema: Schema) -> Schema:
        """Check that stage schemas line up and return the output schema."""
        return self.input_schemas(input_schema)[-1]

    def apply(self, batch: Batch) -> Outcome:
        """
        Run a batch through every stage.

        A failure or filter counts every record of ``batch``, including
        records an earlier stage already dropped.
        """
        outcome: Outcome = Emitted(batch)
        for stage in self.stages:
            outcome = stage.apply(outcome.batch)
            if not isinstance(outcome, Emitted):
                return replace(outcome, record_count=len(batch))
        return outcome

    def finish(
        self, source_id: str, input_schema: Schema, sequence: int
    ) -> list[Outcome]:
        """
        Flush stateful stages for an exhausted source.

        Each stage's flushed batch continues through the stages after it.
        Flushed batches get consecutive sequence numbers starting at
        ``sequence``.
        """
        schemas = self.input_schemas(input_schema)
        outcomes: list[Outcome] = []
        for position, stage in enumerate(self.stages):
            if not stage.stateful:
                continue
            flushed = stage.finish(
                source_id, schemas[position], sequence + len(outcomes)
            )
            if flushed is None or len(flushed) == 0:
                continue
            logger.debug(
                f"Stage '{stage.name}' flushed {len(flushed)} records for {source_id}"
            )
            outcome: Outcome = Emitted(flushed)
            for downstream in self.stages[position + 1 :]:
                outcome = downstream.apply(outcome.batch)
                if not isinstance(outcome, Emitted):
                    break
            outcomes.append(outcome)
        return outcomes

    def reset(self) -> None:
        for stage in self.stages:
            stage.reset()

    def __len__(self) -> int:
        return len(self.stages)

    def __repr__(self) -> str:
        chain = " -> ".join(stage.name for stage in self.stages) or "(empty)"
        return f"Pipeline({self.name}: {chain})"
