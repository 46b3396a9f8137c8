"""Pipeline stages and their composition."""

from weir.stages.aggregate_stage import Aggregation, AggregateStage
from weir.stages.outcome import Emitted, Filtered, Outcome, StageFailure
from weir.stages.pipeline import Pipeline
from weir.stages.pipeline_stage import Stage
from weir.stages.registry import build_pipeline, build_stage
from weir.stages.transform_stages import (
    CastStage,
    FilterStage,
    FunctionStage,
    MapStage,
    ProjectStage,
)
from weir.stages.window_stage import LimitStage, WindowStage

__all__ = [
    "Stage",
    "Pipeline",
    # Outcomes
    "Outcome",
    "Emitted",
    "Filtered",
    "StageFailure",
    # Built-in stages
    "MapStage",
    "FilterStage",
    "ProjectStage",
    "CastStage",
    "FunctionStage",
    "AggregateStage",
    "Aggregation",
    "WindowStage",
    "LimitStage",
    # Configuration
    "build_stage",
    "build_pipeline",
]
