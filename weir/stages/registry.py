"""
Stage construction from configuration.

Maps each ``StageType`` to a builder taking the ``params`` of a
``StageSpec``:

    filter     column, op, value
    project    select, drop, rename
    cast       column, to
    aggregate  group_by, aggregations, emit
    window     function, output, column, partition_by, offset, default
    limit      limit
"""

from collections.abc import Callable
from typing import Any

from weir.core.exceptions import ConfigurationError
from weir.core.specifications import StageSpec, StageType
from weir.stages.aggregate_stage import AggregateStage
from weir.stages.pipeline import Pipeline
from weir.stages.pipeline_stage import Stage
from weir.stages.transform_stages import CastStage, FilterStage, ProjectStage
from weir.stages.window_stage import LimitStage, WindowStage


def _filter(name: str, params: dict[str, Any]) -> Stage:
    return FilterStage.where(
        params["column"], params.get("op", "eq"), params.get("value"), name=name
    )


def _aggregate(name: str, params: dict[str, Any]) -> Stage:
    return AggregateStage(
        group_by=params.get("group_by", []),
        aggregations=params["aggregations"],
        emit=params.get("emit", "running"),
        name=name,
    )


STAGE_BUILDERS: dict[StageType, Callable[[str, dict[str, Any]], Stage]] = {
    StageType.FILTER: _filter,
    StageType.PROJECT: lambda name, params: ProjectStage(name=name, **params),
    StageType.CAST: lambda name, params: CastStage(name=name, **params),
    StageType.AGGREGATE: _aggregate,
    StageType.WINDOW: lambda name, params: WindowStage(name=name, **params),
    StageType.LIMIT: lambda name, params: LimitStage(name=name, **params),
}


def build_stage(spec: StageSpec, position: int = 0) -> Stage:
    """
    Instantiate the stage described by ``spec``.

    Raises:
        ConfigurationError: If the parameters do not fit the stage type
    """
    name = spec.name or f"{spec.type.value}-{position}"
    try:
        return STAGE_BUILDERS[spec.type](name, dict(spec.params))
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid parameters for {spec.type.value} stage '{name}': {e}"
        ) from e


def build_pipeline(specs: list[StageSpec], name: str = "pipeline") -> Pipeline:
    return Pipeline(
        [build_stage(spec, position) for position, spec in enumerate(specs)],
        name=name,
    )
