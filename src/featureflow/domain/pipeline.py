"""
PipelineConfig: the static configuration loaded once at process start.

Bundles the Stage Graph, Role Registry and Retry Policy and checks the
references between them. Immutable after construction.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from featureflow.domain.exceptions import ConfigurationError
from featureflow.domain.models import StageId
from featureflow.domain.retry_policy import RetryPolicy
from featureflow.domain.roles import RoleRegistry
from featureflow.domain.stage_graph import StageGraph


@dataclass(frozen=True)
class PipelineConfig:
    """Stage Graph + Role Registry + failure-category mapping."""

    name: str
    graph: StageGraph
    roles: RoleRegistry
    retry: RetryPolicy
    planning_stage: StageId | None = None
    single_stage_entry_points: Mapping[str, StageId] = field(
        default_factory=lambda: MappingProxyType({})
    )
    pipeline_ref: str = ""
    version: str = "1.0.0"

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "single_stage_entry_points",
            MappingProxyType(dict(self.single_stage_entry_points)),
        )
        for stage in self.graph.stages:
            if stage.role not in self.roles:
                raise ConfigurationError(
                    f"Stage '{stage.stage_id}' is bound to unknown role '{stage.role}'"
                )
        for category, role_id in self.retry.categories.items():
            if role_id not in self.roles:
                raise ConfigurationError(
                    f"Failure category '{category}' maps to unknown role '{role_id}'"
                )
        if self.planning_stage is not None and self.planning_stage not in self.graph:
            raise ConfigurationError(
                f"Planning stage '{self.planning_stage}' is not a stage"
            )
        for entry, stage_id in self.single_stage_entry_points.items():
            if stage_id not in self.graph:
                raise ConfigurationError(
                    f"Entry point '{entry}' targets unknown stage '{stage_id}'"
                )

    def planning_scope(self) -> frozenset[StageId]:
        """The planning stage and everything it depends on."""
        if self.planning_stage is None:
            raise ConfigurationError(f"Pipeline '{self.name}' has no planning stage")
        return self.graph.ancestors(self.planning_stage) | {self.planning_stage}
