"""Pipeline configuration loading.

The configuration is validated against ``pipeline.schema.json`` first and
then checked semantically while the domain objects are built. Either step
raises ConfigurationError; nothing is checked again at dispatch time.
"""

from __future__ import annotations

import hashlib
import json
from importlib.resources import files
from pathlib import Path
from typing import Any

import jsonschema

from featureflow.domain.exceptions import ConfigurationError
from featureflow.domain.models import (
    BranchValue,
    EscalationTier,
    MutationPermission,
    MutationTarget,
    RoleDefinition,
    RoleId,
    StageDefinition,
    StageId,
    StageKind,
)
from featureflow.domain.pipeline import PipelineConfig
from featureflow.domain.retry_policy import DEFAULT_MAX_ATTEMPTS, RetryPolicy
from featureflow.domain.roles import RoleRegistry
from featureflow.domain.stage_graph import StageGraph
from featureflow.schemas import validate_pipeline

DEFAULT_PIPELINE = "feature_development.json"


def compute_pipeline_ref(data: dict[str, Any]) -> str:
    """Content hash of a pipeline definition.

    Canonical JSON (sorted keys, no whitespace) hashed with SHA-256, so the
    same configuration always yields the same ref regardless of formatting.
    """
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _read_json(text: str, source: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {source}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Expected object in {source}, got {type(data).__name__}"
        )
    return data


def load_pipeline(path: Path | str) -> PipelineConfig:
    """
    Load a pipeline configuration file.

    Args:
        path: Path to the pipeline JSON

    Returns:
        Immutable PipelineConfig

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Pipeline file not found: {path}")
    return parse_pipeline(_read_json(path.read_text(), str(path)), source=str(path))


def load_default_pipeline() -> PipelineConfig:
    """Load the feature-development pipeline shipped with the package."""
    resource = files("featureflow").joinpath("pipelines", DEFAULT_PIPELINE)
    return parse_pipeline(
        _read_json(resource.read_text(), DEFAULT_PIPELINE), source=DEFAULT_PIPELINE
    )


def parse_pipeline(data: dict[str, Any], source: str = "<pipeline>") -> PipelineConfig:
    """
    Build a PipelineConfig from an already-decoded configuration.

    Raises:
        ConfigurationError: On schema or semantic violations
    """
    try:
        validate_pipeline(data)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "(root)"
        raise ConfigurationError(f"{source}: {location}: {e.message}") from e

    roles = RoleRegistry(_parse_role(r) for r in data["roles"])
    graph = StageGraph([_parse_stage(s) for s in data["stages"]])

    retry_data = data.get("retry", {})
    retry = RetryPolicy(
        categories={
            category: RoleId(role_id)
            for category, role_id in retry_data.get("categories", {}).items()
        },
        max_attempts=retry_data.get("max_attempts", DEFAULT_MAX_ATTEMPTS),
    )

    planning_stage = data.get("planning_stage")
    return PipelineConfig(
        name=data["name"],
        graph=graph,
        roles=roles,
        retry=retry,
        planning_stage=StageId(planning_stage) if planning_stage else None,
        single_stage_entry_points={
            name: StageId(stage_id)
            for name, stage_id in data.get("entry_points", {}).items()
        },
        pipeline_ref=compute_pipeline_ref(data),
        version=data.get("version", "1.0.0"),
    )


def _parse_role(data: dict[str, Any]) -> RoleDefinition:
    return RoleDefinition(
        role_id=RoleId(data["id"]),
        permission=MutationPermission(data["permission"]),
        tier=EscalationTier(data["tier"]),
        targets=frozenset(MutationTarget(t) for t in data.get("targets", [])),
    )


def _parse_stage(data: dict[str, Any]) -> StageDefinition:
    path = data.get("path")
    return StageDefinition(
        stage_id=StageId(data["id"]),
        role=RoleId(data["role"]),
        kind=StageKind(data["kind"]),
        required_predecessors=frozenset(StageId(p) for p in data.get("requires", [])),
        branch_targets={
            BranchValue(value): StageId(target)
            for value, target in data.get("branch_targets", {}).items()
        },
        path=BranchValue(path) if path else None,
        instructions=data.get("instructions", ""),
    )
