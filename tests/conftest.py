"""Shared pytest fixtures for featureflow tests."""

import copy
import itertools
import logging
from collections.abc import Callable
from typing import Any

import pytest

from featureflow.application.dispatcher import Dispatcher
from featureflow.domain.document import create_document
from featureflow.domain.models import Document, StageResult
from featureflow.domain.pipeline import PipelineConfig
from featureflow.infrastructure.config_loader import parse_pipeline
from featureflow.infrastructure.executors.scripted import ScriptedExecutor
from featureflow.infrastructure.persistence.memory import InMemoryDocumentStore

PIPELINE: dict[str, Any] = {
    "name": "test-pipeline",
    "version": "1.0.0",
    "planning_stage": "plan",
    "entry_points": {
        "test-only": "test",
        "build-only": "build",
        "review-only": "review",
        "modernize-only": "modernize",
    },
    "roles": [
        {"id": "planner", "permission": "read_write", "tier": "high-reasoning"},
        {"id": "architect", "permission": "read_only", "tier": "high-reasoning"},
        {"id": "implementer", "permission": "read_write", "tier": "balanced"},
        {"id": "modernizer", "permission": "read_write", "tier": "balanced"},
        {"id": "ui_specialist", "permission": "read_write", "tier": "balanced"},
        {"id": "tester", "permission": "read_write", "tier": "fast"},
        {"id": "build_verifier", "permission": "read_only", "tier": "fast"},
        {"id": "reviewer", "permission": "read_only", "tier": "high-reasoning"},
        {
            "id": "documenter",
            "permission": "read_write",
            "tier": "fast",
            "targets": ["artifact_refs", "advisory"],
        },
    ],
    "stages": [
        {"id": "plan", "role": "planner", "kind": "standard"},
        {
            "id": "architecture",
            "role": "architect",
            "kind": "branch",
            "requires": ["plan"],
            "branch_targets": {"A": "implement", "B": "modernize"},
        },
        {
            "id": "implement",
            "role": "implementer",
            "kind": "standard",
            "requires": ["architecture"],
            "path": "A",
        },
        {
            "id": "modernize",
            "role": "modernizer",
            "kind": "standard",
            "requires": ["architecture"],
            "path": "B",
        },
        {
            "id": "test",
            "role": "tester",
            "kind": "standard",
            "requires": ["implement", "modernize"],
        },
        {"id": "build", "role": "build_verifier", "kind": "standard", "requires": ["test"]},
        {"id": "review", "role": "reviewer", "kind": "optional", "requires": ["build"]},
        {"id": "document", "role": "documenter", "kind": "terminal", "requires": ["build"]},
    ],
    "retry": {
        "max_attempts": 3,
        "categories": {
            "state-management": "implementer",
            "presentation-layer": "ui_specialist",
        },
    },
}

STAGE_ORDER = [s["id"] for s in PIPELINE["stages"]]


@pytest.fixture(autouse=True)
def _reset_featureflow_logger():
    """CLI tests install handlers on the package logger; drop them afterwards."""
    yield
    logger = logging.getLogger("featureflow")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def pipeline_data() -> dict[str, Any]:
    """A mutable copy of the test pipeline definition."""
    return copy.deepcopy(PIPELINE)


@pytest.fixture
def config(pipeline_data: dict[str, Any]) -> PipelineConfig:
    return parse_pipeline(pipeline_data)


@pytest.fixture
def clock() -> Callable[[], str]:
    """Deterministic, strictly increasing ISO timestamps."""
    counter = itertools.count()
    return lambda: f"2025-01-01T00:00:{next(counter):02d}+00:00"


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def fresh_document(config: PipelineConfig) -> Document:
    """Fresh Document with every stage pending."""
    return create_document(
        "feat-001",
        "Add offline mode",
        config.graph.stage_ids,
        pipeline_ref=config.pipeline_ref,
    )


@pytest.fixture
def make_dispatcher(
    config: PipelineConfig,
    store: InMemoryDocumentStore,
    clock: Callable[[], str],
) -> Callable[..., tuple[Dispatcher, ScriptedExecutor]]:
    """Build a Dispatcher around a ScriptedExecutor with the given script."""

    def _make(
        results: dict[str, list[StageResult]] | list[StageResult],
        default: StageResult | None = None,
        **kwargs: Any,
    ) -> tuple[Dispatcher, ScriptedExecutor]:
        executor = ScriptedExecutor(results, default=default)
        dispatcher = Dispatcher(config, executor, store=store, clock=clock, **kwargs)
        return dispatcher, executor

    return _make
