"""
Entry-point surface: named ways of starting or resuming a workflow.

Each entry point binds to a starting stage and a resumption mode:

- full-workflow(description): starts at the first stage
- plan-only(description): runs only the planning stage and its ancestors;
  everything after planning is treated as skipped for the run
- test-only, build-only, review-only, modernize-only: run exactly one stage
  of an existing Document, which must already show its predecessors settled
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from featureflow.application.cancellation import CancellationToken
from featureflow.application.dispatcher import (
    USER_ROLE,
    Dispatcher,
    RunOutcome,
    utc_now,
)
from featureflow.domain.document import create_document, reset_stage, skip_stage
from featureflow.domain.exceptions import (
    ConfigurationError,
    InvalidUpdate,
    PipelineMismatchError,
)
from featureflow.domain.interfaces import DocumentStoreInterface, ExecutorInterface
from featureflow.domain.models import (
    BlockReason,
    BranchValue,
    Document,
    StageId,
    StageStatus,
    WorkflowState,
)
from featureflow.domain.pipeline import PipelineConfig
from featureflow.domain.stage_graph import Blocked

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntryPoint:
    name: str
    fresh: bool  # Takes a description and may create a new Document
    help: str


ENTRY_POINTS: dict[str, EntryPoint] = {
    ep.name: ep
    for ep in (
        EntryPoint("full-workflow", True, "Run every stage from the first one"),
        EntryPoint("plan-only", True, "Run planning only; later stages are skipped"),
        EntryPoint("test-only", False, "Run the test stage of an existing feature"),
        EntryPoint("build-only", False, "Run the build stage of an existing feature"),
        EntryPoint("review-only", False, "Run the review stage of an existing feature"),
        EntryPoint(
            "modernize-only", False, "Run the modernize stage of an existing feature"
        ),
    )
}


def new_feature_id(description: str) -> str:
    """Readable, unique id: a slug of the description plus a short random suffix."""
    words = re.findall(r"[a-z0-9]+", description.lower())[:5]
    slug = "-".join(words) or "feature"
    return f"{slug[:40].rstrip('-')}-{uuid.uuid4().hex[:8]}"


class Coordinator:
    """
    Ties a pipeline, an executor and a document store together.

    The Coordinator owns Document lifecycle (create, resume, reset);
    the Dispatcher it wraps owns sequencing.
    """

    def __init__(
        self,
        config: PipelineConfig,
        executor: ExecutorInterface,
        store: DocumentStoreInterface,
        clock: Callable[[], str] | None = None,
        cancellation: CancellationToken | None = None,
    ):
        self._config = config
        self._store = store
        self._clock = clock or utc_now
        self._dispatcher = Dispatcher(
            config,
            executor,
            store=store,
            clock=self._clock,
            cancellation=cancellation,
        )

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def store(self) -> DocumentStoreInterface:
        return self._store

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def full_workflow(self, description: str, feature_id: str | None = None) -> RunOutcome:
        document = self.begin(description, feature_id)
        return self._dispatcher.run(document)

    def plan_only(self, description: str, feature_id: str | None = None) -> RunOutcome:
        document = self.begin(description, feature_id)
        return self._dispatcher.run(document, scope=self._config.planning_scope())

    def single_stage(self, entry_point: str, feature_id: str) -> RunOutcome:
        """
        Run exactly one stage of an existing Document.

        Returns Blocked(missing_predecessors) without invoking any executor when
        the stage's predecessors are not yet complete or skipped.

        Raises:
            ConfigurationError: If the pipeline does not bind ``entry_point``
            DocumentNotFound: If no Document exists for ``feature_id``
        """
        stage_id = self._config.single_stage_entry_points.get(entry_point)
        if stage_id is None:
            raise ConfigurationError(
                f"Pipeline '{self._config.name}' has no stage bound to '{entry_point}'"
            )
        document = self.load(feature_id)

        missing = self._config.graph.missing_predecessors(document, stage_id)
        if missing:
            logger.info(
                f"{entry_point}: '{stage_id}' is waiting on {', '.join(missing)}"
            )
            return RunOutcome(
                state=WorkflowState.BLOCKED,
                document=document,
                blocked=Blocked(
                    reason=BlockReason.MISSING_PREDECESSORS,
                    stages=missing,
                    detail=(
                        f"'{stage_id}' needs these stages complete first: "
                        + ", ".join(missing)
                    ),
                ),
            )
        if document.status_of(stage_id) is not StageStatus.PENDING:
            logger.info(
                f"{entry_point}: '{stage_id}' is already "
                f"{document.status_of(stage_id).value}; reset it to run again"
            )
        return self._dispatcher.run(document, scope={stage_id})

    def resume(self, feature_id: str) -> RunOutcome:
        return self._dispatcher.run(self.load(feature_id))

    # -------------------------------------------------------------------------
    # Document lifecycle
    # -------------------------------------------------------------------------

    def begin(self, description: str, feature_id: str | None = None) -> Document:
        """Resume ``feature_id`` if it is stored, otherwise create a new Document."""
        if feature_id is not None and self._store.exists(feature_id):
            logger.info(f"Resuming existing feature '{feature_id}'")
            return self.load(feature_id)

        document = create_document(
            feature_id or new_feature_id(description),
            description,
            self._config.graph.stage_ids,
            pipeline_ref=self._config.pipeline_ref,
        )
        self._store.save(document)
        logger.info(f"Created feature '{document.feature_id}'")
        return document

    def load(self, feature_id: str) -> Document:
        """
        Load a stored Document and check it belongs to this pipeline.

        Raises:
            DocumentNotFound: If nothing is stored under ``feature_id``
            PipelineMismatchError: If it was created under another pipeline
        """
        document = self._store.load(feature_id)
        expected = document.pipeline_ref
        actual = self._config.pipeline_ref
        if expected and actual and expected != actual:
            raise PipelineMismatchError(feature_id, expected, actual)
        return document

    def reset(self, feature_id: str, stage_id: StageId, reason: str = "") -> Document:
        if stage_id not in self._config.graph:
            raise InvalidUpdate(f"Unknown stage: {stage_id}")
        document = reset_stage(
            self.load(feature_id), stage_id, USER_ROLE, self._clock(), reason
        )
        self._store.save(document)
        logger.info(f"Reset '{stage_id}' of '{feature_id}' to pending")
        return document

    def skip(self, feature_id: str, stage_id: StageId, reason: str = "") -> Document:
        """Skip an optional pending stage."""
        if stage_id not in self._config.graph:
            raise InvalidUpdate(f"Unknown stage: {stage_id}")
        if not self._config.graph.get(stage_id).optional:
            raise InvalidUpdate(f"Required stage '{stage_id}' cannot be skipped")
        document = skip_stage(
            self.load(feature_id), stage_id, USER_ROLE, self._clock(), reason
        )
        self._store.save(document)
        return document

    def decide(self, feature_id: str, value: BranchValue) -> Document:
        return self._dispatcher.decide_branch(self.load(feature_id), value)


def start(
    name: str,
    coordinator: Coordinator,
    description: str | None = None,
    feature_id: str | None = None,
) -> RunOutcome:
    """
    Run an entry point by name.

    Args:
        name: One of ENTRY_POINTS
        coordinator: Coordinator to run it on
        description: Task description (fresh entry points only)
        feature_id: Existing feature to resume (required for single-stage ones)

    Raises:
        KeyError: If ``name`` is not an entry point
        ValueError: If a required argument is missing
    """
    if name not in ENTRY_POINTS:
        raise KeyError(
            f"Unknown entry point '{name}'. Available: {', '.join(ENTRY_POINTS)}"
        )
    entry = ENTRY_POINTS[name]
    if entry.fresh:
        if not description and feature_id is None:
            raise ValueError(f"'{name}' needs a description")
        description = description or ""
        if name == "plan-only":
            return coordinator.plan_only(description, feature_id)
        return coordinator.full_workflow(description, feature_id)
    if feature_id is None:
        raise ValueError(f"'{name}' needs an existing feature id")
    return coordinator.single_stage(name, feature_id)
