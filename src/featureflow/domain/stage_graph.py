"""
Stage Graph: the legal ordering of work.

Resolution is a pure function of (graph, document, scope). Stages declared in
the graph are enumerated and typed; nothing here inspects free text.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from featureflow.domain.exceptions import ConfigurationError, InvalidUpdate
from featureflow.domain.models import (
    BlockReason,
    BranchValue,
    Document,
    ProposedUpdate,
    StageDefinition,
    StageId,
    StageStatus,
)


@dataclass(frozen=True)
class NextStage:
    """A stage ready to be dispatched."""

    stage: StageDefinition


@dataclass(frozen=True)
class Done:
    """Every required stage in scope is complete or skipped."""

    pass


@dataclass(frozen=True)
class Blocked:
    """No stage is eligible; the caller must supply a decision or input."""

    reason: BlockReason
    stages: tuple[StageId, ...] = ()
    detail: str = ""


Resolution = NextStage | Done | Blocked


class StageGraph:
    """
    Directed graph of named stages with predecessor constraints,
    one optional branch node and optional stages.

    Declaration order is significant: it is the tie-break between
    equally eligible stages.
    """

    def __init__(self, stages: Sequence[StageDefinition]):
        self._stages: tuple[StageDefinition, ...] = tuple(stages)
        self._index: dict[StageId, StageDefinition] = {}
        for stage in self._stages:
            if stage.stage_id in self._index:
                raise ConfigurationError(f"Duplicate stage id: {stage.stage_id}")
            self._index[stage.stage_id] = stage
        self._validate()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def stages(self) -> tuple[StageDefinition, ...]:
        return self._stages

    @property
    def stage_ids(self) -> tuple[StageId, ...]:
        return tuple(s.stage_id for s in self._stages)

    def get(self, stage_id: StageId) -> StageDefinition:
        if stage_id not in self._index:
            raise KeyError(f"Unknown stage: {stage_id}")
        return self._index[stage_id]

    def __contains__(self, stage_id: object) -> bool:
        return stage_id in self._index

    @property
    def branch_stage(self) -> StageDefinition | None:
        for stage in self._stages:
            if stage.is_branch:
                return stage
        return None

    def path_stages(self, value: BranchValue) -> tuple[StageId, ...]:
        return tuple(s.stage_id for s in self._stages if s.path is value)

    def off_path_stages(self, value: BranchValue) -> tuple[StageId, ...]:
        """Stages that belong to the path not chosen by ``value``."""
        return tuple(
            s.stage_id for s in self._stages if s.path is not None and s.path is not value
        )

    def ancestors(self, stage_id: StageId) -> frozenset[StageId]:
        """Transitive predecessors of a stage."""
        seen: set[StageId] = set()
        stack = list(self.get(stage_id).required_predecessors)
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._index[current].required_predecessors)
        return frozenset(seen)

    def missing_predecessors(
        self, document: Document, stage_id: StageId
    ) -> tuple[StageId, ...]:
        settled = self._effective_settled(document, frozenset(self._index))
        stage = self.get(stage_id)
        return tuple(
            sid for sid in self.stage_ids if sid in stage.required_predecessors and sid not in settled
        )

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def next(
        self, document: Document, scope: Iterable[StageId] | None = None
    ) -> Resolution:
        """
        Resolve the next stage to dispatch.

        Args:
            document: Current Document snapshot
            scope: Stages considered for this run; anything outside the
                scope is treated as skipped. Defaults to the whole graph.

        Returns:
            NextStage, Done or Blocked
        """
        in_scope = frozenset(scope) if scope is not None else frozenset(self._index)
        settled = self._effective_settled(document, in_scope)
        decision = document.branch_decision

        ready: list[StageDefinition] = []
        held: list[StageDefinition] = []
        for stage in self._stages:
            if stage.stage_id in settled:
                continue
            if not stage.required_predecessors <= settled:
                continue
            if stage.path is not None and decision is None:
                held.append(stage)
            else:
                ready.append(stage)

        if ready:
            primary = [s for s in ready if decision is not None and s.path is decision]
            return NextStage((primary or ready)[0])

        unsettled_required = [
            s.stage_id for s in self._stages if s.stage_id not in settled and not s.optional
        ]
        if not unsettled_required:
            return Done()

        if held:
            return Blocked(
                reason=BlockReason.BRANCH_UNDECIDED,
                stages=tuple(s.stage_id for s in held),
                detail="Branch decision (A or B) required before these stages can run",
            )

        missing = sorted(
            {
                pred
                for sid in unsettled_required
                for pred in self._index[sid].required_predecessors
                if pred not in settled
            }
        )
        return Blocked(
            reason=BlockReason.MISSING_PREDECESSORS,
            stages=tuple(StageId(m) for m in missing),
            detail="Predecessor stages are not complete: " + ", ".join(missing),
        )

    def _effective_settled(
        self, document: Document, in_scope: frozenset[StageId]
    ) -> frozenset[StageId]:
        settled = set(document.settled())
        settled |= set(self._index) - in_scope
        if document.branch_decision is not None:
            settled |= set(self.off_path_stages(document.branch_decision))
        return frozenset(settled)

    # -------------------------------------------------------------------------
    # Update validation
    # -------------------------------------------------------------------------

    def validate_update(
        self,
        stage_id: StageId,
        update: ProposedUpdate,
        branch_value: BranchValue | None,
    ) -> None:
        """
        Check a proposed update against the graph shape.

        Raises:
            InvalidUpdate: If the update references unknown stages, skips a
                required stage, un-checks a stage or carries a branch value
                from a non-branch stage.
        """
        stage = self.get(stage_id)
        if branch_value is not None and not stage.is_branch:
            raise InvalidUpdate(
                f"Stage '{stage_id}' is not a branch stage but returned a branch value"
            )
        for other_id, status in update.stage_status:
            if other_id not in self._index:
                raise InvalidUpdate(f"Update references unknown stage: {other_id}")
            if other_id == stage_id:
                raise InvalidUpdate(
                    f"Stage '{stage_id}' cannot set its own status; the dispatcher does"
                )
            if status is StageStatus.PENDING:
                raise InvalidUpdate(
                    f"Update may not move '{other_id}' to pending; use an explicit reset"
                )
            if status is StageStatus.SKIPPED and not self._index[other_id].optional:
                raise InvalidUpdate(f"Required stage '{other_id}' cannot be skipped")

    # -------------------------------------------------------------------------
    # Structural validation
    # -------------------------------------------------------------------------

    def _validate(self) -> None:
        for stage in self._stages:
            unknown = stage.required_predecessors - set(self._index)
            if unknown:
                raise ConfigurationError(
                    f"Stage '{stage.stage_id}' requires unknown stages: {sorted(unknown)}"
                )
            if stage.branch_targets and not stage.is_branch:
                raise ConfigurationError(
                    f"Stage '{stage.stage_id}' declares branch targets but is not a branch"
                )
            for pred in stage.required_predecessors:
                if self._index[pred].is_terminal:
                    raise ConfigurationError(
                        f"Terminal stage '{pred}' cannot be a predecessor of '{stage.stage_id}'"
                    )

        branches = [s for s in self._stages if s.is_branch]
        if len(branches) > 1:
            raise ConfigurationError(
                f"At most one branch stage allowed, found: {[s.stage_id for s in branches]}"
            )
        if not branches and any(s.path is not None for s in self._stages):
            raise ConfigurationError("Path stages declared without a branch stage")
        if branches:
            self._validate_branch(branches[0])

        self._check_acyclic()

    def _validate_branch(self, branch: StageDefinition) -> None:
        if branch.path is not None:
            raise ConfigurationError(
                f"Branch stage '{branch.stage_id}' cannot itself belong to a path"
            )
        if set(branch.branch_targets) != set(BranchValue):
            raise ConfigurationError(
                f"Branch stage '{branch.stage_id}' must declare targets for A and B"
            )
        for value, target in branch.branch_targets.items():
            if target not in self._index:
                raise ConfigurationError(
                    f"Branch target '{target}' for {value.value} is not a stage"
                )
            if self._index[target].path is not value:
                raise ConfigurationError(
                    f"Branch target '{target}' must be declared on path {value.value}"
                )

    def _check_acyclic(self) -> None:
        remaining = {s.stage_id: set(s.required_predecessors) for s in self._stages}
        while remaining:
            free = [sid for sid, preds in remaining.items() if not preds]
            if not free:
                raise ConfigurationError(
                    f"Dependency cycle among stages: {sorted(remaining)}"
                )
            for sid in free:
                del remaining[sid]
            for preds in remaining.values():
                preds.difference_update(free)
