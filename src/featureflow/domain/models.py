"""
Domain models for the feature-development coordinator.

These are pure data structures. The shared Document and everything stored in
it are immutable (frozen dataclasses); a change to the Document always
produces a new version through the operations in featureflow.domain.document.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import NewType

StageId = NewType("StageId", str)
RoleId = NewType("RoleId", str)


# =============================================================================
# ENUMERATIONS
# =============================================================================


class StageStatus(str, Enum):
    """Per-stage progress recorded in the Document."""

    PENDING = "pending"
    COMPLETE = "complete"
    SKIPPED = "skipped"


class BranchValue(str, Enum):
    """The two alternative downstream paths of the branch stage."""

    A = "A"
    B = "B"


class StageKind(str, Enum):
    """Tagged variant of a stage definition, checked at config-load time."""

    STANDARD = "standard"
    BRANCH = "branch"
    OPTIONAL = "optional"
    TERMINAL = "terminal"


class MutationPermission(str, Enum):
    READ_ONLY = "read_only"
    READ_WRITE = "read_write"


class EscalationTier(str, Enum):
    """Reasoning tier an executor should use for a role."""

    HIGH_REASONING = "high-reasoning"
    BALANCED = "balanced"
    FAST = "fast"


class MutationTarget(str, Enum):
    """Document fields a role may propose changes to."""

    ARTIFACT_REFS = "artifact_refs"
    STAGE_STATUS = "stage_status"
    ADVISORY = "advisory"


class ResultStatus(str, Enum):
    """Outcome reported by an executor for one invocation."""

    SUCCESS = "success"
    RECOVERABLE_FAILURE = "recoverable_failure"
    FATAL_FAILURE = "fatal_failure"


class HandoffOutcome(str, Enum):
    """What a handoff log entry records."""

    COMPLETED = "completed"
    RECOVERABLE_FAILURE = "recoverable_failure"
    FATAL_FAILURE = "fatal_failure"
    ESCALATED = "escalated"
    REJECTED = "rejected"  # authorization or update validation refused
    BRANCH_DECIDED = "branch_decided"
    RESET = "reset"
    SKIPPED = "skipped"


UNCATEGORIZED = "uncategorized"


# =============================================================================
# STATIC CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class RoleDefinition:
    """Capability profile for an executor role."""

    role_id: RoleId
    permission: MutationPermission
    tier: EscalationTier
    targets: frozenset[MutationTarget] = frozenset()

    @property
    def read_only(self) -> bool:
        return self.permission is MutationPermission.READ_ONLY


@dataclass(frozen=True)
class StageDefinition:
    """One named unit of work in the Stage Graph."""

    stage_id: StageId
    role: RoleId
    kind: StageKind = StageKind.STANDARD
    required_predecessors: frozenset[StageId] = frozenset()
    branch_targets: Mapping[BranchValue, StageId] = field(default_factory=dict)
    path: BranchValue | None = None  # Side of the fork this stage belongs to
    instructions: str = ""

    @property
    def optional(self) -> bool:
        return self.kind is StageKind.OPTIONAL

    @property
    def is_branch(self) -> bool:
        return self.kind is StageKind.BRANCH

    @property
    def is_terminal(self) -> bool:
        return self.kind is StageKind.TERMINAL


# =============================================================================
# THE SHARED DOCUMENT
# =============================================================================


@dataclass(frozen=True)
class HandoffEntry:
    """Immutable record of one stage completion, failure or control event."""

    stage_id: StageId
    executor_role: RoleId
    timestamp: str  # ISO 8601
    summary: str
    outcome: HandoffOutcome
    artifact_refs: tuple[str, ...] = ()
    next_stage_hint: StageId | None = None
    attempt: int = 1
    failure_category: str | None = None


@dataclass(frozen=True)
class Document:
    """
    The single shared coordination document for one workflow run.

    Never mutated in place. The Dispatcher is the only component that commits
    new versions; executors only ever see snapshots.
    """

    feature_id: str
    description: str
    stage_status: tuple[tuple[StageId, StageStatus], ...]
    branch_decision: BranchValue | None = None
    artifact_refs: tuple[str, ...] = ()  # Insertion-ordered set, append-only
    handoff_log: tuple[HandoffEntry, ...] = ()
    advisory: tuple[tuple[RoleId, str], ...] = ()
    version: int = 0
    pipeline_ref: str = ""

    def status_of(self, stage_id: StageId) -> StageStatus:
        for sid, status in self.stage_status:
            if sid == stage_id:
                return status
        raise KeyError(f"Unknown stage: {stage_id}")

    def statuses(self) -> dict[StageId, StageStatus]:
        return dict(self.stage_status)

    def completed(self) -> frozenset[StageId]:
        return frozenset(
            sid for sid, status in self.stage_status if status is StageStatus.COMPLETE
        )

    def settled(self) -> frozenset[StageId]:
        """Stages that are complete or skipped."""
        return frozenset(
            sid for sid, status in self.stage_status if status is not StageStatus.PENDING
        )

    def notes_for(self, role_id: RoleId) -> tuple[str, ...]:
        return tuple(note for rid, note in self.advisory if rid == role_id)


# =============================================================================
# EXECUTOR CONTRACT
# =============================================================================


@dataclass(frozen=True)
class ProposedUpdate:
    """Changes an executor asks the Dispatcher to commit.

    Executors never mutate the Document; they return one of these.
    """

    summary: str = ""
    artifact_refs: tuple[str, ...] = ()
    stage_status: tuple[tuple[StageId, StageStatus], ...] = ()
    advisory_notes: tuple[str, ...] = ()
    next_stage_hint: StageId | None = None

    def touched_targets(self) -> frozenset[MutationTarget]:
        targets = set()
        if self.artifact_refs:
            targets.add(MutationTarget.ARTIFACT_REFS)
        if self.stage_status:
            targets.add(MutationTarget.STAGE_STATUS)
        if self.advisory_notes:
            targets.add(MutationTarget.ADVISORY)
        return frozenset(targets)


@dataclass(frozen=True)
class FailureDetail:
    """Structured failure report, e.g. a build verifier's compile errors."""

    category: str = UNCATEGORIZED
    detail: str = ""


@dataclass(frozen=True)
class StageResult:
    """Value returned by ExecutorInterface.invoke."""

    status: ResultStatus
    updates: ProposedUpdate = field(default_factory=ProposedUpdate)
    branch_value: BranchValue | None = None
    failure: FailureDetail | None = None

    @classmethod
    def success(
        cls,
        summary: str = "",
        artifact_refs: tuple[str, ...] = (),
        branch_value: BranchValue | None = None,
        advisory_notes: tuple[str, ...] = (),
        stage_status: tuple[tuple[StageId, StageStatus], ...] = (),
        next_stage_hint: StageId | None = None,
    ) -> StageResult:
        return cls(
            status=ResultStatus.SUCCESS,
            updates=ProposedUpdate(
                summary=summary,
                artifact_refs=tuple(artifact_refs),
                stage_status=tuple(stage_status),
                advisory_notes=tuple(advisory_notes),
                next_stage_hint=next_stage_hint,
            ),
            branch_value=branch_value,
        )

    @classmethod
    def recoverable(
        cls, detail: str, category: str = UNCATEGORIZED, summary: str = ""
    ) -> StageResult:
        return cls(
            status=ResultStatus.RECOVERABLE_FAILURE,
            updates=ProposedUpdate(summary=summary or detail),
            failure=FailureDetail(category=category, detail=detail),
        )

    @classmethod
    def fatal(cls, detail: str, summary: str = "") -> StageResult:
        return cls(
            status=ResultStatus.FATAL_FAILURE,
            updates=ProposedUpdate(summary=summary or detail),
            failure=FailureDetail(category=UNCATEGORIZED, detail=detail),
        )


@dataclass(frozen=True)
class TaskInput:
    """What an executor receives: the Document slice its role needs plus instructions."""

    feature_id: str
    stage_id: StageId
    role: RoleId
    tier: EscalationTier
    description: str
    instructions: str
    stage_status: tuple[tuple[StageId, StageStatus], ...]
    branch_decision: BranchValue | None
    artifact_refs: tuple[str, ...]
    recent_handoffs: tuple[HandoffEntry, ...]
    attempt: int = 1
    previous_failure: FailureDetail | None = None
    available_roles: tuple[RoleId, ...] = ()


# =============================================================================
# WORKFLOW STATE
# =============================================================================


class WorkflowState(str, Enum):
    """Workflow-level state reported by the Dispatcher."""

    RUNNING = "running"
    BLOCKED = "blocked"  # Needs input; not an error
    DONE = "done"
    HALTED = "halted"


class BlockReason(str, Enum):
    BRANCH_UNDECIDED = "branch_undecided"
    MISSING_PREDECESSORS = "missing_predecessors"
    NEEDS_USER_INPUT = "needs_user_input"  # Retry budget exhausted


class HaltReason(str, Enum):
    FATAL_FAILURE = "fatal_failure"
    PERMISSION_VIOLATION = "permission_violation"
    INVALID_UPDATE = "invalid_update"
    USER_CANCELLED = "user_cancelled"


class DispatchPhase(str, Enum):
    """Per-stage state machine of the Dispatcher."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    AWAITING_RESULT = "awaiting_result"
    APPLYING = "applying"
