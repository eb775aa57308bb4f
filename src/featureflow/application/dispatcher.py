"""
Dispatcher: the workflow's control loop.

Reads the Document, asks the Stage Graph for the next stage, invokes the
executor bound to it, and is the sole commit point for the result.
Exactly one stage is active at a time; that invariant, not a lock, is what
keeps the Document consistent.

Per stage:   idle -> dispatching -> awaiting_result -> applying -> idle
Per run:     running -> blocked(reason) | done | halted(error)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from featureflow.application.cancellation import CancellationToken
from featureflow.domain.document import (
    append_handoff,
    commit_stage,
    decide_branch,
)
from featureflow.domain.exceptions import (
    BranchAlreadyDecided,
    InvalidUpdate,
    MonotonicityViolation,
    PermissionViolation,
)
from featureflow.domain.interfaces import DocumentStoreInterface, ExecutorInterface
from featureflow.domain.models import (
    BlockReason,
    BranchValue,
    DispatchPhase,
    Document,
    FailureDetail,
    HaltReason,
    HandoffEntry,
    HandoffOutcome,
    ResultStatus,
    RoleId,
    StageDefinition,
    StageId,
    StageResult,
    StageStatus,
    TaskInput,
    WorkflowState,
)
from featureflow.domain.pipeline import PipelineConfig
from featureflow.domain.retry_policy import Escalate
from featureflow.domain.stage_graph import Blocked, Done, Resolution
from featureflow.domain.summary import (
    EscalationSummary,
    condense,
    format_entries,
    log_tail,
)

logger = logging.getLogger(__name__)

USER_ROLE = RoleId("user")
DISPATCHER_ROLE = RoleId("dispatcher")


@dataclass(frozen=True)
class PhaseTransition:
    """One recorded move of the per-stage state machine."""

    stage_id: StageId
    source: DispatchPhase
    target: DispatchPhase
    attempt: int


@dataclass(frozen=True)
class RunOutcome:
    """Where a run stopped and what the caller has to do next."""

    state: WorkflowState
    document: Document
    blocked: Blocked | None = None
    halt_reason: HaltReason | None = None
    escalation: EscalationSummary | None = None
    error: str = ""
    log_tail: tuple[HandoffEntry, ...] = ()

    @property
    def needs_input(self) -> bool:
        return self.state is WorkflowState.BLOCKED

    def user_message(self) -> str:
        """Exactly what decision or input is needed, or why the run halted."""
        if self.state is WorkflowState.DONE:
            return f"Workflow for '{self.document.feature_id}' is complete."
        if self.state is WorkflowState.BLOCKED:
            if self.escalation is not None:
                return self.escalation.user_prompt()
            if self.blocked is None:
                return "Blocked: input needed"
            if self.blocked.reason is BlockReason.BRANCH_UNDECIDED:
                return (
                    "A branch decision is needed: choose A or B to continue "
                    f"(waiting stages: {', '.join(self.blocked.stages)})."
                )
            return self.blocked.detail or "Blocked: " + self.blocked.reason.value
        reason = self.halt_reason.value if self.halt_reason else "halted"
        message = f"Workflow halted ({reason}): {self.error}"
        if self.log_tail:
            message += "\n" + format_entries(self.log_tail)
        return message


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


class Dispatcher:
    """
    Sequences executors through the Stage Graph.

    The Document is passed in and returned; the Dispatcher never holds on to
    a mutable copy. When a store is given, every committed version is saved
    so that a stale document is always a valid resumption point.
    """

    def __init__(
        self,
        config: PipelineConfig,
        executor: ExecutorInterface,
        store: DocumentStoreInterface | None = None,
        clock: Callable[[], str] | None = None,
        cancellation: CancellationToken | None = None,
        log_tail_size: int = 5,
        handoff_window: int = 5,
    ):
        """
        Args:
            config: Static pipeline configuration
            executor: The task-performing mechanism for all roles
            store: Where committed Document versions are persisted
            clock: Returns ISO 8601 timestamps (UTC now by default)
            cancellation: Abort flag checked at the suspension point
            log_tail_size: Handoff entries surfaced when a run halts
            handoff_window: Recent handoff entries included in task input
        """
        self._config = config
        self._executor = executor
        self._store = store
        self._clock = clock or utc_now
        self._cancellation = cancellation or CancellationToken()
        self._log_tail_size = log_tail_size
        self._handoff_window = handoff_window
        self._active: StageId | None = None
        self._phase = DispatchPhase.IDLE
        self.transitions: list[PhaseTransition] = []

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def cancellation(self) -> CancellationToken:
        return self._cancellation

    @property
    def phase(self) -> DispatchPhase:
        return self._phase

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def next(
        self, document: Document, scope: Iterable[StageId] | None = None
    ) -> Resolution:
        return self._config.graph.next(document, scope)

    def run(
        self, document: Document, scope: Iterable[StageId] | None = None
    ) -> RunOutcome:
        """
        Drive the workflow until it is done, blocked or halted.

        Args:
            document: Current Document (fresh or resumed)
            scope: Optional subset of stages this run may dispatch

        Returns:
            RunOutcome carrying the last committed Document
        """
        if self._active is not None:
            raise RuntimeError(
                f"Stage '{self._active}' is still active; only one stage may run at a time"
            )
        scope = frozenset(scope) if scope is not None else None
        logger.info(
            f"Running '{document.feature_id}' (v{document.version}) "
            f"on pipeline '{self._config.name}'"
        )

        while True:
            resolution = self.next(document, scope)
            if isinstance(resolution, Done):
                logger.info(f"Workflow '{document.feature_id}' done")
                return RunOutcome(state=WorkflowState.DONE, document=document)
            if isinstance(resolution, Blocked):
                logger.info(
                    f"Workflow '{document.feature_id}' blocked: {resolution.reason.value}"
                )
                return RunOutcome(
                    state=WorkflowState.BLOCKED, document=document, blocked=resolution
                )

            document, outcome = self._run_stage(document, resolution.stage)
            if outcome is not None:
                return outcome

    def decide_branch(self, document: Document, value: BranchValue) -> Document:
        """
        Record a branch decision supplied from outside (usually the user).

        Raises:
            BranchAlreadyDecided: If the branch was already decided
            InvalidUpdate: If the pipeline has no branch stage, or the branch
                stage has not completed yet (it gets the first say)
        """
        branch = self._config.graph.branch_stage
        if branch is None:
            raise InvalidUpdate(f"Pipeline '{self._config.name}' has no branch stage")
        if document.status_of(branch.stage_id) is not StageStatus.COMPLETE:
            raise InvalidUpdate(
                f"Branch stage '{branch.stage_id}' has not completed yet"
            )
        updated = decide_branch(
            document,
            value,
            stage_id=branch.stage_id,
            role_id=USER_ROLE,
            timestamp=self._clock(),
            skip=self._config.graph.off_path_stages(value),
        )
        self._save(updated)
        logger.info(f"Branch for '{document.feature_id}' decided: {value.value}")
        return updated

    # -------------------------------------------------------------------------
    # One stage, including its retries
    # -------------------------------------------------------------------------

    def _run_stage(
        self, document: Document, stage: StageDefinition
    ) -> tuple[Document, RunOutcome | None]:
        role = stage.role
        roles_tried: list[RoleId] = [role]
        attempt = 1
        previous_failure: FailureDetail | None = None
        self._active = stage.stage_id
        try:
            while True:
                self._transition(stage.stage_id, DispatchPhase.DISPATCHING, attempt)
                task_input = self._build_task_input(
                    document, stage, role, attempt, previous_failure
                )
                logger.info(
                    f"Dispatching '{stage.stage_id}' to '{role}' (attempt {attempt})"
                )

                self._transition(stage.stage_id, DispatchPhase.AWAITING_RESULT, attempt)
                if self._cancellation.cancelled:
                    return document, self._cancelled(document)
                result = self._invoke(role, stage.stage_id, task_input)
                if self._cancellation.cancelled:
                    logger.warning(
                        f"Discarding result of '{stage.stage_id}': run was cancelled"
                    )
                    return document, self._cancelled(document)

                self._transition(stage.stage_id, DispatchPhase.APPLYING, attempt)

                if result.status is ResultStatus.SUCCESS:
                    return self._apply_success(document, stage, role, result, attempt)

                failure = result.failure or FailureDetail(detail=result.updates.summary)
                if result.status is ResultStatus.FATAL_FAILURE:
                    return self._halt_on_fatal(document, stage, role, result, attempt)

                document = self._record_failure(document, stage, role, result, attempt)
                decision = self._config.retry.handle(
                    stage, failure, attempt, tuple(roles_tried)
                )
                if isinstance(decision, Escalate):
                    return self._escalate(document, stage, role, decision, attempt)

                logger.info(
                    f"Retrying '{stage.stage_id}' with '{decision.role}' "
                    f"(category: {decision.category})"
                )
                role = decision.role
                roles_tried.append(role)
                attempt += 1
                previous_failure = failure
                self._transition(stage.stage_id, DispatchPhase.IDLE, attempt - 1)
        finally:
            if self._phase is not DispatchPhase.IDLE:
                self._transition(stage.stage_id, DispatchPhase.IDLE, attempt)
            self._active = None

    def _invoke(self, role: RoleId, stage_id: StageId, task_input: TaskInput) -> StageResult:
        try:
            return self._executor.invoke(role, stage_id, task_input)
        except Exception as e:
            logger.exception(f"Executor raised while running '{stage_id}'")
            return StageResult.fatal(f"{type(e).__name__}: {e}")

    def _apply_success(
        self,
        document: Document,
        stage: StageDefinition,
        role: RoleId,
        result: StageResult,
        attempt: int,
    ) -> tuple[Document, RunOutcome | None]:
        graph = self._config.graph
        skip: tuple[StageId, ...] = ()
        if result.branch_value is not None:
            skip = graph.off_path_stages(result.branch_value)
        try:
            self._config.roles.enforce(role, result.updates, stage.stage_id)
            graph.validate_update(stage.stage_id, result.updates, result.branch_value)
            updated = commit_stage(
                document,
                stage.stage_id,
                role,
                result.updates,
                timestamp=self._clock(),
                attempt=attempt,
                branch_value=result.branch_value,
                skip=skip,
            )
        except PermissionViolation as e:
            return self._halt_on_rejection(
                document, stage, role, attempt, HaltReason.PERMISSION_VIOLATION, str(e)
            )
        except (InvalidUpdate, MonotonicityViolation, BranchAlreadyDecided) as e:
            return self._halt_on_rejection(
                document, stage, role, attempt, HaltReason.INVALID_UPDATE, str(e)
            )

        self._save(updated)
        logger.info(
            f"Committed '{stage.stage_id}' by '{role}' "
            f"(+{len(updated.artifact_refs) - len(document.artifact_refs)} artifacts, "
            f"v{updated.version})"
        )
        return updated, None

    # -------------------------------------------------------------------------
    # Failure paths: every failure is logged to the Document first
    # -------------------------------------------------------------------------

    def _record_failure(
        self,
        document: Document,
        stage: StageDefinition,
        role: RoleId,
        result: StageResult,
        attempt: int,
    ) -> Document:
        failure = result.failure or FailureDetail(detail=result.updates.summary)
        entry = HandoffEntry(
            stage_id=stage.stage_id,
            executor_role=role,
            timestamp=self._clock(),
            summary=condense(result.updates.summary or failure.detail),
            outcome=HandoffOutcome.RECOVERABLE_FAILURE,
            attempt=attempt,
            failure_category=self._config.retry.classify(failure),
        )
        updated = append_handoff(document, entry)
        self._save(updated)
        logger.warning(
            f"'{stage.stage_id}' attempt {attempt} failed "
            f"[{entry.failure_category}]: {condense(failure.detail, 120)}"
        )
        return updated

    def _escalate(
        self,
        document: Document,
        stage: StageDefinition,
        role: RoleId,
        decision: Escalate,
        attempt: int,
    ) -> tuple[Document, RunOutcome]:
        entry = HandoffEntry(
            stage_id=stage.stage_id,
            executor_role=role,
            timestamp=self._clock(),
            summary=decision.user_prompt,
            outcome=HandoffOutcome.ESCALATED,
            attempt=attempt,
            failure_category=decision.summary.category,
        )
        updated = append_handoff(document, entry)
        self._save(updated)
        logger.warning(
            f"Escalating '{stage.stage_id}' after {attempt} attempts "
            f"[{decision.summary.category}]"
        )
        return updated, RunOutcome(
            state=WorkflowState.BLOCKED,
            document=updated,
            blocked=Blocked(
                reason=BlockReason.NEEDS_USER_INPUT,
                stages=(stage.stage_id,),
                detail=decision.user_prompt,
            ),
            escalation=decision.summary,
        )

    def _halt_on_fatal(
        self,
        document: Document,
        stage: StageDefinition,
        role: RoleId,
        result: StageResult,
        attempt: int,
    ) -> tuple[Document, RunOutcome]:
        detail = result.failure.detail if result.failure else result.updates.summary
        entry = HandoffEntry(
            stage_id=stage.stage_id,
            executor_role=role,
            timestamp=self._clock(),
            summary=condense(detail),
            outcome=HandoffOutcome.FATAL_FAILURE,
            attempt=attempt,
        )
        updated = append_handoff(document, entry)
        self._save(updated)
        logger.error(f"'{stage.stage_id}' failed fatally: {detail}")
        return updated, self._halted(updated, HaltReason.FATAL_FAILURE, detail)

    def _halt_on_rejection(
        self,
        document: Document,
        stage: StageDefinition,
        role: RoleId,
        attempt: int,
        reason: HaltReason,
        error: str,
    ) -> tuple[Document, RunOutcome]:
        entry = HandoffEntry(
            stage_id=stage.stage_id,
            executor_role=role,
            timestamp=self._clock(),
            summary=error,
            outcome=HandoffOutcome.REJECTED,
            attempt=attempt,
        )
        updated = append_handoff(document, entry)
        self._save(updated)
        logger.error(f"Rejected update from '{role}' at '{stage.stage_id}': {error}")
        return updated, self._halted(updated, reason, error)

    def _halted(self, document: Document, reason: HaltReason, error: str) -> RunOutcome:
        return RunOutcome(
            state=WorkflowState.HALTED,
            document=document,
            halt_reason=reason,
            error=error,
            log_tail=log_tail(document, self._log_tail_size),
        )

    def _cancelled(self, document: Document) -> RunOutcome:
        logger.warning(
            f"Workflow '{document.feature_id}' cancelled: {self._cancellation.reason}"
        )
        return self._halted(
            document, HaltReason.USER_CANCELLED, self._cancellation.reason
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _build_task_input(
        self,
        document: Document,
        stage: StageDefinition,
        role: RoleId,
        attempt: int,
        previous_failure: FailureDetail | None,
    ) -> TaskInput:
        instructions = stage.instructions
        if previous_failure is not None:
            instructions = (
                f"{instructions}\n\nPrevious attempt failed "
                f"[{previous_failure.category}]:\n{condense(previous_failure.detail)}"
            ).strip()
        return TaskInput(
            feature_id=document.feature_id,
            stage_id=stage.stage_id,
            role=role,
            tier=self._config.roles.get(role).tier,
            description=document.description,
            instructions=instructions,
            stage_status=document.stage_status,
            branch_decision=document.branch_decision,
            artifact_refs=document.artifact_refs,
            recent_handoffs=log_tail(document, self._handoff_window),
            attempt=attempt,
            previous_failure=previous_failure,
            available_roles=self._config.roles.role_ids,
        )

    def _transition(self, stage_id: StageId, target: DispatchPhase, attempt: int) -> None:
        source = self._phase
        self._phase = target
        self.transitions.append(PhaseTransition(stage_id, source, target, attempt))
        logger.debug(f"{stage_id}: {source.value} -> {target.value} (attempt {attempt})")

    def _save(self, document: Document) -> None:
        if self._store is not None:
            self._store.save(document)
