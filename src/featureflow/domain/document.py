"""
Document Store operations.

Pure functions over the immutable Document. Each public operation that
represents a commit returns a new Document with ``version`` incremented;
none of them modify their input. The rules enforced here:

- stage status is monotonic: pending -> complete|skipped, complete -> complete,
  skipped -> skipped; only reset_stage moves a stage back to pending
- the branch decision is set at most once
- artifact refs and the handoff log are append-only
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from featureflow.domain.exceptions import (
    BranchAlreadyDecided,
    InvalidUpdate,
    MonotonicityViolation,
)
from featureflow.domain.models import (
    BranchValue,
    Document,
    HandoffEntry,
    HandoffOutcome,
    ProposedUpdate,
    RoleId,
    StageId,
    StageStatus,
)

_ALLOWED_TRANSITIONS: dict[StageStatus, frozenset[StageStatus]] = {
    StageStatus.PENDING: frozenset(
        {StageStatus.PENDING, StageStatus.COMPLETE, StageStatus.SKIPPED}
    ),
    StageStatus.COMPLETE: frozenset({StageStatus.COMPLETE}),
    StageStatus.SKIPPED: frozenset({StageStatus.SKIPPED}),
}


def create_document(
    feature_id: str,
    description: str,
    stage_ids: Iterable[StageId],
    pipeline_ref: str = "",
) -> Document:
    """Create a fresh Document with every stage pending."""
    stage_status = tuple((sid, StageStatus.PENDING) for sid in stage_ids)
    if len({sid for sid, _ in stage_status}) != len(stage_status):
        raise InvalidUpdate("Duplicate stage ids in document")
    return Document(
        feature_id=feature_id,
        description=description,
        stage_status=stage_status,
        pipeline_ref=pipeline_ref,
    )


def set_stage_status(
    document: Document, stage_id: StageId, status: StageStatus
) -> Document:
    """Return a copy with one stage moved forward. Does not bump the version."""
    current = _current_status(document, stage_id)
    if status not in _ALLOWED_TRANSITIONS[current]:
        raise MonotonicityViolation(stage_id, current, status)
    if status is current:
        return document
    return replace(
        document,
        stage_status=tuple(
            (sid, status if sid == stage_id else st)
            for sid, st in document.stage_status
        ),
    )


def add_artifact_refs(document: Document, refs: Iterable[str]) -> Document:
    """Append new refs, ignoring ones already recorded."""
    existing = list(document.artifact_refs)
    seen = set(existing)
    for ref in refs:
        if ref not in seen:
            existing.append(ref)
            seen.add(ref)
    if len(existing) == len(document.artifact_refs):
        return document
    return replace(document, artifact_refs=tuple(existing))


def add_advisory(document: Document, role_id: RoleId, notes: Iterable[str]) -> Document:
    added = tuple((role_id, note) for note in notes)
    if not added:
        return document
    return replace(document, advisory=document.advisory + added)


def with_branch_decision(document: Document, value: BranchValue) -> Document:
    """Return a copy with the branch decided. Does not bump the version."""
    if document.branch_decision is not None:
        raise BranchAlreadyDecided(document.branch_decision, value)
    return replace(document, branch_decision=value)


def append_handoff(document: Document, entry: HandoffEntry) -> Document:
    """Commit a handoff entry on its own (failures, escalations, rejections)."""
    return _bump(replace(document, handoff_log=document.handoff_log + (entry,)))


def commit_stage(
    document: Document,
    stage_id: StageId,
    role_id: RoleId,
    update: ProposedUpdate,
    timestamp: str,
    attempt: int = 1,
    branch_value: BranchValue | None = None,
    skip: Iterable[StageId] = (),
) -> Document:
    """
    Apply an authorized update atomically and mark the stage complete.

    ``skip`` lists stages left behind by a branch decision; they are marked
    skipped in the same commit.

    Either every change lands in the returned Document or, if any rule is
    violated, an exception is raised and the input Document is untouched.
    """
    updated = document
    if branch_value is not None:
        updated = with_branch_decision(updated, branch_value)
    updated = _skip_pending(updated, skip)
    updated = add_artifact_refs(updated, update.artifact_refs)
    for other_id, status in update.stage_status:
        updated = set_stage_status(updated, other_id, status)
    updated = add_advisory(updated, role_id, update.advisory_notes)
    updated = set_stage_status(updated, stage_id, StageStatus.COMPLETE)

    summary = update.summary or f"{stage_id} complete"
    entry = HandoffEntry(
        stage_id=stage_id,
        executor_role=role_id,
        timestamp=timestamp,
        summary=summary,
        outcome=HandoffOutcome.COMPLETED,
        artifact_refs=tuple(update.artifact_refs),
        next_stage_hint=update.next_stage_hint,
        attempt=attempt,
    )
    return append_handoff(updated, entry)


def decide_branch(
    document: Document,
    value: BranchValue,
    stage_id: StageId,
    role_id: RoleId,
    timestamp: str,
    skip: Iterable[StageId] = (),
) -> Document:
    """Set the branch decision outside a stage commit and skip the other path."""
    updated = with_branch_decision(document, value)
    updated = _skip_pending(updated, skip)
    entry = HandoffEntry(
        stage_id=stage_id,
        executor_role=role_id,
        timestamp=timestamp,
        summary=f"Branch decided: {value.value}",
        outcome=HandoffOutcome.BRANCH_DECIDED,
    )
    return append_handoff(updated, entry)


def skip_stage(
    document: Document, stage_id: StageId, role_id: RoleId, timestamp: str, reason: str = ""
) -> Document:
    updated = set_stage_status(document, stage_id, StageStatus.SKIPPED)
    entry = HandoffEntry(
        stage_id=stage_id,
        executor_role=role_id,
        timestamp=timestamp,
        summary=reason or f"{stage_id} skipped",
        outcome=HandoffOutcome.SKIPPED,
    )
    return append_handoff(updated, entry)


def reset_stage(
    document: Document, stage_id: StageId, role_id: RoleId, timestamp: str, reason: str = ""
) -> Document:
    """The explicit reset operation: the only way back to pending."""
    _current_status(document, stage_id)
    updated = replace(
        document,
        stage_status=tuple(
            (sid, StageStatus.PENDING if sid == stage_id else st)
            for sid, st in document.stage_status
        ),
    )
    entry = HandoffEntry(
        stage_id=stage_id,
        executor_role=role_id,
        timestamp=timestamp,
        summary=reason or f"{stage_id} reset to pending",
        outcome=HandoffOutcome.RESET,
    )
    return append_handoff(updated, entry)


def _current_status(document: Document, stage_id: StageId) -> StageStatus:
    try:
        return document.status_of(stage_id)
    except KeyError as e:
        raise InvalidUpdate(f"Unknown stage: {stage_id}") from e


def _skip_pending(document: Document, stage_ids: Iterable[StageId]) -> Document:
    for sid in stage_ids:
        if document.status_of(sid) is StageStatus.PENDING:
            document = set_stage_status(document, sid, StageStatus.SKIPPED)
    return document


def _bump(document: Document) -> Document:
    return replace(document, version=document.version + 1)
