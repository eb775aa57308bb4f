"""
JSON wire format between the coordinator and external executors.

Task input goes out as a JSON object; a StageResult comes back as:

    {
      "status": "success" | "recoverable_failure" | "fatal_failure",
      "summary": "...",
      "artifact_refs": ["..."],
      "stage_status": {"review": "skipped"},
      "advisory_notes": ["..."],
      "next_stage_hint": "build",
      "branch_value": "A" | "B",
      "failure": {"category": "state-management", "detail": "..."}
    }

Only ``status`` is required.
"""

from __future__ import annotations

from typing import Any

from featureflow.domain.models import (
    UNCATEGORIZED,
    BranchValue,
    FailureDetail,
    ProposedUpdate,
    ResultStatus,
    StageId,
    StageResult,
    StageStatus,
    TaskInput,
)


def task_input_to_dict(task_input: TaskInput) -> dict[str, Any]:
    failure = task_input.previous_failure
    return {
        "feature_id": task_input.feature_id,
        "stage_id": task_input.stage_id,
        "role": task_input.role,
        "tier": task_input.tier.value,
        "description": task_input.description,
        "instructions": task_input.instructions,
        "stage_status": {sid: st.value for sid, st in task_input.stage_status},
        "branch_decision": (
            task_input.branch_decision.value if task_input.branch_decision else None
        ),
        "artifact_refs": list(task_input.artifact_refs),
        "recent_handoffs": [
            {
                "stage_id": e.stage_id,
                "executor_role": e.executor_role,
                "timestamp": e.timestamp,
                "summary": e.summary,
                "outcome": e.outcome.value,
            }
            for e in task_input.recent_handoffs
        ],
        "attempt": task_input.attempt,
        "previous_failure": (
            {"category": failure.category, "detail": failure.detail} if failure else None
        ),
        "available_roles": list(task_input.available_roles),
    }


def _strings(data: dict[str, Any], key: str) -> tuple[str, ...]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{key}' must be a list of strings")
    return tuple(value)


def _failure(raw: Any, summary: str) -> FailureDetail:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("'failure' must be an object")
    category = raw.get("category", UNCATEGORIZED)
    detail = raw.get("detail", summary)
    if not isinstance(category, str) or not isinstance(detail, str):
        raise ValueError("'failure' category and detail must be strings")
    return FailureDetail(category=category, detail=detail)


def stage_result_from_dict(data: dict[str, Any]) -> StageResult:
    """
    Build a StageResult from an executor's JSON reply.

    Raises:
        ValueError: If a field has an unknown value or the wrong shape
        KeyError: If ``status`` is missing
    """
    status = ResultStatus(data["status"])

    raw_status = data.get("stage_status", {})
    if isinstance(raw_status, dict):
        pairs = raw_status.items()
    else:
        pairs = ((item["stage_id"], item["status"]) for item in raw_status)
    stage_status = tuple((StageId(sid), StageStatus(st)) for sid, st in pairs)

    hint = data.get("next_stage_hint")
    updates = ProposedUpdate(
        summary=str(data.get("summary", "")),
        artifact_refs=_strings(data, "artifact_refs"),
        stage_status=stage_status,
        advisory_notes=_strings(data, "advisory_notes"),
        next_stage_hint=StageId(hint) if hint else None,
    )

    failure = None
    if status is not ResultStatus.SUCCESS:
        failure = _failure(data.get("failure"), updates.summary)

    branch = data.get("branch_value")
    return StageResult(
        status=status,
        updates=updates,
        branch_value=BranchValue(branch) if branch else None,
        failure=failure,
    )
