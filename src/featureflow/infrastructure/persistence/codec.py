"""
Document (de)serialisation.

The persisted format is JSON with the sections FeatureId, StageStatus
(ordered stage/status pairs), BranchDecision, ArtifactRefs and HandoffLog,
plus description, version, pipeline_ref and advisory notes.
``parse_document(serialize_document(d)) == d`` holds for every valid Document.
"""

from __future__ import annotations

import json
from typing import Any

import jsonschema

from featureflow.domain.exceptions import DocumentFormatError
from featureflow.domain.models import (
    BranchValue,
    Document,
    HandoffEntry,
    HandoffOutcome,
    RoleId,
    StageId,
    StageStatus,
)
from featureflow.schemas import validate_document

FORMAT_VERSION = "1.0"


def document_to_dict(document: Document) -> dict[str, Any]:
    """Serialize a Document to a JSON-compatible dict."""
    return {
        "format_version": FORMAT_VERSION,
        "feature_id": document.feature_id,
        "description": document.description,
        "version": document.version,
        "pipeline_ref": document.pipeline_ref,
        "stage_status": [
            {"stage_id": sid, "status": status.value}
            for sid, status in document.stage_status
        ],
        "branch_decision": (
            document.branch_decision.value if document.branch_decision else None
        ),
        "artifact_refs": list(document.artifact_refs),
        "advisory": [{"role": role, "note": note} for role, note in document.advisory],
        "handoff_log": [_entry_to_dict(entry) for entry in document.handoff_log],
    }


def _entry_to_dict(entry: HandoffEntry) -> dict[str, Any]:
    return {
        "stage_id": entry.stage_id,
        "executor_role": entry.executor_role,
        "timestamp": entry.timestamp,
        "summary": entry.summary,
        "outcome": entry.outcome.value,
        "artifact_refs": list(entry.artifact_refs),
        "next_stage_hint": entry.next_stage_hint,
        "attempt": entry.attempt,
        "failure_category": entry.failure_category,
    }


def document_from_dict(data: dict[str, Any]) -> Document:
    """
    Deserialize a Document from its JSON dict.

    Raises:
        DocumentFormatError: If the data does not match document.schema.json
    """
    try:
        validate_document(data)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "(root)"
        raise DocumentFormatError(f"Invalid document at {location}: {e.message}") from e

    stage_ids = [item["stage_id"] for item in data["stage_status"]]
    if len(set(stage_ids)) != len(stage_ids):
        raise DocumentFormatError("Invalid document: duplicate stage ids")

    branch = data["branch_decision"]
    return Document(
        feature_id=data["feature_id"],
        description=data.get("description", ""),
        stage_status=tuple(
            (StageId(item["stage_id"]), StageStatus(item["status"]))
            for item in data["stage_status"]
        ),
        branch_decision=BranchValue(branch) if branch is not None else None,
        artifact_refs=tuple(data["artifact_refs"]),
        handoff_log=tuple(_entry_from_dict(e) for e in data["handoff_log"]),
        advisory=tuple(
            (RoleId(item["role"]), item["note"]) for item in data.get("advisory", [])
        ),
        version=data.get("version", 0),
        pipeline_ref=data.get("pipeline_ref", ""),
    )


def _entry_from_dict(data: dict[str, Any]) -> HandoffEntry:
    hint = data.get("next_stage_hint")
    return HandoffEntry(
        stage_id=StageId(data["stage_id"]),
        executor_role=RoleId(data["executor_role"]),
        timestamp=data["timestamp"],
        summary=data["summary"],
        outcome=HandoffOutcome(data["outcome"]),
        artifact_refs=tuple(data.get("artifact_refs", [])),
        next_stage_hint=StageId(hint) if hint is not None else None,
        attempt=data.get("attempt", 1),
        failure_category=data.get("failure_category"),
    )


def serialize_document(document: Document) -> str:
    return json.dumps(document_to_dict(document), indent=2)


def parse_document(text: str) -> Document:
    """
    Parse a serialized Document.

    Raises:
        DocumentFormatError: If the text is not valid JSON or fails the schema
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DocumentFormatError(f"Invalid document JSON: {e}") from e
    if not isinstance(data, dict):
        raise DocumentFormatError(
            f"Expected a JSON object, got {type(data).__name__}"
        )
    return document_from_dict(data)
