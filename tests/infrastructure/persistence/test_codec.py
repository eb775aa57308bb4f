"""Tests for Document serialization."""

import json

import pytest

from featureflow.domain.document import (
    add_advisory,
    append_handoff,
    commit_stage,
    create_document,
    decide_branch,
)
from featureflow.domain.exceptions import DocumentFormatError
from featureflow.domain.models import (
    BranchValue,
    Document,
    HandoffEntry,
    HandoffOutcome,
    ProposedUpdate,
    RoleId,
    StageId,
)
from featureflow.infrastructure.persistence.codec import (
    document_from_dict,
    document_to_dict,
    parse_document,
    serialize_document,
)

STAGES = [StageId(s) for s in ("plan", "architecture", "implement", "modernize")]


@pytest.fixture
def busy_document() -> Document:
    """A Document with every section populated."""
    document = create_document("feat-042", "Dark mode", STAGES, pipeline_ref="ab" * 32)
    document = commit_stage(
        document,
        StageId("plan"),
        RoleId("planner"),
        ProposedUpdate(
            summary="Planned",
            artifact_refs=("docs/plan.md",),
            next_stage_hint=StageId("architecture"),
        ),
        "2025-01-01T00:00:00+00:00",
    )
    document = add_advisory(document, RoleId("architect"), ["keep the theme service"])
    document = append_handoff(
        document,
        HandoffEntry(
            stage_id=StageId("architecture"),
            executor_role=RoleId("architect"),
            timestamp="2025-01-01T00:00:01+00:00",
            summary="timed out",
            outcome=HandoffOutcome.RECOVERABLE_FAILURE,
            attempt=1,
            failure_category="timeout",
        ),
    )
    return decide_branch(
        document,
        BranchValue.B,
        StageId("architecture"),
        RoleId("user"),
        "2025-01-01T00:00:02+00:00",
        skip=[StageId("implement")],
    )


class TestRoundTrip:
    def test_fresh_document(self) -> None:
        document = create_document("feat-001", "", STAGES)
        assert parse_document(serialize_document(document)) == document

    def test_populated_document(self, busy_document: Document) -> None:
        assert parse_document(serialize_document(busy_document)) == busy_document

    def test_stage_order_preserved(self, busy_document: Document) -> None:
        data = document_to_dict(busy_document)
        assert [s["stage_id"] for s in data["stage_status"]] == list(STAGES)
        assert document_from_dict(data).stage_status == busy_document.stage_status


class TestFormat:
    def test_sections_present(self, busy_document: Document) -> None:
        data = json.loads(serialize_document(busy_document))
        assert data["format_version"] == "1.0"
        assert data["feature_id"] == "feat-042"
        assert data["branch_decision"] == "B"
        assert data["artifact_refs"] == ["docs/plan.md"]
        assert data["handoff_log"][1]["failure_category"] == "timeout"
        assert data["advisory"] == [{"role": "architect", "note": "keep the theme service"}]

    def test_invalid_json(self) -> None:
        with pytest.raises(DocumentFormatError, match="JSON"):
            parse_document("{not json")

    def test_not_an_object(self) -> None:
        with pytest.raises(DocumentFormatError):
            parse_document("[]")

    def test_schema_violation_names_location(self, busy_document: Document) -> None:
        data = document_to_dict(busy_document)
        data["stage_status"][0]["status"] = "done"
        with pytest.raises(DocumentFormatError, match="stage_status/0/status"):
            document_from_dict(data)

    def test_invalid_branch_value(self, busy_document: Document) -> None:
        data = document_to_dict(busy_document)
        data["branch_decision"] = "C"
        with pytest.raises(DocumentFormatError):
            document_from_dict(data)

    def test_duplicate_stage_ids(self, busy_document: Document) -> None:
        data = document_to_dict(busy_document)
        data["stage_status"].append(dict(data["stage_status"][0]))
        with pytest.raises(DocumentFormatError, match="duplicate"):
            document_from_dict(data)
