"""Tests for the parallel fan-out helper and the sectioned executor."""

import threading

import pytest

from featureflow.application.fanout import (
    GAP_MARKER,
    PARTIAL_MERGE,
    ParallelFanOut,
    SectionedExecutor,
    SubTask,
)
from featureflow.domain.models import (
    EscalationTier,
    ResultStatus,
    RoleId,
    StageId,
    StageResult,
    TaskInput,
)
from featureflow.infrastructure.executors.scripted import ScriptedExecutor


def _fail(message: str):  # noqa: ANN202
    def run() -> str:
        raise RuntimeError(message)

    return run


@pytest.fixture
def task_input() -> TaskInput:
    return TaskInput(
        feature_id="feat-001",
        stage_id=StageId("document"),
        role=RoleId("documenter"),
        tier=EscalationTier.FAST,
        description="Add offline mode",
        instructions="Write the docs",
        stage_status=(),
        branch_decision=None,
        artifact_refs=(),
        recent_handoffs=(),
    )


class TestParallelFanOut:
    def test_merges_in_declaration_order(self) -> None:
        result = ParallelFanOut().run(
            [SubTask("intro", lambda: "# Intro"), SubTask("usage", lambda: "## Usage")]
        )
        assert result.complete
        assert result.render() == "# Intro\n\n## Usage"

    def test_sub_tasks_run_concurrently(self) -> None:
        barrier = threading.Barrier(3, timeout=5)

        def section(name: str):  # noqa: ANN202
            def run() -> str:
                barrier.wait()
                return name

            return run

        result = ParallelFanOut(max_workers=3).run(
            [SubTask(name, section(name)) for name in ("a", "b", "c")]
        )
        assert result.complete
        assert result.render(",") == "a,b,c"

    def test_failure_leaves_gap_and_siblings_finish(self) -> None:
        finished = []

        def ok(name: str):  # noqa: ANN202
            def run() -> str:
                finished.append(name)
                return name

            return run

        result = ParallelFanOut(max_workers=2).run(
            [
                SubTask("a", ok("a")),
                SubTask("b", _fail("model timed out")),
                SubTask("c", ok("c")),
            ]
        )

        assert not result.complete
        assert sorted(finished) == ["a", "c"]
        assert [g.region for g in result.gaps] == ["b"]
        assert "model timed out" in result.gap_summary()
        rendered = result.render("|")
        assert rendered.startswith("a|")
        assert rendered.endswith("|c")
        assert GAP_MARKER.format(region="b", error="RuntimeError: model timed out") in rendered

    def test_overlapping_regions_rejected(self) -> None:
        with pytest.raises(ValueError, match="disjoint"):
            ParallelFanOut().run([SubTask("a", lambda: "1"), SubTask("a", lambda: "2")])

    def test_empty_fan_out(self) -> None:
        result = ParallelFanOut().run([])
        assert result.complete
        assert result.render() == ""

    def test_max_workers_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            ParallelFanOut(max_workers=0)


class TestSectionedExecutor:
    def test_complete_merge_is_success(self, task_input: TaskInput) -> None:
        written = {}

        def sink(ti: TaskInput, text: str) -> str:
            written[ti.feature_id] = text
            return f"docs/{ti.feature_id}.md"

        executor = SectionedExecutor(
            {
                StageId("document"): [
                    ("overview", lambda ti: f"# {ti.description}"),
                    ("usage", lambda ti: "Run it."),
                ]
            },
            sink=sink,
        )
        result = executor.invoke(RoleId("documenter"), StageId("document"), task_input)

        assert result.status is ResultStatus.SUCCESS
        assert result.updates.artifact_refs == ("docs/feat-001.md",)
        assert written["feat-001"] == "# Add offline mode\n\nRun it."

    def test_partial_merge_is_recoverable(self, task_input: TaskInput) -> None:
        executor = SectionedExecutor(
            {StageId("document"): [("overview", lambda ti: "x"), ("api", _raise)]}
        )
        result = executor.invoke(RoleId("documenter"), StageId("document"), task_input)

        assert result.status is ResultStatus.RECOVERABLE_FAILURE
        assert result.failure is not None
        assert result.failure.category == PARTIAL_MERGE
        assert "api" in result.failure.detail

    def test_partial_merge_allowed(self, task_input: TaskInput) -> None:
        executor = SectionedExecutor(
            {StageId("document"): [("overview", lambda ti: "x"), ("api", _raise)]},
            allow_partial=True,
        )
        result = executor.invoke(RoleId("documenter"), StageId("document"), task_input)

        assert result.status is ResultStatus.SUCCESS
        assert "gaps: api" in result.updates.summary

    def test_stage_without_sections_uses_fallback(self, task_input: TaskInput) -> None:
        fallback = ScriptedExecutor([StageResult.success(summary="from fallback")])
        executor = SectionedExecutor({}, fallback=fallback)

        result = executor.invoke(RoleId("planner"), StageId("plan"), task_input)

        assert result.updates.summary == "from fallback"
        assert fallback.stages_invoked() == ["plan"]

    def test_stage_without_sections_and_no_fallback_is_fatal(
        self, task_input: TaskInput
    ) -> None:
        result = SectionedExecutor({}).invoke(RoleId("planner"), StageId("plan"), task_input)
        assert result.status is ResultStatus.FATAL_FAILURE


def _raise(task_input: TaskInput) -> str:
    raise RuntimeError("no API docs")
