"""
Parallel Fan-out Helper.

Runs independent sub-tasks concurrently, each producing one disjoint region
of an output (e.g. sections of a generated document), and merges them.

Sub-tasks share no mutable state: each returns its content and the merge
happens afterwards on the calling thread, in declaration order. A failing
sub-task does not cancel its siblings; its region is left as an explicit gap.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass

from featureflow.domain.interfaces import ExecutorInterface
from featureflow.domain.models import RoleId, StageId, StageResult, TaskInput

logger = logging.getLogger(__name__)

PARTIAL_MERGE = "partial-merge"
GAP_MARKER = "<!-- GAP: {region} ({error}) -->"


@dataclass(frozen=True)
class SubTask:
    """One unit of fan-out work. ``region`` must be unique within a fan-out."""

    region: str
    run: Callable[[], str]


@dataclass(frozen=True)
class Gap:
    region: str
    error: str


@dataclass(frozen=True)
class MergedResult:
    """Merged output of a fan-out, in declaration order, with gaps marked."""

    regions: tuple[str, ...]
    sections: Mapping[str, str]
    gaps: tuple[Gap, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.gaps

    def render(self, separator: str = "\n\n") -> str:
        gap_errors = {gap.region: gap.error for gap in self.gaps}
        parts = []
        for region in self.regions:
            if region in gap_errors:
                parts.append(GAP_MARKER.format(region=region, error=gap_errors[region]))
            else:
                parts.append(self.sections[region])
        return separator.join(parts)

    def gap_summary(self) -> str:
        return "; ".join(f"{gap.region}: {gap.error}" for gap in self.gaps)


class ParallelFanOut:
    """Thread-pool fan-out with continue-all failure handling."""

    def __init__(self, max_workers: int = 4):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._max_workers = max_workers

    def run(self, tasks: Sequence[SubTask]) -> MergedResult:
        """
        Run all sub-tasks and merge their output.

        Args:
            tasks: Sub-tasks writing to pairwise distinct regions

        Returns:
            MergedResult; ``complete`` is False if any sub-task failed

        Raises:
            ValueError: If two sub-tasks claim the same region
        """
        regions = tuple(task.region for task in tasks)
        duplicates = sorted({r for r in regions if regions.count(r) > 1})
        if duplicates:
            raise ValueError(f"Sub-tasks must write disjoint regions: {duplicates}")
        if not tasks:
            return MergedResult(regions=(), sections={})

        outcomes: dict[str, str | BaseException] = {}
        workers = min(self._max_workers, len(tasks))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures: dict[Future[str], str] = {
                pool.submit(task.run): task.region for task in tasks
            }
            for future in as_completed(futures):
                region = futures[future]
                try:
                    outcomes[region] = future.result()
                except Exception as e:
                    logger.warning(f"Fan-out region '{region}' failed: {e}")
                    outcomes[region] = e

        # Single-threaded merge
        sections: dict[str, str] = {}
        gaps: list[Gap] = []
        for region in regions:
            outcome = outcomes[region]
            if isinstance(outcome, BaseException):
                gaps.append(Gap(region, f"{type(outcome).__name__}: {outcome}"))
            else:
                sections[region] = outcome
        logger.debug(f"Fan-out merged {len(sections)}/{len(regions)} regions")
        return MergedResult(regions=regions, sections=sections, gaps=tuple(gaps))


SectionBuilder = Callable[[TaskInput], str]


class SectionedExecutor(ExecutorInterface):
    """
    Executor that produces a stage's output as concurrently built sections.

    A complete merge is a success. A partial merge is a recoverable failure
    (category ``partial-merge``) unless ``allow_partial`` is set, in which case
    it succeeds with the gaps marked in the output.
    """

    def __init__(
        self,
        sections: Mapping[StageId, Sequence[tuple[str, SectionBuilder]]],
        sink: Callable[[TaskInput, str], str] | None = None,
        fallback: ExecutorInterface | None = None,
        allow_partial: bool = False,
        fan_out: ParallelFanOut | None = None,
    ):
        """
        Args:
            sections: Stage -> ordered (region, builder) pairs
            sink: Persists rendered output and returns its artifact ref
            fallback: Executor for stages without sections
            allow_partial: Accept merges with gaps as success
            fan_out: Fan-out helper to use (4 workers by default)
        """
        self._sections = sections
        self._sink = sink
        self._fallback = fallback
        self._allow_partial = allow_partial
        self._fan_out = fan_out or ParallelFanOut()

    def invoke(
        self, role: RoleId, stage_id: StageId, task_input: TaskInput
    ) -> StageResult:
        builders = self._sections.get(stage_id)
        if builders is None:
            if self._fallback is None:
                return StageResult.fatal(f"No sections configured for stage '{stage_id}'")
            return self._fallback.invoke(role, stage_id, task_input)

        tasks = [
            SubTask(region, _bind(builder, task_input)) for region, builder in builders
        ]
        merged = self._fan_out.run(tasks)
        if not merged.complete and not self._allow_partial:
            return StageResult.recoverable(
                f"Partial merge, missing sections: {merged.gap_summary()}",
                category=PARTIAL_MERGE,
            )

        refs: tuple[str, ...] = ()
        if self._sink is not None:
            refs = (self._sink(task_input, merged.render()),)
        summary = f"Merged {len(merged.sections)}/{len(merged.regions)} sections"
        if merged.gaps:
            summary += f" (gaps: {', '.join(g.region for g in merged.gaps)})"
        return StageResult.success(summary=summary, artifact_refs=refs)


def _bind(builder: SectionBuilder, task_input: TaskInput) -> Callable[[], str]:
    return lambda: builder(task_input)
