"""
Scripted executor for testing and demos without real agents.

Returns predefined StageResults in sequence, either per stage or globally.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from featureflow.domain.exceptions import ConfigurationError
from featureflow.domain.interfaces import ExecutorInterface
from featureflow.domain.models import RoleId, StageId, StageResult, TaskInput
from featureflow.infrastructure.executors.wire import stage_result_from_dict


@dataclass(frozen=True)
class Invocation:
    role: RoleId
    stage_id: StageId
    task_input: TaskInput


class ScriptedExecutor(ExecutorInterface):
    """Returns predefined results and records every invocation."""

    def __init__(
        self,
        results: Mapping[str, Sequence[StageResult]] | Sequence[StageResult],
        default: StageResult | None = None,
    ):
        """
        Args:
            results: Either a stage id -> results mapping, consumed per stage,
                or one sequence consumed across all stages in call order
            default: Returned once a script is exhausted; without it an
                exhausted script raises RuntimeError
        """
        if isinstance(results, Mapping):
            self._per_stage: dict[str, list[StageResult]] | None = {
                stage: list(seq) for stage, seq in results.items()
            }
            self._global: list[StageResult] = []
        else:
            self._per_stage = None
            self._global = list(results)
        self._default = default
        self.invocations: list[Invocation] = []

    @classmethod
    def from_file(cls, path: Path | str) -> ScriptedExecutor:
        """
        Load a script from JSON: ``{"stage_id": [result, ...], "*": result}``.

        ``"*"`` is the default result for stages with no (remaining) script.
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read executor script {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Executor script {path} must be a JSON object")
        try:
            default = data.pop("*", None)
            return cls(
                {
                    stage: [stage_result_from_dict(r) for r in results]
                    for stage, results in data.items()
                },
                default=stage_result_from_dict(default) if default else None,
            )
        except (KeyError, ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid result in {path}: {e}") from e

    def invoke(
        self, role: RoleId, stage_id: StageId, task_input: TaskInput
    ) -> StageResult:
        self.invocations.append(Invocation(role, stage_id, task_input))
        queue = (
            self._per_stage.get(stage_id, [])
            if self._per_stage is not None
            else self._global
        )
        if queue:
            return queue.pop(0)
        if self._default is not None:
            return self._default
        raise RuntimeError(f"ScriptedExecutor exhausted results for '{stage_id}'")

    @property
    def call_count(self) -> int:
        return len(self.invocations)

    def stages_invoked(self) -> list[StageId]:
        return [inv.stage_id for inv in self.invocations]

    def roles_invoked(self) -> list[RoleId]:
        return [inv.role for inv in self.invocations]
