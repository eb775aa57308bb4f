"""
Executor that shells out to an external agent command.

The task input is written to the command's stdin as JSON; the command must
print a single StageResult JSON object (see ``wire``) on stdout. The role and
stage are also exported as FEATUREFLOW_ROLE and FEATUREFLOW_STAGE.
"""

from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from featureflow.domain.interfaces import ExecutorInterface
from featureflow.domain.models import RoleId, StageId, StageResult, TaskInput
from featureflow.domain.summary import condense
from featureflow.infrastructure.executors.wire import (
    stage_result_from_dict,
    task_input_to_dict,
)

logger = logging.getLogger(__name__)

TIMEOUT = "timeout"


class SubprocessExecutor(ExecutorInterface):
    """
    Runs one external process per invocation.

    A non-zero exit status or unparsable output is a fatal failure. A timeout
    is recoverable (category ``timeout``) so the retry policy can bound it.
    """

    def __init__(
        self,
        command: Sequence[str] | str,
        timeout: float = 1800.0,
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
    ):
        """
        Args:
            command: Command line, as a list or a shell-style string
            timeout: Seconds to wait for one invocation
            cwd: Working directory for the command
            env: Extra environment variables
        """
        self._command = shlex.split(command) if isinstance(command, str) else list(command)
        if not self._command:
            raise ValueError("SubprocessExecutor needs a command")
        self._timeout = timeout
        self._cwd = str(cwd) if cwd is not None else None
        self._env = dict(env or {})

    @property
    def command(self) -> list[str]:
        return list(self._command)

    def invoke(
        self, role: RoleId, stage_id: StageId, task_input: TaskInput
    ) -> StageResult:
        env = {
            **os.environ,
            **self._env,
            "FEATUREFLOW_ROLE": role,
            "FEATUREFLOW_STAGE": stage_id,
        }
        payload = json.dumps(task_input_to_dict(task_input))
        logger.debug(f"Running {shlex.join(self._command)} for '{stage_id}'")
        try:
            proc = subprocess.run(
                self._command,
                input=payload,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                cwd=self._cwd,
                env=env,
            )
        except subprocess.TimeoutExpired:
            return StageResult.recoverable(
                f"Executor command timed out after {self._timeout}s", category=TIMEOUT
            )
        except OSError as e:
            return StageResult.fatal(f"Cannot run executor command: {e}")

        if proc.stderr:
            logger.debug(f"[{stage_id}] stderr: {condense(proc.stderr)}")
        if proc.returncode != 0:
            return StageResult.fatal(
                f"Executor command exited with status {proc.returncode}: "
                f"{condense(proc.stderr or proc.stdout)}"
            )
        return self._parse(proc.stdout)

    @staticmethod
    def _parse(stdout: str) -> StageResult:
        try:
            data = json.loads(stdout)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            return stage_result_from_dict(data)
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            return StageResult.fatal(
                f"Unparsable executor output ({e}): {condense(stdout, 200)}"
            )
