"""
featureflow command line interface.

Usage:
    featureflow full-workflow "Add offline mode" --command "my-agent --json"
    featureflow decide add-offline-mode-1a2b3c4d A
    featureflow build-only --feature-id add-offline-mode-1a2b3c4d
    featureflow status add-offline-mode-1a2b3c4d

Exit codes: 0 done, 2 blocked (input needed), 1 halted or error.
"""

from __future__ import annotations

import signal
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import wraps
from pathlib import Path
from typing import Any, TypeVar

import click

from featureflow import __version__
from featureflow.application.cancellation import CancellationToken
from featureflow.application.dispatcher import RunOutcome
from featureflow.application.entrypoints import ENTRY_POINTS, Coordinator, start
from featureflow.console import (
    console,
    print_document,
    print_error,
    print_outcome,
    print_pipeline,
    print_roles,
)
from featureflow.domain.exceptions import (
    BranchAlreadyDecided,
    ConfigurationError,
    DocumentFormatError,
    DocumentNotFound,
    InvalidUpdate,
    PipelineMismatchError,
)
from featureflow.domain.interfaces import ExecutorInterface
from featureflow.domain.models import (
    BranchValue,
    RoleId,
    StageId,
    StageResult,
    TaskInput,
    WorkflowState,
)
from featureflow.domain.pipeline import PipelineConfig
from featureflow.domain.stage_graph import Blocked, NextStage, Resolution
from featureflow.infrastructure.config_loader import (
    load_default_pipeline,
    load_pipeline,
)
from featureflow.infrastructure.executors import ScriptedExecutor, SubprocessExecutor
from featureflow.infrastructure.persistence import FilesystemDocumentStore
from featureflow.infrastructure.registry import ExecutorRegistry
from featureflow.logging_setup import setup_logging

DEFAULT_STORE_DIR = ".featureflow"

EXIT_CODES = {
    WorkflowState.DONE: 0,
    WorkflowState.BLOCKED: 2,
    WorkflowState.HALTED: 1,
}

# Errors that end a command with a message instead of a traceback
_USER_ERRORS = (
    ConfigurationError,
    DocumentNotFound,
    DocumentFormatError,
    PipelineMismatchError,
    BranchAlreadyDecided,
    InvalidUpdate,
    ValueError,
)


F = TypeVar("F", bound=Callable[..., Any])


def store_options(func: F) -> F:
    """
    Decorator adding the options every command needs.

    Options added:
        --config: Path to a pipeline JSON (default: bundled pipeline)
        --store-dir: Directory holding feature documents
        --log-file: Path to log file
        -v/--verbose: Enable verbose logging
    """

    @click.option(
        "--config",
        "config_path",
        default=None,
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Pipeline configuration JSON (default: bundled feature-development pipeline)",
    )
    @click.option(
        "--store-dir",
        default=DEFAULT_STORE_DIR,
        show_default=True,
        type=click.Path(file_okay=False, path_type=Path),
        help="Directory for feature documents",
    )
    @click.option(
        "--log-file",
        default=None,
        type=click.Path(dir_okay=False),
        help="Path to log file",
    )
    @click.option(
        "-v",
        "--verbose",
        is_flag=True,
        help="Enable verbose (DEBUG) logging to console",
    )
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def executor_options(func: F) -> F:
    """
    Decorator adding executor selection options.

    Options added:
        --executor: Executor name (subprocess, scripted or an installed plugin)
        --command: Agent command for the subprocess executor
        --script: Results file for the scripted executor
    """

    @click.option(
        "--executor",
        "executor_name",
        default="subprocess",
        show_default=True,
        help="Executor to run stages with",
    )
    @click.option(
        "--command",
        default=None,
        envvar="FEATUREFLOW_AGENT_COMMAND",
        help="Agent command for the subprocess executor",
    )
    @click.option(
        "--script",
        default=None,
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="JSON results file for the scripted executor",
    )
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


# =============================================================================
# Helpers
# =============================================================================


def _load_config(config_path: Path | None) -> PipelineConfig:
    if config_path is None:
        return load_default_pipeline()
    return load_pipeline(config_path)


def _build_executor(
    name: str, command: str | None, script: Path | None
) -> ExecutorInterface:
    if name == "scripted":
        if script is None:
            raise click.UsageError("--script is required with --executor scripted")
        return ScriptedExecutor.from_file(script)
    if name == "subprocess":
        if not command:
            raise click.UsageError(
                "--command (or FEATUREFLOW_AGENT_COMMAND) is required with "
                "--executor subprocess"
            )
        return SubprocessExecutor(command)
    try:
        return ExecutorRegistry.create(name, **({"command": command} if command else {}))
    except KeyError as e:
        raise click.UsageError(str(e.args[0])) from None


@contextmanager
def _cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Turn Ctrl-C into a cancellation honoured at the next suspension point."""

    def handler(signum: int, frame: Any) -> None:
        token.cancel("interrupted by user")

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


@contextmanager
def _user_errors() -> Iterator[None]:
    try:
        yield
    except _USER_ERRORS as e:
        message = e.args[0] if isinstance(e, KeyError) and e.args else str(e)
        print_error(str(message))
        raise SystemExit(1) from None


def _coordinator(
    config_path: Path | None,
    store_dir: Path,
    executor: ExecutorInterface | None = None,
    cancellation: CancellationToken | None = None,
) -> Coordinator:
    config = _load_config(config_path)
    return Coordinator(
        config,
        executor or _NoExecutor(),
        FilesystemDocumentStore(store_dir),
        cancellation=cancellation,
    )


class _NoExecutor(ExecutorInterface):
    """Placeholder for commands that never dispatch a stage."""

    def invoke(
        self, role: RoleId, stage_id: StageId, task_input: TaskInput
    ) -> StageResult:
        raise RuntimeError("This command does not run stages")


def _run_entry_point(
    name: str,
    description: str | None,
    feature_id: str | None,
    config_path: Path | None,
    store_dir: Path,
    executor_name: str,
    command: str | None,
    script: Path | None,
) -> None:
    token = CancellationToken()
    with _user_errors():
        executor = _build_executor(executor_name, command, script)
        coordinator = _coordinator(config_path, store_dir, executor, token)
        with _cancel_on_interrupt(token):
            outcome: RunOutcome = start(
                name, coordinator, description=description, feature_id=feature_id
            )
    console.print(f"[bold]Feature:[/bold] {outcome.document.feature_id}")
    print_outcome(outcome)
    raise SystemExit(EXIT_CODES[outcome.state])


# =============================================================================
# Commands
# =============================================================================


@click.group()
@click.version_option(__version__, prog_name="featureflow")
def cli() -> None:
    """featureflow: sequence specialised agents through a feature pipeline.

    All coordination state lives in one document per feature; agents only
    propose updates, and the dispatcher is the single point that commits them.
    """
    pass


@cli.command("full-workflow")
@click.argument("description")
@click.option("--feature-id", default=None, help="Resume this feature if it exists")
@store_options
@executor_options
def full_workflow(
    description: str,
    feature_id: str | None,
    config_path: Path | None,
    store_dir: Path,
    log_file: str | None,
    verbose: bool,
    executor_name: str,
    command: str | None,
    script: Path | None,
) -> None:
    """Run every stage, starting at the first one."""
    setup_logging("featureflow", log_file, verbose)
    _run_entry_point(
        "full-workflow",
        description,
        feature_id,
        config_path,
        store_dir,
        executor_name,
        command,
        script,
    )


@cli.command("plan-only")
@click.argument("description")
@click.option("--feature-id", default=None, help="Resume this feature if it exists")
@store_options
@executor_options
def plan_only(
    description: str,
    feature_id: str | None,
    config_path: Path | None,
    store_dir: Path,
    log_file: str | None,
    verbose: bool,
    executor_name: str,
    command: str | None,
    script: Path | None,
) -> None:
    """Run planning only; every later stage is treated as skipped."""
    setup_logging("featureflow", log_file, verbose)
    _run_entry_point(
        "plan-only",
        description,
        feature_id,
        config_path,
        store_dir,
        executor_name,
        command,
        script,
    )


def _single_stage_command(name: str) -> click.Command:
    @click.option("--feature-id", required=True, help="Feature to run the stage on")
    @store_options
    @executor_options
    def run_stage(
        feature_id: str,
        config_path: Path | None,
        store_dir: Path,
        log_file: str | None,
        verbose: bool,
        executor_name: str,
        command: str | None,
        script: Path | None,
    ) -> None:
        setup_logging("featureflow", log_file, verbose)
        _run_entry_point(
            name,
            None,
            feature_id,
            config_path,
            store_dir,
            executor_name,
            command,
            script,
        )

    help_text = (
        f"{ENTRY_POINTS[name].help}.\n\n"
        "Blocked without running anything if its predecessors are not complete."
    )
    return click.command(name, help=help_text)(run_stage)


for _name, _entry in ENTRY_POINTS.items():
    if not _entry.fresh:
        cli.add_command(_single_stage_command(_name))


@cli.command()
@click.argument("feature_id")
@store_options
@executor_options
def resume(
    feature_id: str,
    config_path: Path | None,
    store_dir: Path,
    log_file: str | None,
    verbose: bool,
    executor_name: str,
    command: str | None,
    script: Path | None,
) -> None:
    """Continue a stored feature from its last committed state."""
    setup_logging("featureflow", log_file, verbose)
    token = CancellationToken()
    with _user_errors():
        executor = _build_executor(executor_name, command, script)
        coordinator = _coordinator(config_path, store_dir, executor, token)
        with _cancel_on_interrupt(token):
            outcome = coordinator.resume(feature_id)
    print_outcome(outcome)
    raise SystemExit(EXIT_CODES[outcome.state])


@cli.command()
@click.argument("feature_id", required=False)
@store_options
def status(
    feature_id: str | None,
    config_path: Path | None,
    store_dir: Path,
    log_file: str | None,
    verbose: bool,
) -> None:
    """Show a feature's document, or list stored features."""
    setup_logging("featureflow", log_file, verbose)
    with _user_errors():
        coordinator = _coordinator(config_path, store_dir)
        if feature_id is None:
            ids = coordinator.store.list_feature_ids()
            if not ids:
                console.print("No features stored.")
                return
            for fid in ids:
                console.print(f"  {fid}")
            return
        document = coordinator.load(feature_id)
        print_document(document)
        resolution = coordinator.dispatcher.next(document)
    console.print(f"\n[bold]Next:[/bold] {_describe(resolution)}")


def _describe(resolution: Resolution) -> str:
    if isinstance(resolution, NextStage):
        return f"{resolution.stage.stage_id} ({resolution.stage.role})"
    if isinstance(resolution, Blocked):
        return f"blocked ({resolution.reason.value}): {resolution.detail}"
    return "done"


@cli.command()
@click.argument("feature_id")
@click.argument("stage_id")
@click.option("--reason", default="", help="Why the stage is being reset")
@store_options
def reset(
    feature_id: str,
    stage_id: str,
    reason: str,
    config_path: Path | None,
    store_dir: Path,
    log_file: str | None,
    verbose: bool,
) -> None:
    """Move a stage back to pending so it runs again."""
    setup_logging("featureflow", log_file, verbose)
    with _user_errors():
        document = _coordinator(config_path, store_dir).reset(
            feature_id, StageId(stage_id), reason
        )
    console.print(
        f"Reset [cyan]{stage_id}[/cyan] of {feature_id} (version {document.version})"
    )


@cli.command()
@click.argument("feature_id")
@click.argument("stage_id")
@click.option("--reason", default="", help="Why the stage is skipped")
@store_options
def skip(
    feature_id: str,
    stage_id: str,
    reason: str,
    config_path: Path | None,
    store_dir: Path,
    log_file: str | None,
    verbose: bool,
) -> None:
    """Skip an optional stage (e.g. review)."""
    setup_logging("featureflow", log_file, verbose)
    with _user_errors():
        document = _coordinator(config_path, store_dir).skip(
            feature_id, StageId(stage_id), reason
        )
    console.print(
        f"Skipped [cyan]{stage_id}[/cyan] of {feature_id} (version {document.version})"
    )


@cli.command()
@click.argument("feature_id")
@click.argument("value", type=click.Choice([v.value for v in BranchValue]))
@store_options
def decide(
    feature_id: str,
    value: str,
    config_path: Path | None,
    store_dir: Path,
    log_file: str | None,
    verbose: bool,
) -> None:
    """Record the branch decision (A or B) for a feature."""
    setup_logging("featureflow", log_file, verbose)
    with _user_errors():
        document = _coordinator(config_path, store_dir).decide(
            feature_id, BranchValue(value)
        )
    console.print(
        f"Branch for {feature_id} decided: [bold]{value}[/bold] "
        f"(version {document.version})"
    )


@cli.command()
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Pipeline configuration JSON (default: bundled pipeline)",
)
def roles(config_path: Path | None) -> None:
    """List the available roles (agents) and what they may change."""
    with _user_errors():
        config = _load_config(config_path)
    print_roles(config)


@cli.command("validate-config")
@click.argument(
    "path",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
def validate_config(path: Path | None) -> None:
    """Validate a pipeline configuration (default: the bundled one)."""
    with _user_errors():
        config = _load_config(path)
    print_pipeline(config)
    console.print("\n[green]Configuration is valid.[/green]")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
