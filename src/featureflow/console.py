"""Rich console output for the featureflow CLI."""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from featureflow.application.dispatcher import RunOutcome
from featureflow.domain.models import (
    Document,
    HandoffEntry,
    StageStatus,
    WorkflowState,
)
from featureflow.domain.pipeline import PipelineConfig

# Shared console instances
console = Console()
error_console = Console(stderr=True)

_STATUS_STYLE = {
    StageStatus.PENDING: "yellow",
    StageStatus.COMPLETE: "green",
    StageStatus.SKIPPED: "dim",
}


def print_header(title: str, subtitle: str | None = None) -> None:
    """Print a styled header panel."""
    content = Text(title, style="bold blue")
    if subtitle:
        content.append(f"\n{subtitle}", style="dim")
    console.print(Panel(content, expand=False))


def print_error(message: str, hint: str | None = None) -> None:
    """Print formatted error message to stderr."""
    content = Text(f"ERROR: {message}", style="bold red")
    if hint:
        content.append(f"\n\nHint: {hint}", style="yellow")
    error_console.print(Panel(content, title="Error", border_style="red"))


def print_handoff_log(entries: Sequence[HandoffEntry], title: str = "Handoff log") -> None:
    table = Table(title=title, show_header=True, box=None)
    table.add_column("#", style="cyan", width=3)
    table.add_column("Stage", style="magenta")
    table.add_column("Role")
    table.add_column("Outcome")
    table.add_column("Try", width=3)
    table.add_column("Summary")
    for i, entry in enumerate(entries, 1):
        outcome = entry.outcome.value
        if entry.failure_category:
            outcome += f" [{entry.failure_category}]"
        table.add_row(
            str(i),
            entry.stage_id,
            entry.executor_role,
            outcome,
            str(entry.attempt),
            entry.summary.split("\n")[0][:80],
        )
    console.print(table)


def print_document(document: Document) -> None:
    """Print a Document's stage table, branch decision and artifacts."""
    print_header(
        f"Feature {document.feature_id}",
        f"{document.description}\nversion {document.version}",
    )
    table = Table(show_header=True, box=None)
    table.add_column("Stage", style="cyan")
    table.add_column("Status")
    for stage_id, status in document.stage_status:
        table.add_row(stage_id, Text(status.value, style=_STATUS_STYLE[status]))
    console.print(table)

    branch = document.branch_decision.value if document.branch_decision else "undecided"
    console.print(f"\n[bold]Branch:[/bold] {branch}")
    if document.artifact_refs:
        console.print("[bold]Artifacts:[/bold]")
        for ref in document.artifact_refs:
            console.print(f"  {ref}")
    if document.advisory:
        console.print("[bold]Advisory notes:[/bold]")
        for role, note in document.advisory:
            console.print(f"  ({role}) {note}")
    if document.handoff_log:
        console.print()
        print_handoff_log(document.handoff_log[-10:], title="Recent handoffs")


def print_outcome(outcome: RunOutcome) -> None:
    """Print what the run ended with and what the user has to do next."""
    feature = outcome.document.feature_id
    if outcome.state is WorkflowState.DONE:
        console.print(
            Panel(outcome.user_message(), title="Done", border_style="green")
        )
    elif outcome.state is WorkflowState.BLOCKED:
        console.print(
            Panel(
                outcome.user_message(),
                title=f"Blocked: {feature}",
                border_style="yellow",
            )
        )
    else:
        reason = outcome.halt_reason.value if outcome.halt_reason else "halted"
        console.print(
            Panel(
                Text(outcome.error, style="bold red"),
                title=f"Halted ({reason}): {feature}",
                border_style="red",
            )
        )
        if outcome.log_tail:
            print_handoff_log(outcome.log_tail, title="Log leading to the halt")


def print_roles(config: PipelineConfig) -> None:
    """Print the role registry with the stages each role is bound to."""
    bound: dict[str, list[str]] = {}
    for stage in config.graph.stages:
        bound.setdefault(stage.role, []).append(stage.stage_id)
    rerouted = {role: cat for cat, role in config.retry.categories.items()}

    table = Table(title=f"Roles in {config.name}", show_header=True, box=None)
    table.add_column("Role", style="cyan")
    table.add_column("Permission")
    table.add_column("Tier")
    table.add_column("Targets")
    table.add_column("Stages")
    for role in config.roles:
        targets = ", ".join(
            sorted(t.value for t in config.roles.permitted_targets(role.role_id))
        )
        stages = ", ".join(bound.get(role.role_id, []))
        if role.role_id in rerouted:
            stages = (stages + f" (fixes {rerouted[role.role_id]})").strip()
        table.add_row(
            role.role_id, role.permission.value, role.tier.value, targets, stages
        )
    console.print(table)


def print_pipeline(config: PipelineConfig) -> None:
    print_header(
        f"{config.name} v{config.version}", f"ref {config.pipeline_ref[:12]}"
    )
    for stage in config.graph.stages:
        requires = ", ".join(sorted(stage.required_predecessors))
        extra = f" (requires: {requires})" if requires else ""
        path = f" [path {stage.path.value}]" if stage.path else ""
        console.print(
            f"  {stage.stage_id}: {stage.kind.value} -> {stage.role}{path}{extra}"
        )
    console.print(f"\nRetry: max {config.retry.max_attempts} attempts")
    for category, role in config.retry.categories.items():
        console.print(f"  {category} -> {role}")
