"""
Condensed, human-actionable summaries.

Escalation surfaces a short summary (category, attempt count, last failure
detail) rather than raw internal state. Halts surface the handoff log tail.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from featureflow.domain.models import Document, HandoffEntry, RoleId, StageId

MAX_DETAIL_CHARS = 400


def error_signature(detail: str) -> str:
    """First non-empty line of a failure detail, e.g. the first compiler error."""
    for line in detail.splitlines():
        stripped = line.strip()
        if stripped:
            return stripped[:120]
    return ""


def condense(detail: str, limit: int = MAX_DETAIL_CHARS) -> str:
    text = detail.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


@dataclass(frozen=True)
class EscalationSummary:
    """What the user needs to know to unblock an exhausted stage."""

    stage_id: StageId
    category: str
    attempts: int
    last_detail: str
    roles_tried: tuple[RoleId, ...] = ()

    @property
    def signature(self) -> str:
        return error_signature(self.last_detail)

    def user_prompt(self) -> str:
        tried = ", ".join(self.roles_tried) if self.roles_tried else "originating role"
        return (
            f"Stage '{self.stage_id}' failed {self.attempts} times "
            f"(category: {self.category}; tried: {tried}).\n"
            f"Last failure: {condense(self.last_detail)}\n"
            "Fix the issue or adjust the plan, then resume the workflow."
        )


def log_tail(document: Document, count: int = 5) -> tuple[HandoffEntry, ...]:
    """The last ``count`` handoff entries, oldest first."""
    if count <= 0:
        return ()
    return document.handoff_log[-count:]


def format_entries(entries: Sequence[HandoffEntry]) -> str:
    lines = []
    for entry in entries:
        line = (
            f"[{entry.timestamp}] {entry.stage_id} ({entry.executor_role}) "
            f"{entry.outcome.value} #{entry.attempt}: {entry.summary}"
        )
        if entry.failure_category:
            line += f" [{entry.failure_category}]"
        lines.append(line)
    return "\n".join(lines)
