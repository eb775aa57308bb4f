"""
Retry/Escalation Policy.

Bounds the cost of recoverable failures. Each failed attempt is classified
into a category; the category selects the role that re-runs the same stage.
Once the attempt budget is spent the policy always escalates to the user.

With max_attempts = 3 a stage is attempted at most 4 times: the original
dispatch plus three retries. The fourth failure escalates.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from featureflow.domain.exceptions import ConfigurationError
from featureflow.domain.models import (
    UNCATEGORIZED,
    FailureDetail,
    RoleId,
    StageDefinition,
    StageId,
)
from featureflow.domain.summary import EscalationSummary

DEFAULT_MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class RetryHere:
    """Re-dispatch the stage with its own role."""

    stage_id: StageId
    role: RoleId
    category: str


@dataclass(frozen=True)
class RerouteTo:
    """Re-dispatch the same stage bound to a different role for this attempt."""

    stage_id: StageId
    role: RoleId
    category: str


@dataclass(frozen=True)
class Escalate:
    """Stop retrying and ask the user."""

    summary: EscalationSummary

    @property
    def user_prompt(self) -> str:
        return self.summary.user_prompt()


RetryDecision = RetryHere | RerouteTo | Escalate


class RetryPolicy:
    """Bounded-attempt loop with classification-based rerouting."""

    def __init__(
        self,
        categories: Mapping[str, RoleId] | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        """
        Args:
            categories: Failure category -> role that should fix it.
                ``uncategorized`` always maps to the originating role and
                may not be overridden.
            max_attempts: Retries allowed before escalating
        """
        if max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {max_attempts}")
        categories = dict(categories or {})
        if UNCATEGORIZED in categories:
            raise ConfigurationError(
                f"'{UNCATEGORIZED}' always maps to the originating role"
            )
        self._categories = MappingProxyType(categories)
        self._max_attempts = max_attempts

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def categories(self) -> Mapping[str, RoleId]:
        return self._categories

    def classify(self, failure: FailureDetail) -> str:
        """Known category, or ``uncategorized``."""
        if failure.category in self._categories:
            return failure.category
        return UNCATEGORIZED

    def role_for(self, category: str, originating_role: RoleId) -> RoleId:
        return self._categories.get(category, originating_role)

    def handle(
        self,
        stage: StageDefinition,
        failure: FailureDetail,
        attempt: int,
        roles_tried: tuple[RoleId, ...] = (),
    ) -> RetryDecision:
        """
        Decide what happens after a recoverable failure.

        Args:
            stage: Stage that failed (its identity never changes on retry)
            failure: Reported failure
            attempt: 1-based number of the attempt that just failed
            roles_tried: Roles used so far, for the escalation summary

        Returns:
            RetryHere, RerouteTo or Escalate
        """
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")

        category = self.classify(failure)
        if attempt > self._max_attempts:
            return Escalate(
                EscalationSummary(
                    stage_id=stage.stage_id,
                    category=category,
                    attempts=attempt,
                    last_detail=failure.detail,
                    roles_tried=roles_tried,
                )
            )

        role = self.role_for(category, stage.role)
        if role == stage.role:
            return RetryHere(stage.stage_id, role, category)
        return RerouteTo(stage.stage_id, role, category)
