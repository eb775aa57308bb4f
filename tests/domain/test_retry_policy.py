"""Tests for the Retry/Escalation Policy."""

import pytest

from featureflow.domain.exceptions import ConfigurationError
from featureflow.domain.models import (
    UNCATEGORIZED,
    FailureDetail,
    RoleId,
    StageDefinition,
    StageId,
)
from featureflow.domain.retry_policy import Escalate, RerouteTo, RetryHere, RetryPolicy

BUILD = StageDefinition(StageId("build"), RoleId("build_verifier"))
STATE = FailureDetail("state-management", "error: cannot assign to 'count'")


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(
        categories={
            "state-management": RoleId("implementer"),
            "presentation-layer": RoleId("ui_specialist"),
            "verification": RoleId("build_verifier"),
        },
        max_attempts=3,
    )


class TestHandle:
    def test_known_category_reroutes_same_stage(self, policy: RetryPolicy) -> None:
        decision = policy.handle(BUILD, STATE, attempt=1)
        assert isinstance(decision, RerouteTo)
        assert decision.stage_id == "build"
        assert decision.role == "implementer"
        assert decision.category == "state-management"

    def test_uncategorized_goes_back_to_originating_role(
        self, policy: RetryPolicy
    ) -> None:
        decision = policy.handle(BUILD, FailureDetail(detail="??"), attempt=1)
        assert isinstance(decision, RetryHere)
        assert decision.role == "build_verifier"
        assert decision.category == UNCATEGORIZED

    def test_unknown_category_treated_as_uncategorized(
        self, policy: RetryPolicy
    ) -> None:
        decision = policy.handle(BUILD, FailureDetail("linker", "ld failed"), attempt=2)
        assert isinstance(decision, RetryHere)
        assert decision.category == UNCATEGORIZED

    def test_category_mapped_to_own_role_retries_here(self, policy: RetryPolicy) -> None:
        decision = policy.handle(BUILD, FailureDetail("verification", "x"), attempt=1)
        assert isinstance(decision, RetryHere)

    @pytest.mark.parametrize("max_attempts", [1, 2, 3, 5])
    def test_escalates_at_exactly_max_plus_one_attempts(self, max_attempts: int) -> None:
        policy = RetryPolicy({"state-management": RoleId("implementer")}, max_attempts)
        attempt = 1
        while True:
            decision = policy.handle(BUILD, STATE, attempt)
            if isinstance(decision, Escalate):
                break
            attempt += 1
        assert attempt == max_attempts + 1

    def test_escalation_summary(self, policy: RetryPolicy) -> None:
        decision = policy.handle(
            BUILD,
            STATE,
            attempt=4,
            roles_tried=(RoleId("build_verifier"), RoleId("implementer")),
        )
        assert isinstance(decision, Escalate)
        assert decision.summary.attempts == 4
        assert decision.summary.category == "state-management"
        prompt = decision.user_prompt
        assert "build" in prompt
        assert "4 times" in prompt
        assert "cannot assign" in prompt

    def test_attempt_must_be_positive(self, policy: RetryPolicy) -> None:
        with pytest.raises(ValueError):
            policy.handle(BUILD, STATE, attempt=0)


class TestConfiguration:
    def test_max_attempts_must_be_positive(self) -> None:
        with pytest.raises(ConfigurationError):
            RetryPolicy(max_attempts=0)

    def test_uncategorized_cannot_be_remapped(self) -> None:
        with pytest.raises(ConfigurationError):
            RetryPolicy({UNCATEGORIZED: RoleId("someone")})

    def test_categories_are_read_only(self, policy: RetryPolicy) -> None:
        with pytest.raises(TypeError):
            policy.categories["new"] = RoleId("x")  # type: ignore[index]
