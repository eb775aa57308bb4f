"""
Domain exceptions for the feature-development coordinator.

These represent rule violations in the domain layer. Recoverable and fatal
executor failures are result values (ResultStatus), not exceptions.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from featureflow.domain.models import BranchValue, StageStatus


class ConfigurationError(Exception):
    """Raised when the pipeline configuration is missing or invalid."""

    pass


class PermissionViolation(Exception):
    """
    Raised when a role proposes a mutation outside its capability.

    Always fatal: it indicates a role/stage mismatch in the configuration,
    not a transient fault, so it is never retried.
    """

    def __init__(self, role_id: str, field: str, stage_id: str | None = None):
        """
        Args:
            role_id: The offending role
            field: The Document field the role attempted to change
            stage_id: The stage being executed when the violation occurred
        """
        where = f" at stage '{stage_id}'" if stage_id else ""
        super().__init__(
            f"PermissionViolation: role '{role_id}' may not modify '{field}'{where}"
        )
        self.role_id = role_id
        self.field = field
        self.stage_id = stage_id


class MonotonicityViolation(Exception):
    """Raised when a stage status change would move a stage backwards."""

    def __init__(
        self, stage_id: str, current: "StageStatus", proposed: "StageStatus"
    ):
        super().__init__(
            f"Stage '{stage_id}' cannot move from {current.value} to {proposed.value} "
            "without an explicit reset"
        )
        self.stage_id = stage_id
        self.current = current
        self.proposed = proposed


class BranchAlreadyDecided(Exception):
    """Raised on any attempt to set the branch decision a second time."""

    def __init__(self, current: "BranchValue", proposed: "BranchValue"):
        super().__init__(
            f"Branch already decided as {current.value}; refusing {proposed.value}"
        )
        self.current = current
        self.proposed = proposed


class InvalidUpdate(Exception):
    """Raised when a proposed update is malformed for the stage graph."""

    pass


class DocumentNotFound(KeyError):
    """Raised when a store has no document for a feature id."""

    def __init__(self, feature_id: str):
        super().__init__(f"Document not found: {feature_id}")
        self.feature_id = feature_id


class StaleDocumentError(Exception):
    """Raised when saving a document version older than the stored one."""

    def __init__(self, feature_id: str, stored_version: int, given_version: int):
        super().__init__(
            f"Refusing to overwrite '{feature_id}' v{stored_version} "
            f"with older v{given_version}"
        )
        self.feature_id = feature_id
        self.stored_version = stored_version
        self.given_version = given_version


class PipelineMismatchError(Exception):
    """Raised when resuming a document created under a different pipeline."""

    def __init__(self, feature_id: str, expected: str, actual: str):
        super().__init__(
            f"Pipeline changed since '{feature_id}' was created. "
            f"Expected: {expected}, Got: {actual}"
        )
        self.feature_id = feature_id
        self.expected = expected
        self.actual = actual


class DocumentFormatError(ValueError):
    """Raised when a persisted document cannot be parsed or fails its schema."""

    pass
