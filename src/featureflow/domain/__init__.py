"""
Domain layer for the feature-development coordinator.

Contains the Document, Stage Graph, Role Registry and Retry Policy.
No external dependencies.
"""

from featureflow.domain.exceptions import (
    BranchAlreadyDecided,
    ConfigurationError,
    DocumentFormatError,
    DocumentNotFound,
    InvalidUpdate,
    MonotonicityViolation,
    PermissionViolation,
    PipelineMismatchError,
    StaleDocumentError,
)
from featureflow.domain.interfaces import DocumentStoreInterface, ExecutorInterface
from featureflow.domain.models import (
    BlockReason,
    BranchValue,
    Document,
    EscalationTier,
    FailureDetail,
    HaltReason,
    HandoffEntry,
    HandoffOutcome,
    MutationPermission,
    MutationTarget,
    ProposedUpdate,
    ResultStatus,
    RoleDefinition,
    RoleId,
    StageDefinition,
    StageId,
    StageKind,
    StageResult,
    StageStatus,
    TaskInput,
    WorkflowState,
)
from featureflow.domain.pipeline import PipelineConfig
from featureflow.domain.retry_policy import Escalate, RerouteTo, RetryHere, RetryPolicy
from featureflow.domain.roles import Authorization, RoleRegistry
from featureflow.domain.stage_graph import Blocked, Done, NextStage, StageGraph

__all__ = [
    # Models
    "Document",
    "HandoffEntry",
    "HandoffOutcome",
    "StageId",
    "RoleId",
    "StageStatus",
    "StageKind",
    "StageDefinition",
    "RoleDefinition",
    "MutationPermission",
    "MutationTarget",
    "EscalationTier",
    "BranchValue",
    "ProposedUpdate",
    "FailureDetail",
    "ResultStatus",
    "StageResult",
    "TaskInput",
    "WorkflowState",
    "BlockReason",
    "HaltReason",
    # Configuration
    "PipelineConfig",
    "StageGraph",
    "NextStage",
    "Done",
    "Blocked",
    "RoleRegistry",
    "Authorization",
    "RetryPolicy",
    "RetryHere",
    "RerouteTo",
    "Escalate",
    # Interfaces
    "ExecutorInterface",
    "DocumentStoreInterface",
    # Exceptions
    "ConfigurationError",
    "PermissionViolation",
    "MonotonicityViolation",
    "BranchAlreadyDecided",
    "InvalidUpdate",
    "DocumentNotFound",
    "StaleDocumentError",
    "PipelineMismatchError",
    "DocumentFormatError",
]
