"""
featureflow: a multi-agent workflow coordinator for feature development.

Sequences specialised executors through a stage graph, using one shared,
versioned document as the coordination medium. Executors only propose
updates; the Dispatcher authorizes and commits them.

Example:
    from featureflow import Coordinator, InMemoryDocumentStore, load_default_pipeline
    from featureflow.infrastructure import SubprocessExecutor

    config = load_default_pipeline()
    coordinator = Coordinator(
        config, SubprocessExecutor("my-agent --json"), InMemoryDocumentStore()
    )
    outcome = coordinator.full_workflow("Add offline mode to the sync client")
    print(outcome.user_message())
"""

# Application layer (orchestration)
from featureflow.application.cancellation import CancellationToken
from featureflow.application.dispatcher import Dispatcher, RunOutcome
from featureflow.application.entrypoints import ENTRY_POINTS, Coordinator, start
from featureflow.application.fanout import (
    MergedResult,
    ParallelFanOut,
    SectionedExecutor,
    SubTask,
)

# Domain exceptions
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

# Domain interfaces (for type hints and custom implementations)
from featureflow.domain.interfaces import DocumentStoreInterface, ExecutorInterface

# Domain models (most commonly used)
from featureflow.domain.models import (
    BranchValue,
    Document,
    FailureDetail,
    HandoffEntry,
    ProposedUpdate,
    ResultStatus,
    StageResult,
    StageStatus,
    TaskInput,
    WorkflowState,
)
from featureflow.domain.pipeline import PipelineConfig

# Infrastructure (explicit import encouraged for dependency injection)
from featureflow.infrastructure.config_loader import (
    load_default_pipeline,
    load_pipeline,
)
from featureflow.infrastructure.persistence import (
    FilesystemDocumentStore,
    InMemoryDocumentStore,
)

__version__ = "0.3.0"

__all__ = [
    # Version
    "__version__",
    # Domain models
    "Document",
    "HandoffEntry",
    "StageStatus",
    "BranchValue",
    "ProposedUpdate",
    "FailureDetail",
    "ResultStatus",
    "StageResult",
    "TaskInput",
    "WorkflowState",
    "PipelineConfig",
    # Domain interfaces
    "ExecutorInterface",
    "DocumentStoreInterface",
    # Domain exceptions
    "ConfigurationError",
    "PermissionViolation",
    "MonotonicityViolation",
    "BranchAlreadyDecided",
    "InvalidUpdate",
    "DocumentNotFound",
    "StaleDocumentError",
    "PipelineMismatchError",
    "DocumentFormatError",
    # Application layer
    "CancellationToken",
    "Coordinator",
    "Dispatcher",
    "ENTRY_POINTS",
    "RunOutcome",
    "start",
    "ParallelFanOut",
    "SubTask",
    "MergedResult",
    "SectionedExecutor",
    # Infrastructure
    "load_pipeline",
    "load_default_pipeline",
    "InMemoryDocumentStore",
    "FilesystemDocumentStore",
]
