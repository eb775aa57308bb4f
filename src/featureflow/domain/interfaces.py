"""
Domain interfaces (Ports) for the feature-development coordinator.

These abstract base classes define the contracts that adapters must satisfy.
They have no external dependencies and represent the core domain boundaries.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from featureflow.domain.models import (
        Document,
        RoleId,
        StageId,
        StageResult,
        TaskInput,
    )


class ExecutorInterface(ABC):
    """
    Port for the task-performing mechanism behind each role.

    This is the only call the Dispatcher makes outward. Implementations may be
    autonomous agents, subprocesses or scripted fakes; from the coordinator's
    perspective each invocation is atomic and returns a structured result.

    Note (Side Effects):
        Executors may create files or call external tools. They must never
        write to the Document; the returned StageResult carries *proposed*
        updates that the Dispatcher authorizes and commits.
    """

    @abstractmethod
    def invoke(
        self, role: "RoleId", stage_id: "StageId", task_input: "TaskInput"
    ) -> "StageResult":
        """
        Perform the work of one stage.

        Args:
            role: Role the stage is bound to for this attempt
            stage_id: Stage being executed
            task_input: Document slice and stage-specific instructions

        Returns:
            StageResult with status, proposed updates and optional branch value
        """
        pass


class DocumentStoreInterface(ABC):
    """
    Port for Document persistence.

    Stored documents are resumption points: there is no delete operation.
    """

    @abstractmethod
    def save(self, document: "Document") -> None:
        """
        Persist a document version.

        Raises:
            StaleDocumentError: If a newer version is already stored
        """
        pass

    @abstractmethod
    def load(self, feature_id: str) -> "Document":
        """
        Load the latest version of a document.

        Raises:
            DocumentNotFound: If no document exists for feature_id
        """
        pass

    @abstractmethod
    def exists(self, feature_id: str) -> bool:
        pass

    @abstractmethod
    def list_feature_ids(self) -> list[str]:
        pass
