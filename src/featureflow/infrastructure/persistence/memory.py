"""
In-memory implementation of the Document Store.

Useful for testing and ephemeral workflows.
"""

from featureflow.domain.exceptions import DocumentNotFound, StaleDocumentError
from featureflow.domain.interfaces import DocumentStoreInterface
from featureflow.domain.models import Document


class InMemoryDocumentStore(DocumentStoreInterface):
    """Simple in-memory store that keeps every committed version."""

    def __init__(self) -> None:
        self._history: dict[str, list[Document]] = {}

    def save(self, document: Document) -> None:
        versions = self._history.setdefault(document.feature_id, [])
        if versions and document.version < versions[-1].version:
            raise StaleDocumentError(
                document.feature_id, versions[-1].version, document.version
            )
        versions.append(document)

    def load(self, feature_id: str) -> Document:
        if feature_id not in self._history:
            raise DocumentNotFound(feature_id)
        return self._history[feature_id][-1]

    def exists(self, feature_id: str) -> bool:
        return feature_id in self._history

    def list_feature_ids(self) -> list[str]:
        return list(self._history)

    def history(self, feature_id: str) -> list[Document]:
        """Every saved version, oldest first."""
        if feature_id not in self._history:
            raise DocumentNotFound(feature_id)
        return list(self._history[feature_id])
