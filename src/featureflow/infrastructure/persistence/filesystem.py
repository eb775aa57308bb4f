"""
Filesystem implementation of the Document Store.

One JSON file per feature id. Writes go to a temp file that is then renamed
over the target, so a crash never leaves a half-written document behind and
the last committed version always remains a valid resumption point.
"""

import logging
import re
from pathlib import Path

from featureflow.domain.exceptions import DocumentNotFound, StaleDocumentError
from featureflow.domain.interfaces import DocumentStoreInterface
from featureflow.domain.models import Document
from featureflow.infrastructure.persistence.codec import (
    parse_document,
    serialize_document,
)

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class FilesystemDocumentStore(DocumentStoreInterface):
    """
    Persistent document store.

    Layout:
        {base_dir}/documents/{feature_id}.json
    """

    def __init__(self, base_dir: str | Path):
        self._base_dir = Path(base_dir)
        self._documents_dir = self._base_dir / "documents"
        self._documents_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _path_for(self, feature_id: str) -> Path:
        if not _SAFE_ID.match(feature_id):
            raise ValueError(f"Feature id not usable as a file name: {feature_id!r}")
        return self._documents_dir / f"{feature_id}.json"

    def save(self, document: Document) -> None:
        """
        Persist a document version atomically.

        Raises:
            StaleDocumentError: If a newer version is already on disk
        """
        path = self._path_for(document.feature_id)
        if path.exists():
            stored = parse_document(path.read_text())
            if document.version < stored.version:
                raise StaleDocumentError(
                    document.feature_id, stored.version, document.version
                )

        temp_path = path.with_suffix(".tmp")
        with open(temp_path, "w") as f:
            f.write(serialize_document(document))
        temp_path.replace(path)  # Atomic on POSIX
        logger.debug(f"Saved '{document.feature_id}' v{document.version} to {path}")

    def load(self, feature_id: str) -> Document:
        path = self._path_for(feature_id)
        if not path.exists():
            raise DocumentNotFound(feature_id)
        return parse_document(path.read_text())

    def exists(self, feature_id: str) -> bool:
        return self._path_for(feature_id).exists()

    def list_feature_ids(self) -> list[str]:
        return sorted(p.stem for p in self._documents_dir.glob("*.json"))
