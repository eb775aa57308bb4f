"""Tests for FilesystemDocumentStore - persistent document storage."""

from dataclasses import replace

import pytest

from featureflow.domain.document import create_document
from featureflow.domain.exceptions import (
    DocumentFormatError,
    DocumentNotFound,
    StaleDocumentError,
)
from featureflow.domain.models import Document, StageId
from featureflow.infrastructure.persistence.filesystem import FilesystemDocumentStore


@pytest.fixture
def fs_store(tmp_path) -> FilesystemDocumentStore:  # noqa: ANN001
    """Create a FilesystemDocumentStore in a temporary directory."""
    return FilesystemDocumentStore(tmp_path / "store")


@pytest.fixture
def document() -> Document:
    return create_document("feat-001", "Add offline mode", [StageId("plan")])


class TestFilesystemDocumentStore:
    def test_init_creates_documents_directory(self, tmp_path) -> None:  # noqa: ANN001
        FilesystemDocumentStore(tmp_path / "store")
        assert (tmp_path / "store" / "documents").is_dir()

    def test_save_and_load(
        self, fs_store: FilesystemDocumentStore, document: Document
    ) -> None:
        fs_store.save(document)

        assert fs_store.exists("feat-001")
        assert fs_store.load("feat-001") == document
        assert (fs_store.base_dir / "documents" / "feat-001.json").exists()

    def test_survives_new_instance(
        self, tmp_path, document: Document  # noqa: ANN001
    ) -> None:
        FilesystemDocumentStore(tmp_path / "store").save(document)
        assert FilesystemDocumentStore(tmp_path / "store").load("feat-001") == document

    def test_newer_version_overwrites(
        self, fs_store: FilesystemDocumentStore, document: Document
    ) -> None:
        fs_store.save(document)
        newer = replace(document, version=1, artifact_refs=("a.py",))
        fs_store.save(newer)
        assert fs_store.load("feat-001") == newer

    def test_stale_version_rejected(
        self, fs_store: FilesystemDocumentStore, document: Document
    ) -> None:
        fs_store.save(replace(document, version=3))
        with pytest.raises(StaleDocumentError) as exc_info:
            fs_store.save(replace(document, version=2))
        assert exc_info.value.stored_version == 3
        assert fs_store.load("feat-001").version == 3

    def test_no_temp_file_left_behind(
        self, fs_store: FilesystemDocumentStore, document: Document
    ) -> None:
        fs_store.save(document)
        assert list((fs_store.base_dir / "documents").glob("*.tmp")) == []

    def test_missing_document(self, fs_store: FilesystemDocumentStore) -> None:
        with pytest.raises(DocumentNotFound):
            fs_store.load("ghost")
        assert not fs_store.exists("ghost")

    def test_corrupt_file(self, fs_store: FilesystemDocumentStore) -> None:
        (fs_store.base_dir / "documents" / "bad.json").write_text("{")
        with pytest.raises(DocumentFormatError):
            fs_store.load("bad")

    @pytest.mark.parametrize("feature_id", ["../escape", "a/b", "", ".hidden"])
    def test_unsafe_feature_id(
        self, fs_store: FilesystemDocumentStore, feature_id: str
    ) -> None:
        with pytest.raises(ValueError):
            fs_store.exists(feature_id)

    def test_list_feature_ids(self, fs_store: FilesystemDocumentStore) -> None:
        for fid in ("b-feature", "a-feature"):
            fs_store.save(create_document(fid, "", [StageId("plan")]))
        assert fs_store.list_feature_ids() == ["a-feature", "b-feature"]
