"""
Persistence adapters for the Document Store.
"""

from featureflow.infrastructure.persistence.codec import (
    document_from_dict,
    document_to_dict,
    parse_document,
    serialize_document,
)
from featureflow.infrastructure.persistence.filesystem import FilesystemDocumentStore
from featureflow.infrastructure.persistence.memory import InMemoryDocumentStore

__all__ = [
    "InMemoryDocumentStore",
    "FilesystemDocumentStore",
    "document_to_dict",
    "document_from_dict",
    "serialize_document",
    "parse_document",
]
