"""
Infrastructure layer for the feature-development coordinator.

Contains adapters for external concerns (configuration, persistence, executors).
"""

from featureflow.infrastructure.config_loader import (
    load_default_pipeline,
    load_pipeline,
    parse_pipeline,
)
from featureflow.infrastructure.executors import ScriptedExecutor, SubprocessExecutor
from featureflow.infrastructure.persistence import (
    FilesystemDocumentStore,
    InMemoryDocumentStore,
)
from featureflow.infrastructure.registry import ExecutorRegistry

__all__ = [
    # Configuration
    "load_pipeline",
    "load_default_pipeline",
    "parse_pipeline",
    # Persistence
    "InMemoryDocumentStore",
    "FilesystemDocumentStore",
    # Executors
    "ScriptedExecutor",
    "SubprocessExecutor",
    # Registry
    "ExecutorRegistry",
]
