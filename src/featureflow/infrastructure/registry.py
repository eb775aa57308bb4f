"""
Executor Registry with Entry Points Discovery.

Provides dynamic executor loading via Python entry points (featureflow.executors group).
External packages can register executors in their pyproject.toml:

    [project.entry-points."featureflow.executors"]
    my-agent = "mypackage.executors:MyAgentExecutor"
"""

import logging
from importlib.metadata import entry_points
from typing import Any

from featureflow.domain.interfaces import ExecutorInterface

logger = logging.getLogger(__name__)


class ExecutorRegistry:
    """
    Registry for ExecutorInterface implementations.

    Discovers executors via the 'featureflow.executors' entry point group.
    Uses lazy loading - entry points are only loaded on first access.

    Example usage:
        executor = ExecutorRegistry.create("subprocess", command="my-agent --json")
    """

    _executors: dict[str, type[ExecutorInterface]] = {}
    _loaded: bool = False

    @classmethod
    def _load_entry_points(cls) -> None:
        """Load executors from entry points (lazy, called once)."""
        if cls._loaded:
            return

        for ep in entry_points(group="featureflow.executors"):
            if ep.name in cls._executors:
                continue  # Manual registration wins
            try:
                cls._executors[ep.name] = ep.load()
            except Exception as e:
                logger.warning(f"Failed to load executor '{ep.name}' from entry point: {e}")

        cls._loaded = True

    @classmethod
    def register(cls, name: str, executor_class: type[ExecutorInterface]) -> None:
        """
        Manually register an executor class.

        Args:
            name: Executor identifier (e.g., "scripted")
            executor_class: Class implementing ExecutorInterface
        """
        cls._executors[name] = executor_class

    @classmethod
    def get(cls, name: str) -> type[ExecutorInterface]:
        """
        Get an executor class by name.

        Raises:
            KeyError: If executor not found
        """
        cls._load_entry_points()
        if name not in cls._executors:
            available = ", ".join(sorted(cls._executors)) or "(none)"
            raise KeyError(f"Executor '{name}' not found. Available executors: {available}")
        return cls._executors[name]

    @classmethod
    def create(cls, name: str, **config: Any) -> ExecutorInterface:
        """
        Create an executor instance by name.

        Args:
            name: Executor identifier
            **config: Configuration passed to the executor constructor

        Raises:
            KeyError: If executor not found
            TypeError: If config doesn't match constructor signature
        """
        return cls.get(name)(**config)

    @classmethod
    def available(cls) -> list[str]:
        cls._load_entry_points()
        return sorted(cls._executors)

    @classmethod
    def clear(cls) -> None:
        """
        Clear all registered executors (useful for testing).

        Also resets the loaded flag so entry points can be reloaded.
        """
        cls._executors.clear()
        cls._loaded = False
