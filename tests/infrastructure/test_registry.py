"""Tests for ExecutorRegistry - entry points-based executor discovery."""

import pytest

from featureflow.domain.interfaces import ExecutorInterface
from featureflow.infrastructure import ExecutorRegistry, ScriptedExecutor, SubprocessExecutor


@pytest.fixture(autouse=True)
def _clean_registry():
    ExecutorRegistry.clear()
    yield
    ExecutorRegistry.clear()


class TestEntryPointsLoading:
    """Tests for entry points discovery and loading."""

    def test_available_returns_registered_executors(self) -> None:
        """available() lists executors from entry points."""
        available = ExecutorRegistry.available()

        assert "subprocess" in available
        assert "scripted" in available

    def test_load_idempotent(self) -> None:
        """Multiple _load_entry_points() calls don't duplicate entries."""
        ExecutorRegistry._load_entry_points()
        count_after_first = len(ExecutorRegistry._executors)

        ExecutorRegistry._load_entry_points()

        assert len(ExecutorRegistry._executors) == count_after_first

    def test_lazy_loading(self) -> None:
        """Entry points are only loaded on first access."""
        assert ExecutorRegistry._loaded is False
        assert len(ExecutorRegistry._executors) == 0

        _ = ExecutorRegistry.available()

        assert ExecutorRegistry._loaded is True
        assert len(ExecutorRegistry._executors) > 0


class TestRegistryOperations:
    """Tests for registry get/create/register operations."""

    def test_get_returns_executor_class(self) -> None:
        assert ExecutorRegistry.get("subprocess") is SubprocessExecutor
        assert ExecutorRegistry.get("scripted") is ScriptedExecutor

    def test_get_unknown_raises_keyerror(self) -> None:
        """get() raises KeyError with a helpful message for unknown names."""
        with pytest.raises(KeyError) as exc_info:
            ExecutorRegistry.get("NonExistentExecutor")

        error_message = str(exc_info.value)
        assert "NonExistentExecutor" in error_message
        assert "Available executors" in error_message

    def test_create_instantiates_executor(self) -> None:
        executor = ExecutorRegistry.create("subprocess", command=["my-agent", "--json"])

        assert isinstance(executor, ExecutorInterface)
        assert isinstance(executor, SubprocessExecutor)
        assert executor.command == ["my-agent", "--json"]

    def test_create_with_bad_config_raises_typeerror(self) -> None:
        with pytest.raises(TypeError):
            ExecutorRegistry.create("subprocess", model="nope")

    def test_manual_registration_wins(self) -> None:
        """A manually registered class is not replaced by the entry point."""

        class CustomExecutor(SubprocessExecutor):
            pass

        ExecutorRegistry.register("subprocess", CustomExecutor)

        assert ExecutorRegistry.get("subprocess") is CustomExecutor

    def test_register_new_name(self) -> None:
        ExecutorRegistry.register("echo", ScriptedExecutor)
        assert "echo" in ExecutorRegistry.available()
