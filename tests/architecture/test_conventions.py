"""
Conventions the layer rules cannot see.

- The Document and everything it is built from is immutable.
- Failures are never swallowed in library code.
- Ports are pure ABCs and every shipped adapter implements them fully.
- Only the CLI surface writes to the terminal.
"""

import ast
import inspect
from pathlib import Path

import pytest

PACKAGE = Path(__file__).resolve().parent.parent.parent / "src" / "featureflow"
DOMAIN = PACKAGE / "domain"

# Modules allowed to talk to the terminal directly
TERMINAL_MODULES = {"cli.py", "console.py", "logging_setup.py"}


def _source_files() -> list[Path]:
    return sorted(PACKAGE.rglob("*.py"))


def _frozen_flag(node: ast.ClassDef) -> bool | None:
    """True/False for a (frozen/unfrozen) dataclass, None if not a dataclass."""
    for decorator in node.decorator_list:
        if isinstance(decorator, ast.Name) and decorator.id == "dataclass":
            return False
        if (
            isinstance(decorator, ast.Call)
            and isinstance(decorator.func, ast.Name)
            and decorator.func.id == "dataclass"
        ):
            return any(
                kw.arg == "frozen"
                and isinstance(kw.value, ast.Constant)
                and kw.value.value is True
                for kw in decorator.keywords
            )
    return None


def _rel(path: Path) -> str:
    return str(path.relative_to(PACKAGE))


class TestImmutableDomain:
    @pytest.mark.parametrize(
        "path", sorted(DOMAIN.glob("*.py")), ids=lambda p: p.name
    )
    def test_dataclasses_are_frozen(self, path: Path) -> None:
        tree = ast.parse(path.read_text())
        unfrozen = [
            node.name
            for node in ast.walk(tree)
            if isinstance(node, ast.ClassDef) and _frozen_flag(node) is False
        ]
        assert not unfrozen, f"{path.name}: unfrozen dataclasses {unfrozen}"

    def test_model_fields_are_not_lists(self) -> None:
        source = (DOMAIN / "models.py").read_text()
        offenders = []
        for node in ast.walk(ast.parse(source)):
            if not isinstance(node, ast.ClassDef) or not _frozen_flag(node):
                continue
            for item in node.body:
                if not isinstance(item, ast.AnnAssign):
                    continue
                annotation = ast.get_source_segment(source, item.annotation) or ""
                if "list[" in annotation or "dict[" in annotation:
                    offenders.append(f"{node.name}.{ast.unparse(item.target)}")
        assert not offenders, f"Use tuples for frozen model fields: {offenders}"


class TestFailuresAreNotSwallowed:
    def test_no_bare_or_empty_except(self) -> None:
        offenders = []
        for path in _source_files():
            for node in ast.walk(ast.parse(path.read_text())):
                if not isinstance(node, ast.ExceptHandler):
                    continue
                if node.type is None:
                    offenders.append(f"{_rel(path)}:{node.lineno} bare except")
                elif len(node.body) == 1 and isinstance(
                    node.body[0], (ast.Pass, ast.Expr)
                ):
                    stmt = node.body[0]
                    if isinstance(stmt, ast.Pass) or (
                        isinstance(stmt.value, ast.Constant) and stmt.value.value is ...
                    ):
                        offenders.append(f"{_rel(path)}:{node.lineno} empty handler")
        assert not offenders, "\n".join(offenders)

    def test_domain_exceptions_are_exceptions(self) -> None:
        from featureflow.domain import exceptions

        classes = [
            obj
            for _, obj in inspect.getmembers(exceptions, inspect.isclass)
            if obj.__module__ == exceptions.__name__
        ]
        assert classes
        assert all(issubclass(cls, Exception) for cls in classes)


class TestPorts:
    def test_ports_are_abstract_and_named(self) -> None:
        from featureflow.domain import interfaces

        ports = {
            name: cls
            for name, cls in inspect.getmembers(interfaces, inspect.isclass)
            if cls.__module__ == interfaces.__name__
        }
        assert set(ports) == {"ExecutorInterface", "DocumentStoreInterface"}
        for name, cls in ports.items():
            public = [
                attr
                for attr, _ in inspect.getmembers(cls, inspect.isfunction)
                if not attr.startswith("_")
            ]
            concrete = [
                attr
                for attr in public
                if not getattr(getattr(cls, attr), "__isabstractmethod__", False)
            ]
            assert inspect.isabstract(cls), name
            assert not concrete, f"{name} has concrete methods {concrete}"

    def test_adapters_are_instantiable(self) -> None:
        from featureflow.application.fanout import SectionedExecutor
        from featureflow.domain.interfaces import (
            DocumentStoreInterface,
            ExecutorInterface,
        )
        from featureflow.infrastructure.executors import (
            ScriptedExecutor,
            SubprocessExecutor,
        )
        from featureflow.infrastructure.persistence import (
            FilesystemDocumentStore,
            InMemoryDocumentStore,
        )

        for cls in (ScriptedExecutor, SubprocessExecutor, SectionedExecutor):
            assert issubclass(cls, ExecutorInterface)
            assert not inspect.isabstract(cls), cls.__name__
        for cls in (FilesystemDocumentStore, InMemoryDocumentStore):
            assert issubclass(cls, DocumentStoreInterface)
            assert not inspect.isabstract(cls), cls.__name__


class TestTerminalOutput:
    def test_only_cli_surface_prints(self) -> None:
        offenders = []
        for path in _source_files():
            if path.parent == PACKAGE and path.name in TERMINAL_MODULES:
                continue
            for node in ast.walk(ast.parse(path.read_text())):
                if (
                    isinstance(node, ast.Call)
                    and isinstance(node.func, ast.Name)
                    and node.func.id == "print"
                ):
                    offenders.append(f"{_rel(path)}:{node.lineno}")
                if isinstance(node, ast.ImportFrom) and (node.module or "").startswith(
                    "rich"
                ):
                    offenders.append(f"{_rel(path)}:{node.lineno} imports rich")
        assert not offenders, f"Terminal output outside the CLI: {offenders}"
