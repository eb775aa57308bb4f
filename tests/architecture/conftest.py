"""Architecture fixtures: the featureflow module graph and its layers."""

from pathlib import Path

import pytest
from pytestarch import (
    EvaluableArchitecture,
    LayeredArchitecture,
    get_evaluable_architecture,
)

SRC_DIR = Path(__file__).resolve().parent.parent.parent / "src"

# Outer surface: the only modules allowed to wire adapters into the dispatcher
INTERFACE_MODULES = [
    "src.featureflow.cli",
    "src.featureflow.console",
    "src.featureflow.logging_setup",
]


@pytest.fixture(scope="session")
def evaluable() -> EvaluableArchitecture:
    return get_evaluable_architecture(str(SRC_DIR), str(SRC_DIR / "featureflow"))


@pytest.fixture(scope="session")
def layers() -> LayeredArchitecture:
    """Domain, application, infrastructure and the CLI surface.

    Module names are resolved relative to the directory holding src/,
    hence the 'src.' prefix.
    """
    return (
        LayeredArchitecture()
        .layer("domain")
        .containing_modules(["src.featureflow.domain"])
        .layer("application")
        .containing_modules(["src.featureflow.application"])
        .layer("infrastructure")
        .containing_modules(
            ["src.featureflow.infrastructure", "src.featureflow.schemas"]
        )
        .layer("interface")
        .containing_modules(INTERFACE_MODULES)
    )
