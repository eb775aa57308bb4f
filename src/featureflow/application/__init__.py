"""
Application layer for the feature-development coordinator.

Orchestrates domain objects: the Dispatcher loop, entry points and fan-out.
"""

from featureflow.application.cancellation import CancellationToken
from featureflow.application.dispatcher import Dispatcher, PhaseTransition, RunOutcome
from featureflow.application.entrypoints import (
    ENTRY_POINTS,
    Coordinator,
    EntryPoint,
    start,
)
from featureflow.application.fanout import (
    MergedResult,
    ParallelFanOut,
    SectionedExecutor,
    SubTask,
)

__all__ = [
    "CancellationToken",
    "Coordinator",
    "Dispatcher",
    "ENTRY_POINTS",
    "EntryPoint",
    "MergedResult",
    "ParallelFanOut",
    "PhaseTransition",
    "RunOutcome",
    "SectionedExecutor",
    "SubTask",
    "start",
]
