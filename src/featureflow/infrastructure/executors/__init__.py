"""
Executor adapters: the task-performing mechanisms behind each role.
"""

from featureflow.infrastructure.executors.scripted import Invocation, ScriptedExecutor
from featureflow.infrastructure.executors.subprocess import SubprocessExecutor

__all__ = [
    "Invocation",
    "ScriptedExecutor",
    "SubprocessExecutor",
]
