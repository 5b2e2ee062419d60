#
# src/unity_explorer/runtime/__init__.py
#
"""
Run orchestration and the command line host.
"""
from .console import ConsoleDebugLauncher, ConsoleMessageSurface, NodeResult, NodeState, RecordingRunSession
from .factory import Engine, create_engine
from .runner import DebugTarget, RunRequest, TestRunner

__all__ = [
    "ConsoleDebugLauncher",
    "ConsoleMessageSurface",
    "DebugTarget",
    "Engine",
    "NodeResult",
    "NodeState",
    "RecordingRunSession",
    "RunRequest",
    "TestRunner",
    "create_engine",
]

# 🔼⚙️
