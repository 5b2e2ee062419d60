#
# src/unity_explorer/execution/__init__.py
#
"""
Process execution sub-package: command construction and the gated pipeline.
"""
from .commands import CommandBuilder, CommandLine, split_fixture_id
from .pipeline import ProcessHandle, ProcessPipeline, kill_process_tree
from .protocols import ExecutionFailure, ProcessSlot, RunCommandResult

__all__ = [
    "CommandBuilder",
    "CommandLine",
    "ExecutionFailure",
    "ProcessHandle",
    "ProcessPipeline",
    "ProcessSlot",
    "RunCommandResult",
    "kill_process_tree",
    "split_fixture_id",
]

# 🔼⚙️
