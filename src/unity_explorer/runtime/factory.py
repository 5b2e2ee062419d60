#
# src/unity_explorer/runtime/factory.py
#
"""
Wires the engine components together for one workspace.
"""
import structlog
from attrs import define

from unity_explorer.discovery.loader import Invalidator, TestLoader
from unity_explorer.discovery.patterns import PatternEngine
from unity_explorer.execution.pipeline import ProcessPipeline
from unity_explorer.host import ConfigurationSource, DebugLauncher, MessageSurface
from unity_explorer.runtime.runner import TestRunner
from unity_explorer.tree import TestTree

log = structlog.get_logger("runtime.factory")


@define(slots=True)
class Engine:
    tree: TestTree
    patterns: PatternEngine
    loader: TestLoader
    pipeline: ProcessPipeline
    runner: TestRunner


def create_engine(
    config: ConfigurationSource,
    messages: MessageSurface | None = None,
    debugger: DebugLauncher | None = None,
    pipeline: ProcessPipeline | None = None,
    on_invalidate: Invalidator | None = None,
) -> Engine:
    """
    Builds an engine. Pass a shared `pipeline` when several workspaces must
    still build and run one process at a time.
    """
    tree = TestTree()
    patterns = PatternEngine(messages)
    loader = TestLoader(config, tree, patterns, messages, on_invalidate)
    pipeline = pipeline or ProcessPipeline()
    runner = TestRunner(config, tree, loader, pipeline, patterns, messages, debugger)
    log.debug("Engine created", workspace=str(config.workspace))
    return Engine(tree=tree, patterns=patterns, loader=loader, pipeline=pipeline, runner=runner)


# 🔼⚙️
