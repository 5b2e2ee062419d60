# src/unity_explorer/runtime/console.py

"""
Host implementations used when the engine runs from the command line.
"""

from enum import Enum
from pathlib import Path

import structlog
from attrs import define, field
from rich.console import Console
from rich.markup import escape

from unity_explorer.host import CancellationToken, TestMessage
from unity_explorer.telemetry import StructLogger
from unity_explorer.tree import TestNode

log: StructLogger = structlog.get_logger("runtime.console")


class NodeState(Enum):
    STARTED = "started"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERRORED = "errored"


STATE_STYLE = {
    NodeState.STARTED: ("…", "dim"),
    NodeState.PASSED: ("✔", "green"),
    NodeState.FAILED: ("✘", "red"),
    NodeState.SKIPPED: ("○", "yellow"),
    NodeState.ERRORED: ("!", "bold red"),
}


@define(slots=True)
class NodeResult:
    node_id: str
    label: str
    state: NodeState
    message: str | None = None
    line: int | None = None


class ConsoleMessageSurface:
    """Shows host messages on stderr and records them."""

    def __init__(self, console: Console | None = None):
        self._console = console
        self.warnings: list[str] = []
        self.errors: list[str] = []

    def show_warning(self, message: str) -> None:
        self.warnings.append(message)
        log.warning(message)
        if self._console is not None:
            self._console.print(f"[yellow]Warning:[/] {escape(message)}")

    def show_error(self, message: str) -> None:
        self.errors.append(message)
        log.error(message)
        if self._console is not None:
            self._console.print(f"[bold red]Error:[/] {escape(message)}")


class ConsoleDebugLauncher:
    """
    Prints the launch request instead of attaching a debugger; an IDE host
    supplies its own launcher.
    """

    def __init__(self, console: Console | None = None):
        self._console = console
        self.launches: list[tuple[Path, str, str]] = []

    async def start_debugging(self, workspace: Path, configuration: str, executable: str) -> bool:
        self.launches.append((workspace, configuration, executable))
        log.info("Debug launch requested", configuration=configuration, executable=executable)
        if self._console is not None:
            self._console.print(f"[bold]Debug[/] {escape(executable)}", highlight=False)
            self._console.print(f"  [dim]configuration:[/] {escape(configuration)}", highlight=False)
        return True


@define(slots=True)
class RecordingRunSession:
    """
    Keeps the latest state of every node it hears about, keyed by node id, and
    optionally echoes transitions to a rich console.
    """
    console: Console | None = field(default=None)
    show_output: bool = field(default=False)
    token: CancellationToken = field(factory=CancellationToken)
    results: dict[str, NodeResult] = field(factory=dict)
    output: list[str] = field(factory=list)
    ended: bool = field(default=False)

    def _record(self, node: TestNode, state: NodeState, message: str | None = None, line: int | None = None) -> None:
        self.results[node.key] = NodeResult(node.key, node.label, state, message, line)
        if self.console is not None and state is not NodeState.STARTED:
            symbol, style = STATE_STYLE[state]
            suffix = ""
            if state in (NodeState.FAILED, NodeState.ERRORED, NodeState.SKIPPED) and message:
                first_line = message.strip().splitlines()[0] if message.strip() else ""
                suffix = f" [dim]- {escape(first_line)}[/]" if first_line else ""
                if line is not None:
                    suffix += f" [dim](line {line + 1})[/]"
            self.console.print(f"[{style}]{symbol}[/] {escape(node.label)}{suffix}", highlight=False)

    def started(self, node: TestNode) -> None:
        self._record(node, NodeState.STARTED)

    def passed(self, node: TestNode) -> None:
        self._record(node, NodeState.PASSED)

    def failed(self, node: TestNode, message: TestMessage) -> None:
        self._record(node, NodeState.FAILED, message.message, message.line)

    def skipped(self, node: TestNode, reason: str | None = None) -> None:
        self._record(node, NodeState.SKIPPED, reason)

    def errored(self, node: TestNode, message: TestMessage) -> None:
        self._record(node, NodeState.ERRORED, message.message, message.line)

    def append_output(self, output: str) -> None:
        self.output.append(output)
        if self.console is not None and self.show_output:
            self.console.out(output, end="" if output.endswith("\n") else "\n", highlight=False)

    def end(self) -> None:
        self.ended = True

    def state_of(self, node_id: str) -> NodeState | None:
        result = self.results.get(node_id)
        return result.state if result else None

    def count(self, state: NodeState) -> int:
        return sum(1 for result in self.results.values() if result.state is state)

    @property
    def has_failures(self) -> bool:
        return any(r.state in (NodeState.FAILED, NodeState.ERRORED) for r in self.results.values())


# 🔼⚙️
