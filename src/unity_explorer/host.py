#
# src/unity_explorer/host.py
#
"""
Protocols for the collaborators supplied by the hosting IDE integration.

The engine never renders UI, stores configuration or launches debuggers
itself; it talks to these interfaces instead.
"""
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog
from attrs import define, field

from unity_explorer.config.models import PatternConfig
from unity_explorer.tree import TestNode

log = structlog.get_logger("host")


@define(frozen=True, slots=True)
class TestMessage:
    """A diagnostic attached to a failed or errored node."""

    __test__ = False

    message: str
    line: int | None = None
    source_path: Path | None = None


@define(slots=True)
class CancellationToken:
    """
    Cooperative cancellation flag shared between a run session and the engine.

    Callbacks registered with `on_cancel` fire once, on the first `cancel()`.
    """

    _cancelled: bool = field(default=False, init=False)
    _callbacks: list[Callable[[], None]] = field(factory=list, init=False, repr=False)

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        for callback in list(self._callbacks):
            try:
                callback()
            except Exception:
                log.exception("Cancellation callback failed")

    def on_cancel(self, callback: Callable[[], None]) -> None:
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)


@runtime_checkable
class MessageSurface(Protocol):
    """User-visible notifications (warnings and errors)."""

    def show_warning(self, message: str) -> None: ...

    def show_error(self, message: str) -> None: ...


@runtime_checkable
class RunSession(Protocol):
    """Receives per-node outcome events for one run request."""

    @property
    def token(self) -> CancellationToken: ...

    def started(self, node: TestNode) -> None: ...

    def passed(self, node: TestNode) -> None: ...

    def failed(self, node: TestNode, message: TestMessage) -> None: ...

    def skipped(self, node: TestNode, reason: str | None = None) -> None: ...

    def errored(self, node: TestNode, message: TestMessage) -> None: ...

    def append_output(self, output: str) -> None: ...

    def end(self) -> None: ...


@runtime_checkable
class ConfigurationSource(Protocol):
    """Resolves named options for a file scope."""

    @property
    def workspace(self) -> Path: ...

    def snapshot(self, scope: Path | None = None) -> PatternConfig: ...

    def get_string(self, name: str, scope: Path | None = None) -> str: ...

    def get_bool(self, name: str, scope: Path | None = None) -> bool: ...

    def get_path(self, name: str, scope: Path | None = None) -> Path: ...


@runtime_checkable
class DebugLauncher(Protocol):
    """Starts a debugger session for a resolved test executable."""

    async def start_debugging(self, workspace: Path, configuration: str, executable: str) -> bool: ...


# 🔼⚙️
