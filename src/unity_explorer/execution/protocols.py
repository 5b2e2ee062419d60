#
# src/unity_explorer/execution/protocols.py
#
"""
Defines data structures exchanged with the process pipeline.
"""
import signal
from enum import Enum, auto

from attrs import define, field

# Shell conventions for a command that exists but cannot run, and one that is missing.
EXIT_ACCESS_DENIED = 126
EXIT_NOT_FOUND = 127

_NOT_FOUND_MARKERS = (
    "is not recognized as an internal or external command",
    "command not found",
    "No such file or directory",
)
_ACCESS_DENIED_MARKERS = ("being used by another process", "Permission denied", "Access is denied")


class ProcessSlot(Enum):
    """The two independently serialized resource classes."""

    BUILD = auto()
    RUN = auto()


class ExecutionFailure(Enum):
    """Why a command did not complete cleanly."""

    NONE = auto()
    NONZERO_EXIT = auto()
    SPAWN_FAILED = auto()
    NOT_FOUND = auto()
    ACCESS_DENIED = auto()
    SIGNALLED = auto()
    CANCELLED = auto()

    @property
    def is_fatal(self) -> bool:
        """True when the output cannot be trusted to describe test outcomes."""
        return self in (
            ExecutionFailure.SPAWN_FAILED,
            ExecutionFailure.NOT_FOUND,
            ExecutionFailure.ACCESS_DENIED,
            ExecutionFailure.SIGNALLED,
        )


@define(frozen=True, slots=True)
class RunCommandResult:
    """
    Outcome of one external process invocation.

    stdout and stderr are always populated, possibly empty, even when the
    command failed, so partial output can still be interpreted.
    """
    command: str
    exit_code: int | None
    stdout: str = field(default="")
    stderr: str = field(default="")
    error: str | None = field(default=None)
    signal: int | None = field(default=None)
    cancelled: bool = field(default=False)
    spawned: bool = field(default=True)

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def failure(self) -> ExecutionFailure:
        if self.cancelled:
            return ExecutionFailure.CANCELLED
        if not self.spawned:
            return ExecutionFailure.SPAWN_FAILED
        if self.signal is not None:
            return ExecutionFailure.SIGNALLED
        # Marker text only counts when the command printed nothing to stdout.
        silent_failure = bool(self.exit_code) and not self.stdout
        if self.exit_code == EXIT_NOT_FOUND or (silent_failure and self._stderr_has(_NOT_FOUND_MARKERS)):
            return ExecutionFailure.NOT_FOUND
        if self.exit_code == EXIT_ACCESS_DENIED or (silent_failure and self._stderr_has(_ACCESS_DENIED_MARKERS)):
            return ExecutionFailure.ACCESS_DENIED
        if self.error is not None:
            return ExecutionFailure.NONZERO_EXIT
        return ExecutionFailure.NONE

    def _stderr_has(self, markers: tuple[str, ...]) -> bool:
        return any(marker in self.stderr for marker in markers)

    @classmethod
    def abandoned(cls, command: str) -> "RunCommandResult":
        """Result for a request dropped by cancellation before it spawned."""
        return cls(command=command, exit_code=None, error="Cancelled before start", cancelled=True, spawned=False)

    @classmethod
    def from_exit(
        cls, command: str, returncode: int | None, stdout: str, stderr: str, cancelled: bool = False
    ) -> "RunCommandResult":
        sig = -returncode if returncode is not None and returncode < 0 else None
        error = None
        if cancelled:
            error = "Cancelled"
        elif sig is not None:
            try:
                name = signal.Signals(sig).name
            except ValueError:
                name = str(sig)
            error = f"Command terminated by signal {name}"
        elif returncode:
            error = f"Command failed with exit code {returncode}"
        return cls(
            command=command,
            exit_code=returncode,
            stdout=stdout,
            stderr=stderr,
            error=error,
            signal=sig,
            cancelled=cancelled,
        )


# 🔼⚙️
