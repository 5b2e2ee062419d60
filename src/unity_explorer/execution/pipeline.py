# src/unity_explorer/execution/pipeline.py

"""
Serializes build and test-binary processes behind two independent gates.
"""
import asyncio
import os
import signal
from pathlib import Path

import psutil
import structlog
from attrs import define, field

from unity_explorer.execution.protocols import ProcessSlot, RunCommandResult
from unity_explorer.telemetry import StructLogger

log: StructLogger = structlog.get_logger("execution.pipeline")

_POSIX = os.name == "posix"


@define(slots=True)
class ProcessHandle:
    """The in-flight process of one slot, kept only so it can be killed."""
    slot: ProcessSlot
    process: asyncio.subprocess.Process
    command: str
    cancelled: bool = field(default=False)

    @property
    def pid(self) -> int:
        return self.process.pid


def _kill_process_group(pgid: int) -> bool:
    """Kills every member of a POSIX process group, including orphaned grandchildren."""
    try:
        os.killpg(pgid, signal.SIGKILL)
    except ProcessLookupError:
        return False
    except PermissionError as e:
        log.warning("Cannot kill process group", pgid=pgid, error=str(e), emoji_key="cancel")
        return False
    return True


def kill_process_tree(pid: int) -> int:
    """
    Kills a process and all of its descendants. Returns how many were signalled.

    On POSIX the command leads its own session, so its process group is killed
    first. That catches children forked after the psutil scan and
    orphans reparented away from the shell.
    """
    killed = 1 if _POSIX and _kill_process_group(pid) else 0
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        parent = None

    if parent is not None:
        try:
            children = parent.children(recursive=True)
        except psutil.Error:
            children = []

        # Children first so the parent cannot respawn them.
        for proc in [*children, parent]:
            try:
                proc.kill()
                killed += 1
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied as e:
                log.warning("Cannot kill process", pid=proc.pid, error=str(e), emoji_key="cancel")

    return killed


class ProcessPipeline:
    """
    Runs at most one build and one test binary at any time.

    Each slot has its own FIFO lock, so a build may overlap a test run but two
    builds or two runs never do. `cancel()` kills whatever each slot is running
    and abandons requests still queued on either lock.
    """

    def __init__(self) -> None:
        self._locks: dict[ProcessSlot, asyncio.Lock] = {slot: asyncio.Lock() for slot in ProcessSlot}
        self._handles: dict[ProcessSlot, ProcessHandle | None] = {slot: None for slot in ProcessSlot}
        self._epoch = 0

    def handle(self, slot: ProcessSlot) -> ProcessHandle | None:
        return self._handles[slot]

    def is_busy(self, slot: ProcessSlot) -> bool:
        return self._locks[slot].locked()

    async def run_build(self, command: str, cwd: Path | None = None) -> RunCommandResult:
        """Runs a build (or pre-build) command under the build gate."""
        return await self._run_gated(ProcessSlot.BUILD, command, cwd)

    async def run_executable(self, command: str, cwd: Path | None = None) -> RunCommandResult:
        """Runs a test binary under the run gate."""
        return await self._run_gated(ProcessSlot.RUN, command, cwd)

    async def _run_gated(self, slot: ProcessSlot, command: str, cwd: Path | None) -> RunCommandResult:
        epoch = self._epoch
        gate_log = log.bind(slot=slot.name.lower(), command=command)
        async with self._locks[slot]:
            if epoch != self._epoch:
                gate_log.info("Queued command abandoned after cancellation", emoji_key="cancel")
                return RunCommandResult.abandoned(command)
            return await self._spawn(slot, command, cwd, epoch, gate_log)

    async def _spawn(
        self, slot: ProcessSlot, command: str, cwd: Path | None, epoch: int, gate_log: StructLogger
    ) -> RunCommandResult:
        gate_log.info("Executing command", cwd=str(cwd) if cwd else None, emoji_key=slot.name.lower())
        extra = {"start_new_session": True} if _POSIX else {}
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                **extra,
            )
        except OSError as e:
            gate_log.error("Command could not be started", error=str(e))
            return RunCommandResult(
                command=command,
                exit_code=None,
                error=f"Cannot start command: {e}",
                spawned=False,
            )

        handle = ProcessHandle(slot=slot, process=process, command=command)
        self._handles[slot] = handle
        if epoch != self._epoch:
            # Cancelled while the process was starting.
            handle.cancelled = True
            kill_process_tree(process.pid)
        try:
            stdout_bytes, stderr_bytes = await process.communicate()
        except asyncio.CancelledError:
            kill_process_tree(process.pid)
            raise
        finally:
            self._handles[slot] = None

        result = RunCommandResult.from_exit(
            command,
            process.returncode,
            stdout_bytes.decode("utf-8", errors="replace"),
            stderr_bytes.decode("utf-8", errors="replace"),
            cancelled=handle.cancelled,
        )
        gate_log.info(
            "Command finished",
            exit_code=result.exit_code,
            success=result.success,
            cancelled=result.cancelled,
        )
        gate_log.debug("Command output", stdout_len=len(result.stdout), stderr_len=len(result.stderr))
        return result

    def cancel(self) -> None:
        """Kills the running build and test processes and drops queued requests."""
        self._epoch += 1
        for slot, handle in self._handles.items():
            if handle is None:
                continue
            handle.cancelled = True
            killed = kill_process_tree(handle.pid)
            log.info("Cancelled running command", slot=slot.name.lower(), pid=handle.pid, killed=killed, emoji_key="cancel")


# 🔼⚙️
