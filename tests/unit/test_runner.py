# tests/unit/test_runner.py

"""Tests for run and debug request handling."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from unity_explorer.config import ExplorerConfig
from unity_explorer.exceptions import DebugLaunchError
from unity_explorer.execution import ProcessPipeline, RunCommandResult
from unity_explorer.runtime import (
    ConsoleMessageSurface,
    DebugTarget,
    Engine,
    NodeState,
    RecordingRunSession,
    RunRequest,
    create_engine,
)
from unity_explorer.runtime.runner import MSG_BUILD_FAILED, MSG_NO_DEBUG_CONFIG, MSG_PRE_BUILD_FAILED

OK = RunCommandResult.from_exit("make", 0, "", "")


def _pipeline(stdout: str = "", returncode: int = 0, stderr: str = "") -> MagicMock:
    pipeline = MagicMock(spec=ProcessPipeline)
    pipeline.run_build = AsyncMock(return_value=OK)
    pipeline.run_executable = AsyncMock(
        side_effect=lambda command, cwd=None: RunCommandResult.from_exit(command, returncode, stdout, stderr)
    )
    return pipeline


async def _engine(config: ExplorerConfig, pipeline: MagicMock, messages: ConsoleMessageSurface, debugger=None) -> Engine:
    engine = create_engine(config, messages, debugger=debugger, pipeline=pipeline)
    await engine.loader.load_all()
    return engine


def _ids(workspace: Path) -> dict[str, str]:
    math = str(workspace / "test" / "test_math.c")
    return {
        "math": math,
        "string": str(workspace / "test" / "test_string.c"),
        "add": f"{math}::test_add",
        "subtract": f"{math}::test_subtract",
    }


@pytest.mark.asyncio
class TestRunFiles:
    async def test_file_run_reports_cases_and_rollup(
        self, explorer_config: ExplorerConfig, messages, workspace: Path, math_output: str
    ) -> None:
        pipeline = _pipeline(math_output, returncode=1)
        engine = await _engine(explorer_config, pipeline, messages)
        ids = _ids(workspace)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(include=[ids["math"]]), session)

        assert session.state_of(ids["add"]) is NodeState.PASSED
        assert session.state_of(ids["subtract"]) is NodeState.FAILED
        failure = session.results[ids["subtract"]]
        assert failure.message == "Expected 1 Was 2"
        assert failure.line == 10
        assert session.state_of(ids["math"]) is NodeState.FAILED
        assert session.results[ids["math"]].message == math_output
        assert session.ended

        build_command = pipeline.run_build.await_args.args[0]
        assert build_command == "make test_math"
        run_command = pipeline.run_executable.await_args.args[0]
        assert run_command == str(workspace / "bin" / "test_math.sh")

    async def test_passing_file_appends_summary(self, explorer_config: ExplorerConfig, messages, workspace: Path) -> None:
        output = "test/test_string.c:3:test_concat:PASS\n\nOK\n"
        engine = await _engine(explorer_config, _pipeline(output), messages)
        ids = _ids(workspace)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(include=[ids["string"]]), session)

        assert session.state_of(ids["string"]) is NodeState.PASSED
        assert session.state_of(f"{ids['string']}::test_concat") is NodeState.PASSED
        assert session.output[-1] == "Test passed."

    async def test_run_all_visits_every_file_in_order(self, explorer_config: ExplorerConfig, messages, workspace: Path) -> None:
        pipeline = _pipeline("")
        engine = await _engine(explorer_config, pipeline, messages)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(), session)

        commands = [call.args[0] for call in pipeline.run_build.await_args_list]
        assert commands == ["make test_math", "make test_string"]

    async def test_excluded_nodes_are_skipped(self, explorer_config: ExplorerConfig, messages, workspace: Path) -> None:
        pipeline = _pipeline("")
        engine = await _engine(explorer_config, pipeline, messages)
        ids = _ids(workspace)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(exclude=[ids["math"]]), session)

        assert session.state_of(ids["math"]) is None
        assert pipeline.run_build.await_count == 1

    async def test_unknown_ids_are_ignored(self, explorer_config: ExplorerConfig, messages) -> None:
        pipeline = _pipeline("")
        engine = await _engine(explorer_config, pipeline, messages)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(include=["/nowhere/test_x.c"]), session)

        assert session.results == {}
        pipeline.run_build.assert_not_awaited()
        assert session.ended


@pytest.mark.asyncio
class TestRunCases:
    async def test_single_case_uses_name_filter(self, explorer_config: ExplorerConfig, messages, workspace: Path, math_output: str) -> None:
        pipeline = _pipeline(math_output)
        engine = await _engine(explorer_config, pipeline, messages)
        ids = _ids(workspace)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(include=[ids["add"]]), session)

        assert pipeline.run_executable.await_args.args[0].endswith("test_math.sh -n test_add")
        assert session.state_of(ids["add"]) is NodeState.PASSED
        assert session.state_of(ids["math"]) is None

    async def test_case_without_result_line_gets_no_verdict(self, explorer_config: ExplorerConfig, messages, workspace: Path) -> None:
        engine = await _engine(explorer_config, _pipeline("garbage\n"), messages)
        ids = _ids(workspace)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(include=[ids["add"]]), session)

        assert session.state_of(ids["add"]) is NodeState.STARTED


@pytest.mark.asyncio
class TestFailures:
    async def test_build_failure_errors_node(self, explorer_config: ExplorerConfig, messages, workspace: Path) -> None:
        pipeline = _pipeline("")
        pipeline.run_build.return_value = RunCommandResult.from_exit("make", 2, "", "make: *** No rule to make target")
        engine = await _engine(explorer_config, pipeline, messages)
        ids = _ids(workspace)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(include=[ids["math"]]), session)

        result = session.results[ids["math"]]
        assert result.state is NodeState.ERRORED
        assert result.message.startswith(MSG_BUILD_FAILED)
        assert "No rule" in result.message
        pipeline.run_executable.assert_not_awaited()

    async def test_pre_build_runs_first_and_can_fail(self, workspace: Path, messages) -> None:
        config = ExplorerConfig(workspace=workspace, defaults={"testSourceFolder": "test", "preBuildCommand": "./gen.sh"})
        pipeline = _pipeline("")
        pipeline.run_build.side_effect = [RunCommandResult.from_exit("./gen.sh", 1, "", "gen failed")]
        engine = await _engine(config, pipeline, messages)
        ids = _ids(workspace)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(include=[ids["math"]]), session)

        assert pipeline.run_build.await_args_list[0].args[0] == "./gen.sh"
        assert pipeline.run_build.await_count == 1
        assert session.results[ids["math"]].message.startswith(MSG_PRE_BUILD_FAILED)
        assert MSG_PRE_BUILD_FAILED in messages.errors

    async def test_missing_executable(self, explorer_config: ExplorerConfig, messages, workspace: Path) -> None:
        engine = await _engine(explorer_config, _pipeline("", returncode=127, stderr="sh: 1: not found"), messages)
        ids = _ids(workspace)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(include=[ids["math"]]), session)

        result = session.results[ids["math"]]
        assert result.state is NodeState.ERRORED
        assert result.message.startswith("Cannot find test executable.")

    async def test_crash_reports_completed_cases_then_errors_file(
        self, explorer_config: ExplorerConfig, messages, workspace: Path
    ) -> None:
        output = "test/test_math.c:6:test_add:PASS\n"
        engine = await _engine(explorer_config, _pipeline(output, returncode=-11), messages)
        ids = _ids(workspace)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(include=[ids["math"]]), session)

        assert session.state_of(ids["add"]) is NodeState.PASSED
        assert session.state_of(ids["subtract"]) is None
        assert session.state_of(ids["math"]) is NodeState.ERRORED
        assert session.results[ids["math"]].message.startswith("Test executable terminated abnormally.")

    async def test_disabled_scope_is_skipped(self, workspace: Path, messages) -> None:
        config = ExplorerConfig(
            workspace=workspace,
            defaults={"testSourceFolder": "test"},
            overrides={"test": {"enable": False}},
        )
        pipeline = _pipeline("")
        engine = create_engine(config, messages, pipeline=pipeline)
        file = engine.tree.upsert_file(workspace / "test" / "test_math.c")
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(include=[file.id]), session)

        assert session.state_of(file.id) is NodeState.SKIPPED
        pipeline.run_build.assert_not_awaited()


@pytest.mark.asyncio
class TestCancellation:
    async def test_cancelled_before_start(self, explorer_config: ExplorerConfig, messages) -> None:
        pipeline = _pipeline("")
        engine = await _engine(explorer_config, pipeline, messages)
        session = RecordingRunSession()
        session.token.cancel()

        await engine.runner.run(RunRequest(), session)

        pipeline.cancel.assert_called_once()
        assert session.results == {}
        assert session.ended

    async def test_cancel_mid_run_stops_queue(self, explorer_config: ExplorerConfig, messages, workspace: Path) -> None:
        pipeline = _pipeline("")
        session = RecordingRunSession()

        async def cancelled_run(command, cwd=None):
            session.token.cancel()
            return RunCommandResult.from_exit(command, -9, "", "", cancelled=True)

        pipeline.run_executable = AsyncMock(side_effect=cancelled_run)
        engine = await _engine(explorer_config, pipeline, messages)
        ids = _ids(workspace)

        await engine.runner.run(RunRequest(), session)

        pipeline.cancel.assert_called_once()
        assert session.state_of(ids["math"]) is NodeState.SKIPPED
        assert session.state_of(ids["string"]) is None
        assert pipeline.run_build.await_count == 1

    async def test_cancelled_build_skips_node(self, explorer_config: ExplorerConfig, messages, workspace: Path) -> None:
        pipeline = _pipeline("")
        pipeline.run_build.return_value = RunCommandResult.abandoned("make test_math")
        engine = await _engine(explorer_config, pipeline, messages)
        ids = _ids(workspace)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(include=[ids["math"]]), session)

        assert session.state_of(ids["math"]) is NodeState.SKIPPED
        pipeline.run_executable.assert_not_awaited()


@pytest.mark.asyncio
class TestDebug:
    async def test_missing_debug_configuration(self, explorer_config: ExplorerConfig, messages, workspace: Path) -> None:
        pipeline = _pipeline("")
        engine = await _engine(explorer_config, pipeline, messages)
        ids = _ids(workspace)
        session = RecordingRunSession()

        await engine.runner.run(RunRequest(include=[ids["math"]]), session, debug=True)

        assert session.state_of(ids["math"]) is NodeState.ERRORED
        assert MSG_NO_DEBUG_CONFIG in messages.errors
        pipeline.run_build.assert_not_awaited()

    async def test_debug_builds_then_launches(self, workspace: Path, messages) -> None:
        config = ExplorerConfig(
            workspace=workspace,
            defaults={"testSourceFolder": "test", "testExecutableRegex": "bin/$1", "debugConfiguration": "Unity gdb"},
        )
        debugger = MagicMock()
        debugger.start_debugging = AsyncMock(return_value=True)
        pipeline = _pipeline("")
        engine = await _engine(config, pipeline, messages, debugger=debugger)
        ids = _ids(workspace)

        target = await engine.runner.debug_node(engine.tree.find_node(ids["add"]))

        assert target == DebugTarget(
            executable=str(workspace / "bin" / "test_math"),
            configuration="Unity gdb",
            workspace=workspace,
            source_path=workspace / "test" / "test_math.c",
        )
        pipeline.run_build.assert_awaited_once()
        debugger.start_debugging.assert_awaited_once_with(workspace, "Unity gdb", str(workspace / "bin" / "test_math"))
        pipeline.run_executable.assert_not_awaited()

    async def test_debugger_refusal_is_reported(self, workspace: Path, messages) -> None:
        config = ExplorerConfig(workspace=workspace, defaults={"testSourceFolder": "test", "debugConfiguration": "gdb"})
        debugger = MagicMock()
        debugger.start_debugging = AsyncMock(return_value=False)
        engine = await _engine(config, _pipeline(""), messages, debugger=debugger)
        ids = _ids(workspace)
        session = RecordingRunSession()

        assert await engine.runner.debug_node(engine.tree.find_node(ids["math"]), session) is None
        assert session.state_of(ids["math"]) is NodeState.ERRORED

    async def test_debug_launcher_error_is_reported(self, workspace: Path, messages) -> None:
        config = ExplorerConfig(workspace=workspace, defaults={"testSourceFolder": "test", "debugConfiguration": "gdb"})
        debugger = MagicMock()
        debugger.start_debugging = AsyncMock(side_effect=DebugLaunchError("no gdb on PATH"))
        engine = await _engine(config, _pipeline(""), messages, debugger=debugger)
        ids = _ids(workspace)
        session = RecordingRunSession()

        assert await engine.runner.debug_node(engine.tree.find_node(ids["math"]), session) is None
        assert session.state_of(ids["math"]) is NodeState.ERRORED
        assert "Debugger could not be started." in messages.errors


class _SlotTracker:
    """Fake shell recording how many builds and test binaries run at once."""

    def __init__(self) -> None:
        self.active = {"build": 0, "run": 0}
        self.peak = {"build": 0, "run": 0}
        self.started: list[str] = []

    async def create(self, command, **kwargs):
        return _TrackedProcess(self, command)


class _TrackedProcess:
    def __init__(self, tracker: _SlotTracker, command: str):
        self.pid = 515151
        self.returncode: int | None = None
        self._tracker = tracker
        self._command = command
        self._slot = "build" if command.startswith("make") else "run"

    async def communicate(self) -> tuple[bytes, bytes]:
        tracker = self._tracker
        tracker.started.append(self._command)
        tracker.active[self._slot] += 1
        tracker.peak[self._slot] = max(tracker.peak[self._slot], tracker.active[self._slot])
        try:
            await asyncio.sleep(0.02)
        finally:
            tracker.active[self._slot] -= 1
        self.returncode = 0
        return b"", b""


@pytest.mark.asyncio
class TestConcurrentRequests:
    async def test_simultaneous_file_runs_serialize_builds_and_executions(
        self, explorer_config: ExplorerConfig, messages, workspace: Path
    ) -> None:
        tracker = _SlotTracker()
        engine = await _engine(explorer_config, ProcessPipeline(), messages)
        ids = _ids(workspace)
        math_session, string_session = RecordingRunSession(), RecordingRunSession()

        with patch("asyncio.create_subprocess_shell", side_effect=tracker.create):
            await asyncio.gather(
                engine.runner.run(RunRequest(include=[ids["math"]]), math_session),
                engine.runner.run(RunRequest(include=[ids["string"]]), string_session),
            )

        assert tracker.peak == {"build": 1, "run": 1}
        assert sorted(c for c in tracker.started if c.startswith("make")) == ["make test_math", "make test_string"]
        assert len(tracker.started) == 4
        assert math_session.ended and string_session.ended


# 🧪🏃
