# src/unity_explorer/runtime/runner.py
"""
Executes run and debug requests against the discovered test tree.
"""
from pathlib import Path

import structlog
from attrs import define, field

from unity_explorer.discovery.loader import TestLoader
from unity_explorer.discovery.patterns import PatternEngine
from unity_explorer.exceptions import DebugLaunchError
from unity_explorer.execution.commands import CommandBuilder
from unity_explorer.execution.pipeline import ProcessPipeline
from unity_explorer.execution.protocols import ExecutionFailure, RunCommandResult
from unity_explorer.host import ConfigurationSource, DebugLauncher, MessageSurface, RunSession, TestMessage
from unity_explorer.results import Failed, Ignored, Outcome, Passed, classify_case, classify_file
from unity_explorer.telemetry import StructLogger
from unity_explorer.tree import CaseNode, FileNode, TestNode, TestTree

log: StructLogger = structlog.get_logger("runtime.runner")

CANCELLED_REASON = "Run cancelled"
MSG_BUILD_FAILED = "Cannot build test executable."
MSG_PRE_BUILD_FAILED = "Cannot run pre-build command."
MSG_NO_DEBUG_CONFIG = "No debug configuration specified. Set 'debugConfiguration' in the configuration file."
MSG_DEBUGGER_FAILED = "Debugger could not be started."

_EXECUTION_ERRORS = {
    ExecutionFailure.NOT_FOUND: "Cannot find test executable.",
    ExecutionFailure.ACCESS_DENIED: "Cannot access test executable. It may still be in use by a previous run.",
    ExecutionFailure.SIGNALLED: "Test executable terminated abnormally.",
    ExecutionFailure.SPAWN_FAILED: "Cannot run test executable.",
}


@define(frozen=True, slots=True)
class RunRequest:
    """Node ids to run. `include=None` runs every discovered file."""
    include: tuple[str, ...] | None = field(default=None, converter=lambda v: tuple(v) if v is not None else None)
    exclude: tuple[str, ...] = field(default=(), converter=tuple)


@define(frozen=True, slots=True)
class DebugTarget:
    """What the debug launcher needs; held by the caller for the session."""
    executable: str
    configuration: str
    workspace: Path
    source_path: Path


class TestRunner:
    """
    Runs queued nodes one after another: pre-build, build, execute, interpret.

    Several runners, or several concurrent `run` calls, may share one
    `ProcessPipeline`; the pipeline keeps builds and executions serialized.
    """

    __test__ = False

    def __init__(
        self,
        config: ConfigurationSource,
        tree: TestTree,
        loader: TestLoader,
        pipeline: ProcessPipeline | None = None,
        patterns: PatternEngine | None = None,
        messages: MessageSurface | None = None,
        debugger: DebugLauncher | None = None,
    ):
        self._config = config
        self.tree = tree
        self._loader = loader
        self.pipeline = pipeline or ProcessPipeline()
        self.commands = CommandBuilder(config, patterns or PatternEngine(messages))
        self._messages = messages
        self._debugger = debugger

    def _show_error(self, message: str) -> None:
        if self._messages is not None:
            self._messages.show_error(message)

    def _queue(self, request: RunRequest) -> list[TestNode]:
        if request.include is None:
            return list(self.tree.files)
        queue: list[TestNode] = []
        for node_id in request.include:
            node = self.tree.find_node(node_id)
            if node is None:
                log.warning("Requested test not found in tree", test_id=node_id)
                continue
            queue.append(node)
        return queue

    async def run(self, request: RunRequest, session: RunSession, debug: bool = False) -> None:
        """Processes a run request, reporting every outcome to `session`."""
        queue = self._queue(request)
        excluded = set(request.exclude)
        session.token.on_cancel(self.pipeline.cancel)
        log.info("Run started", nodes=len(queue), excluded=len(excluded), debug=debug, emoji_key="run")

        try:
            for node in queue:
                if session.token.is_cancelled:
                    log.info("Run cancelled, remaining nodes not started", emoji_key="cancel")
                    break
                if node.key in excluded:
                    continue
                session.started(node)
                if debug:
                    await self.debug_node(node, session)
                else:
                    await self.run_node(node, session)
        finally:
            session.end()
            log.info("Run finished", emoji_key="run")

    def _append(self, session: RunSession | None, result: RunCommandResult) -> None:
        if session is None:
            return
        if result.stdout:
            session.append_output(result.stdout)
        if result.stderr:
            session.append_output(result.stderr)

    def _cancelled(self, session: RunSession | None, result: RunCommandResult) -> bool:
        return result.cancelled or (session is not None and session.token.is_cancelled)

    async def _prepare_binary(self, node: TestNode, session: RunSession | None) -> bool:
        """Runs the pre-build command and the build. Reports and returns False on failure."""
        source = node.source_path
        node_log = log.bind(test_id=node.key)

        pre_build = self.commands.pre_build_command(source)
        if pre_build is not None:
            result = await self.pipeline.run_build(pre_build.command, pre_build.cwd)
            self._append(session, result)
            if self._cancelled(session, result):
                if session is not None:
                    session.skipped(node, CANCELLED_REASON)
                return False
            if not result.success:
                node_log.error("Pre-build command failed", error=result.error, emoji_key="build")
                self._show_error(MSG_PRE_BUILD_FAILED)
                if session is not None:
                    session.errored(node, TestMessage(f"{MSG_PRE_BUILD_FAILED}\n{result.stderr}".rstrip()))
                return False

        build = self.commands.build_command(source)
        result = await self.pipeline.run_build(build.command, build.cwd)
        self._append(session, result)
        if self._cancelled(session, result):
            if session is not None:
                session.skipped(node, CANCELLED_REASON)
            return False
        if not result.success:
            node_log.error("Build failed", error=result.error, emoji_key="build")
            if session is not None:
                session.errored(node, TestMessage(f"{MSG_BUILD_FAILED}\n{result.stderr}".rstrip()))
            return False
        return True

    async def run_node(self, node: TestNode, session: RunSession) -> RunCommandResult | None:
        """Builds and runs one file or case. Returns the execution result, if any."""
        if not self._config.snapshot(node.source_path).enable:
            session.skipped(node, "Disabled by configuration")
            return None

        if not await self._prepare_binary(node, session):
            return None

        if isinstance(node, FileNode) and not node.children:
            # Never parsed, or parsed before the file had tests.
            node = await self._loader.parse_file(node.source_path)

        command = self.commands.file_command(node) if isinstance(node, FileNode) else self.commands.case_command(node)
        result = await self.pipeline.run_executable(command.command, command.cwd)
        self._append(session, result)

        if self._cancelled(session, result):
            session.skipped(node, CANCELLED_REASON)
            return result

        failure = result.failure
        if failure.is_fatal:
            log.error("Test executable failed", test_id=node.key, failure=failure.name, error=result.error, emoji_key="run")
            if failure is ExecutionFailure.SIGNALLED and isinstance(node, FileNode):
                # Tests completed before the crash still printed their lines.
                self._report_cases(node, result.stdout, session)
            detail = "\n".join(part for part in (result.error, result.stderr) if part)
            session.errored(node, TestMessage(f"{_EXECUTION_ERRORS[failure]}\n{detail}".rstrip()))
            return result

        self.report(node, result.stdout, session)
        return result

    def _report_case(self, case: CaseNode, outcome: Outcome | None, session: RunSession) -> None:
        if outcome is None:
            return
        if isinstance(outcome, Passed):
            session.passed(case)
        elif isinstance(outcome, Ignored):
            session.skipped(case, outcome.reason)
        elif isinstance(outcome, Failed):
            session.failed(case, TestMessage(outcome.message, line=outcome.line, source_path=case.source_path))

    def _report_cases(self, file: FileNode, output: str, session: RunSession) -> None:
        for case in file.children:
            self._report_case(case, classify_case(case.id, output), session)

    def report(self, node: TestNode, output: str, session: RunSession) -> None:
        """Interprets `output` for a file or a single case and reports the outcomes."""
        if isinstance(node, CaseNode):
            self._report_case(node, classify_case(node.id, output), session)
            return

        file_report = classify_file(node, output)
        for case in node.children:
            self._report_case(case, file_report.cases.get(case.id), session)
        if isinstance(file_report.outcome, Passed):
            session.append_output("Test passed.")
            session.passed(node)
        else:
            session.failed(node, TestMessage(output, source_path=node.source_path))

    async def prepare_debug(self, node: TestNode, session: RunSession | None = None) -> DebugTarget | None:
        """
        Builds the binary for `node` and resolves what the debugger should
        launch. Returns None when the configuration or the build is unusable.
        """
        configuration = self._config.snapshot(node.source_path).debug_configuration
        if not configuration:
            log.error("Debug requested without a debug configuration", test_id=node.key)
            self._show_error(MSG_NO_DEBUG_CONFIG)
            if session is not None:
                session.errored(node, TestMessage(MSG_NO_DEBUG_CONFIG))
            return None

        if not await self._prepare_binary(node, session):
            return None

        return DebugTarget(
            executable=self.commands.executable(node.source_path),
            configuration=configuration,
            workspace=Path(self._config.workspace),
            source_path=node.source_path,
        )

    async def debug_node(self, node: TestNode, session: RunSession | None = None) -> DebugTarget | None:
        target = await self.prepare_debug(node, session)
        if target is None:
            return None

        started = False
        if self._debugger is not None:
            try:
                started = await self._debugger.start_debugging(target.workspace, target.configuration, target.executable)
            except DebugLaunchError as e:
                log.error("Debug launcher raised", error=str(e), executable=target.executable)
        if not started:
            log.error("Debugger could not be started", executable=target.executable)
            self._show_error(MSG_DEBUGGER_FAILED)
            if session is not None:
                session.errored(node, TestMessage(MSG_DEBUGGER_FAILED))
            return None
        log.info("Debugger started", executable=target.executable, configuration=target.configuration)
        return target


# 🔼⚙️
