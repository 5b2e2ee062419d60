# src/unity_explorer/cli/run_cmds.py

import asyncio
import signal
from pathlib import Path

import click
import structlog
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from unity_explorer.cli.utils import (
    apply_config_log_level,
    load_workspace_config,
    logging_options,
    normalize_node_id,
    setup_logging_from_context,
    workspace_options,
)
from unity_explorer.exceptions import ConfigurationError
from unity_explorer.runtime import (
    ConsoleDebugLauncher,
    ConsoleMessageSurface,
    Engine,
    NodeState,
    RecordingRunSession,
    RunRequest,
    create_engine,
)
from unity_explorer.runtime.console import STATE_STYLE
from unity_explorer.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.run")

EXIT_INTERRUPTED = 130


async def _run_tests(engine: Engine, request: RunRequest, session: RecordingRunSession) -> None:
    await engine.loader.load_all()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, session.token.cancel)
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handlers; CTRL-C interrupts asyncio.run instead.
        log.debug("SIGINT handler not installed, cancellation only via KeyboardInterrupt")
    try:
        await engine.runner.run(request, session)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


def _summary(session: RecordingRunSession) -> Table:
    table = Table(title="Summary", show_header=True, header_style="bold")
    table.add_column("State")
    table.add_column("Count", justify="right")
    for state in (NodeState.PASSED, NodeState.FAILED, NodeState.SKIPPED, NodeState.ERRORED):
        symbol, style = STATE_STYLE[state]
        table.add_row(f"[{style}]{symbol} {state.value}[/]", str(session.count(state)))
    return table


def _load(ctx: click.Context, workspace: Path, config_path: Path | None, logging_kwargs: dict):
    try:
        config = load_workspace_config(workspace, config_path)
    except ConfigurationError as e:
        log.error("Failed to load configuration", error=str(e))
        click.echo(f"Error: Configuration problem:\n{e}", err=True)
        ctx.exit(1)
    apply_config_log_level(ctx, config, **logging_kwargs)
    return config


@click.command(name="run")
@workspace_options
@click.argument("test_ids", nargs=-1)
@click.option(
    "-x",
    "--exclude",
    multiple=True,
    help="Test id to skip (`path` or `path::case`, relative to the workspace). Repeatable.",
)
@click.option("--show-output", is_flag=True, default=False, help="Echo test executable output.")
@logging_options
@click.pass_context
def run_cli(
    ctx: click.Context,
    workspace: Path,
    config_path: Path | None,
    test_ids: tuple[str, ...],
    exclude: tuple[str, ...],
    show_output: bool,
    **kwargs,
):
    """
    Build and run tests.

    TEST_IDS are workspace-relative source paths, optionally followed by
    `::<test name>`. Without ids every discovered file is run.
    """
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    config = _load(ctx, workspace, config_path, kwargs)
    root = config.explorer.workspace

    console = Console()
    messages = ConsoleMessageSurface(Console(stderr=True))
    engine = create_engine(config.explorer, messages)
    request = RunRequest(
        include=[normalize_node_id(root, raw) for raw in test_ids] if test_ids else None,
        exclude=[normalize_node_id(root, raw) for raw in exclude],
    )
    session = RecordingRunSession(console=console, show_output=show_output)

    try:
        asyncio.run(_run_tests(engine, request, session))
    except KeyboardInterrupt:
        log.warning("Run interrupted by KeyboardInterrupt (CTRL-C).", emoji_key="cancel")
        ctx.exit(EXIT_INTERRUPTED)

    console.print(_summary(session))
    if session.token.is_cancelled:
        ctx.exit(EXIT_INTERRUPTED)
    if session.has_failures:
        ctx.exit(1)


@click.command(name="resolve")
@workspace_options
@click.argument("source", type=click.Path(path_type=Path))
@logging_options
@click.pass_context
def resolve_cli(ctx: click.Context, workspace: Path, config_path: Path | None, source: Path, **kwargs):
    """Show the commands derived for one test SOURCE file."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    config = _load(ctx, workspace, config_path, kwargs)
    source_path = (config.explorer.workspace / source).resolve()

    engine = create_engine(config.explorer, ConsoleMessageSurface(Console(stderr=True)))
    commands = engine.runner.commands
    build = commands.build_command(source_path)
    pre_build = commands.pre_build_command(source_path)

    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Source", escape(str(source_path)))
    table.add_row("Pre-build", escape(pre_build.command) if pre_build else "[dim]none[/]")
    table.add_row("Build target", escape(commands.build_target(source_path)))
    table.add_row("Build command", escape(build.command))
    table.add_row("Build cwd", escape(str(build.cwd)))
    table.add_row("Executable", escape(commands.executable(source_path)))
    Console().print(table)


@click.command(name="debug")
@workspace_options
@click.argument("test_id")
@logging_options
@click.pass_context
def debug_cli(ctx: click.Context, workspace: Path, config_path: Path | None, test_id: str, **kwargs):
    """
    Build the binary for TEST_ID and hand it to the debug launcher.

    The console launcher only prints the executable and debug configuration.
    """
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    config = _load(ctx, workspace, config_path, kwargs)

    console = Console()
    engine = create_engine(
        config.explorer,
        ConsoleMessageSurface(Console(stderr=True)),
        debugger=ConsoleDebugLauncher(console),
    )
    request = RunRequest(include=[normalize_node_id(config.explorer.workspace, test_id)])
    session = RecordingRunSession(console=console)

    async def _debug() -> None:
        await engine.loader.load_all()
        await engine.runner.run(request, session, debug=True)

    asyncio.run(_debug())
    if not session.results:
        click.echo(f"Error: Test '{test_id}' not found.", err=True)
        ctx.exit(1)
    if session.has_failures:
        ctx.exit(1)


# 🔼⚙️
