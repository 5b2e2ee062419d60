# src/unity_explorer/cli/discover_cmds.py

import asyncio
from pathlib import Path

import click
import structlog
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from unity_explorer.cli.utils import (
    apply_config_log_level,
    load_workspace_config,
    logging_options,
    setup_logging_from_context,
    workspace_options,
)
from unity_explorer.exceptions import ConfigurationError
from unity_explorer.runtime import ConsoleMessageSurface, create_engine
from unity_explorer.telemetry import StructLogger
from unity_explorer.tree import TestTree

log: StructLogger = structlog.get_logger("cli.discover")


def render_tree(tree: TestTree, workspace: Path, show_ids: bool = False) -> Tree:
    root = Tree(f"[bold]{escape(tree.root.label)}[/]")
    for file in tree:
        try:
            location = file.source_path.relative_to(workspace)
        except ValueError:
            location = file.source_path
        branch = root.add(f"[cyan]{escape(file.label)}[/] [dim]{escape(str(location))}[/]")
        for case in file.children:
            text = f"{escape(case.label)} [dim]:{case.line + 1}[/]"
            if show_ids:
                text += f" [dim]{escape(case.id)}[/]"
            branch.add(text)
    return root


@click.command(name="discover")
@workspace_options
@click.option("--ids", "show_ids", is_flag=True, default=False, help="Show raw test ids next to labels.")
@logging_options
@click.pass_context
def discover_cli(ctx: click.Context, workspace: Path, config_path: Path | None, show_ids: bool, **kwargs):
    """Scan the workspace and print the discovered test tree."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    try:
        config = load_workspace_config(workspace, config_path)
    except ConfigurationError as e:
        log.error("Failed to load configuration", error=str(e))
        click.echo(f"Error: Configuration problem:\n{e}", err=True)
        ctx.exit(1)
    apply_config_log_level(ctx, config, **kwargs)

    messages = ConsoleMessageSurface(Console(stderr=True))
    engine = create_engine(config.explorer, messages)
    tree = asyncio.run(engine.loader.load_all())

    console = Console()
    console.print(render_tree(tree, config.explorer.workspace, show_ids))
    cases = sum(len(file.children) for file in tree)
    console.print(f"[dim]{len(tree)} file(s), {cases} test(s)[/]")
    log.info("Discovery finished", files=len(tree), cases=cases, emoji_key="discover")


# 🔼⚙️
