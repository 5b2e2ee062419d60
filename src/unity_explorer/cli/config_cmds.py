# src/unity_explorer/cli/config_cmds.py

from pathlib import Path

import click
import structlog
from rich.pretty import pretty_repr

from unity_explorer.cli.utils import (
    apply_config_log_level,
    load_workspace_config,
    logging_options,
    setup_logging_from_context,
    workspace_options,
)
from unity_explorer.exceptions import ConfigurationError
from unity_explorer.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.config")


@click.group(name="config")
def config_cli():
    """Commands for inspecting and validating configuration."""
    pass


@config_cli.command(name="show")
@workspace_options
@click.option("--scope", type=click.Path(path_type=Path), default=None, help="Resolve options for this file.")
@logging_options
@click.pass_context
def show_config(ctx: click.Context, workspace: Path, config_path: Path | None, scope: Path | None, **kwargs):
    """Load, validate, and display the configuration."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
    )
    log.info("Executing 'config show' command", config_path=str(config_path), workspace=str(workspace))

    try:
        config = load_workspace_config(workspace, config_path)
        apply_config_log_level(ctx, config, **kwargs)
        snapshot = config.explorer.snapshot((workspace / scope).resolve() if scope else None)
        click.echo(pretty_repr(config.global_config, expand_all=True))
        click.echo(pretty_repr(snapshot, expand_all=True))
        if config.explorer.overrides:
            click.echo(f"Overrides: {', '.join(sorted(config.explorer.overrides))}")
    except ConfigurationError as e:
        log.error("Failed to load or validate configuration", error=str(e), exc_info=True)
        click.echo(f"Error: Configuration problem:\n{e}", err=True)
        ctx.exit(1)


# 🔼⚙️
