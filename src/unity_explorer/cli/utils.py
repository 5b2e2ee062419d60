# src/unity_explorer/cli/utils.py

import logging
from pathlib import Path

import click
import structlog

from unity_explorer.config import UnityExplorerConfig, default_config, find_config, load_config
from unity_explorer.telemetry.logger import setup_logging as core_setup_logging
from unity_explorer.tree import CASE_SEPARATOR

log = structlog.get_logger("cli.utils")

LOG_LEVEL_CHOICES = click.Choice(list(logging._nameToLevel.keys()), case_sensitive=False)


def logging_options(f):
    """Decorator to add logging options to any command."""
    f = click.option(
        "-l",
        "--log-level",
        type=LOG_LEVEL_CHOICES,
        default=None,
        envvar="UNITY_EXPLORER_LOG_LEVEL",
        help="Set the logging level (overrides config file).",
    )(f)
    f = click.option(
        "--log-file",
        type=click.Path(dir_okay=False, writable=True, resolve_path=True),
        default=None,
        envvar="UNITY_EXPLORER_LOG_FILE",
        help="Path to write logs to a file (JSON format).",
    )(f)
    f = click.option(
        "--json-logs",
        is_flag=True,
        default=None,
        envvar="UNITY_EXPLORER_JSON_LOGS",
        help="Output console logs as JSON.",
    )(f)
    return f


def workspace_options(f):
    """Decorator adding the workspace and configuration file options."""
    f = click.option(
        "-c",
        "--config-path",
        type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
        default=None,
        envvar="UNITY_EXPLORER_CONF",
        show_envvar=True,
        help="Configuration file (default: <workspace>/unity-explorer.toml if present).",
    )(f)
    f = click.option(
        "-w",
        "--workspace",
        type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
        default=Path("."),
        show_default=True,
        help="Workspace root that option paths are relative to.",
    )(f)
    return f


def setup_logging_from_context(
    ctx: click.Context,
    local_log_level: str | None = None,
    local_log_file: str | None = None,
    local_json_logs: bool | None = None,
    default_log_level: str = "WARNING",
) -> None:
    """
    Setup logging using context values, allowing local overrides.
    """
    log_level_str = local_log_level or ctx.obj.get("LOG_LEVEL") or default_log_level
    log_file_path = local_log_file or ctx.obj.get("LOG_FILE")
    use_json_logs = local_json_logs if local_json_logs is not None else ctx.obj.get("JSON_LOGS", False)

    numeric_level = logging.getLevelName(log_level_str.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
        log_level_str = "INFO"

    core_setup_logging(
        level=numeric_level,
        json_logs=use_json_logs,
        log_file=log_file_path,
    )

    log.debug(
        "CLI logging initialized via utils",
        level=log_level_str,
        file=log_file_path or "console",
        json=use_json_logs,
    )


def apply_config_log_level(
    ctx: click.Context,
    config: UnityExplorerConfig,
    log_level: str | None = None,
    log_file: str | None = None,
    json_logs: bool | None = None,
) -> None:
    """
    Reconfigures logging with the config file's `[global] log_level` when
    neither a CLI option nor the environment chose a level. Built-in
    defaults leave the CLI default level alone.
    """
    if log_level or ctx.obj.get("LOG_LEVEL") or config.source_path is None:
        return
    setup_logging_from_context(
        ctx,
        local_log_level=config.global_config.log_level,
        local_log_file=log_file,
        local_json_logs=json_logs,
    )


def load_workspace_config(workspace: Path, config_path: Path | None) -> UnityExplorerConfig:
    """
    Loads the explicit configuration file, else the workspace default file,
    else built-in defaults.

    Raises:
        ConfigurationError: The chosen file is invalid.
    """
    workspace = workspace.resolve()
    path = config_path or find_config(workspace)
    if path is None:
        log.info("No configuration file found, using defaults", workspace=str(workspace))
        return default_config(workspace)
    return load_config(path, workspace=workspace)


def normalize_node_id(workspace: Path, raw_id: str) -> str:
    """
    Turns a command line id (`path` or `path::case`, relative to the workspace)
    into a tree id.
    """
    file_part, sep, case_part = raw_id.partition(CASE_SEPARATOR)
    file_id = str((workspace / file_part).resolve())
    return f"{file_id}{sep}{case_part}"


# ⚙️🛠️
