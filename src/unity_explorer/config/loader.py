# src/unity_explorer/config/loader.py

"""
Loads and validates `unity-explorer.toml` into attrs models.
"""

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from unity_explorer.config.models import ExplorerConfig, GlobalConfig, PatternConfig, UnityExplorerConfig
from unity_explorer.exceptions import ConfigurationError

log = structlog.get_logger("config.loader")

DEFAULT_CONFIG_NAME = "unity-explorer.toml"
ENV_LOG_LEVEL = "UNITY_EXPLORER_LOG_LEVEL"


def _table(data: Mapping[str, Any], key: str, source: Path) -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"'[{key}]' must be a table in '{source}'")
    return dict(value)


def _build_explorer(table: dict[str, Any], workspace: Path, source: Path) -> ExplorerConfig:
    overrides_raw = table.pop("overrides", {})
    if not isinstance(overrides_raw, Mapping):
        raise ConfigurationError(f"'[explorer.overrides]' must be a table in '{source}'")

    overrides: dict[str, dict[str, Any]] = {}
    for rel_dir, options in overrides_raw.items():
        if not isinstance(options, Mapping):
            raise ConfigurationError(f"Override '{rel_dir}' must be a table in '{source}'")
        overrides[rel_dir] = dict(options)

    # Validate eagerly so a bad value fails at load time, not mid-run.
    PatternConfig.from_options(table, source=f"{source} [explorer]")
    for rel_dir, options in overrides.items():
        PatternConfig.from_options({**table, **options}, source=f"{source} [explorer.overrides.\"{rel_dir}\"]")

    return ExplorerConfig(workspace=workspace, defaults=table, overrides=overrides)


def load_config(config_path: Path, workspace: Path | None = None) -> UnityExplorerConfig:
    """
    Loads a configuration file.

    Args:
        config_path: Path to the TOML file.
        workspace: Root that relative option paths resolve against. Defaults to
            the directory holding the configuration file.

    Raises:
        ConfigurationError: The file is unreadable, not valid TOML, or holds
            unknown options or values of the wrong type.
    """
    config_path = Path(config_path)
    load_log = log.bind(config_path=str(config_path))
    load_log.debug("Loading configuration", emoji_key="config")

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file '{config_path}'", details=e) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in '{config_path}': {e}", details=e) from e

    workspace = (workspace or config_path.parent).resolve()

    global_table = _table(data, "global", config_path)
    if env_level := os.environ.get(ENV_LOG_LEVEL):
        global_table["log_level"] = env_level
    try:
        global_config = GlobalConfig(**global_table)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid [global] table in '{config_path}': {e}", details=e) from e

    explorer = _build_explorer(_table(data, "explorer", config_path), workspace, config_path)
    load_log.info(
        "Configuration loaded",
        workspace=str(workspace),
        overrides=len(explorer.overrides),
        emoji_key="config",
    )
    return UnityExplorerConfig(explorer=explorer, global_config=global_config, source_path=config_path)


def default_config(workspace: Path) -> UnityExplorerConfig:
    """Configuration used when the workspace carries no configuration file."""
    return UnityExplorerConfig(explorer=ExplorerConfig(workspace=Path(workspace).resolve()))


def find_config(workspace: Path) -> Path | None:
    candidate = Path(workspace) / DEFAULT_CONFIG_NAME
    return candidate if candidate.is_file() else None


# 🔼⚙️
