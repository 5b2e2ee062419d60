#
# config/__init__.py
#
"""
Configuration handling sub-package for unity_explorer.

Exports the loading functions and configuration models.
"""

from .loader import DEFAULT_CONFIG_NAME, default_config, find_config, load_config
from .models import (
    DEFAULT_TEST_CASE_REGEX,
    ExplorerConfig,
    GlobalConfig,
    PatternConfig,
    UnityExplorerConfig,
)

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_TEST_CASE_REGEX",
    "ExplorerConfig",
    "GlobalConfig",
    "PatternConfig",
    "UnityExplorerConfig",
    "default_config",
    "find_config",
    "load_config",
]

# 🔼⚙️
