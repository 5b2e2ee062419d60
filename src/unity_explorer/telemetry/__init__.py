#
# src/unity_explorer/telemetry/__init__.py
#
"""
Logging setup for unity_explorer.
"""
from .logger import StructLogger, setup_logging

__all__ = ["StructLogger", "setup_logging"]

# 🔼⚙️
