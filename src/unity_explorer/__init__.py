#
# src/unity_explorer/__init__.py
#
"""
Unity Explorer: discovery, execution and result interpretation for Unity C tests.
"""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("unity-explorer")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = ["__version__"]

# 🔼⚙️
