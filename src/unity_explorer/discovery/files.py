# src/unity_explorer/discovery/files.py

"""
Finds test source files in a workspace.
"""

import os
from pathlib import Path

import structlog

from unity_explorer.config.models import PatternConfig
from unity_explorer.discovery.patterns import PatternEngine
from unity_explorer.exceptions import DiscoveryError

log = structlog.get_logger("discovery.files")


def _walk(folder: Path) -> list[Path]:
    """
    Lists every file under `folder`. A subdirectory that cannot be read is
    logged and skipped; only a missing or unreadable root is an error.
    """
    if not folder.is_dir():
        raise DiscoveryError(f"Cannot find test source folder '{folder}'")

    root_error: list[OSError] = []

    def _skip(error: OSError) -> None:
        if Path(error.filename or "") == folder:
            root_error.append(error)
        else:
            log.warning("Skipping unreadable folder", folder=error.filename, error=str(error))

    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(folder, onerror=_skip):
        dirnames.sort()
        found.extend(Path(dirpath, name) for name in sorted(filenames))
    if root_error:
        raise DiscoveryError(f"Cannot read test source folder '{folder}'", details=root_error[0]) from root_error[0]
    return found


def list_source_files(workspace: Path, config: PatternConfig, patterns: PatternEngine) -> list[Path]:
    """
    Lists test sources, either by `testSourceGlobPattern` relative to the
    workspace or by walking `testSourceFolder` and keeping paths that match
    `testSourceFileRegex`.

    Raises:
        DiscoveryError: The source folder is missing or unreadable.
    """
    if config.test_source_glob_pattern:
        files = sorted(p.resolve() for p in workspace.glob(config.test_source_glob_pattern) if p.is_file())
        log.debug("Listed sources by glob", glob=config.test_source_glob_pattern, count=len(files))
        return files

    folder = (workspace / config.test_source_folder).resolve()
    files = [
        path
        for path in _walk(folder)
        if patterns.matches(config.test_source_file_regex, str(path), "testSourceFileRegex")
    ]
    log.debug("Listed sources by folder", folder=str(folder), count=len(files))
    return files


def is_test_source(path: Path, workspace: Path, config: PatternConfig, patterns: PatternEngine) -> bool:
    path = Path(path).resolve()
    if config.test_source_glob_pattern:
        return any(p.resolve() == path for p in workspace.glob(config.test_source_glob_pattern))
    folder = (workspace / config.test_source_folder).resolve()
    return path.is_relative_to(folder) and patterns.matches(
        config.test_source_file_regex, str(path), "testSourceFileRegex"
    )


def is_unit_under_test(path: Path, workspace: Path, config: PatternConfig, patterns: PatternEngine) -> bool:
    path = Path(path).resolve()
    folder = (workspace / config.unit_under_test_folder).resolve()
    return path.is_relative_to(folder) and patterns.matches(
        config.unit_under_test_file_regex, str(path), "unitUnderTestFileRegex"
    )


# 🔼⚙️
