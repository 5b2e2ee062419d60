# src/unity_explorer/execution/commands.py

"""
Builds the shell command lines for building and running test binaries.
"""
import os
import re
import shlex
import subprocess
from pathlib import Path

import structlog
from attrs import frozen

from unity_explorer.discovery.patterns import PatternEngine
from unity_explorer.host import ConfigurationSource
from unity_explorer.tree import GROUP_SEPARATOR, CaseNode, FileNode

log = structlog.get_logger("execution.commands")

# Unity's command line filters: -n selects a test name, -g a fixture group.
NAME_FILTER_FLAG = "-n"
GROUP_FILTER_FLAG = "-g"

_GROUP_SPLIT = re.compile(rf"{GROUP_SEPARATOR}\s*")


@frozen(slots=True)
class CommandLine:
    command: str
    cwd: Path


def quote_arg(value: str) -> str:
    if os.name == "nt":
        return subprocess.list2cmdline([value])
    return shlex.quote(value)


def join_command(*parts: str) -> str:
    return " ".join(part for part in parts if part)


def split_fixture_id(case_id: str) -> tuple[str, str]:
    """Splits `Group, Case` into its two halves."""
    group, name = (_GROUP_SPLIT.split(case_id, maxsplit=1) + [""])[:2]
    return group.strip(), name.strip()


class CommandBuilder:
    """Derives build targets, executables and filter arguments from options."""

    def __init__(self, config: ConfigurationSource, patterns: PatternEngine):
        self._config = config
        self._patterns = patterns

    @property
    def workspace(self) -> Path:
        return Path(self._config.workspace)

    def build_target(self, source_path: Path) -> str:
        return self._patterns.build_target(source_path, self._config.snapshot(source_path))

    def executable(self, source_path: Path) -> str:
        """The test binary for a source file, resolved against the workspace."""
        exe = self._patterns.executable_path(source_path, self._config.snapshot(source_path))
        path = Path(exe)
        return str(path if path.is_absolute() else self.workspace / path)

    def build_command(self, source_path: Path) -> CommandLine:
        config = self._config.snapshot(source_path)
        command = join_command(config.test_build_application, config.test_build_args, self.build_target(source_path))
        return CommandLine(command=command, cwd=(self.workspace / config.test_build_cwd_path).resolve())

    def pre_build_command(self, source_path: Path) -> CommandLine | None:
        config = self._config.snapshot(source_path)
        if not config.pre_build_command:
            return None
        return CommandLine(command=config.pre_build_command, cwd=self.workspace)

    def file_command(self, file: FileNode) -> CommandLine:
        """Runs the whole binary without a filter."""
        config = self._config.snapshot(file.source_path)
        command = join_command(quote_arg(self.executable(file.source_path)), config.test_executable_args)
        return CommandLine(command=command, cwd=self.workspace)

    def case_command(self, case: CaseNode) -> CommandLine:
        """Runs one case: `-n name`, or `-g group -n case` for fixture ids."""
        config = self._config.snapshot(case.source_path)
        if case.is_fixture:
            group, name = split_fixture_id(case.id)
            filters = join_command(
                GROUP_FILTER_FLAG,
                quote_arg(group),
                NAME_FILTER_FLAG,
                quote_arg(self._patterns.name_filter(name, config)),
            )
        else:
            filters = join_command(NAME_FILTER_FLAG, quote_arg(self._patterns.name_filter(case.id, config)))
        command = join_command(quote_arg(self.executable(case.source_path)), config.test_executable_args, filters)
        log.debug("Single case command", test_id=case.compound_id, command=command)
        return CommandLine(command=command, cwd=self.workspace)


# 🔼⚙️
