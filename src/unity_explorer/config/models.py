#
# config/models.py
#
"""
Attrs-based data models for unity_explorer configuration structure.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import attrs
from attrs import define, field

from unity_explorer.exceptions import ConfigurationError

DEFAULT_TEST_CASE_REGEX = r"^\s*void\s+(test\w*)\s*\(\s*void\s*\)"


# --- Validators ---
def _validate_log_level(inst: Any, attr: Any, value: str) -> None:
    """Validator for standard logging level names."""
    valid = logging._nameToLevel.keys()
    if value.upper() not in valid:
        raise ValueError(f"Invalid log_level '{value}'. Must be one of {list(valid)}.")


def _validate_positive_number(inst: Any, attr: Any, value: float) -> None:
    if value <= 0:
        raise ValueError(f"Field '{attr.name}' must be positive, got {value}")


def _to_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise TypeError(f"expected a number, got {type(value).__name__}")
    return float(value)


def _string_option(name: str, default: str = "") -> Any:
    return field(
        default=default,
        validator=attrs.validators.instance_of(str),
        metadata={"option": name},
    )


# --- Per-scope option snapshot ---
@define(frozen=True, slots=True)
class PatternConfig:
    """
    Immutable snapshot of every named option, resolved for one file scope.

    Field metadata carries the external (camelCase) option name.
    """
    enable: bool = field(
        default=True, validator=attrs.validators.instance_of(bool), metadata={"option": "enable"}
    )
    pre_build_command: str = _string_option("preBuildCommand")
    test_build_application: str = _string_option("testBuildApplication", "make")
    test_build_cwd_path: str = _string_option("testBuildCwdPath", ".")
    test_build_args: str = _string_option("testBuildArgs")
    test_build_target_regex: str = _string_option("testBuildTargetRegex")
    test_executable_regex: str = _string_option("testExecutableRegex")
    test_executable_args: str = _string_option("testExecutableArgs")
    test_executable_arg_name_filter_regex: str = _string_option("testExecutableArgNameFilterRegex")
    test_case_regex: str = _string_option("testCaseRegex", DEFAULT_TEST_CASE_REGEX)
    pretty_test_case_regex: str = _string_option("prettyTestCaseRegex")
    pretty_test_file_regex: str = _string_option("prettyTestFileRegex")
    test_source_glob_pattern: str = _string_option("testSourceGlobPattern")
    test_source_folder: str = _string_option("testSourceFolder", ".")
    test_source_file_regex: str = _string_option("testSourceFileRegex", r"test_.*\.c$")
    unit_under_test_folder: str = _string_option("unitUnderTestFolder", ".")
    unit_under_test_file_regex: str = _string_option("unitUnderTestFileRegex", r"\.[hc]$")
    debug_configuration: str = _string_option("debugConfiguration")
    scan_timeout: float = field(
        default=2.0,
        converter=_to_float,
        validator=_validate_positive_number,
        metadata={"option": "scanTimeout"},
    )

    @classmethod
    def option_names(cls) -> dict[str, str]:
        """Maps external option names to attribute names."""
        return {a.metadata["option"]: a.name for a in attrs.fields(cls)}

    @classmethod
    def from_options(cls, options: Mapping[str, Any], source: str = "<options>") -> "PatternConfig":
        """Builds a snapshot from a mapping keyed by external option names."""
        names = cls.option_names()
        unknown = sorted(set(options) - set(names))
        if unknown:
            raise ConfigurationError(f"Unknown option(s) {unknown} in {source}")
        try:
            return cls(**{names[key]: value for key, value in options.items()})
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid option value in {source}: {e}", details=e) from e

    def get(self, option: str) -> Any:
        """Returns the value of an option by its external name."""
        try:
            return getattr(self, self.option_names()[option])
        except KeyError:
            raise ConfigurationError(f"Unknown option '{option}'") from None


@define(frozen=True, slots=True)
class GlobalConfig:
    """Global default settings for unity_explorer."""
    log_level: str = field(default="INFO", validator=_validate_log_level)

    @property
    def numeric_log_level(self) -> int:
        return logging.getLevelName(self.log_level.upper())


@define(frozen=True, slots=True)
class ExplorerConfig:
    """
    Raw option tables for one workspace.

    `defaults` holds the `[explorer]` table, `overrides` maps a workspace
    relative directory to the options that apply to files below it.
    """
    workspace: Path = field(converter=Path)
    defaults: Mapping[str, Any] = field(factory=dict)
    overrides: Mapping[str, Mapping[str, Any]] = field(factory=dict)

    def _scope_options(self, scope: Path | None) -> dict[str, Any]:
        merged = dict(self.defaults)
        if scope is None:
            return merged
        target = scope if scope.is_absolute() else self.workspace / scope
        matching = []
        for rel_dir, options in self.overrides.items():
            base = (self.workspace / rel_dir).resolve()
            if target.resolve().is_relative_to(base):
                matching.append((len(base.parts), options))
        # Deeper directories win.
        for _, options in sorted(matching, key=lambda item: item[0]):
            merged.update(options)
        return merged

    def snapshot(self, scope: Path | None = None) -> PatternConfig:
        return PatternConfig.from_options(self._scope_options(scope), source=str(scope or self.workspace))

    def get_string(self, name: str, scope: Path | None = None) -> str:
        value = self.snapshot(scope).get(name)
        return value if isinstance(value, str) else str(value)

    def get_bool(self, name: str, scope: Path | None = None) -> bool:
        return bool(self.snapshot(scope).get(name))

    def get_path(self, name: str, scope: Path | None = None) -> Path:
        """Resolves a path-valued option against the workspace root."""
        return (self.workspace / self.get_string(name, scope)).resolve()


@define(frozen=True, slots=True)
class UnityExplorerConfig:
    """Root configuration object for the unity_explorer application."""
    explorer: ExplorerConfig = field()
    global_config: GlobalConfig = field(factory=GlobalConfig, metadata={"toml_name": "global"})
    source_path: Path | None = field(default=None)


# 🔼⚙️
