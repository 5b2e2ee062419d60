# src/unity_explorer/discovery/patterns.py

"""
Compiles and applies the user configurable patterns.

Every option pattern follows one contract: when the pattern is non-empty and
matches, capture group 1 replaces the subject; otherwise the subject is
returned unchanged. Build target and executable options are replacement
templates applied to the file base name through the fixed `(.*)` base pattern.
"""

import functools
import re
from pathlib import Path
from typing import TypeAlias

import regex
import structlog
from attrs import frozen

from unity_explorer.config.models import PatternConfig
from unity_explorer.exceptions import PatternError
from unity_explorer.host import MessageSurface

log = structlog.get_logger("discovery.patterns")

BASE_PATTERN = regex.compile(r"(.*)")
DEFAULT_MATCH_TIMEOUT = 1.0

_JS_REFERENCE = re.compile(r"\$(\$|&|\d{1,2})")
# A backslash that does not start a `\1` or `\g<name>` group reference.
_LITERAL_BACKSLASH = re.compile(r"\\(?!\d|g<)")


@frozen(slots=True)
class CompiledPattern:
    source: str
    pattern: regex.Pattern


@frozen(slots=True)
class InvalidPattern:
    source: str
    reason: str

    def to_error(self, option: str | None = None) -> PatternError:
        return PatternError(f"Invalid pattern '{self.source}': {self.reason}", self.source, option)


PatternResult: TypeAlias = CompiledPattern | InvalidPattern


@functools.lru_cache(maxsize=256)
def compile_pattern(source: str, flags: int = 0, min_groups: int = 0) -> PatternResult:
    """Compiles a user pattern without raising."""
    try:
        compiled = regex.compile(source, flags)
    except regex.error as e:
        return InvalidPattern(source, str(e))
    if compiled.groups < min_groups:
        return InvalidPattern(source, f"needs at least {min_groups} capture group(s)")
    return CompiledPattern(source, compiled)


def to_python_template(template: str) -> str:
    r"""
    Converts JavaScript style references (`$1`, `$&`, `$$`) into `regex`
    template syntax. Templates without such references keep `\1` and
    `\g<name>` references; any other backslash is literal, so Windows paths
    such as `build\tests.exe` survive.
    """
    if not _JS_REFERENCE.search(template):
        return _LITERAL_BACKSLASH.sub(r"\\\\", template)

    def _convert(match: re.Match[str]) -> str:
        ref = match.group(1)
        if ref == "$":
            return "$"
        if ref == "&":
            return r"\g<0>"
        return rf"\g<{int(ref)}>"

    return _JS_REFERENCE.sub(_convert, template.replace("\\", "\\\\"))


class PatternEngine:
    """
    Applies option patterns to subjects, falling back to the subject and
    warning through the host when a pattern is unusable.
    """

    def __init__(self, messages: MessageSurface | None = None, timeout: float = DEFAULT_MATCH_TIMEOUT):
        self._messages = messages
        self._timeout = timeout
        self._warned: set[tuple[str, str]] = set()

    def warn(self, error: PatternError) -> None:
        """Reports a pattern problem once per option and pattern."""
        key = (error.option or "", error.pattern)
        if key in self._warned:
            return
        self._warned.add(key)
        log.warning("Unusable pattern in configuration", option=error.option, pattern=error.pattern, error=str(error))
        if self._messages is not None:
            self._messages.show_warning(str(error))

    def compile(self, source: str, option: str, flags: int = 0, min_groups: int = 0) -> regex.Pattern | None:
        result = compile_pattern(source, flags, min_groups)
        if isinstance(result, InvalidPattern):
            self.warn(result.to_error(option))
            return None
        return result.pattern

    def extract(self, source: str, subject: str, option: str) -> str:
        """Returns capture group 1 of `source` searched in `subject`, or `subject`."""
        if not source:
            return subject
        compiled = self.compile(source, option, min_groups=1)
        if compiled is None:
            return subject
        try:
            match = compiled.search(subject, timeout=self._timeout)
        except TimeoutError as e:
            self.warn(PatternError("Pattern timed out", source, option, details=e))
            return subject
        if match is None or match.group(1) is None:
            return subject
        return match.group(1)

    def derive(self, template: str, subject: str, option: str) -> str:
        """Rewrites `subject` with a replacement template over the `(.*)` base pattern."""
        if not template:
            return subject
        try:
            return BASE_PATTERN.sub(to_python_template(template), subject, count=1)
        except (regex.error, IndexError) as e:
            self.warn(PatternError(f"Invalid replacement template '{template}': {e}", template, option, details=e))
            return subject

    def prettify_test_label(self, name: str, config: PatternConfig) -> str:
        return self.extract(config.pretty_test_case_regex, name, "prettyTestCaseRegex")

    def prettify_file_label(self, label: str, config: PatternConfig) -> str:
        return self.extract(config.pretty_test_file_regex, label, "prettyTestFileRegex")

    def build_target(self, source_path: Path, config: PatternConfig) -> str:
        return self.derive(config.test_build_target_regex, Path(source_path).stem, "testBuildTargetRegex")

    def executable_path(self, source_path: Path, config: PatternConfig) -> str:
        return self.derive(config.test_executable_regex, Path(source_path).stem, "testExecutableRegex")

    def name_filter(self, case_name: str, config: PatternConfig) -> str:
        return self.extract(
            config.test_executable_arg_name_filter_regex, case_name, "testExecutableArgNameFilterRegex"
        )

    def matches(self, source: str, subject: str, option: str) -> bool:
        """True when `source` is empty or found in `subject`."""
        if not source:
            return True
        compiled = self.compile(source, option)
        if compiled is None:
            return False
        try:
            return compiled.search(subject, timeout=self._timeout) is not None
        except TimeoutError as e:
            self.warn(PatternError("Pattern timed out", source, option, details=e))
            return False


# 🔼⚙️
