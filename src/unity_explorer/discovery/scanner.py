# src/unity_explorer/discovery/scanner.py

"""
Locates test case declarations in source text.
"""

from collections.abc import Iterator

import regex
import structlog
from attrs import frozen

log = structlog.get_logger("discovery.scanner")

_NON_WHITESPACE = regex.compile(r"\S")


@frozen(slots=True)
class ScannedCase:
    """One match of the test case pattern."""

    name: str
    offset: int
    leading_whitespace: int
    line: int


def declaration_line(text: str, offset: int, matched: str) -> int:
    """
    0-based line of a declaration: newlines before the match start, plus the
    newlines inside the match that precede its first non-whitespace character.
    """
    line = text.count("\n", 0, offset)
    first = _NON_WHITESPACE.search(matched)
    if first is not None:
        line += matched.count("\n", 0, first.start())
    return line


def iter_test_cases(text: str, pattern: regex.Pattern, timeout: float | None = None) -> Iterator[ScannedCase]:
    """
    Lazily yields one `ScannedCase` per non-overlapping match of `pattern`,
    named by capture group 1. Each call starts a fresh scan.

    Raises:
        TimeoutError: The pattern took longer than `timeout` seconds.
    """
    for match in pattern.finditer(text, timeout=timeout):
        name = match.group(1)
        if not name:
            log.debug("Match without a test name skipped", offset=match.start())
            continue
        matched = match.group(0)
        first = _NON_WHITESPACE.search(matched)
        yield ScannedCase(
            name=name,
            offset=match.start(),
            leading_whitespace=first.start() if first else len(matched),
            line=declaration_line(text, match.start(), matched),
        )


def scan_source(text: str, pattern: regex.Pattern, timeout: float | None = None, source: str = "<text>") -> list[ScannedCase]:
    """Collects every case in `text`; a timed out scan counts as no matches."""
    try:
        return list(iter_test_cases(text, pattern, timeout))
    except TimeoutError:
        log.warning("Test case pattern timed out, no cases taken from file", file=source, timeout=timeout)
        return []


# 🔼⚙️
