# src/unity_explorer/results.py

"""
Interprets test binary output into per-test outcomes.

Unity prints one result line per test. The flat format puts the source line
before the test name (`file.c:42:test_bar:FAIL: msg`); the fixture format puts
it after (`TEST(Group, Case)file.c:42::FAIL: msg`). Grammars are tried in
order and the first match wins.
"""

import functools
import re
from enum import Enum
from typing import TypeAlias

import structlog
from attrs import field, frozen

from unity_explorer.tree import GROUP_SEPARATOR, FileNode

log = structlog.get_logger("results")

# Verdict keywords stand alone: not inside a path segment or a longer word.
_VERDICT = (
    r"(?<![\w/])(?P<verdict>PASS(?!\w)|FAIL(?!\w)(?::[ \t]?(?P<message>[^\n]*))?"
    r"|IGNORE(?!\w)(?::[ \t]?(?P<reason>[^\n]*))?)"
)
_FAIL = r"(?<![\w/])(?P<verdict>FAIL)(?!\w)(?::[ \t]?(?P<message>[^\n]*))?"


class Verdict(Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    IGNORE = "IGNORE"


@frozen(slots=True)
class Passed:
    pass


@frozen(slots=True)
class Failed:
    message: str
    line: int | None = None


@frozen(slots=True)
class Ignored:
    reason: str = ""


Outcome: TypeAlias = Passed | Failed | Ignored


@frozen(slots=True)
class GrammarMatch:
    verdict: Verdict
    message: str = ""
    line: int | None = None


def id_pattern(test_id: str) -> str:
    """Regex for a test id, tolerant of spacing after the fixture separator."""
    if GROUP_SEPARATOR in test_id:
        group, _, name = test_id.partition(GROUP_SEPARATOR)
        body = rf"{re.escape(group.strip())}{GROUP_SEPARATOR}\s*{re.escape(name.strip())}"
    else:
        body = re.escape(test_id)
    return rf"(?<!\w){body}(?!\w)"


@frozen(slots=True)
class ResultGrammar:
    """One output shape, written as a template around the `{id}` placeholder."""

    name: str
    template: str = field(repr=False)

    def compile(self, test_id: str) -> re.Pattern[str]:
        return _compile(self.template, test_id)

    def search(self, test_id: str, output: str) -> GrammarMatch | None:
        match = self.compile(test_id).search(output)
        if match is None:
            return None
        verdict_text = match.group("verdict")
        verdict = Verdict(verdict_text.split(":", 1)[0])
        groups = match.groupdict()
        message = groups.get("message") or groups.get("reason") or ""
        line = None
        if groups.get("line") is not None:
            # Unity reports 1-based lines.
            line = max(int(groups["line"]) - 1, 0)
        return GrammarMatch(verdict=verdict, message=message.strip(), line=line)


@functools.lru_cache(maxsize=1024)
def _compile(template: str, test_id: str) -> re.Pattern[str]:
    return re.compile(template.replace("{id}", id_pattern(test_id)))


SIGNATURE = ResultGrammar("signature", r"{id}[^\n]*?" + _VERDICT)
LINE_NUMBER_FIRST = ResultGrammar("line-number-first", r":(?P<line>\d+):[^\n]*?{id}[^\n]*?" + _FAIL)
IDENTIFIER_FIRST = ResultGrammar("identifier-first", r"{id}[^\n]*?:(?P<line>\d+):[^\n]*?" + _FAIL)

# Order matters: a line satisfying both location grammars takes the first.
LOCATION_GRAMMARS: tuple[ResultGrammar, ...] = (LINE_NUMBER_FIRST, IDENTIFIER_FIRST)


def classify_case(test_id: str, output: str) -> Outcome | None:
    """
    Classifies one test against captured stdout.

    Returns None when no result line names the test; such a test gets no
    verdict for the run.
    """
    signature = SIGNATURE.search(test_id, output)
    if signature is None:
        log.debug("No result line for test", test_id=test_id, emoji_key="result")
        return None
    if signature.verdict is Verdict.PASS:
        return Passed()
    if signature.verdict is Verdict.IGNORE:
        return Ignored(signature.message)

    for grammar in LOCATION_GRAMMARS:
        located = grammar.search(test_id, output)
        if located is not None:
            log.debug("Failure located", test_id=test_id, grammar=grammar.name, line=located.line)
            return Failed(located.message, located.line)
    return Failed(signature.message)


@frozen(slots=True)
class FileReport:
    """Per-case outcomes of a whole-file run plus the file's rolled up outcome."""

    outcome: Passed | Failed
    cases: dict[str, Outcome | None]

    @property
    def unknown(self) -> list[str]:
        return [case_id for case_id, outcome in self.cases.items() if outcome is None]


def classify_file(file: FileNode, output: str) -> FileReport:
    """
    Classifies every case of `file` against the same output. The file passes
    only if no case failed or went without a verdict; ignored cases do not
    fail it. A failed file carries the raw output as its message.
    """
    cases = {case.id: classify_case(case.id, output) for case in file.children}
    failing = [cid for cid, outcome in cases.items() if outcome is None or isinstance(outcome, Failed)]
    outcome: Passed | Failed = Failed(output) if failing else Passed()
    log.info(
        "File classified",
        file=file.id,
        passed=not failing,
        cases=len(cases),
        failing=len(failing),
        emoji_key="result",
    )
    return FileReport(outcome=outcome, cases=cases)


# 🔼⚙️
