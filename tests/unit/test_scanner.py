# tests/unit/test_scanner.py

"""Tests for test case declaration scanning."""

from unittest.mock import MagicMock

import regex

from unity_explorer.config import DEFAULT_TEST_CASE_REGEX
from unity_explorer.discovery.scanner import declaration_line, iter_test_cases, scan_source

DEFAULT_PATTERN = regex.compile(DEFAULT_TEST_CASE_REGEX, regex.MULTILINE)


class TestScanSource:
    def test_finds_cases_in_order_with_lines(self, math_source: str) -> None:
        cases = scan_source(math_source, DEFAULT_PATTERN)

        assert [(c.name, c.line) for c in cases] == [("test_add", 5), ("test_subtract", 10)]

    def test_setup_and_teardown_are_not_tests(self, math_source: str) -> None:
        names = [c.name for c in scan_source(math_source, DEFAULT_PATTERN)]
        assert "setUp" not in names
        assert "tearDown" not in names

    def test_blank_lines_swallowed_by_pattern_do_not_shift_line(self) -> None:
        text = "int x;\n\n\n\nvoid test_late(void)\n{\n}\n"
        (case,) = scan_source(text, DEFAULT_PATTERN)

        assert case.line == 4
        assert text.splitlines()[case.line].startswith("void test_late")

    def test_indented_declaration(self) -> None:
        text = "\n    void test_indented(void) {}\n"
        (case,) = scan_source(text, DEFAULT_PATTERN)

        assert case.line == 1
        assert case.leading_whitespace == 5

    def test_fixture_style_pattern(self) -> None:
        pattern = regex.compile(r"^\s*TEST\s*\(\s*(\w+\s*,\s*\w+)\s*\)", regex.MULTILINE)
        text = "TEST_GROUP(Math);\n\nTEST(Math, Adds)\n{\n}\n\nTEST(Math,Subtracts)\n{\n}\n"

        cases = scan_source(text, pattern)
        assert [(c.name, c.line) for c in cases] == [("Math, Adds", 2), ("Math,Subtracts", 6)]

    def test_no_matches(self) -> None:
        assert scan_source("int main(void) { return 0; }\n", DEFAULT_PATTERN) == []

    def test_timeout_yields_no_cases(self, math_source: str) -> None:
        pattern = MagicMock()
        pattern.finditer.side_effect = TimeoutError("regex timed out")

        assert scan_source(math_source, pattern, timeout=0.1) == []
        pattern.finditer.assert_called_once_with(math_source, timeout=0.1)


class TestIterTestCases:
    def test_each_call_starts_a_fresh_scan(self, math_source: str) -> None:
        first = [c.name for c in iter_test_cases(math_source, DEFAULT_PATTERN)]
        second = [c.name for c in iter_test_cases(math_source, DEFAULT_PATTERN)]
        assert first == second == ["test_add", "test_subtract"]

    def test_empty_group_skipped(self) -> None:
        pattern = regex.compile(r"^void (test\w*)?\(", regex.MULTILINE)
        names = [c.name for c in iter_test_cases("void (\nvoid test_x(\n", pattern)]
        assert names == ["test_x"]


def test_declaration_line_counts_newlines_inside_match() -> None:
    text = "a\n\n  \nvoid test_x(void)"
    offset = 2
    assert declaration_line(text, offset, text[offset:]) == 3


def test_case_count_matches_pattern_matches(math_source: str) -> None:
    text = math_source * 3
    expected = len(list(DEFAULT_PATTERN.finditer(text)))

    cases = scan_source(text, DEFAULT_PATTERN)
    assert len(cases) == expected == 6
    line_count = len(text.splitlines())
    assert all(0 <= c.line <= line_count - 1 for c in cases)
