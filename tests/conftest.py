# tests/conftest.py

import os
import stat
from pathlib import Path

import pytest

from unity_explorer.config import ExplorerConfig
from unity_explorer.runtime import ConsoleMessageSurface

MATH_SOURCE = """#include "unity.h"

void setUp(void) {}
void tearDown(void) {}

void test_add(void)
{
    TEST_ASSERT_EQUAL(2, add(1, 1));
}

void test_subtract(void)
{
    TEST_ASSERT_EQUAL(1, subtract(3, 1));
}
"""

STRING_SOURCE = """#include "unity.h"

void test_concat(void)
{
}
"""

MATH_OUTPUT = (
    "test/test_math.c:6:test_add:PASS\n"
    "test/test_math.c:11:test_subtract:FAIL: Expected 1 Was 2\n"
    "\n"
    "-----------------------\n"
    "2 Tests 1 Failures 0 Ignored\n"
    "FAIL\n"
)

CONFIG_TOML = """
[global]
log_level = "DEBUG"

[explorer]
testSourceFolder = "test"
testBuildApplication = "true"
testExecutableRegex = 'bin/$1.sh'
unitUnderTestFolder = "src"
"""


def write_script(path: Path, stdout: str, exit_code: int = 0) -> Path:
    """Writes an executable shell script standing in for a Unity test binary."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["#!/bin/sh"]
    lines += [f"printf '%s\\n' '{line}'" for line in stdout.splitlines()]
    lines.append(f"exit {exit_code}")
    path.write_text("\n".join(lines) + "\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def workspace(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """
    A workspace with two Unity test sources and a unit under test.

    Source regexes match the full path, so the workspace must not live below a
    directory named after the test function (`test_...`).
    """
    ws = tmp_path_factory.mktemp("project")
    (ws / "test").mkdir()
    (ws / "src").mkdir()
    (ws / "test" / "test_math.c").write_text(MATH_SOURCE)
    (ws / "test" / "test_string.c").write_text(STRING_SOURCE)
    (ws / "test" / "helpers.c").write_text("int helper(void) { return 0; }\n")
    (ws / "src" / "math.c").write_text("int add(int a, int b) { return a + b; }\n")
    (ws / "unity-explorer.toml").write_text(CONFIG_TOML)
    return ws.resolve()


@pytest.fixture
def explorer_config(workspace: Path) -> ExplorerConfig:
    return ExplorerConfig(
        workspace=workspace,
        defaults={
            "testSourceFolder": "test",
            "testBuildApplication": "make",
            "testExecutableRegex": "bin/$1.sh",
            "unitUnderTestFolder": "src",
        },
    )


@pytest.fixture
def messages() -> ConsoleMessageSurface:
    """Records warnings and errors without printing them."""
    return ConsoleMessageSurface()


@pytest.fixture
def math_source() -> str:
    return MATH_SOURCE


@pytest.fixture
def math_output() -> str:
    return MATH_OUTPUT


@pytest.fixture
def fake_binaries(workspace: Path, math_output: str) -> Path:
    """Shell scripts at `bin/<stem>.sh` that print canned Unity output."""
    if os.name != "posix":
        pytest.skip("Fake test binaries are POSIX shell scripts")
    write_script(workspace / "bin" / "test_math.sh", math_output, exit_code=1)
    write_script(workspace / "bin" / "test_string.sh", "test/test_string.c:3:test_concat:PASS\n\nOK", exit_code=0)
    return workspace / "bin"
