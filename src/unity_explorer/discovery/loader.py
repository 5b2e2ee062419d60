# src/unity_explorer/discovery/loader.py

"""
Populates the test tree from source files.
"""

import asyncio
import os
from collections.abc import Callable
from pathlib import Path

import regex
import structlog

from unity_explorer.config.models import PatternConfig
from unity_explorer.discovery.files import is_test_source, is_unit_under_test, list_source_files
from unity_explorer.discovery.patterns import PatternEngine
from unity_explorer.discovery.scanner import scan_source
from unity_explorer.exceptions import DiscoveryError
from unity_explorer.host import ConfigurationSource, MessageSurface
from unity_explorer.tree import FileNode, TestTree

log = structlog.get_logger("discovery.loader")

Invalidator = Callable[[FileNode | None], None]


class TestLoader:
    """
    Runs discovery passes over the workspace and keeps the tree current when
    an external watcher reports file changes.
    """

    __test__ = False

    def __init__(
        self,
        config: ConfigurationSource,
        tree: TestTree,
        patterns: PatternEngine,
        messages: MessageSurface | None = None,
        on_invalidate: Invalidator | None = None,
    ):
        self._config = config
        self.tree = tree
        self._patterns = patterns
        self._messages = messages
        self._on_invalidate = on_invalidate

    @property
    def workspace(self) -> Path:
        return Path(self._config.workspace)

    def _invalidate(self, node: FileNode | None) -> None:
        if self._on_invalidate is not None:
            self._on_invalidate(node)

    def file_label(self, path: Path, config: PatternConfig) -> str:
        try:
            label = os.path.relpath(path, self.workspace)
        except ValueError:
            label = str(path)
        return self._patterns.prettify_file_label(label, config)

    async def build_file_node(self, path: Path) -> FileNode:
        """Reads and scans one file into a fully populated, detached node."""
        path = Path(path).resolve()
        config = self._config.snapshot(path)
        node = FileNode(id=str(path), label=self.file_label(path, config), source_path=path)
        file_log = log.bind(file=str(path))

        pattern = self._patterns.compile(
            config.test_case_regex, "testCaseRegex", flags=regex.MULTILINE, min_groups=1
        )
        if pattern is None:
            return node

        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        except OSError as e:
            file_log.warning("Cannot read test source", error=str(e), emoji_key="discover")
            return node

        for case in scan_source(text, pattern, timeout=config.scan_timeout, source=str(path)):
            node.add_case(case.name, case.line, self._patterns.prettify_test_label(case.name, config))
        file_log.debug("Parsed test source", cases=len(node.children), emoji_key="discover")
        return node

    async def load_all(self) -> TestTree:
        """Replaces the whole tree with a fresh discovery pass."""
        config = self._config.snapshot(None)
        if not config.enable:
            log.info("Test discovery disabled by configuration", emoji_key="discover")
            self.tree.clear()
            self._invalidate(None)
            return self.tree

        try:
            paths = await asyncio.to_thread(list_source_files, self.workspace, config, self._patterns)
        except DiscoveryError as e:
            log.error("Test source listing failed", error=str(e), emoji_key="discover")
            if self._messages is not None:
                self._messages.show_error(str(e))
            paths = []

        nodes = [await self.build_file_node(path) for path in paths]

        # No await between clear and install: readers see the old or the new tree.
        self.tree.clear()
        for node in nodes:
            self.tree.replace_file(node)
        self._invalidate(None)
        log.info(
            "Discovery finished",
            files=len(nodes),
            cases=sum(len(n.children) for n in nodes),
            emoji_key="discover",
        )
        return self.tree

    async def parse_file(self, path: Path) -> FileNode:
        """Re-parses a single file and swaps its node into the tree."""
        node = await self.build_file_node(path)
        self.tree.replace_file(node)
        return node

    def _is_test_source(self, path: Path) -> bool:
        config = self._config.snapshot(path)
        return config.enable and is_test_source(path, self.workspace, config, self._patterns)

    async def on_file_created(self, path: Path) -> FileNode | None:
        if not self._is_test_source(path):
            return None
        return await self.parse_file(path)

    async def on_file_changed(self, path: Path) -> FileNode | None:
        node = None
        if self._is_test_source(path):
            node = await self.parse_file(path)
            self._invalidate(node)
        self.invalidate_for_unit_under_test(path)
        return node

    def on_file_deleted(self, path: Path) -> FileNode | None:
        removed = self.tree.remove_file(str(Path(path).resolve()))
        if removed is not None:
            log.debug("File node removed", file=removed.id)
        return removed

    def invalidate_for_unit_under_test(self, path: Path) -> list[FileNode]:
        """
        Invalidates every test file whose base name contains the base name of
        a changed unit-under-test file.
        """
        config = self._config.snapshot(path)
        if not is_unit_under_test(path, self.workspace, config, self._patterns):
            return []
        stem = Path(path).stem
        affected = [node for node in self.tree if stem in node.source_path.stem]
        for node in affected:
            self._invalidate(node)
        if affected:
            log.debug("Unit under test changed", file=str(path), invalidated=[n.id for n in affected])
        return affected


# 🔼⚙️
