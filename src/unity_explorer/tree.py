# src/unity_explorer/tree.py
#
"""
In-memory model of discovered test files and the test cases inside them.
"""

from collections.abc import Iterator
from pathlib import Path
from typing import TypeAlias

import structlog
from attrs import define, field, frozen

log: structlog.stdlib.BoundLogger = structlog.get_logger("tree")

ROOT_ID = "root"
ROOT_LABEL = "Unity"
CASE_SEPARATOR = "::"
GROUP_SEPARATOR = ","


@frozen(slots=True)
class CaseNode:
    """A single test function discovered in a source file."""

    id: str
    label: str
    source_path: Path
    file_id: str
    line: int = 0

    @property
    def compound_id(self) -> str:
        return f"{self.file_id}{CASE_SEPARATOR}{self.id}"

    @property
    def key(self) -> str:
        """Tree-wide unique id."""
        return self.compound_id

    @property
    def is_fixture(self) -> bool:
        """Fixture-style cases are addressed as `Group, Case`."""
        return GROUP_SEPARATOR in self.id

    @property
    def children(self) -> tuple[()]:
        return ()


@define(slots=True)
class FileNode:
    """A test source file and the cases declared in it, in source order."""

    id: str
    label: str
    source_path: Path
    _cases: dict[str, CaseNode] = field(factory=dict, repr=False)

    @property
    def key(self) -> str:
        return self.id

    @property
    def children(self) -> list[CaseNode]:
        return list(self._cases.values())

    def get_case(self, case_id: str) -> CaseNode | None:
        return self._cases.get(case_id)

    def add_case(self, name: str, line: int, label: str | None = None) -> CaseNode | None:
        """
        Appends a case. Case ids are unique within a file; a repeated name keeps
        the first declaration and returns None.
        """
        if name in self._cases:
            log.debug("Duplicate test case ignored", file=self.id, test_id=name, line=line)
            return None
        case = CaseNode(
            id=name,
            label=label or name,
            source_path=self.source_path,
            file_id=self.id,
            line=line,
        )
        self._cases[name] = case
        return case


@define(slots=True)
class RootNode:
    id: str = ROOT_ID
    label: str = ROOT_LABEL


TestNode: TypeAlias = FileNode | CaseNode


class TestTree:
    """
    The synthetic root plus every discovered file, keyed by file id.

    Files are swapped in whole with `replace_file`, so a reader never observes a
    file whose children are still being populated.
    """

    __test__ = False

    def __init__(self) -> None:
        self.root = RootNode()
        self._files: dict[str, FileNode] = {}

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[FileNode]:
        return iter(list(self._files.values()))

    @property
    def files(self) -> list[FileNode]:
        return list(self._files.values())

    def upsert_file(self, path: Path, label: str | None = None) -> FileNode:
        """Returns the file node for `path`, creating an empty one if needed."""
        file_id = str(path)
        existing = self._files.get(file_id)
        if existing is not None:
            return existing
        node = FileNode(id=file_id, label=label or Path(path).name, source_path=Path(path))
        self._files[file_id] = node
        log.debug("File node created", file=file_id)
        return node

    def add_case(self, file: FileNode, name: str, line: int, label: str | None = None) -> CaseNode | None:
        return file.add_case(name, line, label)

    def replace_file(self, node: FileNode) -> None:
        """Installs a fully populated file node, replacing any previous one."""
        self._files[node.id] = node

    def remove_file(self, file_id: str) -> FileNode | None:
        return self._files.pop(file_id, None)

    def clear(self) -> None:
        self._files.clear()

    def find_file(self, file_id: str) -> FileNode | None:
        return self._files.get(file_id)

    def find_case(self, compound_id: str) -> CaseNode | None:
        """Looks up `<file id>::<case id>`."""
        file_id, sep, case_id = compound_id.rpartition(CASE_SEPARATOR)
        if not sep:
            return None
        file = self._files.get(file_id)
        return file.get_case(case_id) if file else None

    def find_node(self, node_id: str) -> TestNode | None:
        return self.find_file(node_id) or self.find_case(node_id)

    def file_of(self, case: CaseNode) -> FileNode | None:
        return self._files.get(case.file_id)


# 🔼⚙️
