"""Core data models shared by parsing, graph building, and selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Tuple

if TYPE_CHECKING:
    from .diagnostics import Diagnostic, DiagnosticLog

# Project-relative POSIX path of a source file, e.g. "pkg/sub/mod.py".
ModuleId = str


@dataclass(frozen=True)
class ImportRef:
    module: str
    level: int
    names: Tuple[str, ...]
    file: ModuleId
    line: int

    @property
    def is_from(self) -> bool:
        return bool(self.names) or self.level > 0

    @property
    def text(self) -> str:
        """Render the import the way it appeared in source."""
        if not self.is_from:
            return f"import {self.module}"
        target = "." * self.level + self.module
        return f"from {target} import {', '.join(self.names)}"


@dataclass
class ModuleScan:
    """Result of parsing and resolving a single file."""

    module_id: ModuleId
    edges: List[ModuleId] = field(default_factory=list)
    dangling: List[str] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    parsed: bool = True


@dataclass
class SelectedTest:
    __test__ = False

    path: ModuleId
    distance: int
    filename_match: int = 2


@dataclass
class TestSelection:
    __test__ = False

    tests: List[SelectedTest] = field(default_factory=list)
    total: int = 0

    @property
    def paths(self) -> List[str]:
        return [t.path for t in self.tests]

    @property
    def excluded(self) -> int:
        return self.total - len(self.tests)


@dataclass
class SelectionReport:
    root: Path
    changed: List[ModuleId]
    dropped: List[str]
    selection: TestSelection
    diagnostics: DiagnosticLog
    stats: Dict[str, int] = field(default_factory=dict)
    skipped: bool = False

