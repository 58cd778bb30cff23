"""Convert a pytest JUnit XML report into GitHub Actions annotations."""

from __future__ import annotations

import logging
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from .errors import TestDiffError

logger = logging.getLogger(__name__)

# Typical pytest traceback fragment: File "/path/to/test.py", line 12
FILE_LINE_RE = re.compile(r'File "([^"]+)", line (\d+)')


@dataclass
class Annotation:
    level: str
    message: str
    file: Optional[str] = None
    line: Optional[int] = None

    def render(self, cwd: Path) -> str:
        parts: List[str] = []
        if self.file:
            parts.append(f"file={_relative(self.file, cwd)}")
        if self.line is not None:
            parts.append(f"line={self.line}")
        prefix = f"::{self.level}"
        if parts:
            prefix += " " + ",".join(parts)
        return f"{prefix}::{escape_for_github(self.message)}"


def escape_for_github(message: str) -> str:
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _relative(file: str, cwd: Path) -> str:
    path = Path(file)
    if not path.is_absolute():
        return file
    try:
        return os.path.relpath(path, cwd)
    except ValueError:
        return file


def _first_child(case: ET.Element, tags: Sequence[str]) -> Optional[ET.Element]:
    for child in case:
        if child.tag in tags:
            return child
    return None


def testcase_name(case: ET.Element) -> str:
    classname = case.get("classname")
    name = case.get("name")
    if classname and name:
        return f"{classname}.{name}"
    return name or "(unknown test)"


def pick_message(node: ET.Element, default: str) -> str:
    message = (node.get("message") or "").strip()
    if message:
        return message
    for line in (node.text or "").splitlines():
        if line.strip():
            return line.strip()
    return default


def derive_location(case: ET.Element, body: Optional[str]) -> Tuple[Optional[str], Optional[int]]:
    """Location from the testcase ``file``/``line`` attributes, else the traceback."""
    file = case.get("file")
    raw_line = case.get("line")
    line = int(raw_line) if raw_line and raw_line.isdigit() else None
    if file or line is not None:
        return file, line

    if body:
        match = FILE_LINE_RE.search(body)
        if match:
            return match.group(1), int(match.group(2))
    return None, None


def iter_annotations(root: ET.Element, include_skipped: bool = False) -> Iterator[Annotation]:
    for case in root.iter("testcase"):
        child = _first_child(case, ("failure", "error"))
        if child is not None:
            file, line = derive_location(case, child.text)
            message = f"{testcase_name(case)}: {pick_message(child, 'Test failed')}"
            yield Annotation("error", message, file, line)
        elif include_skipped:
            skipped = _first_child(case, ("skipped",))
            if skipped is not None:
                file, line = derive_location(case, skipped.text)
                message = f"{testcase_name(case)}: {pick_message(skipped, 'Test skipped')}"
                yield Annotation("warning", message, file, line)


def format_junit(report: Path, include_skipped: bool = False, cwd: Optional[Path] = None) -> List[str]:
    """Annotation lines for every failed/errored (and optionally skipped) test in *report*."""
    try:
        tree = ET.parse(report)
    except OSError as exc:
        raise TestDiffError(f"Failed to read {report}: {exc}", {"path": str(report)})
    except ET.ParseError as exc:
        raise TestDiffError(f"Failed to parse XML in {report}: {exc}", {"path": str(report)})

    cwd = cwd or Path.cwd()
    lines = [a.render(cwd) for a in iter_annotations(tree.getroot(), include_skipped)]
    logger.debug("Formatted %d annotations from %s", len(lines), report)
    return lines
