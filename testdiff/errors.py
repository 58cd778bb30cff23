"""Exception types raised by testdiff."""

from __future__ import annotations

from typing import Any, Dict, Optional


class TestDiffError(Exception):
    """Base class for testdiff errors."""

    __test__ = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ParseError(TestDiffError):
    """A single source file could not be parsed."""

    def __init__(self, message: str, file: Optional[str] = None, line: Optional[int] = None):
        details: Dict[str, Any] = {}
        if file:
            details["file"] = file
        if line is not None:
            details["line"] = line
        super().__init__(message, details)
        self.file = file
        self.line = line


class InvalidInputError(TestDiffError):
    """The project root or a changed path is unusable."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, {"path": path} if path else {})
        self.path = path


class GitError(TestDiffError):
    """A git command failed or git is not installed."""

    def __init__(self, message: str, command: Optional[str] = None):
        super().__init__(message, {"command": command} if command else {})
        self.command = command
