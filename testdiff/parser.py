"""Import extraction built on Tree-sitter, with an ``ast`` fallback.

Every statically visible import counts, wherever it sits: imports nested in
``if``/``try`` blocks or function and class bodies still mean the file's
behaviour can depend on the imported module.

Falls back to Python's built-in ``ast`` module when tree-sitter is unavailable.
"""

from __future__ import annotations

import ast
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple

from .errors import ParseError
from .models import ImportRef, ModuleId

logger = logging.getLogger(__name__)

FUTURE_MODULE = "__future__"
# Python 2 statements the grammar still accepts without error nodes.
LEGACY_STATEMENTS = frozenset({"print_statement", "exec_statement"})


# ===================================================================
# Abstract Parser Interface
# ===================================================================

class ImportParser(ABC):
    """Extracts the import statements of one Python source file."""

    name = "abstract"

    @abstractmethod
    def parse_imports(self, source: str, module_id: ModuleId) -> List[ImportRef]:
        """Return imports in source order, or raise :class:`ParseError`."""
        ...


# ===================================================================
# Tree-sitter Parser (Primary)
# ===================================================================

class TreeSitterImportParser(ImportParser):
    """Error-aware import extraction over the ``tree-sitter-python`` grammar.

    Tree-sitter always produces a tree; a tree containing ``ERROR`` or
    missing nodes is reported as a :class:`ParseError` so a broken file
    contributes no edges rather than partial ones. Python 2 ``print`` and
    ``exec`` statements parse cleanly in the grammar but count as errors
    here, as they do for the ``ast`` backend.
    """

    name = "tree-sitter"

    def __init__(self) -> None:
        self._language: Any = None
        self._local = threading.local()
        self._init_language()

    def _init_language(self) -> None:
        try:
            import tree_sitter_python  # type: ignore[import-untyped]
            from tree_sitter import Language  # type: ignore[import-untyped]
        except ImportError:
            logger.debug(
                "tree-sitter is not installed -- Tree-sitter parsing unavailable. "
                "Install with: pip install tree-sitter tree-sitter-python"
            )
            return
        try:
            self._language = Language(tree_sitter_python.language())
        except Exception as exc:  # grammar/ABI mismatch between the two packages
            logger.warning("Could not load tree-sitter grammar for python: %s", exc)

    @property
    def available(self) -> bool:
        return self._language is not None

    def _parser(self) -> Any:
        # tree_sitter.Parser objects are not shared between threads.
        parser = getattr(self._local, "parser", None)
        if parser is None:
            from tree_sitter import Parser as TSParser  # type: ignore[import-untyped]

            parser = TSParser(self._language)
            self._local.parser = parser
        return parser

    def parse_imports(self, source: str, module_id: ModuleId) -> List[ImportRef]:
        if not self.available:
            raise ParseError("tree-sitter grammar for python is not loaded", file=module_id)

        tree = self._parser().parse(source.encode("utf-8"))
        root = tree.root_node
        if root.has_error:
            line = _first_error_line(root)
            raise ParseError("invalid syntax", file=module_id, line=line)

        imports: List[ImportRef] = []
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "import_statement":
                imports.extend(self._plain_import(node, module_id))
                continue
            if node.type == "import_from_statement":
                ref = self._from_import(node, module_id)
                if ref is not None:
                    imports.append(ref)
                continue
            if node.type == "future_import_statement":
                continue
            if node.type in LEGACY_STATEMENTS:
                raise ParseError(
                    f"Python 2 {node.type.split('_')[0]} statement", file=module_id, line=node.start_point[0] + 1,
                )
            stack.extend(reversed(node.children))
        return imports

    @staticmethod
    def _plain_import(node: Any, module_id: ModuleId) -> List[ImportRef]:
        refs: List[ImportRef] = []
        line = node.start_point[0] + 1
        for child in node.children_by_field_name("name"):
            dotted = _dotted_text(child)
            if dotted:
                refs.append(ImportRef(module=dotted, level=0, names=(), file=module_id, line=line))
        return refs

    @staticmethod
    def _from_import(node: Any, module_id: ModuleId) -> Optional[ImportRef]:
        mod_node = node.child_by_field_name("module_name")
        if mod_node is None:
            return None

        level = 0
        module = ""
        if mod_node.type == "relative_import":
            for sub in mod_node.children:
                if sub.type == "import_prefix":
                    level = sub.text.decode("utf-8").count(".")
                elif sub.type == "dotted_name":
                    module = sub.text.decode("utf-8")
        else:
            module = mod_node.text.decode("utf-8")

        if level == 0 and module == FUTURE_MODULE:
            return None

        names: List[str] = []
        for child in node.children:
            if child.type == "wildcard_import":
                names.append("*")
        for child in node.children_by_field_name("name"):
            dotted = _dotted_text(child)
            if dotted:
                names.append(dotted)

        return ImportRef(
            module=module,
            level=level,
            names=tuple(names),
            file=module_id,
            line=node.start_point[0] + 1,
        )


def _dotted_text(node: Any) -> str:
    """Text of a ``dotted_name`` or the name part of an ``aliased_import``."""
    if node.type == "aliased_import":
        inner = node.child_by_field_name("name")
        if inner is None:
            return ""
        node = inner
    return "".join(node.text.decode("utf-8").split())


def _first_error_line(root: Any) -> Optional[int]:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        if node.has_error:
            stack.extend(reversed(node.children))
    return None


# ===================================================================
# AST Fallback Parser (when tree-sitter is not installed)
# ===================================================================

class ASTImportParser(ImportParser):
    """Pure-Python fallback using the built-in ``ast`` module."""

    name = "ast"

    def parse_imports(self, source: str, module_id: ModuleId) -> List[ImportRef]:
        try:
            tree = ast.parse(source)
        except SyntaxError as exc:
            raise ParseError(exc.msg or "invalid syntax", file=module_id, line=exc.lineno) from exc
        except ValueError as exc:
            # e.g. source containing null bytes
            raise ParseError(str(exc), file=module_id) from exc

        visitor = _ImportVisitor(module_id)
        visitor.visit(tree)
        return visitor.imports


class _ImportVisitor(ast.NodeVisitor):
    """Collects imports depth-first, in source order."""

    def __init__(self, module_id: ModuleId) -> None:
        self.module_id = module_id
        self.imports: List[ImportRef] = []

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            self.imports.append(ImportRef(
                module=alias.name, level=0, names=(),
                file=self.module_id, line=node.lineno,
            ))

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        module = node.module or ""
        if node.level == 0 and module == FUTURE_MODULE:
            return
        self.imports.append(ImportRef(
            module=module,
            level=node.level or 0,
            names=tuple(alias.name for alias in node.names),
            file=self.module_id,
            line=node.lineno,
        ))


# ===================================================================
# Backend selection
# ===================================================================

def create_parser(prefer_tree_sitter: bool = True) -> ImportParser:
    """Return the Tree-sitter parser when its grammar loads, else the AST parser."""
    if prefer_tree_sitter:
        ts = TreeSitterImportParser()
        if ts.available:
            logger.debug("Using Tree-sitter import parser")
            return ts
    logger.debug("Using AST fallback import parser")
    return ASTImportParser()


def parse_source(parser: ImportParser, source: str, module_id: ModuleId) -> Tuple[List[ImportRef], Optional[ParseError]]:
    """Parse *source*, turning a :class:`ParseError` into a returned value."""
    try:
        return parser.parse_imports(source, module_id), None
    except ParseError as exc:
        logger.debug("Parse failed for %s: %s", module_id, exc.message)
        return [], exc
