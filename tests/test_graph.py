"""Tests for module discovery and dependency graph construction."""

from pathlib import Path

import pytest

from testdiff.config import DEFAULT_EXCLUDED_DIRS
from testdiff.diagnostics import DiagnosticKind
from testdiff.errors import InvalidInputError
from testdiff.graph import DependencyGraph, GraphBuilder, discover_modules
from testdiff.parser import ASTImportParser


def _build(root: Path, **kwargs):
    kwargs.setdefault("parser", ASTImportParser())
    return GraphBuilder(root, **kwargs).build()


class TestDependencyGraph:
    def test_reverse_edges_mirror_forward_edges(self, temp_dir: Path):
        graph = DependencyGraph(temp_dir)
        graph.add_module("a.py")
        graph.add_module("b.py")
        graph.add_edge("a.py", "b.py")
        graph.add_edge("a.py", "b.py")

        assert graph.dependencies("a.py") == ("b.py",)
        assert graph.dependents("b.py") == ("a.py",)
        assert graph.edge_count() == 1

    def test_self_edges_are_ignored(self, temp_dir: Path):
        graph = DependencyGraph(temp_dir)
        graph.add_module("a.py")
        graph.add_edge("a.py", "a.py")

        assert graph.edge_count() == 0

    def test_dangling_importers_match_prefix(self, temp_dir: Path):
        graph = DependencyGraph(temp_dir)
        graph.add_dangling("x.py", "pkg.gone")
        graph.add_dangling("y.py", "pkg.gone.helper")
        graph.add_dangling("z.py", "pkg.gone_too")

        assert graph.dangling_importers("pkg.gone") == ["x.py", "y.py"]


class TestDiscovery:
    def test_skips_excluded_directory_segments(self, make_project):
        root = make_project({
            "app/mod.py": "",
            ".venv/lib/site.py": "",
            "app/__pycache__/mod.py": "",
            "build/out.py": "",
            "rebuild/keep.py": "",
            "notes.txt": "",
        })

        found = discover_modules(root, DEFAULT_EXCLUDED_DIRS)

        assert found == ["app/mod.py", "rebuild/keep.py"]

    def test_exclusion_table_is_injected(self, make_project):
        root = make_project({"vendor/lib.py": "", "app.py": ""})

        assert discover_modules(root, frozenset()) == ["app.py", "vendor/lib.py"]
        assert discover_modules(root, {"vendor"}) == ["app.py"]


class TestGraphBuilder:
    def test_builds_edges_for_sample_project(self, sample_project: Path):
        graph, _ = _build(sample_project)

        assert graph.dependencies("app/service.py") == ("app/core.py", "app/helpers.py")
        assert graph.dependents("app/core.py") == ("app/service.py", "tests/test_core.py")
        assert graph.dependencies("tests/test_api.py") == ("app/api.py",)
        assert graph.dependencies("tests/conftest.py") == ("app/__init__.py",)

    def test_unresolved_third_party_import_yields_one_diagnostic(self, sample_project: Path):
        graph, diagnostics = _build(sample_project)

        unresolved = [d for d in diagnostics if d.kind is DiagnosticKind.UNRESOLVED_IMPORT]
        assert len(unresolved) == 1
        assert unresolved[0].file == "app/core.py"
        assert unresolved[0].line == 1
        assert "import json" in unresolved[0].message
        assert graph.dependencies("app/core.py") == ()
        assert "json.py" not in graph

    def test_ignore_external_imports_drops_third_party_diagnostics(self, make_project):
        root = make_project({
            "app/__init__.py": "",
            "app/mod.py": "import requests\nfrom app import missing_mod\nfrom .gone import x\n",
        })

        _, diagnostics = _build(root, ignore_external_imports=True)

        texts = [d.message for d in diagnostics]
        assert texts == ["Unresolved import `from .gone import x`"]

    def test_parse_error_keeps_node_without_edges(self, make_project):
        root = make_project({
            "app/__init__.py": "",
            "app/core.py": "",
            "app/broken.py": "from app import core\ndef oops(:\n",
            "tests/test_broken.py": "from app import broken\n",
        })

        graph, diagnostics = _build(root)

        assert "app/broken.py" in graph
        assert not graph.is_parsed("app/broken.py")
        assert graph.dependencies("app/broken.py") == ()
        assert graph.dependents("app/broken.py") == ("tests/test_broken.py",)
        errors = [d for d in diagnostics if d.kind is DiagnosticKind.PARSE_ERROR]
        assert [d.file for d in errors] == ["app/broken.py"]
        assert graph.stats()["unparsed"] == 1

    def test_parallel_build_matches_serial(self, sample_project: Path):
        serial_graph, serial_diags = _build(sample_project, jobs=1)
        parallel_graph, parallel_diags = _build(sample_project, jobs=4)

        assert list(parallel_graph.modules()) == list(serial_graph.modules())
        for module_id in serial_graph.modules():
            assert parallel_graph.dependencies(module_id) == serial_graph.dependencies(module_id)
            assert parallel_graph.dependents(module_id) == serial_graph.dependents(module_id)
        assert parallel_diags == serial_diags

    def test_builder_exposes_resolver_after_build(self, sample_project: Path):
        builder = GraphBuilder(sample_project, parser=ASTImportParser())
        assert builder.resolver is None

        builder.build()

        assert builder.resolver is not None
        assert builder.resolver.module_name("app/core.py") == "app.core"

    def test_root_must_be_a_directory(self, temp_dir: Path):
        with pytest.raises(InvalidInputError):
            GraphBuilder(temp_dir / "missing")
