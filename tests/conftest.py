"""Pytest configuration and fixtures for testdiff tests."""

import shutil
import tempfile
import textwrap
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from testdiff.parser import ASTImportParser, ImportParser, TreeSitterImportParser

# A small package with a three-hop chain: app/core.py <- app/service.py <- app/api.py
SAMPLE_PROJECT: Dict[str, str] = {
    "pyproject.toml": """\
        [project]
        name = "sample"
    """,
    "app/__init__.py": "",
    "app/core.py": """\
        import json


        def run():
            return json.dumps({})
    """,
    "app/helpers.py": """\
        def slug(text):
            return text.lower()
    """,
    "app/service.py": """\
        from .core import run
        from . import helpers
    """,
    "app/api.py": """\
        from app.service import run
    """,
    "tests/conftest.py": "import app\n",
    "tests/test_core.py": "from app.core import run\n",
    "tests/test_service.py": "from app import service\n",
    "tests/test_api.py": "import app.api\n",
    "tests/test_helpers.py": "from app.helpers import slug\n",
    "docs/notes.md": "# notes\n",
}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp()).resolve()
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def make_project(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative path: source}`` under the temp dir and return the root."""

    def _make(files: Dict[str, str]) -> Path:
        for rel, content in files.items():
            path = temp_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content), encoding="utf-8")
        return temp_dir

    return _make


@pytest.fixture
def sample_project(make_project) -> Path:
    """Root of a freshly written copy of :data:`SAMPLE_PROJECT`."""
    return make_project(SAMPLE_PROJECT)


@pytest.fixture(params=["tree-sitter", "ast"])
def import_parser(request) -> ImportParser:
    """Each available parser backend in turn."""
    if request.param == "ast":
        return ASTImportParser()
    parser = TreeSitterImportParser()
    if not parser.available:
        pytest.skip("tree-sitter grammar for python is not installed")
    return parser
