"""
Pytest configuration and shared fixtures.
"""

import ast
import itertools
import sys
import textwrap
import types
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Import stateshift modules
from stateshift.config import ExpanderConfig
from stateshift.expander import expand_source_recovering
from stateshift.expander.model import TrackedType


# =============================================================================
# PATH FIXTURES
# =============================================================================

@pytest.fixture
def fixtures_dir():
    """Path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def config():
    """Default configuration, independent of files and environment."""
    return ExpanderConfig.defaults()


# =============================================================================
# EXPANSION FIXTURES
# =============================================================================

@pytest.fixture
def expand_fixture(fixtures_dir, config):
    """Expand a fixture module by file name, return its ExpansionResult."""
    def expand(name):
        path = fixtures_dir / name
        return expand_source_recovering(path.read_text(encoding="utf-8"), str(path), config)
    return expand


_module_ids = itertools.count()


@pytest.fixture
def load_module():
    """
    Execute source text as a fresh module.

    The module is registered in sys.modules while the test runs, since
    dataclasses look annotations up through it.
    """
    created = []

    def load(source):
        name = f"_stateshift_expanded_{next(_module_ids)}"
        module = types.ModuleType(name)
        sys.modules[name] = module
        created.append(name)
        exec(compile(source, f"<{name}>", "exec"), module.__dict__)
        return module

    yield load

    for name in created:
        sys.modules.pop(name, None)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def parse_class(source: str) -> ast.ClassDef:
    """Parse source and return its last top-level class."""
    tree = ast.parse(textwrap.dedent(source))
    classes = [node for node in tree.body if isinstance(node, ast.ClassDef)]
    assert classes, "source has no class"
    return classes[-1]


def parse_function(source: str) -> ast.FunctionDef:
    """Parse source holding a single function definition."""
    node = ast.parse(textwrap.dedent(source)).body[0]
    assert isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
    return node


def parse_decorator(source: str) -> ast.expr:
    """Parse a decorator expression, with or without the leading '@'."""
    return ast.parse(source.lstrip("@"), mode="eval").body


def make_tracked(source: str, config=None) -> TrackedType:
    """Read a TrackedType from class source."""
    return TrackedType.from_class(parse_class(source), config or ExpanderConfig.defaults())


def dedent(source: str) -> str:
    return textwrap.dedent(source).lstrip("\n")
