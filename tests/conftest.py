"""
Shared fixtures for dep-loader tests.
Builds real package artifacts (directories and zip archives) on disk.
"""

import sys
import textwrap
import zipfile
from pathlib import Path

import pytest

from dep_loader.cli_config import reset_config
from dep_loader.graph import LoaderGraph


def write_module(root: Path, name: str, body: str = "") -> Path:
    """Write module ``name`` (dotted) under ``root``, creating package dirs."""
    parts = name.split(".")
    directory = root
    for part in parts[:-1]:
        directory = directory / part
        directory.mkdir(parents=True, exist_ok=True)
        init = directory / "__init__.py"
        if not init.exists():
            init.write_text("")
    directory.mkdir(parents=True, exist_ok=True)
    module = directory / f"{parts[-1]}.py"
    module.write_text(textwrap.dedent(body))
    return module


def write_zip(archive: Path, files: dict) -> Path:
    archive.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return archive


@pytest.fixture
def temp_dir(tmp_path):
    """Temporary working directory for artifacts."""
    return tmp_path


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep config files and environment of the host out of the tests."""
    for key in (
        "DEP_LOADER_GRAPH",
        "DEP_LOADER_OUTPUT_FORMAT",
        "DEP_LOADER_QUIET",
        "DEP_LOADER_LOG_LEVEL",
        "DEP_LOADER_CLASSPATH_SEPARATOR",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def artifacts(temp_dir):
    """Factory creating ``<name>/classes`` artifact directories."""

    def make(name: str, modules: dict = None) -> Path:
        classes = temp_dir / name / "classes"
        classes.mkdir(parents=True, exist_ok=True)
        for module, body in (modules or {}).items():
            write_module(classes, module, body)
        return classes

    return make


@pytest.fixture
def diamond_graph(artifacts, temp_dir):
    """A -> B, A -> C, B -> D, C -> D with one private library on B, C and D."""
    graph = LoaderGraph()
    graph.add("pkg:A", artifacts("A"), [], ["pkg:B", "pkg:C"])
    graph.add("pkg:B", artifacts("B"), [temp_dir / "libs" / "b.zip"], ["pkg:D"])
    graph.add("pkg:C", artifacts("C"), [temp_dir / "libs" / "c.zip"], ["pkg:D"])
    graph.add("pkg:D", artifacts("D"), [temp_dir / "libs" / "d.zip"])
    return graph


@pytest.fixture
def cyclic_graph(artifacts):
    """A -> B -> A."""
    graph = LoaderGraph()
    graph.add("pkg:A", artifacts("A"), [], ["pkg:B"])
    graph.add("pkg:B", artifacts("B"), [], ["pkg:A"])
    return graph


@pytest.fixture
def clean_modules():
    """Drop modules imported during a test from ``sys.modules``."""
    before = set(sys.modules)
    yield
    for name in set(sys.modules) - before:
        sys.modules.pop(name, None)
