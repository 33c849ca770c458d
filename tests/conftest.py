"""
Shared fixtures for guide registry tests.
"""

import json
from pathlib import Path
from typing import Dict, Iterable

import pytest

from registry import reset_registry


SAMPLE_MANIFEST = {
    "$version": "1",
    "wcag": ["wcag/a.md", "!wcag/b.md"],
    "patterns": [
        "patterns/c.md",
        {"path": "patterns/fire-tv.md", "condition": "fireTvPatternsPresent"},
    ],
}

SAMPLE_FILES = ["wcag/a.md", "patterns/c.md", "patterns/fire-tv.md"]


def write_files(root: Path, files: Iterable[str]) -> None:
    """Create resource files (content is irrelevant to the registry)."""
    for rel in files:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"# {rel}\n", encoding="utf-8")


def write_manifest(root: Path, data: Dict, name: str = "manifest.json") -> Path:
    path = root / name
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def reset_global_registry():
    """Every test starts without a process-wide registry."""
    reset_registry()
    yield
    reset_registry()


@pytest.fixture
def guide_tree(tmp_path):
    """Resource directory exactly covered by SAMPLE_MANIFEST."""
    write_files(tmp_path, SAMPLE_FILES)
    manifest_path = write_manifest(tmp_path, SAMPLE_MANIFEST)
    return tmp_path, manifest_path


@pytest.fixture
def make_files():
    """Helper fixture: make_files(root, ["a.md", ...])."""
    return write_files


@pytest.fixture
def make_manifest():
    """Helper fixture: make_manifest(root, {...}) -> manifest path."""
    return write_manifest
