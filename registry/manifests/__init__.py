# registry/manifests/__init__.py
"""
Manifest system for the guide registry.

Supports:
- JSON manifests of ordered categories and entries
- Disabled ("!"-prefixed) entries kept for auditing
- Conditional entries gated by detector names
- Atomic reload with all-or-nothing semantics
"""

from .loader import (
    ManifestStore,
    parse_manifest,
    compute_checksum,
    normalize_identifier,
    load_manifest_file,
    DEFAULT_DISABLED_PREFIX,
)
from .model import Manifest, Category, Entry

__all__ = [
    "ManifestStore",
    "parse_manifest",
    "compute_checksum",
    "normalize_identifier",
    "load_manifest_file",
    "DEFAULT_DISABLED_PREFIX",
    "Manifest",
    "Category",
    "Entry",
]
