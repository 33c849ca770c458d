# registry/manifests/loader.py
"""
Manifest Store: parsing and atomic (re)loading of the guide manifest.

The manifest is a JSON object mapping category names to lists of entry
lines:

    {
        "$version": "1",
        "wcag": ["wcag/a.md", "!wcag/b.md"],
        "patterns": [
            "patterns/c.md",
            {"path": "patterns/fire-tv.md", "condition": "fireTvPatternsPresent"}
        ]
    }

Supports:
- "!" prefix (configurable) for disabled entries, kept as Entry(disabled=True)
- Object entry lines with "path", "condition" and "disabled"
- "$"-prefixed top-level keys as metadata
- Unknown categories (preserved in declared order)

The store is the only component that reads the manifest from disk. Loads
are serialized; readers get the current immutable snapshot without locking.
"""

import hashlib
import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..errors import DuplicateEntryError, ManifestNotLoadedError, ManifestParseError
from .model import Category, Entry, Manifest

logger = logging.getLogger(__name__)

DEFAULT_DISABLED_PREFIX = "!"
METADATA_PREFIX = "$"

ENTRY_OBJECT_KEYS = frozenset({"path", "condition", "disabled"})

ManifestSource = Union[str, bytes]
ReloadListener = Callable[[Optional[Manifest], Manifest], None]


class _ObjectPairs(list):
    """JSON object kept as its raw (key, value) pairs so duplicate keys survive."""


def compute_checksum(source: ManifestSource) -> str:
    """SHA-256 hex digest of the manifest source bytes."""
    raw = source.encode("utf-8") if isinstance(source, str) else source
    return hashlib.sha256(raw).hexdigest()


def normalize_identifier(raw: str) -> str:
    """Normalize an identifier to a relative POSIX path (no validation)."""
    identifier = raw.strip().replace("\\", "/")
    while identifier.startswith("./"):
        identifier = identifier[2:]
    return identifier


# =============================================================================
# Parsing
# =============================================================================

def parse_manifest(
    source: ManifestSource,
    origin: str = "<memory>",
    disabled_prefix: str = DEFAULT_DISABLED_PREFIX,
    case_sensitive: bool = True,
) -> Manifest:
    """
    Parse raw manifest text into an immutable Manifest.

    Args:
        source: Raw manifest JSON (str or bytes)
        origin: Name used in error messages (usually the file path)
        disabled_prefix: Prefix marking a disabled entry line
        case_sensitive: If False, identifiers differing only in case collide

    Returns:
        Parsed Manifest

    Raises:
        ManifestParseError: Malformed source or entry
        DuplicateEntryError: Identifier registered more than once
    """
    if not disabled_prefix:
        raise ValueError("disabled_prefix must be a non-empty string")

    try:
        text = source.decode("utf-8-sig") if isinstance(source, bytes) else source
        document = json.loads(text, object_pairs_hook=_ObjectPairs)
    except UnicodeDecodeError as e:
        raise ManifestParseError(origin, f"Invalid UTF-8: {e}")
    except json.JSONDecodeError as e:
        raise ManifestParseError(origin, f"Invalid JSON: {e}")

    if not isinstance(document, _ObjectPairs):
        raise ManifestParseError(origin, "Top level must be an object of categories")

    categories: List[Category] = []
    metadata: Dict[str, Any] = {}
    seen_categories = set()
    # identifier key -> category of first registration
    registered: Dict[str, str] = {}

    for name, value in document:
        if name in seen_categories:
            raise ManifestParseError(origin, f"Duplicate category '{name}'")
        seen_categories.add(name)

        if name.startswith(METADATA_PREFIX):
            metadata[name] = _to_plain(value)
            continue

        if not isinstance(value, list) or isinstance(value, _ObjectPairs):
            raise ManifestParseError(origin, f"Category '{name}' must be a list of entries")

        entries = []
        for position, line in enumerate(value):
            entry = _parse_entry_line(line, name, position, origin, disabled_prefix)

            key = entry.identifier if case_sensitive else entry.identifier.casefold()
            if key in registered:
                raise DuplicateEntryError(origin, entry.identifier, registered[key], name)
            registered[key] = name
            entries.append(entry)

        categories.append(Category(name=name, entries=tuple(entries)))

    return Manifest(
        categories=tuple(categories),
        checksum=compute_checksum(source),
        metadata=metadata,
        source=origin,
        disabled_prefix=disabled_prefix,
        case_sensitive=case_sensitive,
    )


def _parse_entry_line(
    line: Any,
    category: str,
    position: int,
    origin: str,
    disabled_prefix: str,
) -> Entry:
    """Parse one entry line (string or object form)."""
    where = f"{category}[{position}]"
    condition = None
    disabled = False

    if isinstance(line, str):
        raw = line
    elif isinstance(line, _ObjectPairs):
        fields: Dict[str, Any] = {}
        for key, value in line:
            if key in fields:
                raise ManifestParseError(origin, f"Entry {where} repeats key '{key}'")
            fields[key] = value

        unknown = set(fields) - ENTRY_OBJECT_KEYS
        if unknown:
            raise ManifestParseError(origin, f"Entry {where} has unknown keys: {sorted(unknown)}")

        raw = fields.get("path")
        if not isinstance(raw, str):
            raise ManifestParseError(origin, f"Entry {where} is missing a string 'path'")

        condition = fields.get("condition")
        if condition is not None and (not isinstance(condition, str) or not condition.strip()):
            raise ManifestParseError(origin, f"Entry {where} has an invalid 'condition'")
        if condition is not None:
            condition = condition.strip()

        disabled = fields.get("disabled", False)
        if not isinstance(disabled, bool):
            raise ManifestParseError(origin, f"Entry {where} has a non-boolean 'disabled'")
    else:
        raise ManifestParseError(
            origin, f"Entry {where} must be a string or object, got {type(line).__name__}"
        )

    stripped = raw.strip()
    if stripped.startswith(disabled_prefix):
        disabled = True
        stripped = stripped[len(disabled_prefix):]

    identifier = normalize_identifier(stripped)
    _check_identifier(identifier, where, origin)

    return Entry(
        identifier=identifier,
        category=category,
        disabled=disabled,
        condition=condition,
    )


def _check_identifier(identifier: str, where: str, origin: str) -> None:
    if not identifier:
        raise ManifestParseError(origin, f"Entry {where} has an empty identifier")
    if identifier.startswith("/") or _is_drive_path(identifier):
        raise ManifestParseError(origin, f"Entry {where} must be a relative path: '{identifier}'")
    if any(part in ("", "..") for part in identifier.split("/")):
        raise ManifestParseError(origin, f"Entry {where} is not a clean relative path: '{identifier}'")


def _is_drive_path(identifier: str) -> bool:
    """Windows drive paths ("C:", "C:/guides"), not names like "a:notes.md"."""
    return (
        len(identifier) >= 2
        and identifier[0].isalpha()
        and identifier[1] == ":"
        and (len(identifier) == 2 or identifier[2] == "/")
    )


def _to_plain(value: Any) -> Any:
    """Convert _ObjectPairs back into dicts (last key wins) for metadata."""
    if isinstance(value, _ObjectPairs):
        return {k: _to_plain(v) for k, v in value}
    if isinstance(value, list):
        return [_to_plain(v) for v in value]
    return value


# =============================================================================
# Store
# =============================================================================

class ManifestStore:
    """
    Owns the active Manifest and swaps it atomically on (re)load.

    Usage:
        store = ManifestStore("guides/manifest.json")
        manifest = store.load_file()
        ...
        store.reload()   # previous manifest stays active if this fails
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        disabled_prefix: str = DEFAULT_DISABLED_PREFIX,
        case_sensitive: bool = True,
    ):
        """
        Initialize manifest store.

        Args:
            path: Manifest file used by load_file()/reload() when none is given
            disabled_prefix: Prefix marking disabled entry lines
            case_sensitive: Identifier comparison policy for duplicates
        """
        self.path = Path(path).expanduser() if path else None
        self.disabled_prefix = disabled_prefix
        self.case_sensitive = case_sensitive

        self._manifest: Optional[Manifest] = None
        self._load_time: Optional[datetime] = None
        self._lock = threading.Lock()
        self._listeners: List[ReloadListener] = []

    # ==========================================================================
    # Read access (lock-free)
    # ==========================================================================

    @property
    def manifest(self) -> Manifest:
        """Current snapshot. Raises ManifestNotLoadedError before the first load."""
        manifest = self._manifest
        if manifest is None:
            raise ManifestNotLoadedError()
        return manifest

    @property
    def checksum(self) -> Optional[str]:
        manifest = self._manifest
        return manifest.checksum if manifest is not None else None

    @property
    def is_loaded(self) -> bool:
        return self._manifest is not None

    @property
    def load_time(self) -> Optional[datetime]:
        return self._load_time

    # ==========================================================================
    # Mutation (serialized)
    # ==========================================================================

    def load(self, source: ManifestSource, origin: str = "<memory>") -> Manifest:
        """
        Parse source and install it as the active manifest.

        Raises:
            ManifestParseError: Previous manifest (if any) stays active
        """
        with self._lock:
            return self._load_locked(source, origin)

    def load_file(self, path: Optional[Union[str, Path]] = None) -> Manifest:
        """Read a manifest file and install it. Remembers the path for reload()."""
        with self._lock:
            target = Path(path).expanduser() if path else self.path
            if target is None:
                raise ManifestParseError("<none>", "No manifest path configured")
            source = self._read(target)
            manifest = self._load_locked(source, str(target))
            self.path = target
            return manifest

    def reload(self, source: Optional[ManifestSource] = None) -> Manifest:
        """
        Replace the active manifest wholesale.

        With no source, re-reads the manifest file. All-or-nothing: a parse
        failure leaves the previously loaded manifest fully intact.
        """
        with self._lock:
            if source is not None:
                origin = str(self.path) if self.path else "<memory>"
                return self._load_locked(source, origin)
            if self.path is None:
                raise ManifestParseError("<memory>", "No manifest path to reload from")
            return self._load_locked(self._read(self.path), str(self.path))

    def subscribe(self, listener: ReloadListener) -> None:
        """Register a callback run after each swap that changes the checksum."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: ReloadListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _read(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            raise ManifestParseError(str(path), f"Cannot read manifest: {e}")

    def _load_locked(self, source: ManifestSource, origin: str) -> Manifest:
        try:
            manifest = parse_manifest(
                source,
                origin=origin,
                disabled_prefix=self.disabled_prefix,
                case_sensitive=self.case_sensitive,
            )
        except ManifestParseError as e:
            if self._manifest is not None:
                logger.warning(
                    f"Manifest load rejected, keeping {self._manifest.checksum[:12]}: {e}"
                )
            raise

        previous = self._manifest
        self._manifest = manifest
        self._load_time = datetime.now()

        logger.info(
            f"Loaded manifest {origin} ({len(manifest)} entries, "
            f"{len(manifest.disabled_entries())} disabled, checksum {manifest.checksum[:12]})"
        )

        if previous is None or previous.checksum != manifest.checksum:
            self._notify(previous, manifest)

        return manifest

    def _notify(self, previous: Optional[Manifest], current: Manifest) -> None:
        for listener in list(self._listeners):
            try:
                listener(previous, current)
            except Exception as e:
                logger.error(f"Manifest reload listener failed: {e}", exc_info=True)

    def get_info(self) -> Dict[str, Any]:
        """Describe the store state (for health endpoints)."""
        return {
            "path": str(self.path) if self.path else None,
            "loaded": self.is_loaded,
            "checksum": self.checksum,
            "load_time": self._load_time.isoformat() if self._load_time else None,
        }


def load_manifest_file(
    path: Union[str, Path],
    disabled_prefix: str = DEFAULT_DISABLED_PREFIX,
    case_sensitive: bool = True,
) -> Tuple[Manifest, ManifestStore]:
    """Convenience function: build a store, load a file, return both."""
    store = ManifestStore(path, disabled_prefix=disabled_prefix, case_sensitive=case_sensitive)
    return store.load_file(), store
