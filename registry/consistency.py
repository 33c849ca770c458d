# registry/consistency.py
"""
Consumer contract for the guide registry.

Every consumer (the CLI, the HTTP integration, any future embedder) resolves
guides through resolve_cached() or GuideRegistry.resolve(). Consumers must
not re-implement ordering or filtering: the resolution is one pure function
over immutable inputs, so equal manifest bytes and equal facts give
byte-identical ResolvedSets everywhere.

Also provides compare_resolved() so two consumers can check that they agree.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .cache import DEFAULT_MAX_ENTRIES, CacheLayer
from .conditions import DetectionFacts
from .existence import ResourceExistenceValidator
from .manifests.loader import DEFAULT_DISABLED_PREFIX, ManifestSource, ManifestStore
from .manifests.model import Manifest
from .resolver import ConsistencyResolver, EntryDecision, ResolvedSet
from .validation import ValidationReport

logger = logging.getLogger(__name__)


# =============================================================================
# Shared entry point
# =============================================================================

_shared_cache = CacheLayer()


def resolve_cached(manifest: Manifest, facts: Optional[DetectionFacts] = None) -> ResolvedSet:
    """The single public resolution entry point for consumers."""
    return _shared_cache.resolve_cached(manifest, facts)


def get_shared_cache() -> CacheLayer:
    return _shared_cache


# =============================================================================
# Cross-consumer comparison
# =============================================================================

class ConsistencyStatus(Enum):
    IDENTICAL = "identical"
    ORDER_MISMATCH = "order_mismatch"            # Same members, different load order
    MEMBERSHIP_MISMATCH = "membership_mismatch"  # Different members


@dataclass
class ConsistencyResult:
    """Outcome of comparing two consumers' resolved sets."""
    status: ConsistencyStatus
    missing: List[str] = field(default_factory=list)     # In expected, not in actual
    unexpected: List[str] = field(default_factory=list)  # In actual, not in expected
    checksum_mismatch: bool = False
    fingerprint_mismatch: bool = False

    @property
    def consistent(self) -> bool:
        return (
            self.status == ConsistencyStatus.IDENTICAL
            and not self.checksum_mismatch
            and not self.fingerprint_mismatch
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "consistent": self.consistent,
            "status": self.status.value,
            "missing": self.missing,
            "unexpected": self.unexpected,
            "checksum_mismatch": self.checksum_mismatch,
            "fingerprint_mismatch": self.fingerprint_mismatch,
        }


def compare_resolved(expected: ResolvedSet, actual: ResolvedSet) -> ConsistencyResult:
    """Compare two resolved sets; differing order is a violation."""
    expected_ids = list(expected)
    actual_ids = list(actual)

    if expected_ids == actual_ids:
        status = ConsistencyStatus.IDENTICAL
    elif sorted(expected_ids) == sorted(actual_ids):
        status = ConsistencyStatus.ORDER_MISMATCH
    else:
        status = ConsistencyStatus.MEMBERSHIP_MISMATCH

    actual_members = set(actual_ids)
    expected_members = set(expected_ids)
    return ConsistencyResult(
        status=status,
        missing=[i for i in expected_ids if i not in actual_members],
        unexpected=[i for i in actual_ids if i not in expected_members],
        checksum_mismatch=expected.manifest_checksum != actual.manifest_checksum,
        fingerprint_mismatch=expected.facts_fingerprint != actual.facts_fingerprint,
    )


# =============================================================================
# Registry facade
# =============================================================================

class GuideRegistry:
    """
    Store + validator + cache wired together for one manifest.

    Usage:
        registry = GuideRegistry("guides/manifest.json")
        registry.load_file()
        report = registry.validate()
        resolved = registry.resolve({"fireTvPatternsPresent": True})
    """

    def __init__(
        self,
        manifest_path: Optional[Union[str, Path]] = None,
        resource_root: Optional[Union[str, Path]] = None,
        disabled_prefix: str = DEFAULT_DISABLED_PREFIX,
        case_sensitive: bool = True,
        ignore_patterns: Optional[Sequence[str]] = None,
        cache: Optional[CacheLayer] = None,
        cache_max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        """
        Args:
            manifest_path: Manifest file to load
            resource_root: Resource directory (default: the manifest's directory)
            disabled_prefix: Prefix marking disabled entry lines
            case_sensitive: Identifier comparison policy
            ignore_patterns: Globs excluded from the orphan scan
            cache: CacheLayer to use (default: a private one)
            cache_max_entries: Size of the private cache
        """
        self.store = ManifestStore(
            manifest_path,
            disabled_prefix=disabled_prefix,
            case_sensitive=case_sensitive,
        )
        self._resource_root = Path(resource_root).expanduser() if resource_root else None
        self.validator = ResourceExistenceValidator(
            case_sensitive=case_sensitive,
            ignore_patterns=ignore_patterns,
        )
        self.cache = cache if cache is not None else CacheLayer(max_entries=cache_max_entries)
        self.store.subscribe(self.cache.on_manifest_swap)

    @property
    def manifest(self) -> Manifest:
        return self.store.manifest

    @property
    def resource_root(self) -> Optional[Path]:
        if self._resource_root is not None:
            return self._resource_root
        if self.store.path is not None:
            return self.store.path.parent
        return None

    # ==========================================================================
    # Loading
    # ==========================================================================

    def load(self, source: ManifestSource, origin: str = "<memory>") -> Manifest:
        return self.store.load(source, origin)

    def load_file(self, path: Optional[Union[str, Path]] = None) -> Manifest:
        return self.store.load_file(path)

    def reload(self, source: Optional[ManifestSource] = None) -> Manifest:
        return self.store.reload(source)

    # ==========================================================================
    # Operations
    # ==========================================================================

    def resolve(self, facts: Optional[DetectionFacts] = None) -> ResolvedSet:
        """Resolve against the current snapshot through the cache."""
        return self.cache.resolve_cached(self.store.manifest, facts)

    def explain(self, facts: Optional[DetectionFacts] = None) -> List[EntryDecision]:
        return self.cache.resolver.explain(self.store.manifest, facts)

    def validate(self, resource_root: Optional[Union[str, Path]] = None) -> ValidationReport:
        """Check the current snapshot against the resource store."""
        manifest = self.store.manifest
        root = Path(resource_root) if resource_root else self.resource_root
        if root is None:
            raise ValueError("No resource root configured")

        exclude = [self.store.path] if self.store.path is not None else []
        return self.validator.validate(manifest, root, exclude=exclude)

    def verify(self, expected: ResolvedSet, facts: Optional[DetectionFacts] = None) -> ConsistencyResult:
        """Compare another consumer's resolved set with the local resolution."""
        result = compare_resolved(expected, self.resolve(facts))
        if not result.consistent:
            logger.warning(f"Consumer drift detected: {result.status.value}")
        return result

    def get_info(self) -> Dict[str, Any]:
        info = self.store.get_info()
        info["resource_root"] = str(self.resource_root) if self.resource_root else None
        info["cache"] = self.cache.stats()
        return info


# =============================================================================
# Global Registry Instance
# =============================================================================

_global_registry: Optional[GuideRegistry] = None


def get_registry(
    manifest_path: Optional[Union[str, Path]] = None,
    resource_root: Optional[Union[str, Path]] = None,
    reload: bool = False,
    **options: Any,
) -> GuideRegistry:
    """
    Get or create the process-wide GuideRegistry.

    The global registry uses the shared cache, so resolve_cached() and
    get_registry().resolve() agree and share entries. cache_max_entries
    resizes the shared cache; a reload empties it.
    """
    global _global_registry

    if _global_registry is None or reload:
        if _global_registry is not None:
            _global_registry.store.unsubscribe(_global_registry.cache.on_manifest_swap)
        if "cache" not in options:
            if "cache_max_entries" in options:
                _shared_cache.resize(options["cache_max_entries"])
            if reload:
                _shared_cache.clear()
            options["cache"] = _shared_cache
        _global_registry = GuideRegistry(
            manifest_path=manifest_path,
            resource_root=resource_root,
            **options,
        )

    return _global_registry


def reset_registry() -> None:
    """Drop the global registry, clear the shared cache and restore its size."""
    global _global_registry
    if _global_registry is not None:
        _global_registry.store.unsubscribe(_global_registry.cache.on_manifest_swap)
    _global_registry = None
    _shared_cache.clear()
    _shared_cache.resize(DEFAULT_MAX_ENTRIES)
