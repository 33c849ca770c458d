# registry/__init__.py
"""
Guide Registry - manifest-driven resolution of guide bundles.

This package provides:
- ManifestStore: Parsing and atomic reload of the JSON manifest
- ResourceExistenceValidator: Two-directional drift check against the resource store
- ConditionalRuleEngine: Fail-closed evaluation of detector conditions
- ConsistencyResolver: Deterministic, order-preserving resolution
- CacheLayer: Memoized resolution keyed by manifest checksum and facts fingerprint
- resolve_cached / GuideRegistry: The single entry point every consumer uses
"""

from .errors import (
    RegistryError,
    ManifestParseError,
    DuplicateEntryError,
    ManifestNotLoadedError,
)

from .manifests import (
    Manifest,
    Category,
    Entry,
    ManifestStore,
    parse_manifest,
    compute_checksum,
)

from .validation import (
    DiscrepancyKind,
    Discrepancy,
    MissingResourceError,
    OrphanedResourceWarning,
    DuplicateResourceRecord,
    ValidationReport,
)

from .existence import ResourceExistenceValidator

from .conditions import (
    ConditionalRuleEngine,
    KNOWN_DETECTORS,
    normalize_facts,
    fingerprint_facts,
    get_detector,
    list_detectors,
)

from .resolver import (
    ResolvedSet,
    ConsistencyResolver,
    Decision,
    EntryDecision,
    resolve,
    explain,
)

from .cache import CacheLayer

from .consistency import (
    GuideRegistry,
    ConsistencyResult,
    ConsistencyStatus,
    compare_resolved,
    resolve_cached,
    get_registry,
    reset_registry,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "RegistryError",
    "ManifestParseError",
    "DuplicateEntryError",
    "ManifestNotLoadedError",
    # Manifests
    "Manifest",
    "Category",
    "Entry",
    "ManifestStore",
    "parse_manifest",
    "compute_checksum",
    # Validation
    "DiscrepancyKind",
    "Discrepancy",
    "MissingResourceError",
    "OrphanedResourceWarning",
    "DuplicateResourceRecord",
    "ValidationReport",
    "ResourceExistenceValidator",
    # Conditions
    "ConditionalRuleEngine",
    "KNOWN_DETECTORS",
    "normalize_facts",
    "fingerprint_facts",
    "get_detector",
    "list_detectors",
    # Resolution
    "ResolvedSet",
    "ConsistencyResolver",
    "Decision",
    "EntryDecision",
    "resolve",
    "explain",
    "CacheLayer",
    # Consumer contract
    "GuideRegistry",
    "ConsistencyResult",
    "ConsistencyStatus",
    "compare_resolved",
    "resolve_cached",
    "get_registry",
    "reset_registry",
]
