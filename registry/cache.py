# registry/cache.py
"""
Cache Layer for resolved sets.

Memoizes ResolvedSets keyed by (manifest checksum, parse options, facts
fingerprint) for the lifetime of the process. The cache is only an
optimization: resolve_cached() always returns the same value a direct
resolve() would.

Concurrency:
- Misses are computed outside the lock, so concurrent misses for the same key
  may each run resolve() (cheap and idempotent)
- Writes are single assignments under a short lock: last writer wins, no
  partial entries
"""

import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, Optional, Tuple

from .conditions import DetectionFacts, fingerprint_facts
from .manifests.model import Manifest
from .resolver import ConsistencyResolver, ResolvedSet

logger = logging.getLogger(__name__)

# (manifest checksum, disabled prefix, case policy, facts fingerprint)
CacheKey = Tuple[str, str, bool, str]

DEFAULT_MAX_ENTRIES = 1024


class CacheLayer:
    """
    LRU cache in front of ConsistencyResolver.

    Usage:
        cache = CacheLayer()
        store.subscribe(cache.on_manifest_swap)
        resolved = cache.resolve_cached(store.manifest, facts)
    """

    def __init__(
        self,
        resolver: Optional[ConsistencyResolver] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.resolver = resolver or ConsistencyResolver()
        self.max_entries = max_entries

        self._entries: "OrderedDict[CacheKey, ResolvedSet]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def key_for(manifest: Manifest, facts: Optional[DetectionFacts]) -> CacheKey:
        return (manifest.checksum, *manifest.parse_options, fingerprint_facts(facts))

    def resolve_cached(self, manifest: Manifest, facts: Optional[DetectionFacts] = None) -> ResolvedSet:
        """Return the cached ResolvedSet for (manifest, facts), computing it on a miss."""
        key = self.key_for(manifest, facts)

        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                self._entries.move_to_end(key)
                self._hits += 1
                return cached
            self._misses += 1

        resolved = self.resolver.resolve(manifest, facts)

        with self._lock:
            self._entries[key] = resolved
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

        return resolved

    # ==========================================================================
    # Invalidation
    # ==========================================================================

    def invalidate(self, checksum: Optional[str] = None) -> int:
        """
        Drop cached entries.

        Args:
            checksum: If given, keep only entries computed for this checksum.
                      If None, drop everything.

        Returns:
            Number of entries removed
        """
        with self._lock:
            if checksum is None:
                removed = len(self._entries)
                self._entries.clear()
            else:
                stale = [k for k in self._entries if k[0] != checksum]
                for key in stale:
                    del self._entries[key]
                removed = len(stale)

        if removed:
            logger.info(f"Invalidated {removed} cached resolved sets")
        return removed

    def resize(self, max_entries: int) -> None:
        """Change the bound, evicting least recently used entries if needed."""
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        with self._lock:
            self.max_entries = max_entries
            while len(self._entries) > max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        """Drop all entries and reset counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def on_manifest_swap(self, previous: Optional[Manifest], current: Manifest) -> None:
        """ManifestStore listener: a new checksum invalidates the cache wholesale."""
        self.invalidate(current.checksum)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_entries": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
            }

    def __len__(self) -> int:
        return len(self._entries)
