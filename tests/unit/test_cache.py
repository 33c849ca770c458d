"""
Unit tests for the Cache Layer
"""

import json

import pytest

from registry.cache import CacheLayer
from registry.manifests import ManifestStore, parse_manifest
from registry.resolver import ConsistencyResolver, resolve


@pytest.fixture
def manifest():
    return parse_manifest(json.dumps({
        "wcag": ["a.md", "!b.md"],
        "patterns": [{"path": "c.md", "condition": "fireTv"}],
    }))


class CountingResolver(ConsistencyResolver):
    """Resolver that counts real computations."""

    def __init__(self):
        super().__init__()
        self.calls = 0

    def resolve(self, manifest, facts):
        self.calls += 1
        return super().resolve(manifest, facts)


class TestCacheLayer:
    """Tests for CacheLayer."""

    @pytest.mark.parametrize("facts", [{}, {"fireTv": True}, {"fireTv": False}, None])
    def test_cache_transparency(self, manifest, facts):
        """Test resolve_cached == resolve for the same inputs."""
        cache = CacheLayer()

        assert cache.resolve_cached(manifest, facts) == resolve(manifest, facts)
        assert cache.resolve_cached(manifest, facts) == resolve(manifest, facts)

    def test_hit_after_miss(self, manifest):
        """Test that a second call is served from the cache."""
        resolver = CountingResolver()
        cache = CacheLayer(resolver=resolver)

        first = cache.resolve_cached(manifest, {"fireTv": True})
        second = cache.resolve_cached(manifest, {"fireTv": True})

        assert first is second
        assert resolver.calls == 1
        assert cache.stats()["hits"] == 1
        assert cache.stats()["misses"] == 1

    def test_key_ignores_fact_order(self, manifest):
        """Test order-independent facts fingerprint in the key."""
        resolver = CountingResolver()
        cache = CacheLayer(resolver=resolver)

        cache.resolve_cached(manifest, {"fireTv": True, "other": False})
        cache.resolve_cached(manifest, {"other": False, "fireTv": True})

        assert resolver.calls == 1

    def test_distinct_manifests_distinct_keys(self, manifest):
        """Test that the manifest checksum is part of the key."""
        cache = CacheLayer()
        other = parse_manifest(json.dumps({"wcag": ["z.md"]}))

        assert cache.resolve_cached(manifest, {}).to_list() == ["a.md"]
        assert cache.resolve_cached(other, {}).to_list() == ["z.md"]
        assert len(cache) == 2

    def test_lru_eviction(self, manifest):
        """Test bounded size."""
        cache = CacheLayer(max_entries=2)

        cache.resolve_cached(manifest, {"x": True})
        cache.resolve_cached(manifest, {"y": True})
        cache.resolve_cached(manifest, {"x": True})  # refresh x
        cache.resolve_cached(manifest, {"z": True})  # evicts y

        keys = list(cache._entries)
        assert len(keys) == 2
        assert CacheLayer.key_for(manifest, {"y": True}) not in keys
        assert CacheLayer.key_for(manifest, {"x": True}) in keys

    def test_parse_options_part_of_key(self):
        """Test that equal bytes parsed with a different prefix never share an entry."""
        source = '{"wcag": ["#a.md", "!b.md"]}'
        default = parse_manifest(source)
        hashed = parse_manifest(source, disabled_prefix="#")
        cache = CacheLayer()

        assert default.checksum == hashed.checksum
        assert CacheLayer.key_for(default, {}) != CacheLayer.key_for(hashed, {})
        assert cache.resolve_cached(default, {}).to_list() == ["#a.md"]
        assert cache.resolve_cached(hashed, {}) == resolve(hashed, {})
        assert cache.resolve_cached(hashed, {}).to_list() == ["!b.md"]

    def test_case_policy_part_of_key(self):
        source = '{"wcag": ["A.md"]}'
        sensitive = parse_manifest(source)
        folded = parse_manifest(source, case_sensitive=False)

        assert CacheLayer.key_for(sensitive, {}) != CacheLayer.key_for(folded, {})

    def test_resize_evicts_oldest(self, manifest):
        cache = CacheLayer()
        cache.resolve_cached(manifest, {"x": True})
        cache.resolve_cached(manifest, {"y": True})

        cache.resize(1)

        assert cache.max_entries == 1
        assert list(cache._entries) == [CacheLayer.key_for(manifest, {"y": True})]
        with pytest.raises(ValueError):
            cache.resize(0)

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            CacheLayer(max_entries=0)

    def test_invalidate_all(self, manifest):
        cache = CacheLayer()
        cache.resolve_cached(manifest, {})

        assert cache.invalidate() == 1
        assert len(cache) == 0

    def test_invalidate_keeps_current_checksum(self, manifest):
        cache = CacheLayer()
        other = parse_manifest(json.dumps({"wcag": ["z.md"]}))
        cache.resolve_cached(manifest, {})
        cache.resolve_cached(other, {})

        removed = cache.invalidate(other.checksum)

        assert removed == 1
        assert list(cache._entries) == [CacheLayer.key_for(other, {})]

    def test_reload_invalidates_wholesale(self):
        """Test wiring to ManifestStore: a new checksum drops old entries."""
        store = ManifestStore()
        cache = CacheLayer()
        store.subscribe(cache.on_manifest_swap)

        first = store.load(json.dumps({"wcag": ["a.md"]}))
        cache.resolve_cached(first, {})
        cache.resolve_cached(first, {"fireTv": True})
        assert len(cache) == 2

        second = store.reload(json.dumps({"wcag": ["b.md"]}))

        assert len(cache) == 0
        assert cache.resolve_cached(second, {}).to_list() == ["b.md"]

    def test_clear_resets_counters(self, manifest):
        cache = CacheLayer()
        cache.resolve_cached(manifest, {})
        cache.clear()

        assert cache.stats() == {"size": 0, "max_entries": cache.max_entries, "hits": 0, "misses": 0}
