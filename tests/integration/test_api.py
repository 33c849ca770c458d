# tests/integration/test_api.py
"""
Integration tests for the HTTP consumer.

The server must resolve through the same entry point as the CLI and keep
serving the previous manifest when a reload is rejected.
"""

import inspect

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from registry import GuideRegistry, resolve
from service.api.main import create_app


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def registry(guide_tree):
    _, manifest_path = guide_tree
    return GuideRegistry(manifest_path)


@pytest.fixture
def client(registry):
    """Test client with the lifespan (load + startup validation) applied."""
    with TestClient(create_app(registry)) as test_client:
        yield test_client


# =============================================================================
# HEALTH
# =============================================================================

class TestHealth:
    """Health and root endpoints."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health_loaded(self, client, registry):
        response = client.get("/health")
        data = response.json()

        assert response.status_code == 200
        assert data["status"] == "healthy"
        assert data["manifest_checksum"] == registry.manifest.checksum
        assert data["components"]["manifest_store"] == "ready"

    def test_degraded_when_manifest_broken(self, tmp_path, make_manifest):
        """Test that a broken manifest at startup degrades instead of crashing."""
        manifest_path = make_manifest(tmp_path, {"wcag": ["a.md"], "patterns": ["a.md"]})
        registry = GuideRegistry(manifest_path)

        with TestClient(create_app(registry)) as client:
            health = client.get("/health").json()
            resolve_response = client.post("/api/v1/resolve", json={"facts": {}})

        assert health["status"] == "degraded"
        assert health["manifest_checksum"] is None
        assert resolve_response.status_code == 503


# =============================================================================
# RESOLUTION
# =============================================================================

class TestResolve:
    """POST /api/v1/resolve"""

    def test_resolve_without_facts(self, client):
        response = client.post("/api/v1/resolve", json={})
        data = response.json()

        assert response.status_code == 200
        assert data["identifiers"] == ["wcag/a.md", "patterns/c.md"]
        assert data["schema"] == "guide_registry.resolved_set.v1"

    def test_resolve_with_facts(self, client):
        response = client.post(
            "/api/v1/resolve",
            json={"facts": {"fireTvPatternsPresent": True}},
        )

        assert response.json()["identifiers"] == [
            "wcag/a.md", "patterns/c.md", "patterns/fire-tv.md"
        ]

    def test_matches_library_resolution(self, client, registry):
        """Test that the API and a direct resolve() agree exactly."""
        facts = {"fireTvPatternsPresent": True}
        response = client.post("/api/v1/resolve", json={"facts": facts})

        assert response.json() == resolve(registry.manifest, facts).to_dict()

    def test_non_boolean_fact_rejected(self, client):
        response = client.post(
            "/api/v1/resolve",
            json={"facts": {"fireTvPatternsPresent": "yes"}},
        )

        assert response.status_code == 422

    def test_verify(self, client):
        facts = {"fireTvPatternsPresent": True}
        expected = client.post("/api/v1/resolve", json={"facts": facts}).json()

        same = client.post("/api/v1/verify", json={"expected": expected, "facts": facts})
        different = client.post("/api/v1/verify", json={"expected": expected, "facts": {}})

        assert same.json()["consistent"] is True
        assert different.json()["status"] == "membership_mismatch"

    def test_verify_bad_payload(self, client):
        response = client.post("/api/v1/verify", json={"expected": {"schema": "other"}})

        assert response.status_code == 422


# =============================================================================
# MANIFEST, VALIDATION, RELOAD
# =============================================================================

class TestRegistryEndpoints:
    """Manifest summary, validation and reload."""

    def test_manifest_summary(self, client):
        data = client.get("/api/v1/manifest").json()

        assert list(data["categories"]) == ["wcag", "patterns"]
        assert data["categories"]["patterns"] == 2
        assert data["disabled"] == ["wcag/b.md"]
        assert data["detectors"] == ["fireTvPatternsPresent"]

    def test_validate_clean(self, client):
        data = client.get("/api/v1/validate").json()

        assert data["ok"] is True
        assert data["discrepancies"] == []

    def test_validate_reports_drift(self, client, guide_tree):
        root, _ = guide_tree
        (root / "wcag" / "a.md").unlink()

        data = client.get("/api/v1/validate").json()

        assert data["ok"] is False
        assert data["discrepancies"][0]["identifier"] == "wcag/a.md"

    def test_reload_unchanged(self, client):
        data = client.post("/api/v1/reload").json()

        assert data["status"] == "unchanged"
        assert data["previous_checksum"] == data["manifest_checksum"]

    def test_reload_changed(self, client, guide_tree, make_manifest):
        root, _ = guide_tree
        make_manifest(root, {"wcag": ["wcag/a.md"]})

        data = client.post("/api/v1/reload").json()
        resolved = client.post("/api/v1/resolve", json={}).json()

        assert data["status"] == "reloaded"
        assert resolved["identifiers"] == ["wcag/a.md"]

    def test_rejected_reload_keeps_serving(self, client, registry, guide_tree, make_manifest):
        """Test that a duplicate entry on reload returns 409 and keeps the old manifest."""
        root, _ = guide_tree
        before = registry.manifest.checksum
        make_manifest(root, {"wcag": ["wcag/a.md"], "patterns": ["wcag/a.md"]})

        response = client.post("/api/v1/reload")
        resolved = client.post("/api/v1/resolve", json={}).json()

        assert response.status_code == 409
        assert response.json()["detail"]["active_checksum"] == before
        assert resolved["manifest_checksum"] == before
        assert resolved["identifiers"] == ["wcag/a.md", "patterns/c.md"]

    def test_cache_stats(self, client):
        client.post("/api/v1/resolve", json={})
        client.post("/api/v1/resolve", json={})

        stats = client.get("/api/v1/cache").json()

        assert stats["size"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    @pytest.mark.parametrize("path", ["/api/v1/validate", "/api/v1/reload"])
    def test_filesystem_routes_run_in_threadpool(self, path):
        """Test that routes doing disk I/O are plain functions, not coroutines."""
        app = create_app(GuideRegistry())
        endpoints = [
            route.endpoint for route in app.routes
            if isinstance(route, APIRoute) and route.path == path
        ]

        assert len(endpoints) == 1
        assert not inspect.iscoroutinefunction(endpoints[0])
