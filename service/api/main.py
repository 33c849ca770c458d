"""
Guide Registry FastAPI Server - Main Application
================================================

Server-side consumer of the guide registry. Resolution goes through
GuideRegistry.resolve(), the same entry point the CLI uses; the API never
orders or filters guides itself.

Usage:
    uvicorn service.api.main:app --host 127.0.0.1 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictBool

from registry import (
    GuideRegistry,
    ManifestNotLoadedError,
    ManifestParseError,
    ResolvedSet,
    get_registry,
)
from service.config import get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Models
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    timestamp: str
    manifest_checksum: Optional[str]
    components: Dict[str, str]


class ResolveRequest(BaseModel):
    """Resolve request"""
    facts: Dict[str, StrictBool] = Field(
        default_factory=dict,
        description="Detection facts: detector name -> boolean",
        examples=[{"fireTvPatternsPresent": True}]
    )


class ResolveResponse(BaseModel):
    """Resolved guide set"""
    schema_id: str = Field(alias="schema")
    manifest_checksum: str
    facts_fingerprint: str
    identifiers: List[str]

    model_config = {"populate_by_name": True}


class VerifyRequest(BaseModel):
    """Compare another consumer's resolved set"""
    expected: Dict[str, Any] = Field(..., description="ResolvedSet as produced by another consumer")
    facts: Dict[str, StrictBool] = Field(default_factory=dict)


class ReloadResponse(BaseModel):
    """Reload result"""
    status: str
    previous_checksum: Optional[str]
    manifest_checksum: str


# =============================================================================
# Lifecycle
# =============================================================================

def _startup_validation(registry: GuideRegistry) -> None:
    """Runtime callers log drift but keep serving."""
    report = registry.validate()
    if report.ok:
        logger.info("[GuideRegistry] Resource store matches manifest")
        return
    for record in report:
        logger.warning(
            f"[GuideRegistry] {record.kind.value}: {record.identifier} ({record.message})"
        )


def create_app(registry: Optional[GuideRegistry] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        registry: Registry to serve. If None, the process-wide registry is
                  built from settings and loaded at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        logger.info("[GuideRegistry] Starting API server...")

        active = registry
        if active is None:
            settings = get_settings()
            active = get_registry(**settings.registry_options())

        if not active.store.is_loaded:
            try:
                active.load_file()
            except ManifestParseError as e:
                logger.error(f"[GuideRegistry] Manifest not loaded, serving degraded: {e}")

        if active.store.is_loaded and active.resource_root is not None:
            _startup_validation(active)

        app.state.registry = active
        yield

        logger.info("[GuideRegistry] Shutting down API server...")

    app = FastAPI(
        title="Guide Registry API",
        description="Resolve guide bundles from the registry manifest for a set of detection facts.",
        version=get_settings().app_version,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Health check and registry status"},
            {"name": "registry", "description": "Manifest, resolution, validation and reload"},
        ]
    )

    _register_routes(app)
    return app


# =============================================================================
# Dependencies
# =============================================================================

def get_guide_registry(request: Request) -> GuideRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="Registry not initialized")
    return registry


def _require_manifest(registry: GuideRegistry):
    try:
        return registry.manifest
    except ManifestNotLoadedError:
        raise HTTPException(status_code=503, detail="Manifest not loaded")


# =============================================================================
# Routes
# =============================================================================

def _register_routes(app: FastAPI) -> None:

    @app.get("/", tags=["health"], summary="Root endpoint")
    async def root():
        """Root endpoint"""
        settings = get_settings()
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "status": "running",
            "docs": "/docs"
        }

    @app.get("/health", response_model=HealthResponse, tags=["health"], summary="Health check")
    async def health_check(registry: GuideRegistry = Depends(get_guide_registry)):
        """Health check endpoint"""
        loaded = registry.store.is_loaded
        components = {
            "manifest_store": "ready" if loaded else "not_loaded",
            "cache": "ready",
        }
        return HealthResponse(
            status="healthy" if loaded else "degraded",
            version=get_settings().app_version,
            timestamp=datetime.now().isoformat(),
            manifest_checksum=registry.store.checksum,
            components=components
        )

    @app.get("/api/v1/manifest", tags=["registry"], summary="Manifest summary")
    async def get_manifest(registry: GuideRegistry = Depends(get_guide_registry)):
        """Categories, entry counts, disabled entries and detectors"""
        manifest = _require_manifest(registry)
        summary = manifest.summary()
        summary["disabled"] = [e.identifier for e in manifest.disabled_entries()]
        return summary

    @app.post(
        "/api/v1/resolve",
        response_model=ResolveResponse,
        response_model_by_alias=True,
        tags=["registry"],
        summary="Resolve guides for detection facts"
    )
    async def resolve_guides(
        request: ResolveRequest,
        registry: GuideRegistry = Depends(get_guide_registry)
    ):
        """Ordered list of guides every consumer must load for these facts"""
        _require_manifest(registry)
        resolved = registry.resolve(request.facts)
        return resolved.to_dict()

    @app.post("/api/v1/verify", tags=["registry"], summary="Compare a consumer's resolved set")
    async def verify_resolved(
        request: VerifyRequest,
        registry: GuideRegistry = Depends(get_guide_registry)
    ):
        """Report whether another consumer resolved the same ordered guides"""
        _require_manifest(registry)
        try:
            expected = ResolvedSet.from_dict(request.expected)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return registry.verify(expected, request.facts).to_dict()

    @app.get("/api/v1/validate", tags=["registry"], summary="Check manifest against resources")
    def validate_resources(registry: GuideRegistry = Depends(get_guide_registry)):
        """Exhaustive drift report (missing, orphaned, duplicate)"""
        _require_manifest(registry)
        if registry.resource_root is None:
            raise HTTPException(status_code=503, detail="No resource root configured")
        return registry.validate().to_dict()

    @app.post(
        "/api/v1/reload",
        response_model=ReloadResponse,
        tags=["registry"],
        summary="Reload the manifest file"
    )
    def reload_manifest(registry: GuideRegistry = Depends(get_guide_registry)):
        """All-or-nothing reload; a bad manifest leaves the current one active"""
        previous = registry.store.checksum
        try:
            if registry.store.is_loaded:
                manifest = registry.reload()
            else:
                manifest = registry.load_file()
        except ManifestParseError as e:
            raise HTTPException(
                status_code=409,
                detail={"error": str(e), "active_checksum": previous}
            )

        return ReloadResponse(
            status="reloaded" if manifest.checksum != previous else "unchanged",
            previous_checksum=previous,
            manifest_checksum=manifest.checksum
        )

    @app.get("/api/v1/cache", tags=["registry"], summary="Cache statistics")
    async def cache_stats(registry: GuideRegistry = Depends(get_guide_registry)):
        """Resolved-set cache size and hit/miss counters"""
        return registry.cache.stats()

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler"""
        logger.error(f"[GuideRegistry] Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)}
        )


app = create_app()


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    uvicorn.run(
        "service.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
    )


__all__ = ["app", "create_app"]
