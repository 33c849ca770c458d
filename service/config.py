"""
Guide Registry Configuration

Pydantic-based settings with environment variable support.
"""

from functools import lru_cache
from typing import Any, Dict, List, Optional
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GUIDE_REGISTRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================
    app_name: str = "Guide Registry"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # ==========================================================================
    # MANIFEST
    # ==========================================================================
    manifest_path: str = "guides/manifest.json"
    resource_root: Optional[str] = None  # Defaults to the manifest's directory
    disabled_prefix: str = "!"
    case_sensitive: bool = True

    # Never reported as orphans (fnmatch globs, relative POSIX paths)
    orphan_ignore: List[str] = Field(default_factory=lambda: [
        "README.md",
        "LICENSE*",
    ])

    # ==========================================================================
    # CACHE
    # ==========================================================================
    cache_max_entries: int = 1024

    # ==========================================================================
    # API
    # ==========================================================================
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # ==========================================================================
    # PROPERTIES
    # ==========================================================================
    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def manifest_file(self) -> Path:
        return Path(self.manifest_path).expanduser()

    @property
    def resource_dir(self) -> Path:
        if self.resource_root:
            return Path(self.resource_root).expanduser()
        return self.manifest_file.parent

    def registry_options(self) -> Dict[str, Any]:
        """Keyword arguments for GuideRegistry / get_registry()."""
        return {
            "manifest_path": self.manifest_file,
            "resource_root": self.resource_dir,
            "disabled_prefix": self.disabled_prefix,
            "case_sensitive": self.case_sensitive,
            "ignore_patterns": list(self.orphan_ignore),
            "cache_max_entries": self.cache_max_entries,
        }


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
