"""
Guide Registry - Consumers

This package provides the consumers embedding the guide registry:

- Settings (pydantic-settings configuration)
- CLI consumer (service.main)
- HTTP consumer (service.api.main, FastAPI)

Both consumers resolve guides through registry.GuideRegistry and never
order or filter guides themselves.
"""

__version__ = "0.1.0"

from service.config import settings, get_settings, Settings

__all__ = [
    "settings",
    "get_settings",
    "Settings",
]
