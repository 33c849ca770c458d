"""
Guide Registry FastAPI Server
=============================

REST API consumer of the guide registry.

Endpoints:
- Health & Status
- Manifest summary
- Resolve / Verify
- Validate
- Reload
- Cache statistics
"""

__version__ = "0.1.0"
