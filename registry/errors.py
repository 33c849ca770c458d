# registry/errors.py
"""
Exception types for the guide registry.

Only structural problems with the manifest itself are raised. Problems with
the resource store (missing files, orphans) are reported as data, see
registry.validation.
"""

from typing import Optional


class RegistryError(Exception):
    """Base class for all registry errors."""


class ManifestParseError(RegistryError):
    """Raised when a manifest source cannot be parsed into a Manifest."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to parse manifest '{source}': {reason}")


class DuplicateEntryError(ManifestParseError):
    """Raised when one resource identifier is registered more than once."""

    def __init__(
        self,
        source: str,
        identifier: str,
        first_category: str,
        second_category: Optional[str] = None,
    ):
        self.identifier = identifier
        self.first_category = first_category
        self.second_category = second_category or first_category
        if self.second_category == first_category:
            where = f"twice in category '{first_category}'"
        else:
            where = f"in both '{first_category}' and '{self.second_category}'"
        super().__init__(source, f"Duplicate entry '{identifier}' {where}")


class ManifestNotLoadedError(RegistryError):
    """Raised when a manifest snapshot is requested before any load."""

    def __init__(self, message: str = "No manifest has been loaded"):
        super().__init__(message)
