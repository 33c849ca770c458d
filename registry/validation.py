# registry/validation.py
"""
Typed discrepancy records produced by the resource existence check.

Provides:
- DiscrepancyKind: missing / orphaned / duplicate
- Discrepancy and its record types (MissingResourceError, ...)
- ValidationReport: the exhaustive result of one validation pass

Records are data: they are collected and returned, never raised.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional


class DiscrepancyKind(Enum):
    """Kinds of drift between the manifest and the resource store."""
    MISSING = "missing"        # Enabled entry with no readable file
    ORPHANED = "orphaned"      # File on disk referenced by no entry
    DUPLICATE = "duplicate"    # Two entries resolving to the same file


class Severity(Enum):
    """Severity of a discrepancy for runtime callers."""
    WARNING = "warning"  # Informational, registry keeps working
    ERROR = "error"      # A declared resource cannot be served


@dataclass(frozen=True)
class Discrepancy:
    """Base discrepancy record."""
    kind: ClassVar[DiscrepancyKind]

    identifier: str
    category: Optional[str] = None
    message: str = ""

    @property
    def severity(self) -> Severity:
        return Severity.WARNING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "identifier": self.identifier,
            "category": self.category,
            "severity": self.severity.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class MissingResourceError(Discrepancy):
    """Enabled entry whose resource does not exist or is unreadable."""
    kind: ClassVar[DiscrepancyKind] = DiscrepancyKind.MISSING

    @property
    def severity(self) -> Severity:
        return Severity.ERROR


@dataclass(frozen=True)
class OrphanedResourceWarning(Discrepancy):
    """Resource present in the store but absent from the manifest."""
    kind: ClassVar[DiscrepancyKind] = DiscrepancyKind.ORPHANED


@dataclass(frozen=True)
class DuplicateResourceRecord(Discrepancy):
    """Entry that aliases a file already claimed by another entry."""
    kind: ClassVar[DiscrepancyKind] = DiscrepancyKind.DUPLICATE
    duplicate_of: Optional[str] = None

    @property
    def severity(self) -> Severity:
        return Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["duplicate_of"] = self.duplicate_of
        return data


@dataclass
class ValidationReport:
    """
    Result of one validation pass.

    CI callers should treat any record as failure (see exit_code); runtime
    callers log the records and keep serving.
    """

    manifest_checksum: str
    resource_root: str
    discrepancies: List[Discrepancy] = field(default_factory=list)

    def add(self, record: Discrepancy) -> "ValidationReport":
        self.discrepancies.append(record)
        return self

    @property
    def ok(self) -> bool:
        return not self.discrepancies

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    @property
    def missing(self) -> List[Discrepancy]:
        return self.by_kind(DiscrepancyKind.MISSING)

    @property
    def orphaned(self) -> List[Discrepancy]:
        return self.by_kind(DiscrepancyKind.ORPHANED)

    @property
    def duplicates(self) -> List[Discrepancy]:
        return self.by_kind(DiscrepancyKind.DUPLICATE)

    def by_kind(self, kind: DiscrepancyKind) -> List[Discrepancy]:
        return [d for d in self.discrepancies if d.kind == kind]

    def counts(self) -> Dict[str, int]:
        return {kind.value: len(self.by_kind(kind)) for kind in DiscrepancyKind}

    def __len__(self) -> int:
        return len(self.discrepancies)

    def __iter__(self):
        return iter(self.discrepancies)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for CI consumption."""
        return {
            "ok": self.ok,
            "manifest_checksum": self.manifest_checksum,
            "resource_root": self.resource_root,
            "counts": self.counts(),
            "discrepancies": [d.to_dict() for d in self.discrepancies],
        }
