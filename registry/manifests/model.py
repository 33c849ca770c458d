# registry/manifests/model.py
"""
Immutable manifest data model.

A Manifest is an ordered sequence of categories, each holding an ordered
sequence of entries. Order is load priority and is never changed after
parsing. Instances are frozen; a reload builds a new Manifest instead of
mutating the old one.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class Entry:
    """One resource reference inside a manifest."""
    identifier: str  # Relative POSIX path under the resource root
    category: str  # Name of the owning category (plain string, no back-reference)
    disabled: bool = False  # Present but excluded ("commented out")
    condition: Optional[str] = None  # Detector that must be satisfied

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "category": self.category,
            "disabled": self.disabled,
            "condition": self.condition,
        }


@dataclass(frozen=True)
class Category:
    """Named, ordered group of entries."""
    name: str
    entries: Tuple[Entry, ...] = ()

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class Manifest:
    """
    Parsed manifest snapshot.

    The checksum is the SHA-256 of the source bytes the manifest was parsed
    from. Together with the parse options (equal bytes parsed with a
    different disabled prefix or case policy give a different manifest) it
    identifies the snapshot in cache keys and consumer comparisons.
    """
    categories: Tuple[Category, ...]
    checksum: str
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)
    source: str = field(default="<memory>", compare=False)
    disabled_prefix: str = "!"
    case_sensitive: bool = True

    _index: Mapping[str, Entry] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        index = {}
        for category in self.categories:
            for entry in category.entries:
                index[entry.identifier] = entry
        object.__setattr__(self, "_index", MappingProxyType(index))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    # ==========================================================================
    # Views
    # ==========================================================================

    @property
    def category_names(self) -> List[str]:
        return [c.name for c in self.categories]

    def get_category(self, name: str) -> Optional[Category]:
        for category in self.categories:
            if category.name == name:
                return category
        return None

    def entries(self) -> List[Entry]:
        """All entries, flattened in declared category/entry order."""
        return [entry for category in self.categories for entry in category.entries]

    def identifiers(self) -> List[str]:
        return [entry.identifier for entry in self.entries()]

    def enabled_entries(self) -> List[Entry]:
        return [e for e in self.entries() if not e.disabled]

    def disabled_entries(self) -> List[Entry]:
        return [e for e in self.entries() if e.disabled]

    def conditional_entries(self) -> List[Entry]:
        return [e for e in self.entries() if e.is_conditional]

    def detectors(self) -> List[str]:
        """Distinct condition names, in order of first use."""
        seen: Dict[str, None] = {}
        for entry in self.entries():
            if entry.condition is not None:
                seen.setdefault(entry.condition, None)
        return list(seen)

    @property
    def parse_options(self) -> Tuple[str, bool]:
        return (self.disabled_prefix, self.case_sensitive)

    def get_entry(self, identifier: str) -> Optional[Entry]:
        return self._index.get(identifier)

    def category_of(self, identifier: str) -> Optional[str]:
        entry = self._index.get(identifier)
        return entry.category if entry else None

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._index

    def __len__(self) -> int:
        return len(self._index)

    def summary(self) -> Dict[str, Any]:
        """Counts used for audit output ("N entries disabled")."""
        return {
            "checksum": self.checksum,
            "source": self.source,
            "categories": {c.name: len(c.entries) for c in self.categories},
            "total_entries": len(self),
            "enabled_entries": len(self.enabled_entries()),
            "disabled_entries": len(self.disabled_entries()),
            "conditional_entries": len(self.conditional_entries()),
            "detectors": self.detectors(),
            "metadata": dict(self.metadata),
        }
