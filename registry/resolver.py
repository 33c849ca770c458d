# registry/resolver.py
"""
Consistency Resolver.

Computes the ResolvedSet: the ordered list of identifiers a consumer must
load for one manifest and one set of detection facts.

Algorithm:
1. Walk categories in declared order
2. Walk entries in declared order
3. Keep an entry iff it is not disabled and its condition is satisfied

The output is a filtered, never reordered, subsequence of the manifest's
flattened entry list. Order is load priority; two consumers disagreeing on
order are inconsistent even with identical membership.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .conditions import ConditionalRuleEngine, DetectionFacts, fingerprint_facts, get_engine
from .manifests.model import Entry, Manifest

logger = logging.getLogger(__name__)

RESOLVED_SET_SCHEMA = "guide_registry.resolved_set.v1"


@dataclass(frozen=True)
class ResolvedSet:
    """Immutable, ordered result of one resolution."""
    identifiers: Tuple[str, ...]
    manifest_checksum: str
    facts_fingerprint: str

    def __iter__(self) -> Iterator[str]:
        return iter(self.identifiers)

    def __len__(self) -> int:
        return len(self.identifiers)

    def __getitem__(self, index):
        return self.identifiers[index]

    def __contains__(self, identifier: object) -> bool:
        return identifier in self.identifiers

    def to_list(self) -> List[str]:
        return list(self.identifiers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": RESOLVED_SET_SCHEMA,
            "manifest_checksum": self.manifest_checksum,
            "facts_fingerprint": self.facts_fingerprint,
            "identifiers": list(self.identifiers),
        }

    def to_json(self) -> bytes:
        """Canonical bytes: identical for identical resolutions in any consumer."""
        return json.dumps(
            self.to_dict(),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=True,
        ).encode("ascii")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResolvedSet":
        schema = data.get("schema", RESOLVED_SET_SCHEMA)
        if schema != RESOLVED_SET_SCHEMA:
            raise ValueError(f"Unsupported resolved set schema: {schema}")
        identifiers = data.get("identifiers")
        if not isinstance(identifiers, list) or not all(isinstance(i, str) for i in identifiers):
            raise ValueError("'identifiers' must be a list of strings")
        return cls(
            identifiers=tuple(identifiers),
            manifest_checksum=str(data.get("manifest_checksum", "")),
            facts_fingerprint=str(data.get("facts_fingerprint", "")),
        )


class Decision(Enum):
    """Why an entry was or was not resolved."""
    INCLUDED = "included"
    DISABLED = "disabled"
    CONDITION_UNMET = "condition_unmet"


@dataclass(frozen=True)
class EntryDecision:
    entry: Entry
    decision: Decision

    @property
    def included(self) -> bool:
        return self.decision == Decision.INCLUDED

    def to_dict(self) -> Dict[str, Any]:
        data = self.entry.to_dict()
        data["decision"] = self.decision.value
        return data


class ConsistencyResolver:
    """Resolver bound to a rule engine (the shared one by default)."""

    def __init__(self, engine: Optional[ConditionalRuleEngine] = None):
        self.engine = engine or get_engine()

    def decide(self, entry: Entry, facts: Optional[DetectionFacts]) -> Decision:
        if entry.disabled:
            return Decision.DISABLED
        if not self.engine.evaluate(entry, facts):
            return Decision.CONDITION_UNMET
        return Decision.INCLUDED

    def explain(self, manifest: Manifest, facts: Optional[DetectionFacts]) -> List[EntryDecision]:
        """Per-entry decisions in manifest order, for audit output."""
        return [EntryDecision(entry, self.decide(entry, facts)) for entry in manifest.entries()]

    def resolve(self, manifest: Manifest, facts: Optional[DetectionFacts]) -> ResolvedSet:
        """Pure resolution; same inputs always give the same ResolvedSet."""
        identifiers = []
        for category in manifest.categories:
            for entry in category.entries:
                if self.decide(entry, facts) == Decision.INCLUDED:
                    identifiers.append(entry.identifier)

        resolved = ResolvedSet(
            identifiers=tuple(identifiers),
            manifest_checksum=manifest.checksum,
            facts_fingerprint=fingerprint_facts(facts),
        )
        logger.debug(
            f"Resolved {len(resolved)}/{len(manifest)} entries for manifest {manifest.checksum[:12]}"
        )
        return resolved


_default_resolver = ConsistencyResolver()


def resolve(manifest: Manifest, facts: Optional[DetectionFacts] = None) -> ResolvedSet:
    """Resolve with the shared engine."""
    return _default_resolver.resolve(manifest, facts)


def explain(manifest: Manifest, facts: Optional[DetectionFacts] = None) -> List[EntryDecision]:
    return _default_resolver.explain(manifest, facts)
