# registry/conditions.py
"""
Conditional Rule Engine.

Entries may name a detector in their "condition". Detectors are plain named
booleans supplied by the caller as detection facts (produced by an external
scanner); the engine never performs detection itself.

Rules:
- No condition: always included
- Condition present: included only if facts[condition] is True
- Unknown detector (absent from facts): not satisfied, never an error

These are deterministic functions over immutable inputs.
"""

import hashlib
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from .manifests.model import Entry, Manifest

logger = logging.getLogger(__name__)

DetectionFacts = Mapping[str, Any]


# =============================================================================
# Detector catalogue
# =============================================================================

# Informational only: evaluation never requires a detector to be listed here.
KNOWN_DETECTORS: Dict[str, str] = {
    "fireTvPatternsPresent": "Fire TV / D-pad focus navigation code detected",
    "androidTvPatternsPresent": "Android TV leanback components detected",
    "tvOsPatternsPresent": "tvOS focus engine code detected",
    "reactNativePresent": "React Native components detected",
    "flutterPresent": "Flutter widgets detected",
    "webViewPresent": "Embedded web views detected",
    "mediaPlayerPresent": "Audio/video player controls detected",
    "formsPresent": "Form inputs and validation detected",
}


def get_detector(name: str) -> Optional[str]:
    """Get the description of a catalogued detector."""
    return KNOWN_DETECTORS.get(name)


def list_detectors() -> List[str]:
    """List catalogued detector names."""
    return sorted(KNOWN_DETECTORS)


# =============================================================================
# Facts
# =============================================================================

def normalize_facts(facts: Optional[DetectionFacts]) -> Dict[str, bool]:
    """
    Canonical form of detection facts: detector name -> strict bool.

    Only the value True satisfies a detector; any other value is recorded
    as False. Keys must be strings.
    """
    normalized: Dict[str, bool] = {}
    for name, value in (facts or {}).items():
        if not isinstance(name, str):
            raise TypeError(f"Detector names must be strings, got {type(name).__name__}")
        if not isinstance(value, bool):
            logger.warning(f"Detector '{name}' has non-boolean value {value!r}, treated as unmet")
        normalized[name] = value is True
    return normalized


def fingerprint_facts(facts: Optional[DetectionFacts]) -> str:
    """Order-independent SHA-256 fingerprint of detection facts."""
    canonical = json.dumps(
        normalize_facts(facts),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    )
    return hashlib.sha256(canonical.encode("ascii")).hexdigest()


# =============================================================================
# Engine
# =============================================================================

class ConditionalRuleEngine:
    """Decides whether an entry's condition is satisfied by detection facts."""

    def evaluate(self, entry: Entry, facts: Optional[DetectionFacts]) -> bool:
        """
        Evaluate an entry's condition.

        Fails closed: a condition naming a detector missing from facts is
        unmet. Never raises for unknown detectors.
        """
        if entry.condition is None:
            return True

        facts = facts or {}
        if entry.condition not in facts:
            logger.debug(
                f"Detector '{entry.condition}' absent from facts, excluding {entry.identifier}"
            )
            return False

        return facts[entry.condition] is True

    def unknown_detectors(self, manifest: Manifest, facts: Optional[DetectionFacts]) -> List[str]:
        """Condition names used by the manifest but absent from facts."""
        facts = facts or {}
        return [name for name in manifest.detectors() if name not in facts]


_default_engine = ConditionalRuleEngine()


def evaluate(entry: Entry, facts: Optional[DetectionFacts]) -> bool:
    """Evaluate with the shared engine."""
    return _default_engine.evaluate(entry, facts)


def get_engine() -> ConditionalRuleEngine:
    return _default_engine
