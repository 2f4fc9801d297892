"""Hand-tuned override rules for ingest-time incident matching.

Rules are evaluated in list order and the first rule that fires decides the
outcome. Safeguards come first, so a forced non-match vetoes every
force-match rule below it as well as the numeric threshold.

Thresholds reproduce observed analyst judgement; change them only together
with a review of real match decisions.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Callable

VESSEL_MATCH_THRESHOLD = 0.8
SAME_CATEGORY_THRESHOLD = 0.8

# Keyword signatures: both reports naming the same kind of stolen property or
# event detail is strong corroboration once time and place already agree.
KEYWORD_SIGNATURES: dict[str, tuple[str, ...]] = {
    "engine_spares": ("ENGINE SPARE", "SPARE PART", "ENGINE PART"),
    "scrap_metal": ("SCRAP METAL", "SCRAP"),
    "ship_stores": ("SHIP'S STORES", "SHIPS STORES", "SHIP STORES", "STORES"),
    "mooring_gear": ("MOORING ROPE", "MOORING LINE", "ROPE", "HAWSER"),
    "paint": ("PAINT",),
    "fuel_cargo": ("BUNKER", "GASOIL", "CARGO OIL", "FUEL"),
    "safety_equipment": ("FIRE HOSE", "LIFE JACKET", "LIFEJACKET", "LIFE RAFT", "LIFEBUOY"),
    "personal_effects": ("CASH", "MOBILE PHONE", "PERSONAL EFFECTS", "PERSONAL BELONGINGS"),
    "crew_harm": ("HOSTAGE", "KIDNAP", "KIDNAPPED", "KIDNAPPING", "INJURED", "KILLED"),
}

_KEYWORD_PATTERNS: dict[str, re.Pattern] = {
    category: re.compile(
        r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")S?\b", re.IGNORECASE
    )
    for category, keywords in KEYWORD_SIGNATURES.items()
}


def keyword_signature(*texts: str | None) -> frozenset[str]:
    """Keyword categories mentioned anywhere in the given texts."""
    joined = " ".join(t for t in texts if t)
    if not joined:
        return frozenset()
    return frozenset(
        category for category, pattern in _KEYWORD_PATTERNS.items() if pattern.search(joined)
    )


class OverrideKind(str, enum.Enum):
    FORCED_MATCH = "forced_match"
    FORCED_NON_MATCH = "forced_non_match"
    NO_OVERRIDE = "no_override"


@dataclass(frozen=True)
class OverrideResult:
    kind: OverrideKind
    rule: str | None = None
    reason: str = ""

    @property
    def forces_match(self) -> bool:
        return self.kind is OverrideKind.FORCED_MATCH

    @property
    def vetoes(self) -> bool:
        return self.kind is OverrideKind.FORCED_NON_MATCH


NO_OVERRIDE = OverrideResult(OverrideKind.NO_OVERRIDE)


@dataclass(frozen=True)
class MatchSignals:
    """Inputs the rules look at, derived from a composite score."""
    time: float
    spatial: float
    vessel: float
    vessel_name: float
    incident_type: float
    shared_keywords: frozenset[str] = frozenset()

    @property
    def vessel_match(self) -> bool:
        return self.vessel_name > VESSEL_MATCH_THRESHOLD

    @property
    def type_match(self) -> bool:
        return self.incident_type >= SAME_CATEGORY_THRESHOLD


@dataclass(frozen=True)
class OverrideRule:
    name: str
    kind: OverrideKind
    predicate: Callable[[MatchSignals], bool]
    description: str


OVERRIDE_RULES: tuple[OverrideRule, ...] = (
    OverrideRule(
        "same_vessel_distinct_events",
        OverrideKind.FORCED_NON_MATCH,
        lambda s: s.vessel_match and s.time < 0.2 and s.spatial < 0.3,
        "same vessel name but far apart in time and place — separate incidents",
    ),
    OverrideRule(
        "near_identical_time_space",
        OverrideKind.FORCED_MATCH,
        lambda s: s.time > 0.95 and s.spatial > 0.95,
        "near-identical time and position",
    ),
    OverrideRule(
        "close_time_space_with_vessel",
        OverrideKind.FORCED_MATCH,
        lambda s: s.time > 0.75 and s.spatial > 0.9 and s.vessel >= 0.7,
        "close in time and space with consistent vessel identity",
    ),
    OverrideRule(
        "strong_vessel_match",
        OverrideKind.FORCED_MATCH,
        lambda s: s.vessel_match and s.time > 0.5 and s.spatial > 0.7,
        "strong vessel-name match with reasonable time and space",
    ),
    OverrideRule(
        "incident_type_match",
        OverrideKind.FORCED_MATCH,
        lambda s: s.type_match and s.time > 0.6 and s.spatial > 0.7,
        "same incident-type category with good time and space",
    ),
    OverrideRule(
        "shared_keyword_signature",
        OverrideKind.FORCED_MATCH,
        lambda s: bool(s.shared_keywords) and s.time > 0.5 and s.spatial > 0.6,
        "descriptions share an event keyword signature",
    ),
)


def evaluate_overrides(
    signals: MatchSignals,
    rules: tuple[OverrideRule, ...] = OVERRIDE_RULES,
) -> OverrideResult:
    """Return the outcome of the first rule that fires, else NO_OVERRIDE."""
    for rule in rules:
        if rule.predicate(signals):
            reason = rule.description
            if rule.name == "shared_keyword_signature":
                reason = f"{reason}: {', '.join(sorted(signals.shared_keywords))}"
            return OverrideResult(rule.kind, rule.name, reason)
    return NO_OVERRIDE
