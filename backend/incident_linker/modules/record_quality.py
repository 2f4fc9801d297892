"""Record quality ranking — decides which of two matched records survives.

primary_score = 0.7 · completeness + 0.3 · source_priority

Ties go to the first argument so repeated runs over the same ordered window
make the same decision.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from incident_linker.modules.dedup_config import load_dedup_config
from incident_linker.utils.geo import is_valid_coordinate

logger = logging.getLogger(__name__)

COMPLETENESS_WEIGHT = 0.7
PRIORITY_WEIGHT = 0.3
DEFAULT_SOURCE_PRIORITY = 1
LONG_DESCRIPTION_CHARS = 100

# (attribute, points): presence of a non-blank value earns the points
_SIMPLE_FIELD_POINTS: tuple[tuple[str, int], ...] = (
    ("title", 1),
    ("occurred_at", 1),
    ("region", 1),
    ("location_name", 1),
    ("vessel_name", 1),
    ("vessel_type", 1),
    ("vessel_flag", 1),
    ("vessel_imo", 2),
    ("vessel_status", 1),
    ("incident_type_name", 1),
    ("reference_id", 1),
    ("updates", 2),
    ("raw_payload", 1),
)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (dict, list)):
        return bool(value)
    return True


def completeness(record: Any) -> int:
    """Additive information-content score over weighted field presence."""
    score = 0
    description = getattr(record, "description", None)
    if _present(description):
        score += 3 if len(description.strip()) > LONG_DESCRIPTION_CHARS else 1
    if is_valid_coordinate(getattr(record, "latitude", None), getattr(record, "longitude", None)):
        score += 2
    for attr, points in _SIMPLE_FIELD_POINTS:
        if _present(getattr(record, attr, None)):
            score += points
    return score


def source_priority(source_name: str | None) -> int:
    """Static reliability rank of a source feed (case-insensitive, unknown → 1)."""
    if not source_name:
        return DEFAULT_SOURCE_PRIORITY
    priorities = load_dedup_config()["source_priorities"]
    return priorities.get(source_name.strip().upper(), DEFAULT_SOURCE_PRIORITY)


def quality_score(record: Any) -> float:
    return COMPLETENESS_WEIGHT * completeness(record) + PRIORITY_WEIGHT * source_priority(
        getattr(record, "source", None)
    )


@dataclass(frozen=True)
class PrimaryDecision:
    primary: Any
    secondary: Any
    primary_score: float
    secondary_score: float


def determine_primary(record1: Any, record2: Any) -> PrimaryDecision:
    """Pick the survivor of a matched pair; ties resolve to ``record1``."""
    score1 = quality_score(record1)
    score2 = quality_score(record2)
    logger.debug(
        "Primary determination: record %s score=%.2f vs record %s score=%.2f",
        getattr(record1, "record_id", None), score1,
        getattr(record2, "record_id", None), score2,
    )
    if score1 >= score2:
        return PrimaryDecision(record1, record2, score1, score2)
    return PrimaryDecision(record2, record1, score2, score1)
