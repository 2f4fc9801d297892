"""Incident-type category comparison across reporting centres."""
from __future__ import annotations

from incident_linker.modules.dedup_config import load_dedup_config

SAME_GROUP_SIMILARITY = 0.8


def normalize_incident_type(name: str | None) -> str:
    if not name:
        return ""
    return " ".join(name.upper().split())


def token_overlap(type1: str, type2: str) -> float:
    """Shared whitespace tokens over the larger token count."""
    words1 = type1.split()
    words2 = type2.split()
    if not words1 or not words2:
        return 0.0
    other = set(words2)
    matches = sum(1 for word in words1 if word in other)
    return min(1.0, matches / max(len(words1), len(words2)))


def incident_type_similarity(
    type1: str | None,
    type2: str | None,
    groups: list[frozenset[str]] | None = None,
) -> float:
    """Exact match 1.0, same synonym group 0.8, else token overlap."""
    n1 = normalize_incident_type(type1)
    n2 = normalize_incident_type(type2)
    if not n1 or not n2:
        return 0.0
    if n1 == n2:
        return 1.0
    if groups is None:
        groups = load_dedup_config()["incident_type_groups"]
    for group in groups:
        if n1 in group and n2 in group:
            return SAME_GROUP_SIMILARITY
    return token_overlap(n1, n2)
