"""Tunable reference tables for deduplication, loaded from dedup.yaml.

The file is optional: any section it omits falls back to the built-in table
below. Values are analyst-tuned constants, not derived quantities.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from incident_linker.config import settings

logger = logging.getLogger(__name__)

# Higher = more rigorous verification workflow at the reporting centre
DEFAULT_SOURCE_PRIORITIES: dict[str, int] = {
    "RECAAP": 5,
    "UKMTO": 4,
    "MDAT": 3,
    "ICC": 3,
    "CWD": 2,
}

DEFAULT_INCIDENT_TYPE_GROUPS: list[list[str]] = [
    ["Robbery", "Robbery/Theft", "Theft"],
    ["Boarding", "Attempted Boarding", "Boarded"],
    ["Suspicious Approach", "Approach", "Suspicious Activity", "Suspicious Vessel"],
    ["Piracy", "Hijack", "Hijacking", "Kidnapping"],
    [
        "Attack", "Armed Attack", "Missile Attack", "Drone Attack",
        "UAV Attack", "USV Attack", "Explosion",
    ],
    ["Detention", "Seizure", "Arrest"],
    ["Threat", "Missile Threat", "Piracy Threat", "Warning"],
]

_EXPECTED_SECTIONS = ["source_priorities", "incident_type_groups"]

_DEDUP_CONFIG: dict[str, Any] | None = None


def load_dedup_config() -> dict[str, Any]:
    global _DEDUP_CONFIG
    if _DEDUP_CONFIG is None:
        config_path = Path(settings.DEDUP_CONFIG)
        raw: dict[str, Any] = {}
        if not config_path.exists():
            logger.warning("dedup.yaml not found at %s — using built-in tables", config_path)
        else:
            with open(config_path) as f:
                raw = yaml.safe_load(f) or {}
        missing = [s for s in _EXPECTED_SECTIONS if s not in raw]
        if missing and raw:
            logger.warning("dedup.yaml missing sections: %s", ", ".join(missing))
        _DEDUP_CONFIG = {
            "source_priorities": _parse_priorities(
                raw.get("source_priorities", DEFAULT_SOURCE_PRIORITIES)
            ),
            "incident_type_groups": _parse_groups(
                raw.get("incident_type_groups", DEFAULT_INCIDENT_TYPE_GROUPS)
            ),
        }
    return _DEDUP_CONFIG


def reload_dedup_config() -> dict[str, Any]:
    """Force-reload dedup config from disk (e.g. after YAML edits)."""
    global _DEDUP_CONFIG
    _DEDUP_CONFIG = None
    return load_dedup_config()


def _parse_priorities(section: Any) -> dict[str, int]:
    if not isinstance(section, dict):
        logger.warning("dedup.yaml source_priorities is not a mapping — using built-in table")
        section = DEFAULT_SOURCE_PRIORITIES
    priorities: dict[str, int] = {}
    for name, value in section.items():
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            logger.warning("dedup.yaml source_priorities.%s=%r is not a non-negative int", name, value)
            continue
        priorities[str(name).strip().upper()] = value
    return priorities


def _parse_groups(section: Any) -> list[frozenset[str]]:
    if not isinstance(section, list):
        logger.warning("dedup.yaml incident_type_groups is not a list — using built-in table")
        section = DEFAULT_INCIDENT_TYPE_GROUPS
    groups: list[frozenset[str]] = []
    for group in section:
        if not isinstance(group, list) or len(group) < 2:
            logger.warning("dedup.yaml incident type group %r needs at least two names", group)
            continue
        groups.append(frozenset(str(name).strip().upper() for name in group))
    return groups
