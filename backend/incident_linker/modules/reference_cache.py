"""Per-invocation cache of resolved vessel reference ids.

Keys are a tagged union so IMO and name lookups can never collide. The cache
is a speed optimisation only: clearing it and recomputing must give the same
outcomes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from incident_linker.utils.vessel_identity import (
    normalize_imo,
    normalize_vessel_name,
    validate_imo_checksum,
)


@dataclass(frozen=True)
class ByImo:
    imo: str


@dataclass(frozen=True)
class ByName:
    normalized_name: str


VesselKey = Union[ByImo, ByName]


def vessel_key(imo: object, name: str | None) -> VesselKey | None:
    """Preferred lookup key for a reported vessel.

    A checksum-valid IMO wins; otherwise the normalized name; None if the
    report carries no usable identity.
    """
    normalized = normalize_imo(imo)
    if normalized is not None and validate_imo_checksum(normalized):
        return ByImo(normalized)
    normalized_name = normalize_vessel_name(name)
    if normalized_name:
        return ByName(normalized_name)
    return None


class ReferenceCache:
    """Maps vessel keys to VesselRef ids for the lifetime of one run."""

    def __init__(self) -> None:
        self._entries: dict[VesselKey, int] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: VesselKey) -> int | None:
        vessel_id = self._entries.get(key)
        if vessel_id is None:
            self.misses += 1
        else:
            self.hits += 1
        return vessel_id

    def put(self, key: VesselKey, vessel_id: int) -> None:
        self._entries[key] = vessel_id

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
