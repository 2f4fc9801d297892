"""Composite similarity score between two incident reports.

Combines time, spatial, vessel-identity and incident-type similarity into a
single weighted confidence in [0, 1]:

    total = w_time·time + w_spatial·spatial + w_vessel·vessel + w_type·incident_type

Hard-fail preconditions short-circuit to ``total = 0`` with a machine-readable
``reason`` before any identity component is computed:
  missing_date            — either record lacks occurred_at
  invalid_coordinates     — either record fails is_valid_coordinate
  time_out_of_window      — time proximity is exactly 0
  distance_out_of_window  — spatial proximity is exactly 0

Vessel component: 1.0 on IMO match; 0.7 when *neither* record names a vessel
(no contradicting identity); otherwise vessel-name similarity.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Any

from incident_linker.config import settings
from incident_linker.modules.incident_types import incident_type_similarity
from incident_linker.utils.geo import (
    distance_km,
    is_valid_coordinate,
    spatial_proximity,
    time_delta_hours,
    time_proximity,
)
from incident_linker.utils.vessel_identity import imo_similarity, vessel_name_similarity

logger = logging.getLogger(__name__)

NO_VESSEL_IDENTITY_SCORE = 0.7

REASON_MISSING_DATE = "missing_date"
REASON_INVALID_COORDINATES = "invalid_coordinates"
REASON_TIME_OUT_OF_WINDOW = "time_out_of_window"
REASON_DISTANCE_OUT_OF_WINDOW = "distance_out_of_window"


@dataclass(frozen=True)
class ScoringProfile:
    """Weights and decay windows for one pipeline. Weights must sum to 1."""
    name: str
    time_weight: float
    spatial_weight: float
    vessel_weight: float
    type_weight: float
    max_hours: float
    max_km: float

    def __post_init__(self) -> None:
        weights = (self.time_weight, self.spatial_weight, self.vessel_weight, self.type_weight)
        if any(w < 0 for w in weights) or abs(sum(weights) - 1.0) > 1e-9:
            raise ValueError(f"Scoring profile {self.name!r} weights must be >= 0 and sum to 1")


def batch_profile() -> ScoringProfile:
    """Weights for the batch cross-source pass over raw records."""
    return ScoringProfile(
        name="batch",
        time_weight=0.4,
        spatial_weight=0.4,
        vessel_weight=0.15,
        type_weight=0.05,
        max_hours=settings.DEDUP_MAX_TIME_HOURS,
        max_km=settings.DEDUP_MAX_DISTANCE_KM,
    )


def ingest_profile() -> ScoringProfile:
    """Weights for ingest-time matching against canonical incidents."""
    return ScoringProfile(
        name="ingest",
        time_weight=0.4,
        spatial_weight=0.4,
        vessel_weight=0.1,
        type_weight=0.1,
        max_hours=settings.MATCH_WINDOW_HOURS,
        max_km=settings.MATCH_MAX_DISTANCE_KM,
    )


@dataclass(frozen=True)
class SimilarityScore:
    total: float
    time: float = 0.0
    spatial: float = 0.0
    vessel: float = 0.0
    incident_type: float = 0.0
    vessel_name: float = 0.0
    vessel_imo: float = 0.0
    distance_km: float | None = None
    time_delta_hours: float | None = None
    reason: str | None = None

    @property
    def is_hard_fail(self) -> bool:
        return self.reason is not None

    def to_dict(self) -> dict[str, Any]:
        return {k: (round(v, 4) if isinstance(v, float) else v) for k, v in asdict(self).items()}


def _fail(reason: str) -> SimilarityScore:
    return SimilarityScore(total=0.0, reason=reason)


def score_pair(record1: Any, record2: Any, profile: ScoringProfile | None = None) -> SimilarityScore:
    """Score two records (RawRecord or CanonicalIncident) as the same real-world event."""
    if profile is None:
        profile = batch_profile()

    if record1.occurred_at is None or record2.occurred_at is None:
        return _fail(REASON_MISSING_DATE)
    if not is_valid_coordinate(record1.latitude, record1.longitude) or not is_valid_coordinate(
        record2.latitude, record2.longitude
    ):
        return _fail(REASON_INVALID_COORDINATES)

    time_score = time_proximity(record1.occurred_at, record2.occurred_at, profile.max_hours)
    if time_score == 0:
        return _fail(REASON_TIME_OUT_OF_WINDOW)
    spatial_score = spatial_proximity(
        record1.latitude, record1.longitude,
        record2.latitude, record2.longitude,
        profile.max_km,
    )
    if spatial_score == 0:
        return _fail(REASON_DISTANCE_OUT_OF_WINDOW)

    name_score = vessel_name_similarity(record1.vessel_name, record2.vessel_name)
    imo_score = imo_similarity(record1.vessel_imo, record2.vessel_imo)
    if imo_score == 1:
        vessel_score = 1.0
    elif not _has_text(record1.vessel_name) and not _has_text(record2.vessel_name):
        vessel_score = NO_VESSEL_IDENTITY_SCORE
    else:
        vessel_score = name_score

    type_score = incident_type_similarity(record1.incident_type_name, record2.incident_type_name)

    total = (
        time_score * profile.time_weight
        + spatial_score * profile.spatial_weight
        + vessel_score * profile.vessel_weight
        + type_score * profile.type_weight
    )
    # Clamp float drift so the convex combination stays in [0, 1]
    total = min(1.0, max(0.0, total))

    score = SimilarityScore(
        total=total,
        time=time_score,
        spatial=spatial_score,
        vessel=vessel_score,
        incident_type=type_score,
        vessel_name=name_score,
        vessel_imo=imo_score,
        distance_km=distance_km(
            record1.latitude, record1.longitude, record2.latitude, record2.longitude
        ),
        time_delta_hours=time_delta_hours(record1.occurred_at, record2.occurred_at),
    )
    logger.debug(
        "Similarity %s vs %s (%s): %s",
        _record_label(record1), _record_label(record2), profile.name, score.to_dict(),
    )
    return score


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


def _record_label(record: Any) -> str:
    for attr in ("record_id", "incident_id"):
        value = getattr(record, attr, None)
        if value is not None:
            return f"{attr}={value}"
    return "<unsaved>"
