"""Ingest-time matching of one new record against existing canonical incidents.

The outcome is MATCHED with the winning incident, or NO_MATCH with a reason.

1. Records without a date or valid coordinates go straight to NO_MATCH.
2. Candidates come from the store: ±window hours around the event and a
   latitude-scaled bounding box around its position.
3. Each candidate gets a composite score plus the ordered override rules.
4. Qualifying candidates (threshold met or forced match, not vetoed) are
   ranked by total score; ties go to the lowest incident id.

"No match" is a normal result. Only store failures raise.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from rapidfuzz import fuzz

from incident_linker.config import settings
from incident_linker.modules.incident_store import IncidentStore
from incident_linker.modules.override_rules import (
    NO_OVERRIDE,
    MatchSignals,
    OverrideResult,
    evaluate_overrides,
    keyword_signature,
)
from incident_linker.modules.similarity_scorer import (
    REASON_INVALID_COORDINATES,
    REASON_MISSING_DATE,
    ScoringProfile,
    SimilarityScore,
    ingest_profile,
    score_pair,
)
from incident_linker.utils.geo import bounding_box, is_valid_coordinate, to_utc_naive
from incident_linker.utils.vessel_identity import normalize_vessel_name

logger = logging.getLogger(__name__)

# Shorter normalized names match inside unrelated titles too easily
MIN_TITLE_MENTION_NAME_LENGTH = 4


class MatchState(str, enum.Enum):
    MATCHED = "matched"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class CandidateEvaluation:
    incident_id: int
    score: SimilarityScore
    override: OverrideResult
    qualifies: bool


@dataclass
class MatchResult:
    state: MatchState
    canonical_id: int | None = None
    score: SimilarityScore | None = None
    override: OverrideResult | None = None
    reason: str | None = None
    evaluations: list[CandidateEvaluation] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.state is MatchState.MATCHED

    def to_dict(self) -> dict[str, Any]:
        if self.matched:
            return {"matched": True, "canonicalId": self.canonical_id}
        return {"matched": False}


def title_vessel_mention(vessel_name: str | None, title: str | None) -> float:
    """How strongly ``vessel_name`` appears inside a free-text title, in [0, 1]."""
    name = normalize_vessel_name(vessel_name)
    text = normalize_vessel_name(title)
    if len(name) < MIN_TITLE_MENTION_NAME_LENGTH or not text:
        return 0.0
    return fuzz.partial_ratio(name, text) / 100.0


def evaluate_candidate(
    record: Any,
    candidate: Any,
    profile: ScoringProfile,
    threshold: float,
) -> CandidateEvaluation:
    score = score_pair(record, candidate, profile)
    if score.is_hard_fail:
        return CandidateEvaluation(candidate.incident_id, score, NO_OVERRIDE, False)

    # Candidates without a vessel name often carry it in the title
    mention = 0.0
    if not (candidate.vessel_name or "").strip():
        mention = title_vessel_mention(record.vessel_name, candidate.title)

    signals = MatchSignals(
        time=score.time,
        spatial=score.spatial,
        vessel=max(score.vessel, mention),
        vessel_name=max(score.vessel_name, mention),
        incident_type=score.incident_type,
        shared_keywords=(
            keyword_signature(record.title, record.description)
            & keyword_signature(candidate.title, candidate.description)
        ),
    )
    override = evaluate_overrides(signals)
    qualifies = not override.vetoes and (override.forces_match or score.total >= threshold)
    return CandidateEvaluation(candidate.incident_id, score, override, qualifies)


def find_match(
    store: IncidentStore,
    record: Any,
    profile: ScoringProfile | None = None,
    threshold: float | None = None,
) -> MatchResult:
    """Find the canonical incident that ``record`` reports, if any."""
    if profile is None:
        profile = ingest_profile()
    if threshold is None:
        threshold = settings.MATCH_THRESHOLD

    occurred = to_utc_naive(record.occurred_at)
    if occurred is None:
        logger.info("Record %s has no usable date — not matched", record.record_id)
        return MatchResult(MatchState.NO_MATCH, reason=REASON_MISSING_DATE)
    if not is_valid_coordinate(record.latitude, record.longitude):
        logger.info("Record %s has no valid coordinates — not matched", record.record_id)
        return MatchResult(MatchState.NO_MATCH, reason=REASON_INVALID_COORDINATES)

    window = (
        occurred - timedelta(hours=profile.max_hours),
        occurred + timedelta(hours=profile.max_hours),
    )
    bbox = bounding_box(record.latitude, record.longitude, profile.max_km)
    candidates = store.query_candidates(window, bbox)
    logger.debug("Record %s: %d candidate incidents", record.record_id, len(candidates))

    evaluations = [evaluate_candidate(record, c, profile, threshold) for c in candidates]
    for ev in evaluations:
        if ev.override.vetoes:
            logger.info(
                "Record %s vs incident %d vetoed by %s (total=%.3f)",
                record.record_id, ev.incident_id, ev.override.rule, ev.score.total,
            )

    qualifying = [ev for ev in evaluations if ev.qualifies]
    if not qualifying:
        return MatchResult(MatchState.NO_MATCH, reason="no_qualifying_candidate", evaluations=evaluations)

    best = min(qualifying, key=lambda ev: (-ev.score.total, ev.incident_id))
    logger.info(
        "Record %s matched incident %d (total=%.3f, override=%s)",
        record.record_id, best.incident_id, best.score.total, best.override.rule,
    )
    return MatchResult(
        MatchState.MATCHED,
        canonical_id=best.incident_id,
        score=best.score,
        override=best.override,
        evaluations=evaluations,
    )
