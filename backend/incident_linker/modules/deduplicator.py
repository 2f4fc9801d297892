"""Batch cross-source deduplication pass.

Pulls a bounded window of recent records (newest first, already-absorbed
records excluded), scores every unordered pair from *different* sources and
merges pairs that meet the confidence threshold:

  1. Record Quality Ranker picks primary / secondary
  2. Merge Planner computes the primary's field updates
  3. Secondary's merge-state is written conditionally (prior status must be none)
  4. Primary's field updates are written, guarded by its row version
     and re-planned if another pass changed it in between

Each record takes part in at most one merge per pass, so a single pass never
builds transitive chains. Per-pair failures are counted, never fatal; only a
failure to load the window aborts the run.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from typing import Any

from incident_linker.config import settings
from incident_linker.models.base import (
    DedupRunStatusEnum,
    MergeOperationStatusEnum,
    MergeStatusEnum,
)
from incident_linker.modules.incident_store import (
    IncidentStore,
    StoreUnavailableError,
    WriteOutcome,
)
from incident_linker.modules.merge_planner import FieldUpdateSet, plan_merge
from incident_linker.modules.record_quality import determine_primary
from incident_linker.modules.similarity_scorer import SimilarityScore, batch_profile, score_pair

logger = logging.getLogger(__name__)

MAX_PRIMARY_UPDATE_ATTEMPTS = 3


class DedupRunError(Exception):
    """The pass could not run (the record window could not be loaded)."""


@dataclass
class DedupConfig:
    lookback_days: int = field(default_factory=lambda: settings.DEDUP_LOOKBACK_DAYS)
    max_records: int = field(default_factory=lambda: settings.DEDUP_MAX_RECORDS)
    confidence_threshold: float = field(
        default_factory=lambda: settings.DEDUP_CONFIDENCE_THRESHOLD
    )
    high_confidence_threshold: float = field(
        default_factory=lambda: settings.DEDUP_HIGH_CONFIDENCE_THRESHOLD
    )
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DedupSummary:
    records_analyzed: int = 0
    potential_matches_checked: int = 0
    high_confidence_matches: int = 0
    medium_confidence_matches: int = 0
    merges_attempted: int = 0
    merges_succeeded: int = 0
    merge_errors: int = 0
    integrity_violations: int = 0
    dry_run: bool = False
    run_id: int | None = None
    matches: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "recordsAnalyzed": self.records_analyzed,
            "potentialMatchesChecked": self.potential_matches_checked,
            "highConfidenceMatches": self.high_confidence_matches,
            "mediumConfidenceMatches": self.medium_confidence_matches,
            "mergesAttempted": self.merges_attempted,
            "mergesSucceeded": self.merges_succeeded,
            "mergeErrors": self.merge_errors,
            "integrityViolations": self.integrity_violations,
            "dryRun": self.dry_run,
            "matches": self.matches,
        }


def _same_source(record1: Any, record2: Any) -> bool:
    return (record1.source or "").strip().upper() == (record2.source or "").strip().upper()


def run_deduplication_pass(
    store: IncidentStore,
    config: DedupConfig | None = None,
    now: datetime | None = None,
) -> DedupSummary:
    """Run one bounded deduplication pass and return its summary."""
    if config is None:
        config = DedupConfig()
    if now is None:
        now = datetime.utcnow()
    since = now - timedelta(days=config.lookback_days)

    run_id = None if config.dry_run else store.start_run(config.to_dict())
    try:
        records = store.query_recent(since, config.max_records)
    except StoreUnavailableError as exc:
        logger.error("Deduplication aborted: could not load record window: %s", exc)
        if not config.dry_run:
            store.finish_run(run_id, DedupRunStatusEnum.FAILED, error=str(exc))
        raise DedupRunError(f"Could not load records since {since.isoformat()}") from exc

    summary = DedupSummary(
        records_analyzed=len(records), dry_run=config.dry_run, run_id=run_id,
    )
    logger.info(
        "Deduplication pass: %d records since %s (threshold %.2f%s)",
        len(records), since.date().isoformat(), config.confidence_threshold,
        ", dry run" if config.dry_run else "",
    )

    profile = batch_profile()
    ids = [r.record_id for r in records]
    consumed: set[int] = set()

    for i, record1 in enumerate(records):
        if ids[i] in consumed:
            continue
        for j in range(i + 1, len(records)):
            if ids[j] in consumed:
                continue
            record2 = records[j]
            if _same_source(record1, record2):
                continue

            score = score_pair(record1, record2, profile)
            summary.potential_matches_checked += 1
            if score.total < config.confidence_threshold:
                continue

            if score.total >= config.high_confidence_threshold:
                summary.high_confidence_matches += 1
            else:
                summary.medium_confidence_matches += 1

            consumed.update((ids[i], ids[j]))
            _merge_pair(store, record1, record2, score, config, summary, run_id, now)
            break

    try:
        violations = store.query_chain_violations()
    except StoreUnavailableError as exc:
        logger.error("Merge-chain integrity check skipped: %s", exc)
        violations = []
    for v in violations:
        logger.warning(
            "Data integrity: record %s merged_into %s: %s (manual review required)",
            v["record_id"], v["merged_into_id"], v["problem"],
        )
    summary.integrity_violations = len(violations)

    if not config.dry_run:
        store.finish_run(run_id, DedupRunStatusEnum.COMPLETED, summary=summary.to_dict())
    logger.info("Deduplication complete: %s", {
        k: v for k, v in summary.to_dict().items() if k != "matches"
    })
    return summary


def _is_established(store: IncidentStore, record: Any) -> bool:
    """A record that already absorbed others, even if its own field update never landed."""
    if record.merge_status == MergeStatusEnum.MERGED:
        return True
    return store.has_absorbed_records(record.record_id)


def _merge_pair(
    store: IncidentStore,
    record1: Any,
    record2: Any,
    score: SimilarityScore,
    config: DedupConfig,
    summary: DedupSummary,
    run_id: int | None,
    now: datetime,
) -> None:
    decision = determine_primary(record1, record2)
    primary, secondary = decision.primary, decision.secondary

    # A record that already absorbed others must stay a primary
    try:
        if _is_established(store, secondary):
            if _is_established(store, primary):
                logger.info(
                    "Records %d and %d are both established primaries: not merging",
                    primary.record_id, secondary.record_id,
                )
                summary.matches.append(_match_entry(primary, secondary, score, [], "skipped"))
                return
            primary, secondary = secondary, primary
    except StoreUnavailableError as exc:
        logger.error(
            "Could not check merge roles of records %d and %d: %s",
            primary.record_id, secondary.record_id, exc,
        )
        summary.merge_errors += 1
        summary.matches.append(_match_entry(primary, secondary, score, [], WriteOutcome.ERROR.value))
        return

    plan = plan_merge(primary, secondary, now=now)
    # Snapshot the primary now: the secondary's commit expires loaded state
    primary_version = getattr(primary, "row_version", None)
    primary_id, secondary_id = primary.record_id, secondary.record_id
    primary_source = primary.source
    fields = plan.field_names

    if config.dry_run:
        summary.matches.append(_match_entry(primary, secondary, score, fields, "planned"))
        return

    summary.merges_attempted += 1
    logger.info(
        "Merging record %d (%s) into %d (%s), score %.3f",
        secondary_id, secondary.source, primary_id, primary_source, score.total,
    )
    entry = _match_entry(primary, secondary, score, fields, "merged")

    note = f"Merged into record {primary_id} ({primary_source}) at {now.isoformat(timespec='seconds')}"
    outcome = store.update_merge_state(
        secondary_id,
        MergeStatusEnum.MERGED_INTO,
        primary_id,
        expected_prior_status=MergeStatusEnum.NONE,
        note=note,
    )
    if outcome is not WriteOutcome.SUCCESS:
        summary.merge_errors += 1
        entry["action"] = outcome.value
        summary.matches.append(entry)
        store.record_merge_operation(
            run_id, primary_id, secondary_id, score.to_dict(), [],
            MergeOperationStatusEnum.CONFLICT,
        )
        return

    field_outcome = WriteOutcome.SUCCESS
    if not plan.is_empty:
        field_outcome, fields = _write_primary_fields(
            store, primary_id, secondary, plan, primary_version, now,
        )
        entry["fields"] = fields
    if field_outcome is not WriteOutcome.SUCCESS:
        summary.merge_errors += 1
        entry["action"] = "partial"
        logger.error(
            "Record %d absorbed into %d but primary field update returned %s",
            secondary_id, primary_id, field_outcome.value,
        )
        store.record_merge_operation(
            run_id, primary_id, secondary_id, score.to_dict(), [],
            MergeOperationStatusEnum.PARTIAL,
        )
    else:
        summary.merges_succeeded += 1
        store.record_merge_operation(
            run_id, primary_id, secondary_id, score.to_dict(), fields,
            MergeOperationStatusEnum.COMPLETED,
        )
    summary.matches.append(entry)


def _write_primary_fields(
    store: IncidentStore,
    primary_id: int,
    secondary: Any,
    plan: FieldUpdateSet,
    version: int | None,
    now: datetime,
) -> tuple[WriteOutcome, list[str]]:
    """Optimistic write of the primary's updates, re-planned if another pass got there first."""
    outcome = store.update_fields(primary_id, plan.updates, expected_version=version)
    attempts = 1
    while outcome is WriteOutcome.CONFLICT and attempts < MAX_PRIMARY_UPDATE_ATTEMPTS:
        try:
            current = store.get_record(primary_id)
        except StoreUnavailableError as exc:
            logger.error("Could not re-read primary %d: %s", primary_id, exc)
            break
        if current is None or current.merge_status == MergeStatusEnum.MERGED_INTO:
            break
        logger.info("Primary %d changed concurrently; re-planning merge", primary_id)
        plan = plan_merge(current, secondary, now=now)
        if plan.is_empty:
            return WriteOutcome.SUCCESS, []
        outcome = store.update_fields(
            primary_id, plan.updates, expected_version=current.row_version,
        )
        attempts += 1
    return outcome, plan.field_names


def _match_entry(
    primary: Any, secondary: Any, score: SimilarityScore, fields: list[str], action: str,
) -> dict[str, Any]:
    return {
        "primaryId": primary.record_id,
        "primarySource": primary.source,
        "secondaryId": secondary.record_id,
        "secondarySource": secondary.source,
        "score": round(score.total, 4),
        "fields": fields,
        "action": action,
    }
