"""Ingest-time linking of new raw records to canonical incidents.

For every record still in ``new`` processing status:
  1. find_match() against existing canonical incidents
  2. matched → link the record to that incident
  3. otherwise → resolve (or create) the vessel reference, create a new
     canonical incident from the record and link to it

Vessel references are resolved through a ReferenceCache so a batch that
mentions the same ship many times only hits the store once per identity.
A failure on one record marks it ``error`` and the batch continues.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from incident_linker.config import settings
from incident_linker.models.base import ProcessingStatusEnum
from incident_linker.modules.candidate_finder import find_match
from incident_linker.modules.incident_store import IncidentStore, StoreError, WriteOutcome
from incident_linker.modules.reference_cache import ReferenceCache, vessel_key
from incident_linker.utils.vessel_identity import normalize_imo, normalize_vessel_name

logger = logging.getLogger(__name__)


def resolve_vessel(store: IncidentStore, record: Any, cache: ReferenceCache) -> int | None:
    """VesselRef id for the record's reported vessel, creating one if unknown."""
    key = vessel_key(record.vessel_imo, record.vessel_name)
    if key is None:
        return None

    vessel_id = cache.get(key)
    if vessel_id is not None:
        return vessel_id

    vessel_id = store.find_vessel(key)
    if vessel_id is None:
        vessel_id = store.create_vessel(
            name=record.vessel_name,
            normalized_name=normalize_vessel_name(record.vessel_name),
            imo=normalize_imo(record.vessel_imo),
            flag=record.vessel_flag,
            vessel_type=record.vessel_type,
        )
        logger.info("Created vessel reference %d for %r", vessel_id, key)
    cache.put(key, vessel_id)
    return vessel_id


def _append_note(existing: str | None, note: str) -> str:
    stamp = datetime.utcnow().isoformat(timespec="seconds")
    line = f"[{stamp}] {note}"
    return f"{existing}\n{line}" if existing else line


def link_record(store: IncidentStore, record: Any, cache: ReferenceCache) -> tuple[int, bool]:
    """Link one record; returns (canonical incident id, created_new)."""
    result = find_match(store, record)
    if result.matched:
        return result.canonical_id, False

    vessel_id = resolve_vessel(store, record, cache)
    incident_id = store.create_incident(record, vessel_id)
    logger.info(
        "Record %d: new canonical incident %d (%s)",
        record.record_id, incident_id, result.reason or "no match",
    )
    return incident_id, True


def process_new_records(
    store: IncidentStore,
    limit: int | None = None,
    cache: ReferenceCache | None = None,
) -> dict[str, int]:
    """Link a batch of unprocessed records. Returns counters for the batch."""
    if limit is None:
        limit = settings.MAX_QUERY_LIMIT
    if cache is None:
        cache = ReferenceCache()

    stats = {"processed": 0, "linked_existing": 0, "incidents_created": 0, "errors": 0}
    records = store.query_unprocessed(limit)
    logger.info("Linking %d unprocessed records", len(records))

    for record in records:
        record_id = record.record_id
        stats["processed"] += 1
        if store.set_processing_status(record_id, ProcessingStatusEnum.PROCESSING) is not WriteOutcome.SUCCESS:
            logger.warning("Record %d could not be claimed for processing — skipped", record_id)
            stats["errors"] += 1
            continue

        try:
            incident_id, created = link_record(store, record, cache)
        except StoreError as exc:
            logger.error("Linking record %d failed: %s", record_id, exc)
            stats["errors"] += 1
            store.set_processing_status(
                record_id, ProcessingStatusEnum.ERROR,
                processing_notes=_append_note(record.processing_notes, f"Linking failed: {exc}"),
            )
            continue

        if store.link_record_to_incident(record_id, incident_id) is not WriteOutcome.SUCCESS:
            logger.warning("Record %d: could not store link to incident %d", record_id, incident_id)
            stats["errors"] += 1
            continue
        stats["incidents_created" if created else "linked_existing"] += 1

    logger.info(
        "Linking complete: %s (vessel cache %d hits / %d misses)",
        stats, cache.hits, cache.misses,
    )
    return stats
