"""Field-level merge plan for absorbing a secondary record into a primary.

Only the primary is updated here; the secondary's linkage state is written by
the orchestrator. Rules:
  - description: adopt if primary has none, else append under an
    "Additional information from <source>" section unless already contained
  - updates: always appended under "Update from <source>"
  - scalar enrichment fields: filled only where the primary is blank
  - coordinates: adopted as a pair only if primary's are invalid and secondary's valid
  - canonical incident: adopted if primary has none; a different existing
    link is reported as a conflict and kept
  - merge metadata: timestamp, folded-in sources and record ids, append-only note

Planning is idempotent: a secondary already listed in the primary's
``merged_record_ids`` yields an empty plan.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from incident_linker.models.base import MergeStatusEnum
from incident_linker.utils.geo import is_valid_coordinate

logger = logging.getLogger(__name__)

ENRICHMENT_FIELDS: tuple[str, ...] = (
    "title",
    "location_name",
    "region",
    "incident_type_name",
    "vessel_name",
    "vessel_type",
    "vessel_flag",
    "vessel_imo",
    "vessel_status",
)


@dataclass
class FieldUpdateSet:
    """Partial field assignment for the primary record."""
    updates: dict[str, Any] = field(default_factory=dict)
    conflicts: list[str] = field(default_factory=list)
    already_merged: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.updates

    @property
    def field_names(self) -> list[str]:
        return sorted(self.updates)


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _append_section(existing: str | None, heading: str, body: str) -> str:
    if _blank(existing):
        return f"{heading}:\n{body}"
    return f"{existing}\n\n{heading}:\n{body}"


def plan_merge(primary: Any, secondary: Any, now: datetime | None = None) -> FieldUpdateSet:
    """Compute the updates that fold ``secondary``'s useful data into ``primary``."""
    if now is None:
        now = datetime.utcnow()

    already = list(primary.merged_record_ids or [])
    if secondary.record_id is not None and secondary.record_id in already:
        logger.info(
            "Record %s already folded into %s — nothing to merge",
            secondary.record_id, primary.record_id,
        )
        return FieldUpdateSet(already_merged=True)

    plan = FieldUpdateSet()
    updates = plan.updates
    source = secondary.source or "unknown source"

    # Description
    sec_desc = secondary.description
    if not _blank(sec_desc) and sec_desc.strip() != (primary.description or "").strip():
        if _blank(primary.description):
            updates["description"] = sec_desc
        elif sec_desc.strip() not in primary.description:
            updates["description"] = (
                f"{primary.description}\n\nAdditional information from {source}:\n{sec_desc.strip()}"
            )

    # Free-text updates are cumulative
    if not _blank(secondary.updates):
        updates["updates"] = _append_section(
            primary.updates, f"Update from {source}", secondary.updates.strip()
        )

    for attr in ENRICHMENT_FIELDS:
        sec_value = getattr(secondary, attr, None)
        if _blank(getattr(primary, attr, None)) and not _blank(sec_value):
            updates[attr] = sec_value

    if not is_valid_coordinate(primary.latitude, primary.longitude) and is_valid_coordinate(
        secondary.latitude, secondary.longitude
    ):
        updates["latitude"] = secondary.latitude
        updates["longitude"] = secondary.longitude

    # Canonical incident linkage
    if secondary.canonical_incident_id is not None:
        if primary.canonical_incident_id is None:
            updates["canonical_incident_id"] = secondary.canonical_incident_id
        elif primary.canonical_incident_id != secondary.canonical_incident_id:
            conflict = (
                f"record {primary.record_id} links incident {primary.canonical_incident_id} "
                f"but merged record {secondary.record_id} links incident "
                f"{secondary.canonical_incident_id}"
            )
            plan.conflicts.append(conflict)
            logger.warning("Canonical incident conflict, keeping primary link: %s", conflict)

    # Merge metadata
    sources = set(primary.merged_sources or [])
    sources.update(s for s in (primary.source, secondary.source) if s)
    updates["merge_status"] = MergeStatusEnum.MERGED
    updates["merged_at"] = now
    updates["merged_sources"] = sorted(sources)
    updates["merged_record_ids"] = already + ([secondary.record_id] if secondary.record_id is not None else [])
    note = (
        f"Merged with complementary data from {source} "
        f"(record {secondary.record_id}) at {now.isoformat(timespec='seconds')}"
    )
    if plan.conflicts:
        note += f"; canonical incident conflict kept primary link {primary.canonical_incident_id}"
    updates["processing_notes"] = (
        note if _blank(primary.processing_notes) else f"{primary.processing_notes}\n{note}"
    )
    return plan


def apply_field_updates(record: Any, plan: FieldUpdateSet) -> None:
    """Apply a plan to an in-memory record (no persistence)."""
    for name, value in plan.updates.items():
        setattr(record, name, value)
