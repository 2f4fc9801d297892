"""Incident Store — persistence boundary for the deduplication core.

``IncidentStore`` is the abstract collaborator the matching and merge logic
talks to; ``SqlIncidentStore`` implements it on a SQLAlchemy session.

Reads that fail raise ``StoreUnavailableError``. Writes never raise for
infrastructure problems: they roll back and return a ``WriteOutcome``.
"""
from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from incident_linker.models.base import (
    DedupRunStatusEnum,
    MergeOperationStatusEnum,
    MergeStatusEnum,
    ProcessingStatusEnum,
)
from incident_linker.models.dedup_run import DedupRun
from incident_linker.models.incident import CanonicalIncident
from incident_linker.models.incident_fields import IncidentFieldsMixin
from incident_linker.models.merge_operation import MergeOperation
from incident_linker.models.raw_record import RawRecord
from incident_linker.models.vessel import VesselRef
from incident_linker.modules.reference_cache import ByImo, ByName, VesselKey
from incident_linker.schemas.raw_record import RawRecordIn
from incident_linker.utils.geo import BoundingBox

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base class for infrastructure failures in the incident store."""


class StoreUnavailableError(StoreError):
    """A read could not be served (connection lost, query failed)."""


class StoreWriteError(StoreError):
    """A write that must produce an id (incident, vessel) failed."""


class WriteOutcome(str, enum.Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"
    ERROR = "error"


# Fields a caller may write through update_fields. Identity columns are immutable.
UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "occurred_at", "latitude", "longitude", "title", "description", "region",
        "location_name", "incident_type_name", "vessel_name", "vessel_type",
        "vessel_flag", "vessel_imo", "vessel_status", "updates", "raw_payload",
        "processing_notes", "merge_status", "merged_at", "merged_sources",
        "merged_record_ids", "canonical_incident_id", "processing_status",
    }
)

INCIDENT_FIELDS: tuple[str, ...] = tuple(IncidentFieldsMixin.__annotations__)


class IncidentStore(ABC):
    """Abstract persistence collaborator for matching, merging and ingest linking."""

    # ── Deduplication contract ────────────────────────────────────────────────

    @abstractmethod
    def query_recent(self, since: datetime, limit: int) -> list[RawRecord]:
        """Records in the window, newest event first, excluding merged_into."""

    @abstractmethod
    def query_candidates(
        self, window: tuple[datetime, datetime], bbox: BoundingBox,
    ) -> list[CanonicalIncident]:
        """Canonical incidents inside the time window and bounding box."""

    @abstractmethod
    def update_merge_state(
        self,
        record_id: int,
        merge_status: MergeStatusEnum,
        merged_into_id: int | None,
        expected_prior_status: MergeStatusEnum = MergeStatusEnum.NONE,
        note: str | None = None,
    ) -> WriteOutcome:
        """Conditional linkage write — CONFLICT unless the prior status still matches."""

    @abstractmethod
    def update_fields(
        self, record_id: int, fields: dict[str, Any], expected_version: int | None = None,
    ) -> WriteOutcome:
        """Partial update of a record's content fields.

        With ``expected_version`` the write is optimistic: CONFLICT if the row
        changed since that version was read.
        """

    @abstractmethod
    def get_record(self, record_id: int) -> RawRecord | None:
        """Current state of one record, or None if it does not exist."""

    @abstractmethod
    def has_absorbed_records(self, record_id: int) -> bool:
        """True if any record is merged_into this one."""

    @abstractmethod
    def query_chain_violations(self) -> list[dict[str, Any]]:
        """Secondaries whose merge target is missing or itself a secondary."""

    # ── Audit ────────────────────────────────────────────────────────────────

    @abstractmethod
    def start_run(self, config: dict[str, Any]) -> int | None: ...

    @abstractmethod
    def finish_run(
        self,
        run_id: int | None,
        status: DedupRunStatusEnum,
        summary: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None: ...

    @abstractmethod
    def record_merge_operation(
        self,
        run_id: int | None,
        primary_id: int,
        secondary_id: int,
        score: dict[str, Any],
        updated_fields: list[str],
        status: MergeOperationStatusEnum,
    ) -> int | None: ...

    # ── Ingest linking ───────────────────────────────────────────────────────

    @abstractmethod
    def query_unprocessed(self, limit: int) -> list[RawRecord]: ...

    @abstractmethod
    def find_vessel(self, key: VesselKey) -> int | None: ...

    @abstractmethod
    def create_vessel(
        self, name: str | None, normalized_name: str | None, imo: str | None,
        flag: str | None = None, vessel_type: str | None = None,
    ) -> int: ...

    @abstractmethod
    def create_incident(self, record: RawRecord, vessel_id: int | None) -> int: ...

    def set_processing_status(
        self, record_id: int, status: ProcessingStatusEnum, **fields: Any,
    ) -> WriteOutcome:
        return self.update_fields(record_id, {"processing_status": status, **fields})

    def link_record_to_incident(self, record_id: int, incident_id: int) -> WriteOutcome:
        """Point a record at its canonical incident and mark it complete."""
        return self.set_processing_status(
            record_id, ProcessingStatusEnum.COMPLETE, canonical_incident_id=incident_id,
        )


class SqlIncidentStore(IncidentStore):
    """SQLAlchemy implementation. Each write commits (or rolls back) on its own."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ── Reads ────────────────────────────────────────────────────────────────

    def get_record(self, record_id: int) -> RawRecord | None:
        try:
            return self.db.get(RawRecord, record_id, populate_existing=True)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Failed to load record {record_id}: {exc}") from exc

    def has_absorbed_records(self, record_id: int) -> bool:
        try:
            row = (
                self.db.query(RawRecord.record_id)
                .filter(
                    RawRecord.merged_into_id == record_id,
                    RawRecord.merge_status == MergeStatusEnum.MERGED_INTO,
                )
                .first()
            )
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Failed to check children of record {record_id}: {exc}") from exc
        return row is not None

    def get_incident(self, incident_id: int) -> CanonicalIncident | None:
        try:
            return self.db.get(CanonicalIncident, incident_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Failed to load incident {incident_id}: {exc}") from exc

    def query_recent(self, since: datetime, limit: int) -> list[RawRecord]:
        try:
            return (
                self.db.query(RawRecord)
                .filter(
                    RawRecord.merge_status != MergeStatusEnum.MERGED_INTO,
                    or_(
                        RawRecord.occurred_at >= since,
                        and_(RawRecord.occurred_at.is_(None), RawRecord.ingested_at >= since),
                    ),
                )
                .order_by(
                    RawRecord.occurred_at.is_(None),
                    RawRecord.occurred_at.desc(),
                    RawRecord.record_id.desc(),
                )
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Failed to query recent records: {exc}") from exc

    def query_candidates(
        self, window: tuple[datetime, datetime], bbox: BoundingBox,
    ) -> list[CanonicalIncident]:
        start, end = window
        if bbox.crosses_antimeridian:
            lon_filter = or_(
                CanonicalIncident.longitude >= bbox.min_lon,
                CanonicalIncident.longitude <= bbox.max_lon,
            )
        else:
            lon_filter = CanonicalIncident.longitude.between(bbox.min_lon, bbox.max_lon)
        try:
            return (
                self.db.query(CanonicalIncident)
                .filter(
                    CanonicalIncident.occurred_at.between(start, end),
                    CanonicalIncident.latitude.between(bbox.min_lat, bbox.max_lat),
                    lon_filter,
                )
                .order_by(CanonicalIncident.incident_id)
                .all()
            )
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Failed to query candidate incidents: {exc}") from exc

    def query_unprocessed(self, limit: int) -> list[RawRecord]:
        try:
            return (
                self.db.query(RawRecord)
                .filter(
                    RawRecord.processing_status == ProcessingStatusEnum.NEW,
                    RawRecord.merge_status != MergeStatusEnum.MERGED_INTO,
                )
                .order_by(RawRecord.ingested_at, RawRecord.record_id)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Failed to query unprocessed records: {exc}") from exc

    def query_chain_violations(self) -> list[dict[str, Any]]:
        target = aliased(RawRecord)
        try:
            rows = (
                self.db.query(
                    RawRecord.record_id, RawRecord.merged_into_id, target.record_id, target.merge_status,
                )
                .outerjoin(target, target.record_id == RawRecord.merged_into_id)
                .filter(RawRecord.merge_status == MergeStatusEnum.MERGED_INTO)
                .filter(
                    or_(
                        RawRecord.merged_into_id.is_(None),
                        target.record_id.is_(None),
                        target.merge_status == MergeStatusEnum.MERGED_INTO,
                    )
                )
                .order_by(RawRecord.record_id)
                .all()
            )
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Failed to check merge chains: {exc}") from exc

        violations = []
        for record_id, merged_into_id, target_id, target_status in rows:
            if merged_into_id is None:
                problem = "merged_into without target"
            elif target_id is None:
                problem = "target record missing"
            else:
                problem = "target is itself merged_into"
            violations.append({
                "record_id": record_id,
                "merged_into_id": merged_into_id,
                "problem": problem,
            })
        return violations

    def find_vessel(self, key: VesselKey) -> int | None:
        try:
            q = self.db.query(VesselRef.vessel_id)
            if isinstance(key, ByImo):
                q = q.filter(VesselRef.imo == key.imo)
            elif isinstance(key, ByName):
                q = q.filter(VesselRef.normalized_name == key.normalized_name, VesselRef.imo.is_(None))
            else:
                raise TypeError(f"Unsupported vessel key: {key!r}")
            row = q.order_by(VesselRef.vessel_id).first()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(f"Failed to look up vessel {key!r}: {exc}") from exc
        return row[0] if row else None

    # ── Writes ───────────────────────────────────────────────────────────────

    def update_merge_state(
        self,
        record_id: int,
        merge_status: MergeStatusEnum,
        merged_into_id: int | None,
        expected_prior_status: MergeStatusEnum = MergeStatusEnum.NONE,
        note: str | None = None,
    ) -> WriteOutcome:
        if merged_into_id is not None and merged_into_id == record_id:
            raise ValueError(f"Record {record_id} cannot be merged into itself")
        if (merge_status == MergeStatusEnum.MERGED_INTO) != (merged_into_id is not None):
            raise ValueError("merged_into_id must be set iff merge_status is merged_into")

        conditions = [
            RawRecord.record_id == record_id,
            RawRecord.merge_status == expected_prior_status,
        ]
        if merged_into_id is not None:
            # Target must be a live primary, so merges stay one level deep
            target = aliased(RawRecord)
            conditions.append(
                select(target.record_id)
                .where(
                    target.record_id == merged_into_id,
                    target.merge_status != MergeStatusEnum.MERGED_INTO,
                )
                .exists()
            )
            # A record that already absorbed others cannot become a secondary
            child = aliased(RawRecord)
            conditions.append(
                ~select(child.record_id)
                .where(
                    child.merged_into_id == record_id,
                    child.merge_status == MergeStatusEnum.MERGED_INTO,
                )
                .exists()
            )

        now = datetime.utcnow()
        values: dict[str, Any] = {
            "merge_status": merge_status,
            "merged_into_id": merged_into_id,
            "merged_at": now,
            "updated_at": now,
            "row_version": RawRecord.row_version + 1,
        }
        if note:
            values["processing_notes"] = case(
                (RawRecord.processing_notes.is_(None), note),
                else_=RawRecord.processing_notes + "\n" + note,
            )

        stmt = (
            update(RawRecord)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            if result.rowcount != 1:
                self.db.rollback()
                logger.warning(
                    "Merge-state write for record %d lost: expected status %s, target %s",
                    record_id, expected_prior_status.value, merged_into_id,
                )
                return WriteOutcome.CONFLICT
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Merge-state write for record %d failed", record_id)
            return WriteOutcome.ERROR
        return WriteOutcome.SUCCESS

    def update_fields(
        self, record_id: int, fields: dict[str, Any], expected_version: int | None = None,
    ) -> WriteOutcome:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update unknown or immutable fields: {sorted(unknown)}")
        if not fields:
            return WriteOutcome.SUCCESS

        conditions = [RawRecord.record_id == record_id]
        if "merge_status" in fields:
            # Never resurrect a record that has been absorbed in the meantime
            conditions.append(RawRecord.merge_status != MergeStatusEnum.MERGED_INTO)
        if expected_version is not None:
            conditions.append(RawRecord.row_version == expected_version)
        stmt = (
            update(RawRecord)
            .where(*conditions)
            .values(
                **fields,
                updated_at=datetime.utcnow(),
                row_version=RawRecord.row_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            if result.rowcount != 1:
                self.db.rollback()
                exists = self.db.get(RawRecord, record_id) is not None
                logger.warning(
                    "Field update for record %d matched no row (%s)",
                    record_id, "record changed or absorbed" if exists else "record missing",
                )
                return WriteOutcome.CONFLICT if exists else WriteOutcome.ERROR
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Field update for record %d failed", record_id)
            return WriteOutcome.ERROR
        return WriteOutcome.SUCCESS

    def add_records(self, records: Iterable[RawRecordIn]) -> dict[str, int]:
        """Insert validated collector output; (source, reference_id) duplicates are skipped."""
        stats = {"inserted": 0, "skipped": 0}
        seen: set[tuple[str, str]] = set()
        for item in records:
            key = (item.source, item.reference_id)
            if key in seen:
                stats["skipped"] += 1
                continue
            seen.add(key)
            exists = (
                self.db.query(RawRecord.record_id)
                .filter(RawRecord.source == item.source, RawRecord.reference_id == item.reference_id)
                .first()
            )
            if exists:
                stats["skipped"] += 1
                continue
            self.db.add(RawRecord(**item.model_dump()))
            stats["inserted"] += 1
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise StoreWriteError(f"Failed to insert records: {exc}") from exc
        return stats

    def create_vessel(
        self, name: str | None, normalized_name: str | None, imo: str | None,
        flag: str | None = None, vessel_type: str | None = None,
    ) -> int:
        vessel = VesselRef(
            name=name, normalized_name=normalized_name or None, imo=imo,
            flag=flag, vessel_type=vessel_type,
        )
        try:
            self.db.add(vessel)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreWriteError(f"Failed to create vessel {name!r}: {exc}") from exc
        return vessel.vessel_id

    def create_incident(self, record: RawRecord, vessel_id: int | None) -> int:
        incident = CanonicalIncident(
            vessel_id=vessel_id,
            primary_record_id=record.record_id,
            **{name: getattr(record, name) for name in INCIDENT_FIELDS},
        )
        try:
            self.db.add(incident)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreWriteError(
                f"Failed to create incident from record {record.record_id}: {exc}"
            ) from exc
        return incident.incident_id

    # ── Audit ────────────────────────────────────────────────────────────────

    def start_run(self, config: dict[str, Any]) -> int | None:
        run = DedupRun(config_json=config, status=DedupRunStatusEnum.RUNNING.value)
        try:
            self.db.add(run)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Could not record dedup run start")
            return None
        return run.run_id

    def finish_run(
        self,
        run_id: int | None,
        status: DedupRunStatusEnum,
        summary: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        if run_id is None:
            return
        try:
            run = self.db.get(DedupRun, run_id)
            if run is None:
                logger.warning("Dedup run %d vanished before completion", run_id)
                return
            run.status = status.value
            run.completed_at = datetime.utcnow()
            run.summary_json = summary
            run.error = error
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Could not record dedup run %d completion", run_id)

    def record_merge_operation(
        self,
        run_id: int | None,
        primary_id: int,
        secondary_id: int,
        score: dict[str, Any],
        updated_fields: list[str],
        status: MergeOperationStatusEnum,
    ) -> int | None:
        op = MergeOperation(
            run_id=run_id,
            primary_record_id=primary_id,
            secondary_record_id=secondary_id,
            confidence=score.get("total"),
            score_json=score,
            updated_fields_json=updated_fields,
            status=status.value,
        )
        try:
            self.db.add(op)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "Could not record merge operation %d -> %d", secondary_id, primary_id
            )
            return None
        return op.merge_op_id
