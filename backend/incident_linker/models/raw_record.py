"""RawRecord entity — one incident report as ingested from a single source feed."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Integer, String, DateTime, Text, JSON, ForeignKey,
    Enum as SAEnum, CheckConstraint, UniqueConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column
from incident_linker.models.base import Base, MergeStatusEnum, ProcessingStatusEnum
from incident_linker.models.incident_fields import IncidentFieldsMixin


class RawRecord(IncidentFieldsMixin, Base):
    __tablename__ = "raw_records"
    __table_args__ = (
        UniqueConstraint("source", "reference_id", name="uq_raw_record_source_ref"),
        CheckConstraint("record_id != merged_into_id", name="ck_no_self_merge"),
    )

    record_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    # Source-native identifier, unique per source
    reference_id: Mapped[str] = mapped_column(String(255), nullable=False)
    updates: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    raw_payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    # Append-only audit trail
    processing_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Linkage state
    merge_status: Mapped[str] = mapped_column(
        SAEnum(MergeStatusEnum),
        nullable=False,
        default=MergeStatusEnum.NONE,
        index=True,
    )
    # Set iff merge_status == merged_into; always points at a primary
    merged_into_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("raw_records.record_id"), nullable=True, index=True
    )
    merged_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    merged_sources: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    merged_record_ids: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    canonical_incident_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("incidents.incident_id"), nullable=True, index=True
    )
    processing_status: Mapped[str] = mapped_column(
        SAEnum(ProcessingStatusEnum),
        nullable=False,
        default=ProcessingStatusEnum.NEW,
        index=True,
    )
    # Bumped on every store write; guards read-modify-write of primaries
    row_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    ingested_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<RawRecord {self.record_id} {self.source}:{self.reference_id}>"
