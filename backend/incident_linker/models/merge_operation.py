"""MergeOperation — audit trail for each attempted cross-source record merge."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Float, String, DateTime, ForeignKey, JSON, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from incident_linker.models.base import Base, MergeOperationStatusEnum


class MergeOperation(Base):
    __tablename__ = "merge_operations"

    merge_op_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("dedup_runs.run_id"), nullable=True, index=True
    )
    primary_record_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("raw_records.record_id"), nullable=False
    )
    secondary_record_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("raw_records.record_id"), nullable=False
    )
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # Component scores: {"total": 0.91, "time": 0.98, "spatial": 0.97, ...}
    score_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    # Names of primary fields written by the merge
    updated_fields_json: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    executed_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    executed_by: Mapped[str] = mapped_column(String(100), nullable=False, default="auto")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MergeOperationStatusEnum.COMPLETED.value
    )

    primary_record: Mapped["RawRecord"] = relationship(
        "RawRecord", foreign_keys=[primary_record_id],
    )
    secondary_record: Mapped["RawRecord"] = relationship(
        "RawRecord", foreign_keys=[secondary_record_id],
    )
