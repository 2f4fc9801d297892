"""DedupRun entity — tracks each batch cross-source deduplication pass.

Stores the effective run configuration and the summary counters so an
operational dashboard can chart merge volume and failure rates over time.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, DateTime, JSON, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from incident_linker.models.base import Base, DedupRunStatusEnum


class DedupRun(Base):
    __tablename__ = "dedup_runs"

    run_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    # {"lookback_days": 30, "max_records": 500, "confidence_threshold": 0.7, ...}
    config_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    summary_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # "running", "completed", "failed"
    status: Mapped[str] = mapped_column(String(20), default=DedupRunStatusEnum.RUNNING.value)
