"""VesselRef entity — reference table of vessels named in incident reports."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from incident_linker.models.base import Base


class VesselRef(Base):
    __tablename__ = "vessels"

    vessel_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # Output of normalize_vessel_name, lookup key for name-only reports
    normalized_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    imo: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    flag: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    vessel_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
