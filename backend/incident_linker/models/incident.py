"""CanonicalIncident entity — the deduplicated record exposed to downstream consumers."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from incident_linker.models.base import Base
from incident_linker.models.incident_fields import IncidentFieldsMixin


class CanonicalIncident(IncidentFieldsMixin, Base):
    __tablename__ = "incidents"

    incident_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("vessels.vessel_id"), nullable=True, index=True
    )
    # Raw record the incident was first built from (no FK: raw_records already references incidents)
    primary_record_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now()
    )

    vessel: Mapped[Optional["VesselRef"]] = relationship("VesselRef")
