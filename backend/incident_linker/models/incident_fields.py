"""Event-fact columns shared by raw source records and canonical incidents.

The scoring and merge modules read these attributes by name, so a RawRecord
can be compared against another RawRecord (batch pass) or against a
CanonicalIncident (ingest matching) without adapters.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Float, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column


class IncidentFieldsMixin:
    occurred_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    location_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    incident_type_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    vessel_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    vessel_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    vessel_flag: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    vessel_imo: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    vessel_status: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
