"""Pydantic schemas for RawRecord — validate collector output before it reaches the store."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from incident_linker.utils.geo import to_utc_naive
from incident_linker.utils.vessel_identity import normalize_imo


class RawRecordIn(BaseModel):
    """One normalized report from a source collector. Unknown fields are rejected."""
    model_config = ConfigDict(extra="forbid")

    source: str
    reference_id: str
    occurred_at: Optional[datetime] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    title: Optional[str] = None
    description: Optional[str] = None
    region: Optional[str] = None
    location_name: Optional[str] = None
    incident_type_name: Optional[str] = None
    vessel_name: Optional[str] = None
    vessel_type: Optional[str] = None
    vessel_flag: Optional[str] = None
    vessel_imo: Optional[str] = None
    vessel_status: Optional[str] = None
    updates: Optional[str] = None
    raw_payload: Optional[dict[str, Any]] = None

    @field_validator("source")
    @classmethod
    def source_tag(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("source must not be empty")
        return v

    @field_validator("reference_id")
    @classmethod
    def reference_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("reference_id must not be empty")
        return v

    @field_validator("occurred_at")
    @classmethod
    def utc_naive(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Stored naive; offsets are folded into UTC first
        return to_utc_naive(v) if v is not None else None

    @field_validator("vessel_imo", mode="before")
    @classmethod
    def stringify_imo(cls, v: Any) -> Optional[str]:
        return normalize_imo(v)


class RawRecordRead(RawRecordIn):
    model_config = ConfigDict(from_attributes=True)

    record_id: int
    merge_status: str
    merged_into_id: Optional[int] = None
    canonical_incident_id: Optional[int] = None
    processing_status: str

    @field_validator("merge_status", "processing_status", mode="before")
    @classmethod
    def enum_value(cls, v: Any) -> str:
        return getattr(v, "value", v)
