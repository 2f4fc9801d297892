"""Tests for RawRecord input validation."""
from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from incident_linker.models.base import MergeStatusEnum, ProcessingStatusEnum
from incident_linker.schemas.raw_record import RawRecordIn, RawRecordRead


class TestRawRecordIn:
    def test_normalizes_source_and_imo(self):
        rec = RawRecordIn(source=" recaap ", reference_id=" 2024-01 ", vessel_imo=9074729)
        assert rec.source == "RECAAP"
        assert rec.reference_id == "2024-01"
        assert rec.vessel_imo == "9074729"

    def test_parses_timestamp(self):
        rec = RawRecordIn(source="UKMTO", reference_id="7", occurred_at="2024-03-01T12:00:00Z")
        assert rec.occurred_at.replace(tzinfo=None) == datetime(2024, 3, 1, 12, 0)

    def test_offset_timestamp_converted_to_utc(self):
        rec = RawRecordIn(source="RECAAP", reference_id="8", occurred_at="2024-03-01T12:00:00+08:00")
        assert rec.occurred_at == datetime(2024, 3, 1, 4, 0)
        assert rec.occurred_at.tzinfo is None

    @pytest.mark.parametrize("field,value", [("source", "  "), ("reference_id", "")])
    def test_blank_identity_rejected(self, field, value):
        data = {"source": "RECAAP", "reference_id": "1", field: value}
        with pytest.raises(ValidationError):
            RawRecordIn(**data)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            RawRecordIn(source="RECAAP", reference_id="1", merge_status="merged")


class TestRawRecordRead:
    def test_from_orm_row(self, make_record):
        row = make_record(vessel_imo="9074729")
        out = RawRecordRead.model_validate(row)
        assert out.record_id == row.record_id
        assert out.merge_status == MergeStatusEnum.NONE.value
        assert out.processing_status == ProcessingStatusEnum.NEW.value
