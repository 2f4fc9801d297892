"""Tests for completeness scoring and primary-record selection."""
from __future__ import annotations

import pytest

from conftest import BASE_TIME, report
from incident_linker.modules.record_quality import (
    completeness,
    determine_primary,
    quality_score,
    source_priority,
)


class TestCompleteness:
    def test_empty_record(self):
        assert completeness(report()) == 0

    def test_long_description_earns_more(self):
        short = report(description="Robbers boarded.")
        long = report(description="Robbers boarded the anchored tanker. " * 5)
        assert completeness(short) == 1
        assert completeness(long) == 3

    def test_coordinates_need_validity(self):
        assert completeness(report(latitude=1.25, longitude=103.85)) == 2
        assert completeness(report(latitude=0, longitude=0)) == 0

    def test_weighted_fields(self):
        r = report(vessel_imo="9074729", updates="Crew safe.", raw_payload={"id": 1})
        assert completeness(r) == 2 + 2 + 1

    def test_blank_strings_do_not_count(self):
        assert completeness(report(title="   ", vessel_name="")) == 0


class TestSourcePriority:
    @pytest.mark.parametrize(
        "source,expected",
        [("RECAAP", 5), ("recaap", 5), ("UKMTO", 4), ("MDAT", 3), ("ICC", 3), ("CWD", 2)],
    )
    def test_known(self, source, expected):
        assert source_priority(source) == expected

    def test_unknown_defaults_to_one(self):
        assert source_priority("LOCAL NEWS") == 1
        assert source_priority(None) == 1


class TestDeterminePrimary:
    def test_more_complete_record_wins(self):
        a = report(record_id=1, source="UKMTO", title="Boarding", occurred_at=BASE_TIME,
                   description="Short note.")
        b = report(record_id=2, source="UKMTO", title="Boarding", occurred_at=BASE_TIME,
                   description="Detailed narrative of the boarding. " * 5,
                   latitude=1.2, longitude=103.8)
        decision = determine_primary(a, b)
        assert decision.primary is b
        assert decision.secondary is a
        assert decision.primary_score > decision.secondary_score

    def test_source_priority_breaks_equal_completeness(self):
        low = report(record_id=1, source="CWD", title="Theft")
        high = report(record_id=2, source="RECAAP", title="Theft")
        assert determine_primary(low, high).primary is high

    def test_tie_goes_to_first_argument(self):
        a = report(record_id=1, source="ICC", title="Theft")
        b = report(record_id=2, source="MDAT", title="Theft")
        assert quality_score(a) == quality_score(b)
        assert determine_primary(a, b).primary is a
        assert determine_primary(b, a).primary is b
