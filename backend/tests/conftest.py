"""Shared test fixtures: in-memory SQLite sessions and record factories."""
from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from incident_linker.models import Base  # noqa: F401 -- registers all models
from incident_linker.models.base import MergeStatusEnum, ProcessingStatusEnum
from incident_linker.models.incident import CanonicalIncident
from incident_linker.models.raw_record import RawRecord
from incident_linker.modules.incident_store import SqlIncidentStore

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0)

_RECORD_FIELDS = (
    "record_id", "source", "reference_id", "occurred_at", "latitude", "longitude",
    "title", "description", "region", "location_name", "incident_type_name",
    "vessel_name", "vessel_type", "vessel_flag", "vessel_imo", "vessel_status",
    "updates", "raw_payload", "processing_notes", "merged_into_id", "merged_at",
    "merged_sources", "merged_record_ids", "canonical_incident_id",
)


def _attach_pragmas(engine):
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture
def db():
    """Create an in-memory SQLite database with all tables for each test."""
    engine = create_engine("sqlite:///:memory:")
    _attach_pragmas(engine)
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    """sessionmaker on a file-backed SQLite DB, for tests that need two independent sessions."""
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}")
    _attach_pragmas(engine)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def store(db):
    return SqlIncidentStore(db)


@pytest.fixture
def make_record(db):
    """Insert a RawRecord with sensible defaults; keyword overrides win."""
    counter = {"n": 0}

    def _make(**overrides) -> RawRecord:
        counter["n"] += 1
        values = {
            "source": "RECAAP",
            "reference_id": f"REF-{counter['n']}",
            "occurred_at": BASE_TIME,
            "latitude": 1.25,
            "longitude": 103.85,
            "title": "Robbery aboard tanker",
            "incident_type_name": "Robbery",
            "merge_status": MergeStatusEnum.NONE,
            "processing_status": ProcessingStatusEnum.NEW,
        }
        values.update(overrides)
        record = RawRecord(**values)
        db.add(record)
        db.commit()
        return record

    return _make


@pytest.fixture
def make_incident(db):
    """Insert a CanonicalIncident with sensible defaults."""

    def _make(**overrides) -> CanonicalIncident:
        values = {
            "occurred_at": BASE_TIME,
            "latitude": 1.25,
            "longitude": 103.85,
            "title": "Robbery aboard tanker",
            "incident_type_name": "Robbery",
        }
        values.update(overrides)
        incident = CanonicalIncident(**values)
        db.add(incident)
        db.commit()
        return incident

    return _make


def report(**overrides) -> SimpleNamespace:
    """Detached record-like object for pure scoring / planning tests."""
    values = dict.fromkeys(_RECORD_FIELDS)
    values["merged_record_ids"] = []
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def make_report():
    return report
