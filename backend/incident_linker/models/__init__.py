"""Import all models to register them with SQLAlchemy metadata."""
from incident_linker.models.base import Base
from incident_linker.models.vessel import VesselRef
from incident_linker.models.incident import CanonicalIncident
from incident_linker.models.raw_record import RawRecord
from incident_linker.models.dedup_run import DedupRun
from incident_linker.models.merge_operation import MergeOperation

__all__ = [
    "Base",
    "VesselRef",
    "CanonicalIncident",
    "RawRecord",
    "DedupRun",
    "MergeOperation",
]
