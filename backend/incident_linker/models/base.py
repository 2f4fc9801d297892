"""Shared declarative base and enums for all models."""
from __future__ import annotations

import enum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class MergeStatusEnum(str, enum.Enum):
    NONE = "none"
    # Primary that has absorbed at least one other record
    MERGED = "merged"
    # Secondary: terminal for merge purposes, kept as audit trail
    MERGED_INTO = "merged_into"


class ProcessingStatusEnum(str, enum.Enum):
    NEW = "new"
    PROCESSING = "processing"
    READY = "ready"
    COMPLETE = "complete"
    ERROR = "error"


class MergeOperationStatusEnum(str, enum.Enum):
    COMPLETED = "completed"
    # Secondary's merge-state write lost a race or the target was not a valid primary
    CONFLICT = "conflict"
    # Secondary marked merged_into but primary field updates failed
    PARTIAL = "partial"


class DedupRunStatusEnum(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
