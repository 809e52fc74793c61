"""
logtrail Data Models

SQLModel definitions for database persistence.
Uses SQLite with WAL mode for concurrent access.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional
import uuid

from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# ============================================================
# ENUMS
# ============================================================

class JobStatus(str, Enum):
    """
    Lifecycle of one analysis run.

    queued -> running -> done
       |         |
       +---------+-----> error
    """
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.ERROR)

    def can_transition_to(self, target: "JobStatus") -> bool:
        """Check whether moving from this status to target is legal."""
        return target in _TRANSITIONS[self]


_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.RUNNING, JobStatus.ERROR}),
    JobStatus.RUNNING: frozenset({JobStatus.DONE, JobStatus.ERROR}),
    JobStatus.DONE: frozenset(),
    JobStatus.ERROR: frozenset(),
}


# ============================================================
# LOG FILES
# ============================================================

class LogFile(SQLModel, table=True):
    """
    One uploaded access-log artifact.

    Written by the upload side, read-only to the ingestion pipeline.
    """
    __tablename__ = "log_files"

    id: str = Field(default_factory=_new_id, primary_key=True)
    owner: str = Field(index=True)
    filename: str
    size_bytes: Optional[int] = None
    storage_key: str
    sha256: Optional[str] = None  # digest of the uploaded bytes, if known
    uploaded_at: datetime = Field(default_factory=_utcnow)


# ============================================================
# JOBS
# ============================================================

class Job(SQLModel, table=True):
    """
    One asynchronous analysis run over a LogFile.

    Re-runs create new rows; finished jobs are never deleted or superseded.
    """
    __tablename__ = "jobs"

    id: str = Field(default_factory=_new_id, primary_key=True)
    log_id: str = Field(index=True)
    status: JobStatus = Field(default=JobStatus.QUEUED)
    created_at: datetime = Field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "jobId": self.id,
            "logId": self.log_id,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "error": self.error,
            "errorKind": self.error_kind,
        }


# ============================================================
# EVENTS & SUMMARIES
# ============================================================

class EventRecord(SQLModel, table=True):
    """
    One parsed access-log line.

    Keyed by (log_id, event_ts): two events with the same timestamp text
    collide and the later write is kept.
    """
    __tablename__ = "events"

    log_id: str = Field(primary_key=True)
    event_ts: str = Field(primary_key=True)
    job_id: str = Field(index=True)
    ip: str = Field(index=True)
    method: str
    path: str
    status: int
    bytes_sent: int = Field(default=0)

    def to_dict(self) -> dict:
        return {
            "logId": self.log_id,
            "eventTs": self.event_ts,
            "jobId": self.job_id,
            "ip": self.ip,
            "method": self.method,
            "path": self.path,
            "status": self.status,
            "bytes": self.bytes_sent,
        }


class SummaryRecord(SQLModel, table=True):
    """
    Latest Summary for a LogFile, stored as its JSON document.

    Keyed by log_id, so every successful run overwrites the previous one.
    """
    __tablename__ = "summaries"

    log_id: str = Field(primary_key=True)
    job_id: str
    payload: str
    updated_at: datetime = Field(default_factory=_utcnow)
