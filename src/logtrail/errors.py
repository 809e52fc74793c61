"""
Error taxonomy for logtrail.

Every failure the core can report carries an ErrorKind plus a human-readable
detail string, so calling layers branch on the kind instead of message text.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""
    PARSE_SKIP = "parse_skip"    # absorbed by the parser, never raised
    STREAM = "stream"
    STORE = "store"
    JOB_NOT_FOUND = "job_not_found"
    LOG_NOT_FOUND = "log_not_found"
    INVALID_TRANSITION = "invalid_transition"


class LogtrailError(Exception):
    """Base class for all errors raised by the core."""

    kind: ErrorKind = ErrorKind.STORE

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.detail}"


class StreamError(LogtrailError):
    """The file stream failed to open or failed mid-read."""
    kind = ErrorKind.STREAM


class StoreError(LogtrailError):
    """A write or read against the event, summary or job store failed."""
    kind = ErrorKind.STORE


class JobNotFound(LogtrailError):
    """A lifecycle transition was requested for a job that does not exist."""
    kind = ErrorKind.JOB_NOT_FOUND


class LogFileNotFound(LogtrailError):
    """No registered log file carries the requested identifier."""
    kind = ErrorKind.LOG_NOT_FOUND


class InvalidTransition(LogtrailError):
    """A job status change would move backward or leave a terminal state."""
    kind = ErrorKind.INVALID_TRANSITION
