"""
Store Interfaces

Collaborator contracts the ingestion core depends on, plus the SQLite-backed
implementation. The core only ever talks to these protocols, so tests and
other deployments can swap in their own stores.
"""

import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence, Tuple

from ..config_loader import config
from ..models import Job, JobStatus
from ..schemas import Summary
from .database import DatabaseService


class LineSource(Protocol):
    """Yields the raw lines of an uploaded file, terminators stripped."""

    def lines(self, log_id: str) -> AsyncIterator[bytes]:
        ...


class EventStore(Protocol):
    async def insert_batch(self, job_id: str, events: Sequence[Any]) -> None:
        ...

    async def query_range(
        self,
        log_id: str,
        time_from: Optional[str],
        time_to: Optional[str],
        ascending: bool,
        cursor: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        ...


class SummaryStore(Protocol):
    async def put_summary(self, log_id: str, job_id: str, summary: Summary) -> None:
        ...

    async def get_summary(self, log_id: str) -> Optional[Summary]:
        ...


class JobStore(Protocol):
    async def create_job(self, log_id: str) -> Job:
        ...

    async def transition(
        self,
        job_id: str,
        status: JobStatus,
        error: Optional[str] = None,
        error_kind: Optional[str] = None
    ) -> Job:
        ...

    async def get_job(self, job_id: str) -> Optional[Job]:
        ...


class SqlStore:
    """
    Event, summary and job store over DatabaseService.

    Each call runs the blocking database method on a worker thread so the
    event loop keeps serving queries while an ingestion flushes.
    """

    def __init__(self, db: Optional[DatabaseService] = None, page_size: Optional[int] = None):
        self.db = db or DatabaseService()
        self.page_size = page_size or config.get('query.fetch_page_size', 1000)

    # Events

    async def insert_batch(self, job_id: str, events: Sequence[Any]) -> None:
        await asyncio.to_thread(self.db.insert_events, job_id, list(events))

    async def query_range(
        self,
        log_id: str,
        time_from: Optional[str],
        time_to: Optional[str],
        ascending: bool,
        cursor: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        return await asyncio.to_thread(
            self.db.query_events_range,
            log_id,
            time_from,
            time_to,
            ascending,
            cursor,
            self.page_size,
        )

    # Summaries

    async def put_summary(self, log_id: str, job_id: str, summary: Summary) -> None:
        await asyncio.to_thread(self.db.put_summary, log_id, job_id, summary.to_dict())

    async def get_summary(self, log_id: str) -> Optional[Summary]:
        payload = await asyncio.to_thread(self.db.get_summary, log_id)
        return Summary.model_validate(payload) if payload is not None else None

    # Jobs

    async def create_job(self, log_id: str) -> Job:
        return await asyncio.to_thread(self.db.create_job, log_id)

    async def transition(
        self,
        job_id: str,
        status: JobStatus,
        error: Optional[str] = None,
        error_kind: Optional[str] = None
    ) -> Job:
        return await asyncio.to_thread(self.db.transition_job, job_id, status, error, error_kind)

    async def get_job(self, job_id: str) -> Optional[Job]:
        return await asyncio.to_thread(self.db.get_job, job_id)

    async def find_jobs_by_log(self, log_id: str, limit: int = 5) -> List[Job]:
        return await asyncio.to_thread(self.db.find_jobs_by_log, log_id, limit)
