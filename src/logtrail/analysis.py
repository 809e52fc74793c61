"""
logtrail Analysis Service

Entry points consumed by the HTTP and CLI layers:

- start_analysis: create a job and run the ingestion pipeline in the background
- get_summary: latest Summary for a log file
- query_events: paginated event reads

Analysis runs as a detached asyncio task. start_analysis returns as soon as
the job exists; callers poll get_job, or await wait() (optionally under
asyncio.wait_for) to observe the terminal state.

There is no mutual exclusion between jobs of the same log file: concurrent
runs interleave their event batches and the last Summary written wins.
"""

import asyncio
import functools
import logging
from typing import Dict, List, Optional

from .errors import LogFileNotFound
from .ingest.pipeline import IngestionPipeline
from .models import Job, LogFile
from .schemas import EventPage, EventQuery, StartResult, Summary
from .services.database import DatabaseService
from .services.file_source import LocalFileSource
from .services.query_service import EventQueryService
from .services.stores import LineSource, SqlStore

logger = logging.getLogger(__name__)


class AnalysisService:
    """
    Wires the stores, file source, pipeline and query engine together.
    """

    def __init__(
        self,
        db: Optional[DatabaseService] = None,
        source: Optional[LineSource] = None,
        store: Optional[SqlStore] = None,
        pipeline: Optional[IngestionPipeline] = None
    ):
        """
        Initialize the service.

        Args:
            db: DatabaseService instance. If None, creates new instance.
            source: Line source for log files; defaults to LocalFileSource
            store: Async store adapter; defaults to SqlStore over db
            pipeline: Pipeline to run; defaults to one built from the above
        """
        self.db = db or DatabaseService()
        self.store = store or SqlStore(self.db)
        self.source = source or LocalFileSource(self.db)
        self.pipeline = pipeline or IngestionPipeline(
            source=self.source,
            events=self.store,
            summaries=self.store,
            jobs=self.store,
        )
        self.queries = EventQueryService(self.store)
        self._tasks: Dict[str, asyncio.Task] = {}

    # ============================================================
    # ANALYSIS
    # ============================================================

    async def start_analysis(self, log_id: str) -> StartResult:
        """
        Create a job for a log file and start analyzing it in the background.

        Must be called from a running event loop.

        Raises:
            LogFileNotFound: the log file is not registered
        """
        log_file = await asyncio.to_thread(self.db.get_log_file, log_id)
        if log_file is None:
            raise LogFileNotFound(f"log {log_id} is not registered")

        job = await self.store.create_job(log_id)

        task = asyncio.create_task(
            self.pipeline.run(job.id, log_id),
            name=f"analyze-{job.id}"
        )
        self._tasks[job.id] = task
        task.add_done_callback(functools.partial(self._on_task_done, job.id))

        logger.info(f"Queued analysis of log {log_id} as job {job.id}")
        return StartResult(job_id=job.id, status=job.status.value)

    def _on_task_done(self, job_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        if task.cancelled():
            logger.warning(f"Analysis task {task.get_name()} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Analysis task {task.get_name()} raised: {exc}", exc_info=exc)

    async def wait(self, job_id: str) -> Optional[Job]:
        """
        Wait for a job started by this service to finish, then return it.

        Finished tasks are dropped from the service as soon as they complete,
        so jobs that are already done or were started elsewhere are returned
        as they currently stand. Wrap in asyncio.wait_for to bound the wait.
        """
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        return await self.store.get_job(job_id)

    # ============================================================
    # READS
    # ============================================================

    async def get_job(self, job_id: str) -> Optional[Job]:
        return await self.store.get_job(job_id)

    async def list_jobs(self, log_id: str, limit: int = 5) -> List[Job]:
        return await self.store.find_jobs_by_log(log_id, limit)

    async def get_summary(self, log_id: str) -> Optional[Summary]:
        return await self.store.get_summary(log_id)

    async def query_events(self, log_id: str, query: Optional[EventQuery] = None) -> EventPage:
        return await self.queries.query(log_id, query)

    # ============================================================
    # LOG FILES
    # ============================================================

    async def register_log_file(
        self,
        owner: str,
        filename: str,
        storage_key: str,
        size_bytes: Optional[int] = None,
        sha256: Optional[str] = None
    ) -> LogFile:
        return await asyncio.to_thread(
            self.db.register_log_file,
            owner,
            filename,
            storage_key,
            size_bytes,
            sha256,
        )

    async def delete_log(self, log_id: str) -> int:
        """Remove a log file with its summary and events; jobs are kept."""
        return await asyncio.to_thread(self.db.delete_log, log_id)
