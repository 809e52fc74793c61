"""
Database Service

Handles all SQLite database operations with WAL mode and proper session management.
Uses context managers to prevent dangling locks.

Every method is blocking; the async store adapters in stores.py call them
on worker threads.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine, select, text

from ..config_loader import config
from ..errors import InvalidTransition, JobNotFound, StoreError
from ..models import EventRecord, Job, JobStatus, LogFile, SummaryRecord

logger = logging.getLogger(__name__)


class DatabaseService:
    """
    SQLite database service with WAL mode for concurrent access.

    Failures surface as StoreError so the pipeline can abort the job that
    triggered them.
    """

    def __init__(self, db_filename: Optional[str] = None):
        """
        Initialize database service with WAL mode enabled.

        Args:
            db_filename: SQLite file to use instead of database.filename
        """
        db_filename = db_filename or config.get('database.filename', 'logtrail.db')
        echo_sql = config.get('database.echo_sql', False)

        self.db_filename = db_filename
        self.engine = create_engine(
            f"sqlite:///{db_filename}",
            echo=echo_sql,
            connect_args={
                "check_same_thread": False,  # sessions run on worker threads
                "timeout": config.get('database.timeout', 30)
            }
        )

        logger.info(f"Database engine initialized: {db_filename}")

        self._create_tables()
        self._enable_wal_mode()

    def _enable_wal_mode(self) -> None:
        """
        Enable Write-Ahead Logging mode for concurrent access.

        WAL mode allows multiple readers and one writer simultaneously, so
        event queries can run while an ingestion is flushing batches.
        """
        try:
            with self.engine.connect() as connection:
                connection.execute(text("PRAGMA journal_mode=WAL;"))
                connection.execute(text("PRAGMA synchronous=NORMAL;"))
                connection.commit()

            logger.debug("WAL mode enabled successfully")
        except SQLAlchemyError as e:
            # Non-fatal - continue with default journal mode
            logger.error(f"Failed to enable WAL mode: {e}", exc_info=True)

    def _create_tables(self) -> None:
        """Create all database tables if they don't exist."""
        try:
            SQLModel.metadata.create_all(self.engine)
            logger.debug("Database tables created/verified")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}", exc_info=True)
            raise StoreError(f"could not create tables in {self.db_filename}: {e}") from e

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    # ============================================================
    # LOG FILE REGISTRY
    # ============================================================

    def register_log_file(
        self,
        owner: str,
        filename: str,
        storage_key: str,
        size_bytes: Optional[int] = None,
        sha256: Optional[str] = None,
        log_id: Optional[str] = None
    ) -> LogFile:
        """
        Record an uploaded log file (upsert on log_id).

        Args:
            owner: Uploading user's subject identifier
            filename: Original filename
            storage_key: Where the bytes live, relative to paths.storage
            size_bytes: Upload size, if known
            sha256: Digest of the uploaded bytes, if known
            log_id: Identifier to reuse; a new one is generated when omitted

        Returns:
            The stored LogFile
        """
        fields = dict(
            owner=owner,
            filename=filename,
            storage_key=storage_key,
            size_bytes=size_bytes,
            sha256=sha256,
        )
        if log_id:
            fields["id"] = log_id

        try:
            with self._session() as session:
                log_file = session.merge(LogFile(**fields))
                session.commit()
                session.refresh(log_file)

                logger.info(f"Registered log file {log_file.id} ({filename}) for {owner}")
                return log_file

        except SQLAlchemyError as e:
            logger.error(f"Failed to register log file {filename}: {e}", exc_info=True)
            raise StoreError(f"register log file {filename}: {e}") from e

    def get_log_file(self, log_id: str) -> Optional[LogFile]:
        try:
            with self._session() as session:
                return session.get(LogFile, log_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to get log file {log_id}: {e}", exc_info=True)
            raise StoreError(f"get log file {log_id}: {e}") from e

    def list_log_files(self, owner: Optional[str] = None, limit: int = 100) -> List[LogFile]:
        """
        List registered log files, newest first.

        Args:
            owner: Only return files uploaded by this owner
            limit: Maximum number of rows
        """
        try:
            with self._session() as session:
                statement = select(LogFile)
                if owner:
                    statement = statement.where(LogFile.owner == owner)
                statement = statement.order_by(LogFile.uploaded_at.desc()).limit(limit)
                return list(session.exec(statement).all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to list log files: {e}", exc_info=True)
            raise StoreError(f"list log files: {e}") from e

    def delete_log(self, log_id: str) -> int:
        """
        Delete a log file record, its summary and all its events.

        Jobs are kept as history.

        Returns:
            Number of event rows removed
        """
        try:
            with self._session() as session:
                log_file = session.get(LogFile, log_id)
                if log_file:
                    session.delete(log_file)

                summary = session.get(SummaryRecord, log_id)
                if summary:
                    session.delete(summary)

                result = session.exec(delete(EventRecord).where(EventRecord.log_id == log_id))
                session.commit()

                logger.info(f"Deleted log {log_id} ({result.rowcount} events)")
                return result.rowcount

        except SQLAlchemyError as e:
            logger.error(f"Failed to delete log {log_id}: {e}", exc_info=True)
            raise StoreError(f"delete log {log_id}: {e}") from e

    # ============================================================
    # JOB OPERATIONS
    # ============================================================

    def create_job(self, log_id: str) -> Job:
        """Create a job in the queued state."""
        try:
            with self._session() as session:
                job = Job(log_id=log_id, status=JobStatus.QUEUED)
                session.add(job)
                session.commit()
                session.refresh(job)

                logger.info(f"Created job {job.id} for log {log_id}")
                return job

        except SQLAlchemyError as e:
            logger.error(f"Failed to create job for log {log_id}: {e}", exc_info=True)
            raise StoreError(f"create job for log {log_id}: {e}") from e

    def transition_job(
        self,
        job_id: str,
        status: JobStatus,
        error: Optional[str] = None,
        error_kind: Optional[str] = None
    ) -> Job:
        """
        Move a job to a new status.

        Args:
            job_id: Job identifier
            status: Target status
            error: Failure message (error status only)
            error_kind: ErrorKind value of the failure (error status only)

        Returns:
            The updated Job

        Raises:
            JobNotFound: no job has this identifier
            InvalidTransition: the move is not allowed from the current status
            StoreError: the database write failed
        """
        try:
            with self._session() as session:
                job = session.get(Job, job_id)
                if not job:
                    raise JobNotFound(f"job {job_id} does not exist")

                if not job.status.can_transition_to(status):
                    raise InvalidTransition(
                        f"job {job_id} cannot move from {job.status.value} to {status.value}"
                    )

                now = datetime.now(timezone.utc)
                job.status = status
                if status == JobStatus.RUNNING:
                    job.started_at = now
                if status.is_terminal:
                    job.finished_at = now
                if status == JobStatus.ERROR:
                    job.error = error or "unknown error"
                    job.error_kind = error_kind

                session.add(job)
                session.commit()
                session.refresh(job)

                logger.debug(f"Job {job_id} -> {status.value}")
                return job

        except SQLAlchemyError as e:
            logger.error(f"Failed to move job {job_id} to {status.value}: {e}", exc_info=True)
            raise StoreError(f"transition job {job_id} to {status.value}: {e}") from e

    def get_job(self, job_id: str) -> Optional[Job]:
        try:
            with self._session() as session:
                return session.get(Job, job_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to get job {job_id}: {e}", exc_info=True)
            raise StoreError(f"get job {job_id}: {e}") from e

    def find_jobs_by_log(self, log_id: str, limit: int = 5) -> List[Job]:
        """Jobs for a log file, latest first."""
        try:
            with self._session() as session:
                statement = (
                    select(Job)
                    .where(Job.log_id == log_id)
                    .order_by(Job.created_at.desc())
                    .limit(limit)
                )
                return list(session.exec(statement).all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to list jobs for log {log_id}: {e}", exc_info=True)
            raise StoreError(f"list jobs for log {log_id}: {e}") from e

    # ============================================================
    # EVENTS
    # ============================================================

    def insert_events(self, job_id: str, events: Iterable[Any]) -> int:
        """
        Persist one batch of parsed events under the job's log file.

        Rows are upserted on (log_id, event_ts), so events sharing a
        timestamp overwrite each other and the last one written wins,
        within a batch as well as across batches and jobs.

        Args:
            job_id: Job that produced the events
            events: LogEvent instances

        Returns:
            Number of events written

        Raises:
            JobNotFound: no job has this identifier
            StoreError: the database write failed
        """
        try:
            with self._session() as session:
                job = session.get(Job, job_id)
                if not job:
                    raise JobNotFound(f"job {job_id} does not exist")

                rows = [
                    {
                        "log_id": job.log_id,
                        "event_ts": event.timestamp,
                        "job_id": job_id,
                        "ip": event.ip,
                        "method": event.method,
                        "path": event.path,
                        "status": event.status,
                        "bytes_sent": event.bytes,
                    }
                    for event in events
                ]
                if rows:
                    statement = sqlite_insert(EventRecord.__table__)
                    statement = statement.on_conflict_do_update(
                        index_elements=["log_id", "event_ts"],
                        set_={
                            column: statement.excluded[column]
                            for column in ("job_id", "ip", "method", "path", "status", "bytes_sent")
                        }
                    )
                    session.exec(statement, params=rows)

                session.commit()
                return len(rows)

        except SQLAlchemyError as e:
            logger.error(f"Failed to insert events for job {job_id}: {e}", exc_info=True)
            raise StoreError(f"insert events for job {job_id}: {e}") from e

    def query_events_range(
        self,
        log_id: str,
        time_from: Optional[str] = None,
        time_to: Optional[str] = None,
        ascending: bool = True,
        cursor: Optional[str] = None,
        page_size: int = 1000
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """
        Fetch one ordered page of raw events for a log file.

        Args:
            log_id: Log file identifier
            time_from: Inclusive lower bound on the timestamp text
            time_to: Inclusive upper bound on the timestamp text
            ascending: Sort direction on timestamp
            cursor: Timestamp of the last event of the previous page
            page_size: Maximum events per page

        Returns:
            (events, next cursor); the cursor is None once the range is exhausted
        """
        try:
            with self._session() as session:
                statement = select(EventRecord).where(EventRecord.log_id == log_id)

                if time_from is not None:
                    statement = statement.where(EventRecord.event_ts >= time_from)
                if time_to is not None:
                    statement = statement.where(EventRecord.event_ts <= time_to)

                if ascending:
                    if cursor is not None:
                        statement = statement.where(EventRecord.event_ts > cursor)
                    statement = statement.order_by(EventRecord.event_ts.asc())
                else:
                    if cursor is not None:
                        statement = statement.where(EventRecord.event_ts < cursor)
                    statement = statement.order_by(EventRecord.event_ts.desc())

                rows = session.exec(statement.limit(page_size)).all()

        except SQLAlchemyError as e:
            logger.error(f"Failed to query events for log {log_id}: {e}", exc_info=True)
            raise StoreError(f"query events for log {log_id}: {e}") from e

        next_cursor = rows[-1].event_ts if len(rows) == page_size else None
        return [row.to_dict() for row in rows], next_cursor

    # ============================================================
    # SUMMARIES
    # ============================================================

    def put_summary(self, log_id: str, job_id: str, payload: Dict[str, Any]) -> None:
        """
        Store the summary document for a log file, replacing any earlier one.

        Concurrent jobs for the same log race here; the last write wins.
        """
        try:
            with self._session() as session:
                session.merge(SummaryRecord(
                    log_id=log_id,
                    job_id=job_id,
                    payload=json.dumps(payload),
                    updated_at=datetime.now(timezone.utc),
                ))
                session.commit()

                logger.debug(f"Saved summary for log {log_id} (job {job_id})")

        except SQLAlchemyError as e:
            logger.error(f"Failed to save summary for log {log_id}: {e}", exc_info=True)
            raise StoreError(f"save summary for log {log_id}: {e}") from e

    def get_summary(self, log_id: str) -> Optional[Dict[str, Any]]:
        try:
            with self._session() as session:
                record = session.get(SummaryRecord, log_id)
                return json.loads(record.payload) if record else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to get summary for log {log_id}: {e}", exc_info=True)
            raise StoreError(f"get summary for log {log_id}: {e}") from e
