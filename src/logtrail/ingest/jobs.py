"""
Job State Machine

Drives one job through queued -> running -> done | error against a JobStore.
"""

import logging
from typing import Optional

from ..errors import InvalidTransition, LogtrailError
from ..models import Job, JobStatus
from ..services.stores import JobStore

logger = logging.getLogger(__name__)


class JobLifecycle:
    """
    Tracks the status of a single job as this process moves it along.

    Every move is checked against JobStatus's transition table before the
    store is touched; the store checks again against the persisted row.
    """

    def __init__(self, store: JobStore, job_id: str, status: JobStatus = JobStatus.QUEUED):
        self.store = store
        self.job_id = job_id
        self.status = status

    async def _move(
        self,
        target: JobStatus,
        error: Optional[str] = None,
        error_kind: Optional[str] = None
    ) -> Job:
        if not self.status.can_transition_to(target):
            raise InvalidTransition(
                f"job {self.job_id} cannot move from {self.status.value} to {target.value}"
            )

        job = await self.store.transition(self.job_id, target, error=error, error_kind=error_kind)
        self.status = job.status
        return job

    async def start(self) -> Job:
        """Mark the job running. Raises JobNotFound if the job was never created."""
        job = await self._move(JobStatus.RUNNING)
        logger.info(f"Job {self.job_id} running (log {job.log_id})")
        return job

    async def finish(self) -> Job:
        """Mark the job done. Only call once the summary is saved."""
        job = await self._move(JobStatus.DONE)
        logger.info(f"Job {self.job_id} done")
        return job

    async def fail(self, exc: BaseException) -> Job:
        """Mark the job failed, recording the error's message and kind."""
        if isinstance(exc, LogtrailError):
            message, kind = exc.detail, exc.kind.value
        else:
            message, kind = str(exc) or type(exc).__name__, None

        job = await self._move(JobStatus.ERROR, error=message, error_kind=kind)
        logger.warning(f"Job {self.job_id} failed: {message}")
        return job
