"""
Ingestion Pipeline

Consumes one log file's line stream and produces its Summary:

1. Mark the job running
2. Per line: hash, count, parse, aggregate, batch
3. Flush the final batch
4. Save the Summary
5. Mark the job done

Any failure after step 1 marks the job as error and no Summary is written.
Lines are consumed strictly in order and every flush is awaited before the
next line is read, so a slow store slows the reader down.
"""

import logging
from contextlib import aclosing
from typing import Optional

from ..config_loader import config
from ..errors import StoreError
from ..schemas import MinuteBucket, Summary, TopEntry
from ..services.stores import EventStore, JobStore, LineSource, SummaryStore
from .aggregator import Aggregator
from .batcher import EventBatcher
from .hasher import ContentHasher
from .jobs import JobLifecycle
from .parser import parse_line

logger = logging.getLogger(__name__)


def build_summary(aggregator: Aggregator, digest: str, top: int = 10) -> Summary:
    """Assemble the Summary document from a finished aggregator and digest."""
    return Summary(
        total_lines=aggregator.total_lines,
        sha256=digest,
        unique_ips=len(aggregator.ip_counts),
        counts_by_status=dict(aggregator.status_counts),
        top_ips=[TopEntry(key=k, count=c) for k, c in aggregator.top_ips(top)],
        top_paths=[TopEntry(key=k, count=c) for k, c in aggregator.top_paths(top)],
        errors_over_time=[MinuteBucket(bucket=b, count=c) for b, c in aggregator.over_time()],
    )


class IngestionPipeline:
    """
    Orchestrates parser, hasher, aggregator and batcher over one stream.

    Holds no per-run state; each call to run() builds its own aggregator,
    hasher and batcher, so concurrent runs never share counters.
    """

    def __init__(
        self,
        source: LineSource,
        events: EventStore,
        summaries: SummaryStore,
        jobs: JobStore,
        batch_size: Optional[int] = None,
        top_n: Optional[int] = None
    ):
        self.source = source
        self.events = events
        self.summaries = summaries
        self.jobs = jobs
        self.batch_size = batch_size or config.get('ingestion.batch_size', 1000)
        self.top_n = top_n or config.get('ingestion.top_n', 10)

    async def run(self, job_id: str, log_id: str) -> Optional[Summary]:
        """
        Analyze one log file under an existing queued job.

        Args:
            job_id: Job created for this run
            log_id: Log file to read

        Returns:
            The saved Summary, or None when the run failed (the failure is
            recorded on the job)

        Raises:
            JobNotFound: the job does not exist, so it cannot be started
            InvalidTransition: the job was already started elsewhere
            StoreError: the run failed and the job store refused its error state
        """
        lifecycle = JobLifecycle(self.jobs, job_id)
        try:
            await lifecycle.start()
        except StoreError as e:
            logger.error(f"Could not start job {job_id}: {e}", exc_info=True)
            await self._fail(lifecycle, job_id, e)
            return None

        try:
            summary = await self._ingest(job_id, log_id)
            await self.summaries.put_summary(log_id, job_id, summary)
            await lifecycle.finish()
        except Exception as e:
            logger.error(f"Ingestion of log {log_id} failed (job {job_id}): {e}", exc_info=True)
            await self._fail(lifecycle, job_id, e)
            return None

        logger.info(
            f"Log {log_id} analyzed by job {job_id}: {summary.total_lines} lines, "
            f"{sum(summary.counts_by_status.values())} parsed, {summary.unique_ips} unique IPs"
        )
        return summary

    async def _fail(self, lifecycle: JobLifecycle, job_id: str, cause: Exception) -> None:
        try:
            await lifecycle.fail(cause)
        except StoreError as e:
            logger.error(
                f"Job {job_id} failed ({cause}) but its error state could not be recorded: {e}; "
                f"it stays {lifecycle.status.value} in the job store"
            )
            raise

    async def _ingest(self, job_id: str, log_id: str) -> Summary:
        aggregator = Aggregator()
        hasher = ContentHasher()
        batcher = EventBatcher(self.events, job_id, capacity=self.batch_size)

        async with aclosing(self.source.lines(log_id)) as lines:
            async for raw in lines:
                hasher.update(raw)
                aggregator.count_line()

                event = parse_line(raw.decode('utf-8', errors='replace'))
                if event is None:
                    continue

                aggregator.add(event)
                await batcher.add(event)

        await batcher.close()

        skipped = aggregator.total_lines - aggregator.parsed_lines
        if skipped:
            logger.debug(f"Job {job_id}: {skipped} line(s) did not match the access-log format")

        return build_summary(aggregator, hasher.hexdigest(), self.top_n)
