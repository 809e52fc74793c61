"""
Event Batcher

Buffers parsed events and hands fixed-size batches to the event store.

Delivery is at-least-once and not idempotent: a failed flush aborts the
run, but batches already written stay written, so re-running a failed job
can store duplicate or overlapping events for the same LogFile.
"""

import logging
from typing import List, Optional

from ..config_loader import config
from ..services.stores import EventStore
from .parser import LogEvent

logger = logging.getLogger(__name__)


class EventBatcher:
    """Append-only buffer that flushes every `capacity` events."""

    def __init__(self, store: EventStore, job_id: str, capacity: Optional[int] = None):
        self.store = store
        self.job_id = job_id
        self.capacity = capacity or config.get('ingestion.batch_size', 1000)
        self._buffer: List[LogEvent] = []
        self.flushes = 0
        self.events_flushed = 0

    async def add(self, event: LogEvent) -> None:
        """Buffer an event, flushing once the buffer is full."""
        self._buffer.append(event)
        if len(self._buffer) >= self.capacity:
            await self.flush()

    async def flush(self) -> None:
        """
        Write the buffered events as one batch.

        Errors from the store propagate unchanged; the buffer is only
        cleared after a successful write.
        """
        if not self._buffer:
            return

        batch = self._buffer
        await self.store.insert_batch(self.job_id, batch)

        self._buffer = []
        self.flushes += 1
        self.events_flushed += len(batch)
        logger.debug(
            f"Job {self.job_id}: flushed batch {self.flushes} "
            f"({len(batch)} events, {self.events_flushed} total)"
        )

    async def close(self) -> None:
        """Flush whatever remains once the stream has ended."""
        await self.flush()
