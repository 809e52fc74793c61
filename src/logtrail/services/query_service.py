"""
Query Service

Read-only, paginated access to the events persisted for a log file.
"""

import logging
from typing import Any, Dict, List, Optional

from ..schemas import EventPage, EventQuery
from .stores import EventStore

logger = logging.getLogger(__name__)


class EventQueryService:
    """
    Filtered, paginated event reads.

    Raw events are fetched page by page from the store (range-restricted on
    the timestamp when a bound is given) until page * limit of them have been
    collected or the store runs out. Address and status filters are applied
    afterwards, in memory, and the requested window is sliced out.

    Consequences worth knowing:
    - Cost grows with the requested page depth, not with limit alone.
      This is not cursor pagination; keep it to moderate event volumes.
    - total is the filtered count among the events fetched so far, not the
      true total, whenever filters exclude records that were never fetched.
    - Results can shift if events are written between two queries.

    Holds no state between calls and is safe to use concurrently with itself
    and with running ingestions.
    """

    def __init__(self, store: EventStore):
        self.store = store

    async def query(self, log_id: str, query: Optional[EventQuery] = None) -> EventPage:
        """
        Read one page of events for a log file.

        Args:
            log_id: Log file identifier
            query: Filters and paging; defaults to page 1, ascending

        Returns:
            EventPage with page, limit, total and items
        """
        query = query or EventQuery()
        needed = query.page * query.limit

        items: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        fetches = 0

        while len(items) < needed:
            batch, cursor = await self.store.query_range(
                log_id,
                query.time_from,
                query.time_to,
                not query.descending,
                cursor,
            )
            items.extend(batch)
            fetches += 1
            if cursor is None:
                break

        if query.ip:
            items = [e for e in items if e.get('ip') == query.ip]
        if query.status is not None:
            items = [e for e in items if e.get('status') == query.status]

        start = (query.page - 1) * query.limit
        window = items[start:start + query.limit]

        logger.debug(
            f"Events for log {log_id}: page {query.page} x {query.limit}, "
            f"{fetches} fetch(es), {len(items)} matched, {len(window)} returned"
        )
        return EventPage(page=query.page, limit=query.limit, total=len(items), items=window)
