"""
Line builders and fake collaborators shared by the tests.
"""

from logtrail.errors import StoreError, StreamError
from logtrail.services.stores import SqlStore


def make_line(
    ip: str = "127.0.0.1",
    ts: str = "10/Oct/2000:13:55:36 -0700",
    method: str = "GET",
    path: str = "/index.html",
    status: str = "200",
    size: str = "2326",
    referrer: str = "-",
    user_agent: str = "Mozilla/5.0"
) -> str:
    """Build one well-formed combined-format access-log line."""
    return (
        f'{ip} - - [{ts}] "{method} {path} HTTP/1.1" {status} {size} '
        f'"{referrer}" "{user_agent}"'
    )


def numbered_ts(i: int) -> str:
    """Distinct, lexically ordered timestamp for the i-th event (i < 36000)."""
    return f"10/Oct/2000:{10 + i // 3600:02d}:{(i // 60) % 60:02d}:{i % 60:02d} -0700"


class ListSource:
    """Line source serving in-memory lines, optionally failing part-way."""

    def __init__(self, lines, fail_after=None):
        self.raw = [line.encode('utf-8') if isinstance(line, str) else line for line in lines]
        self.fail_after = fail_after

    async def lines(self, log_id):
        for i, raw in enumerate(self.raw):
            if self.fail_after is not None and i == self.fail_after:
                raise StreamError(f"connection reset while reading {log_id}")
            yield raw


class RecordingStore(SqlStore):
    """
    SqlStore that records every flush along with the job's status at that
    moment, and can fail a chosen flush.
    """

    def __init__(self, db, fail_on_flush=None):
        super().__init__(db)
        self.fail_on_flush = fail_on_flush
        self.flushes = []

    async def insert_batch(self, job_id, events):
        number = len(self.flushes) + 1
        job = await self.get_job(job_id)
        self.flushes.append((len(events), job.status.value))
        if number == self.fail_on_flush:
            raise StoreError(f"simulated write failure on batch {number}")
        await super().insert_batch(job_id, events)
