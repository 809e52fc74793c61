"""
Ingestion Pipeline Tests

Drives the pipeline over in-memory line sources against a real SQLite store.
"""

import asyncio
import hashlib
import logging

import pytest
from sqlmodel import Session, func, select

from logtrail.errors import ErrorKind, JobNotFound, StoreError
from logtrail.ingest.pipeline import IngestionPipeline
from logtrail.models import EventRecord, JobStatus

from helpers import ListSource, RecordingStore, make_line, numbered_ts


def run_pipeline(store, source, log_id):
    pipeline = IngestionPipeline(source=source, events=store, summaries=store, jobs=store)

    async def scenario():
        job = await store.create_job(log_id)
        summary = await pipeline.run(job.id, log_id)
        return await store.get_job(job.id), summary

    return asyncio.run(scenario())


def count_events(db, log_id):
    with Session(db.engine) as session:
        return session.exec(
            select(func.count()).select_from(EventRecord).where(EventRecord.log_id == log_id)
        ).one()


def test_three_line_scenario(store, log_file):
    lines = [
        make_line(ip="10.1.1.1", status="200", path="/"),
        make_line(ip="10.1.1.1", status="404", path="/missing", ts="10/Oct/2000:13:56:01 -0700"),
        "this line is not an access log entry",
    ]

    job, summary = run_pipeline(store, ListSource(lines), log_file.id)

    assert job.status == JobStatus.DONE
    assert summary.total_lines == 3
    assert summary.unique_ips == 1
    assert summary.counts_by_status == {"200": 1, "404": 1}
    assert [e.model_dump() for e in summary.top_ips] == [{"key": "10.1.1.1", "count": 2}]

    expected = hashlib.sha256("".join(lines).encode("utf-8")).hexdigest()
    assert summary.sha256 == expected


def test_summary_is_saved_with_wire_field_names(store, log_file):
    run_pipeline(store, ListSource([make_line()]), log_file.id)

    saved = asyncio.run(store.get_summary(log_file.id)).to_dict()

    assert set(saved) == {
        "totalLines", "sha256", "uniqueIps", "countsByStatus",
        "topIps", "topPaths", "errorsOverTime",
    }
    assert saved["errorsOverTime"] == [{"bucket": "10/Oct/2000:13", "count": 1}]


def test_counting_invariants(store, log_file):
    lines = []
    for i in range(40):
        lines.append(make_line(
            ip=f"10.0.{i % 3}.1",
            path=f"/p{i % 7}",
            status=("200", "301", "404", "500")[i % 4],
            ts=numbered_ts(i * 37),
        ))
        if i % 5 == 0:
            lines.append("junk")

    job, summary = run_pipeline(store, ListSource(lines), log_file.id)

    status_total = sum(summary.counts_by_status.values())
    assert summary.total_lines == len(lines)
    assert status_total == 40 < summary.total_lines
    assert sum(b.count for b in summary.errors_over_time) == status_total
    counts = [e.count for e in summary.top_paths]
    assert counts == sorted(counts, reverse=True)


def test_1500_events_flush_twice_before_done(db, log_file):
    store = RecordingStore(db)
    lines = [make_line(ts=numbered_ts(i)) for i in range(1500)]

    job, summary = run_pipeline(store, ListSource(lines), log_file.id)

    assert store.flushes == [(1000, "running"), (500, "running")]
    assert job.status == JobStatus.DONE
    assert count_events(db, log_file.id) == 1500


def test_flush_failure_on_second_batch(db, log_file):
    store = RecordingStore(db, fail_on_flush=2)
    lines = [make_line(ts=numbered_ts(i)) for i in range(2500)]

    job, summary = run_pipeline(store, ListSource(lines), log_file.id)

    assert summary is None
    assert job.status == JobStatus.ERROR
    assert job.error
    assert job.error_kind == ErrorKind.STORE.value
    assert len(store.flushes) == 2
    assert count_events(db, log_file.id) == 1000
    assert asyncio.run(store.get_summary(log_file.id)) is None


def test_stream_failure_marks_job_error(db, store, log_file):
    lines = [make_line(ts=numbered_ts(i)) for i in range(10)]

    job, summary = run_pipeline(store, ListSource(lines, fail_after=5), log_file.id)

    assert summary is None
    assert job.status == JobStatus.ERROR
    assert job.error_kind == ErrorKind.STREAM.value
    assert "connection reset" in job.error
    assert asyncio.run(store.get_summary(log_file.id)) is None


def test_rerun_creates_new_job_and_overwrites_summary(store, log_file):
    first_job, _ = run_pipeline(store, ListSource([make_line()]), log_file.id)
    second_job, _ = run_pipeline(store, ListSource([make_line(), make_line()]), log_file.id)

    assert first_job.id != second_job.id
    assert asyncio.run(store.get_job(first_job.id)).status == JobStatus.DONE
    assert asyncio.run(store.get_summary(log_file.id)).total_lines == 2


def test_events_sharing_a_timestamp_collide(db, store, log_file):
    lines = [make_line(ip="10.0.0.1"), make_line(ip="10.0.0.2")]

    run_pipeline(store, ListSource(lines), log_file.id)

    assert count_events(db, log_file.id) == 1
    events, _ = db.query_events_range(log_file.id)
    assert events[0]["ip"] == "10.0.0.2"


def test_missing_job_cannot_start(store, log_file):
    pipeline = IngestionPipeline(
        source=ListSource([make_line()]), events=store, summaries=store, jobs=store
    )
    with pytest.raises(JobNotFound):
        asyncio.run(pipeline.run("no-such-job", log_file.id))


class ErrorStateRefusingStore(RecordingStore):
    """Fails the first flush, then refuses to record the job's error state."""

    def __init__(self, db):
        super().__init__(db, fail_on_flush=1)

    async def transition(self, job_id, status, error=None, error_kind=None):
        if status == JobStatus.ERROR:
            raise StoreError("job store unavailable")
        return await super().transition(job_id, status, error=error, error_kind=error_kind)


def test_unrecordable_failure_is_logged_and_raised(db, log_file, caplog):
    store = ErrorStateRefusingStore(db)

    with caplog.at_level(logging.ERROR, logger="logtrail.ingest.pipeline"):
        with pytest.raises(StoreError, match="job store unavailable"):
            run_pipeline(store, ListSource([make_line()]), log_file.id)

    assert any(
        "error state could not be recorded" in record.getMessage()
        and "stays running" in record.getMessage()
        for record in caplog.records
    )
    assert db.find_jobs_by_log(log_file.id, 1)[0].status == JobStatus.RUNNING
