"""
logtrail CLI

Usage:
    python -m logtrail register access.log --owner alice
    python -m logtrail analyze LOG_ID [--timeout 600]
    python -m logtrail summary LOG_ID
    python -m logtrail events LOG_ID [--page 2] [--limit 50] [--ip 10.0.0.1] [--status 404]
                                     [--from TS] [--to TS] [--desc | --sort=-eventTs]
    python -m logtrail jobs LOG_ID
    python -m logtrail logs [--owner alice]
    python -m logtrail delete LOG_ID

All commands print JSON to stdout.
"""

import argparse
import asyncio
import hashlib
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from .analysis import AnalysisService
from .errors import LogtrailError
from .logging_config import get_logger, setup_logging
from .models import JobStatus
from .schemas import EventQuery
from .services.database import DatabaseService

logger = get_logger(__name__)


def file_sha256(path: Path) -> str:
    """SHA-256 of a file's bytes, read in chunks."""
    hasher = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(8192), b''):
            hasher.update(chunk)
    return hasher.hexdigest()


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def _register(service: AnalysisService, args) -> int:
    path = Path(args.path).resolve()
    if not path.is_file():
        print(f"No such file: {path}", file=sys.stderr)
        return 1

    log_file = await service.register_log_file(
        owner=args.owner,
        filename=path.name,
        storage_key=str(path),
        size_bytes=path.stat().st_size,
        sha256=await asyncio.to_thread(file_sha256, path),
    )
    _print(log_file.model_dump())
    return 0


async def _analyze(service: AnalysisService, args) -> int:
    started = await service.start_analysis(args.log_id)
    logger.info(f"Started job {started.job_id}")

    job = await asyncio.wait_for(service.wait(started.job_id), timeout=args.timeout)
    _print(job.to_dict())
    return 0 if job.status == JobStatus.DONE else 1


async def _summary(service: AnalysisService, args) -> int:
    summary = await service.get_summary(args.log_id)
    if summary is None:
        print(f"No summary for log {args.log_id}", file=sys.stderr)
        return 1
    _print(summary.to_dict())
    return 0


async def _events(service: AnalysisService, args) -> int:
    query = EventQuery.from_params(
        page=args.page,
        limit=args.limit,
        ip=args.ip,
        status=args.status,
        time_from=args.time_from,
        time_to=args.time_to,
        sort="-eventTs" if args.desc else args.sort,
    )
    page = await service.query_events(args.log_id, query)
    _print(page.model_dump())
    return 0


async def _jobs(service: AnalysisService, args) -> int:
    jobs = await service.list_jobs(args.log_id, limit=args.limit)
    _print([job.to_dict() for job in jobs])
    return 0


async def _logs(service: AnalysisService, args) -> int:
    log_files = await asyncio.to_thread(service.db.list_log_files, args.owner, args.limit)
    _print([log_file.model_dump() for log_file in log_files])
    return 0


async def _delete(service: AnalysisService, args) -> int:
    removed = await service.delete_log(args.log_id)
    _print({"ok": True, "logId": args.log_id, "eventsRemoved": removed})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="logtrail",
        description="Ingest access logs and query their events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--db", help="SQLite database file (default: database.filename)")
    parser.add_argument("--log-level", help="Override the configured log level")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("register", help="Register a log file on disk")
    p.add_argument("path")
    p.add_argument("--owner", default="local")
    p.set_defaults(handler=_register)

    p = sub.add_parser("analyze", help="Analyze a registered log file and wait for the job")
    p.add_argument("log_id")
    p.add_argument("--timeout", type=float, default=None, help="Seconds to wait before giving up")
    p.set_defaults(handler=_analyze)

    p = sub.add_parser("summary", help="Show the latest summary of a log file")
    p.add_argument("log_id")
    p.set_defaults(handler=_summary)

    p = sub.add_parser("events", help="Page through the events of a log file")
    p.add_argument("log_id")
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--limit", type=int, default=None)
    p.add_argument("--ip")
    p.add_argument("--status", type=int)
    p.add_argument("--from", dest="time_from")
    p.add_argument("--to", dest="time_to")
    p.add_argument("--sort", default="eventTs",
                   help="Prefix with '-' for descending order; pass it as --sort=-eventTs")
    p.add_argument("--desc", action="store_true", help="Newest events first")
    p.set_defaults(handler=_events)

    p = sub.add_parser("jobs", help="List recent jobs of a log file")
    p.add_argument("log_id")
    p.add_argument("--limit", type=int, default=5)
    p.set_defaults(handler=_jobs)

    p = sub.add_parser("logs", help="List registered log files")
    p.add_argument("--owner")
    p.add_argument("--limit", type=int, default=100)
    p.set_defaults(handler=_logs)

    p = sub.add_parser("delete", help="Delete a log file, its summary and its events")
    p.add_argument("log_id")
    p.set_defaults(handler=_delete)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level)

    try:
        service = AnalysisService(db=DatabaseService(args.db))
        return asyncio.run(args.handler(service, args))
    except LogtrailError as e:
        logger.error(str(e))
        print(str(e), file=sys.stderr)
        return 1
    except asyncio.TimeoutError:
        print("Timed out waiting for the job to finish", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130
