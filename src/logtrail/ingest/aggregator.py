"""
Aggregator

Frequency tables for one ingestion run: status codes, source addresses,
paths and per-minute buckets, plus top-N extraction.
"""

from collections import Counter
from typing import Dict, List, Tuple

from .parser import LogEvent


def minute_bucket(timestamp: str) -> str:
    """
    Bucket key for a raw timestamp.

    Keeps the first two colon-separated fields verbatim, so
    '10/Oct/2000:13:55:36 -0700' lands in '10/Oct/2000:13'. No calendar
    parsing and no timezone normalization.
    """
    return ':'.join(timestamp.split(':')[:2])


def top_n(counts: Dict[str, int], n: int) -> List[Tuple[str, int]]:
    """
    Highest counts first.

    sorted() is stable and dicts keep insertion order, so equal counts stay
    in the order their keys were first observed.
    """
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)[:n]


class Aggregator:
    """
    Statistics for exactly one pipeline run.

    Each run builds its own instance; nothing here is shared between jobs.
    """

    def __init__(self):
        self.total_lines = 0
        self.status_counts: Counter = Counter()
        self.ip_counts: Counter = Counter()
        self.path_counts: Counter = Counter()
        self.minute_counts: Counter = Counter()

    def count_line(self) -> None:
        """Count a delivered line, whether or not it parsed."""
        self.total_lines += 1

    def add(self, event: LogEvent) -> None:
        """Fold one parsed event into every histogram."""
        self.status_counts[event.status_text] += 1
        self.ip_counts[event.ip] += 1
        self.path_counts[event.path] += 1
        self.minute_counts[minute_bucket(event.timestamp)] += 1

    @property
    def parsed_lines(self) -> int:
        return sum(self.status_counts.values())

    def top_ips(self, n: int = 10) -> List[Tuple[str, int]]:
        return top_n(self.ip_counts, n)

    def top_paths(self, n: int = 10) -> List[Tuple[str, int]]:
        return top_n(self.path_counts, n)

    def over_time(self) -> List[Tuple[str, int]]:
        """Minute buckets in the order they were first seen."""
        return list(self.minute_counts.items())
