"""
Access-Log Line Parser

Matches one line of Common/Combined Log Format text:

    ADDRESS - - [TIMESTAMP] "METHOD TARGET PROTOCOL" STATUS BYTES "REFERRER" "USER_AGENT"

A line either matches the whole pattern or is rejected; there is no
partial recovery.
"""

import re
from dataclasses import dataclass
from typing import Optional


ACCESS_LOG_PATTERN = re.compile(
    r'^(?P<ip>\S+) \S+ \S+ '
    r'\[(?P<timestamp>[^\]]+)\] '
    r'"(?P<method>\S+) (?P<path>[^"]+) (?P<protocol>\S+)" '
    r'(?P<status>\d{3}) (?P<bytes>\d+|-) '
    r'"(?P<referrer>[^"]*)" "(?P<user_agent>[^"]*)"$'
)


@dataclass(frozen=True)
class LogEvent:
    """One successfully parsed access-log line."""
    timestamp: str
    ip: str
    method: str
    path: str
    status: int
    bytes: int
    status_text: str


def parse_line(line: str) -> Optional[LogEvent]:
    """
    Parse one line (without its terminator).

    Args:
        line: Raw line text

    Returns:
        LogEvent, or None when the line does not match the grammar
    """
    match = ACCESS_LOG_PATTERN.match(line)
    if not match:
        return None

    status_text = match.group('status')
    bytes_text = match.group('bytes')

    return LogEvent(
        timestamp=match.group('timestamp'),
        ip=match.group('ip'),
        method=match.group('method'),
        path=match.group('path'),
        status=int(status_text),
        bytes=0 if bytes_text == '-' else int(bytes_text),
        status_text=status_text,
    )
