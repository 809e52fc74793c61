"""
Local File Source

Streams the lines of a registered log file from disk.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

from ..config_loader import config
from ..errors import LogFileNotFound, StreamError
from .database import DatabaseService

logger = logging.getLogger(__name__)


_LINE_BREAK = re.compile(rb"\r\n|\r|\n")


def split_lines(buffer: bytes, final: bool = False) -> Tuple[List[bytes], bytes]:
    """
    Split buffered bytes on "\\n", "\\r\\n" or a lone "\\r".

    Returns the complete lines and the unterminated remainder to prepend to
    the next chunk. A trailing "\\r" is held back unless final, since the
    next chunk may start with its "\\n".
    """
    held = b""
    if not final and buffer.endswith(b"\r"):
        buffer, held = buffer[:-1], b"\r"

    lines = _LINE_BREAK.split(buffer)
    rest = lines.pop()
    return lines, rest + held


class LocalFileSource:
    """
    Resolves a LogFile's storage_key under paths.storage and reads it in
    blocking chunks on a worker thread.

    Lines end at "\\n", "\\r\\n" or a lone "\\r". A final line without a
    terminator is still yielded; an empty one after the last break is not.

    Absolute storage keys are used as-is.
    """

    def __init__(
        self,
        db: DatabaseService,
        storage_dir: Optional[str] = None,
        read_hint: Optional[int] = None
    ):
        self.db = db
        self.storage_dir = Path(storage_dir or config.get('paths.storage', './data/uploads'))
        self.read_hint = read_hint or config.get('ingestion.read_hint', 65536)

    def resolve(self, log_id: str) -> Path:
        log_file = self.db.get_log_file(log_id)
        if log_file is None:
            raise LogFileNotFound(f"log {log_id} is not registered")

        path = Path(log_file.storage_key)
        if not path.is_absolute():
            path = self.storage_dir / path
        return path

    async def lines(self, log_id: str) -> AsyncIterator[bytes]:
        """
        Yield each line's raw bytes without its terminator.

        Raises:
            LogFileNotFound: the log id is not registered
            StreamError: the file cannot be opened or a read fails
        """
        path = await asyncio.to_thread(self.resolve, log_id)

        try:
            handle = await asyncio.to_thread(open, path, 'rb')
        except OSError as e:
            raise StreamError(f"cannot open {path}: {e}") from e

        logger.debug(f"Streaming log {log_id} from {path}")
        pending = b""
        try:
            while True:
                try:
                    chunk = await asyncio.to_thread(handle.read, self.read_hint)
                except OSError as e:
                    raise StreamError(f"read failed on {path}: {e}") from e

                lines, pending = split_lines(pending + chunk, final=not chunk)
                for raw in lines:
                    yield raw
                if not chunk:
                    break

            if pending:
                yield pending
        finally:
            handle.close()
