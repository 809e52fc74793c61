"""
Content Hasher

Running SHA-256 over the raw bytes of every line, in file order,
terminators excluded.
"""

import hashlib


class ContentHasher:
    """
    Incremental digest of a line stream.

    Fed the same lines the parser sees, parseable or not, so the digest
    identifies the file rather than validating its content.
    """

    def __init__(self):
        self._sha = hashlib.sha256()
        self._digest = None

    def update(self, raw_line: bytes) -> None:
        if self._digest is not None:
            raise RuntimeError("ContentHasher already finalized")
        self._sha.update(raw_line)

    def hexdigest(self) -> str:
        """Finalize (once) and return the hex digest."""
        if self._digest is None:
            self._digest = self._sha.hexdigest()
        return self._digest
