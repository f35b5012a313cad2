"""
File-backed log storage for LeafDB.

One UTF-8 text file per store, one JSON record per line, no header and no
checksums. Compaction rewrites the file through a temporary sibling and an
atomic rename.

Invariants:
    - The handle is only ever opened in append mode
    - Lines are split on "\\n" only; other Unicode line breaks inside JSON
      strings are part of the record
    - Undecodable bytes are replaced, never raised, so a damaged line is
      reported as corrupt by the store instead of aborting the load
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence, TextIO, Union

from ..errors import LogClosedError

logger = logging.getLogger(__name__)

ENCODING = "utf-8"


class FileLogStorage:
    """Append-only line log stored in a single file.

    Example:
        >>> log = FileLogStorage("/var/lib/app/users.txt")
        >>> log.open()
        []
        >>> log.append('{"_id":"1"}')
        >>> log.close()
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._handle: Optional[TextIO] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def _require_open(self, operation: str) -> TextIO:
        if self._handle is None:
            raise LogClosedError(operation, str(self._path))
        return self._handle

    def _open_handle(self) -> None:
        self._handle = open(self._path, "a", encoding=ENCODING, newline="\n")

    def open(self) -> List[str]:
        """Open for appending, creating the file and its parents if needed."""
        if self._handle is not None:
            self.close()

        lines: List[str] = []
        if self._path.exists():
            data = self._path.read_bytes()
            lines = [chunk.decode(ENCODING, errors="replace") for chunk in data.split(b"\n")]
            if lines and lines[-1] == "":
                lines.pop()
        else:
            self._path.parent.mkdir(parents=True, exist_ok=True)

        self._open_handle()
        logger.debug(f"Opened log {self._path} ({len(lines)} lines)")
        return lines

    def close(self) -> None:
        if self._handle is None:
            return
        self._handle.close()
        self._handle = None
        logger.debug(f"Closed log {self._path}")

    def append(self, line: str) -> None:
        handle = self._require_open("append")
        handle.write(f"{line}\n")
        handle.flush()

    def overwrite(self, lines: Sequence[str]) -> None:
        """Atomically replace the file content with ``lines``."""
        self._require_open("overwrite")

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.",
            suffix=".tmp",
            dir=str(self._path.parent),
        )
        try:
            with os.fdopen(fd, "w", encoding=ENCODING, newline="\n") as tmp:
                for line in lines:
                    tmp.write(f"{line}\n")
                tmp.flush()
                os.fsync(tmp.fileno())
            self.close()
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        finally:
            if self._handle is None:
                self._open_handle()

        logger.debug(f"Rewrote log {self._path} ({len(lines)} lines)")

    def truncate(self) -> None:
        """Empty the file and keep it open for appending."""
        self._require_open("truncate")
        self.close()
        try:
            with open(self._path, "w", encoding=ENCODING):
                pass
        finally:
            self._open_handle()
        logger.debug(f"Truncated log {self._path}")
