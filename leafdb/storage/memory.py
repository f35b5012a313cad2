"""
In-memory log storage for testing.

This module provides a LogStorage backend that keeps its lines in a list:
- Unit tests of the store without touching the filesystem
- Simulating a pre-existing (possibly damaged) log
- Injecting write failures to exercise error propagation

Invariants:
    - Lines survive close()/open() cycles of the same instance
    - Provides the same open/closed state rules as FileLogStorage

How to change safely:
    - This is test-only code, changes don't affect file-backed stores
    - Keep interface compatible with the LogStorage protocol
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ..errors import LogClosedError

logger = logging.getLogger(__name__)


class InMemoryLogStorage:
    """In-memory implementation of LogStorage for testing.

    Example:
        >>> log = InMemoryLogStorage(['{"_id":"1"}', "not json"])
        >>> db = LeafDB(storage=log)
        >>> corrupt = db.open()
        >>> log.get_lines()
        ['{"_id":"1"}']
    """

    def __init__(self, lines: Optional[Iterable[str]] = None) -> None:
        """Initialize in-memory log.

        Args:
            lines: Pre-existing log content, one record per item
        """
        self._lines: List[str] = list(lines or [])
        self._open = False
        self._failure: Optional[BaseException] = None
        self.open_count = 0

    @property
    def path(self) -> Optional[Path]:
        return None

    @property
    def is_open(self) -> bool:
        return self._open

    def _check_write(self, operation: str) -> None:
        if not self._open:
            raise LogClosedError(operation)
        if self._failure is not None:
            failure, self._failure = self._failure, None
            raise failure

    def open(self) -> List[str]:
        self._open = True
        self.open_count += 1
        logger.debug(f"InMemoryLogStorage opened ({len(self._lines)} lines)")
        return list(self._lines)

    def close(self) -> None:
        self._open = False

    def append(self, line: str) -> None:
        self._check_write("append")
        self._lines.append(line)

    def overwrite(self, lines: Sequence[str]) -> None:
        self._check_write("overwrite")
        self._lines = list(lines)

    def truncate(self) -> None:
        self._check_write("truncate")
        self._lines = []

    # Testing helpers

    def get_lines(self) -> List[str]:
        """Current log content (testing helper)."""
        return list(self._lines)

    def get_line_count(self) -> int:
        return len(self._lines)

    def write_raw(self, line: str) -> None:
        """Append a line bypassing the open check (testing helper)."""
        self._lines.append(line)

    def inject_failure(self, exception: BaseException) -> None:
        """Make the next write operation raise ``exception``."""
        self._failure = exception
