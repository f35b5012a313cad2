"""
Base protocol for LeafDB log storage.

This module defines the LogStorage protocol that every log backend must
implement. A log is an ordered sequence of text lines, each holding one
serialized record; the store appends to it on every mutation and rewrites
it wholesale during compaction.

Invariants:
    - Lines are returned by open() in the order they were appended
    - Blank lines carry no meaning and may be returned as-is
    - Writes on a log that is not open raise LogClosedError
    - Filesystem failures propagate as OSError

How to change safely:
    - Protocol changes require updating all implementations
    - Keep overwrite() all-or-nothing: a failed compaction must leave the
      previous log readable
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, runtime_checkable


@runtime_checkable
class LogStorage(Protocol):
    """Protocol for append-only log backends.

    Durability contract:
        - append() returns only after the line was handed to the OS
        - overwrite() replaces the whole content or nothing

    Example:
        >>> log = FileLogStorage(Path("/tmp/db/users.txt"))
        >>> lines = log.open()
        >>> log.append('{"_id":"1"}')
        >>> log.close()
    """

    @abstractmethod
    def open(self) -> List[str]:
        """Open the log for appending and return its existing lines.

        Creates the log (and any parent directories) if it does not exist.
        Calling open() on an open log reopens it.

        Returns:
            Existing lines, without line terminators
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the underlying handle. No-op if not open."""
        ...

    @abstractmethod
    def append(self, line: str) -> None:
        """Append a single line.

        Raises:
            LogClosedError: If the log is not open
        """
        ...

    @abstractmethod
    def overwrite(self, lines: Sequence[str]) -> None:
        """Replace the whole log content with ``lines``.

        Raises:
            LogClosedError: If the log is not open
        """
        ...

    @abstractmethod
    def truncate(self) -> None:
        """Empty the log.

        Raises:
            LogClosedError: If the log is not open
        """
        ...

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the log currently accepts writes."""
        ...

    @property
    @abstractmethod
    def path(self) -> Optional[Path]:
        """Location of the log, if it lives on disk."""
        ...
