"""
Error types for LeafDB.

This module defines all exception types raised by the store:
- LeafDbError: Base exception
- ModeError: Persistent-only operation on a memory-only store
- DuplicateIdentifierError: Insert with an identifier already present
- InvalidDocumentError / InvalidQueryError / InvalidUpdateError /
  InvalidProjectionError: Argument validation failures
- CorruptRecordError: Log line that failed to load
- StorageError / LogClosedError: Log primitive state errors

Filesystem failures are not wrapped: they surface as ``OSError``.

Invariants:
    - All errors inherit from LeafDbError
    - Every error carries a stable ``code`` for programmatic handling
    - Validation errors are raised before any state is mutated
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional


def _describe(value: Any) -> str:
    """Render a value for an error message without failing on odd types."""
    try:
        return json.dumps(value, default=repr)
    except (TypeError, ValueError):
        return repr(value)


class LeafDbError(Exception):
    """Base exception for all LeafDB errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "LEAFDB_ERROR"
        self.details = details or {}


class ModeError(LeafDbError):
    """Persistent-only operation invoked on a memory-only store.

    Raised when ``open()`` or ``close()`` is called on a store that was
    created without a directory.
    """

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Tried to call '{operation}()' in memory mode",
            code="MODE_ERROR",
            details={"operation": operation},
        )
        self.operation = operation


class DuplicateIdentifierError(LeafDbError):
    """Insert with an identifier that is already stored."""

    def __init__(self, doc_id: str) -> None:
        super().__init__(
            f"Duplicate doc: {doc_id}",
            code="DUPLICATE_ID",
            details={"_id": doc_id},
        )
        self.doc_id = doc_id


class InvalidDocumentError(LeafDbError):
    """Draft or document failed shape validation.

    Raised when:
    - The value is not an object
    - A key uses the reserved ``$`` prefix at any depth
    - A top-level key contains the path separator or the ``__`` prefix
    - A value is not JSON-compatible
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="INVALID_DOCUMENT",
            details={"errors": errors or []},
        )
        self.errors = errors or []


class InvalidQueryError(LeafDbError):
    """Query is not an object or uses an unrecognized operator."""

    def __init__(self, message: str, query: Any = None) -> None:
        super().__init__(
            message,
            code="INVALID_QUERY",
            details={"query": _describe(query)},
        )
        self.query = query


class InvalidUpdateError(LeafDbError):
    """Update mixes plain fields and modifiers, or misuses a modifier."""

    def __init__(self, message: str, update: Any = None) -> None:
        super().__init__(
            message,
            code="INVALID_UPDATE",
            details={"update": _describe(update)},
        )
        self.update = update


class InvalidProjectionError(LeafDbError):
    """Projection is not a list of plain field paths."""

    def __init__(self, projection: Any) -> None:
        super().__init__(
            f"Invalid projection: {_describe(projection)}",
            code="INVALID_PROJECTION",
            details={"projection": _describe(projection)},
        )
        self.projection = projection


class CorruptRecordError(LeafDbError):
    """A log line could not be loaded as a document or tombstone.

    Collected into the list returned by ``LeafDB.open()``; raised only when
    the store is opened in strict mode.

    Attributes:
        raw: The offending line, verbatim
        line_number: 1-based line number within the log file
        reason: Why the line was rejected
    """

    def __init__(self, raw: str, reason: str, line_number: Optional[int] = None) -> None:
        where = f" at line {line_number}" if line_number is not None else ""
        super().__init__(
            f"Corrupt record{where}: {reason}",
            code="CORRUPT_RECORD",
            details={"raw": raw, "line_number": line_number, "reason": reason},
        )
        self.raw = raw
        self.line_number = line_number
        self.reason = reason


class StorageError(LeafDbError):
    """Base exception for log storage state errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        path: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code=code or "STORAGE_ERROR",
            details={"path": path},
        )
        self.path = path


class LogClosedError(StorageError):
    """Write attempted on a log that has not been opened."""

    def __init__(self, operation: str, path: Optional[str] = None) -> None:
        super().__init__(
            f"Tried to call '{operation}()' on a closed log",
            code="LOG_CLOSED",
            path=path,
        )
        self.operation = operation
