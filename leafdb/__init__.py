"""
LeafDB - Embedded document store with an append-only log.

This package provides a single-process store of JSON-like documents:
- LeafDB: the store (memory-only, or mirrored to a line-delimited log)
- A Mongo-style query language (nested partial matches, $gt/$regexp/
  $includes/... operators, $not/$or/$and combinators)
- Field-path modifiers ($add, $set, $push) and projections

Example:
    >>> from leafdb import LeafDB
    >>>
    >>> with LeafDB(name="tasks", directory="/var/lib/app") as db:
    ...     db.insert_one({"title": "Write docs", "tags": ["docs"], "points": 2})
    ...     db.update({"tags": {"$includes": "docs"}}, {"$add": {"points": 1}})
    ...     db.find({"points": {"$gte": 3}}, projection=["title"])

Architecture:
    client -> LeafDB -> DocumentIndex (memory)
                     -> LogStorage (append-only file, compacted on open)

Invariants:
    - The log is the source of truth; memory is a compacted cache of it
    - Identifiers are immutable once assigned
    - Deletions are tombstones until the next open() compacts them away
"""

from ._version import __version__
from .config import LeafDbSettings
from .errors import (
    CorruptRecordError,
    DuplicateIdentifierError,
    InvalidDocumentError,
    InvalidProjectionError,
    InvalidQueryError,
    InvalidUpdateError,
    LeafDbError,
    LogClosedError,
    ModeError,
    StorageError,
)
from .ids import generate_id
from .modifiers import modify, project
from .query import equals, match
from .store import CorruptRecord, LeafDB

__all__ = [
    # Version
    "__version__",
    # Store
    "LeafDB",
    "LeafDbSettings",
    "CorruptRecord",
    # Pure helpers
    "equals",
    "generate_id",
    "match",
    "modify",
    "project",
    # Errors
    "LeafDbError",
    "ModeError",
    "DuplicateIdentifierError",
    "InvalidDocumentError",
    "InvalidQueryError",
    "InvalidUpdateError",
    "InvalidProjectionError",
    "CorruptRecordError",
    "StorageError",
    "LogClosedError",
]
