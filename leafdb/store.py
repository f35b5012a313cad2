"""
Store coordinator for LeafDB.

This module composes the in-memory document index with an append-only log
and owns the durability protocols:
- open: replay the log, reconcile tombstones, collect corrupt lines, compact
- insert/update: write the memory index, then append the full document
- delete: drop from the memory index, then append a tombstone
- drop: clear the memory index and truncate the log

The log is the source of truth; the memory index is a derived, compacted
cache that can always be rebuilt by calling open() again.

Invariants:
    - Validation errors are raised before memory or log are touched
    - Memory is updated before the log append; a failed append propagates
      and leaves memory updated (no rollback)
    - An identifier never changes once assigned
    - After open() the log holds exactly one line per live document

How to change safely:
    - Every mutation must go through _write() or _remove() so memory and
      log stay in step
    - Keep the log line format readable by document.parse_record
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .config import LeafDbSettings
from .document import (
    ID_FIELD,
    Document,
    is_id,
    is_object,
    is_tombstone,
    parse_record,
    to_line,
    tombstone,
    validate_or_raise,
)
from .errors import (
    CorruptRecordError,
    DuplicateIdentifierError,
    InvalidDocumentError,
    InvalidQueryError,
    LogClosedError,
    ModeError,
)
from .ids import generate_id
from .memory import DocumentIndex
from .modifiers import modify, project, validate_projection, validate_update
from .query import evaluate, resolve_query
from .storage import FileLogStorage, LogStorage

logger = logging.getLogger(__name__)

QueryOrId = Union[str, Dict[str, Any], None]


@dataclass(frozen=True)
class CorruptRecord:
    """A log line that could not be loaded during open().

    Attributes:
        raw: The line, verbatim
        line_number: 1-based line number in the log
        error: Why the line was rejected
    """

    raw: str
    line_number: int
    error: CorruptRecordError


class LeafDB:
    """Embedded document store.

    Runs in memory-only mode unless a directory (or an explicit log
    storage) is given. In persistent mode every mutation is mirrored to
    the log, and open() must be called before the first mutation.

    Thread safety:
        None. Callers serialize access to one instance themselves.

    Example:
        >>> db = LeafDB(name="users", directory="/var/lib/app")
        >>> db.open()
        []
        >>> doc = db.insert_one({"name": "Ada", "langs": ["en", "fr"]})
        >>> db.find({"langs": {"$includes": "fr"}})
        [{'_id': '...', 'name': 'Ada', 'langs': ['en', 'fr']}]
        >>> db.close()
    """

    def __init__(
        self,
        name: str = "leafdb",
        directory: Optional[Union[str, Path]] = None,
        *,
        strict: bool = False,
        settings: Optional[LeafDbSettings] = None,
        storage: Optional[LogStorage] = None,
    ) -> None:
        """Initialize the store.

        Args:
            name: Log file stem
            directory: Directory of the log file; None for memory-only mode
            strict: Abort open() on the first corrupt line and reject whole
                insert batches on the first invalid draft
            settings: Full settings object; overrides the arguments above
            storage: Log backend to use instead of the file derived from
                the settings
        """
        if settings is None:
            settings = LeafDbSettings(
                name=name,
                directory=str(directory) if directory is not None else None,
                strict=strict,
            )
        self.settings = settings
        self._memory = DocumentIndex()
        self._storage: Optional[LogStorage] = storage
        if self._storage is None and settings.path is not None:
            self._storage = FileLogStorage(settings.path)
        self.corrupt: List[CorruptRecord] = []

    @classmethod
    def from_env(cls, storage: Optional[LogStorage] = None) -> LeafDB:
        """Create a store configured from ``LEAFDB_*`` environment variables."""
        return cls(settings=LeafDbSettings(), storage=storage)

    @property
    def persistent(self) -> bool:
        """Whether mutations are mirrored to a log."""
        return self._storage is not None

    @property
    def path(self) -> Optional[Path]:
        return self._storage.path if self._storage is not None else None

    @property
    def is_open(self) -> bool:
        return self._storage is not None and self._storage.is_open

    # ---------- lifecycle ----------

    def open(self, strict: Optional[bool] = None) -> List[CorruptRecord]:
        """Load the log into memory and compact it.

        Each non-blank line is parsed in order: documents insert or
        overwrite their identifier, tombstones remove it, anything else is
        corrupt. The log is then rewritten to hold only the survivors.

        Args:
            strict: Raise on the first corrupt line instead of collecting
                it; defaults to the store's setting

        Returns:
            Corrupt lines encountered, in file order

        Raises:
            ModeError: In memory-only mode
            CorruptRecordError: In strict mode, on the first corrupt line.
                The store is left closed and empty, and the log untouched.
            OSError: If the log cannot be read or rewritten
        """
        if self._storage is None:
            raise ModeError("open")
        if strict is None:
            strict = self.settings.strict

        lines = self._storage.open()
        self._memory.flush()

        corrupt: List[CorruptRecord] = []
        tombstones = 0
        for line_number, raw in enumerate(lines, start=1):
            if not raw.strip():
                continue
            try:
                record = parse_record(raw, line_number)
            except CorruptRecordError as e:
                if strict:
                    self._memory.flush()
                    self._storage.close()
                    raise
                logger.warning(f"Skipping corrupt log line {line_number}: {e.reason}")
                corrupt.append(CorruptRecord(raw=raw, line_number=line_number, error=e))
                continue

            if is_tombstone(record):
                self._memory.delete(record[ID_FIELD])
                tombstones += 1
            else:
                self._memory.set(record)

        survivors = self._memory.all()
        self._storage.overwrite([to_line(doc) for doc in survivors])
        self.corrupt = corrupt

        logger.info(
            f"Opened store {self.settings.name}: {len(survivors)} documents, "
            f"{tombstones} tombstones, {len(corrupt)} corrupt lines, "
            f"compacted {len(lines)} -> {len(survivors)} lines"
        )
        return corrupt

    def close(self) -> None:
        """Release the log.

        Raises:
            ModeError: In memory-only mode
        """
        if self._storage is None:
            raise ModeError("close")
        self._storage.close()
        logger.info(f"Closed store {self.settings.name}")

    def __enter__(self) -> LeafDB:
        if self.persistent:
            self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self.persistent:
            self.close()

    # ---------- internal helpers ----------

    def _ensure_writable(self) -> None:
        if self._storage is not None and not self._storage.is_open:
            raise LogClosedError("write", str(self.path) if self.path else None)

    def _write(self, doc: Document) -> None:
        self._memory.set(doc)
        if self._storage is not None:
            self._storage.append(to_line(doc))
        logger.debug(f"Wrote document {doc[ID_FIELD]}")

    def _remove(self, doc_id: str) -> None:
        self._memory.delete(doc_id)
        if self._storage is not None:
            self._storage.append(to_line(tombstone(doc_id)))
        logger.debug(f"Deleted document {doc_id}")

    def _select(self, query: Dict[str, Any], limit: Optional[int] = None) -> List[Document]:
        if set(query) == {ID_FIELD} and isinstance(query[ID_FIELD], str):
            doc = self._memory.get(query[ID_FIELD])
            return [doc] if doc is not None else []

        selected: List[Document] = []
        for doc in self._memory.all():
            if evaluate(doc, query):
                selected.append(doc)
                if limit is not None and len(selected) >= limit:
                    break
        return selected

    def _new_id(self) -> str:
        doc_id = generate_id()
        while self._memory.has(doc_id):
            doc_id = generate_id()
        return doc_id

    def _prepare(self, draft: Any) -> Document:
        validate_or_raise(draft)
        doc = copy.deepcopy(draft)
        if ID_FIELD not in doc:
            doc = {ID_FIELD: self._new_id(), **doc}
        elif self._memory.has(doc[ID_FIELD]):
            raise DuplicateIdentifierError(doc[ID_FIELD])
        return doc

    # ---------- insert ----------

    def insert_one(self, draft: Dict[str, Any]) -> Document:
        """Insert a single draft, assigning an identifier if it has none.

        Returns:
            The stored document

        Raises:
            InvalidDocumentError: If the draft is not a valid document
            DuplicateIdentifierError: If the identifier is already stored
            LogClosedError: In persistent mode, before open()
            OSError: If the log append fails (memory keeps the document)
        """
        doc = self._prepare(draft)
        self._ensure_writable()
        self._write(doc)
        return copy.deepcopy(doc)

    def insert(
        self,
        drafts: Union[Dict[str, Any], Iterable[Dict[str, Any]]],
        strict: Optional[bool] = None,
    ) -> List[Document]:
        """Insert one or more drafts.

        Args:
            drafts: A draft or an iterable of drafts
            strict: Reject the whole batch on the first invalid or
                duplicate draft (nothing is written); otherwise skip such
                drafts. Defaults to the store's setting.

        Returns:
            The stored documents, in input order
        """
        if strict is None:
            strict = self.settings.strict
        batch = [drafts] if is_object(drafts) else list(drafts)

        if not strict:
            inserted = []
            for draft in batch:
                try:
                    inserted.append(self.insert_one(draft))
                except (InvalidDocumentError, DuplicateIdentifierError) as e:
                    logger.warning(f"Skipping draft: {e.message}")
            return inserted

        docs: List[Document] = []
        seen = set()
        for draft in batch:
            doc = self._prepare(draft)
            if doc[ID_FIELD] in seen:
                raise DuplicateIdentifierError(doc[ID_FIELD])
            seen.add(doc[ID_FIELD])
            docs.append(doc)

        self._ensure_writable()
        for doc in docs:
            self._write(doc)
        return copy.deepcopy(docs)

    # ---------- read ----------

    def get(self, doc_id: str) -> Optional[Document]:
        """Return the document with ``doc_id``, or None.

        Raises:
            InvalidQueryError: If ``doc_id`` is not a non-empty string
        """
        if not is_id(doc_id):
            raise InvalidQueryError(f"Invalid _id: {doc_id!r}", doc_id)
        doc = self._memory.get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def get_many(self, doc_ids: Iterable[str]) -> List[Document]:
        """Return the documents for ``doc_ids`` that exist, in input order."""
        docs = []
        for doc_id in doc_ids:
            doc = self.get(doc_id)
            if doc is not None:
                docs.append(doc)
        return docs

    def find(
        self,
        query: QueryOrId = None,
        projection: Optional[Sequence[str]] = None,
    ) -> List[Document]:
        """Return every live document matching ``query``.

        Args:
            query: Query object, identifier, or None/{} for all documents
            projection: Field paths to keep in each result

        Raises:
            InvalidQueryError: If the query is invalid
            InvalidProjectionError: If the projection is invalid
        """
        query = resolve_query(query)
        if projection is not None:
            validate_projection(projection)
        return [project(copy.deepcopy(doc), projection) for doc in self._select(query)]

    def find_one(
        self,
        query: QueryOrId = None,
        projection: Optional[Sequence[str]] = None,
    ) -> Optional[Document]:
        """Return the first document matching ``query``, or None."""
        query = resolve_query(query)
        if projection is not None:
            validate_projection(projection)
        docs = self._select(query, limit=1)
        return project(copy.deepcopy(docs[0]), projection) if docs else None

    def count(self, query: QueryOrId = None) -> int:
        return len(self._select(resolve_query(query)))

    def __len__(self) -> int:
        return len(self._memory)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._memory

    # ---------- update ----------

    def _update(
        self,
        query_or_id: QueryOrId,
        update: Dict[str, Any],
        projection: Optional[Sequence[str]],
        limit: Optional[int],
    ) -> List[Document]:
        query = resolve_query(query_or_id)
        is_modifier = validate_update(update)
        if projection is not None:
            validate_projection(projection)

        targets = self._select(query, limit=limit)
        if is_modifier:
            new_docs = [modify(doc, update) for doc in targets]
        else:
            replacement = {k: v for k, v in update.items() if k != ID_FIELD}
            new_docs = [
                {ID_FIELD: doc[ID_FIELD], **copy.deepcopy(replacement)} for doc in targets
            ]

        if new_docs:
            self._ensure_writable()
        for doc in new_docs:
            self._write(doc)
        return [project(copy.deepcopy(doc), projection) for doc in new_docs]

    def update(
        self,
        query_or_id: QueryOrId,
        update: Dict[str, Any],
        projection: Optional[Sequence[str]] = None,
    ) -> List[Document]:
        """Update every document matching ``query_or_id``.

        ``update`` is either a replacement draft (the identifier is kept)
        or a modifier object such as ``{"$add": {"visits": 1}}``. Each new
        value is appended to the log; old lines stay until the next open().

        Returns:
            The updated documents

        Raises:
            InvalidQueryError: If the query is invalid
            InvalidUpdateError: If the update mixes plain fields and
                modifiers, targets ``_id``, or uses an unknown modifier
            InvalidDocumentError: If a replacement draft is invalid
        """
        return self._update(query_or_id, update, projection, limit=None)

    def update_one(
        self,
        query_or_id: QueryOrId,
        update: Dict[str, Any],
        projection: Optional[Sequence[str]] = None,
    ) -> Optional[Document]:
        """Update the first document matching ``query_or_id``."""
        docs = self._update(query_or_id, update, projection, limit=1)
        return docs[0] if docs else None

    # ---------- delete ----------

    def _delete(self, query_or_id: QueryOrId, limit: Optional[int]) -> int:
        targets = self._select(resolve_query(query_or_id), limit=limit)
        if targets:
            self._ensure_writable()
        for doc in targets:
            self._remove(doc[ID_FIELD])
        return len(targets)

    def delete(self, query_or_id: QueryOrId) -> int:
        """Delete every document matching ``query_or_id``.

        Returns:
            Number of documents deleted
        """
        return self._delete(query_or_id, limit=None)

    def delete_one(self, query_or_id: QueryOrId) -> int:
        """Delete the first document matching ``query_or_id``."""
        return self._delete(query_or_id, limit=1)

    def drop(self) -> None:
        """Remove every document and empty the log.

        Raises:
            LogClosedError: In persistent mode, before open()
            OSError: If the log cannot be truncated
        """
        self._ensure_writable()
        self._memory.flush()
        if self._storage is not None:
            self._storage.truncate()
        logger.info(f"Dropped store {self.settings.name}")
