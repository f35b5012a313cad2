"""
In-memory document index for LeafDB.

Maps identifier -> current document value. The index is a derived,
compacted cache of the log: it holds no I/O and no history.

Invariants:
    - At most one document per identifier
    - Enumeration order is insertion order; overwriting an identifier
      keeps its original position
    - Tombstones are never held: setting one removes its identifier
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional

from .document import ID_FIELD, Document, is_tombstone


class DocumentIndex:
    """Identifier-keyed document map.

    Thread safety:
        None. A store instance is owned by one caller at a time.

    Example:
        >>> index = DocumentIndex()
        >>> index.set({"_id": "a", "n": 1})
        {'_id': 'a', 'n': 1}
        >>> index.has("a")
        True
    """

    def __init__(self) -> None:
        self._docs: Dict[str, Document] = {}

    def get(self, doc_id: str) -> Optional[Document]:
        """Return the stored document, or None if absent."""
        return self._docs.get(doc_id)

    def set(self, doc: Document) -> Document:
        """Insert or overwrite ``doc`` under its identifier.

        A tombstone removes the identifier instead.
        """
        if is_tombstone(doc):
            self.delete(doc[ID_FIELD])
        else:
            self._docs[doc[ID_FIELD]] = doc
        return doc

    def has(self, doc_id: str) -> bool:
        return doc_id in self._docs

    def delete(self, doc_id: str) -> bool:
        """Remove the entry for ``doc_id``. Returns whether one was removed."""
        return self._docs.pop(doc_id, None) is not None

    def all(self) -> List[Document]:
        """Snapshot of every live document."""
        return list(self._docs.values())

    def ids(self) -> List[str]:
        return list(self._docs)

    def flush(self) -> None:
        """Remove every entry."""
        self._docs.clear()

    def __len__(self) -> int:
        return len(self._docs)

    def __contains__(self, doc_id: object) -> bool:
        return isinstance(doc_id, str) and self.has(doc_id)

    def __iter__(self) -> Iterator[Document]:
        return iter(self.all())
