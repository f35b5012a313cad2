"""
Document shape rules for LeafDB.

This module provides the runtime shape checks applied at ingestion:
- JSON-compatibility of values (object, array, string, number, bool, null)
- Draft validation for insert and full-replacement updates
- Log record parsing for ``open()`` replay
- Log record serialization

Invariants:
    - Every stored document has a non-empty string ``_id``
    - No key at any depth starts with the operator prefix ``$``
    - Top-level keys of a draft never contain ``.`` or start with ``__``
    - A tombstone record is ``{"_id": ..., "__deleted": true}``

How to change safely:
    - Keep ``to_line`` output parseable by ``parse_record``
    - Relaxing a rule here makes previously corrupt log lines loadable
"""

from __future__ import annotations

import json
import math
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import CorruptRecordError, InvalidDocumentError

Json = Union[None, bool, int, float, str, List["Json"], Dict[str, "Json"]]
Document = Dict[str, Json]

ID_FIELD = "_id"
DELETED_FIELD = "__deleted"
OPERATOR_PREFIX = "$"
INTERNAL_PREFIX = "__"
PATH_SEPARATOR = "."


def is_object(value: Any) -> bool:
    """Whether ``value`` is a structured object (a dict)."""
    return isinstance(value, dict)


def is_number(value: Any) -> bool:
    """Whether ``value`` is a JSON number. Booleans are not numbers."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_operator(key: Any) -> bool:
    """Whether ``key`` uses the reserved operator prefix."""
    return isinstance(key, str) and key.startswith(OPERATOR_PREFIX)


def is_id(value: Any) -> bool:
    """Whether ``value`` is a usable document identifier."""
    return isinstance(value, str) and len(value) > 0


def collect_value_errors(path: str, value: Any, errors: List[str]) -> None:
    """Append a message to ``errors`` for every non-JSON or reserved part of ``value``."""
    if value is None or isinstance(value, (bool, str)):
        return
    if is_number(value):
        if isinstance(value, float) and not math.isfinite(value):
            errors.append(f"Field '{path}' must be a finite number, got {value}")
        return
    if isinstance(value, list):
        for i, item in enumerate(value):
            collect_value_errors(f"{path}.{i}", item, errors)
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                errors.append(f"Field '{path}' has non-string key {key!r}")
                continue
            if is_operator(key):
                errors.append(f"Field '{path}.{key}' uses reserved prefix '$'")
            collect_value_errors(f"{path}.{key}", item, errors)
        return
    errors.append(f"Field '{path}' is not JSON-compatible, got {type(value).__name__}")


def validate_draft(
    draft: Any,
    require_id: bool = False,
    allow_dotted: bool = False,
) -> Tuple[bool, List[str]]:
    """Validate a draft against the document shape rules.

    Args:
        draft: Candidate draft
        require_id: Whether ``_id`` must be present
        allow_dotted: Accept top-level keys containing ``.`` (records read
            back from the log were validated once already)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if not is_object(draft):
        return False, [f"Expected an object, got {type(draft).__name__}"]

    errors: List[str] = []

    if ID_FIELD in draft:
        if not is_id(draft[ID_FIELD]):
            errors.append(f"Field '{ID_FIELD}' must be a non-empty string")
    elif require_id:
        errors.append(f"Field '{ID_FIELD}' is required")

    for key, value in draft.items():
        if not isinstance(key, str):
            errors.append(f"Key {key!r} must be a string")
            continue
        if key == ID_FIELD:
            continue
        if is_operator(key):
            errors.append(f"Field '{key}' uses reserved prefix '$'")
        elif key.startswith(INTERNAL_PREFIX):
            errors.append(f"Field '{key}' uses reserved prefix '__'")
        elif PATH_SEPARATOR in key and not allow_dotted:
            errors.append(f"Field '{key}' must not contain '{PATH_SEPARATOR}'")
        collect_value_errors(key, value, errors)

    return len(errors) == 0, errors


def validate_or_raise(draft: Any, require_id: bool = False) -> None:
    """Validate a draft and raise if invalid.

    Raises:
        InvalidDocumentError: If validation fails
    """
    is_valid, errors = validate_draft(draft, require_id=require_id)
    if not is_valid:
        raise InvalidDocumentError(f"Invalid doc: {'; '.join(errors)}", errors=errors)


def is_tombstone(record: Document) -> bool:
    """Whether a parsed log record marks its ``_id`` as deleted."""
    return record.get(DELETED_FIELD) is True


def tombstone(doc_id: str) -> Document:
    """Build the tombstone record for ``doc_id``."""
    return {ID_FIELD: doc_id, DELETED_FIELD: True}


def to_line(record: Document) -> str:
    """Serialize a record as a single log line (no trailing newline)."""
    return json.dumps(record, ensure_ascii=False, separators=(",", ":"), allow_nan=False)


def parse_record(raw: str, line_number: Optional[int] = None) -> Document:
    """Parse one log line into a document or tombstone record.

    Args:
        raw: Line content without its newline
        line_number: 1-based position in the log, for error context

    Returns:
        The parsed record. A live record never carries the deletion marker.

    Raises:
        CorruptRecordError: If the line is not valid JSON or not a valid record
    """
    try:
        record = json.loads(raw)
    except (json.JSONDecodeError, RecursionError) as e:
        raise CorruptRecordError(raw, f"not valid JSON ({e})", line_number) from e

    if not is_object(record):
        raise CorruptRecordError(raw, "record is not an object", line_number)
    if not is_id(record.get(ID_FIELD)):
        raise CorruptRecordError(raw, f"missing or invalid '{ID_FIELD}'", line_number)

    if is_tombstone(record):
        return tombstone(record[ID_FIELD])

    marker = record.pop(DELETED_FIELD, None)
    if marker is not None and marker is not False:
        raise CorruptRecordError(raw, f"'{DELETED_FIELD}' must be a boolean", line_number)

    is_valid, errors = validate_draft(record, require_id=True, allow_dotted=True)
    if not is_valid:
        raise CorruptRecordError(raw, "; ".join(errors), line_number)
    return record
