"""
Field-path updates and projections for LeafDB.

This module provides the pure document transformations used by the store:
- Field path resolution (``a.b.0.c`` over objects and arrays)
- Modifier application (``$add``, ``$set``, ``$push``)
- Projection of a document onto a list of field paths
- Validation of update and projection arguments

Invariants:
    - Transformations never mutate their input document
    - ``_id`` can never be the target of a modifier
    - An update is either all modifiers or a plain replacement draft

How to change safely:
    - Register new modifiers in MODIFIERS and handle them in modify()
    - Keep get_path/set_path symmetric for projections
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Sequence

from .document import (
    ID_FIELD,
    INTERNAL_PREFIX,
    OPERATOR_PREFIX,
    PATH_SEPARATOR,
    Document,
    collect_value_errors,
    is_number,
    is_object,
    is_operator,
    validate_draft,
)
from .errors import InvalidDocumentError, InvalidProjectionError, InvalidUpdateError

ADD = "$add"
SET = "$set"
PUSH = "$push"
MODIFIERS = frozenset({ADD, SET, PUSH})

MISSING = object()


def split_path(path: str) -> List[str]:
    """Split a dotted field path into its segments."""
    return path.split(PATH_SEPARATOR)


def _list_index(container: list, segment: str) -> Optional[int]:
    if not segment.isdigit():
        return None
    index = int(segment)
    return index if index < len(container) else None


def get_path(doc: Any, path: str, default: Any = MISSING) -> Any:
    """Resolve ``path`` against nested objects and arrays.

    Returns ``default`` when any segment cannot be resolved.
    """
    current = doc
    for segment in split_path(path):
        if isinstance(current, dict):
            if segment not in current:
                return default
            current = current[segment]
        elif isinstance(current, list):
            index = _list_index(current, segment)
            if index is None:
                return default
            current = current[index]
        else:
            return default
    return current


def set_path(doc: Dict[str, Any], path: str, value: Any) -> None:
    """Set ``value`` at ``path`` in place, creating intermediate objects.

    Scalars found along the path are replaced by objects. Array segments
    must address an existing element.

    Raises:
        InvalidUpdateError: If an array segment is not a valid index
    """
    segments = split_path(path)
    container: Any = doc
    for depth, segment in enumerate(segments):
        last = depth == len(segments) - 1
        if isinstance(container, list):
            index = _list_index(container, segment)
            if index is None:
                raise InvalidUpdateError(
                    f"Cannot resolve '{path}': '{segment}' is not an index of the array",
                    path,
                )
            if last:
                container[index] = value
                return
            if not isinstance(container[index], (dict, list)):
                container[index] = {}
            container = container[index]
        else:
            if last:
                container[segment] = value
                return
            if not isinstance(container.get(segment), (dict, list)):
                container[segment] = {}
            container = container[segment]


def is_modifier(update: Any) -> bool:
    """Whether ``update`` is a modifier object rather than a replacement."""
    return is_object(update) and len(update) > 0 and all(is_operator(k) for k in update)


def _validate_modifier_path(modifier: str, path: Any, update: Any) -> None:
    if not isinstance(path, str) or not path:
        raise InvalidUpdateError(f"Invalid field path in {modifier}: {path!r}", update)
    segments = split_path(path)
    if segments[0] == ID_FIELD:
        raise InvalidUpdateError(f"Cannot modify field {ID_FIELD}", update)
    if segments[0].startswith(INTERNAL_PREFIX):
        raise InvalidUpdateError(f"Cannot modify reserved field '{segments[0]}'", update)
    for segment in segments:
        if not segment:
            raise InvalidUpdateError(f"Invalid field path in {modifier}: {path!r}", update)
        if segment.startswith(OPERATOR_PREFIX):
            raise InvalidUpdateError(f"Cannot add operator: {path}", update)


def validate_update(update: Any) -> bool:
    """Validate an update argument.

    Args:
        update: Modifier object or replacement draft

    Returns:
        True if the update is a modifier, False if it is a replacement

    Raises:
        InvalidUpdateError: If the update is not an object, mixes plain
            fields with modifiers, or misuses a modifier
        InvalidDocumentError: If a replacement draft is not a valid document
    """
    if not is_object(update):
        raise InvalidUpdateError(f"Invalid update: expected an object, got {type(update).__name__}", update)

    operators = [key for key in update if is_operator(key)]
    if not operators:
        replacement = {k: v for k, v in update.items() if k != ID_FIELD}
        is_valid, errors = validate_draft(replacement)
        if not is_valid:
            raise InvalidDocumentError(f"Invalid doc: {'; '.join(errors)}", errors=errors)
        return False

    if len(operators) != len(update):
        raise InvalidUpdateError("Update cannot mix modifiers and plain fields", update)

    for modifier, fields in update.items():
        if modifier not in MODIFIERS:
            raise InvalidUpdateError(f"Invalid modifier: {modifier}", update)
        if not is_object(fields):
            raise InvalidUpdateError(f"{modifier} expects an object of field paths", update)
        for path, value in fields.items():
            _validate_modifier_path(modifier, path, update)
            errors: List[str] = []
            collect_value_errors(path, value, errors)
            if errors:
                raise InvalidUpdateError(f"Invalid value: {'; '.join(errors)}", update)
    return True


def modify(doc: Document, update: Dict[str, Dict[str, Any]]) -> Document:
    """Apply a modifier object to a copy of ``doc``.

    - ``$add``: numeric increment; no-op unless both sides are numbers
    - ``$set``: set the value, creating intermediate objects
    - ``$push``: append to an array; no-op unless the target is an array

    Example:
        >>> modify({"_id": "1", "a": 1}, {"$add": {"a": 2}})
        {'_id': '1', 'a': 3}

    Raises:
        InvalidUpdateError: On an unknown modifier or an unresolvable path
    """
    result = copy.deepcopy(doc)
    for modifier, fields in update.items():
        for path, value in fields.items():
            if modifier == ADD:
                current = get_path(result, path)
                if is_number(current) and is_number(value):
                    set_path(result, path, current + value)
            elif modifier == SET:
                if split_path(path)[0] == ID_FIELD:
                    raise InvalidUpdateError(f"Cannot modify field {ID_FIELD}", update)
                set_path(result, path, copy.deepcopy(value))
            elif modifier == PUSH:
                current = get_path(result, path)
                if isinstance(current, list):
                    current.append(copy.deepcopy(value))
            else:
                raise InvalidUpdateError(f"Invalid modifier: {modifier}", update)
    return result


def validate_projection(projection: Any) -> None:
    """Validate a projection argument.

    Raises:
        InvalidProjectionError: If the projection is not a list of plain,
            non-empty field paths
    """
    if not isinstance(projection, (list, tuple)):
        raise InvalidProjectionError(projection)
    for path in projection:
        if not isinstance(path, str) or not path or path.startswith(OPERATOR_PREFIX):
            raise InvalidProjectionError(projection)


def _project_into(target: Document, path: str, value: Any) -> None:
    segments = split_path(path)
    container = target
    for segment in segments[:-1]:
        child = container.setdefault(segment, {})
        if not isinstance(child, dict):
            # an enclosing path was already projected whole
            return
        container = child
    container[segments[-1]] = value


def project(doc: Document, projection: Optional[Sequence[str]] = None) -> Document:
    """Return a new object holding only the given field paths of ``doc``.

    ``None`` returns the document unchanged and an empty list returns an
    empty object. Paths missing from the document are skipped; intermediate
    structure is rebuilt as objects.

    Raises:
        InvalidProjectionError: If the projection is invalid
    """
    if projection is None:
        return doc
    validate_projection(projection)

    result: Document = {}
    for path in projection:
        value = get_path(doc, path)
        if value is not MISSING:
            _project_into(result, path, copy.deepcopy(value))
    return result
