"""
Structural validation of queries.

``validate_query`` walks the whole query tree up front so that malformed
queries are rejected before the store scans any document, including
operators the matcher would otherwise never reach on a given dataset.
``match`` is the validating entry point over the evaluator.
"""

from __future__ import annotations

from typing import Any, Dict

from ..document import ID_FIELD, is_id, is_number, is_object, is_operator
from ..errors import InvalidQueryError
from .match import AND, LOGICAL_OPERATORS, NOT, OPERATORS, OR, evaluate, is_inequality, to_pattern

_NUMERIC_OPERATORS = frozenset({"$gt", "$gte", "$lt", "$lte", "$size", "$length"})
_STRING_OPERATORS = frozenset({"$text"})
_PATTERN_OPERATORS = frozenset({"$regexp", "$regex"})


def _validate_operator_rule(rule: dict, root: Any) -> None:
    for operator, operand in rule.items():
        if operator not in OPERATORS:
            if is_operator(operator):
                raise InvalidQueryError(f"Invalid operator: {operator}", root)
            raise InvalidQueryError(
                f"Operator rule cannot mix operators and field '{operator}'", root
            )
        if operator in _NUMERIC_OPERATORS and not is_number(operand):
            raise InvalidQueryError(f"{operator} expects a number", root)
        if operator in _STRING_OPERATORS and not isinstance(operand, str):
            raise InvalidQueryError(f"{operator} expects a string", root)
        if operator in _PATTERN_OPERATORS:
            to_pattern(operand)


def _validate_field_rule(rule: dict, root: Any) -> None:
    if is_inequality(rule):
        if len(rule) != 1:
            raise InvalidQueryError(
                f"{NOT} with a plain value cannot be combined with other rules", root
            )
        return
    first = next(iter(rule), None)
    if first in OPERATORS or (is_operator(first) and first not in LOGICAL_OPERATORS):
        _validate_operator_rule(rule, root)
    else:
        _validate(rule, root)


def _validate(query: Any, root: Any) -> None:
    if not is_object(query):
        raise InvalidQueryError(f"Invalid query: {query!r}", root)

    for key, rule in query.items():
        if key == NOT:
            _validate(rule, root)
        elif key in (OR, AND):
            if not isinstance(rule, list):
                raise InvalidQueryError(f"{key} expects an array of queries", root)
            for sub_query in rule:
                _validate(sub_query, root)
        elif is_operator(key):
            raise InvalidQueryError(f"Invalid operator: {key}", root)
        elif is_object(rule):
            _validate_field_rule(rule, root)


def validate_query(query: Any) -> None:
    """Validate a query tree.

    Raises:
        InvalidQueryError: If the query is not an object, uses an unknown
            operator, or gives an operator an operand of the wrong shape
    """
    _validate(query, query)


def match(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    """Return True iff ``doc`` satisfies ``query``.

    The whole query is validated first, so an unknown operator raises even
    in a branch that evaluation would have skipped.

    Example:
        >>> match({"_id": "1", "a": 1}, {"a": {"$not": 0}})
        True

    Raises:
        InvalidQueryError: If the query is invalid
    """
    validate_query(query)
    return evaluate(doc, query)


def resolve_query(query_or_id: Any) -> dict:
    """Normalize a query or a bare identifier into a query object.

    Args:
        query_or_id: Query object, identifier string, or None for "all"

    Returns:
        A validated query object

    Raises:
        InvalidQueryError: If the argument is neither a valid query nor a
            non-empty identifier
    """
    if query_or_id is None:
        return {}
    if isinstance(query_or_id, str):
        if not is_id(query_or_id):
            raise InvalidQueryError("Invalid _id: identifier must be a non-empty string", query_or_id)
        return {ID_FIELD: query_or_id}
    validate_query(query_or_id)
    return query_or_id
