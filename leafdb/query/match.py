"""
Document predicate matcher for LeafDB.

A query is a tree shaped like a subset of the document. Each field rule is
either a literal (deep-equality), a nested query (partial match of a
sub-object) or an operator object such as ``{"$gt": 3}``. The whole query
may also use the logical combinators ``$not``, ``$or`` and ``$and``, and a
field rule ``{"$not": value}`` with a non-object value tests deep inequality.

This module holds the evaluator. The public entry point ``match()`` lives
in ``validate.py`` and validates the whole query before evaluating it.

Example:
    >>> doc = {"_id": "1", "geo": {"type": "Point", "coordinates": [20, 30]}}
    >>> evaluate(doc, {"geo": {"coordinates": {"$includes": 30}}})
    True
    >>> evaluate(doc, {"$not": {"geo": {"type": "Point"}}})
    False

Invariants:
    - Matching is pure and never mutates its inputs
    - A type mismatch between rule and value evaluates to False
    - match() raises InvalidQueryError for an unknown operator anywhere in
      the query; evaluate() for any unknown operator on a level it reaches
    - The empty query matches every document

How to change safely:
    - Register new operators in OPERATORS and the query validator picks
      them up automatically
    - Keep equals() symmetric
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Callable, Dict, List, Pattern, Union

from ..document import is_number, is_object, is_operator
from ..errors import InvalidQueryError

NOT = "$not"
OR = "$or"
AND = "$and"
LOGICAL_OPERATORS = frozenset({NOT, OR, AND})

_MISSING = object()


def equals(a: Any, b: Any) -> bool:
    """Deep equality over JSON values.

    Arrays are equal when they have the same length and are element-wise
    equal in order. Objects are equal when they have the same key set and
    are equal on every key. Booleans only ever equal booleans.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, list) or isinstance(b, list):
        if not (isinstance(a, list) and isinstance(b, list)) or len(a) != len(b):
            return False
        return all(equals(x, y) for x, y in zip(a, b))
    if isinstance(a, dict) or isinstance(b, dict):
        if not (isinstance(a, dict) and isinstance(b, dict)) or a.keys() != b.keys():
            return False
        return all(equals(a[k], b[k]) for k in a)
    if is_number(a) and is_number(b):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    return a is b


@lru_cache(maxsize=256)
def _compile(pattern: str) -> Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise InvalidQueryError(f"Invalid regular expression {pattern!r}: {e}", pattern) from e


def to_pattern(operand: Union[str, Pattern[str]]) -> Pattern[str]:
    """Return a compiled pattern for a ``$regexp`` operand."""
    if isinstance(operand, re.Pattern):
        return operand
    if isinstance(operand, str):
        return _compile(operand)
    raise InvalidQueryError(
        f"$regexp expects a string or compiled pattern, got {type(operand).__name__}",
        operand,
    )


def _gt(value: Any, operand: Any) -> bool:
    return is_number(value) and is_number(operand) and value > operand


def _gte(value: Any, operand: Any) -> bool:
    return is_number(value) and is_number(operand) and value >= operand


def _lt(value: Any, operand: Any) -> bool:
    return is_number(value) and is_number(operand) and value < operand


def _lte(value: Any, operand: Any) -> bool:
    return is_number(value) and is_number(operand) and value <= operand


def _regexp(value: Any, operand: Any) -> bool:
    pattern = to_pattern(operand)
    return isinstance(value, str) and pattern.search(value) is not None


def _text(value: Any, operand: Any) -> bool:
    if not isinstance(value, str) or not isinstance(operand, str):
        return False
    return operand.casefold() in value.casefold()


def _size(value: Any, operand: Any) -> bool:
    return isinstance(value, list) and is_number(operand) and len(value) == operand


def _includes(value: Any, operand: Any) -> bool:
    return isinstance(value, list) and any(equals(item, operand) for item in value)


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "$gt": _gt,
    "$gte": _gte,
    "$lt": _lt,
    "$lte": _lte,
    "$regexp": _regexp,
    "$regex": _regexp,
    "$text": _text,
    "$size": _size,
    "$length": _size,
    "$includes": _includes,
    "$has": _includes,
}


def _logical_operands(query: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    operands = query[key]
    if not isinstance(operands, list):
        raise InvalidQueryError(f"{key} expects an array of queries", query)
    return operands


def _check_operator_rule(rule: Dict[str, Any]) -> None:
    for operator in rule:
        if operator not in OPERATORS:
            raise InvalidQueryError(f"Invalid operator: {operator}", rule)


def _check_query_keys(query: Dict[str, Any]) -> None:
    for key in query:
        if is_operator(key) and key not in LOGICAL_OPERATORS:
            raise InvalidQueryError(f"Invalid operator: {key}", query)


def is_inequality(rule: Any) -> bool:
    """Whether a field rule is ``{"$not": <non-object>}``, a deep-inequality test."""
    return is_object(rule) and NOT in rule and not is_object(rule[NOT])


def _apply_operators(value: Any, rule: Dict[str, Any]) -> bool:
    _check_operator_rule(rule)
    return all(OPERATORS[operator](value, operand) for operator, operand in rule.items())


def _match_field(value: Any, rule: Any) -> bool:
    if not is_object(rule):
        return equals(value, rule)

    if is_inequality(rule):
        if len(rule) != 1:
            raise InvalidQueryError(f"{NOT} with a plain value cannot be combined with other rules", rule)
        return not equals(value, rule[NOT])

    first = next(iter(rule), None)
    if first in OPERATORS:
        return _apply_operators(value, rule)
    _check_query_keys(rule)
    if is_object(value):
        return evaluate(value, rule)
    return False


def evaluate(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    """Evaluate ``query`` against ``doc`` without validating it up front.

    Every key of a query level is checked for unknown operators before any
    of them is evaluated. Sibling keys, combinators included, are combined
    conjunctively, and ``$or``/``$and`` stop at the first deciding branch.
    Callers that have not run validate_query() should use match() instead.

    Raises:
        InvalidQueryError: If the query is not an object or uses an
            unrecognized operator on a level that is reached
    """
    if not is_object(query):
        raise InvalidQueryError(f"Invalid query: expected an object, got {type(query).__name__}", query)
    _check_query_keys(query)

    for key, rule in query.items():
        if key == NOT:
            ok = not evaluate(doc, rule)
        elif key == OR:
            ok = any(evaluate(doc, q) for q in _logical_operands(query, OR))
        elif key == AND:
            ok = all(evaluate(doc, q) for q in _logical_operands(query, AND))
        else:
            ok = _match_field(doc.get(key, _MISSING), rule)
        if not ok:
            return False
    return True
