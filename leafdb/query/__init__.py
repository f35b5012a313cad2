"""
Query language for LeafDB.

- match: validate a query, then evaluate it against a document
- evaluate: recursive structural/operator matcher (no up-front validation)
- equals: deep equality over JSON values
- validate_query: structural query validation
"""

from .match import LOGICAL_OPERATORS, OPERATORS, equals, evaluate
from .validate import match, resolve_query, validate_query

__all__ = [
    "LOGICAL_OPERATORS",
    "OPERATORS",
    "equals",
    "evaluate",
    "match",
    "resolve_query",
    "validate_query",
]
