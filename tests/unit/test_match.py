"""
Unit tests for the document predicate matcher.

Tests cover:
- Literal and deep-equality field rules
- Nested partial-object matching at several depths
- Comparison, regexp, text, size and includes operators (and aliases)
- Logical combinators and their laws
- Field-level $not inequality
- Unknown operator rejection, including unreached and skipped branches
"""

import re

import pytest

from leafdb.errors import InvalidQueryError
from leafdb.query import equals, evaluate, match


@pytest.fixture
def doc():
    """A document exercising every value kind."""
    return {
        "_id": "1",
        "name": "Ada Lovelace",
        "age": 36,
        "ratio": 0.5,
        "active": True,
        "nickname": None,
        "tags": ["math", "poetry"],
        "geolocation": {"type": "Point", "coordinates": [20, 30]},
        "address": {"city": "London", "geo": {"lat": 51.5, "lng": -0.12}},
        "projects": [
            {"name": "engine", "year": 1843},
            {"name": "notes", "year": 1842},
        ],
    }


class TestEquals:
    """Tests for deep equality."""

    def test_primitives(self):
        assert equals(1, 1)
        assert equals(1, 1.0)
        assert equals("a", "a")
        assert equals(None, None)
        assert not equals(1, "1")
        assert not equals(None, False)

    def test_booleans_are_not_numbers(self):
        assert equals(True, True)
        assert not equals(True, 1)
        assert not equals(0, False)

    def test_arrays_are_ordered(self):
        assert equals([1, [2, 3]], [1, [2, 3]])
        assert not equals([1, 2], [2, 1])
        assert not equals([1, 2], [1, 2, 3])

    def test_objects_ignore_key_order(self):
        assert equals({"a": 1, "b": {"c": [1]}}, {"b": {"c": [1]}, "a": 1})
        assert not equals({"a": 1}, {"a": 1, "b": 2})
        assert not equals({"a": 1}, {"b": 1})

    def test_array_never_equals_object(self):
        assert not equals([], {})

    @pytest.mark.parametrize(
        "a,b",
        [
            (1, 1.0),
            ([1, {"a": None}], [1, {"a": None}]),
            ({"x": [1]}, {"x": [1, 2]}),
            (True, 1),
            ("s", ["s"]),
            (None, {}),
        ],
    )
    def test_symmetric(self, a, b):
        """equals(a, b) == equals(b, a)."""
        assert equals(a, b) == equals(b, a)


class TestFieldRules:
    """Tests for literal field rules."""

    def test_empty_query_matches(self, doc):
        assert match(doc, {})
        assert match({}, {})

    def test_literal_match(self, doc):
        assert match(doc, {"name": "Ada Lovelace"})
        assert not match(doc, {"name": "Ada"})

    def test_null_matches_only_null(self, doc):
        assert match(doc, {"nickname": None})
        assert not match(doc, {"missing": None})

    def test_missing_field_fails(self, doc):
        assert not match(doc, {"missing": 1})

    def test_array_rule_is_deep_equality(self, doc):
        assert match(doc, {"tags": ["math", "poetry"]})
        assert not match(doc, {"tags": ["poetry", "math"]})
        assert not match(doc, {"tags": ["math"]})

    def test_boolean_rule(self, doc):
        assert match(doc, {"active": True})
        assert not match(doc, {"active": 1})

    def test_conjunction(self, doc):
        """A multi-key query matches iff every key matches."""
        assert match(doc, {"name": "Ada Lovelace", "age": 36})
        assert not match(doc, {"name": "Ada Lovelace", "age": 37})
        for a, b in [({"age": 36}, {"active": True}), ({"age": 1}, {"active": True})]:
            assert match(doc, {**a, **b}) == (match(doc, a) and match(doc, b))


class TestNestedRules:
    """Tests for recursive partial-object matching."""

    def test_partial_object(self, doc):
        assert match(doc, {"geolocation": {"type": "Point"}})
        assert match(doc, {"address": {"geo": {"lat": 51.5}}})

    def test_partial_object_mismatch(self, doc):
        assert not match(doc, {"geolocation": {"type": "Polygon"}})
        assert not match(doc, {"address": {"geo": {"lat": 0}}})

    def test_nested_missing_key(self, doc):
        assert not match(doc, {"address": {"zip": "N1"}})

    def test_object_rule_against_scalar_fails(self, doc):
        assert not match(doc, {"name": {"first": "Ada"}})

    def test_empty_object_rule_matches_any_object(self, doc):
        assert match(doc, {"address": {}})
        assert not match(doc, {"name": {}})

    def test_nested_array_literal(self, doc):
        assert match(doc, {"geolocation": {"coordinates": [20, 30]}})
        assert not match(doc, {"geolocation": {"coordinates": [30, 20]}})

    def test_array_of_objects_literal(self, doc):
        assert match(
            doc,
            {"projects": [{"name": "engine", "year": 1843}, {"name": "notes", "year": 1842}]},
        )
        assert not match(doc, {"projects": [{"name": "engine"}]})

    def test_operator_at_depth(self, doc):
        assert match(doc, {"address": {"geo": {"lat": {"$gt": 50}}}})
        assert not match(doc, {"address": {"geo": {"lng": {"$gt": 0}}}})

    def test_mixed_structural_and_operator_rules(self, doc):
        query = {
            "address": {"city": "London", "geo": {"lat": {"$gte": 51}, "lng": {"$lt": 0}}},
            "tags": {"$includes": "math"},
        }
        assert match(doc, query)

    def test_logical_operator_inside_field(self, doc):
        assert match(doc, {"address": {"$or": [{"city": "Paris"}, {"city": "London"}]}})
        assert not match(doc, {"name": {"$or": [{"x": 1}]}})


class TestOperators:
    """Tests for comparison, pattern and array operators."""

    @pytest.mark.parametrize(
        "rule,expected",
        [
            ({"$gt": 35}, True),
            ({"$gt": 36}, False),
            ({"$gte": 36}, True),
            ({"$lt": 37}, True),
            ({"$lt": 36}, False),
            ({"$lte": 36}, True),
        ],
    )
    def test_numeric(self, doc, rule, expected):
        assert match(doc, {"age": rule}) is expected

    def test_numeric_requires_numbers(self, doc):
        assert not match(doc, {"name": {"$gt": 1}})
        assert not evaluate(doc, {"age": {"$gt": "1"}})
        assert not match(doc, {"active": {"$gte": 0}})
        assert not match(doc, {"missing": {"$lt": 100}})

    def test_multiple_operators_are_conjunctive(self, doc):
        assert match(doc, {"age": {"$gt": 30, "$lt": 40}})
        assert not match(doc, {"age": {"$gt": 30, "$lt": 35}})

    def test_regexp(self, doc):
        assert match(doc, {"name": {"$regexp": "^Ada"}})
        assert match(doc, {"name": {"$regexp": re.compile("lovelace", re.I)}})
        assert not match(doc, {"name": {"$regexp": "^Lovelace"}})

    def test_regex_alias(self, doc):
        assert match(doc, {"name": {"$regex": "Love"}})

    def test_regexp_on_non_string(self, doc):
        assert not match(doc, {"age": {"$regexp": "3"}})

    def test_invalid_regexp(self, doc):
        with pytest.raises(InvalidQueryError):
            match(doc, {"name": {"$regexp": "("}})

    def test_text(self, doc):
        assert match(doc, {"name": {"$text": "LOVE"}})
        assert not match(doc, {"name": {"$text": "babbage"}})
        assert not match(doc, {"age": {"$text": "36"}})

    def test_size(self, doc):
        assert match(doc, {"tags": {"$size": 2}})
        assert match(doc, {"tags": {"$length": 2}})
        assert not match(doc, {"tags": {"$size": 3}})
        assert not match(doc, {"name": {"$size": 12}})

    def test_includes(self, doc):
        assert match(doc, {"tags": {"$includes": "poetry"}})
        assert match(doc, {"tags": {"$has": "math"}})
        assert not match(doc, {"tags": {"$includes": "music"}})
        assert not match(doc, {"name": {"$includes": "A"}})

    def test_includes_deep_equality(self, doc):
        assert match(doc, {"projects": {"$includes": {"year": 1842, "name": "notes"}}})
        assert not match(doc, {"projects": {"$includes": {"name": "notes"}}})

    def test_includes_nested_field(self, doc):
        assert match(doc, {"geolocation": {"coordinates": {"$includes": 30}}})
        assert not match(doc, {"geolocation": {"coordinates": {"$includes": 40}}})

    def test_unknown_operator_in_rule(self, doc):
        with pytest.raises(InvalidQueryError):
            match(doc, {"age": {"$between": [1, 2]}})

    def test_unknown_operator_in_rule_against_scalar(self, doc):
        with pytest.raises(InvalidQueryError):
            match(doc, {"missing": {"$foo": 1}})

    def test_mixed_operator_and_field_rule(self, doc):
        with pytest.raises(InvalidQueryError):
            match(doc, {"age": {"$gt": 1, "value": 2}})

    def test_unknown_top_level_operator(self, doc):
        with pytest.raises(InvalidQueryError):
            match(doc, {"$where": "true"})

    @pytest.mark.parametrize("check", [match, evaluate])
    def test_unknown_operator_after_failing_operator(self, check):
        """Every operator in a rule is checked before any is evaluated."""
        with pytest.raises(InvalidQueryError):
            check({"a": 0}, {"a": {"$gt": 5, "$bogus": 1}})

    @pytest.mark.parametrize("check", [match, evaluate])
    def test_unknown_operator_after_failing_field(self, check):
        with pytest.raises(InvalidQueryError):
            check({"a": 0}, {"a": 1, "$bogus": 1})

    @pytest.mark.parametrize("check", [match, evaluate])
    @pytest.mark.parametrize(
        "query",
        [
            {"$not": {"a": 1}, "$bogus": 1},
            {"$or": [{"a": 0}], "$bogus": 1},
            {"$and": [{"a": 1}], "$bogus": 1},
            {"$bogus": 1, "$not": {"a": 0}},
        ],
    )
    def test_unknown_operator_beside_combinator(self, check, query):
        with pytest.raises(InvalidQueryError):
            check({"a": 0}, query)

    @pytest.mark.parametrize("check", [match, evaluate])
    def test_unknown_operator_in_nested_rule_after_failure(self, check):
        with pytest.raises(InvalidQueryError):
            check({"a": {"b": 0}}, {"a": {"b": 1, "$bogus": 1}})


class TestFieldNot:
    """Tests for field-level $not."""

    def test_plain_value_is_inequality(self, doc):
        assert match(doc, {"age": {"$not": 0}})
        assert not match(doc, {"age": {"$not": 36}})

    def test_uses_deep_equality(self, doc):
        assert not match(doc, {"tags": {"$not": ["math", "poetry"]}})
        assert match(doc, {"tags": {"$not": ["poetry", "math"]}})
        assert match(doc, {"active": {"$not": 1}})
        assert not match(doc, {"nickname": {"$not": None}})

    def test_missing_field_is_unequal(self, doc):
        assert match(doc, {"missing": {"$not": 0}})

    def test_object_operand_negates_sub_query(self, doc):
        assert match(doc, {"address": {"$not": {"city": "Paris"}}})
        assert not match(doc, {"address": {"$not": {"city": "London"}}})

    def test_object_operand_against_scalar(self, doc):
        assert not match(doc, {"name": {"$not": {"first": "Ada"}}})

    @pytest.mark.parametrize("check", [match, evaluate])
    def test_cannot_combine_with_other_rules(self, doc, check):
        with pytest.raises(InvalidQueryError):
            check(doc, {"age": {"$not": 0, "$gt": 1}})

    def test_top_level_requires_object(self, doc):
        with pytest.raises(InvalidQueryError):
            match(doc, {"$not": 0})


class TestLogicalOperators:
    """Tests for $not, $or and $and."""

    QUERIES = [
        {},
        {"age": 36},
        {"age": {"$gt": 40}},
        {"tags": {"$includes": "math"}},
        {"address": {"city": "Paris"}},
    ]

    @pytest.mark.parametrize("q", QUERIES)
    def test_not_law(self, doc, q):
        assert match(doc, {"$not": q}) is (not match(doc, q))

    @pytest.mark.parametrize("q1", QUERIES)
    @pytest.mark.parametrize("q2", QUERIES)
    def test_or_law(self, doc, q1, q2):
        assert match(doc, {"$or": [q1, q2]}) is (match(doc, q1) or match(doc, q2))

    @pytest.mark.parametrize("q1", QUERIES)
    @pytest.mark.parametrize("q2", QUERIES)
    def test_and_law(self, doc, q1, q2):
        assert match(doc, {"$and": [q1, q2]}) is (match(doc, q1) and match(doc, q2))

    def test_empty_or_and(self, doc):
        assert not match(doc, {"$or": []})
        assert match(doc, {"$and": []})

    def test_or_short_circuits(self, doc):
        """Sub-queries after the first match are not evaluated."""
        assert evaluate(doc, {"$or": [{"age": 36}, {"$bogus": 1}]})

    def test_and_short_circuits(self, doc):
        assert not evaluate(doc, {"$and": [{"age": 1}, {"$bogus": 1}]})

    @pytest.mark.parametrize(
        "query",
        [
            {"$or": [{"age": 36}, {"$bogus": 1}]},
            {"$and": [{"age": 1}, {"$bogus": 1}]},
        ],
    )
    def test_match_rejects_skipped_branches(self, doc, query):
        """match() validates branches that evaluation would skip."""
        with pytest.raises(InvalidQueryError):
            match(doc, query)

    def test_combinator_and_field_siblings_are_conjunctive(self, doc):
        assert match(doc, {"$not": {"age": 1}, "name": "Ada Lovelace"})
        assert not match(doc, {"$not": {"age": 1}, "name": "Nobody"})
        assert not match(doc, {"$or": [{"age": 36}], "active": False})

    def test_nested_combinators(self, doc):
        query = {
            "$and": [
                {"$or": [{"name": {"$regexp": "^Ada"}}, {"age": {"$lt": 10}}]},
                {"$not": {"tags": {"$size": 0}}},
            ]
        }
        assert match(doc, query)

    def test_or_requires_array(self, doc):
        with pytest.raises(InvalidQueryError):
            match(doc, {"$or": {"age": 36}})

    def test_not_requires_object(self, doc):
        with pytest.raises(InvalidQueryError):
            match(doc, {"$not": 36})

    def test_query_must_be_object(self, doc):
        with pytest.raises(InvalidQueryError):
            match(doc, ["age"])
