"""Tests for expressions.py — visibility predicates and cross-field checks."""

import pytest

from calc_engine import (
    AllOf,
    AnyOf,
    Compare,
    FieldRef,
    IsSet,
    Not,
    field_compare,
    field_equals,
    field_in,
    parse_condition,
)


class TestCompare:
    def test_equality(self):
        expr = field_equals("sex", "female")
        assert expr.evaluate({"sex": "female"}) is True
        assert expr.evaluate({"sex": "male"}) is False

    def test_membership(self):
        expr = field_in("mode", ["a", "b"])
        assert expr.evaluate({"mode": "b"})
        assert not expr.evaluate({"mode": "c"})

    def test_ordering_with_missing_operand_is_false(self):
        expr = field_compare("x", "gt", 3)
        assert expr.evaluate({}) is False
        assert expr.evaluate({"x": None}) is False

    def test_ordering_with_incomparable_types_is_false(self):
        assert field_compare("x", "lt", 3).evaluate({"x": "abc"}) is False

    def test_field_against_field(self):
        expr = field_compare("waist", "gt", FieldRef("neck"))
        assert expr.evaluate({"waist": 0.9, "neck": 0.4})
        assert not expr.evaluate({"waist": 0.3, "neck": 0.4})
        assert expr.fields() == ["waist", "neck"]

    def test_unknown_operator(self):
        with pytest.raises(ValueError):
            Compare("between", FieldRef("x"), FieldRef("y"))

    def test_callable(self):
        assert field_equals("a", 1)({"a": 1})


class TestCombinators:
    def test_all_any_not(self):
        values = {"a": 1, "b": 2}
        assert AllOf(field_equals("a", 1), field_equals("b", 2)).evaluate(values)
        assert AnyOf(field_equals("a", 9), field_equals("b", 2)).evaluate(values)
        assert Not(field_equals("a", 1)).evaluate(values) is False

    def test_is_set(self):
        assert IsSet("a").evaluate({"a": 0})
        assert not IsSet("a").evaluate({"a": ""})
        assert not IsSet("a").evaluate({})

    def test_fields_collects_every_reference(self):
        expr = AllOf(field_equals("a", 1), AnyOf(IsSet("b"), Not(field_equals("c", 2))))
        assert expr.fields() == ["a", "b", "c"]


class TestParseCondition:
    def test_equality_shape(self):
        assert parse_condition({"field": "sex", "value": "female"}) == field_equals("sex", "female")

    def test_list_value_means_membership(self):
        expr = parse_condition({"field": "mode", "value": ["of", "change"]})
        assert expr.evaluate({"mode": "change"})

    def test_list_means_all_of(self):
        expr = parse_condition([{"field": "a", "value": 1}, {"field": "b", "value": 2}])
        assert isinstance(expr, AllOf)
        assert not expr.evaluate({"a": 1, "b": 3})

    def test_operator_shape(self):
        expr = parse_condition({"op": "ge", "field": "age", "value": 18})
        assert expr.evaluate({"age": 18})
        assert not expr.evaluate({"age": 17})

    def test_other_field_shape(self):
        expr = parse_condition({"field": "end", "op": "gt", "other": "start"})
        assert expr.evaluate({"start": 1, "end": 2})

    def test_combinator_shapes(self):
        expr = parse_condition({"any": [{"set": "x"}, {"not": {"field": "y", "value": 1}}]})
        assert expr.evaluate({"y": 2})
        assert not expr.evaluate({"y": 1})

    def test_expression_passes_through(self):
        expr = field_equals("a", 1)
        assert parse_condition(expr) is expr

    def test_missing_field_rejected(self):
        with pytest.raises(ValueError):
            parse_condition({"value": 1})

    def test_non_mapping_rejected(self):
        with pytest.raises(ValueError):
            parse_condition("sex == female")
