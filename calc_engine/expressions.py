"""
Calculation Engine — Subsystem 2: Predicate Expressions
=========================================================
Small typed expression tree used for conditional visibility and
cross-field checks. Every node evaluates against a mapping of
field id -> current value and lists the field ids it reads, so configs
can be validated before any user touches them.

Declarative shapes accepted by ``parse_condition``:

    {"field": "sex", "value": "female"}              equality
    {"field": "mode", "value": ["a", "b"]}           membership
    [{...}, {...}]                                   all of
    {"op": "gt", "field": "x", "value": 3}           comparison
    {"all": [...]}, {"any": [...]}, {"not": {...}}   combinators
    {"set": "field_id"}                              field has a value
"""

import logging
import operator
from typing import Any, List, Mapping

logger = logging.getLogger(__name__)

_ORDERING = {
    "lt": operator.lt,
    "le": operator.le,
    "gt": operator.gt,
    "ge": operator.ge,
}
OPERATORS = ("eq", "ne", "in", "not_in") + tuple(_ORDERING)


def _is_missing(value) -> bool:
    return value is None or value == ""


class Expr:
    """Base node."""

    def evaluate(self, values: Mapping[str, Any]):
        raise NotImplementedError

    def fields(self) -> List[str]:
        return []

    def __call__(self, values):
        return self.evaluate(values)

    def __eq__(self, other):
        return type(self) is type(other) and self.__dict__ == other.__dict__

    def __hash__(self):
        return hash((type(self).__name__, repr(self)))


class FieldRef(Expr):
    def __init__(self, field: str):
        self.field = field

    def evaluate(self, values):
        return values.get(self.field)

    def fields(self):
        return [self.field]

    def __repr__(self):
        return f"FieldRef({self.field!r})"


class Const(Expr):
    def __init__(self, value):
        self.value = value

    def evaluate(self, values):
        return self.value

    def __repr__(self):
        return f"Const({self.value!r})"


class Compare(Expr):
    """Binary comparison. Ordering against a missing operand is False."""

    def __init__(self, op: str, left: Expr, right: Expr):
        if op not in OPERATORS:
            raise ValueError(f"Unknown comparison '{op}'. Supported: {', '.join(OPERATORS)}")
        self.op = op
        self.left = left
        self.right = right

    def evaluate(self, values):
        lhs = self.left.evaluate(values)
        rhs = self.right.evaluate(values)
        if self.op == "eq":
            return lhs == rhs
        if self.op == "ne":
            return lhs != rhs
        if self.op in ("in", "not_in"):
            try:
                found = lhs in (rhs or ())
            except TypeError:
                found = False
            return found if self.op == "in" else not found
        if _is_missing(lhs) or _is_missing(rhs):
            return False
        try:
            return bool(_ORDERING[self.op](lhs, rhs))
        except TypeError:
            return False

    def fields(self):
        return self.left.fields() + self.right.fields()

    def __repr__(self):
        return f"Compare({self.op!r}, {self.left!r}, {self.right!r})"


class IsSet(Expr):
    def __init__(self, field: str):
        self.field = field

    def evaluate(self, values):
        return not _is_missing(values.get(self.field))

    def fields(self):
        return [self.field]

    def __repr__(self):
        return f"IsSet({self.field!r})"


class AllOf(Expr):
    def __init__(self, *items: Expr):
        self.items = tuple(items)

    def evaluate(self, values):
        return all(item.evaluate(values) for item in self.items)

    def fields(self):
        return [f for item in self.items for f in item.fields()]

    def __repr__(self):
        return f"AllOf{self.items!r}"


class AnyOf(Expr):
    def __init__(self, *items: Expr):
        self.items = tuple(items)

    def evaluate(self, values):
        return any(item.evaluate(values) for item in self.items)

    def fields(self):
        return [f for item in self.items for f in item.fields()]

    def __repr__(self):
        return f"AnyOf{self.items!r}"


class Not(Expr):
    def __init__(self, item: Expr):
        self.item = item

    def evaluate(self, values):
        return not self.item.evaluate(values)

    def fields(self):
        return self.item.fields()

    def __repr__(self):
        return f"Not({self.item!r})"


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def field_equals(field: str, value) -> Compare:
    return Compare("eq", FieldRef(field), Const(value))


def field_in(field: str, choices) -> Compare:
    return Compare("in", FieldRef(field), Const(tuple(choices)))


def field_compare(field: str, op: str, other) -> Compare:
    """Compare a field with a constant, or with another field when *other* is a FieldRef."""
    right = other if isinstance(other, Expr) else Const(other)
    return Compare(op, FieldRef(field), right)


def parse_condition(data) -> Expr:
    """Build an expression tree from its declarative dict/list form."""
    if isinstance(data, Expr):
        return data
    if isinstance(data, (list, tuple)):
        return AllOf(*(parse_condition(item) for item in data))
    if not isinstance(data, dict):
        raise ValueError(f"Cannot parse condition from {type(data).__name__}: {data!r}")

    if "all" in data:
        return AllOf(*(parse_condition(item) for item in data["all"]))
    if "any" in data:
        return AnyOf(*(parse_condition(item) for item in data["any"]))
    if "not" in data:
        return Not(parse_condition(data["not"]))
    if "set" in data:
        return IsSet(data["set"])

    field = data.get("field")
    if not field:
        raise ValueError(f"Condition is missing 'field': {data!r}")
    op = data.get("op")
    if "other" in data:
        right = FieldRef(data["other"])
    else:
        right = data.get("value")
        if op is None and isinstance(right, (list, tuple)):
            return field_in(field, right)
        if op in ("in", "not_in"):
            right = tuple(right or ())
        right = Const(right)
    return Compare(op or "eq", FieldRef(field), right)
