"""Tests for schema.py — coercion, validation, visibility and cross-field checks."""

import datetime

import pytest

from calc_engine import (
    DEFAULT_REGISTRY,
    Check,
    FieldDescriptor,
    MissingValueError,
    ValidationError,
    coerce_value,
    validate_field,
    validate_fields,
    visible_ids,
)


# ── Coercion ──

class TestCoerce:
    def test_number_from_string_with_grouping(self):
        field = FieldDescriptor("amount")
        assert coerce_value(field, "1,234.5") == 1234.5

    def test_blank_is_none(self):
        field = FieldDescriptor("amount")
        assert coerce_value(field, "   ") is None
        assert coerce_value(field, None) is None

    def test_not_a_number(self):
        with pytest.raises(ValidationError) as exc:
            coerce_value(FieldDescriptor("amount"), "abc")
        assert exc.value.field == "amount"

    def test_bool_is_not_a_number(self):
        with pytest.raises(ValidationError):
            coerce_value(FieldDescriptor("amount"), True)

    def test_nan_rejected(self):
        with pytest.raises(ValidationError):
            coerce_value(FieldDescriptor("amount"), float("nan"))

    def test_integer_field(self):
        field = FieldDescriptor("people", integer=True)
        assert coerce_value(field, "3") == 3
        with pytest.raises(ValidationError):
            coerce_value(field, 2.5)

    def test_choice_matches_string_form(self):
        field = FieldDescriptor("k", type="choice", options=[1, 4, 12])
        assert coerce_value(field, "12") == 12

    def test_choice_rejects_unknown(self):
        field = FieldDescriptor("sex", type="choice", options=["male", "female"])
        with pytest.raises(ValidationError):
            coerce_value(field, "other")

    def test_boolean_strings(self):
        field = FieldDescriptor("flag", type="boolean")
        assert coerce_value(field, "on") is True
        assert coerce_value(field, "no") is False

    def test_date_iso(self):
        field = FieldDescriptor("d", type="date")
        assert coerce_value(field, "2024-02-29") == datetime.date(2024, 2, 29)
        with pytest.raises(ValidationError):
            coerce_value(field, "29/02/2024")

    def test_partial_composite_is_none(self):
        field = FieldDescriptor("height", dimension="length")
        assert coerce_value(field, {"ft": 5}, "ft_in", DEFAULT_REGISTRY) is None

    def test_complete_composite(self):
        field = FieldDescriptor("height", dimension="length")
        value = coerce_value(field, {"ft": "5", "in": "11"}, "ft_in", DEFAULT_REGISTRY)
        assert value == {"ft": 5.0, "in": 11.0}

    def test_partial_date_range_is_none(self):
        field = FieldDescriptor("period", type="date_range")
        assert coerce_value(field, {"start": "2024-01-01"}) is None

    def test_unknown_field_type(self):
        with pytest.raises(ValueError):
            FieldDescriptor("x", type="color")


# ── Single-field validation ──

class TestValidateField:
    def test_required_missing(self):
        with pytest.raises(MissingValueError):
            validate_field(FieldDescriptor("amount"), "")

    def test_optional_missing(self):
        assert validate_field(FieldDescriptor("amount", required=False), "") is None

    def test_bounds_are_inclusive(self):
        field = FieldDescriptor("pct", min=0, max=100)
        assert validate_field(field, 0) == 0
        assert validate_field(field, 100) == 100

    def test_below_min(self):
        with pytest.raises(ValidationError) as exc:
            validate_field(FieldDescriptor("pct", min=0, max=100), -0.01)
        assert "at least 0" in exc.value.message

    def test_dimensioned_bounds_use_base_units(self):
        field = FieldDescriptor("height", dimension="length", min=0.5, max=2.72)
        # 272 cm is exactly the upper bound
        assert validate_field(field, 272, "cm", DEFAULT_REGISTRY) == 272
        with pytest.raises(ValidationError) as exc:
            validate_field(field, 273, "cm", DEFAULT_REGISTRY)
        assert exc.value.message == "must be at most 272 cm"

    def test_dimensioned_bounds_in_other_unit(self):
        field = FieldDescriptor("height", dimension="length", min=0.5, max=2.72)
        with pytest.raises(ValidationError) as exc:
            validate_field(field, 1, "ft", DEFAULT_REGISTRY)
        assert "ft" in exc.value.message

    def test_composite_bounds(self):
        field = FieldDescriptor("height", dimension="length", min=0.5, max=2.72)
        assert validate_field(field, {"ft": 5, "in": 11}, "ft_in", DEFAULT_REGISTRY) == {"ft": 5, "in": 11}
        with pytest.raises(ValidationError):
            validate_field(field, {"ft": 9, "in": 0}, "ft_in", DEFAULT_REGISTRY)

    def test_temperature_floor(self):
        field = FieldDescriptor("t", dimension="temperature", min=-273.15)
        assert validate_field(field, -459.67, "F", DEFAULT_REGISTRY) == -459.67
        assert validate_field(field, 0, "K", DEFAULT_REGISTRY) == 0
        with pytest.raises(ValidationError):
            validate_field(field, -460, "F", DEFAULT_REGISTRY)
        with pytest.raises(ValidationError):
            validate_field(field, -1, "K", DEFAULT_REGISTRY)

    def test_date_range_order(self):
        field = FieldDescriptor("period", type="date_range")
        with pytest.raises(ValidationError):
            validate_field(field, {"start": "2024-05-01", "end": "2024-04-01"})

    def test_rows(self):
        field = FieldDescriptor("courses", type="rows", min_rows=1, row_fields=[
            FieldDescriptor("credits", min=0, max=20),
            FieldDescriptor("grade", type="choice", options=["A", "B"]),
        ])
        rows = validate_field(field, [
            {"credits": "3", "grade": "A"},
            {"credits": "", "grade": ""},
        ])
        assert rows == [{"credits": 3.0, "grade": "A"}]

    def test_rows_report_row_number(self):
        field = FieldDescriptor("courses", type="rows", row_fields=[
            FieldDescriptor("credits", min=0, max=20),
        ])
        with pytest.raises(ValidationError) as exc:
            validate_field(field, [{"credits": 3}, {"credits": 40}])
        assert exc.value.message.startswith("row 2:")


# ── Visibility ──

class TestVisibility:
    def test_hidden_field_masked(self):
        fields = [
            FieldDescriptor("sex", type="choice", options=["male", "female"]),
            FieldDescriptor("hip", visible_when={"field": "sex", "value": "female"}),
        ]
        assert visible_ids(fields, {"sex": "male"}) == ["sex"]
        assert visible_ids(fields, {"sex": "female"}) == ["sex", "hip"]

    def test_chained_visibility_collapses(self):
        fields = [
            FieldDescriptor("a", type="boolean"),
            FieldDescriptor("b", type="text", visible_when={"field": "a", "value": True}),
            FieldDescriptor("c", visible_when={"set": "b"}),
        ]
        # b keeps its value while hidden, but c must not see it
        assert visible_ids(fields, {"a": False, "b": "x"}) == ["a"]


# ── Whole-form validation ──

class TestValidateFields:
    def _fields(self):
        return [
            FieldDescriptor("neck", dimension="length", min=0.2, max=0.8),
            FieldDescriptor("waist", dimension="length", min=0.4, max=2.0),
        ]

    def test_display_and_base_values(self):
        display, base, errors, missing = validate_fields(
            self._fields(), {"neck": 38, "waist": 86}, {"neck": "cm", "waist": "cm"},
            DEFAULT_REGISTRY,
        )
        assert display == {"neck": 38, "waist": 86}
        assert base["waist"] == pytest.approx(0.86)
        assert errors == {} and missing == []

    def test_one_error_does_not_clear_siblings(self):
        display, _, errors, _ = validate_fields(
            self._fields(), {"neck": 5, "waist": 86}, {"neck": "cm", "waist": "cm"},
            DEFAULT_REGISTRY,
        )
        assert "neck" in errors
        assert display == {"waist": 86}

    def test_missing_listed_separately(self):
        _, _, errors, missing = validate_fields(
            self._fields(), {"neck": 38}, {"neck": "cm", "waist": "cm"}, DEFAULT_REGISTRY,
        )
        assert missing == ["waist"]
        assert errors == {}

    def test_cross_field_check_runs_on_base_values(self):
        check = Check({"field": "waist", "op": "gt", "other": "neck"}, "Waist must exceed neck",
                      field="waist")
        # 16 in (0.4064 m) vs 42 cm: waist is smaller once both are in metres
        _, base, errors, _ = validate_fields(
            self._fields(), {"neck": 42, "waist": 16}, {"neck": "cm", "waist": "in"},
            DEFAULT_REGISTRY, checks=[check],
        )
        assert errors == {"waist": "Waist must exceed neck"}
        assert "waist" not in base

    def test_check_skipped_when_operand_invalid(self):
        check = Check({"field": "waist", "op": "gt", "other": "neck"}, "Waist must exceed neck")
        _, _, errors, _ = validate_fields(
            self._fields(), {"neck": 1, "waist": 86}, {"neck": "cm", "waist": "cm"},
            DEFAULT_REGISTRY, checks=[check],
        )
        assert list(errors) == ["neck"]

    def test_hidden_fields_are_not_validated(self):
        fields = [
            FieldDescriptor("sex", type="choice", options=["male", "female"]),
            FieldDescriptor("hip", min=0.5, visible_when={"field": "sex", "value": "female"}),
        ]
        display, _, errors, missing = validate_fields(fields, {"sex": "male", "hip": -1}, {}, None)
        assert errors == {} and missing == []
        assert "hip" not in display
