"""
Calculation Engine — Subsystem 3: Field Schema & Validation
=============================================================
Declarative description of a calculator's inputs and the validation
pass that turns raw user input into typed display values plus
base-unit values for the calculate function.

Validation order per field: required, type, integer, min, max.
Cross-field checks run afterwards against base values of the fields
that passed on their own. A field that fails never clears the values
of its siblings.

Bounds (``min``/``max``) of a dimensioned field are in the dimension's
base unit and are compared after normalization. Bounds are inclusive.
"""

import datetime
import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from calc_engine.errors import MissingValueError, ValidationError
from calc_engine.expressions import Expr, parse_condition

logger = logging.getLogger(__name__)

# Field types
NUMBER = "number"
CHOICE = "choice"
BOOLEAN = "boolean"
DATE = "date"
DATE_RANGE = "date_range"
ROWS = "rows"
TEXT = "text"
FIELD_TYPES = (NUMBER, CHOICE, BOOLEAN, DATE, DATE_RANGE, ROWS, TEXT)

RANGE_PARTS = ("start", "end")

# Tolerance for inclusive bounds compared after unit conversion
BOUND_REL_TOL = 1e-9
BOUND_ABS_TOL = 1e-12

_TRUE_STRINGS = {"true", "on", "1", "yes"}
_FALSE_STRINGS = {"false", "off", "0", "no"}


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _fmt(value) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


class Check:
    """Cross-field rule. ``expr`` must hold; otherwise ``message`` is reported at ``field``."""

    def __init__(self, expr, message: str, field: Optional[str] = None):
        self.expr = parse_condition(expr)
        self.message = message
        self.field = field

    def target(self) -> Optional[str]:
        if self.field:
            return self.field
        refs = self.expr.fields()
        return refs[0] if refs else None

    def __repr__(self):
        return f"Check({self.expr!r}, {self.message!r})"


class FieldDescriptor:
    """One input of a calculator."""

    def __init__(self, id: str, type: str = NUMBER, label: Optional[str] = None,
                 required: bool = True, default: Any = None,
                 min: Optional[float] = None, max: Optional[float] = None,
                 integer: bool = False, options=None,
                 dimension: Optional[str] = None, default_unit=None,
                 allowed_units: Optional[List[str]] = None,
                 normalize: bool = True, auto_convert: bool = True,
                 visible_when=None, sync_group: Optional[str] = None,
                 checks=None, row_fields=None, min_rows: int = 0,
                 max_rows: Optional[int] = None, placeholder: Optional[str] = None,
                 help: Optional[str] = None):
        if type not in FIELD_TYPES:
            raise ValueError(f"Field '{id}': unknown type '{type}'. Supported: {', '.join(FIELD_TYPES)}")
        self.id = id
        self.type = type
        self.label = label or id.replace("_", " ").capitalize()
        self.required = required
        self.default = default
        self.min = min
        self.max = max
        self.integer = integer
        self.options = _normalize_options(options)
        self.dimension = dimension
        self.default_unit = default_unit
        self.allowed_units = list(allowed_units) if allowed_units else None
        self.normalize = normalize
        self.auto_convert = auto_convert
        self.visible_when: Optional[Expr] = (
            parse_condition(visible_when) if visible_when is not None else None
        )
        self.sync_group = sync_group
        self.checks = [c if isinstance(c, Check) else Check(*c) for c in (checks or [])]
        for check in self.checks:
            if check.field is None:
                check.field = id
        self.row_fields = list(row_fields or [])
        self.min_rows = min_rows
        self.max_rows = max_rows
        self.placeholder = placeholder
        self.help = help

    # ------------------------------------------------------------------

    @property
    def option_values(self) -> List[Any]:
        return [o["value"] for o in self.options]

    @property
    def has_unit(self) -> bool:
        return self.dimension is not None

    def unit_for(self, unit_system: Optional[str], registry) -> Optional[str]:
        """Unit shown when the user has not picked one."""
        if not self.dimension:
            return None
        if isinstance(self.default_unit, Mapping):
            unit = self.default_unit.get(unit_system) or self.default_unit.get("metric")
            if unit:
                return unit
        elif self.default_unit:
            return self.default_unit
        return registry.default_unit(self.dimension, unit_system)

    def units(self, registry) -> List[str]:
        if not self.dimension:
            return []
        if self.allowed_units:
            return list(self.allowed_units)
        return [u.id for u in registry.units_for(self.dimension)]

    def is_visible(self, values: Mapping[str, Any]) -> bool:
        return self.visible_when is None or bool(self.visible_when.evaluate(values))

    def to_dict(self, registry=None, translate=None) -> Dict:
        """Shape consumed by renderers."""
        t = translate or (lambda key, default: default)
        d = {
            "id": self.id,
            "type": self.type,
            "label": t(f"inputs.{self.id}.label", self.label),
            "required": self.required,
            "default": self.default,
        }
        for attr in ("min", "max", "dimension", "sync_group", "placeholder"):
            value = getattr(self, attr)
            if value is not None:
                d[attr] = value
        if self.integer:
            d["integer"] = True
        if self.help:
            d["help"] = t(f"inputs.{self.id}.help", self.help)
        if self.options:
            d["options"] = [
                {"value": o["value"],
                 "label": t(f"inputs.{self.id}.options.{o['value']}", o["label"])}
                for o in self.options
            ]
        if self.dimension:
            d["default_unit"] = self.default_unit
            if registry is not None:
                d["units"] = self.units(registry)
        if self.visible_when is not None:
            d["visible_when"] = repr(self.visible_when)
        if self.row_fields:
            d["row_fields"] = [f.to_dict(registry, translate) for f in self.row_fields]
            d["min_rows"] = self.min_rows
            if self.max_rows is not None:
                d["max_rows"] = self.max_rows
        return d

    def __repr__(self):
        return f"FieldDescriptor({self.id!r}, {self.type!r})"


class Section:
    """Ordered group of fields rendered together."""

    def __init__(self, id: str, fields: List[FieldDescriptor], label: Optional[str] = None,
                 collapsible: bool = False):
        self.id = id
        self.fields = list(fields)
        self.label = label or id.replace("_", " ").capitalize()
        self.collapsible = collapsible

    def to_dict(self, registry=None, translate=None) -> Dict:
        t = translate or (lambda key, default: default)
        return {
            "id": self.id,
            "label": t(f"sections.{self.id}", self.label),
            "collapsible": self.collapsible,
            "fields": [f.to_dict(registry, translate) for f in self.fields],
        }


def _normalize_options(options) -> List[Dict]:
    out = []
    for opt in options or []:
        if isinstance(opt, Mapping):
            out.append({"value": opt["value"], "label": opt.get("label", str(opt["value"]))})
        elif isinstance(opt, (list, tuple)):
            out.append({"value": opt[0], "label": opt[1]})
        else:
            out.append({"value": opt, "label": str(opt)})
    return out


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

def _to_number(field_id: str, raw, integer: bool = False) -> float:
    if isinstance(raw, bool):
        raise ValidationError(field_id, "must be a number")
    if isinstance(raw, str):
        text = raw.strip().replace(",", "").replace("_", "")
        try:
            value = float(text)
        except ValueError:
            raise ValidationError(field_id, "must be a number") from None
    elif isinstance(raw, (int, float)):
        value = float(raw)
    else:
        raise ValidationError(field_id, "must be a number")
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(field_id, "must be a finite number")
    if integer and not value.is_integer():
        raise ValidationError(field_id, "must be a whole number")
    return value


def _to_date(field_id: str, raw) -> datetime.date:
    if isinstance(raw, datetime.datetime):
        return raw.date()
    if isinstance(raw, datetime.date):
        return raw
    if isinstance(raw, str):
        try:
            return datetime.date.fromisoformat(raw.strip()[:10])
        except ValueError:
            raise ValidationError(field_id, "must be a date (YYYY-MM-DD)") from None
    raise ValidationError(field_id, "must be a date (YYYY-MM-DD)")


def _to_bool(field_id: str, raw) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str):
        text = raw.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValidationError(field_id, "must be true or false")


def _composite_parts(field: FieldDescriptor, unit: Optional[str], registry) -> Optional[List[str]]:
    if field.type != NUMBER or not unit or registry is None:
        return None
    definition = registry.get(unit)
    return definition.part_names if definition.is_composite else None


def coerce_value(field: FieldDescriptor, raw, unit: Optional[str] = None, registry=None):
    """Parse *raw* into the field's Python type. Blank input returns None.

    Composite inputs (multi-part units, date ranges) return None until every
    part is present.
    """
    if field.type == ROWS:
        return raw if raw else None

    parts = _composite_parts(field, unit, registry)
    if parts is not None:
        if not isinstance(raw, Mapping):
            if _is_blank(raw):
                return None
            raise ValidationError(field.id, f"expects {', '.join(parts)}")
        if any(_is_blank(raw.get(p)) for p in parts):
            return None
        return {p: _to_number(field.id, raw[p]) for p in parts}

    if field.type == DATE_RANGE:
        if not isinstance(raw, Mapping):
            if _is_blank(raw):
                return None
            raise ValidationError(field.id, "expects a start and an end date")
        if any(_is_blank(raw.get(p)) for p in RANGE_PARTS):
            return None
        return {p: _to_date(field.id, raw[p]) for p in RANGE_PARTS}

    if _is_blank(raw):
        return None
    if field.type == NUMBER:
        return _to_number(field.id, raw, field.integer)
    if field.type == CHOICE:
        values = field.option_values
        if raw in values:
            return raw
        for value in values:
            if str(value) == str(raw):
                return value
        raise ValidationError(field.id, f"must be one of: {', '.join(str(v) for v in values)}")
    if field.type == BOOLEAN:
        return _to_bool(field.id, raw)
    if field.type == DATE:
        return _to_date(field.id, raw)
    return str(raw).strip()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _on_bound(value, bound) -> bool:
    # Unit conversion leaves float noise on an exact boundary
    if isinstance(value, float) or isinstance(bound, float):
        return math.isclose(value, bound, rel_tol=BOUND_REL_TOL, abs_tol=BOUND_ABS_TOL)
    return False


def _check_bounds(field: FieldDescriptor, value, shown=None, unit_symbol: str = ""):
    """Inclusive min/max. *value* is what the bounds are expressed in."""
    suffix = f" {unit_symbol}" if unit_symbol else ""
    if field.min is not None and value < field.min and not _on_bound(value, field.min):
        low = shown(field.min) if shown else field.min
        raise ValidationError(field.id, f"must be at least {_fmt(low)}{suffix}")
    if field.max is not None and value > field.max and not _on_bound(value, field.max):
        high = shown(field.max) if shown else field.max
        raise ValidationError(field.id, f"must be at most {_fmt(high)}{suffix}")


def _validate_rows(field: FieldDescriptor, raw) -> List[Dict]:
    if not isinstance(raw, (list, tuple)):
        raise ValidationError(field.id, "expects a list of rows")
    rows = []
    for index, row in enumerate(raw, start=1):
        if not isinstance(row, Mapping):
            raise ValidationError(field.id, f"row {index} is not an object")
        if all(_is_blank(row.get(sub.id)) for sub in field.row_fields):
            continue
        clean = {}
        for sub in field.row_fields:
            try:
                value = coerce_value(sub, row.get(sub.id))
                if value is None:
                    if sub.required:
                        raise MissingValueError(sub.id)
                    value = sub.default
                elif sub.type == NUMBER:
                    _check_bounds(sub, value)
            except ValidationError as e:
                raise ValidationError(field.id, f"row {index}: {sub.label} {e.message}") from None
            clean[sub.id] = value
        rows.append(clean)
    if len(rows) < field.min_rows:
        if not rows and field.required:
            raise MissingValueError(field.id)
        raise ValidationError(field.id, f"needs at least {field.min_rows} rows")
    if field.max_rows is not None and len(rows) > field.max_rows:
        raise ValidationError(field.id, f"allows at most {field.max_rows} rows")
    return rows


def _check_field(field: FieldDescriptor, raw, unit: Optional[str], registry,
                 rates=None) -> Tuple[Any, Any]:
    """Return ``(display_value, base_value)`` or raise ValidationError."""
    if field.type == ROWS:
        if _is_blank(raw):
            if field.required:
                raise MissingValueError(field.id)
            return [], []
        rows = _validate_rows(field, raw)
        return rows, rows

    value = coerce_value(field, raw, unit, registry)
    if value is None:
        if field.required:
            raise MissingValueError(field.id)
        return None, None

    if field.type == NUMBER and field.dimension and field.normalize:
        if not unit:
            raise ValidationError(field.id, "has no unit")
        base = registry.to_base(value, unit, field.dimension, rates=rates)
        definition = registry.get(unit)
        if definition.is_composite:
            base_unit = registry.dimension(field.dimension).base_unit
            _check_bounds(field, base, None, registry.get(base_unit).symbol)
        else:
            _check_bounds(field, base,
                          lambda b: registry.from_base(b, unit, rates=rates),
                          definition.symbol)
        return value, base

    if field.type in (NUMBER, DATE):
        _check_bounds(field, value)
    elif field.type == DATE_RANGE and value["end"] < value["start"]:
        raise ValidationError(field.id, "end date must not be before start date")
    return value, value


def validate_field(field: FieldDescriptor, raw, unit: Optional[str] = None,
                   registry=None, rates=None):
    """Validate one field on its own; returns the value in display units."""
    display, _ = _check_field(field, raw, unit, registry, rates)
    return display


def visible_ids(fields: List[FieldDescriptor], values: Mapping[str, Any]) -> List[str]:
    """Ids of fields whose visibility predicate holds.

    Evaluated in declaration order; a hidden field's value is masked from
    the fields after it, so chained conditions collapse together.
    """
    masked = dict(values)
    visible = []
    for field in fields:
        if field.is_visible(masked):
            visible.append(field.id)
        else:
            masked.pop(field.id, None)
    return visible


def validate_fields(fields: List[FieldDescriptor], values: Mapping[str, Any],
                    units: Mapping[str, str], registry, checks=(),
                    visible: Optional[List[str]] = None, rates=None):
    """Validate every visible field, then the cross-field checks.

    Returns ``(display_values, base_values, errors, missing)`` where
    ``errors`` maps field id to message and ``missing`` lists required
    fields with no value. Hidden fields are skipped entirely.
    """
    if visible is None:
        visible = visible_ids(fields, values)
    shown = set(visible)

    display_values: Dict[str, Any] = {}
    base_values: Dict[str, Any] = {}
    errors: Dict[str, str] = {}
    missing: List[str] = []

    for field in fields:
        if field.id not in shown:
            continue
        try:
            display, base = _check_field(field, values.get(field.id),
                                         units.get(field.id), registry, rates)
        except MissingValueError:
            missing.append(field.id)
            continue
        except ValidationError as e:
            errors[field.id] = e.message
            continue
        display_values[field.id] = display
        base_values[field.id] = base

    all_checks = list(checks) + [c for f in fields if f.id in shown for c in f.checks]
    for check in all_checks:
        refs = check.expr.fields()
        if any(ref not in base_values or base_values[ref] is None for ref in refs):
            continue
        if not check.expr.evaluate(base_values):
            target = check.target()
            if target and target not in errors:
                errors[target] = check.message
            base_values.pop(target, None)
            display_values.pop(target, None)

    return display_values, base_values, errors, missing
