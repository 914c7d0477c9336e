"""
Calculation results and per-key display metadata.
"""

import copy
import datetime
from typing import Any, Dict, List, Mapping, Optional

# Result formats
FORMATS = ("number", "integer", "currency", "percentage", "text", "date", "duration")


def serialize_value(value):
    """Dates to ISO strings, recursively; everything else unchanged."""
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {k: serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value


class Results:
    """Output of one calculate call.

    ``values`` holds raw numbers/strings in base units. ``formatted`` is
    filled by the formatter unless the calculate function already set a
    display string for a key. A failed computation has ``error=True`` and
    a human-readable ``message``.
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None,
                 formatted: Optional[Dict[str, str]] = None,
                 tables: Optional[Dict[str, List[Dict]]] = None,
                 warnings: Optional[List[str]] = None,
                 details: Optional[Dict[str, Any]] = None,
                 error: bool = False, message: Optional[str] = None,
                 summary: Optional[str] = None):
        self.values = dict(values or {})
        self.formatted = dict(formatted or {})
        self.tables = dict(tables or {})
        self.warnings = list(warnings or [])
        self.details = dict(details or {})
        self.error = error
        self.message = message
        self.summary = summary

    @classmethod
    def failure(cls, message: str) -> "Results":
        return cls(error=True, message=message)

    def with_formatted(self, formatted: Dict[str, str]) -> "Results":
        """Copy with *formatted* merged under any strings already present."""
        clone = copy.deepcopy(self)
        merged = dict(formatted)
        merged.update(self.formatted)
        clone.formatted = merged
        return clone

    def get(self, key: str, default=None):
        return self.values.get(key, default)

    def __getitem__(self, key):
        return self.values[key]

    def __contains__(self, key):
        return key in self.values

    def to_dict(self) -> Dict:
        return {
            "values": serialize_value(self.values),
            "formatted": self.formatted,
            "tables": serialize_value(self.tables),
            "warnings": self.warnings,
            "details": serialize_value(self.details),
            "error": self.error,
            "message": self.message,
            "summary": self.summary,
        }

    def __eq__(self, other):
        if not isinstance(other, Results):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        if self.error:
            return f"Results(error={self.message!r})"
        return f"Results({self.values!r})"


class ResultSpec:
    """How one result key is displayed.

    ``dimension`` marks a value as a base-unit quantity; the formatter
    converts it to ``display_unit`` (or the unit system default).
    ``currency_field`` names the input holding the currency code, as its
    unit or as its value. ``unit_field`` names a choice input whose value
    is the display unit.
    """

    def __init__(self, id: str, format: str = "number", decimals: Optional[int] = None,
                 dimension: Optional[str] = None, display_unit=None,
                 currency_field: Optional[str] = None, currency: Optional[str] = None,
                 unit_field: Optional[str] = None, primary: bool = False,
                 label: Optional[str] = None):
        if format not in FORMATS:
            raise ValueError(f"Result '{id}': unknown format '{format}'. Supported: {', '.join(FORMATS)}")
        self.id = id
        self.format = format
        self.decimals = decimals
        self.dimension = dimension
        self.display_unit = display_unit
        self.currency_field = currency_field
        self.currency = currency
        self.unit_field = unit_field
        self.primary = primary
        self.label = label or id.replace("_", " ").capitalize()

    def to_dict(self, translate=None) -> Dict:
        t = translate or (lambda key, default: default)
        d = {
            "id": self.id,
            "format": self.format,
            "label": t(f"results.{self.id}.label", self.label),
            "primary": self.primary,
        }
        if self.dimension:
            d["dimension"] = self.dimension
        return d

    def __repr__(self):
        return f"ResultSpec({self.id!r}, {self.format!r})"
