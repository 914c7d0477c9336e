"""
Calculation Engine — Subsystem 7a: Result Formatter
=====================================================
Turns raw Results into locale- and unit-aware display strings. This is
the only place numbers are rounded (half-up, on the decimal string of
the float so 2.675 -> 2.68).
"""

import datetime
import logging
import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Dict, Optional

from calc_engine.results import Results, ResultSpec
from calc_engine.translations import language_of
from calc_engine.unit_catalog import DEFAULT_REGISTRY

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

LOCALE_CONVENTIONS = {
    "en": {"group": ",", "decimal": ".", "date": "%m/%d/%Y"},
    "es": {"group": ".", "decimal": ",", "date": "%d/%m/%Y"},
    "pt": {"group": ".", "decimal": ",", "date": "%d/%m/%Y"},
    "fr": {"group": " ", "decimal": ",", "date": "%d/%m/%Y"},
    "de": {"group": ".", "decimal": ",", "date": "%d.%m.%Y"},
}

COMPACT_SUFFIXES = ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K"))


def conventions(locale: str) -> Dict[str, str]:
    return LOCALE_CONVENTIONS.get(language_of(locale), LOCALE_CONVENTIONS["en"])


def _finite(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def round_half_up(value: float, decimals: int = 0) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = 400
        exp = Decimal(1).scaleb(-decimals)
        return Decimal(str(value)).quantize(exp, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Primitive formatters
# ---------------------------------------------------------------------------

def format_number(value, decimals: int = 2, locale: str = "en", trim: bool = False) -> str:
    if not _finite(value):
        return NOT_AVAILABLE
    rounded = round_half_up(value, decimals)
    if rounded == 0:
        rounded = abs(rounded)
    text = format(rounded, f",.{decimals}f")
    if trim and "." in text:
        text = text.rstrip("0").rstrip(".")
    conv = conventions(locale)
    return text.replace(",", "\0").replace(".", conv["decimal"]).replace("\0", conv["group"])


def format_currency(value, currency: str = "USD", locale: str = "en",
                    decimals: Optional[int] = None) -> str:
    if not _finite(value):
        return NOT_AVAILABLE
    try:
        unit = DEFAULT_REGISTRY.get(currency, "currency")
        symbol, position = unit.symbol, unit.extra.get("position", "before")
        if decimals is None:
            decimals = unit.decimals
    except ValueError:
        symbol, position = currency, "after"
        if decimals is None:
            decimals = 2
    number = format_number(abs(value), decimals, locale)
    sign = "-" if round_half_up(value, decimals) < 0 else ""
    if position == "before":
        return f"{sign}{symbol}{number}"
    return f"{sign}{number} {symbol}"


def format_percentage(value, decimals: int = 2, locale: str = "en") -> str:
    """*value* is already a percentage (5.25 -> '5.25%')."""
    if not _finite(value):
        return NOT_AVAILABLE
    sep = " " if language_of(locale) in ("fr", "de") else ""
    return f"{format_number(value, decimals, locale)}{sep}%"


def format_duration(seconds, locale: str = "en") -> str:
    """Seconds -> 'h:mm:ss'."""
    if not _finite(seconds):
        return NOT_AVAILABLE
    total = int(round_half_up(abs(seconds), 0))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    sign = "-" if seconds < 0 and total else ""
    return f"{sign}{hours}:{minutes:02d}:{secs:02d}"


def format_date(value, locale: str = "en") -> str:
    if isinstance(value, str):
        try:
            value = datetime.date.fromisoformat(value[:10])
        except ValueError:
            return value
    if not isinstance(value, datetime.date):
        return NOT_AVAILABLE
    return value.strftime(conventions(locale)["date"])


def format_compact(value, decimals: int = 1, locale: str = "en") -> str:
    """1234567 -> '1.2M'."""
    if not _finite(value):
        return NOT_AVAILABLE
    for threshold, suffix in COMPACT_SUFFIXES:
        if abs(value) >= threshold:
            return f"{format_number(value / threshold, decimals, locale, trim=True)}{suffix}"
    return format_number(value, 0 if float(value).is_integer() else decimals, locale)


# ---------------------------------------------------------------------------
# Results formatter
# ---------------------------------------------------------------------------

class ResultFormatter:
    def __init__(self, units=None, translations=None):
        self.units = units or DEFAULT_REGISTRY
        self.translations = translations

    def display_unit(self, spec: ResultSpec, unit_system: str,
                     field_values: Optional[Dict] = None) -> str:
        chosen = None
        if spec.unit_field:
            chosen = (field_values or {}).get(spec.unit_field)
        if not chosen:
            chosen = spec.display_unit
            if isinstance(chosen, dict):
                chosen = chosen.get(unit_system)
        return chosen or self.units.default_unit(spec.dimension, unit_system)

    def format_quantity(self, value, spec: ResultSpec, locale: str, unit_system: str,
                        field_values: Optional[Dict] = None) -> str:
        """Base-unit *value* -> display unit string with symbol."""
        if not _finite(value):
            return NOT_AVAILABLE
        unit = self.units.get(self.display_unit(spec, unit_system, field_values))
        shown = self.units.from_base(value, unit.id)
        decimals = spec.decimals if spec.decimals is not None else unit.decimals
        if unit.is_composite:
            if spec.dimension == "time":
                return format_duration(value, locale)
            return self._format_composite(shown, unit, decimals, locale)
        return f"{format_number(shown, decimals, locale)} {unit.symbol}"

    def _format_composite(self, parts: Dict[str, float], unit, decimals: int, locale: str) -> str:
        names = unit.part_names
        factors = [f for _, f in unit.parts]
        amounts = [parts[n] for n in names]
        amounts[-1] = float(round_half_up(amounts[-1], decimals))
        # Carry rounded overflow upward (5 ft 12.0 in -> 6 ft 0 in)
        for i in range(len(amounts) - 1, 0, -1):
            ratio = round(factors[i - 1] / factors[i], 6)
            if abs(amounts[i]) >= ratio:
                amounts[i] -= math.copysign(ratio, amounts[i])
                amounts[i - 1] += math.copysign(1, amounts[i - 1] or amounts[i] or 1)
        pieces = [f"{format_number(a, 0, locale)} {n}" for a, n in zip(amounts[:-1], names[:-1])]
        pieces.append(f"{format_number(amounts[-1], decimals, locale, trim=True)} {names[-1]}")
        return " ".join(pieces)

    def currency_code(self, spec: ResultSpec, field_units: Optional[Dict] = None,
                      field_values: Optional[Dict] = None) -> str:
        if spec.currency:
            return spec.currency
        if spec.currency_field:
            code = (field_units or {}).get(spec.currency_field)
            if not code:
                code = (field_values or {}).get(spec.currency_field)
            if code:
                return code
        return "USD"

    def format_value(self, spec: ResultSpec, value, locale: str = "en",
                     unit_system: str = "metric", field_units: Optional[Dict] = None,
                     field_values: Optional[Dict] = None) -> str:
        if value is None:
            return NOT_AVAILABLE
        if spec.format == "text":
            return str(value)
        if spec.format == "date":
            return format_date(value, locale)
        if spec.format == "duration":
            return format_duration(value, locale)
        if spec.dimension and spec.format == "number":
            return self.format_quantity(value, spec, locale, unit_system, field_values)
        if spec.format == "currency":
            code = self.currency_code(spec, field_units, field_values)
            return format_currency(value, code, locale, spec.decimals)
        if spec.format == "percentage":
            return format_percentage(value, 2 if spec.decimals is None else spec.decimals, locale)
        if spec.format == "integer":
            return format_number(value, 0, locale)
        return format_number(value, 2 if spec.decimals is None else spec.decimals, locale)

    def format_results(self, config, results: Results, locale: str = "en",
                       unit_system: str = "metric", field_units: Optional[Dict] = None,
                       field_values: Optional[Dict] = None) -> Results:
        """Return a copy of *results* with ``formatted`` filled for every spec'd key.

        *field_units* and *field_values* are the session's chosen units and
        validated display values; specs read currency codes and display
        units from them.
        """
        if results.error:
            return results
        formatted = {}
        for spec in config.results:
            if spec.id in results.formatted or spec.id not in results.values:
                continue
            try:
                formatted[spec.id] = self.format_value(
                    spec, results.values[spec.id], locale, unit_system,
                    field_units, field_values,
                )
            except (ValueError, TypeError) as e:
                logger.error(f"[{config.id}] cannot format result '{spec.id}': {e}")
                formatted[spec.id] = NOT_AVAILABLE
        return results.with_formatted(formatted)

    def labels(self, config, locale: str = "en") -> Dict[str, str]:
        if self.translations is None:
            return {spec.id: spec.label for spec in config.results}
        return {
            spec.id: self.translations.translate(locale, config.id,
                                                 f"results.{spec.id}.label", spec.label)
            for spec in config.results
        }
