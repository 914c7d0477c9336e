"""
Calculation Engine — Subsystem 1: Unit Conversion Kernel
==========================================================
Dimension-aware conversion between user-facing units and one canonical
base unit per dimension.

    base  = value * factor + offset        (to_base)
    value = (base - offset) / factor       (from_base)

Linear units have offset 0. Affine units (temperature) apply the offset
after scaling on the way in and remove it before inverse scaling on the
way out, so C -> F -> C round-trips.

Composite units (ft/in, h/min/s) take a mapping of part -> number.
Currency units carry no factor: the caller injects a rate table
``{code: value of one unit in the base currency}`` per call.

No rounding happens here. Display rounding belongs to the formatter.
"""

import logging
import math
from typing import Dict, List, Mapping, Optional, Tuple, Union

from calc_engine.errors import (
    ConversionError,
    DimensionMismatchError,
    RateUnavailableError,
    UnknownUnitError,
)

logger = logging.getLogger(__name__)

METRIC = "metric"
IMPERIAL = "imperial"
UNIT_SYSTEMS = (METRIC, IMPERIAL)

# Countries that default to US customary units
IMPERIAL_COUNTRIES = {"US", "LR", "MM"}

# Composite split tolerance: 5.9999999999 ft is 6 ft, not 5 ft 11.99 in
_SPLIT_EPSILON = 1e-9

Quantity = Union[float, int, Mapping[str, float]]


class Dimension:
    """A category of quantity with exactly one base unit."""

    def __init__(self, name: str, base_unit: str,
                 metric_unit: Optional[str] = None,
                 imperial_unit: Optional[str] = None):
        self.name = name
        self.base_unit = base_unit
        self.metric_unit = metric_unit or base_unit
        self.imperial_unit = imperial_unit or self.metric_unit

    def __repr__(self):
        return f"Dimension({self.name!r}, base={self.base_unit!r})"


class UnitDefinition:
    """One unit inside a dimension.

    ``parts`` is set for composite units: an ordered tuple of
    ``(part_name, factor)`` from the largest part to the smallest.
    ``dynamic`` units (currencies) take their factor from a rate table.
    """

    def __init__(self, unit_id: str, dimension: str, factor: Optional[float] = 1.0,
                 offset: float = 0.0, symbol: Optional[str] = None,
                 name: Optional[str] = None, regions=(), decimals: int = 2,
                 parts: Optional[Tuple[Tuple[str, float], ...]] = None,
                 dynamic: bool = False, **extra):
        self.id = unit_id
        self.dimension = dimension
        self.factor = factor
        self.offset = offset
        self.symbol = symbol or unit_id
        self.name = name or unit_id
        self.regions = tuple(regions)
        self.decimals = decimals
        self.parts = tuple(parts) if parts else None
        self.dynamic = dynamic
        self.extra = extra

    @property
    def is_composite(self) -> bool:
        return self.parts is not None

    @property
    def is_affine(self) -> bool:
        return bool(self.offset)

    @property
    def part_names(self) -> List[str]:
        return [p for p, _ in self.parts] if self.parts else []

    def to_dict(self) -> Dict:
        d = {
            "id": self.id,
            "dimension": self.dimension,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
        }
        if self.parts:
            d["parts"] = self.part_names
        return d

    def __repr__(self):
        return f"UnitDefinition({self.id!r}, {self.dimension!r})"


class UnitRegistry:
    """Registered dimensions and units. Filled once at startup, then read-only."""

    def __init__(self):
        self._dimensions: Dict[str, Dimension] = {}
        self._units: Dict[str, UnitDefinition] = {}
        self._aliases: Dict[str, str] = {}
        self._by_dimension: Dict[str, List[str]] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_dimension(self, name: str, base_unit: str,
                           metric_unit: Optional[str] = None,
                           imperial_unit: Optional[str] = None) -> Dimension:
        if name in self._dimensions:
            raise ConversionError(f"Dimension '{name}' is already registered")
        dim = Dimension(name, base_unit, metric_unit, imperial_unit)
        self._dimensions[name] = dim
        self._by_dimension[name] = []
        return dim

    def _add(self, unit: UnitDefinition, aliases=()) -> UnitDefinition:
        if unit.dimension not in self._dimensions:
            raise ConversionError(
                f"Cannot register '{unit.id}': unknown dimension '{unit.dimension}'"
            )
        if unit.id in self._units or unit.id in self._aliases:
            raise ConversionError(f"Unit '{unit.id}' is already registered")
        self._units[unit.id] = unit
        self._by_dimension[unit.dimension].append(unit.id)
        for alias in aliases:
            self._aliases[_alias_key(alias)] = unit.id
        # Case-insensitive id lookup, unless another unit already claims it
        self._aliases.setdefault(_alias_key(unit.id), unit.id)
        return unit

    def register_unit(self, unit_id: str, dimension: str, factor: float = 1.0,
                      offset: float = 0.0, aliases=(), **kwargs) -> UnitDefinition:
        """Register a linear (offset=0) or affine unit."""
        if not factor or not math.isfinite(factor):
            raise ConversionError(f"Unit '{unit_id}' needs a finite non-zero factor")
        dim = self._dimensions.get(dimension)
        if dim is not None and unit_id == dim.base_unit and (factor != 1.0 or offset):
            raise ConversionError(
                f"Base unit '{unit_id}' of '{dimension}' must have factor 1 and no offset"
            )
        unit = UnitDefinition(unit_id, dimension, factor=float(factor),
                              offset=float(offset), **kwargs)
        return self._add(unit, aliases)

    def register_composite(self, unit_id: str, dimension: str,
                           parts: Tuple[Tuple[str, float], ...],
                           aliases=(), **kwargs) -> UnitDefinition:
        """Register a multi-part unit, parts ordered largest first."""
        if len(parts) < 2:
            raise ConversionError(f"Composite unit '{unit_id}' needs at least two parts")
        for part, factor in parts:
            if not factor or factor <= 0:
                raise ConversionError(f"Part '{part}' of '{unit_id}' needs a positive factor")
        unit = UnitDefinition(unit_id, dimension, factor=None, parts=parts, **kwargs)
        return self._add(unit, aliases)

    def register_currency(self, code: str, dimension: str = "currency",
                          aliases=(), **kwargs) -> UnitDefinition:
        """Register a currency. Its factor comes from the rate table at call time."""
        unit = UnitDefinition(code, dimension, factor=None, dynamic=True, **kwargs)
        return self._add(unit, aliases)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve(self, unit: str) -> str:
        """Return the canonical unit id for an id or alias."""
        if unit in self._units:
            return unit
        if isinstance(unit, str):
            canonical = self._aliases.get(_alias_key(unit))
            if canonical:
                return canonical
        raise UnknownUnitError(unit)

    def get(self, unit: str, dimension: Optional[str] = None) -> UnitDefinition:
        try:
            definition = self._units[self.resolve(unit)]
        except UnknownUnitError:
            raise UnknownUnitError(unit, dimension) from None
        if dimension is not None and definition.dimension != dimension:
            raise UnknownUnitError(unit, dimension)
        return definition

    def has_unit(self, unit: str) -> bool:
        try:
            self.resolve(unit)
            return True
        except UnknownUnitError:
            return False

    def dimension(self, name: str) -> Dimension:
        dim = self._dimensions.get(name)
        if dim is None:
            raise ConversionError(f"Unknown dimension '{name}'")
        return dim

    def has_dimension(self, name: str) -> bool:
        return name in self._dimensions

    def dimensions(self) -> List[str]:
        return list(self._dimensions)

    def dimension_of(self, unit: str) -> str:
        return self.get(unit).dimension

    def units_for(self, dimension: str) -> List[UnitDefinition]:
        self.dimension(dimension)
        return [self._units[u] for u in self._by_dimension[dimension]]

    def is_composite(self, unit: str) -> bool:
        return self.get(unit).is_composite

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def _rate(self, unit: UnitDefinition, rates: Optional[Mapping[str, float]]) -> float:
        if unit.id == self._dimensions[unit.dimension].base_unit:
            return 1.0
        if not rates:
            raise RateUnavailableError(f"No exchange rates supplied for '{unit.id}'")
        rate = rates.get(unit.id)
        if rate is None or not rate or not math.isfinite(rate):
            raise RateUnavailableError(f"No exchange rate for '{unit.id}'")
        return float(rate)

    def to_base(self, value: Quantity, unit: str, dimension: Optional[str] = None,
                rates: Optional[Mapping[str, float]] = None) -> float:
        """Convert *value* expressed in *unit* to the dimension's base unit."""
        u = self.get(unit, dimension)
        if u.is_composite:
            if not isinstance(value, Mapping):
                raise ConversionError(
                    f"Composite unit '{u.id}' expects parts {u.part_names}, got {value!r}"
                )
            return sum(float(value.get(part) or 0.0) * factor for part, factor in u.parts)
        if isinstance(value, Mapping):
            raise ConversionError(f"Unit '{u.id}' expects a single number, got {value!r}")
        if u.dynamic:
            return float(value) * self._rate(u, rates)
        return float(value) * u.factor + u.offset

    def from_base(self, value: float, unit: str, dimension: Optional[str] = None,
                  rates: Optional[Mapping[str, float]] = None) -> Quantity:
        """Convert a base-unit *value* to *unit*. Composite units return a dict."""
        u = self.get(unit, dimension)
        value = float(value)
        if u.is_composite:
            return _split(value, u.parts)
        if u.dynamic:
            return value / self._rate(u, rates)
        return (value - u.offset) / u.factor

    def convert(self, value: Quantity, from_unit: str, to_unit: str,
                rates: Optional[Mapping[str, float]] = None) -> Quantity:
        """fromBase(toBase(value, from_unit), to_unit); both units share a dimension."""
        src = self.get(from_unit)
        dst = self.get(to_unit)
        if src.dimension != dst.dimension:
            raise DimensionMismatchError(src.id, dst.id, src.dimension, dst.dimension)
        base = self.to_base(value, src.id, rates=rates)
        return self.from_base(base, dst.id, rates=rates)

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    def default_unit(self, dimension: str, unit_system: Optional[str] = None) -> str:
        dim = self.dimension(dimension)
        if unit_system == IMPERIAL:
            return dim.imperial_unit
        if unit_system == METRIC:
            return dim.metric_unit
        return dim.base_unit

    def guess_default_unit(self, dimension: str, locale: str) -> str:
        """Pick a display unit for a locale like 'en-US' or 'pt-BR'.

        Region hints on the units win, then US customary vs metric by
        country, then the base unit.
        """
        parts = (locale or "").replace("_", "-").split("-")
        country = parts[1].upper() if len(parts) > 1 else ""
        if country:
            for unit in self.units_for(dimension):
                if country in unit.regions:
                    return unit.id
            if country in IMPERIAL_COUNTRIES:
                return self.default_unit(dimension, IMPERIAL)
            return self.default_unit(dimension, METRIC)
        return self.dimension(dimension).base_unit


def _alias_key(unit: str) -> str:
    return unit.strip().lower().replace(" ", "").replace("_", "").replace("°", "")


def _split(base: float, parts: Tuple[Tuple[str, float], ...]) -> Dict[str, float]:
    """Split a base value into whole larger parts and a fractional last part."""
    sign = -1.0 if base < 0 else 1.0
    remaining = abs(base)
    out = {}
    for part, factor in parts[:-1]:
        whole = math.floor(remaining / factor + _SPLIT_EPSILON)
        out[part] = sign * whole
        remaining -= whole * factor
    last, factor = parts[-1]
    out[last] = sign * max(remaining, 0.0) / factor
    return out
