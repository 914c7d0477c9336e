"""
Default unit catalog.

Builds the process-wide ``DEFAULT_REGISTRY`` and exposes module-level
``to_base`` / ``from_base`` / ``convert`` / ``register_unit`` helpers that
delegate to it. Factors are exact definitions where one exists (the
international yard and pound), otherwise the customary value.
"""

import logging

from calc_engine.units import UnitRegistry

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

M_PER_IN = 0.0254
M_PER_FT = 0.3048
M_PER_YD = 0.9144
M_PER_MI = 1609.344
M_PER_NMI = 1852.0

KG_PER_LB = 0.45359237
KG_PER_OZ = KG_PER_LB / 16
KG_PER_ST = KG_PER_LB * 14

L_PER_GAL_US = 3.785411784
L_PER_GAL_UK = 4.54609
L_PER_FL_OZ = L_PER_GAL_US / 128

SECONDS_PER_MIN = 60
SECONDS_PER_HOUR = 3_600
SECONDS_PER_DAY = 86_400

KCAL_PER_KJ = 1 / 4.184

METRIC_REGIONS = ("EU", "BR", "MX", "AR", "CL", "CO", "PE", "IN", "JP", "AU",
                  "NZ", "DE", "FR", "IT", "ES", "PT")
IMPERIAL_REGIONS = ("US", "LR", "MM")

# code -> (symbol, name, decimals, position, regions)
CURRENCIES = {
    "USD": ("$", "US Dollar", 2, "before", ("US",)),
    "EUR": ("€", "Euro", 2, "after", ("DE", "FR", "IT", "ES", "PT", "IE", "NL")),
    "GBP": ("£", "British Pound", 2, "before", ("GB",)),
    "BRL": ("R$", "Brazilian Real", 2, "before", ("BR",)),
    "MXN": ("$", "Mexican Peso", 2, "before", ("MX",)),
    "ARS": ("$", "Argentine Peso", 2, "before", ("AR",)),
    "CLP": ("$", "Chilean Peso", 0, "before", ("CL",)),
    "COP": ("$", "Colombian Peso", 0, "before", ("CO",)),
    "CAD": ("C$", "Canadian Dollar", 2, "before", ("CA",)),
    "JPY": ("¥", "Japanese Yen", 0, "before", ("JP",)),
    "CHF": ("CHF", "Swiss Franc", 2, "after", ("CH",)),
    "INR": ("₹", "Indian Rupee", 2, "before", ("IN",)),
    "AUD": ("A$", "Australian Dollar", 2, "before", ("AU",)),
}


def build_default_registry() -> UnitRegistry:
    """Create a registry holding every dimension the calculator catalog uses."""
    reg = UnitRegistry()

    # Length (base: metre)
    reg.register_dimension("length", "m", metric_unit="m", imperial_unit="ft")
    reg.register_unit("mm", "length", 0.001, symbol="mm", name="Millimeters")
    reg.register_unit("cm", "length", 0.01, symbol="cm", name="Centimeters",
                      regions=METRIC_REGIONS, aliases=("centimeter", "centimeters"))
    reg.register_unit("m", "length", 1.0, symbol="m", name="Meters",
                      aliases=("meter", "meters", "metre", "metres"))
    reg.register_unit("km", "length", 1000.0, symbol="km", name="Kilometers",
                      aliases=("kilometer", "kilometers"))
    reg.register_unit("in", "length", M_PER_IN, symbol="in", name="Inches",
                      aliases=("inch", "inches"))
    reg.register_unit("ft", "length", M_PER_FT, symbol="ft", name="Feet",
                      regions=IMPERIAL_REGIONS, aliases=("foot", "feet"))
    reg.register_unit("yd", "length", M_PER_YD, symbol="yd", name="Yards",
                      aliases=("yard", "yards"))
    reg.register_unit("mi", "length", M_PER_MI, symbol="mi", name="Miles",
                      decimals=3, aliases=("mile", "miles"))
    reg.register_unit("nmi", "length", M_PER_NMI, symbol="nmi", name="Nautical Miles",
                      decimals=3)
    reg.register_composite("ft_in", "length", (("ft", M_PER_FT), ("in", M_PER_IN)),
                           symbol="ft/in", name="Feet and Inches", decimals=1,
                           aliases=("ftin", "feet and inches"))

    # Mass (base: kilogram)
    reg.register_dimension("mass", "kg", metric_unit="kg", imperial_unit="lb")
    reg.register_unit("g", "mass", 0.001, symbol="g", name="Grams",
                      decimals=0, aliases=("gram", "grams"))
    reg.register_unit("kg", "mass", 1.0, symbol="kg", name="Kilograms",
                      decimals=1, regions=METRIC_REGIONS,
                      aliases=("kilogram", "kilograms", "kgs"))
    reg.register_unit("lb", "mass", KG_PER_LB, symbol="lb", name="Pounds",
                      decimals=1, regions=IMPERIAL_REGIONS,
                      aliases=("lbs", "pound", "pounds"))
    reg.register_unit("oz", "mass", KG_PER_OZ, symbol="oz", name="Ounces",
                      decimals=1, aliases=("ounce", "ounces"))
    reg.register_unit("st", "mass", KG_PER_ST, symbol="st", name="Stones",
                      decimals=1, regions=("GB", "IE"), aliases=("stone", "stones"))
    reg.register_unit("t", "mass", 1000.0, symbol="t", name="Metric Tons",
                      decimals=3, aliases=("tonne", "tonnes"))

    # Temperature (base: Celsius)
    reg.register_dimension("temperature", "C", metric_unit="C", imperial_unit="F")
    reg.register_unit("C", "temperature", 1.0, symbol="°C", name="Celsius",
                      decimals=1, aliases=("celsius", "degc", "°C"))
    reg.register_unit("F", "temperature", 5 / 9, offset=-32 * 5 / 9, symbol="°F",
                      name="Fahrenheit", decimals=1, regions=("US",),
                      aliases=("fahrenheit", "degf", "°F"))
    reg.register_unit("K", "temperature", 1.0, offset=-273.15, symbol="K",
                      name="Kelvin", decimals=2, aliases=("kelvin",))

    # Volume (base: litre)
    reg.register_dimension("volume", "L", metric_unit="L", imperial_unit="gal_us")
    reg.register_unit("mL", "volume", 0.001, symbol="mL", name="Milliliters",
                      decimals=0, aliases=("ml", "milliliter", "milliliters"))
    reg.register_unit("L", "volume", 1.0, symbol="L", name="Liters",
                      regions=METRIC_REGIONS, aliases=("liter", "liters", "litre", "litres"))
    reg.register_unit("m3", "volume", 1000.0, symbol="m³", name="Cubic Meters",
                      decimals=3)
    reg.register_unit("fl_oz", "volume", L_PER_FL_OZ, symbol="fl oz",
                      name="Fluid Ounces (US)", decimals=1, aliases=("floz",))
    reg.register_unit("cup", "volume", L_PER_GAL_US / 16, symbol="cups",
                      name="Cups (US)", aliases=("cups",))
    reg.register_unit("gal_us", "volume", L_PER_GAL_US, symbol="gal",
                      name="Gallons (US)", regions=IMPERIAL_REGIONS,
                      aliases=("gal", "gallon", "gallons"))
    reg.register_unit("gal_uk", "volume", L_PER_GAL_UK, symbol="gal",
                      name="Gallons (Imperial)", regions=("GB", "IE"))

    # Area (base: square metre)
    reg.register_dimension("area", "m2", metric_unit="m2", imperial_unit="ft2")
    reg.register_unit("cm2", "area", 0.0001, symbol="cm²", name="Square Centimeters")
    reg.register_unit("m2", "area", 1.0, symbol="m²", name="Square Meters",
                      regions=METRIC_REGIONS, aliases=("sqm",))
    reg.register_unit("ha", "area", 10_000.0, symbol="ha", name="Hectares",
                      decimals=4, aliases=("hectare", "hectares"))
    reg.register_unit("km2", "area", 1_000_000.0, symbol="km²", name="Square Kilometers",
                      decimals=4)
    reg.register_unit("ft2", "area", M_PER_FT ** 2, symbol="ft²", name="Square Feet",
                      regions=IMPERIAL_REGIONS, aliases=("sqft",))
    reg.register_unit("acre", "area", 4046.8564224, symbol="ac", name="Acres",
                      decimals=4, aliases=("acres",))

    # Speed (base: km/h)
    reg.register_dimension("speed", "km/h", metric_unit="km/h", imperial_unit="mph")
    reg.register_unit("km/h", "speed", 1.0, symbol="km/h", name="Kilometers per Hour",
                      regions=METRIC_REGIONS, aliases=("kmh", "kph"))
    reg.register_unit("m/s", "speed", 3.6, symbol="m/s", name="Meters per Second",
                      aliases=("mps",))
    reg.register_unit("mph", "speed", M_PER_MI / 1000, symbol="mph", name="Miles per Hour",
                      regions=IMPERIAL_REGIONS)
    reg.register_unit("kn", "speed", M_PER_NMI / 1000, symbol="kn", name="Knots",
                      aliases=("knot", "knots"))

    # Time (base: second)
    reg.register_dimension("time", "s", metric_unit="min", imperial_unit="min")
    reg.register_unit("ms", "time", 0.001, symbol="ms", name="Milliseconds", decimals=0)
    reg.register_unit("s", "time", 1.0, symbol="s", name="Seconds", decimals=0,
                      aliases=("sec", "second", "seconds"))
    reg.register_unit("min", "time", SECONDS_PER_MIN, symbol="min", name="Minutes",
                      aliases=("minute", "minutes"))
    reg.register_unit("h", "time", SECONDS_PER_HOUR, symbol="h", name="Hours",
                      aliases=("hr", "hour", "hours"))
    reg.register_unit("day", "time", SECONDS_PER_DAY, symbol="d", name="Days",
                      aliases=("days",))
    reg.register_composite("h_min_s", "time",
                           (("h", SECONDS_PER_HOUR), ("min", SECONDS_PER_MIN), ("s", 1.0)),
                           symbol="h:mm:ss", name="Hours, Minutes, Seconds", decimals=0)
    reg.register_composite("min_s", "time", (("min", SECONDS_PER_MIN), ("s", 1.0)),
                           symbol="mm:ss", name="Minutes and Seconds", decimals=0)

    # Data (base: byte)
    reg.register_dimension("data", "B", metric_unit="MB", imperial_unit="MB")
    reg.register_unit("B", "data", 1.0, symbol="B", name="Bytes", decimals=0,
                      aliases=("byte", "bytes"))
    for i, (prefix, word) in enumerate((("K", "Kilo"), ("M", "Mega"),
                                         ("G", "Giga"), ("T", "Tera")), start=1):
        reg.register_unit(f"{prefix}B", "data", 1000.0 ** i, symbol=f"{prefix}B",
                          name=f"{word}bytes")
        reg.register_unit(f"{prefix}iB", "data", 1024.0 ** i, symbol=f"{prefix}iB",
                          name=f"{word[:2]}bibytes")

    # Food energy (base: kilocalorie)
    reg.register_dimension("energy", "kcal", metric_unit="kcal", imperial_unit="kcal")
    reg.register_unit("kcal", "energy", 1.0, symbol="kcal", name="Kilocalories",
                      decimals=0, aliases=("calories", "cal"))
    reg.register_unit("kJ", "energy", KCAL_PER_KJ, symbol="kJ", name="Kilojoules",
                      decimals=0, regions=("AU", "NZ"), aliases=("kilojoule", "kilojoules"))

    # Currency (base: US dollar; factors come from a rate table per call)
    reg.register_dimension("currency", "USD", metric_unit="USD", imperial_unit="USD")
    for code, (symbol, name, decimals, position, regions) in CURRENCIES.items():
        reg.register_currency(code, symbol=symbol, name=name, decimals=decimals,
                              regions=regions, position=position)

    logger.debug(f"Unit catalog built: {len(reg.dimensions())} dimensions")
    return reg


DEFAULT_REGISTRY = build_default_registry()


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

def to_base(value, unit, dimension=None, rates=None):
    return DEFAULT_REGISTRY.to_base(value, unit, dimension, rates=rates)


def from_base(value, unit, dimension=None, rates=None):
    return DEFAULT_REGISTRY.from_base(value, unit, dimension, rates=rates)


def convert(value, from_unit, to_unit, rates=None):
    return DEFAULT_REGISTRY.convert(value, from_unit, to_unit, rates=rates)


def register_unit(unit_id, dimension, factor=1.0, offset=0.0, **kwargs):
    """Add a unit to the default registry. Call at import time only."""
    return DEFAULT_REGISTRY.register_unit(unit_id, dimension, factor, offset, **kwargs)


def default_unit(dimension, unit_system=None):
    return DEFAULT_REGISTRY.default_unit(dimension, unit_system)


def guess_default_unit(dimension, locale):
    return DEFAULT_REGISTRY.guess_default_unit(dimension, locale)


def currency_info(code: str) -> dict:
    """Display metadata for a currency code (symbol, decimals, position)."""
    unit = DEFAULT_REGISTRY.get(code, "currency")
    return {
        "code": unit.id,
        "symbol": unit.symbol,
        "name": unit.name,
        "decimals": unit.decimals,
        "position": unit.extra.get("position", "before"),
    }
