"""
Conversion calculators.

Input values are normalized to the dimension's base unit by the engine;
each converter re-expresses that base value in the target unit. The
``converted`` result reads its display unit from the ``to_unit`` field.
"""

import logging

from calc_engine import (
    CalculatorConfig,
    DEFAULT_REGISTRY,
    FieldDescriptor,
    Results,
    ResultSpec,
    Section,
)

logger = logging.getLogger(__name__)

ABSOLUTE_ZERO_C = -273.15


def _unit_options(units, registry=DEFAULT_REGISTRY):
    return [(u, registry.get(u).name) for u in units]


def _table(base_value, units, registry=DEFAULT_REGISTRY):
    rows = []
    for unit_id in units:
        unit = registry.get(unit_id)
        if unit.is_composite:
            continue
        rows.append({
            "unit": unit.id,
            "name": unit.name,
            "symbol": unit.symbol,
            "value": registry.from_base(base_value, unit.id),
        })
    return rows


def make_converter(id, dimension, units, default_unit, default_target, default_value,
                   title, min=0, max=1e15):
    """Build a simple one-value converter for *dimension*."""

    def calculate(inputs, unit_system):
        base = inputs["value"]
        return Results(values={"converted": base}, tables={"all_units": _table(base, units)})

    return CalculatorConfig(
        id=id,
        category="conversion",
        sections=[
            Section("conversion", [
                FieldDescriptor("value", label="Value", dimension=dimension,
                                default_unit=default_unit, allowed_units=units,
                                default=default_value, min=min, max=max),
                FieldDescriptor("to_unit", type="choice", label="Convert to",
                                default=default_target, options=_unit_options(units)),
            ]),
        ],
        calculate=calculate,
        results=[
            ResultSpec("converted", dimension=dimension, unit_field="to_unit", primary=True),
        ],
        meta={"title": title},
    )


# ---------------------------------------------------------------------------
# Temperature
# ---------------------------------------------------------------------------

TEMPERATURE_UNITS = ["C", "F", "K"]


def calculate_temperature(inputs, unit_system):
    celsius = inputs["value"]
    return {
        "converted": celsius,
        "celsius": celsius,
        "fahrenheit": celsius,
        "kelvin": celsius,
        "below_freezing": "yes" if celsius < 0 else "no",
    }


TEMPERATURE_CONVERTER = CalculatorConfig(
    id="temperature-converter",
    category="conversion",
    sections=[
        Section("conversion", [
            FieldDescriptor("value", label="Temperature", dimension="temperature",
                            default_unit={"metric": "C", "imperial": "F"},
                            allowed_units=TEMPERATURE_UNITS, default=20,
                            min=ABSOLUTE_ZERO_C, max=1e7),
            FieldDescriptor("to_unit", type="choice", label="Convert to", default="F",
                            options=_unit_options(TEMPERATURE_UNITS)),
        ]),
    ],
    calculate=calculate_temperature,
    results=[
        ResultSpec("converted", dimension="temperature", unit_field="to_unit", primary=True),
        ResultSpec("celsius", dimension="temperature", display_unit="C"),
        ResultSpec("fahrenheit", dimension="temperature", display_unit="F"),
        ResultSpec("kelvin", dimension="temperature", display_unit="K"),
        ResultSpec("below_freezing", "text"),
    ],
    meta={"title": "Temperature Converter"},
)


# ---------------------------------------------------------------------------
# Simple converters
# ---------------------------------------------------------------------------

LENGTH_UNITS = ["mm", "cm", "m", "km", "in", "ft", "yd", "mi", "nmi", "ft_in"]
MASS_UNITS = ["g", "kg", "t", "oz", "lb", "st"]
VOLUME_UNITS = ["mL", "L", "m3", "fl_oz", "cup", "gal_us", "gal_uk"]

LENGTH_CONVERTER = make_converter(
    "length-converter", "length", LENGTH_UNITS,
    default_unit={"metric": "m", "imperial": "ft"}, default_target="ft",
    default_value=1.0, title="Length Converter",
)
WEIGHT_CONVERTER = make_converter(
    "weight-converter", "mass", MASS_UNITS,
    default_unit={"metric": "kg", "imperial": "lb"}, default_target="lb",
    default_value=1.0, title="Weight Converter",
)
VOLUME_CONVERTER = make_converter(
    "volume-converter", "volume", VOLUME_UNITS,
    default_unit={"metric": "L", "imperial": "gal_us"}, default_target="gal_us",
    default_value=1.0, title="Volume Converter",
)


CALCULATORS = [TEMPERATURE_CONVERTER, LENGTH_CONVERTER, WEIGHT_CONVERTER, VOLUME_CONVERTER]
