"""Tests for the unit kernel and default unit catalog."""

import pytest

from calc_engine import (
    DEFAULT_REGISTRY,
    ConversionError,
    DimensionMismatchError,
    RateUnavailableError,
    UnknownUnitError,
    convert,
    currency_info,
    default_unit,
    from_base,
    guess_default_unit,
    to_base,
)


# ── Linear and affine conversion ──

class TestConvert:
    def test_celsius_to_fahrenheit(self):
        assert convert(0, "C", "F") == pytest.approx(32)
        assert convert(100, "C", "F") == pytest.approx(212)
        assert convert(-40, "C", "F") == pytest.approx(-40)

    def test_fahrenheit_to_kelvin(self):
        assert convert(32, "F", "K") == pytest.approx(273.15)

    def test_inches_to_cm(self):
        assert convert(1, "in", "cm") == pytest.approx(2.54)

    def test_pounds_to_kg(self):
        assert convert(1, "lb", "kg") == pytest.approx(0.45359237)

    def test_same_unit_is_identity(self):
        assert convert(12.5, "m", "m") == 12.5

    @pytest.mark.parametrize("unit", ["mm", "km", "mi", "ft", "F", "K", "gal_uk", "acre", "mph", "kJ", "GiB"])
    def test_round_trip(self, unit):
        for value in (0.0, 1.0, -3.75, 1234.5678):
            dimension = DEFAULT_REGISTRY.dimension_of(unit)
            base = to_base(value, unit, dimension)
            assert from_base(base, unit) == pytest.approx(value, abs=1e-9)

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            convert(1, "kg", "m")

    def test_unknown_unit(self):
        with pytest.raises(UnknownUnitError):
            convert(1, "furlong", "m")

    def test_unknown_unit_is_value_error(self):
        with pytest.raises(ValueError):
            to_base(1, "parsec")

    def test_wrong_dimension_lookup(self):
        with pytest.raises(UnknownUnitError):
            to_base(1, "kg", "length")


# ── Aliases ──

class TestAliases:
    def test_degree_symbol(self):
        assert DEFAULT_REGISTRY.resolve("°F") == "F"

    def test_case_and_spaces(self):
        assert DEFAULT_REGISTRY.resolve("  KG ") == "kg"

    def test_has_unit(self):
        assert DEFAULT_REGISTRY.has_unit("lb")
        assert not DEFAULT_REGISTRY.has_unit("cubit")


# ── Composite units ──

class TestComposite:
    def test_feet_inches_to_base(self):
        assert to_base({"ft": 5, "in": 11}, "ft_in") == pytest.approx(1.8034)

    def test_from_base_splits(self):
        parts = from_base(1.8034, "ft_in")
        assert parts["ft"] == 5
        assert parts["in"] == pytest.approx(11)

    def test_exact_boundary_does_not_underflow(self):
        parts = from_base(6 * 0.3048, "ft_in")
        assert parts["ft"] == 6
        assert parts["in"] == pytest.approx(0, abs=1e-6)

    def test_hours_minutes_seconds(self):
        assert to_base({"h": 1, "min": 2, "s": 3}, "h_min_s") == 3723
        assert from_base(3723, "h_min_s") == pytest.approx({"h": 1, "min": 2, "s": 3})

    def test_composite_needs_mapping(self):
        with pytest.raises(ConversionError):
            to_base(5, "ft_in")

    def test_scalar_unit_rejects_mapping(self):
        with pytest.raises(ConversionError):
            to_base({"ft": 1}, "ft")

    def test_composite_convert_to_scalar(self):
        assert convert({"ft": 1, "in": 0}, "ft_in", "in") == pytest.approx(12)


# ── Currency ──

class TestCurrency:
    def test_convert_with_rates(self, rates):
        assert convert(100, "EUR", "USD", rates=rates) == pytest.approx(110)
        assert convert(110, "USD", "EUR", rates=rates) == pytest.approx(100)

    def test_cross_rate(self, rates):
        assert convert(10, "EUR", "BRL", rates=rates) == pytest.approx(55)

    def test_base_currency_needs_no_rate(self):
        assert convert(5, "USD", "USD") == 5

    def test_missing_rates(self):
        with pytest.raises(RateUnavailableError):
            convert(1, "EUR", "USD")

    def test_missing_single_rate(self, rates):
        with pytest.raises(RateUnavailableError):
            convert(1, "CHF", "USD", rates=rates)

    def test_currency_info(self):
        info = currency_info("EUR")
        assert info["symbol"] == "€"
        assert info["position"] == "after"
        assert currency_info("JPY")["decimals"] == 0


# ── Defaults ──

class TestDefaults:
    def test_unit_system_defaults(self):
        assert default_unit("length", "metric") == "m"
        assert default_unit("length", "imperial") == "ft"
        assert default_unit("mass", "imperial") == "lb"

    def test_no_system_means_base(self):
        assert default_unit("temperature") == "C"

    def test_guess_currency_by_region(self):
        assert guess_default_unit("currency", "pt-BR") == "BRL"
        assert guess_default_unit("currency", "en-US") == "USD"
        assert guess_default_unit("currency", "de-DE") == "EUR"

    def test_guess_us_customary(self):
        assert guess_default_unit("temperature", "en-US") == "F"
        assert guess_default_unit("temperature", "en-GB") == "C"

    def test_guess_without_country(self):
        assert guess_default_unit("currency", "pt") == "USD"


# ── Registration ──

class TestRegistration:
    def test_register_new_unit(self, units):
        units.register_unit("furlong", "length", 201.168, symbol="fur")
        assert units.convert(1, "furlong", "m") == pytest.approx(201.168)

    def test_duplicate_unit_rejected(self, units):
        with pytest.raises(ConversionError):
            units.register_unit("m", "length", 1.0)

    def test_unknown_dimension_rejected(self, units):
        with pytest.raises(ConversionError):
            units.register_unit("lumen", "luminous_flux", 1.0)

    def test_zero_factor_rejected(self, units):
        with pytest.raises(ConversionError):
            units.register_unit("nothing", "length", 0)

    def test_units_for_dimension(self, units):
        ids = [u.id for u in units.units_for("temperature")]
        assert ids == ["C", "F", "K"]
