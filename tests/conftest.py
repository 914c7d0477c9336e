"""
Pytest configuration and shared fixtures for the calculation engine tests.
"""

import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment variables before importing app
os.environ.setdefault("FLASK_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_DIR", os.path.join(os.path.dirname(os.path.abspath(__file__)), "logs"))
os.environ.setdefault("DEFAULT_LOCALE", "en")
os.environ.setdefault("EXCHANGE_RATE_API_URL", "https://rates.example.test/latest/USD")

from calc_engine import (  # noqa: E402
    CalculatorConfig,
    Check,
    FieldDescriptor,
    ResultSpec,
    Section,
    build_default_registry,
)


SAMPLE_RATES = {"USD": 1.0, "EUR": 1.10, "BRL": 0.20, "GBP": 1.25, "JPY": 0.0070}


@pytest.fixture
def units():
    """Fresh unit registry, safe to register extra units into."""
    return build_default_registry()


@pytest.fixture
def rates():
    return dict(SAMPLE_RATES)


def _area(inputs, unit_system):
    return {"area": inputs["width"] * inputs["length"]}


@pytest.fixture
def sync_config():
    """Two sync groups plus one plain field, for propagation tests."""
    return CalculatorConfig(
        id="sync-test",
        category="math",
        sections=[Section("main", [
            FieldDescriptor("h_metric", dimension="length", default_unit="cm",
                            allowed_units=["cm", "m"], sync_group="height",
                            min=0.5, max=2.72, default=1.8),
            FieldDescriptor("h_imperial", dimension="length", default_unit="ft_in",
                            allowed_units=["ft_in", "in"], sync_group="height",
                            required=False),
            FieldDescriptor("w_metric", dimension="mass", default_unit="kg",
                            sync_group="weight", default=70),
            FieldDescriptor("w_imperial", dimension="mass", default_unit="lb",
                            sync_group="weight", required=False),
            FieldDescriptor("note", type="text", required=False),
        ])],
        calculate=lambda inputs, unit_system: {"height": inputs["h_metric"]},
        results=[ResultSpec("height", dimension="length")],
    )


@pytest.fixture
def area_config():
    """Two lengths multiplied; bounds in metres."""
    return CalculatorConfig(
        id="area-test",
        category="home",
        sections=[Section("room", [
            FieldDescriptor("width", dimension="length",
                            default_unit={"metric": "m", "imperial": "ft"},
                            min=0.1, max=100, default=4),
            FieldDescriptor("length", dimension="length",
                            default_unit={"metric": "m", "imperial": "ft"},
                            min=0.1, max=100, default=5),
        ])],
        checks=[Check({"field": "length", "op": "ge", "other": "width"},
                      "Length must not be shorter than width", field="length")],
        calculate=_area,
        results=[ResultSpec("area", dimension="area", decimals=2, primary=True)],
        presets={"small": {"width": 2, "length": 3}},
    )
