"""
Calculator Catalog
==================
Every calculator config shipped with the app, registered and validated
against the default unit registry at import time.

    from calculators import REGISTRY, RECOMMENDER
    config = REGISTRY.get("bmi")
"""

import logging

from calc_engine import CalculatorRegistry, DEFAULT_REGISTRY, Recommender

from calculators import conversion, everyday, finance, health, math_tools
from calculators.related import EDGES

logger = logging.getLogger(__name__)

# ── Modules in display order ───────────────────────────────────────────────
MODULES = [finance, health, math_tools, everyday, conversion]


def build_registry(units=None) -> CalculatorRegistry:
    """Register every module's CALCULATORS and validate the lot."""
    registry = CalculatorRegistry(units or DEFAULT_REGISTRY)
    for module in MODULES:
        for config in module.CALCULATORS:
            registry.register(config)
    registry.validate()
    return registry


def build_recommender(registry: CalculatorRegistry) -> Recommender:
    return Recommender(registry.all(), EDGES)


REGISTRY = build_registry()
RECOMMENDER = build_recommender(REGISTRY)
