"""
Calculation Engine — Subsystem 5: Calculator Config & Registry
================================================================
A calculator is data (sections of fields, result display specs, presets)
plus one pure calculate function with the signature

    calculate(inputs, unit_system) -> Results | dict
    calculate(inputs, unit_system, rates=...) -> ...   (needs_rates=True)

``inputs`` holds base-unit values of the visible, valid fields. The
function must not do I/O and must not mutate its inputs.

Every config lives in one ``CalculatorRegistry``; ``validate()`` checks
all of them at once so a malformed calculator fails the test suite
instead of a user's page.
"""

import copy
import logging
from typing import Callable, Dict, List, Optional

from calc_engine.errors import (
    CalculatorConfigError,
    CalculatorNotFoundError,
    ComputationError,
    ConversionError,
)
from calc_engine.results import Results, ResultSpec
from calc_engine.schema import CHOICE, Check, FieldDescriptor, Section

logger = logging.getLogger(__name__)

CATEGORIES = ("finance", "health", "math", "everyday", "conversion", "home", "technology")


class CalculatorConfig:
    def __init__(self, id: str, category: str, sections: List[Section],
                 calculate: Callable, results: Optional[List[ResultSpec]] = None,
                 slug: Optional[str] = None, needs_rates: bool = False,
                 keep_results_on_error: bool = True,
                 presets: Optional[Dict[str, Dict]] = None,
                 modes: Optional[List] = None, checks: Optional[List[Check]] = None,
                 meta: Optional[Dict] = None):
        self.id = id
        self.slug = slug or id
        self.category = category
        self.sections = list(sections)
        self.calculate = calculate
        self.results = list(results or [])
        self.needs_rates = needs_rates
        self.keep_results_on_error = keep_results_on_error
        self.presets = dict(presets or {})
        self.modes = list(modes or [])
        self.checks = list(checks or [])
        self.meta = dict(meta or {})
        self._fields = {f.id: f for s in self.sections for f in s.fields}

    @property
    def fields(self) -> List[FieldDescriptor]:
        return [f for s in self.sections for f in s.fields]

    def field(self, field_id: str) -> FieldDescriptor:
        try:
            return self._fields[field_id]
        except KeyError:
            raise KeyError(f"Calculator '{self.id}' has no field '{field_id}'") from None

    def has_field(self, field_id: str) -> bool:
        return field_id in self._fields

    def result_spec(self, key: str) -> Optional[ResultSpec]:
        for spec in self.results:
            if spec.id == key:
                return spec
        return None

    def sync_groups(self) -> Dict[str, List[str]]:
        groups: Dict[str, List[str]] = {}
        for f in self.fields:
            if f.sync_group:
                groups.setdefault(f.sync_group, []).append(f.id)
        return groups

    # ------------------------------------------------------------------
    # Guarded calculate call
    # ------------------------------------------------------------------

    def run(self, inputs: Dict, unit_system: str, rates: Optional[Dict] = None) -> Results:
        """Invoke the calculate function; faults come back as a failed Results."""
        args = copy.deepcopy(dict(inputs))
        try:
            if self.needs_rates:
                outcome = self.calculate(args, unit_system, rates=dict(rates or {}))
            else:
                outcome = self.calculate(args, unit_system)
        except ZeroDivisionError:
            logger.warning(f"[{self.id}] division by zero for inputs {inputs}")
            return Results.failure("Cannot divide by zero with these inputs")
        except OverflowError:
            logger.warning(f"[{self.id}] overflow for inputs {inputs}")
            return Results.failure("The result is too large to compute")
        except (ComputationError, ConversionError) as e:
            logger.warning(f"[{self.id}] computation failed: {e}")
            return Results.failure(str(e))
        except ArithmeticError as e:
            logger.warning(f"[{self.id}] arithmetic fault: {e}")
            return Results.failure("The result cannot be computed with these inputs")
        except ValueError as e:
            logger.warning(f"[{self.id}] input out of domain: {e}")
            return Results.failure("The inputs are outside the range this calculator supports")
        except Exception as e:
            logger.exception(f"[{self.id}] calculate raised {type(e).__name__}: {e}")
            return Results.failure("Calculation failed")

        if isinstance(outcome, Results):
            return outcome
        if isinstance(outcome, dict):
            return Results(outcome)
        logger.error(f"[{self.id}] calculate returned {type(outcome).__name__}")
        return Results.failure("Calculation returned no result")

    # ------------------------------------------------------------------
    # Renderer contract
    # ------------------------------------------------------------------

    def describe(self, registry=None, translate=None) -> Dict:
        t = translate or (lambda key, default: default)
        return {
            "id": self.id,
            "slug": self.slug,
            "category": self.category,
            "title": t("title", self.meta.get("title", self.id.replace("-", " ").title())),
            "description": t("description", self.meta.get("description", "")),
            "needs_rates": self.needs_rates,
            "sections": [s.to_dict(registry, translate) for s in self.sections],
            "results": [r.to_dict(translate) for r in self.results],
            "presets": [
                {"id": name, "label": t(f"presets.{name}", name.replace("_", " ").capitalize())}
                for name in self.presets
            ],
            "modes": self.modes,
            "meta": self.meta,
        }

    def __repr__(self):
        return f"CalculatorConfig({self.id!r}, {self.category!r})"


class CalculatorRegistry:
    """All calculator configs, in registration order."""

    def __init__(self, units):
        self.units = units
        self._configs: Dict[str, CalculatorConfig] = {}
        self._slugs: Dict[str, str] = {}

    def register(self, config: CalculatorConfig) -> CalculatorConfig:
        if config.id in self._configs:
            raise CalculatorConfigError(f"Duplicate calculator id '{config.id}'")
        if config.slug in self._slugs:
            raise CalculatorConfigError(f"Duplicate calculator slug '{config.slug}'")
        self._configs[config.id] = config
        self._slugs[config.slug] = config.id
        return config

    def get(self, calculator_id: str) -> CalculatorConfig:
        config = self._configs.get(calculator_id)
        if config is None:
            raise CalculatorNotFoundError(calculator_id)
        return config

    def by_slug(self, slug: str) -> CalculatorConfig:
        calculator_id = self._slugs.get(slug)
        if calculator_id is None:
            raise CalculatorNotFoundError(slug)
        return self._configs[calculator_id]

    def all(self) -> List[CalculatorConfig]:
        return list(self._configs.values())

    def categories(self) -> Dict[str, List[str]]:
        out: Dict[str, List[str]] = {}
        for config in self._configs.values():
            out.setdefault(config.category, []).append(config.id)
        return out

    def __contains__(self, calculator_id):
        return calculator_id in self._configs

    def __len__(self):
        return len(self._configs)

    def __iter__(self):
        return iter(self.all())

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Check every config; raise CalculatorConfigError listing all defects."""
        problems = []
        for config in self._configs.values():
            problems.extend(f"{config.id}: {p}" for p in self._problems(config))
        if problems:
            for p in problems:
                logger.error(f"Calculator config defect: {p}")
            raise CalculatorConfigError(problems)
        logger.info(f"Validated {len(self._configs)} calculator configs")

    def _unit_ok(self, unit: str, dimension: str) -> bool:
        if not self.units.has_unit(unit):
            return False
        return self.units.dimension_of(unit) == dimension

    def _problems(self, config: CalculatorConfig) -> List[str]:
        problems = []
        if config.category not in CATEGORIES:
            problems.append(f"unknown category '{config.category}'")
        if not callable(config.calculate):
            problems.append("calculate is not callable")

        seen = set()
        for field in config.fields:
            if field.id in seen:
                problems.append(f"duplicate field id '{field.id}'")
            seen.add(field.id)

        earlier = set()
        for field in config.fields:
            if field.visible_when is not None:
                for ref in field.visible_when.fields():
                    if ref not in earlier:
                        problems.append(f"field '{field.id}' visibility references '{ref}', which is not declared before it")
            earlier.add(field.id)

            if field.type == CHOICE and not field.options:
                problems.append(f"choice field '{field.id}' has no options")
            if field.min is not None and field.max is not None and field.min > field.max:
                problems.append(f"field '{field.id}' has min > max")
            if field.dimension:
                if not self.units.has_dimension(field.dimension):
                    problems.append(f"field '{field.id}' has unknown dimension '{field.dimension}'")
                    continue
                defaults = field.default_unit
                if isinstance(defaults, dict):
                    defaults = list(defaults.values())
                elif defaults:
                    defaults = [defaults]
                for unit in list(defaults or []) + list(field.allowed_units or []):
                    if not self._unit_ok(unit, field.dimension):
                        problems.append(
                            f"field '{field.id}' references unit '{unit}'"
                            f" outside dimension '{field.dimension}'"
                        )
            for sub in field.row_fields:
                if sub.dimension:
                    problems.append(f"row field '{field.id}.{sub.id}' cannot carry a unit")

        for check in config.checks + [c for f in config.fields for c in f.checks]:
            for ref in check.expr.fields():
                if ref not in seen:
                    problems.append(f"check references unknown field '{ref}'")

        for group, members in config.sync_groups().items():
            fields = [config.field(m) for m in members]
            dims = {f.dimension for f in fields}
            if None in dims or len(dims) != 1:
                problems.append(f"sync group '{group}' members do not share one dimension")
            if len(members) < 2:
                problems.append(f"sync group '{group}' has a single member")

        for spec in config.results:
            if spec.dimension and not self.units.has_dimension(spec.dimension):
                problems.append(f"result '{spec.id}' has unknown dimension '{spec.dimension}'")
            if spec.currency_field and not config.has_field(spec.currency_field):
                problems.append(f"result '{spec.id}' currency field '{spec.currency_field}' is unknown")
            if spec.unit_field and not config.has_field(spec.unit_field):
                problems.append(f"result '{spec.id}' unit field '{spec.unit_field}' is unknown")
            if spec.display_unit and spec.dimension:
                units = spec.display_unit.values() if isinstance(spec.display_unit, dict) else [spec.display_unit]
                for unit in units:
                    if not self._unit_ok(unit, spec.dimension):
                        problems.append(f"result '{spec.id}' display unit '{unit}' is outside '{spec.dimension}'")

        for name, values in config.presets.items():
            for field_id, value in values.items():
                if not config.has_field(field_id):
                    problems.append(f"preset '{name}' sets unknown field '{field_id}'")
                elif config.field(field_id).type == CHOICE and value not in config.field(field_id).option_values:
                    problems.append(f"preset '{name}' sets '{field_id}' to invalid option {value!r}")
        return problems
