"""
Calculation Engine — Subsystem 6: Engine Orchestrator
=======================================================
One ``CalculatorSession`` per rendered calculator. It owns the field
values, chosen units, validation state and last Results of that
instance; nothing here is shared between sessions.

State machine::

    idle -> editing -> validating -> calculated
                                  -> error
    calculated / error -> editing  (on the next change)

Every change runs validation to completion synchronously. Calculate is
only invoked on a fully valid field set. On failure the last good
Results stay available (marked stale) unless the config opts out.

Sync groups: members show one quantity in different units. An edit
converts the member to base and pushes the base value to every sibling
in the sibling's own unit. Each edit opens one propagation cycle;
writes to siblings are tagged with it, so a field never re-handles its
own echo and one edit is exactly one propagation pass.

Blocking collaborators (exchange rates, history writes) run on an
executor. Their results are applied under the session lock and are
dropped when the session was disposed in the meantime.
"""

import copy
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Mapping, Optional

from calc_engine.errors import UnknownUnitError, ValidationError
from calc_engine.formatter import ResultFormatter
from calc_engine.results import Results, serialize_value
from calc_engine.schema import (
    DATE_RANGE,
    NUMBER,
    RANGE_PARTS,
    coerce_value,
    validate_fields,
    visible_ids,
)
from calc_engine.unit_catalog import DEFAULT_REGISTRY
from calc_engine.units import METRIC, UNIT_SYSTEMS

logger = logging.getLogger(__name__)

# Session states
IDLE = "idle"
EDITING = "editing"
VALIDATING = "validating"
CALCULATED = "calculated"
ERROR = "error"

# save() statuses
SAVED = "saved"
SAVE_ERROR = "error"
DISCARDED = "discarded"


class SessionDisposedError(RuntimeError):
    """An edit arrived after the session was torn down."""
    pass


class CalculatorSession:
    def __init__(self, config, units=None, unit_system: str = METRIC,
                 locale: str = "en", rates: Optional[Mapping[str, float]] = None,
                 formatter: Optional[ResultFormatter] = None, executor=None):
        if unit_system not in UNIT_SYSTEMS:
            raise ValueError(f"Unknown unit system '{unit_system}'. Supported: {', '.join(UNIT_SYSTEMS)}")
        self.config = config
        self.units = units or DEFAULT_REGISTRY
        self.unit_system = unit_system
        self.locale = locale
        self.rates: Optional[Dict[str, float]] = dict(rates) if rates else None
        self.formatter = formatter or ResultFormatter(self.units)
        self.executor = executor

        self._lock = threading.RLock()
        self._disposed = False

        self.state = IDLE
        self.transitions: List[tuple] = []
        self.values: Dict[str, Any] = {}
        self.field_units: Dict[str, str] = {}
        self.display_values: Dict[str, Any] = {}
        self.errors: Dict[str, str] = {}
        self.missing: List[str] = []
        self.results: Optional[Results] = None
        self.failure: Optional[Results] = None
        self.disabled = False
        self.calculate_calls = 0

        self.propagation_passes = 0
        self._cycle = 0
        self._propagating: Optional[int] = None
        self._seen_cycle: Dict[str, int] = {}
        self._chosen_units = set()

        self._install_defaults()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _default_unit(self, field) -> Optional[str]:
        if not field.dimension:
            return None
        if field.dimension == "currency" and not field.default_unit:
            return self.units.guess_default_unit("currency", self.locale)
        return self.units.resolve(field.unit_for(self.unit_system, self.units))

    def _from_base(self, field, base):
        return self.units.from_base(base, self.field_units[field.id], rates=self.rates)

    def _install_defaults(self):
        for field in self.config.fields:
            unit = self._default_unit(field)
            if unit:
                self.field_units[field.id] = unit
            default = copy.deepcopy(field.default)
            if default is not None and self._normalized(field):
                default = self._from_base(field, default)
            self.values[field.id] = default
        for members in self.config.sync_groups().values():
            for member in members:
                if self.values.get(member) is not None:
                    self._on_field_change(self.config.field(member), self.values[member],
                                          self._next_cycle())
                    break
        self.propagation_passes = 0

    @staticmethod
    def _normalized(field) -> bool:
        return field.type == NUMBER and field.dimension is not None and field.normalize

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _enter(self, state: str):
        if state != self.state:
            self.transitions.append((self.state, state))
            logger.debug(f"[{self.config.id}] {self.state} -> {state}")
            self.state = state

    def _ensure_alive(self):
        if self._disposed:
            raise SessionDisposedError(f"Session for '{self.config.id}' was disposed")

    @property
    def stale(self) -> bool:
        """Results on display belong to an earlier, valid input set."""
        return self.state == ERROR and self.results is not None

    # ------------------------------------------------------------------
    # Sync groups
    # ------------------------------------------------------------------

    def _next_cycle(self) -> int:
        self._cycle += 1
        return self._cycle

    def _current_base(self, field):
        unit = self.field_units.get(field.id)
        try:
            value = coerce_value(field, self.values.get(field.id), unit, self.units)
        except ValidationError:
            return None
        if value is None:
            return None
        return self.units.to_base(value, unit, field.dimension, rates=self.rates)

    def _on_field_change(self, field, value, cycle: int):
        """Store *value*; if *field* is in a sync group, run one propagation pass."""
        self.values[field.id] = value
        if not field.sync_group or self._seen_cycle.get(field.id) == cycle:
            return
        self._seen_cycle[field.id] = cycle
        if self._propagating == cycle:
            # Echo of this cycle's own write
            return

        base = self._current_base(field)
        if base is None:
            return
        self._propagating = cycle
        self.propagation_passes += 1
        try:
            for sibling_id in self.config.sync_groups()[field.sync_group]:
                if sibling_id == field.id:
                    continue
                sibling = self.config.field(sibling_id)
                self._on_field_change(sibling, self._from_base(sibling, base), cycle)
        finally:
            self._propagating = None

    def group_base(self, group: str):
        """Canonical base value of a sync group (None until a member is complete)."""
        for member in self.config.sync_groups().get(group, []):
            base = self._current_base(self.config.field(member))
            if base is not None:
                return base
        return None

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def set_value(self, field_id: str, value) -> "CalculatorSession":
        with self._lock:
            self._ensure_alive()
            field = self.config.field(field_id)
            self._enter(EDITING)
            self._on_field_change(field, value, self._next_cycle())
            self._run_pipeline()
        return self

    def set_part(self, field_id: str, part: str, value) -> "CalculatorSession":
        """Set one sub-value of a composite field (ft/in, h/min/s, date range)."""
        with self._lock:
            self._ensure_alive()
            field = self.config.field(field_id)
            if field.type == DATE_RANGE:
                parts = list(RANGE_PARTS)
            else:
                unit = self.field_units.get(field_id)
                parts = self.units.get(unit).part_names if unit else []
            if part not in parts:
                raise ValueError(f"Field '{field_id}' has no part '{part}'")
            current = self.values.get(field_id)
            combined = dict(current) if isinstance(current, Mapping) else {}
            combined[part] = value
            self._enter(EDITING)
            self._on_field_change(field, combined, self._next_cycle())
            self._run_pipeline()
        return self

    def _convert_display(self, field, old_unit: str, new_unit: str):
        raw = self.values.get(field.id)
        new_composite = self.units.get(new_unit).is_composite
        try:
            value = coerce_value(field, raw, old_unit, self.units)
        except ValidationError:
            value = None
        if value is None:
            # Partial input cannot be converted; keep it only if the shape still fits
            if isinstance(raw, Mapping) != new_composite:
                self.values[field.id] = None
            return
        base = self.units.to_base(value, old_unit, field.dimension, rates=self.rates)
        self.values[field.id] = self.units.from_base(base, new_unit, rates=self.rates)

    def set_unit(self, field_id: str, unit: str) -> "CalculatorSession":
        """Change a field's display unit. The quantity (base value) is unchanged."""
        with self._lock:
            self._ensure_alive()
            field = self.config.field(field_id)
            if not field.dimension:
                raise ValueError(f"Field '{field_id}' has no unit")
            unit = self.units.resolve(unit)
            if unit not in [self.units.resolve(u) for u in field.units(self.units)]:
                raise UnknownUnitError(unit, field.dimension)
            old_unit = self.field_units.get(field_id)
            self._chosen_units.add(field_id)
            if unit == old_unit:
                return self
            self._enter(EDITING)
            if field.auto_convert and self._normalized(field):
                self._convert_display(field, old_unit, unit)
                self.field_units[field_id] = unit
            else:
                self.field_units[field_id] = unit
                self._on_field_change(field, self.values.get(field_id), self._next_cycle())
            self._run_pipeline()
        return self

    def set_unit_system(self, unit_system: str) -> "CalculatorSession":
        """Switch metric/imperial; re-defaults units the user has not picked."""
        if unit_system not in UNIT_SYSTEMS:
            raise ValueError(f"Unknown unit system '{unit_system}'. Supported: {', '.join(UNIT_SYSTEMS)}")
        with self._lock:
            self._ensure_alive()
            if unit_system == self.unit_system:
                return self
            self._enter(EDITING)
            self.unit_system = unit_system
            for field in self.config.fields:
                if not field.dimension or field.id in self._chosen_units:
                    continue
                new_unit = self._default_unit(field)
                old_unit = self.field_units.get(field.id)
                if new_unit == old_unit:
                    continue
                if self._normalized(field):
                    self._convert_display(field, old_unit, new_unit)
                self.field_units[field.id] = new_unit
            self._run_pipeline()
        return self

    def apply_preset(self, name: str) -> "CalculatorSession":
        """Fill fields from a named preset. Dimensioned preset values are base-unit values."""
        with self._lock:
            self._ensure_alive()
            preset = self.config.presets.get(name)
            if preset is None:
                raise KeyError(f"Calculator '{self.config.id}' has no preset '{name}'")
            self._enter(EDITING)
            for field_id, value in preset.items():
                field = self.config.field(field_id)
                if value is not None and self._normalized(field):
                    value = self._from_base(field, value)
                self._on_field_change(field, copy.deepcopy(value), self._next_cycle())
            self._run_pipeline()
        return self

    def load(self, values: Mapping[str, Any], units: Optional[Mapping[str, str]] = None) -> "CalculatorSession":
        """Hydrate many fields at once (HTTP body, share link); validates once."""
        with self._lock:
            self._ensure_alive()
            self._enter(EDITING)
            for field_id, unit in (units or {}).items():
                field = self.config.field(field_id)
                if not field.dimension:
                    continue
                unit = self.units.resolve(unit)
                if unit not in [self.units.resolve(u) for u in field.units(self.units)]:
                    raise UnknownUnitError(unit, field.dimension)
                self.field_units[field_id] = unit
                self._chosen_units.add(field_id)
            for field_id, value in values.items():
                field = self.config.field(field_id)
                self._on_field_change(field, copy.deepcopy(value), self._next_cycle())
            self._run_pipeline()
        return self

    def recalculate(self) -> "CalculatorSession":
        with self._lock:
            self._ensure_alive()
            self._run_pipeline()
        return self

    def reset(self) -> "CalculatorSession":
        with self._lock:
            self._ensure_alive()
            self.values.clear()
            self.field_units.clear()
            self._chosen_units.clear()
            self._seen_cycle.clear()
            self.display_values = {}
            self.errors = {}
            self.missing = []
            self.results = None
            self.failure = None
            self.disabled = False
            self._install_defaults()
            self._enter(IDLE)
        return self

    def dispose(self):
        with self._lock:
            self._disposed = True
        logger.debug(f"[{self.config.id}] session disposed")

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Visibility
    # ------------------------------------------------------------------

    def _typed_values(self) -> Dict[str, Any]:
        typed = {}
        for field in self.config.fields:
            raw = self.values.get(field.id)
            try:
                typed[field.id] = coerce_value(field, raw, self.field_units.get(field.id), self.units)
            except ValidationError:
                typed[field.id] = raw
        return typed

    def visible_fields(self) -> List[str]:
        with self._lock:
            return visible_ids(self.config.fields, self._typed_values())

    def is_visible(self, field_id: str) -> bool:
        self.config.field(field_id)
        return field_id in self.visible_fields()

    # ------------------------------------------------------------------
    # Validate -> normalize -> calculate
    # ------------------------------------------------------------------

    def _run_pipeline(self):
        self._enter(VALIDATING)
        visible = visible_ids(self.config.fields, self._typed_values())
        display, base, errors, missing = validate_fields(
            self.config.fields, self.values, self.field_units, self.units,
            checks=self.config.checks, visible=visible, rates=self.rates,
        )
        self.display_values = display
        self.errors = errors
        self.missing = missing

        if errors or missing:
            self._fail()
            return
        if self.config.needs_rates and not self.rates:
            self.disabled = True
            logger.info(f"[{self.config.id}] exchange rates unavailable; calculator disabled")
            self._fail()
            return
        self.disabled = False

        inputs = {fid: base.get(fid) for fid in visible}
        outcome = self.config.run(inputs, self.unit_system, rates=self.rates)
        self.calculate_calls += 1
        if outcome.error:
            self.failure = outcome
            self._fail()
            return
        self.failure = None
        self.results = self.formatter.format_results(
            self.config, outcome, self.locale, self.unit_system,
            self.field_units, self.display_values,
        )
        self._enter(CALCULATED)

    def _fail(self):
        if not self.config.keep_results_on_error:
            self.results = None
        self._enter(ERROR)

    # ------------------------------------------------------------------
    # Async collaborators
    # ------------------------------------------------------------------

    def _submit(self, fn: Callable, executor=None) -> Future:
        pool = executor or self.executor
        if pool is not None:
            return pool.submit(fn)
        done = Future()
        done.set_result(fn())
        return done

    def request_rates(self, provider, executor=None) -> Future:
        """Fetch rates off-thread; on arrival apply them and recalculate.

        *provider* is a callable or an object with ``get_rates()`` returning
        ``{code: USD per unit}`` or None. The future resolves to
        ``"applied"``, ``"unavailable"`` or ``"discarded"``.
        """
        fetch = getattr(provider, "get_rates", provider)

        def task():
            try:
                rates = fetch()
            except Exception as e:
                logger.warning(f"[{self.config.id}] rate provider failed: {e}")
                rates = None
            return self._apply_rates(rates)

        return self._submit(task, executor)

    def _apply_rates(self, rates) -> str:
        with self._lock:
            if self._disposed:
                logger.debug(f"[{self.config.id}] rates arrived after dispose; discarded")
                return DISCARDED
            if not rates:
                self.disabled = self.config.needs_rates and not self.rates
                return "unavailable"
            self.rates = dict(rates)
            if self.state != IDLE:
                self._run_pipeline()
            return "applied"

    def history_record(self) -> Optional[Dict]:
        with self._lock:
            if self.results is None or self.state != CALCULATED:
                return None
            return {
                "calculator_id": self.config.id,
                "inputs": serialize_value(self.display_values),
                "units": dict(self.field_units),
                "unit_system": self.unit_system,
                "results": self.results.to_dict(),
            }

    def save(self, writer: Callable[[Dict], Any], executor=None) -> Future:
        """Persist the current Results through *writer*; never raises.

        Resolves to ``{"status": "saved", "id": ...}``,
        ``{"status": "error", "error": ...}`` or ``{"status": "discarded"}``.
        """
        record = self.history_record()
        if record is None:
            done = Future()
            done.set_result({"status": SAVE_ERROR, "error": "No calculated results to save"})
            return done

        def task():
            if self._disposed:
                return {"status": DISCARDED}
            try:
                ref = writer(record)
            except Exception as e:
                logger.error(f"[{self.config.id}] history write failed: {e}")
                return {"status": SAVE_ERROR, "error": str(e)}
            return {"status": SAVED, "id": ref}

        return self._submit(task, executor)

    # ------------------------------------------------------------------
    # Read model
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict:
        with self._lock:
            return {
                "calculator_id": self.config.id,
                "state": self.state,
                "unit_system": self.unit_system,
                "locale": self.locale,
                "values": serialize_value(self.values),
                "units": dict(self.field_units),
                "visible": self.visible_fields(),
                "errors": dict(self.errors),
                "missing": list(self.missing),
                "disabled": self.disabled,
                "stale": self.stale,
                "results": self.results.to_dict() if self.results else None,
                "failure": self.failure.message if self.failure else None,
            }

    def __repr__(self):
        return f"CalculatorSession({self.config.id!r}, state={self.state!r})"
