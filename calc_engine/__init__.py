"""
Calculation Engine Package
============================
Re-exports the public names so that:
    from calc_engine import CalculatorSession, convert
    from calc_engine import FieldDescriptor, CalculatorConfig
work without knowing which subsystem module defines them.
"""

import logging

logger = logging.getLogger(__name__)

# ── Errors ──────────────────────────────────────────────────────────────────
from calc_engine.errors import (
    EngineError,
    ConversionError,
    UnknownUnitError,
    DimensionMismatchError,
    RateUnavailableError,
    ValidationError,
    MissingValueError,
    ComputationError,
    CalculatorConfigError,
    CalculatorNotFoundError,
    ShareTokenError,
)

# ── Subsystem 1: Unit kernel ────────────────────────────────────────────────
from calc_engine.units import (
    METRIC,
    IMPERIAL,
    UNIT_SYSTEMS,
    Dimension,
    UnitDefinition,
    UnitRegistry,
)
from calc_engine.unit_catalog import (
    DEFAULT_REGISTRY,
    build_default_registry,
    to_base,
    from_base,
    convert,
    register_unit,
    default_unit,
    guess_default_unit,
    currency_info,
)

# ── Subsystem 2: Expressions ────────────────────────────────────────────────
from calc_engine.expressions import (
    FieldRef,
    Const,
    Compare,
    IsSet,
    AllOf,
    AnyOf,
    Not,
    parse_condition,
    field_equals,
    field_in,
    field_compare,
)

# ── Subsystems 3-5: Schema, results, configs ────────────────────────────────
from calc_engine.schema import (
    FieldDescriptor,
    Section,
    Check,
    coerce_value,
    validate_field,
    validate_fields,
    visible_ids,
)
from calc_engine.results import Results, ResultSpec, serialize_value
from calc_engine.calculator import CATEGORIES, CalculatorConfig, CalculatorRegistry

# ── Subsystem 6: Orchestrator ───────────────────────────────────────────────
from calc_engine.orchestrator import CalculatorSession, SessionDisposedError

# ── Subsystem 7: Formatting and translations ───────────────────────────────
from calc_engine.formatter import (
    NOT_AVAILABLE,
    ResultFormatter,
    format_number,
    format_currency,
    format_percentage,
    format_duration,
    format_date,
    format_compact,
    round_half_up,
)
from calc_engine.translations import (
    TranslationLoader,
    DictTranslationLoader,
    JsonFileTranslationLoader,
    RemoteTranslationLoader,
    LocaleAdapter,
    required_keys,
)

# ── Subsystem 8: Recommender ────────────────────────────────────────────────
from calc_engine.recommender import RelatedEdge, Recommender

# ── Subsystem 9: Share links ────────────────────────────────────────────────
from calc_engine.share import (
    encode_share_token,
    decode_share_token,
    session_from_token,
    token_for_session,
)
