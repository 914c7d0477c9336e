"""
Calculation Engine — Error taxonomy
=====================================
Field-level validation failures and computation failures are user-facing.
Unit and config errors are deployment defects and should be caught by the
test suite before they reach a user.
"""


class EngineError(Exception):
    """Base class for every error raised by the calculation engine."""
    pass


# ---------------------------------------------------------------------------
# Unit kernel (configuration-time defects)
# ---------------------------------------------------------------------------

class ConversionError(EngineError, ValueError):
    """Raised when a unit conversion cannot be performed."""
    pass


class UnknownUnitError(ConversionError):
    """Unit id is not registered (or not registered for the requested dimension)."""

    def __init__(self, unit, dimension=None):
        self.unit = unit
        self.dimension = dimension
        if dimension:
            msg = f"Unknown unit '{unit}' for dimension '{dimension}'"
        else:
            msg = f"Unknown unit '{unit}'"
        super().__init__(msg)


class DimensionMismatchError(ConversionError):
    """Both units exist but measure different quantities."""

    def __init__(self, from_unit, to_unit, from_dimension, to_dimension):
        self.from_unit = from_unit
        self.to_unit = to_unit
        super().__init__(
            f"Cannot convert '{from_unit}' ({from_dimension}) to"
            f" '{to_unit}' ({to_dimension})"
        )


class RateUnavailableError(ConversionError):
    """A currency conversion was requested without a usable exchange rate."""
    pass


# ---------------------------------------------------------------------------
# User-facing
# ---------------------------------------------------------------------------

class ValidationError(EngineError, ValueError):
    """A single field failed validation. Surfaced inline at that field."""

    def __init__(self, field, message):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class MissingValueError(ValidationError):
    """A required field has no value (or a composite field is only partly filled)."""

    def __init__(self, field, message="is required"):
        super().__init__(field, message)


class ComputationError(EngineError):
    """Raised inside a calculate function; converted to an error Results."""
    pass


# ---------------------------------------------------------------------------
# Registry / collaborators
# ---------------------------------------------------------------------------

class CalculatorConfigError(EngineError):
    """One or more calculator configs are malformed."""

    def __init__(self, problems):
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class CalculatorNotFoundError(EngineError, KeyError):
    """No calculator registered under the requested id or slug."""

    def __str__(self):
        return f"Calculator not found: {self.args[0] if self.args else ''}"


class ShareTokenError(EngineError, ValueError):
    """A share token could not be decoded."""
    pass
