"""
Finance calculators: loan, compound interest, tip, currency converter.

Amounts are currency-labelled numbers: the field's unit is the currency
code used for display, and no conversion happens between fields.
"""

import logging

from calc_engine import (
    CalculatorConfig,
    ComputationError,
    DEFAULT_REGISTRY,
    FieldDescriptor,
    Results,
    ResultSpec,
    Section,
)
from calc_engine.unit_catalog import CURRENCIES

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12
# Remaining balance treated as paid off
BALANCE_EPSILON = 0.01


def _amount(id, label, default=None, min=0, max=1_000_000_000, required=True, **kwargs):
    return FieldDescriptor(id, label=label, dimension="currency", normalize=False,
                           default=default, min=min, max=max, required=required, **kwargs)


# ---------------------------------------------------------------------------
# Loan
# ---------------------------------------------------------------------------

def monthly_payment(principal: float, annual_rate_pct: float, months: int) -> float:
    """
    Fixed-rate amortizing payment.

    Formula: PMT = P * r * (1 + r)^n / ((1 + r)^n - 1),  r = annual% / 100 / 12
    With r = 0 the payment is P / n.
    """
    r = annual_rate_pct / 100 / MONTHS_PER_YEAR
    if r == 0:
        return principal / months
    growth = (1 + r) ** months
    return principal * r * growth / (growth - 1)


def amortization_schedule(principal: float, annual_rate_pct: float, months: int,
                          extra: float = 0.0):
    """Month-by-month rows until the balance is paid off."""
    r = annual_rate_pct / 100 / MONTHS_PER_YEAR
    payment = monthly_payment(principal, annual_rate_pct, months)
    balance = principal
    rows = []
    month = 0
    while balance > BALANCE_EPSILON and month < months:
        month += 1
        interest = balance * r
        principal_paid = min(payment + extra - interest, balance)
        if principal_paid <= 0:
            raise ComputationError("The payment does not cover the monthly interest")
        balance -= principal_paid
        rows.append({
            "month": month,
            "payment": principal_paid + interest,
            "principal": principal_paid,
            "interest": interest,
            "balance": max(balance, 0.0),
        })
    return rows


def calculate_loan(inputs, unit_system):
    principal = inputs["principal"]
    rate = inputs["annual_rate"]
    months = int(inputs["term"] * (MONTHS_PER_YEAR if inputs["term_unit"] == "years" else 1))
    extra = inputs.get("extra_payment") or 0.0

    payment = monthly_payment(principal, rate, months)
    rows = amortization_schedule(principal, rate, months, extra)
    total_interest = sum(row["interest"] for row in rows)
    baseline_interest = payment * months - principal

    warnings = []
    if rate > 30:
        warnings.append("Interest rate is unusually high")

    return Results(
        values={
            "monthly_payment": payment,
            "total_paid": principal + total_interest,
            "total_interest": total_interest,
            "payoff_months": len(rows),
            "interest_saved": max(baseline_interest - total_interest, 0.0),
        },
        tables={"schedule": rows},
        warnings=warnings,
    )


LOAN = CalculatorConfig(
    id="loan",
    category="finance",
    sections=[
        Section("loan", [
            _amount("principal", "Loan amount", default=10_000, min=1),
            FieldDescriptor("annual_rate", label="Annual interest rate (%)", default=5.0,
                            min=0, max=100),
            FieldDescriptor("term", label="Loan term", default=12, min=1, max=600, integer=True),
            FieldDescriptor("term_unit", type="choice", label="Term unit", default="months",
                            options=[("months", "Months"), ("years", "Years")]),
        ]),
        Section("extras", [
            FieldDescriptor("extra_payment", label="Extra monthly payment", required=False,
                            min=0, max=1_000_000_000),
        ], collapsible=True),
    ],
    calculate=calculate_loan,
    results=[
        ResultSpec("monthly_payment", "currency", currency_field="principal", primary=True),
        ResultSpec("total_paid", "currency", currency_field="principal"),
        ResultSpec("total_interest", "currency", currency_field="principal"),
        ResultSpec("payoff_months", "integer"),
        ResultSpec("interest_saved", "currency", currency_field="principal"),
    ],
    presets={
        "car_loan": {"principal": 25_000, "annual_rate": 6.5, "term": 60, "term_unit": "months"},
        "mortgage": {"principal": 300_000, "annual_rate": 6.75, "term": 30, "term_unit": "years"},
    },
    meta={"title": "Loan Calculator", "description": "Monthly payment and amortization schedule"},
)


# ---------------------------------------------------------------------------
# Compound interest
# ---------------------------------------------------------------------------

def calculate_compound_interest(inputs, unit_system):
    """
    Future value with periodic compounding and optional monthly contributions.

    Formula: FV = P(1 + r/k)^(k*t) + C * ((1 + i)^(12t) - 1) / i
    where i = (1 + r/k)^(k/12) - 1 is the equivalent monthly rate.
    """
    principal = inputs["principal"]
    r = inputs["annual_rate"] / 100
    k = int(inputs["compounds_per_year"])
    years = inputs["years"]
    contribution = inputs.get("monthly_contribution") or 0.0

    monthly = (1 + r / k) ** (k / MONTHS_PER_YEAR) - 1

    def value_at(t):
        grown = principal * (1 + r / k) ** (k * t)
        n = MONTHS_PER_YEAR * t
        if monthly == 0:
            return grown + contribution * n
        return grown + contribution * ((1 + monthly) ** n - 1) / monthly

    future_value = value_at(years)
    contributed = principal + contribution * MONTHS_PER_YEAR * years
    growth = [
        {"year": year, "balance": value_at(year),
         "contributed": principal + contribution * MONTHS_PER_YEAR * year}
        for year in range(1, int(years) + 1)
    ]
    return Results(
        values={
            "future_value": future_value,
            "total_contributions": contributed,
            "total_interest": future_value - contributed,
            "effective_annual_rate": ((1 + r / k) ** k - 1) * 100,
        },
        tables={"growth": growth},
    )


COMPOUND_INTEREST = CalculatorConfig(
    id="compound-interest",
    category="finance",
    sections=[
        Section("investment", [
            _amount("principal", "Initial deposit", default=1_000),
            FieldDescriptor("annual_rate", label="Annual interest rate (%)", default=7.0,
                            min=0, max=100),
            FieldDescriptor("years", label="Years", default=10, min=0, max=100),
            FieldDescriptor("compounds_per_year", type="choice", label="Compounding",
                            default=12, options=[(1, "Annually"), (2, "Semiannually"),
                                                 (4, "Quarterly"), (12, "Monthly"),
                                                 (365, "Daily")]),
            FieldDescriptor("monthly_contribution", label="Monthly contribution",
                            required=False, min=0, max=1_000_000_000),
        ]),
    ],
    calculate=calculate_compound_interest,
    results=[
        ResultSpec("future_value", "currency", currency_field="principal", primary=True),
        ResultSpec("total_contributions", "currency", currency_field="principal"),
        ResultSpec("total_interest", "currency", currency_field="principal"),
        ResultSpec("effective_annual_rate", "percentage", decimals=3),
    ],
    meta={"title": "Compound Interest Calculator"},
)


# ---------------------------------------------------------------------------
# Tip / bill split
# ---------------------------------------------------------------------------

def calculate_tip(inputs, unit_system):
    bill = inputs["bill"]
    tip = bill * inputs["tip_percent"] / 100
    people = int(inputs["people"])
    return {
        "tip_amount": tip,
        "total": bill + tip,
        "tip_per_person": tip / people,
        "total_per_person": (bill + tip) / people,
    }


TIP = CalculatorConfig(
    id="tip",
    category="finance",
    sections=[
        Section("bill", [
            _amount("bill", "Bill amount", default=50, max=1_000_000),
            FieldDescriptor("tip_percent", label="Tip (%)", default=15, min=0, max=100),
            FieldDescriptor("people", label="Split between", default=1, min=1, max=100,
                            integer=True),
        ]),
    ],
    calculate=calculate_tip,
    results=[
        ResultSpec("tip_amount", "currency", currency_field="bill"),
        ResultSpec("total", "currency", currency_field="bill", primary=True),
        ResultSpec("tip_per_person", "currency", currency_field="bill"),
        ResultSpec("total_per_person", "currency", currency_field="bill"),
    ],
    presets={
        "standard": {"tip_percent": 15},
        "good_service": {"tip_percent": 18},
        "great_service": {"tip_percent": 20},
    },
    meta={"title": "Tip Calculator"},
)


# ---------------------------------------------------------------------------
# Currency converter (needs live rates)
# ---------------------------------------------------------------------------

def calculate_currency(inputs, unit_system, rates):
    amount = inputs["amount"]
    source, target = inputs["from_currency"], inputs["to_currency"]
    converted = DEFAULT_REGISTRY.convert(amount, source, target, rates=rates)
    rate = DEFAULT_REGISTRY.convert(1.0, source, target, rates=rates)
    return {
        "converted": converted,
        "rate": rate,
        "inverse_rate": 1 / rate,
    }


_CURRENCY_OPTIONS = [(code, f"{code} - {info[1]}") for code, info in CURRENCIES.items()]

CURRENCY_CONVERTER = CalculatorConfig(
    id="currency-converter",
    category="finance",
    needs_rates=True,
    sections=[
        Section("conversion", [
            FieldDescriptor("amount", label="Amount", default=100, min=0, max=1_000_000_000_000),
            FieldDescriptor("from_currency", type="choice", label="From", default="USD",
                            options=_CURRENCY_OPTIONS),
            FieldDescriptor("to_currency", type="choice", label="To", default="EUR",
                            options=_CURRENCY_OPTIONS),
        ]),
    ],
    calculate=calculate_currency,
    results=[
        ResultSpec("converted", "currency", currency_field="to_currency", primary=True),
        ResultSpec("rate", "number", decimals=6),
        ResultSpec("inverse_rate", "number", decimals=6),
    ],
    meta={"title": "Currency Converter"},
)


CALCULATORS = [LOAN, COMPOUND_INTEREST, TIP, CURRENCY_CONVERTER]
