"""
Everyday calculators: date difference and date arithmetic.
"""

import calendar
import datetime
import logging

from calc_engine import (
    CalculatorConfig,
    ComputationError,
    FieldDescriptor,
    ResultSpec,
    Section,
)

logger = logging.getLogger(__name__)

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
AMOUNT_UNITS = ["days", "weeks", "months", "years"]


def add_months(start: datetime.date, months: int) -> datetime.date:
    """Shift by calendar months, clamping the day (Jan 31 + 1 month -> Feb 28/29)."""
    index = start.year * 12 + start.month - 1 + months
    year, month = divmod(index, 12)
    month += 1
    if not datetime.MINYEAR <= year <= datetime.MAXYEAR:
        raise ComputationError("The resulting date is out of range")
    day = min(start.day, calendar.monthrange(year, month)[1])
    return datetime.date(year, month, day)


def date_breakdown(start: datetime.date, end: datetime.date):
    """Whole years, months and days from *start* to *end* (end >= start)."""
    months = (end.year - start.year) * 12 + end.month - start.month
    if add_months(start, months) > end:
        months -= 1
    anchor = add_months(start, months)
    years, months = divmod(months, 12)
    return years, months, (end - anchor).days


def business_days(start: datetime.date, end: datetime.date) -> int:
    """Monday-Friday days in [start, end)."""
    total = (end - start).days
    weeks, rest = divmod(total, 7)
    count = weeks * 5
    weekday = start.weekday()
    for i in range(rest):
        if (weekday + i) % 7 < 5:
            count += 1
    return count


def calculate_dates(inputs, unit_system):
    if inputs["mode"] == "between":
        start, end = inputs["period"]["start"], inputs["period"]["end"]
        if inputs.get("include_end_day"):
            end = end + datetime.timedelta(days=1)
        years, months, days = date_breakdown(start, end)
        total = (end - start).days
        return {
            "total_days": total,
            "weeks": total / 7,
            "business_days": business_days(start, end),
            "breakdown": f"{years} years, {months} months, {days} days",
        }

    start = inputs["start_date"]
    amount = int(inputs["amount"])
    unit = inputs["amount_unit"]
    try:
        if unit == "days":
            result = start + datetime.timedelta(days=amount)
        elif unit == "weeks":
            result = start + datetime.timedelta(weeks=amount)
        elif unit == "months":
            result = add_months(start, amount)
        else:
            result = add_months(start, amount * 12)
    except OverflowError:
        raise ComputationError("The resulting date is out of range") from None
    return {
        "result_date": result,
        "weekday": WEEKDAYS[result.weekday()],
        "total_days": (result - start).days,
    }


_between = {"field": "mode", "value": "between"}
_add = {"field": "mode", "value": "add"}

DATE_CALCULATOR = CalculatorConfig(
    id="date-calculator",
    category="everyday",
    sections=[
        Section("dates", [
            FieldDescriptor("mode", type="choice", label="Calculate", default="between",
                            options=[("between", "Days between dates"),
                                     ("add", "Add to a date")]),
            FieldDescriptor("period", type="date_range", label="Period", visible_when=_between),
            FieldDescriptor("include_end_day", type="boolean", label="Include end day",
                            default=False, visible_when=_between),
            FieldDescriptor("start_date", type="date", label="Start date", visible_when=_add),
            FieldDescriptor("amount", label="Amount", default=30, integer=True,
                            min=-100_000, max=100_000, visible_when=_add),
            FieldDescriptor("amount_unit", type="choice", label="Unit", default="days",
                            options=AMOUNT_UNITS, visible_when=_add),
        ]),
    ],
    calculate=calculate_dates,
    results=[
        ResultSpec("total_days", "integer", primary=True),
        ResultSpec("weeks", decimals=1),
        ResultSpec("business_days", "integer"),
        ResultSpec("breakdown", "text"),
        ResultSpec("result_date", "date"),
        ResultSpec("weekday", "text"),
    ],
    modes=[
        {"id": "between", "fields": ["period", "include_end_day"]},
        {"id": "add", "fields": ["start_date", "amount", "amount_unit"]},
    ],
    meta={"title": "Date Calculator"},
)


CALCULATORS = [DATE_CALCULATOR]
