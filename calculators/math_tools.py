"""
Math calculators: percentage (three modes) and GPA.
"""

import logging

from calc_engine import (
    CalculatorConfig,
    ComputationError,
    FieldDescriptor,
    ResultSpec,
    Section,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Percentage
# ---------------------------------------------------------------------------

PERCENTAGE_MODES = [
    {"id": "of", "label": "What is X% of Y?", "fields": ["percent", "of_value"]},
    {"id": "is_what", "label": "X is what % of Y?", "fields": ["part", "whole"]},
    {"id": "change", "label": "Percentage change from X to Y", "fields": ["old_value", "new_value"]},
]


def _number(id, label, mode, **kwargs):
    return FieldDescriptor(id, label=label, visible_when={"field": "mode", "value": mode},
                           min=-1e15, max=1e15, **kwargs)


def calculate_percentage(inputs, unit_system):
    mode = inputs["mode"]
    if mode == "of":
        return {"result": inputs["percent"] / 100 * inputs["of_value"]}
    if mode == "is_what":
        return {"percent": inputs["part"] / inputs["whole"] * 100}

    old, new = inputs["old_value"], inputs["new_value"]
    change = (new - old) / abs(old) * 100
    return {
        "percent": change,
        "result": new - old,
        "direction": "increase" if change > 0 else "decrease" if change < 0 else "no_change",
    }


PERCENTAGE = CalculatorConfig(
    id="percentage",
    category="math",
    sections=[
        Section("question", [
            FieldDescriptor("mode", type="choice", label="Question", default="of",
                            options=[(m["id"], m["label"]) for m in PERCENTAGE_MODES]),
            _number("percent", "Percent", "of", default=10),
            _number("of_value", "Of", "of", default=200),
            _number("part", "Value", "is_what"),
            _number("whole", "Of total", "is_what"),
            _number("old_value", "From", "change"),
            _number("new_value", "To", "change"),
        ]),
    ],
    calculate=calculate_percentage,
    results=[
        ResultSpec("result", decimals=4, primary=True),
        ResultSpec("percent", "percentage", decimals=2),
        ResultSpec("direction", "text"),
    ],
    modes=PERCENTAGE_MODES,
    meta={"title": "Percentage Calculator"},
)


# ---------------------------------------------------------------------------
# GPA
# ---------------------------------------------------------------------------

GRADE_POINTS = {
    "A+": 4.0, "A": 4.0, "A-": 3.7,
    "B+": 3.3, "B": 3.0, "B-": 2.7,
    "C+": 2.3, "C": 2.0, "C-": 1.7,
    "D+": 1.3, "D": 1.0, "D-": 0.7,
    "F": 0.0,
}


def calculate_gpa(inputs, unit_system):
    """
    Credit-weighted grade point average.

    Formula: GPA = sum(credits_i * points_i) / sum(credits_i)
    """
    courses = inputs["courses"]
    credits = sum(row["credits"] for row in courses)
    points = sum(row["credits"] * GRADE_POINTS[row["grade"]] for row in courses)

    prior_credits = inputs.get("prior_credits") or 0.0
    prior_gpa = inputs.get("prior_gpa")
    if prior_gpa is None:
        prior_credits = 0.0

    if credits + prior_credits == 0:
        raise ComputationError("Total credits must be greater than zero")

    values = {
        "gpa": points / credits if credits else 0.0,
        "total_credits": credits,
        "quality_points": points,
    }
    if prior_credits:
        values["cumulative_gpa"] = (points + prior_gpa * prior_credits) / (credits + prior_credits)
    return values


GPA = CalculatorConfig(
    id="gpa",
    category="math",
    sections=[
        Section("courses", [
            FieldDescriptor("courses", type="rows", label="Courses", min_rows=1, max_rows=50,
                            default=[{"name": "", "credits": 3, "grade": "A"}],
                            row_fields=[
                                FieldDescriptor("name", type="text", label="Course", required=False),
                                FieldDescriptor("credits", label="Credits", min=0, max=20),
                                FieldDescriptor("grade", type="choice", label="Grade",
                                                options=list(GRADE_POINTS)),
                            ]),
        ]),
        Section("history", [
            FieldDescriptor("prior_gpa", label="Current GPA", required=False, min=0, max=4),
            FieldDescriptor("prior_credits", label="Credits completed", required=False,
                            min=0, max=1000),
        ], collapsible=True),
    ],
    calculate=calculate_gpa,
    results=[
        ResultSpec("gpa", decimals=2, primary=True, label="Semester GPA"),
        ResultSpec("cumulative_gpa", decimals=2, label="Cumulative GPA"),
        ResultSpec("total_credits", decimals=1),
        ResultSpec("quality_points", decimals=1),
    ],
    meta={"title": "GPA Calculator"},
)


CALCULATORS = [PERCENTAGE, GPA]
