"""
Health calculators: BMI, ideal weight, BMR, water intake, body fat, running pace.

All body measurements arrive in base units (metres, kilograms, seconds).
"""

import logging
import math

from calc_engine import (
    Check,
    CalculatorConfig,
    ComputationError,
    FieldDescriptor,
    FieldRef,
    Results,
    ResultSpec,
    Section,
    field_compare,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

M_PER_IN = 0.0254
INCHES_IN_5_FT = 60

MIN_HEIGHT_M = 0.5
MAX_HEIGHT_M = 2.72
MIN_WEIGHT_KG = 2
MAX_WEIGHT_KG = 650

# Upper bound (exclusive) -> category
BMI_CATEGORIES = (
    (18.5, "underweight"),
    (25.0, "normal"),
    (30.0, "overweight"),
    (35.0, "obese_class_1"),
    (40.0, "obese_class_2"),
    (math.inf, "obese_class_3"),
)
HEALTHY_BMI_MIN = 18.5
HEALTHY_BMI_MAX = 24.9

ACTIVITY_FACTORS = {
    "sedentary": 1.2,
    "light": 1.375,
    "moderate": 1.55,
    "active": 1.725,
    "very_active": 1.9,
}

SEX_OPTIONS = [("male", "Male"), ("female", "Female")]


def _height(id="height", label="Height", **kwargs):
    kwargs.setdefault("default_unit", {"metric": "cm", "imperial": "ft_in"})
    kwargs.setdefault("allowed_units", ["cm", "m", "ft_in", "in"])
    kwargs.setdefault("min", MIN_HEIGHT_M)
    kwargs.setdefault("max", MAX_HEIGHT_M)
    return FieldDescriptor(id, label=label, dimension="length", **kwargs)


def _weight(id="weight", label="Weight", **kwargs):
    kwargs.setdefault("default_unit", {"metric": "kg", "imperial": "lb"})
    kwargs.setdefault("allowed_units", ["kg", "lb", "st"])
    kwargs.setdefault("min", MIN_WEIGHT_KG)
    kwargs.setdefault("max", MAX_WEIGHT_KG)
    return FieldDescriptor(id, label=label, dimension="mass", **kwargs)


def _sex():
    return FieldDescriptor("sex", type="choice", label="Sex", default="male", options=SEX_OPTIONS)


# ---------------------------------------------------------------------------
# BMI
# ---------------------------------------------------------------------------

def bmi_category(bmi: float) -> str:
    for upper, name in BMI_CATEGORIES:
        if bmi < upper:
            return name
    return BMI_CATEGORIES[-1][1]


def calculate_bmi(inputs, unit_system):
    """
    Body mass index.

    Formula: BMI = weight_kg / height_m^2
    """
    height = inputs["height_cm"]
    weight = inputs["weight"]
    bmi = weight / height ** 2
    return {
        "bmi": bmi,
        "category": bmi_category(bmi),
        "bmi_prime": bmi / 25,
        "healthy_min_weight": HEALTHY_BMI_MIN * height ** 2,
        "healthy_max_weight": HEALTHY_BMI_MAX * height ** 2,
    }


BMI = CalculatorConfig(
    id="bmi",
    category="health",
    sections=[
        Section("body", [
            _height("height_cm", "Height (metric)", default=1.75, default_unit="cm",
                    allowed_units=["cm", "m"], sync_group="height"),
            _height("height_ft_in", "Height (imperial)", default_unit="ft_in",
                    allowed_units=["ft_in", "in"], sync_group="height", required=False),
            _weight(default=70),
        ]),
    ],
    calculate=calculate_bmi,
    results=[
        ResultSpec("bmi", decimals=1, primary=True, label="BMI"),
        ResultSpec("category", "text"),
        ResultSpec("bmi_prime", decimals=2, label="BMI prime"),
        ResultSpec("healthy_min_weight", dimension="mass", label="Healthy weight from"),
        ResultSpec("healthy_max_weight", dimension="mass", label="Healthy weight to"),
    ],
    meta={"title": "BMI Calculator"},
)


# ---------------------------------------------------------------------------
# Ideal weight
# ---------------------------------------------------------------------------

# (male intercept, male slope, female intercept, female slope), kg per inch over 5 ft
IDEAL_WEIGHT_FORMULAS = {
    "devine": (50.0, 2.3, 45.5, 2.3),
    "robinson": (52.0, 1.9, 49.0, 1.7),
    "miller": (56.2, 1.41, 53.1, 1.36),
    "hamwi": (48.0, 2.7, 45.5, 2.2),
}


def calculate_ideal_weight(inputs, unit_system):
    inches_over = inputs["height"] / M_PER_IN - INCHES_IN_5_FT
    female = inputs["sex"] == "female"
    values = {}
    for name, (m0, m1, f0, f1) in IDEAL_WEIGHT_FORMULAS.items():
        values[name] = (f0 + f1 * inches_over) if female else (m0 + m1 * inches_over)
    if min(values.values()) <= 0:
        raise ComputationError("Height is too short for these formulas")
    values["average"] = sum(values.values()) / len(IDEAL_WEIGHT_FORMULAS)
    return values


IDEAL_WEIGHT = CalculatorConfig(
    id="ideal-weight",
    category="health",
    sections=[
        Section("body", [_sex(), _height(default=1.75, min=1.2)]),
    ],
    calculate=calculate_ideal_weight,
    results=[ResultSpec(name, dimension="mass", label=name.capitalize())
             for name in IDEAL_WEIGHT_FORMULAS]
            + [ResultSpec("average", dimension="mass", primary=True)],
    meta={"title": "Ideal Weight Calculator"},
)


# ---------------------------------------------------------------------------
# BMR / TDEE
# ---------------------------------------------------------------------------

def calculate_bmr(inputs, unit_system):
    """
    Basal metabolic rate in kcal/day.

    Mifflin-St Jeor: 10w + 6.25h - 5a + 5 (male) / - 161 (female)
    Harris-Benedict (revised): 88.362 + 13.397w + 4.799h - 5.677a (male)
                               447.593 + 9.247w + 3.098h - 4.330a (female)
    w in kg, h in cm, a in years.
    """
    w = inputs["weight"]
    h = inputs["height"] * 100
    a = inputs["age"]
    female = inputs["sex"] == "female"
    if inputs["formula"] == "harris_benedict":
        if female:
            bmr = 447.593 + 9.247 * w + 3.098 * h - 4.330 * a
        else:
            bmr = 88.362 + 13.397 * w + 4.799 * h - 5.677 * a
    else:
        bmr = 10 * w + 6.25 * h - 5 * a + (-161 if female else 5)
    if bmr <= 0:
        raise ComputationError("These measurements give no meaningful metabolic rate")
    return {"bmr": bmr, "tdee": bmr * ACTIVITY_FACTORS[inputs["activity"]]}


BMR = CalculatorConfig(
    id="bmr",
    category="health",
    sections=[
        Section("body", [
            _sex(),
            FieldDescriptor("age", label="Age", default=30, min=15, max=100, integer=True),
            _height(default=1.75),
            _weight(default=70),
        ]),
        Section("lifestyle", [
            FieldDescriptor("activity", type="choice", label="Activity level",
                            default="sedentary", options=list(ACTIVITY_FACTORS)),
            FieldDescriptor("formula", type="choice", label="Formula", default="mifflin",
                            options=[("mifflin", "Mifflin-St Jeor"),
                                     ("harris_benedict", "Harris-Benedict")]),
        ], collapsible=True),
    ],
    calculate=calculate_bmr,
    results=[
        ResultSpec("bmr", dimension="energy", primary=True, label="BMR"),
        ResultSpec("tdee", dimension="energy", label="Daily calories"),
    ],
    meta={"title": "BMR Calculator"},
)


# ---------------------------------------------------------------------------
# Water intake
# ---------------------------------------------------------------------------

L_PER_KG = 0.035
L_PER_30_MIN_EXERCISE = 0.35
HOT_CLIMATE_EXTRA_L = 0.5
GLASS_L = 0.25


def calculate_water_intake(inputs, unit_system):
    litres = inputs["weight"] * L_PER_KG
    litres += inputs["exercise_minutes"] / 30 * L_PER_30_MIN_EXERCISE
    if inputs["climate"] == "hot":
        litres += HOT_CLIMATE_EXTRA_L
    return {"water": litres, "glasses": litres / GLASS_L}


WATER_INTAKE = CalculatorConfig(
    id="water-intake",
    category="health",
    sections=[
        Section("body", [
            _weight(default=70),
            FieldDescriptor("exercise_minutes", label="Exercise per day (minutes)",
                            default=30, min=0, max=600),
            FieldDescriptor("climate", type="choice", label="Climate", default="temperate",
                            options=[("temperate", "Temperate"), ("hot", "Hot or humid")]),
        ]),
    ],
    calculate=calculate_water_intake,
    results=[
        ResultSpec("water", dimension="volume", primary=True,
                   display_unit={"metric": "L", "imperial": "fl_oz"}, label="Daily water"),
        ResultSpec("glasses", decimals=1, label="Glasses (250 mL)"),
    ],
    meta={"title": "Water Intake Calculator"},
)


# ---------------------------------------------------------------------------
# Body fat (US Navy method)
# ---------------------------------------------------------------------------

# Upper bound (exclusive) -> category, by sex
BODY_FAT_CATEGORIES = {
    "male": ((6, "essential"), (14, "athletes"), (18, "fitness"), (25, "average"), (math.inf, "obese")),
    "female": ((14, "essential"), (21, "athletes"), (25, "fitness"), (32, "average"), (math.inf, "obese")),
}


def calculate_body_fat(inputs, unit_system):
    """
    US Navy circumference method, measurements in cm.

    Male:   495 / (1.0324 - 0.19077 log10(waist - neck) + 0.15456 log10(height)) - 450
    Female: 495 / (1.29579 - 0.35004 log10(waist + hip - neck) + 0.22100 log10(height)) - 450
    """
    height = inputs["height"] * 100
    neck = inputs["neck"] * 100
    waist = inputs["waist"] * 100
    sex = inputs["sex"]
    if sex == "female":
        density = 1.29579 - 0.35004 * math.log10(waist + inputs["hip"] * 100 - neck) \
            + 0.22100 * math.log10(height)
    else:
        density = 1.0324 - 0.19077 * math.log10(waist - neck) + 0.15456 * math.log10(height)
    body_fat = 495 / density - 450
    if not 0 < body_fat < 100:
        raise ComputationError("These measurements give no meaningful body fat estimate")

    category = next(name for upper, name in BODY_FAT_CATEGORIES[sex] if body_fat < upper)
    fat_mass = inputs["weight"] * body_fat / 100
    return {
        "body_fat": body_fat,
        "category": category,
        "fat_mass": fat_mass,
        "lean_mass": inputs["weight"] - fat_mass,
    }


def _circumference(id, label, default, min, max, **kwargs):
    return FieldDescriptor(id, label=label, dimension="length",
                           default_unit={"metric": "cm", "imperial": "in"},
                           allowed_units=["cm", "in"], default=default,
                           min=min, max=max, **kwargs)


BODY_FAT = CalculatorConfig(
    id="body-fat",
    category="health",
    sections=[
        Section("body", [
            _sex(),
            _height(default=1.78, min=1.2, max=2.5, default_unit={"metric": "cm", "imperial": "in"}),
            _weight(default=80),
        ]),
        Section("measurements", [
            _circumference("neck", "Neck", 0.38, 0.2, 0.8),
            _circumference("waist", "Waist", 0.86, 0.4, 2.0),
            _circumference("hip", "Hip", None, 0.5, 2.0,
                           visible_when={"field": "sex", "value": "female"}),
        ]),
    ],
    checks=[
        Check(field_compare("waist", "gt", FieldRef("neck")),
              "Waist must be larger than neck", field="waist"),
    ],
    calculate=calculate_body_fat,
    results=[
        ResultSpec("body_fat", "percentage", decimals=1, primary=True, label="Body fat"),
        ResultSpec("category", "text"),
        ResultSpec("fat_mass", dimension="mass"),
        ResultSpec("lean_mass", dimension="mass"),
    ],
    meta={"title": "Body Fat Calculator"},
)


# ---------------------------------------------------------------------------
# Running pace
# ---------------------------------------------------------------------------

M_PER_KM = 1000.0
M_PER_MI = 1609.344
SECONDS_PER_HOUR = 3600.0


def calculate_running_pace(inputs, unit_system):
    """Pace (seconds per km / per mile) and average speed (km/h)."""
    metres = inputs["distance"]
    seconds = inputs["duration"]
    return Results(values={
        "pace_per_km": seconds / (metres / M_PER_KM),
        "pace_per_mile": seconds / (metres / M_PER_MI),
        "speed": (metres / M_PER_KM) / (seconds / SECONDS_PER_HOUR),
    })


RUNNING_PACE = CalculatorConfig(
    id="running-pace",
    category="health",
    sections=[
        Section("run", [
            FieldDescriptor("distance", label="Distance", dimension="length",
                            default_unit={"metric": "km", "imperial": "mi"},
                            allowed_units=["km", "mi", "m"], default=5000,
                            min=100, max=1_000_000),
            FieldDescriptor("duration", label="Time", dimension="time",
                            default_unit="h_min_s", allowed_units=["h_min_s", "min_s", "min"],
                            default=1800, min=1, max=7 * 86_400),
        ]),
    ],
    calculate=calculate_running_pace,
    results=[
        ResultSpec("pace_per_km", "duration", primary=True, label="Pace per km"),
        ResultSpec("pace_per_mile", "duration", label="Pace per mile"),
        ResultSpec("speed", dimension="speed", decimals=2),
    ],
    presets={
        "5k": {"distance": 5000},
        "10k": {"distance": 10_000},
        "half_marathon": {"distance": 21_097.5},
        "marathon": {"distance": 42_195},
    },
    meta={"title": "Running Pace Calculator"},
)


CALCULATORS = [BMI, IDEAL_WEIGHT, BMR, WATER_INTAKE, BODY_FAT, RUNNING_PACE]
