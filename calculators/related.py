"""
Static related-calculator edges (editorial, not user generated).
"""

from calc_engine import RelatedEdge

# (from, to, weight); category is taken from the source calculator
_EDGES = {
    "finance": [
        ("loan", "compound-interest", 0.8),
        ("loan", "currency-converter", 0.3),
        ("compound-interest", "loan", 0.7),
        ("tip", "currency-converter", 0.6),
        ("tip", "percentage", 0.5),
        ("currency-converter", "tip", 0.4),
    ],
    "health": [
        ("bmi", "ideal-weight", 0.9),
        ("bmi", "body-fat", 0.8),
        ("bmi", "bmr", 0.7),
        ("bmi", "water-intake", 0.4),
        ("bmi", "running-pace", 0.3),
        ("body-fat", "bmi", 0.9),
        ("bmr", "water-intake", 0.5),
        ("running-pace", "bmr", 0.6),
        ("ideal-weight", "weight-converter", 0.4),
    ],
    "math": [
        ("percentage", "tip", 0.5),
        ("percentage", "gpa", 0.3),
        ("gpa", "percentage", 0.6),
    ],
    "everyday": [
        ("date-calculator", "running-pace", 0.2),
    ],
    "conversion": [
        ("length-converter", "weight-converter", 0.7),
        ("length-converter", "volume-converter", 0.6),
        ("weight-converter", "length-converter", 0.7),
        ("weight-converter", "bmi", 0.4),
        ("volume-converter", "water-intake", 0.3),
        ("temperature-converter", "length-converter", 0.5),
    ],
}

EDGES = [
    RelatedEdge(source, target, category, weight)
    for category, edges in _EDGES.items()
    for source, target, weight in edges
]
