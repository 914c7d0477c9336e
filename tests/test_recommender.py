"""Tests for recommender.py — related-calculator ranking."""

from calc_engine import Recommender, RelatedEdge
from calculators import RECOMMENDER, REGISTRY
from calculators.related import EDGES


def _recommender():
    entries = [("a", "x"), ("b", "x"), ("c", "x"), ("d", "y"), ("e", "y")]
    edges = [
        RelatedEdge("a", "c", "x", 0.9),
        RelatedEdge("a", "b", "x", 0.5),
        RelatedEdge("a", "e", "x", 0.7),
        RelatedEdge("d", "a", "y", 0.4),
    ]
    return Recommender(entries, edges)


class TestRelated:
    def test_same_category_first_by_weight(self):
        slugs = [r["slug"] for r in _recommender().related("a", 4)]
        assert slugs == ["c", "b", "e", "d"]

    def test_backfill_uses_reverse_edge(self):
        related = _recommender().related("a", 4)
        assert related[-1] == {"slug": "d", "category": "y", "weight": 0.4}

    def test_ties_keep_registry_order(self):
        slugs = [r["slug"] for r in _recommender().related("b", 4)]
        # a via reverse edge 0.5, then c (0); d and e have no edges
        assert slugs == ["a", "c", "d", "e"]

    def test_never_returns_itself(self):
        assert "a" not in [r["slug"] for r in _recommender().related("a", 10)]

    def test_count_limits(self):
        assert len(_recommender().related("a", 2)) == 2
        assert _recommender().related("a", 0) == []

    def test_unknown_slug(self):
        assert _recommender().related("zzz") == []

    def test_edges_with_unknown_slugs_are_ignored(self):
        rec = Recommender([("a", "x"), ("b", "x")], [RelatedEdge("a", "ghost", "x", 1.0)])
        assert rec.related("a") == [{"slug": "b", "category": "x", "weight": 0.0}]

    def test_deterministic(self):
        assert _recommender().related("e", 3) == _recommender().related("e", 3)

    def test_registry_category_wins_over_edge_category(self, caplog):
        rec = Recommender([("a", "x"), ("b", "y")], [RelatedEdge("a", "b", "z", 0.5)])
        assert "listed under 'z'" in caplog.text
        assert rec.related("a") == [{"slug": "b", "category": "y", "weight": 0.5}]


class TestShippedEdges:
    def test_edge_categories_match_registry(self, caplog):
        Recommender(REGISTRY.all(), EDGES)
        assert "listed under" not in caplog.text

    def test_bmi_related(self):
        slugs = [r["slug"] for r in RECOMMENDER.related("bmi", 4)]
        assert slugs == ["ideal-weight", "body-fat", "bmr", "water-intake"]

    def test_health_calculators_come_before_other_categories(self):
        related = RECOMMENDER.related("bmi", 7)
        categories = [r["category"] for r in related]
        assert categories[:5] == ["health"] * 5
        assert related[5]["slug"] == "weight-converter"
