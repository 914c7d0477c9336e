"""
Calculation Engine — Subsystem 8: Related-Calculator Recommender
==================================================================
Ranks calculators related to the current one from static edge data.

Ranking:
  1. Same-category calculators, weight descending, ties by registry order.
  2. Backfill from other categories, weight descending, ties by registry order.
The current calculator is never returned. Pure and deterministic.

Categories always come from the registry entries. An edge's own category
only labels the editorial list it was declared in; a mismatch with the
source calculator's registry category is logged and otherwise ignored.
"""

import logging
from typing import Dict, Iterable, List, Tuple

logger = logging.getLogger(__name__)


class RelatedEdge:
    """Static relatedness between two calculators (not user generated)."""

    def __init__(self, from_slug: str, to_slug: str, category: str, weight: float):
        self.from_slug = from_slug
        self.to_slug = to_slug
        self.category = category
        self.weight = float(weight)

    def __repr__(self):
        return f"RelatedEdge({self.from_slug!r} -> {self.to_slug!r}, {self.weight})"


class Recommender:
    def __init__(self, entries: Iterable, edges: Iterable[RelatedEdge] = ()):
        """*entries* are ``(slug, category)`` pairs or objects with ``slug``/``category``, in registry order."""
        self._order: List[str] = []
        self._category: Dict[str, str] = {}
        for entry in entries:
            if isinstance(entry, (tuple, list)):
                slug, category = entry[0], entry[1]
            else:
                slug, category = entry.slug, entry.category
            if slug not in self._category:
                self._order.append(slug)
            self._category[slug] = category

        self._weights: Dict[Tuple[str, str], float] = {}
        for edge in edges:
            if edge.from_slug not in self._category or edge.to_slug not in self._category:
                logger.warning(f"Ignoring related edge with unknown slug: {edge!r}")
                continue
            if edge.category != self._category[edge.from_slug]:
                logger.warning(
                    f"Related edge {edge!r} is listed under '{edge.category}' but"
                    f" '{edge.from_slug}' is in '{self._category[edge.from_slug]}'"
                )
            self._weights[(edge.from_slug, edge.to_slug)] = edge.weight

    def weight(self, from_slug: str, to_slug: str) -> float:
        """Directed edge weight; the reverse edge counts when only it is declared."""
        if (from_slug, to_slug) in self._weights:
            return self._weights[(from_slug, to_slug)]
        return self._weights.get((to_slug, from_slug), 0.0)

    def related(self, slug: str, count: int = 4) -> List[Dict]:
        if count <= 0 or slug not in self._category:
            return []
        category = self._category[slug]
        ranked = sorted(
            (s for s in self._order if s != slug),
            key=lambda s: (
                self._category[s] != category,
                -self.weight(slug, s),
                self._order.index(s),
            ),
        )
        return [
            {"slug": s, "category": self._category[s], "weight": self.weight(slug, s)}
            for s in ranked[:count]
        ]
