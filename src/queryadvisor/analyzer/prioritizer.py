"""
Stable ordering of recommendations for display.

Recommendations are ordered by severity first (HIGH, MEDIUM, LOW), then
by a fixed type priority. Types not in the priority list come after the
listed ones. Python's sort is stable, so recommendations that tie keep
the order the engine produced them in.
"""

from __future__ import annotations

from typing import Iterable

from queryadvisor.analyzer.models import Recommendation, RecommendationType

TYPE_PRIORITY: tuple[RecommendationType, ...] = (
    RecommendationType.TABLE_SCAN,
    RecommendationType.JOIN_OPTIMIZATION,
    RecommendationType.EXPENSIVE_NESTED_LOOP,
    RecommendationType.LARGE_TABLE_SCAN,
    RecommendationType.DEPENDENT_SUBQUERY,
    RecommendationType.TEMP_FILES,
    RecommendationType.MISSING_JOIN_INDEX,
    RecommendationType.INEFFECTIVE_PARTITION,
    RecommendationType.GROUP_BY_OPTIMIZATION,
    RecommendationType.AGGREGATE_SPILL,
    RecommendationType.LARGE_SORT,
)

_TYPE_RANK = {rec_type: i for i, rec_type in enumerate(TYPE_PRIORITY)}
_UNLISTED = len(TYPE_PRIORITY)


def sort_key(rec: Recommendation) -> tuple[int, int]:
    return rec.severity.rank, _TYPE_RANK.get(rec.type, _UNLISTED)


def prioritize(recommendations: Iterable[Recommendation]) -> list[Recommendation]:
    """Return a new list, most urgent first. The input is not modified."""
    return sorted(recommendations, key=sort_key)
