"""
Per-analysis context handed to every rule.

Rules are pure functions of ``(node, context)``. The context carries the
metadata fetched alongside the plan (table statistics, index
descriptors), the engine the plan came from and the renderer used to
turn ``(type, params)`` into display text.
"""

from __future__ import annotations

from typing import Any, Iterable

from queryadvisor.analyzer.models import (
    Recommendation,
    RecommendationDetails,
    RecommendationType,
    Severity,
)
from queryadvisor.db.models import IndexDescriptor, TableStatistic
from queryadvisor.i18n import MessageCatalog, RecommendationRenderer
from queryadvisor.plan.node import Engine, PlanNode


class RuleContext:
    """
    Read-only inputs shared by all rules during one evaluation.

    Attributes:
        table_statistics: Statistics of the tables in scope
        indexes: Index descriptors of the tables in scope
        engine: Engine the plan came from; None means "unknown", in
            which case every rule applies
        renderer: Text renderer; defaults to the English catalog
    """

    def __init__(
        self,
        table_statistics: Iterable[TableStatistic] = (),
        indexes: Iterable[IndexDescriptor] = (),
        engine: Engine | None = None,
        renderer: RecommendationRenderer | None = None,
    ) -> None:
        self.table_statistics = tuple(table_statistics)
        self.indexes = tuple(indexes)
        self.engine = engine
        self.renderer: RecommendationRenderer = renderer or MessageCatalog()
        self._stats_by_table = {s.table_name: s for s in self.table_statistics}

    def stat_for(self, table_name: str | None) -> TableStatistic | None:
        """Statistics for ``table_name``, or None when unknown."""
        if not table_name:
            return None
        return self._stats_by_table.get(table_name)

    def indexes_named(
        self,
        index_name: str,
        table_name: str | None = None,
    ) -> list[IndexDescriptor]:
        """Descriptors whose name matches, optionally limited to one table."""
        return [
            idx for idx in self.indexes
            if idx.index_name == index_name
            and (table_name is None or idx.table_name == table_name)
        ]

    def recommend(
        self,
        rec_type: RecommendationType,
        severity: Severity,
        node: PlanNode | None = None,
        **params: Any,
    ) -> Recommendation:
        """Build a recommendation, rendering its text from ``params``."""
        text = self.renderer.render(rec_type.value, params)
        return Recommendation(
            type=rec_type,
            severity=severity,
            message=text.message,
            suggestion=text.suggestion,
            details=RecommendationDetails(
                impact=text.impact,
                implementation=text.implementation,
            ),
            params=params,
            relation_name=node.relation_name if node is not None else None,
        )

    def __repr__(self) -> str:
        return (
            f"RuleContext(engine={self.engine!r}, "
            f"tables={len(self.table_statistics)}, indexes={len(self.indexes)})"
        )
