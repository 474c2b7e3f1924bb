"""
Rules: sorting

ExternalSort
    The engine sorted rows outside any index (MySQL "Using filesort",
    PostgreSQL sort spilled to disk). Large sorts are escalated to HIGH,
    and a filesort on a keyed access suggests the key does not cover the
    ORDER BY columns.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from queryadvisor.analyzer.models import Recommendation, RecommendationType, Severity
from queryadvisor.analyzer.registry import register_rule
from queryadvisor.analyzer.rules.base import Rule, RuleConfig

if TYPE_CHECKING:
    from queryadvisor.analyzer.context import RuleContext
    from queryadvisor.plan.node import PlanNode


class ExternalSortConfig(RuleConfig):
    """
    Configuration for sort detection.

    Attributes:
        large_sort_rows: Rows above which an external sort is HIGH.
    """

    large_sort_rows: int = Field(
        default=1000,
        ge=0,
        description="Row threshold for LARGE_SORT",
    )


@register_rule
class ExternalSort(Rule):
    """Flag sorts that could not use an index."""

    rule_id = "EXTERNAL_SORT"
    version = "1.0.0"
    severity = Severity.MEDIUM
    description = "Detects sorts performed outside an index"
    emits = (
        RecommendationType.FILE_SORT,
        RecommendationType.LARGE_SORT,
        RecommendationType.MULTI_COLUMN_SORT,
    )
    config_schema = ExternalSortConfig

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        config: ExternalSortConfig = self.config  # type: ignore[assignment]
        if not node.flags.uses_external_sort:
            return []

        recommendations = [
            ctx.recommend(RecommendationType.FILE_SORT, self.severity, node)
        ]

        rows = node.rows
        if rows is not None and rows > config.large_sort_rows:
            recommendations.append(
                ctx.recommend(
                    RecommendationType.LARGE_SORT,
                    Severity.HIGH,
                    node,
                    rows=int(rows),
                )
            )

        if node.index_name:
            recommendations.append(
                ctx.recommend(
                    RecommendationType.MULTI_COLUMN_SORT,
                    self.severity,
                    node,
                    index_name=node.index_name,
                )
            )

        return recommendations
