"""
Rules: table statistics

TableStatistics
    Combines the plan with table metadata:
    - Full scans of tables whose row count exceeds ``large_table_rows``
    - Tables whose indexes are large relative to their data
    - Planning time high enough to suggest stale or missing statistics
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from queryadvisor.analyzer.models import Recommendation, RecommendationType, Severity
from queryadvisor.analyzer.registry import register_rule
from queryadvisor.analyzer.rules.base import Rule, RuleConfig
from queryadvisor.plan.node import NodeKind

if TYPE_CHECKING:
    from queryadvisor.analyzer.context import RuleContext
    from queryadvisor.plan.node import PlanNode


class TableStatisticsConfig(RuleConfig):
    """
    Configuration for statistics-based detection.

    Attributes:
        large_table_rows: Row count above which a full scan is HIGH.
        index_ratio: Index/data size ratio above which indexes look oversized.
        planning_time_ms: Planning time above which statistics look stale.
    """

    large_table_rows: int = Field(
        default=10_000,
        ge=0,
        description="Row count threshold for LARGE_TABLE_SCAN",
    )
    index_ratio: float = Field(
        default=0.5,
        ge=0.0,
        description="Index size / data size threshold for HIGH_INDEX_RATIO",
    )
    planning_time_ms: float = Field(
        default=1000.0,
        ge=0.0,
        description="Planning time threshold for OUTDATED_STATS (ms)",
    )


@register_rule
class TableStatistics(Rule):
    """Flag problems visible only with table metadata."""

    rule_id = "TABLE_STATISTICS"
    version = "1.0.0"
    severity = Severity.HIGH
    description = "Detects large table scans, oversized indexes and slow planning"
    emits = (
        RecommendationType.LARGE_TABLE_SCAN,
        RecommendationType.HIGH_INDEX_RATIO,
        RecommendationType.OUTDATED_STATS,
    )
    config_schema = TableStatisticsConfig

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        config: TableStatisticsConfig = self.config  # type: ignore[assignment]
        recommendations: list[Recommendation] = []
        stat = ctx.stat_for(node.relation_name)

        if stat is not None:
            if (
                node.node_kind is NodeKind.TABLE_SCAN
                and stat.row_count > config.large_table_rows
            ):
                recommendations.append(
                    ctx.recommend(
                        RecommendationType.LARGE_TABLE_SCAN,
                        self.severity,
                        node,
                        rows=stat.row_count,
                    )
                )

            ratio = stat.index_ratio
            if ratio is not None and ratio > config.index_ratio:
                recommendations.append(
                    ctx.recommend(
                        RecommendationType.HIGH_INDEX_RATIO,
                        Severity.LOW,
                        node,
                        table_name=stat.table_name,
                        ratio=round(ratio, 2),
                    )
                )

        planning_time = node.flags.planning_time_ms
        if planning_time is not None and planning_time > config.planning_time_ms:
            recommendations.append(
                ctx.recommend(
                    RecommendationType.OUTDATED_STATS,
                    Severity.MEDIUM,
                    node,
                    planning_time_ms=round(planning_time, 3),
                )
            )

        return recommendations
