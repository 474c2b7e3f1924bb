"""
Rules: grouping

Grouping
    - GROUP BY resolved through a temporary table and filesort with no key
    - Sorted (group) aggregates over many rows

LooseIndexScan
    A filtered, keyed read that still needs a temporary table: the GROUP
    BY could be answered by skipping through the index instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from queryadvisor.analyzer.models import Recommendation, RecommendationType, Severity
from queryadvisor.analyzer.registry import register_rule
from queryadvisor.analyzer.rules.base import Rule, RuleConfig
from queryadvisor.plan.node import AggregateStrategy, NodeKind

if TYPE_CHECKING:
    from queryadvisor.analyzer.context import RuleContext
    from queryadvisor.plan.node import PlanNode


class GroupingConfig(RuleConfig):
    """
    Configuration for grouping detection.

    Attributes:
        aggregate_rows: Actual rows above which a group aggregate is inefficient.
    """

    aggregate_rows: int = Field(
        default=1000,
        ge=0,
        description="Actual rows threshold for INEFFICIENT_AGGREGATE",
    )


@register_rule
class Grouping(Rule):
    """Flag GROUP BY evaluated without index support."""

    rule_id = "GROUPING"
    version = "1.0.0"
    severity = Severity.HIGH
    description = "Detects GROUP BY without index support and large sorted aggregates"
    emits = (
        RecommendationType.GROUP_BY_OPTIMIZATION,
        RecommendationType.INEFFICIENT_AGGREGATE,
    )
    config_schema = GroupingConfig

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        config: GroupingConfig = self.config  # type: ignore[assignment]
        flags = node.flags
        recommendations: list[Recommendation] = []

        if (
            flags.uses_temporary_structure
            and flags.uses_external_sort
            and not node.uses_index
        ):
            recommendations.append(
                ctx.recommend(
                    RecommendationType.GROUP_BY_OPTIMIZATION, self.severity, node
                )
            )

        if (
            node.node_kind is NodeKind.AGGREGATE
            and node.aggregate_strategy is AggregateStrategy.GROUP
            and node.actual_rows is not None
            and node.actual_rows > config.aggregate_rows
        ):
            recommendations.append(
                ctx.recommend(
                    RecommendationType.INEFFICIENT_AGGREGATE,
                    Severity.MEDIUM,
                    node,
                    rows=int(node.actual_rows),
                )
            )

        return recommendations


@register_rule
class LooseIndexScan(Rule):
    """Suggest loose index scans for filtered, keyed GROUP BY."""

    rule_id = "LOOSE_INDEX_SCAN"
    version = "1.0.0"
    severity = Severity.MEDIUM
    description = "Detects GROUP BY that could use a loose index scan"
    emits = (RecommendationType.LOOSE_INDEX_SCAN,)

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        flags = node.flags
        if flags.uses_where_filter and flags.uses_temporary_structure and node.uses_index:
            return [ctx.recommend(RecommendationType.LOOSE_INDEX_SCAN, self.severity, node)]
        return []
