"""
Rules: joins

InefficientJoin
    - Compound selects (MySQL ``select_type`` other than SIMPLE) that
      read a table without any key
    - Nested loops producing many rows (inner side re-executed per outer row)
    - Hash/merge-style joins whose condition has no equality, so no index
      can drive the join

JoinBuffer
    MySQL fell back to a join buffer (block nested loop / hash join)
    because the joined table has no usable index.
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


class InefficientJoinConfig(RuleConfig):
    """
    Configuration for join detection.

    Attributes:
        nested_loop_rows: Actual rows above which a nested loop is expensive.
    """

    nested_loop_rows: int = Field(
        default=1000,
        ge=0,
        description="Actual rows threshold for EXPENSIVE_NESTED_LOOP",
    )


@register_rule
class InefficientJoin(Rule):
    """Flag joins that cannot use an index or multiply work."""

    rule_id = "INEFFICIENT_JOIN"
    version = "1.0.0"
    severity = Severity.HIGH
    description = "Detects unindexed joins and expensive nested loops"
    emits = (
        RecommendationType.JOIN_OPTIMIZATION,
        RecommendationType.EXPENSIVE_NESTED_LOOP,
        RecommendationType.MISSING_JOIN_INDEX,
    )
    config_schema = InefficientJoinConfig

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        config: InefficientJoinConfig = self.config  # type: ignore[assignment]
        recommendations: list[Recommendation] = []

        if node.flags.compound_select and node.node_kind.is_scan and not node.uses_index:
            recommendations.append(
                ctx.recommend(RecommendationType.JOIN_OPTIMIZATION, self.severity, node)
            )

        if (
            node.node_kind is NodeKind.NESTED_LOOP_JOIN
            and node.actual_rows is not None
            and node.actual_rows > config.nested_loop_rows
        ):
            recommendations.append(
                ctx.recommend(
                    RecommendationType.EXPENSIVE_NESTED_LOOP,
                    self.severity,
                    node,
                    rows=int(node.actual_rows),
                )
            )

        if (
            node.node_kind is NodeKind.HASH_JOIN
            and node.join_condition
            and "=" not in node.join_condition
        ):
            recommendations.append(
                ctx.recommend(
                    RecommendationType.MISSING_JOIN_INDEX,
                    self.severity,
                    node,
                    condition=node.join_condition,
                )
            )

        return recommendations


@register_rule
class JoinBuffer(Rule):
    """Flag join buffer usage."""

    rule_id = "JOIN_BUFFER"
    version = "1.0.0"
    severity = Severity.MEDIUM
    description = "Detects joins executed through a join buffer"
    emits = (RecommendationType.JOIN_BUFFER,)

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        if not node.flags.uses_join_buffer:
            return []
        return [ctx.recommend(RecommendationType.JOIN_BUFFER, self.severity, node)]
