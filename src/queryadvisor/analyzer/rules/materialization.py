"""
Rules: materialization

Materialization
    - An operation executed more than once (loops > 1) whose result is
      not cached by a Materialize node
    - A CTE scanned for more than one row without being materialized
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


class MaterializationConfig(RuleConfig):
    """
    Configuration for materialization detection.

    Attributes:
        cte_rows: Rows above which a non-materialized CTE scan is reported.
    """

    cte_rows: int = Field(
        default=1,
        ge=0,
        description="Actual rows threshold for CTE_MATERIALIZATION",
    )


@register_rule
class Materialization(Rule):
    """Flag repeated work that materialization would avoid."""

    rule_id = "MATERIALIZATION"
    version = "1.0.0"
    severity = Severity.MEDIUM
    description = "Detects repeated executions and CTEs that are not materialized"
    emits = (
        RecommendationType.MISSED_MATERIALIZATION,
        RecommendationType.CTE_MATERIALIZATION,
    )
    config_schema = MaterializationConfig

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        config: MaterializationConfig = self.config  # type: ignore[assignment]
        recommendations: list[Recommendation] = []

        loops = node.actual_loops
        if loops is not None and loops > 1 and node.node_kind is not NodeKind.MATERIALIZE:
            recommendations.append(
                ctx.recommend(
                    RecommendationType.MISSED_MATERIALIZATION,
                    self.severity,
                    node,
                    operation=node.display_name,
                    loops=loops,
                )
            )

        if (
            node.node_kind is NodeKind.CTE_SCAN
            and node.actual_rows is not None
            and node.actual_rows > config.cte_rows
            and not node.flags.is_materialized
        ):
            recommendations.append(
                ctx.recommend(
                    RecommendationType.CTE_MATERIALIZATION,
                    self.severity,
                    node,
                    table_name=node.relation_name or "",
                )
            )

        return recommendations
