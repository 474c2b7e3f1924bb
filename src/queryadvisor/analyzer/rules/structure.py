"""
Rules: query structure

QueryStructure
    - Rows are filtered after being read ("Using where" on MySQL)
    - Temporary table plus filesort, the usual shape of DISTINCT/ORDER BY
      that no index satisfies

SubqueryShape
    - Correlated subqueries run once per outer row (HIGH)
    - Uncorrelated subqueries are candidates for rewriting as joins (MEDIUM)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from queryadvisor.analyzer.models import Recommendation, RecommendationType, Severity
from queryadvisor.analyzer.registry import register_rule
from queryadvisor.analyzer.rules.base import Rule
from queryadvisor.plan.node import SubqueryKind

if TYPE_CHECKING:
    from queryadvisor.analyzer.context import RuleContext
    from queryadvisor.plan.node import PlanNode


@register_rule
class QueryStructure(Rule):
    """Flag filtering and de-duplication done without index support."""

    rule_id = "QUERY_STRUCTURE"
    version = "1.0.0"
    severity = Severity.MEDIUM
    description = "Detects post-read filtering and DISTINCT without index support"
    emits = (
        RecommendationType.WHERE_CLAUSE,
        RecommendationType.DISTINCT_OPTIMIZATION,
    )

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        flags = node.flags
        recommendations: list[Recommendation] = []

        if flags.uses_where_filter:
            recommendations.append(
                ctx.recommend(RecommendationType.WHERE_CLAUSE, Severity.LOW, node)
            )

        if flags.uses_temporary_structure and flags.uses_external_sort:
            recommendations.append(
                ctx.recommend(
                    RecommendationType.DISTINCT_OPTIMIZATION, self.severity, node
                )
            )

        return recommendations


@register_rule
class SubqueryShape(Rule):
    """Flag subqueries by correlation."""

    rule_id = "SUBQUERY_SHAPE"
    version = "1.0.0"
    severity = Severity.HIGH
    description = "Detects correlated and uncorrelated subqueries"
    emits = (
        RecommendationType.DEPENDENT_SUBQUERY,
        RecommendationType.SUBQUERY_OPTIMIZATION,
    )

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        if node.subquery is SubqueryKind.CORRELATED:
            return [
                ctx.recommend(RecommendationType.DEPENDENT_SUBQUERY, Severity.HIGH, node)
            ]
        if node.subquery is SubqueryKind.UNCORRELATED:
            return [
                ctx.recommend(
                    RecommendationType.SUBQUERY_OPTIMIZATION, Severity.MEDIUM, node
                )
            ]
        return []
