"""
Rules: parallelism

Parallelism (PostgreSQL)
    An expensive operation ran without parallel workers. Total cost is
    cumulative, so the rule reports the lowest node whose cost crosses
    the threshold: a node is skipped when one of its children already
    does, which keeps one recommendation per expensive branch.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from queryadvisor.analyzer.models import Recommendation, RecommendationType, Severity
from queryadvisor.analyzer.registry import register_rule
from queryadvisor.analyzer.rules.base import Rule, RuleConfig
from queryadvisor.plan.node import Engine

if TYPE_CHECKING:
    from queryadvisor.analyzer.context import RuleContext
    from queryadvisor.plan.node import PlanNode


class ParallelismConfig(RuleConfig):
    """
    Configuration for missed-parallelism detection.

    Attributes:
        parallel_cost: Total cost above which parallel workers are expected.
    """

    parallel_cost: float = Field(
        default=100_000.0,
        ge=0.0,
        description="Total cost threshold for MISSED_PARALLEL",
    )


@register_rule
class Parallelism(Rule):
    """Flag expensive operations without parallel workers."""

    rule_id = "PARALLELISM"
    version = "1.0.0"
    severity = Severity.MEDIUM
    description = "Detects expensive operations that run without parallel workers"
    emits = (RecommendationType.MISSED_PARALLEL,)
    engines = frozenset({Engine.POSTGRESQL})
    config_schema = ParallelismConfig

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        config: ParallelismConfig = self.config  # type: ignore[assignment]

        if node.flags.workers_planned or node.flags.parallel_aware:
            return []
        if not self._over(node, config.parallel_cost):
            return []
        if any(self._over(child, config.parallel_cost) for child in node.children):
            return []

        return [
            ctx.recommend(
                RecommendationType.MISSED_PARALLEL,
                self.severity,
                node,
                cost=round(node.cost_estimate or 0.0, 2),
            )
        ]

    @staticmethod
    def _over(node: "PlanNode", threshold: float) -> bool:
        return node.cost_estimate is not None and node.cost_estimate > threshold
