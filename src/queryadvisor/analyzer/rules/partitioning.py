"""
Rules: partitioning

PartitionEffectiveness
    - A partitioned scan where the planner removed no partitions at all
    - MySQL reading several partitions where no pruning information is
      reported
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from queryadvisor.analyzer.models import Recommendation, RecommendationType, Severity
from queryadvisor.analyzer.registry import register_rule
from queryadvisor.analyzer.rules.base import Rule
from queryadvisor.plan.node import NodeKind

if TYPE_CHECKING:
    from queryadvisor.analyzer.context import RuleContext
    from queryadvisor.plan.node import PlanNode


@register_rule
class PartitionEffectiveness(Rule):
    """Flag partitioned scans that pruned nothing."""

    rule_id = "PARTITION_EFFECTIVENESS"
    version = "1.0.0"
    severity = Severity.HIGH
    description = "Detects partition scans without effective pruning"
    emits = (
        RecommendationType.INEFFECTIVE_PARTITION,
        RecommendationType.PARTITION_PRUNING,
    )

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        flags = node.flags

        if node.node_kind is NodeKind.PARTITION_SCAN and flags.partitions_removed == 0:
            return [
                ctx.recommend(RecommendationType.INEFFECTIVE_PARTITION, self.severity, node)
            ]

        if (
            flags.partitions_total is not None
            and flags.partitions_total > 1
            and flags.partitions_removed is None
        ):
            return [
                ctx.recommend(
                    RecommendationType.PARTITION_PRUNING,
                    Severity.MEDIUM,
                    node,
                    partitions=flags.partitions_total,
                )
            ]

        return []
