"""
Rules: memory pressure

HashSpill
    A hash join or hash aggregate that needed more than one batch did not
    fit in work_mem and wrote partitions to disk. Aggregates are also
    flagged when peak memory exceeded the allowance.

TemporaryStructure
    MySQL materialized an internal temporary table, or PostgreSQL wrote
    temporary file blocks. Temp block counters are cumulative up the tree,
    so TEMP_FILES is reported only where the blocks were written (the
    node's count minus what its children already account for).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from queryadvisor.analyzer.models import Recommendation, RecommendationType, Severity
from queryadvisor.analyzer.registry import register_rule
from queryadvisor.analyzer.rules.base import Rule
from queryadvisor.plan.node import AggregateStrategy, NodeKind

if TYPE_CHECKING:
    from queryadvisor.analyzer.context import RuleContext
    from queryadvisor.plan.node import PlanNode


@register_rule
class HashSpill(Rule):
    """Flag hash operations that spilled to disk."""

    rule_id = "HASH_SPILL"
    version = "1.0.0"
    severity = Severity.MEDIUM
    description = "Detects hash joins and hash aggregates exceeding work_mem"
    emits = (
        RecommendationType.HASH_SPILL,
        RecommendationType.AGGREGATE_SPILL,
    )

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        flags = node.flags

        if node.node_kind is NodeKind.HASH_JOIN and (flags.hash_spilled or flags.memory_exceeded):
            return [
                ctx.recommend(
                    RecommendationType.HASH_SPILL,
                    self.severity,
                    node,
                    batches=flags.hash_batches or 1,
                )
            ]

        if (
            node.node_kind is NodeKind.AGGREGATE
            and node.aggregate_strategy is AggregateStrategy.HASH
            and (flags.hash_spilled or flags.memory_exceeded)
        ):
            return [
                ctx.recommend(
                    RecommendationType.AGGREGATE_SPILL,
                    Severity.HIGH,
                    node,
                    batches=flags.hash_batches or 1,
                )
            ]

        return []


@register_rule
class TemporaryStructure(Rule):
    """Flag temporary tables and temporary files."""

    rule_id = "TEMPORARY_STRUCTURE"
    version = "1.0.0"
    severity = Severity.MEDIUM
    description = "Detects temporary tables and temporary file writes"
    emits = (
        RecommendationType.TEMP_TABLE,
        RecommendationType.TEMP_FILES,
    )

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        recommendations: list[Recommendation] = []

        if node.flags.uses_temporary_structure:
            recommendations.append(
                ctx.recommend(RecommendationType.TEMP_TABLE, self.severity, node)
            )

        own_blocks = _own_temp_blocks(node)
        if own_blocks > 0:
            recommendations.append(
                ctx.recommend(
                    RecommendationType.TEMP_FILES,
                    Severity.HIGH,
                    node,
                    blocks=own_blocks,
                )
            )

        return recommendations


def _own_temp_blocks(node: "PlanNode") -> int:
    """Temp blocks written by this node itself, excluding its children."""
    if not node.flags.temp_blocks_written:
        return 0
    from_children = sum(child.flags.temp_blocks_written or 0 for child in node.children)
    return max(node.flags.temp_blocks_written - from_children, 0)
