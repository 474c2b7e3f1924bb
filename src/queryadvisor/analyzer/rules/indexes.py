"""
Rules: index usage

IndexUsage
    - The optimizer listed candidate indexes but chose none of them
    - A known index is used but only a prefix of it is compared against
      non-constant values, so the key length shows partial use
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from queryadvisor.analyzer.models import Recommendation, RecommendationType, Severity
from queryadvisor.analyzer.registry import register_rule
from queryadvisor.analyzer.rules.base import Rule

if TYPE_CHECKING:
    from queryadvisor.analyzer.context import RuleContext
    from queryadvisor.plan.node import PlanNode


@register_rule
class IndexUsage(Rule):
    """
    Flag candidate indexes left unused and partially used indexes.

    The unused-index check does not inspect which columns the candidates
    cover: any candidate list with no chosen key is reported.
    """

    rule_id = "INDEX_USAGE"
    version = "1.0.0"
    severity = Severity.MEDIUM
    description = "Detects unused candidate indexes and partial index usage"
    emits = (
        RecommendationType.UNUSED_INDEXES,
        RecommendationType.PARTIAL_INDEX_USAGE,
    )

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        recommendations: list[Recommendation] = []

        if node.possible_indexes and not node.index_name:
            recommendations.append(
                ctx.recommend(
                    RecommendationType.UNUSED_INDEXES,
                    self.severity,
                    node,
                    indexes=", ".join(node.possible_indexes),
                )
            )

        if (
            node.index_name
            and node.index_key_length
            and ctx.indexes_named(node.index_name)
            and not _all_const(node.index_ref)
        ):
            recommendations.append(
                ctx.recommend(
                    RecommendationType.PARTIAL_INDEX_USAGE,
                    Severity.LOW,
                    node,
                    index_name=node.index_name,
                )
            )

        return recommendations


def _all_const(ref: str | None) -> bool:
    """True when every compared key part is a constant (``const,const``)."""
    if not ref:
        return False
    return all(part.strip() == "const" for part in ref.split(","))
