"""
Recommendation engine: walks a plan tree and applies every rule.

Traversal is depth-first pre-order (a node before its children,
children left to right). Each node is visited once, and every enabled
rule that applies to the plan's engine is called once per node, in
registry order. Output order is therefore fully determined by the tree
shape and the rule order, which keeps evaluate() idempotent.
"""

from __future__ import annotations

import logging
from typing import Sequence

import queryadvisor.analyzer.rules  # noqa: F401  (registers the catalog)
from queryadvisor.analyzer.context import RuleContext
from queryadvisor.analyzer.models import Recommendation
from queryadvisor.analyzer.registry import build_rules
from queryadvisor.analyzer.rules.base import Rule
from queryadvisor.config import Config
from queryadvisor.exceptions import RuleError
from queryadvisor.plan.node import Engine, PlanNode

logger = logging.getLogger(__name__)


class RecommendationEngine:
    """
    Applies the rule catalog to a normalized plan.

    Example:
        engine = RecommendationEngine()
        ctx = RuleContext(table_statistics=stats, engine=Engine.MYSQL)
        recommendations = engine.evaluate(plan, ctx)

    Args:
        rules: Explicit rule instances (default: every enabled registered rule)
        config: Configuration used to build the default rule set
        fail_fast: Raise RuleError when a rule raises; otherwise log and
            continue with the remaining rules
    """

    def __init__(
        self,
        rules: Sequence[Rule] | None = None,
        config: Config | None = None,
        fail_fast: bool = True,
    ) -> None:
        self.rules: tuple[Rule, ...] = tuple(
            rules if rules is not None else build_rules(config)
        )
        self.fail_fast = fail_fast

    def rules_for(self, engine: Engine | None) -> list[Rule]:
        """Rules that apply to plans from ``engine``, in evaluation order."""
        return [rule for rule in self.rules if rule.applies_to(engine)]

    def evaluate(self, root: PlanNode, ctx: RuleContext) -> list[Recommendation]:
        """
        Collect recommendations for every node under ``root``.

        Returns:
            Recommendations in traversal order (not yet prioritized).

        Raises:
            RuleError: If a rule raises and ``fail_fast`` is set.
        """
        rules = self.rules_for(ctx.engine)
        recommendations: list[Recommendation] = []
        visited = 0

        for node in root.iter_nodes():
            visited += 1
            for rule in rules:
                try:
                    recommendations.extend(rule.check(node, ctx))
                except Exception as e:
                    if self.fail_fast:
                        raise RuleError(rule.rule_id, e, node.native_type) from e
                    logger.warning("Rule %s failed on %s: %s", rule.rule_id, node.display_name, e)

        logger.debug(
            "Evaluated %d rules over %d nodes: %d recommendations",
            len(rules), visited, len(recommendations),
        )
        return recommendations

    def __repr__(self) -> str:
        return f"RecommendationEngine(rules={len(self.rules)}, fail_fast={self.fail_fast})"
