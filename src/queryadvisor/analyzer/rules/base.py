"""
Base class for recommendation rules.

Every rule inherits from Rule and implements check(). A rule looks at
exactly one plan node at a time; the RecommendationEngine walks the
tree and calls each applicable rule once per node.

Rules are:
- Pure: the same node and context always produce the same output
- Text-free: they pick a RecommendationType and params; the renderer
  on the context supplies the wording
- Configurable: numeric thresholds live on ``config_schema``
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from queryadvisor.analyzer.models import Recommendation, RecommendationType, Severity
from queryadvisor.plan.node import Engine

if TYPE_CHECKING:
    from queryadvisor.analyzer.context import RuleContext
    from queryadvisor.plan.node import PlanNode


class RuleConfig(BaseModel):
    """
    Base configuration for all rules.

    Rules define their own thresholds by subclassing this.

    Example:
        class LargeSortConfig(RuleConfig):
            large_sort_rows: int = Field(default=1000, ge=0)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = True


class Rule(ABC):
    """
    Abstract base class for recommendation rules.

    Attributes:
        rule_id: Unique identifier, UPPER_SNAKE_CASE (e.g., "FULL_TABLE_SCAN")
        version: Semver string, bump when detection logic changes
        severity: Default severity of the recommendations this rule emits
        description: One-line description for documentation
        emits: Recommendation types the rule can produce
        engines: Engines the rule applies to; None means every engine
        config_schema: Pydantic model for rule configuration

    Example:
        @register_rule
        class FullTableScan(Rule):
            rule_id = "FULL_TABLE_SCAN"
            severity = Severity.HIGH
            emits = (RecommendationType.TABLE_SCAN,)

            def check(self, node, ctx):
                if node.node_kind is not NodeKind.TABLE_SCAN:
                    return []
                return [ctx.recommend(RecommendationType.TABLE_SCAN, self.severity,
                                      node, table_name=node.relation_name)]
    """

    # Subclasses must define these
    rule_id: str
    version: str = "1.0.0"
    severity: Severity
    description: str = ""
    emits: tuple[RecommendationType, ...] = ()

    engines: frozenset[Engine] | None = None

    config_schema: type[RuleConfig] = RuleConfig

    def __init__(self, config: RuleConfig | dict[str, Any] | None = None) -> None:
        """
        Initialize the rule with configuration.

        Args:
            config: Configuration as RuleConfig instance, dict, or None for defaults.
                    If dict, it's validated against config_schema.
        """
        if config is None:
            self.config = self.config_schema()
        elif isinstance(config, dict):
            self.config = self.config_schema(**config)
        else:
            self.config = config

    def applies_to(self, engine: Engine | None) -> bool:
        """Whether the rule runs for plans from ``engine`` (None = unknown, always)."""
        if engine is None or self.engines is None:
            return True
        return engine in self.engines

    @abstractmethod
    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        """
        Inspect a single node.

        Args:
            node: The node to inspect (children are not visited here)
            ctx: Statistics, indexes, engine and renderer

        Returns:
            Recommendations for this node, or an empty list.
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(rule_id={self.rule_id!r}, version={self.version!r})"
