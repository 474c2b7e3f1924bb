"""
Rules: access paths

FullScan
    Every TABLE_SCAN node reads the whole relation. Always worth an index
    review, so it is reported at HIGH regardless of size (the size-aware
    variant lives in TableStatistics).

AccessPath
    Reports the raw access type MySQL chose when it is a full scan of the
    table or of an index, and PostgreSQL index scans that return many
    rows without an index condition (the index is only used for ordering
    or visibility, not for filtering).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from queryadvisor.analyzer.models import Recommendation, RecommendationType, Severity
from queryadvisor.analyzer.registry import register_rule
from queryadvisor.analyzer.rules.base import Rule, RuleConfig
from queryadvisor.plan.node import Engine, NodeKind

if TYPE_CHECKING:
    from queryadvisor.analyzer.context import RuleContext
    from queryadvisor.plan.node import PlanNode


@register_rule
class FullScan(Rule):
    """Flag full table scans."""

    rule_id = "FULL_SCAN"
    version = "1.0.0"
    severity = Severity.HIGH
    description = "Detects full table scans"
    emits = (RecommendationType.TABLE_SCAN,)

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        if node.node_kind is not NodeKind.TABLE_SCAN:
            return []
        return [
            ctx.recommend(
                RecommendationType.TABLE_SCAN,
                self.severity,
                node,
                table_name=node.relation_name or node.alias or "",
            )
        ]


class AccessPathConfig(RuleConfig):
    """
    Configuration for access path detection.

    Attributes:
        index_scan_rows: Rows above which an index scan without an index
            condition is considered inefficient.
    """

    index_scan_rows: int = Field(
        default=1000,
        ge=0,
        description="Actual rows threshold for INEFFICIENT_INDEX_SCAN",
    )


@register_rule
class AccessPath(Rule):
    """
    Flag poor access types.

    ACCESS_TYPE fires for MySQL full table scans (``type = ALL``) and for
    full index scans on any engine. INEFFICIENT_INDEX_SCAN fires for index
    scans that read more than ``index_scan_rows`` rows with no index
    condition.
    """

    rule_id = "ACCESS_PATH"
    version = "1.0.0"
    severity = Severity.MEDIUM
    description = "Detects full index scans and index scans without an index condition"
    emits = (
        RecommendationType.ACCESS_TYPE,
        RecommendationType.INEFFICIENT_INDEX_SCAN,
    )
    config_schema = AccessPathConfig

    def check(self, node: "PlanNode", ctx: "RuleContext") -> list[Recommendation]:
        config: AccessPathConfig = self.config  # type: ignore[assignment]
        recommendations: list[Recommendation] = []

        mysql_full_scan = (
            node.node_kind is NodeKind.TABLE_SCAN
            and ctx.engine is Engine.MYSQL
        )
        if mysql_full_scan or node.flags.full_index_scan:
            recommendations.append(
                ctx.recommend(
                    RecommendationType.ACCESS_TYPE,
                    self.severity,
                    node,
                    type=node.native_type,
                )
            )

        if (
            node.node_kind is NodeKind.INDEX_SCAN
            and not node.flags.full_index_scan
            and not node.flags.has_index_condition
            and node.actual_rows is not None
            and node.actual_rows > config.index_scan_rows
        ):
            recommendations.append(
                ctx.recommend(
                    RecommendationType.INEFFICIENT_INDEX_SCAN,
                    self.severity,
                    node,
                    table_name=node.relation_name or "",
                    rows=int(node.actual_rows),
                )
            )

        return recommendations
