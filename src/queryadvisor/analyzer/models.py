"""
Immutable domain models produced by the analyzer.

Recommendation is the unit of output: a rule chooses its ``type``,
``severity`` and substitution ``params``; the message text is filled in
by the renderer carried on the rule context. AnalysisResult bundles
everything one ``analyze`` call produced.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from queryadvisor.db.models import IndexDescriptor, TableStatistic
from queryadvisor.plan.node import Engine


class Severity(str, Enum):
    """
    Severity levels for recommendations.

    HIGH: Scans, joins or spills that dominate query cost
    MEDIUM: Significant overhead worth addressing
    LOW: Tuning opportunity
    """
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        """Sort rank, most severe first (HIGH=0, MEDIUM=1, LOW=2)."""
        return _SEVERITY_RANK[self]

    def __lt__(self, other: object) -> bool:
        """Enable sorting by severity (HIGH < MEDIUM < LOW)."""
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_RANK = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}


class RecommendationType(str, Enum):
    """Every kind of recommendation the rule catalog can emit."""

    # Access paths
    TABLE_SCAN = "TABLE_SCAN"
    ACCESS_TYPE = "ACCESS_TYPE"
    INEFFICIENT_INDEX_SCAN = "INEFFICIENT_INDEX_SCAN"
    # Joins
    JOIN_OPTIMIZATION = "JOIN_OPTIMIZATION"
    EXPENSIVE_NESTED_LOOP = "EXPENSIVE_NESTED_LOOP"
    MISSING_JOIN_INDEX = "MISSING_JOIN_INDEX"
    JOIN_BUFFER = "JOIN_BUFFER"
    # Memory and spills
    HASH_SPILL = "HASH_SPILL"
    AGGREGATE_SPILL = "AGGREGATE_SPILL"
    TEMP_TABLE = "TEMP_TABLE"
    TEMP_FILES = "TEMP_FILES"
    # Sorting
    FILE_SORT = "FILE_SORT"
    LARGE_SORT = "LARGE_SORT"
    MULTI_COLUMN_SORT = "MULTI_COLUMN_SORT"
    # Indexes
    UNUSED_INDEXES = "UNUSED_INDEXES"
    PARTIAL_INDEX_USAGE = "PARTIAL_INDEX_USAGE"
    # Statistics
    LARGE_TABLE_SCAN = "LARGE_TABLE_SCAN"
    HIGH_INDEX_RATIO = "HIGH_INDEX_RATIO"
    OUTDATED_STATS = "OUTDATED_STATS"
    # Query structure
    WHERE_CLAUSE = "WHERE_CLAUSE"
    DISTINCT_OPTIMIZATION = "DISTINCT_OPTIMIZATION"
    DEPENDENT_SUBQUERY = "DEPENDENT_SUBQUERY"
    SUBQUERY_OPTIMIZATION = "SUBQUERY_OPTIMIZATION"
    # Partitioning and parallelism
    INEFFECTIVE_PARTITION = "INEFFECTIVE_PARTITION"
    PARTITION_PRUNING = "PARTITION_PRUNING"
    MISSED_PARALLEL = "MISSED_PARALLEL"
    # Materialization
    MISSED_MATERIALIZATION = "MISSED_MATERIALIZATION"
    CTE_MATERIALIZATION = "CTE_MATERIALIZATION"
    # Grouping
    GROUP_BY_OPTIMIZATION = "GROUP_BY_OPTIMIZATION"
    INEFFICIENT_AGGREGATE = "INEFFICIENT_AGGREGATE"
    LOOSE_INDEX_SCAN = "LOOSE_INDEX_SCAN"


class RecommendationDetails(BaseModel):
    """Longer explanation attached to a recommendation."""

    model_config = ConfigDict(frozen=True)

    impact: str = Field(default="", description="Why the issue matters")
    implementation: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Ordered steps to address the issue",
    )


class Recommendation(BaseModel):
    """
    A single optimization recommendation.

    Immutable once created; it has no identity beyond its position in
    the prioritized output list.
    """

    model_config = ConfigDict(frozen=True)

    type: RecommendationType = Field(
        ...,
        description="What kind of issue was detected",
    )

    severity: Severity = Field(
        ...,
        description="How urgent the issue is",
    )

    message: str = Field(
        ...,
        description="Rendered one-line description, parameters substituted",
    )

    suggestion: str = Field(
        default="",
        description="Rendered one-line fix",
    )

    details: RecommendationDetails = Field(
        default_factory=RecommendationDetails,
        description="Impact and implementation steps",
    )

    params: dict[str, Any] = Field(
        default_factory=dict,
        description="Substitution values the message was rendered with",
    )

    relation_name: str | None = Field(
        default=None,
        description="Table of the plan node that triggered the recommendation",
    )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class AnalysisResult(BaseModel):
    """
    Complete result of analyzing one query.

    Created once per ``analyze`` call and returned to the caller.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    query: str = Field(
        default="",
        description="Trimmed query text",
    )

    engine: Engine = Field(
        ...,
        description="Engine the plan came from",
    )

    plan: Any = Field(
        default=None,
        description="Root PlanNode, or the native payload if normalization was bypassed",
    )

    native_plan: Any = Field(
        default=None,
        description="Raw EXPLAIN payload as returned by the database",
    )

    table_statistics: tuple[TableStatistic, ...] = Field(
        default_factory=tuple,
        description="Statistics of the tables in scope",
    )

    indexes: tuple[IndexDescriptor, ...] = Field(
        default_factory=tuple,
        description="Index metadata of the tables in scope",
    )

    recommendations: tuple[Recommendation, ...] = Field(
        default_factory=tuple,
        description="Recommendations, already prioritized",
    )

    degraded_reasons: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Metadata that could not be fetched",
    )

    @property
    def degraded(self) -> bool:
        """Whether the analysis ran on plan data without full metadata."""
        return bool(self.degraded_reasons)

    def summary(self) -> dict[str, int]:
        """Count recommendations by severity."""
        counts = {severity.value: 0 for severity in Severity}
        for rec in self.recommendations:
            counts[rec.severity.value] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible data."""
        plan = self.plan.to_dict() if hasattr(self.plan, "to_dict") else self.plan
        return {
            "query": self.query,
            "engine": self.engine.value,
            "plan": plan,
            "table_statistics": [s.to_dict() for s in self.table_statistics],
            "indexes": [i.to_dict() for i in self.indexes],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "summary": self.summary(),
            "degraded_reasons": list(self.degraded_reasons),
        }
