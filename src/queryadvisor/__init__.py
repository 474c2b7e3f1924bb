"""
QueryAdvisor - SELECT query analyzer for MySQL and PostgreSQL.

Fetches a query's execution plan, normalizes it into an
engine-independent tree, runs a catalog of rules over every node and
returns prioritized recommendations.

Example:
    from queryadvisor import AnalysisCoordinator, ConnectionSettings, Engine

    coordinator = AnalysisCoordinator()
    result = coordinator.analyze(
        "SELECT * FROM orders WHERE customer_id = 42",
        ConnectionSettings(engine=Engine.POSTGRESQL, user="app", database="shop"),
    )
    for rec in result.recommendations:
        print(rec.severity.value, rec.message)
"""

__version__ = "0.3.0"

from queryadvisor.analyzer import (
    AnalysisResult,
    Recommendation,
    RecommendationEngine,
    RecommendationType,
    RuleContext,
    Severity,
    prioritize,
)
from queryadvisor.coordinator import AnalysisCoordinator, validate_query
from queryadvisor.db import ConnectionSettings, IndexDescriptor, TableStatistic
from queryadvisor.exceptions import QueryAdvisorError
from queryadvisor.plan import Engine, NodeKind, PlanNode, normalize

__all__ = [
    "__version__",
    "AnalysisCoordinator",
    "AnalysisResult",
    "ConnectionSettings",
    "Engine",
    "IndexDescriptor",
    "NodeKind",
    "PlanNode",
    "QueryAdvisorError",
    "Recommendation",
    "RecommendationEngine",
    "RecommendationType",
    "RuleContext",
    "Severity",
    "TableStatistic",
    "normalize",
    "prioritize",
    "validate_query",
]
