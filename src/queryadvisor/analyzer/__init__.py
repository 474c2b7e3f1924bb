"""
Analyzer: rule catalog, recommendation engine and prioritizer.

Typical use goes through AnalysisCoordinator; the pieces are exported
for callers that already hold a normalized plan.
"""

from queryadvisor.analyzer.context import RuleContext
from queryadvisor.analyzer.engine import RecommendationEngine
from queryadvisor.analyzer.models import (
    AnalysisResult,
    Recommendation,
    RecommendationDetails,
    RecommendationType,
    Severity,
)
from queryadvisor.analyzer.prioritizer import TYPE_PRIORITY, prioritize
from queryadvisor.analyzer.registry import build_rules, get_registry, register_rule
from queryadvisor.analyzer.rules import Rule, RuleConfig

__all__ = [
    "AnalysisResult",
    "Recommendation",
    "RecommendationDetails",
    "RecommendationEngine",
    "RecommendationType",
    "Rule",
    "RuleConfig",
    "RuleContext",
    "Severity",
    "TYPE_PRIORITY",
    "build_rules",
    "get_registry",
    "prioritize",
    "register_rule",
]
