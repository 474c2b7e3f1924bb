"""Unified plan model and the per-engine normalizers that produce it."""

from queryadvisor.plan.node import (
    AggregateStrategy,
    Engine,
    NodeKind,
    PlanFlags,
    PlanNode,
    SubqueryKind,
)
from queryadvisor.plan.normalizers import detect_engine, get_normalizer, normalize

__all__ = [
    "AggregateStrategy",
    "Engine",
    "NodeKind",
    "PlanFlags",
    "PlanNode",
    "SubqueryKind",
    "detect_engine",
    "get_normalizer",
    "normalize",
]
