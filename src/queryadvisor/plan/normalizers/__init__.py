"""
Plan normalizers: native EXPLAIN payloads -> PlanNode trees.

Usage:
    from queryadvisor.plan.normalizers import normalize

    root = normalize(explain_json, Engine.POSTGRESQL)
    root = normalize(explain_rows, "mysql")
    root = normalize(payload)  # engine auto-detected
"""

from __future__ import annotations

from typing import Any

from queryadvisor.exceptions import MalformedPlanError
from queryadvisor.plan.node import Engine, PlanNode
from queryadvisor.plan.normalizers.base import PlanNormalizer
from queryadvisor.plan.normalizers.mysql import MySQLNormalizer
from queryadvisor.plan.normalizers.postgres import PostgresNormalizer

_NORMALIZERS: dict[Engine, type[PlanNormalizer]] = {
    Engine.POSTGRESQL: PostgresNormalizer,
    Engine.MYSQL: MySQLNormalizer,
}


def get_normalizer(engine: Engine | str) -> PlanNormalizer:
    """Return the normalizer for an engine name or Engine member."""
    if not isinstance(engine, Engine):
        engine = Engine.from_string(engine)
    return _NORMALIZERS[engine]()


def detect_engine(payload: Any) -> Engine:
    """
    Auto-detect the source engine of a raw plan.

    Tries each normalizer's ``can_handle`` in order.

    Raises:
        MalformedPlanError: If no normalizer recognizes the payload.
    """
    for engine, normalizer_cls in _NORMALIZERS.items():
        if normalizer_cls().can_handle(payload):
            return engine

    raise MalformedPlanError(
        "Cannot detect engine from plan format. "
        "Pass the engine explicitly."
    )


def normalize(payload: Any, engine: Engine | str | None = None) -> PlanNode:
    """
    Translate a native plan payload into a PlanNode tree.

    Args:
        payload: Engine-specific EXPLAIN output.
        engine: Source engine; auto-detected when None.

    Raises:
        MalformedPlanError: If the payload lacks a recognizable node-type field.
    """
    if engine is None:
        engine = detect_engine(payload)
    return get_normalizer(engine).normalize(payload)


__all__ = [
    "MySQLNormalizer",
    "PlanNormalizer",
    "PostgresNormalizer",
    "detect_engine",
    "get_normalizer",
    "normalize",
]
