"""
Base normalizer interface for engine-specific plan translation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from queryadvisor.plan.node import Engine, PlanNode


class PlanNormalizer(ABC):
    """
    Abstract base for engine normalizers.

    Each normalizer translates a native plan payload (EXPLAIN rows or
    EXPLAIN JSON) into a PlanNode tree. Normalization is a pure
    transformation: no I/O, no logging of payload contents.
    """

    engine: Engine

    @abstractmethod
    def normalize(self, payload: Any) -> PlanNode:
        """
        Translate a native plan payload into a PlanNode tree.

        Raises:
            MalformedPlanError: If the payload has no recognizable
                node-type field. Unknown node-type *values* never fail;
                they map to NodeKind.OTHER.
        """
        ...

    @abstractmethod
    def can_handle(self, payload: Any) -> bool:
        """
        Return True if this normalizer recognizes the payload's shape.

        Used for auto-detection when the engine is not specified.
        """
        ...


def _to_float(value: Any) -> float | None:
    """Coerce numbers and numeric strings; anything else becomes None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if result >= 0 else None


def _to_int(value: Any) -> int | None:
    number = _to_float(value)
    return int(number) if number is not None else None
