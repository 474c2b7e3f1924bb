"""
Metadata records returned by the database collaborators.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class TableStatistic:
    """Size and row count of one table, keyed by name within a schema."""

    table_name: str
    row_count: int
    data_size_bytes: int
    index_size_bytes: int

    @property
    def index_ratio(self) -> float | None:
        """Index size relative to data size; None for empty tables."""
        if self.data_size_bytes <= 0:
            return None
        return self.index_size_bytes / self.data_size_bytes

    @property
    def total_size_bytes(self) -> int:
        return self.data_size_bytes + self.index_size_bytes

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TableStatistic":
        return cls(
            table_name=str(data["table_name"]),
            row_count=int(data.get("row_count") or 0),
            data_size_bytes=int(data.get("data_size_bytes") or 0),
            index_size_bytes=int(data.get("index_size_bytes") or 0),
        )


@dataclass(frozen=True)
class IndexDescriptor:
    """
    One row of index metadata.

    MySQL reports one row per indexed column, so several descriptors can
    share an ``index_name``. PostgreSQL reports the whole definition
    (``CREATE INDEX ... (a, b)``) in ``column_name``.
    """

    table_name: str
    index_name: str
    column_name: str
    is_unique: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexDescriptor":
        return cls(
            table_name=str(data["table_name"]),
            index_name=str(data["index_name"]),
            column_name=str(data.get("column_name") or ""),
            is_unique=bool(data.get("is_unique", False)),
        )


def group_index_columns(indexes: list[IndexDescriptor] | tuple[IndexDescriptor, ...]) -> dict[tuple[str, str], list[str]]:
    """Collapse per-column rows into ``{(table, index): [columns...]}``, keeping order."""
    grouped: dict[tuple[str, str], list[str]] = {}
    for descriptor in indexes:
        key = (descriptor.table_name, descriptor.index_name)
        grouped.setdefault(key, []).append(descriptor.column_name)
    return grouped
