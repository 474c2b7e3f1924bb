"""
Engine-agnostic plan node.

PlanNode is the central data structure of the analyzer. It represents a
single operation of an execution plan, abstracted away from MySQL's flat
EXPLAIN rows and PostgreSQL's nested JSON.

Design principles:
- Immutable (frozen dataclass): nodes don't change after normalization
- Closed taxonomy: ``node_kind`` is a NodeKind, never a raw engine string
- Capability flags: engine facts ("Using filesort", "Hash Batches") are
  reduced to PlanFlags so rules never read native field names
- Lossless enough for display: ``native_type`` keeps the engine's name
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator


class Engine(str, Enum):
    """Source database engine of a plan."""

    MYSQL = "mysql"
    POSTGRESQL = "postgresql"

    @classmethod
    def from_string(cls, value: str) -> "Engine":
        """Parse an engine name, accepting the common aliases."""
        normalized = value.strip().lower()
        if normalized in ("postgres", "pg", "postgresql"):
            return cls.POSTGRESQL
        if normalized in ("mysql", "mariadb"):
            return cls.MYSQL
        raise ValueError(f"Unsupported engine: {value!r}")


class NodeKind(str, Enum):
    """Closed set of operator kinds every native node type maps onto."""

    TABLE_SCAN = "table_scan"
    INDEX_SCAN = "index_scan"
    NESTED_LOOP_JOIN = "nested_loop_join"
    HASH_JOIN = "hash_join"
    SORT = "sort"
    AGGREGATE = "aggregate"
    MATERIALIZE = "materialize"
    CTE_SCAN = "cte_scan"
    PARTITION_SCAN = "partition_scan"
    SUBQUERY = "subquery"
    OTHER = "other"

    @property
    def is_scan(self) -> bool:
        return self in (
            NodeKind.TABLE_SCAN,
            NodeKind.INDEX_SCAN,
            NodeKind.CTE_SCAN,
            NodeKind.PARTITION_SCAN,
        )

    @property
    def is_join(self) -> bool:
        return self in (NodeKind.NESTED_LOOP_JOIN, NodeKind.HASH_JOIN)


class AggregateStrategy(str, Enum):
    """Variant of an AGGREGATE node."""

    GROUP = "group"
    HASH = "hash"


class SubqueryKind(str, Enum):
    """Variant of a SUBQUERY node (or a scan executed as a subquery)."""

    CORRELATED = "correlated"
    UNCORRELATED = "uncorrelated"


@dataclass(frozen=True)
class PlanFlags:
    """
    Facts detected from the native plan.

    Booleans default to False and counts to None ("not reported"), so a
    normalizer that never sees a field leaves the flag absent rather
    than guessing.
    """

    uses_temporary_structure: bool = False
    uses_external_sort: bool = False
    uses_join_buffer: bool = False
    uses_where_filter: bool = False
    has_index_condition: bool = False
    full_index_scan: bool = False
    compound_select: bool = False
    is_materialized: bool = False
    parallel_aware: bool = False

    partitions_total: int | None = None
    partitions_removed: int | None = None
    hash_batches: int | None = None
    memory_used_bytes: int | None = None
    memory_allowed_bytes: int | None = None
    workers_planned: int | None = None
    temp_blocks_written: int | None = None
    planning_time_ms: float | None = None

    @property
    def hash_spilled(self) -> bool:
        """Batches > 1 means the hash table did not fit in memory."""
        return self.hash_batches is not None and self.hash_batches > 1

    @property
    def memory_exceeded(self) -> bool:
        if self.memory_used_bytes is None or self.memory_allowed_bytes is None:
            return False
        return self.memory_used_bytes > self.memory_allowed_bytes

    def to_dict(self) -> dict[str, Any]:
        """Only the flags that are set, for compact display."""
        result: dict[str, Any] = {}
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            if value not in (False, None):
                result[name] = value
        return result


@dataclass(frozen=True)
class PlanNode:
    """
    A single node of a normalized execution plan.

    The parent owns ``children`` exclusively; their order is the order in
    which they appeared in the native plan.
    """

    node_kind: NodeKind
    native_type: str = ""

    relation_name: str | None = None
    alias: str | None = None
    index_name: str | None = None
    possible_indexes: tuple[str, ...] = ()
    index_key_length: int | None = None
    index_ref: str | None = None
    join_condition: str | None = None

    estimated_rows: float | None = None
    actual_rows: float | None = None
    actual_loops: int | None = None
    cost_estimate: float | None = None

    aggregate_strategy: AggregateStrategy | None = None
    subquery: SubqueryKind | None = None

    flags: PlanFlags = field(default_factory=PlanFlags)
    children: tuple["PlanNode", ...] = ()

    def __post_init__(self) -> None:
        for name in ("estimated_rows", "actual_rows"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

    # ── Derived properties ─────────────────────────────────────────────

    @property
    def rows(self) -> float | None:
        """Actual rows when the engine measured them, else the estimate."""
        if self.actual_rows is not None:
            return self.actual_rows
        return self.estimated_rows

    @property
    def uses_index(self) -> bool:
        return self.index_name is not None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def display_name(self) -> str:
        """Short label like ``Seq Scan on orders``."""
        label = self.native_type or self.node_kind.value
        if self.relation_name:
            return f"{label} on {self.relation_name}"
        return label

    # ── Traversal ─────────────────────────────────────────────────────

    def iter_nodes(self) -> Iterator["PlanNode"]:
        """Depth-first, pre-order traversal (self first, then children in order)."""
        stack: list[PlanNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def iter_with_depth(self, depth: int = 0) -> Iterator[tuple[int, "PlanNode"]]:
        """Pre-order traversal yielding ``(depth, node)`` pairs, for tree display."""
        yield depth, self
        for child in self.children:
            yield from child.iter_with_depth(depth + 1)

    @property
    def node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    @property
    def depth(self) -> int:
        """Height of the subtree rooted here (a leaf has depth 1)."""
        if not self.children:
            return 1
        return 1 + max(child.depth for child in self.children)

    def relations(self) -> list[str]:
        """Distinct relation names touched by the subtree, in traversal order."""
        seen: list[str] = []
        for node in self.iter_nodes():
            if node.relation_name and node.relation_name not in seen:
                seen.append(node.relation_name)
        return seen

    def to_dict(self) -> dict[str, Any]:
        """Serialize the subtree to plain JSON-compatible data."""
        result: dict[str, Any] = {
            "node_kind": self.node_kind.value,
            "native_type": self.native_type,
        }
        optional = {
            "relation_name": self.relation_name,
            "alias": self.alias,
            "index_name": self.index_name,
            "index_key_length": self.index_key_length,
            "index_ref": self.index_ref,
            "join_condition": self.join_condition,
            "estimated_rows": self.estimated_rows,
            "actual_rows": self.actual_rows,
            "actual_loops": self.actual_loops,
            "cost_estimate": self.cost_estimate,
            "aggregate_strategy": self.aggregate_strategy.value if self.aggregate_strategy else None,
            "subquery": self.subquery.value if self.subquery else None,
        }
        result.update({k: v for k, v in optional.items() if v is not None})
        if self.possible_indexes:
            result["possible_indexes"] = list(self.possible_indexes)
        flags = self.flags.to_dict()
        if flags:
            result["flags"] = flags
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        return result
