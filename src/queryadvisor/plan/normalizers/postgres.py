"""
PostgreSQL normalizer: EXPLAIN (FORMAT JSON) -> PlanNode.

Parses the JSON output of
``EXPLAIN (FORMAT JSON, ANALYZE, VERBOSE, BUFFERS, COSTS, TIMING)``
and maps PostgreSQL plan nodes onto the closed NodeKind taxonomy.
Each entry of a node's ``Plans`` array becomes a child, in order.

A few facts live on a different node than the one they describe and are
moved during normalization:
- ``Hash Batches`` and ``Peak Memory Usage`` are reported on the ``Hash``
  child of a ``Hash Join`` and are lifted onto the join.
- ``Workers Planned`` is reported on ``Gather``/``Gather Merge`` and is
  inherited by every node executed inside the parallel section.
- ``Planning Time`` is reported beside the root plan and is recorded on
  the root node's flags.
"""

from __future__ import annotations

import json
from typing import Any

from queryadvisor.exceptions import MalformedPlanError
from queryadvisor.plan.node import (
    AggregateStrategy,
    Engine,
    NodeKind,
    PlanFlags,
    PlanNode,
    SubqueryKind,
)
from queryadvisor.plan.normalizers.base import PlanNormalizer, _to_float, _to_int

# ── Node type mapping ────────────────────────────────────────────────

_PG_NODE_MAP: dict[str, NodeKind] = {
    # Scans
    "Seq Scan": NodeKind.TABLE_SCAN,
    "Sample Scan": NodeKind.TABLE_SCAN,
    "Index Scan": NodeKind.INDEX_SCAN,
    "Index Only Scan": NodeKind.INDEX_SCAN,
    "Bitmap Heap Scan": NodeKind.INDEX_SCAN,
    "Bitmap Index Scan": NodeKind.INDEX_SCAN,
    "CTE Scan": NodeKind.CTE_SCAN,
    "Subquery Scan": NodeKind.SUBQUERY,
    # Joins
    "Nested Loop": NodeKind.NESTED_LOOP_JOIN,
    "Hash Join": NodeKind.HASH_JOIN,
    # Sort
    "Sort": NodeKind.SORT,
    "Incremental Sort": NodeKind.SORT,
    # Aggregates
    "Aggregate": NodeKind.AGGREGATE,
    "GroupAggregate": NodeKind.AGGREGATE,
    "Group Aggregate": NodeKind.AGGREGATE,
    "HashAggregate": NodeKind.AGGREGATE,
    "Hash Aggregate": NodeKind.AGGREGATE,
    # Materialize
    "Materialize": NodeKind.MATERIALIZE,
    "Memoize": NodeKind.MATERIALIZE,
}

# Older servers (and some tools) emit the strategy in the node type
_AGGREGATE_TYPE_STRATEGY: dict[str, AggregateStrategy] = {
    "GroupAggregate": AggregateStrategy.GROUP,
    "Group Aggregate": AggregateStrategy.GROUP,
    "HashAggregate": AggregateStrategy.HASH,
    "Hash Aggregate": AggregateStrategy.HASH,
}

_AGGREGATE_STRATEGY: dict[str, AggregateStrategy] = {
    "Sorted": AggregateStrategy.GROUP,
    "Hashed": AggregateStrategy.HASH,
    "Mixed": AggregateStrategy.HASH,
}

_PARENT_RELATIONSHIP_SUBQUERY: dict[str, SubqueryKind] = {
    "SubPlan": SubqueryKind.CORRELATED,
    "InitPlan": SubqueryKind.UNCORRELATED,
}

_APPEND_TYPES = ("Append", "Merge Append")
_GATHER_TYPES = ("Gather", "Gather Merge")


class PostgresNormalizer(PlanNormalizer):
    """Translate PostgreSQL EXPLAIN JSON into a PlanNode tree."""

    engine = Engine.POSTGRESQL

    def can_handle(self, payload: Any) -> bool:
        """Detect PostgreSQL EXPLAIN JSON format."""
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except ValueError:
                return False
        if isinstance(payload, (list, tuple)) and payload:
            payload = payload[0]
        return isinstance(payload, dict) and ("Plan" in payload or "Node Type" in payload)

    def normalize(self, payload: Any) -> PlanNode:
        """
        Translate PostgreSQL EXPLAIN JSON -> PlanNode.

        Args:
            payload: ``list[dict]`` as returned by EXPLAIN (FORMAT JSON),
                the single top-level dict, a bare plan node, or the JSON text.
        """
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except ValueError as e:
                raise MalformedPlanError(
                    "PostgreSQL plan is not valid JSON",
                    engine=self.engine.value,
                    detail=str(e),
                ) from e

        # EXPLAIN JSON wraps the document in a one-element list
        if isinstance(payload, (list, tuple)):
            if not payload:
                raise MalformedPlanError(
                    "PostgreSQL EXPLAIN returned an empty document",
                    engine=self.engine.value,
                )
            payload = payload[0]

        if not isinstance(payload, dict):
            raise MalformedPlanError(
                f"Unknown PostgreSQL EXPLAIN format: {type(payload).__name__}",
                engine=self.engine.value,
            )

        plan_data = payload.get("Plan", payload)
        planning_time = _to_float(payload.get("Planning Time"))

        return self._normalize_node(
            plan_data,
            inherited_workers=None,
            planning_time_ms=planning_time,
        )

    def _normalize_node(
        self,
        data: Any,
        inherited_workers: int | None,
        planning_time_ms: float | None = None,
    ) -> PlanNode:
        if not isinstance(data, dict) or "Node Type" not in data:
            raise MalformedPlanError(
                "PostgreSQL plan node has no 'Node Type' field",
                engine=self.engine.value,
                detail=f"keys: {sorted(data) if isinstance(data, dict) else type(data).__name__}",
            )

        node_type = str(data["Node Type"])
        kind = _resolve_kind(node_type, data)
        raw_children = list(data.get("Plans") or ())

        workers = _to_int(data.get("Workers Planned"))
        if workers is None:
            workers = inherited_workers
        child_workers = None
        if node_type in _GATHER_TYPES or inherited_workers is not None:
            child_workers = workers

        hash_batches = _to_int(data.get("Hash Batches") or data.get("HashAgg Batches"))
        memory_used = _kb_to_bytes(data.get("Peak Memory Usage"))
        memory_allowed = _kb_to_bytes(data.get("Peak Memory Allowed"))
        if kind is NodeKind.HASH_JOIN:
            hash_child = _hash_child(raw_children)
            if hash_batches is None:
                hash_batches = _to_int(hash_child.get("Hash Batches"))
            if memory_used is None:
                memory_used = _kb_to_bytes(hash_child.get("Peak Memory Usage"))
            if memory_allowed is None:
                memory_allowed = _kb_to_bytes(hash_child.get("Peak Memory Allowed"))

        partitions_removed = _to_int(
            data.get("Subplans Removed", data.get("Partitions Removed"))
        )
        partitions_total = None
        if kind is NodeKind.PARTITION_SCAN:
            partitions_total = len(raw_children) + (partitions_removed or 0)

        sort_method = str(data.get("Sort Method") or "")
        external_sort = kind is NodeKind.SORT and (
            "external" in sort_method.lower() or data.get("Sort Space Type") == "Disk"
        )

        flags = PlanFlags(
            uses_external_sort=external_sort,
            has_index_condition="Index Cond" in data or "Recheck Cond" in data,
            is_materialized=(
                kind is NodeKind.MATERIALIZE or bool(data.get("CTE Materialized"))
            ),
            parallel_aware=bool(data.get("Parallel Aware")),
            partitions_total=partitions_total,
            partitions_removed=partitions_removed,
            hash_batches=hash_batches,
            memory_used_bytes=memory_used,
            memory_allowed_bytes=memory_allowed,
            workers_planned=workers,
            temp_blocks_written=_temp_blocks(data),
            planning_time_ms=planning_time_ms,
        )

        strategy = None
        if kind is NodeKind.AGGREGATE:
            strategy = _AGGREGATE_STRATEGY.get(
                str(data.get("Strategy")), _AGGREGATE_TYPE_STRATEGY.get(node_type)
            )

        subquery = _PARENT_RELATIONSHIP_SUBQUERY.get(str(data.get("Parent Relationship")))
        if subquery is None and kind is NodeKind.SUBQUERY:
            subquery = SubqueryKind.UNCORRELATED

        children = tuple(
            self._normalize_node(child, inherited_workers=child_workers)
            for child in raw_children
        )

        return PlanNode(
            node_kind=kind,
            native_type=node_type,
            relation_name=data.get("Relation Name") or data.get("CTE Name"),
            alias=data.get("Alias"),
            index_name=data.get("Index Name"),
            join_condition=(
                data.get("Hash Cond") or data.get("Merge Cond") or data.get("Join Filter")
            ),
            estimated_rows=_to_float(data.get("Plan Rows")),
            actual_rows=_to_float(data.get("Actual Rows")),
            actual_loops=_to_int(data.get("Actual Loops")),
            cost_estimate=_to_float(data.get("Total Cost")),
            aggregate_strategy=strategy,
            subquery=subquery,
            flags=flags,
            children=children,
        )


def _resolve_kind(node_type: str, data: dict[str, Any]) -> NodeKind:
    if node_type in _APPEND_TYPES:
        has_pruning = "Subplans Removed" in data or "Partitions Removed" in data
        return NodeKind.PARTITION_SCAN if has_pruning else NodeKind.OTHER
    if "Partition" in node_type:
        return NodeKind.PARTITION_SCAN
    return _PG_NODE_MAP.get(node_type, NodeKind.OTHER)


def _hash_child(raw_children: list[Any]) -> dict[str, Any]:
    """The Hash child that builds the join's hash table; empty if absent."""
    for child in raw_children:
        if isinstance(child, dict) and child.get("Node Type") == "Hash":
            return child
    return {}


def _kb_to_bytes(value: Any) -> int | None:
    kilobytes = _to_float(value)
    return int(kilobytes * 1024) if kilobytes is not None else None


def _temp_blocks(data: dict[str, Any]) -> int | None:
    blocks = _to_int(data.get("Temp Written Blocks"))
    if blocks is None and data.get("Temporary File Usage"):
        blocks = _to_int(data.get("Temporary File Usage")) or 1
    return blocks
