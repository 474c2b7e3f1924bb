"""
MySQL normalizer: EXPLAIN rows / EXPLAIN FORMAT=JSON -> PlanNode.

Supports:
- Traditional EXPLAIN (tabular rows, as returned by a dict cursor)
- EXPLAIN FORMAT=JSON (``query_block`` document, or the single
  ``EXPLAIN`` column wrapping it as text)

Traditional EXPLAIN fields:
- id: SELECT identifier
- select_type: SIMPLE, PRIMARY, SUBQUERY, DEPENDENT SUBQUERY, ...
- table: Table name
- partitions: Matching partitions (comma separated)
- type: Access type (ALL, index, range, ref, eq_ref, const, system, NULL)
- possible_keys: Indexes that could be used
- key: Index actually used
- key_len: Length of key used
- ref: Columns compared to index
- rows: Estimated rows to examine
- Extra: Additional information ("Using filesort", "Using temporary", ...)

Traditional output is flat: rows carry no parent/child linkage. A single
row becomes a single-node tree; several rows become children of one
query-block node, in row order.

JSON output nests tables inside ordering/grouping operations. The
operation's ``using_temporary_table``/``using_filesort`` are attached to
the first table below it, where the Extra column would have shown them.
"""

from __future__ import annotations

import json
from dataclasses import replace
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

# ── Access type mapping ──────────────────────────────────────────────

# Worst to best, as documented for EXPLAIN's ``type`` column
_ACCESS_TYPE_MAP: dict[str, NodeKind] = {
    "ALL": NodeKind.TABLE_SCAN,
    "index": NodeKind.INDEX_SCAN,
    "range": NodeKind.INDEX_SCAN,
    "index_merge": NodeKind.INDEX_SCAN,
    "unique_subquery": NodeKind.INDEX_SCAN,
    "index_subquery": NodeKind.INDEX_SCAN,
    "fulltext": NodeKind.INDEX_SCAN,
    "ref_or_null": NodeKind.INDEX_SCAN,
    "ref": NodeKind.INDEX_SCAN,
    "eq_ref": NodeKind.INDEX_SCAN,
    "const": NodeKind.INDEX_SCAN,
    "system": NodeKind.INDEX_SCAN,
}

_SELECT_TYPE_SUBQUERY: dict[str, SubqueryKind] = {
    "DEPENDENT SUBQUERY": SubqueryKind.CORRELATED,
    "DEPENDENT UNION": SubqueryKind.CORRELATED,
    "UNCACHEABLE SUBQUERY": SubqueryKind.CORRELATED,
    "SUBQUERY": SubqueryKind.UNCORRELATED,
}

_ROW_TYPE_FIELDS = ("type", "access_type", "select_type")

# Keys of a JSON query block that hold subquery lists
_SUBQUERY_KEYS = ("attached_subqueries", "subqueries", "optimized_away_subqueries")

# Nodes an operation's flags are pushed through, and nodes they never enter
_PASS_THROUGH_TYPES = frozenset({
    "nested_loop",
    "ordering_operation",
    "grouping_operation",
    "duplicates_removal",
    "windowing",
})
_BLOCK_TYPES = frozenset({"query_block", "union_result"})


class MySQLNormalizer(PlanNormalizer):
    """Translate MySQL EXPLAIN output into a PlanNode tree."""

    engine = Engine.MYSQL

    def can_handle(self, payload: Any) -> bool:
        """Detect traditional rows or a FORMAT=JSON document."""
        try:
            payload = _unwrap_json_column(payload)
        except MalformedPlanError:
            return False
        if isinstance(payload, dict):
            return "query_block" in payload or "select_type" in payload
        if isinstance(payload, (list, tuple)) and payload:
            first = payload[0]
            return isinstance(first, dict) and "select_type" in first
        return False

    def normalize(self, payload: Any) -> PlanNode:
        payload = _unwrap_json_column(payload)

        if isinstance(payload, dict) and "query_block" in payload:
            return self._normalize_query_block(payload["query_block"])

        if isinstance(payload, dict):
            return self._normalize_row(payload)

        if isinstance(payload, (list, tuple)):
            if not payload:
                raise MalformedPlanError(
                    "MySQL EXPLAIN returned no rows",
                    engine=self.engine.value,
                )
            nodes = tuple(self._normalize_row(row) for row in payload)
            if len(nodes) == 1:
                return nodes[0]
            return PlanNode(
                node_kind=NodeKind.OTHER,
                native_type="query block",
                children=nodes,
            )

        raise MalformedPlanError(
            f"Unknown MySQL EXPLAIN format: {type(payload).__name__}",
            engine=self.engine.value,
        )

    # ── Traditional rows ──────────────────────────────────────────────

    def _normalize_row(self, row: Any) -> PlanNode:
        if not isinstance(row, dict) or not any(k in row for k in _ROW_TYPE_FIELDS):
            raise MalformedPlanError(
                "MySQL EXPLAIN row has no 'type' or 'select_type' field",
                engine=self.engine.value,
                detail=f"keys: {sorted(row) if isinstance(row, dict) else type(row).__name__}",
            )

        access_type = row.get("type", row.get("access_type"))
        select_type = str(row.get("select_type") or "SIMPLE").upper()
        extra = str(row.get("Extra") or row.get("extra") or "")
        key = row.get("key") or None
        partitions = _split_list(row.get("partitions"))

        flags = PlanFlags(
            uses_temporary_structure="Using temporary" in extra,
            uses_external_sort="Using filesort" in extra,
            uses_join_buffer="Using join buffer" in extra,
            uses_where_filter="Using where" in extra,
            has_index_condition="Using index condition" in extra,
            full_index_scan=access_type == "index",
            compound_select=select_type != "SIMPLE",
            is_materialized="MATERIALIZED" in select_type,
            partitions_total=len(partitions) if partitions else None,
        )

        return PlanNode(
            node_kind=_ACCESS_TYPE_MAP.get(str(access_type), NodeKind.OTHER),
            native_type=str(access_type) if access_type is not None else select_type,
            relation_name=row.get("table") or None,
            index_name=key,
            possible_indexes=tuple(_split_list(row.get("possible_keys"))),
            index_key_length=_to_int(row.get("key_len")),
            index_ref=_join_ref(row.get("ref")),
            estimated_rows=_to_float(row.get("rows")),
            subquery=_SELECT_TYPE_SUBQUERY.get(select_type),
            flags=flags,
        )

    # ── FORMAT=JSON ──────────────────────────────────────────────────

    def _normalize_query_block(self, block: Any) -> PlanNode:
        if not isinstance(block, dict):
            raise MalformedPlanError(
                "MySQL query_block must be an object",
                engine=self.engine.value,
            )
        cost_info = block.get("cost_info") or {}
        return PlanNode(
            node_kind=NodeKind.OTHER,
            native_type="query_block",
            cost_estimate=_to_float(cost_info.get("query_cost")),
            children=tuple(self._block_children(block)),
        )

    def _block_children(self, block: dict[str, Any]) -> list[PlanNode]:
        """Normalize the operations nested inside a block-like object, in key order."""
        children: list[PlanNode] = []
        for key, value in block.items():
            if key == "ordering_operation":
                children.append(self._operation(value, NodeKind.SORT, key))
            elif key == "grouping_operation":
                children.append(self._operation(
                    value, NodeKind.AGGREGATE, key, AggregateStrategy.GROUP
                ))
            elif key in ("duplicates_removal", "windowing"):
                children.append(self._operation(value, NodeKind.OTHER, key))
            elif key == "nested_loop":
                children.append(PlanNode(
                    node_kind=NodeKind.NESTED_LOOP_JOIN,
                    native_type=key,
                    children=tuple(
                        self._table(entry["table"])
                        for entry in value
                        if isinstance(entry, dict) and "table" in entry
                    ),
                ))
            elif key == "table":
                children.append(self._table(value))
            elif key == "union_result":
                children.append(self._union(value))
            elif key in _SUBQUERY_KEYS:
                children.extend(self._subquery(entry) for entry in value or ())
        return children

    def _operation(
        self,
        value: dict[str, Any],
        kind: NodeKind,
        native_type: str,
        strategy: AggregateStrategy | None = None,
    ) -> PlanNode:
        children = tuple(self._block_children(value))
        temporary = bool(value.get("using_temporary_table"))
        filesort = bool(value.get("using_filesort"))

        if temporary or filesort:
            attached = _attach_to_first_table(children, temporary, filesort)
            if attached is not None:
                children, temporary, filesort = attached, False, False

        return PlanNode(
            node_kind=kind,
            native_type=native_type,
            aggregate_strategy=strategy,
            flags=PlanFlags(
                uses_temporary_structure=temporary,
                uses_external_sort=filesort,
            ),
            children=children,
        )

    def _table(self, table: dict[str, Any]) -> PlanNode:
        access_type = table.get("access_type")
        partitions = table.get("partitions") or []
        cost_info = table.get("cost_info") or {}

        children: list[PlanNode] = []
        materialized = table.get("materialized_from_subquery")
        if isinstance(materialized, dict) and "query_block" in materialized:
            children.append(self._normalize_query_block(materialized["query_block"]))
        for key in _SUBQUERY_KEYS:
            children.extend(self._subquery(entry) for entry in table.get(key) or ())

        flags = PlanFlags(
            uses_join_buffer="using_join_buffer" in table,
            uses_where_filter="attached_condition" in table,
            has_index_condition="index_condition" in table,
            full_index_scan=access_type == "index",
            is_materialized=materialized is not None,
            partitions_total=len(partitions) if partitions else None,
        )

        return PlanNode(
            node_kind=_ACCESS_TYPE_MAP.get(str(access_type), NodeKind.OTHER),
            native_type=str(access_type) if access_type is not None else "table",
            relation_name=table.get("table_name"),
            index_name=table.get("key"),
            possible_indexes=tuple(_split_list(table.get("possible_keys"))),
            index_key_length=_to_int(table.get("key_length")),
            index_ref=_join_ref(table.get("ref")),
            estimated_rows=_to_float(table.get("rows_examined_per_scan")),
            cost_estimate=_to_float(cost_info.get("prefix_cost")),
            flags=flags,
            children=tuple(children),
        )

    def _union(self, union: dict[str, Any]) -> PlanNode:
        specs = union.get("query_specifications") or []
        return PlanNode(
            node_kind=NodeKind.OTHER,
            native_type="union_result",
            relation_name=union.get("table_name"),
            flags=PlanFlags(
                uses_temporary_structure=bool(union.get("using_temporary_table")),
            ),
            children=tuple(self._subquery(spec) for spec in specs),
        )

    def _subquery(self, entry: dict[str, Any]) -> PlanNode:
        correlated = bool(entry.get("dependent")) or entry.get("cacheable") is False
        children = ()
        if "query_block" in entry:
            children = (self._normalize_query_block(entry["query_block"]),)
        return PlanNode(
            node_kind=NodeKind.SUBQUERY,
            native_type="subquery",
            subquery=SubqueryKind.CORRELATED if correlated else SubqueryKind.UNCORRELATED,
            children=children,
        )


def _unwrap_json_column(payload: Any) -> Any:
    """
    ``EXPLAIN FORMAT=JSON`` through a dict cursor arrives as one row with a
    single ``EXPLAIN`` text column; decode it into the document.
    """
    if isinstance(payload, (list, tuple)) and len(payload) == 1:
        payload = payload[0]
        if not (isinstance(payload, dict) and "EXPLAIN" in payload):
            return [payload]
    if isinstance(payload, dict) and isinstance(payload.get("EXPLAIN"), str):
        try:
            return json.loads(payload["EXPLAIN"])
        except ValueError as e:
            raise MalformedPlanError(
                "MySQL EXPLAIN column is not valid JSON",
                engine=Engine.MYSQL.value,
                detail=str(e),
            ) from e
    return payload


def _attach_to_first_table(
    children: tuple[PlanNode, ...],
    temporary: bool,
    filesort: bool,
) -> tuple[PlanNode, ...] | None:
    """
    Move an operation's temporary/filesort flags onto the first table it
    reads, looking through nested loops and inner operations.

    Traditional EXPLAIN reports "Using temporary; Using filesort" in the
    Extra column of the first table in join order, next to that table's
    key and row estimate. Rules read one node at a time, so both formats
    have to put these facts on the same node.

    Returns the rewritten children, or None when no table was found.
    """
    for i, child in enumerate(children):
        if child.native_type in _PASS_THROUGH_TYPES:
            inner = _attach_to_first_table(child.children, temporary, filesort)
            if inner is None:
                continue
            child = replace(child, children=inner)
        elif child.node_kind is NodeKind.SUBQUERY or child.native_type in _BLOCK_TYPES:
            continue
        else:
            child = replace(child, flags=replace(
                child.flags,
                uses_temporary_structure=child.flags.uses_temporary_structure or temporary,
                uses_external_sort=child.flags.uses_external_sort or filesort,
            ))
        return children[:i] + (child,) + children[i + 1:]
    return None


def _split_list(value: Any) -> list[str]:
    """``possible_keys``/``partitions`` come as CSV text (rows) or arrays (JSON)."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [part.strip() for part in str(value).split(",") if part.strip()]


def _join_ref(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)
