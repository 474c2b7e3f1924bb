"""
Tests for the individual recommendation rules.

Each rule is checked against hand-built PlanNodes, one node at a time,
the way the engine calls it.
"""

import pytest
from pydantic import ValidationError

from queryadvisor.analyzer.context import RuleContext
from queryadvisor.analyzer.models import RecommendationType, Severity
from queryadvisor.analyzer.rules import (
    AccessPath,
    ExternalSort,
    FullScan,
    Grouping,
    HashSpill,
    IndexUsage,
    InefficientJoin,
    JoinBuffer,
    LooseIndexScan,
    Materialization,
    Parallelism,
    PartitionEffectiveness,
    QueryStructure,
    SubqueryShape,
    TableStatistics,
    TemporaryStructure,
)
from queryadvisor.db.models import IndexDescriptor, TableStatistic
from queryadvisor.plan.node import (
    AggregateStrategy,
    Engine,
    NodeKind,
    PlanFlags,
    PlanNode,
    SubqueryKind,
)


def make_node(kind: NodeKind = NodeKind.TABLE_SCAN, flags: dict | None = None, **fields) -> PlanNode:
    """Create a PlanNode with optional flag overrides."""
    return PlanNode(node_kind=kind, flags=PlanFlags(**(flags or {})), **fields)


def make_ctx(engine: Engine | None = None, stats=(), indexes=()) -> RuleContext:
    return RuleContext(table_statistics=stats, indexes=indexes, engine=engine)


def types_of(recommendations) -> list[RecommendationType]:
    return [r.type for r in recommendations]


class TestFullScan:
    """Tests for full table scan detection."""

    def test_flags_table_scan(self):
        node = make_node(NodeKind.TABLE_SCAN, native_type="Seq Scan", relation_name="orders")

        recs = FullScan().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.TABLE_SCAN]
        assert recs[0].severity is Severity.HIGH
        assert recs[0].params == {"table_name": "orders"}
        assert recs[0].relation_name == "orders"
        assert "orders" in recs[0].message

    def test_ignores_index_scan(self):
        node = make_node(NodeKind.INDEX_SCAN, index_name="idx_a")

        assert FullScan().check(node, make_ctx()) == []


class TestAccessPath:
    """Tests for access type detection."""

    def test_mysql_full_scan_reports_access_type(self):
        node = make_node(NodeKind.TABLE_SCAN, native_type="ALL", relation_name="orders")

        recs = AccessPath().check(node, make_ctx(Engine.MYSQL))

        assert types_of(recs) == [RecommendationType.ACCESS_TYPE]
        assert recs[0].params == {"type": "ALL"}
        assert "'ALL'" in recs[0].message

    def test_postgres_seq_scan_is_left_to_full_scan(self):
        node = make_node(NodeKind.TABLE_SCAN, native_type="Seq Scan")

        assert AccessPath().check(node, make_ctx(Engine.POSTGRESQL)) == []

    def test_full_index_scan(self):
        node = make_node(
            NodeKind.INDEX_SCAN,
            native_type="index",
            index_name="idx_a",
            flags={"full_index_scan": True},
        )

        recs = AccessPath().check(node, make_ctx(Engine.MYSQL))

        assert types_of(recs) == [RecommendationType.ACCESS_TYPE]

    def test_index_scan_without_condition(self):
        node = make_node(
            NodeKind.INDEX_SCAN,
            native_type="Index Scan",
            relation_name="events",
            index_name="events_pkey",
            actual_rows=5000,
        )

        recs = AccessPath().check(node, make_ctx(Engine.POSTGRESQL))

        assert types_of(recs) == [RecommendationType.INEFFICIENT_INDEX_SCAN]
        assert recs[0].params == {"table_name": "events", "rows": 5000}

    def test_index_scan_with_condition_is_fine(self):
        node = make_node(
            NodeKind.INDEX_SCAN,
            actual_rows=5000,
            flags={"has_index_condition": True},
        )

        assert AccessPath().check(node, make_ctx(Engine.POSTGRESQL)) == []

    def test_threshold_is_configurable(self):
        node = make_node(NodeKind.INDEX_SCAN, actual_rows=5000)

        rule = AccessPath({"index_scan_rows": 10_000})

        assert rule.check(node, make_ctx(Engine.POSTGRESQL)) == []


class TestInefficientJoin:
    """Tests for join detection."""

    def test_compound_select_without_key(self):
        node = make_node(NodeKind.TABLE_SCAN, flags={"compound_select": True})

        recs = InefficientJoin().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.JOIN_OPTIMIZATION]
        assert recs[0].severity is Severity.HIGH

    def test_compound_select_with_key_is_fine(self):
        node = make_node(NodeKind.INDEX_SCAN, index_name="idx_a", flags={"compound_select": True})

        assert InefficientJoin().check(node, make_ctx()) == []

    def test_expensive_nested_loop(self):
        node = make_node(NodeKind.NESTED_LOOP_JOIN, native_type="Nested Loop", actual_rows=25_000)

        recs = InefficientJoin().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.EXPENSIVE_NESTED_LOOP]
        assert recs[0].params == {"rows": 25_000}

    def test_small_nested_loop_is_fine(self):
        node = make_node(NodeKind.NESTED_LOOP_JOIN, actual_rows=40)

        assert InefficientJoin().check(node, make_ctx()) == []

    def test_hash_join_without_equality(self):
        node = make_node(NodeKind.HASH_JOIN, join_condition="(a.start_at < b.end_at)")

        recs = InefficientJoin().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.MISSING_JOIN_INDEX]
        assert recs[0].params == {"condition": "(a.start_at < b.end_at)"}

    def test_equi_join_is_fine(self):
        node = make_node(NodeKind.HASH_JOIN, join_condition="(o.customer_id = c.id)")

        assert InefficientJoin().check(node, make_ctx()) == []


class TestJoinBuffer:
    """Tests for join buffer detection."""

    def test_flags_join_buffer(self):
        node = make_node(flags={"uses_join_buffer": True})

        recs = JoinBuffer().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.JOIN_BUFFER]
        assert recs[0].severity is Severity.MEDIUM

    def test_no_join_buffer(self):
        assert JoinBuffer().check(make_node(), make_ctx()) == []


class TestHashSpill:
    """Tests for hash spill detection."""

    def test_hash_join_with_batches(self):
        node = make_node(NodeKind.HASH_JOIN, flags={"hash_batches": 4})

        recs = HashSpill().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.HASH_SPILL]
        assert recs[0].params == {"batches": 4}
        assert "4 batches" in recs[0].message

    def test_single_batch_is_fine(self):
        node = make_node(NodeKind.HASH_JOIN, flags={"hash_batches": 1})

        assert HashSpill().check(node, make_ctx()) == []

    def test_hash_join_over_memory(self):
        node = make_node(
            NodeKind.HASH_JOIN,
            flags={"hash_batches": 1, "memory_used_bytes": 8192, "memory_allowed_bytes": 4096},
        )

        recs = HashSpill().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.HASH_SPILL]
        assert recs[0].params == {"batches": 1}

    def test_hash_join_within_memory(self):
        node = make_node(
            NodeKind.HASH_JOIN,
            flags={"memory_used_bytes": 4096, "memory_allowed_bytes": 8192},
        )

        assert HashSpill().check(node, make_ctx()) == []

    def test_hash_aggregate_over_memory(self):
        node = make_node(
            NodeKind.AGGREGATE,
            aggregate_strategy=AggregateStrategy.HASH,
            flags={"memory_used_bytes": 8192, "memory_allowed_bytes": 4096},
        )

        recs = HashSpill().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.AGGREGATE_SPILL]
        assert recs[0].severity is Severity.HIGH
        assert recs[0].params == {"batches": 1}

    def test_group_aggregate_is_ignored(self):
        node = make_node(
            NodeKind.AGGREGATE,
            aggregate_strategy=AggregateStrategy.GROUP,
            flags={"hash_batches": 8},
        )

        assert HashSpill().check(node, make_ctx()) == []


class TestTemporaryStructure:
    """Tests for temporary table and temp file detection."""

    def test_temporary_table(self):
        node = make_node(flags={"uses_temporary_structure": True})

        recs = TemporaryStructure().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.TEMP_TABLE]

    def test_temp_files_counted_where_written(self):
        child = make_node(NodeKind.SORT, flags={"temp_blocks_written": 60})
        parent = make_node(NodeKind.OTHER, flags={"temp_blocks_written": 100}, children=(child,))

        parent_recs = TemporaryStructure().check(parent, make_ctx())
        child_recs = TemporaryStructure().check(child, make_ctx())

        assert types_of(parent_recs) == [RecommendationType.TEMP_FILES]
        assert parent_recs[0].params == {"blocks": 40}
        assert parent_recs[0].severity is Severity.HIGH
        assert child_recs[0].params == {"blocks": 60}

    def test_cumulative_blocks_not_reported_twice(self):
        child = make_node(NodeKind.SORT, flags={"temp_blocks_written": 60})
        parent = make_node(NodeKind.OTHER, flags={"temp_blocks_written": 60}, children=(child,))

        assert TemporaryStructure().check(parent, make_ctx()) == []


class TestExternalSort:
    """Tests for sort detection."""

    def test_small_filesort(self):
        node = make_node(NodeKind.SORT, estimated_rows=200, flags={"uses_external_sort": True})

        recs = ExternalSort().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.FILE_SORT]
        assert recs[0].severity is Severity.MEDIUM

    def test_large_sort_reported_in_addition(self):
        node = make_node(NodeKind.SORT, actual_rows=80_000, flags={"uses_external_sort": True})

        recs = ExternalSort().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.FILE_SORT, RecommendationType.LARGE_SORT]
        assert recs[1].severity is Severity.HIGH
        assert recs[1].params == {"rows": 80_000}

    def test_sort_on_keyed_access(self):
        node = make_node(
            NodeKind.INDEX_SCAN,
            index_name="idx_created",
            estimated_rows=10,
            flags={"uses_external_sort": True},
        )

        recs = ExternalSort().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.FILE_SORT, RecommendationType.MULTI_COLUMN_SORT]
        assert recs[1].params == {"index_name": "idx_created"}

    def test_threshold_is_configurable(self):
        node = make_node(NodeKind.SORT, actual_rows=5000, flags={"uses_external_sort": True})

        recs = ExternalSort({"large_sort_rows": 100_000}).check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.FILE_SORT]

    def test_in_memory_sort_is_fine(self):
        assert ExternalSort().check(make_node(NodeKind.SORT, actual_rows=10**6), make_ctx()) == []


class TestIndexUsage:
    """Tests for unused and partially used indexes."""

    def test_candidates_without_chosen_key(self):
        node = make_node(possible_indexes=("idx_status", "idx_created"))

        recs = IndexUsage().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.UNUSED_INDEXES]
        assert recs[0].params == {"indexes": "idx_status, idx_created"}

    def test_partial_key_usage(self):
        node = make_node(
            NodeKind.INDEX_SCAN,
            index_name="idx_customer_date",
            index_key_length=4,
            index_ref="shop.c.id",
            possible_indexes=("idx_customer_date",),
        )
        indexes = [
            IndexDescriptor("orders", "idx_customer_date", "customer_id"),
            IndexDescriptor("orders", "idx_customer_date", "created_at"),
        ]

        recs = IndexUsage().check(node, make_ctx(indexes=indexes))

        assert types_of(recs) == [RecommendationType.PARTIAL_INDEX_USAGE]
        assert recs[0].severity is Severity.LOW

    def test_constant_lookup_is_fine(self):
        node = make_node(
            NodeKind.INDEX_SCAN,
            index_name="idx_a",
            index_key_length=8,
            index_ref="const,const",
        )
        indexes = [IndexDescriptor("t", "idx_a", "a")]

        assert IndexUsage().check(node, make_ctx(indexes=indexes)) == []

    def test_unknown_index_is_not_reported(self):
        node = make_node(NodeKind.INDEX_SCAN, index_name="idx_a", index_key_length=8, index_ref="db.t.a")

        assert IndexUsage().check(node, make_ctx()) == []


class TestTableStatistics:
    """Tests for statistics-based detection."""

    STATS = [
        TableStatistic("orders", 52_000, 8_388_608, 6_291_456),
        TableStatistic("customers", 1_200, 196_608, 32_768),
    ]

    def test_large_table_scan(self):
        node = make_node(NodeKind.TABLE_SCAN, relation_name="orders")

        recs = TableStatistics().check(node, make_ctx(stats=self.STATS))

        assert types_of(recs) == [
            RecommendationType.LARGE_TABLE_SCAN,
            RecommendationType.HIGH_INDEX_RATIO,
        ]
        assert recs[0].params == {"rows": 52_000}
        assert recs[1].params == {"table_name": "orders", "ratio": 0.75}
        assert recs[1].severity is Severity.LOW

    def test_small_table_is_fine(self):
        node = make_node(NodeKind.TABLE_SCAN, relation_name="customers")

        assert TableStatistics().check(node, make_ctx(stats=self.STATS)) == []

    def test_no_statistics_for_table(self):
        node = make_node(NodeKind.TABLE_SCAN, relation_name="audit_log")

        assert TableStatistics().check(node, make_ctx(stats=self.STATS)) == []

    def test_slow_planning(self):
        node = make_node(NodeKind.OTHER, flags={"planning_time_ms": 2500.5})

        recs = TableStatistics().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.OUTDATED_STATS]
        assert recs[0].severity is Severity.MEDIUM
        assert recs[0].params == {"planning_time_ms": 2500.5}

    def test_thresholds_are_configurable(self):
        node = make_node(NodeKind.TABLE_SCAN, relation_name="orders")
        rule = TableStatistics({"large_table_rows": 100_000, "index_ratio": 1.0})

        assert rule.check(node, make_ctx(stats=self.STATS)) == []


class TestQueryStructure:
    """Tests for WHERE and DISTINCT detection."""

    def test_where_filter(self):
        recs = QueryStructure().check(make_node(flags={"uses_where_filter": True}), make_ctx())

        assert types_of(recs) == [RecommendationType.WHERE_CLAUSE]
        assert recs[0].severity is Severity.LOW

    def test_temporary_plus_sort(self):
        node = make_node(flags={"uses_temporary_structure": True, "uses_external_sort": True})

        recs = QueryStructure().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.DISTINCT_OPTIMIZATION]


class TestSubqueryShape:
    """Tests for subquery detection."""

    def test_correlated(self):
        node = make_node(NodeKind.SUBQUERY, subquery=SubqueryKind.CORRELATED)

        recs = SubqueryShape().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.DEPENDENT_SUBQUERY]
        assert recs[0].severity is Severity.HIGH

    def test_uncorrelated(self):
        node = make_node(NodeKind.SUBQUERY, subquery=SubqueryKind.UNCORRELATED)

        recs = SubqueryShape().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.SUBQUERY_OPTIMIZATION]
        assert recs[0].severity is Severity.MEDIUM

    def test_plain_node(self):
        assert SubqueryShape().check(make_node(), make_ctx()) == []


class TestPartitionEffectiveness:
    """Tests for partition pruning detection."""

    def test_nothing_pruned(self):
        node = make_node(
            NodeKind.PARTITION_SCAN,
            flags={"partitions_total": 3, "partitions_removed": 0},
        )

        recs = PartitionEffectiveness().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.INEFFECTIVE_PARTITION]
        assert recs[0].severity is Severity.HIGH

    def test_some_pruned_is_fine(self):
        node = make_node(
            NodeKind.PARTITION_SCAN,
            flags={"partitions_total": 3, "partitions_removed": 2},
        )

        assert PartitionEffectiveness().check(node, make_ctx()) == []

    def test_many_partitions_without_pruning_info(self):
        node = make_node(flags={"partitions_total": 4})

        recs = PartitionEffectiveness().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.PARTITION_PRUNING]
        assert recs[0].params == {"partitions": 4}

    def test_single_partition_is_fine(self):
        assert PartitionEffectiveness().check(make_node(flags={"partitions_total": 1}), make_ctx()) == []


class TestParallelism:
    """Tests for missed parallelism."""

    def test_expensive_serial_scan(self):
        node = make_node(NodeKind.TABLE_SCAN, cost_estimate=250_000.0)

        recs = Parallelism().check(node, make_ctx(Engine.POSTGRESQL))

        assert types_of(recs) == [RecommendationType.MISSED_PARALLEL]
        assert recs[0].params == {"cost": 250_000.0}

    def test_workers_planned_is_fine(self):
        node = make_node(NodeKind.TABLE_SCAN, cost_estimate=250_000.0, flags={"workers_planned": 2})

        assert Parallelism().check(node, make_ctx(Engine.POSTGRESQL)) == []

    def test_reported_at_lowest_expensive_node(self):
        child = make_node(NodeKind.TABLE_SCAN, cost_estimate=200_000.0)
        parent = make_node(NodeKind.SORT, cost_estimate=260_000.0, children=(child,))

        assert Parallelism().check(parent, make_ctx(Engine.POSTGRESQL)) == []
        assert len(Parallelism().check(child, make_ctx(Engine.POSTGRESQL))) == 1

    def test_postgres_only(self):
        rule = Parallelism()

        assert rule.applies_to(Engine.POSTGRESQL)
        assert not rule.applies_to(Engine.MYSQL)
        assert rule.applies_to(None)


class TestMaterialization:
    """Tests for materialization detection."""

    def test_repeated_execution(self):
        node = make_node(
            NodeKind.INDEX_SCAN,
            native_type="Index Scan",
            relation_name="orders",
            actual_loops=500,
        )

        recs = Materialization().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.MISSED_MATERIALIZATION]
        assert recs[0].params == {"operation": "Index Scan on orders", "loops": 500}

    def test_materialize_node_is_fine(self):
        node = make_node(NodeKind.MATERIALIZE, actual_loops=500)

        assert Materialization().check(node, make_ctx()) == []

    def test_cte_not_materialized(self):
        node = make_node(NodeKind.CTE_SCAN, relation_name="recent", actual_rows=40)

        recs = Materialization().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.CTE_MATERIALIZATION]
        assert recs[0].params == {"table_name": "recent"}

    def test_materialized_cte_is_fine(self):
        node = make_node(NodeKind.CTE_SCAN, actual_rows=40, flags={"is_materialized": True})

        assert Materialization().check(node, make_ctx()) == []


class TestGrouping:
    """Tests for GROUP BY detection."""

    def test_group_by_without_index(self):
        node = make_node(flags={"uses_temporary_structure": True, "uses_external_sort": True})

        recs = Grouping().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.GROUP_BY_OPTIMIZATION]
        assert recs[0].severity is Severity.HIGH

    def test_large_group_aggregate(self):
        node = make_node(
            NodeKind.AGGREGATE,
            aggregate_strategy=AggregateStrategy.GROUP,
            actual_rows=15_000,
        )

        recs = Grouping().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.INEFFICIENT_AGGREGATE]
        assert recs[0].severity is Severity.MEDIUM
        assert recs[0].params == {"rows": 15_000}

    def test_loose_index_scan_candidate(self):
        node = make_node(
            NodeKind.INDEX_SCAN,
            index_name="idx_status",
            flags={"uses_where_filter": True, "uses_temporary_structure": True},
        )

        recs = LooseIndexScan().check(node, make_ctx())

        assert types_of(recs) == [RecommendationType.LOOSE_INDEX_SCAN]

    def test_loose_index_scan_needs_an_index(self):
        node = make_node(flags={"uses_where_filter": True, "uses_temporary_structure": True})

        assert LooseIndexScan().check(node, make_ctx()) == []


class TestRuleConfig:
    """Tests for rule configuration validation."""

    def test_defaults(self):
        rule = ExternalSort()

        assert rule.config.enabled is True
        assert rule.config.large_sort_rows == 1000

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValidationError):
            ExternalSort({"large_sort_rows": -1})

    def test_unknown_threshold_rejected(self):
        with pytest.raises(ValidationError):
            ExternalSort({"large_sort_row": 10})

    def test_repr(self):
        assert repr(FullScan()) == "FullScan(rule_id='FULL_SCAN', version='1.0.0')"
