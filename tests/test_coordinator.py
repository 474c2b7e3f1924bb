"""
Tests for the analysis coordinator.

A fake collaborator stands in for the database, so these tests cover
validation, plan retrieval failures, degraded metadata and session
cleanup without a server.
"""

from typing import Any

import pytest

from queryadvisor.analyzer.models import RecommendationType, Severity
from queryadvisor.config import Config
from queryadvisor.coordinator import AnalysisCoordinator, validate_query
from queryadvisor.db.base import ConnectionSettings, DatabaseCollaborator
from queryadvisor.db.models import IndexDescriptor, TableStatistic
from queryadvisor.exceptions import (
    ConnectionFailedError,
    InvalidQueryError,
    MalformedPlanError,
    PlanRetrievalError,
    UnsupportedQueryError,
)
from queryadvisor.i18n import MessageCatalog
from queryadvisor.plan.node import Engine, NodeKind

PG_SETTINGS = ConnectionSettings(engine=Engine.POSTGRESQL, user="app", database="shop", schema_name="sales")
MYSQL_SETTINGS = ConnectionSettings(engine=Engine.MYSQL, user="root", database="shop")


class FakeCollaborator(DatabaseCollaborator):
    """In-memory collaborator recording how it was used."""

    def __init__(
        self,
        settings: ConnectionSettings,
        plan: Any = None,
        stats: list[TableStatistic] | None = None,
        indexes: list[IndexDescriptor] | None = None,
        plan_error: Exception | None = None,
        stats_error: Exception | None = None,
        indexes_error: Exception | None = None,
    ) -> None:
        super().__init__(settings)
        self.engine = settings.engine
        self.plan = plan
        self.stats = stats or []
        self.indexes = indexes or []
        self.plan_error = plan_error
        self.stats_error = stats_error
        self.indexes_error = indexes_error
        self.queries: list[str] = []
        self.scopes: list[str | None] = []
        self.closed = 0

    def get_execution_plan(self, query: str) -> Any:
        self.queries.append(query)
        if self.plan_error:
            raise self.plan_error
        return self.plan

    def get_table_statistics(self, scope: str | None = None) -> list[TableStatistic]:
        self.scopes.append(scope)
        if self.stats_error:
            raise self.stats_error
        return self.stats

    def get_indexes(self, scope: str | None = None) -> list[IndexDescriptor]:
        self.scopes.append(scope)
        if self.indexes_error:
            raise self.indexes_error
        return self.indexes

    def list_databases(self) -> list[str]:
        return ["shop"]

    def close(self) -> None:
        self.closed += 1


def make_coordinator(fake: FakeCollaborator | None = None, **kwargs) -> AnalysisCoordinator:
    """Coordinator whose factory hands out ``fake``."""
    def factory(settings):
        if fake is None:
            raise AssertionError("collaborator should not be opened")
        return fake

    return AnalysisCoordinator(collaborator_factory=factory, config=Config(), **kwargs)


def load_stats(shop_stats) -> tuple[list[TableStatistic], list[IndexDescriptor]]:
    return (
        [TableStatistic.from_dict(row) for row in shop_stats["table_statistics"]],
        [IndexDescriptor.from_dict(row) for row in shop_stats["indexes"]],
    )


class TestValidateQuery:
    """Tests for query validation."""

    def test_trims_whitespace(self):
        assert validate_query("  SELECT 1 \n") == "SELECT 1"

    def test_case_insensitive_select(self):
        assert validate_query("select * from orders") == "select * from orders"

    @pytest.mark.parametrize("value", ["", "   \n\t", None, 42, ["SELECT 1"]])
    def test_invalid_input(self, value):
        with pytest.raises(InvalidQueryError):
            validate_query(value)

    @pytest.mark.parametrize("query,statement", [
        ("UPDATE orders SET status = 'x'", "UPDATE"),
        ("delete from orders", "DELETE"),
        ("WITH t AS (SELECT 1) SELECT * FROM t", "WITH"),
    ])
    def test_non_select_rejected(self, query, statement):
        with pytest.raises(UnsupportedQueryError) as exc_info:
            validate_query(query)

        assert exc_info.value.statement == statement
        assert exc_info.value.to_dict()["statement"] == statement


class TestAnalyze:
    """Tests for live-database analysis through a collaborator."""

    def test_postgres_analysis(self, pg_hash_join_plan):
        fake = FakeCollaborator(PG_SETTINGS, plan=pg_hash_join_plan)

        result = make_coordinator(fake).analyze(
            "  SELECT * FROM orders o JOIN customers c ON o.customer_id = c.id  ",
            PG_SETTINGS,
        )

        assert result.engine is Engine.POSTGRESQL
        assert result.query.startswith("SELECT")
        assert not result.query.endswith(" ")
        assert fake.queries == [result.query]
        assert result.plan.node_kind is NodeKind.HASH_JOIN
        assert result.native_plan == pg_hash_join_plan
        assert [r.type for r in result.recommendations] == [
            RecommendationType.TABLE_SCAN,
            RecommendationType.HASH_SPILL,
        ]
        assert not result.degraded
        assert fake.closed == 1

    def test_metadata_scope_is_schema_on_postgres(self, pg_hash_join_plan):
        fake = FakeCollaborator(PG_SETTINGS, plan=pg_hash_join_plan)

        make_coordinator(fake).analyze("SELECT 1", PG_SETTINGS)

        assert fake.scopes == ["sales", "sales"]

    def test_mysql_analysis_with_metadata(self, mysql_rows_plan, shop_stats):
        stats, indexes = load_stats(shop_stats)
        fake = FakeCollaborator(MYSQL_SETTINGS, plan=mysql_rows_plan, stats=stats, indexes=indexes)

        result = make_coordinator(fake).analyze(
            "SELECT DISTINCT o.* FROM orders o JOIN customers c ON c.id = o.customer_id "
            "WHERE o.status = 'open' ORDER BY o.created_at",
            MYSQL_SETTINGS,
        )

        assert fake.scopes == ["shop", "shop"]
        assert result.table_statistics == tuple(stats)
        assert result.indexes == tuple(indexes)
        assert [(r.type, r.severity) for r in result.recommendations] == [
            (RecommendationType.TABLE_SCAN, Severity.HIGH),
            (RecommendationType.LARGE_TABLE_SCAN, Severity.HIGH),
            (RecommendationType.GROUP_BY_OPTIMIZATION, Severity.HIGH),
            (RecommendationType.LARGE_SORT, Severity.HIGH),
            (RecommendationType.ACCESS_TYPE, Severity.MEDIUM),
            (RecommendationType.TEMP_TABLE, Severity.MEDIUM),
            (RecommendationType.FILE_SORT, Severity.MEDIUM),
            (RecommendationType.UNUSED_INDEXES, Severity.MEDIUM),
            (RecommendationType.DISTINCT_OPTIMIZATION, Severity.MEDIUM),
            (RecommendationType.HIGH_INDEX_RATIO, Severity.LOW),
            (RecommendationType.WHERE_CLAUSE, Severity.LOW),
            (RecommendationType.PARTIAL_INDEX_USAGE, Severity.LOW),
        ]
        assert result.summary() == {"HIGH": 4, "MEDIUM": 5, "LOW": 3}

    def test_invalid_query_never_opens_session(self):
        coordinator = make_coordinator(None)

        with pytest.raises(InvalidQueryError):
            coordinator.analyze("   ", MYSQL_SETTINGS)
        with pytest.raises(UnsupportedQueryError):
            coordinator.analyze("DROP TABLE orders", MYSQL_SETTINGS)

    def test_plan_failure_raises_with_cause(self):
        driver_error = RuntimeError("syntax error at or near \"FORM\"")
        fake = FakeCollaborator(PG_SETTINGS, plan_error=driver_error)

        with pytest.raises(PlanRetrievalError) as exc_info:
            make_coordinator(fake).analyze("SELECT * FORM orders", PG_SETTINGS)

        error = exc_info.value
        assert error.__cause__ is driver_error
        assert error.cause is driver_error
        assert error.message.startswith("Failed to get execution plan:")
        assert "FORM" in error.message
        assert fake.closed == 1

    @pytest.mark.parametrize("settings,plan", [
        (PG_SETTINGS, None),
        (MYSQL_SETTINGS, []),
    ])
    def test_empty_plan_raises_retrieval_error(self, settings, plan):
        fake = FakeCollaborator(settings, plan=plan)

        with pytest.raises(PlanRetrievalError) as exc_info:
            make_coordinator(fake).analyze("SELECT * FROM orders", settings)

        assert exc_info.value.cause is None
        assert "returned no plan" in exc_info.value.message
        assert fake.scopes == []
        assert fake.closed == 1

    def test_statistics_failure_is_degraded(self, mysql_rows_plan, caplog):
        fake = FakeCollaborator(
            MYSQL_SETTINGS,
            plan=mysql_rows_plan,
            stats_error=RuntimeError("SELECT command denied"),
        )

        result = make_coordinator(fake).analyze("SELECT * FROM orders", MYSQL_SETTINGS)

        assert result.degraded
        assert len(result.degraded_reasons) == 1
        assert "table_statistics" in result.degraded_reasons[0]
        assert result.table_statistics == ()
        assert result.recommendations
        assert "denied" in caplog.text
        assert fake.closed == 1

    def test_both_metadata_failures_recorded(self, mysql_rows_plan):
        fake = FakeCollaborator(
            MYSQL_SETTINGS,
            plan=mysql_rows_plan,
            stats_error=RuntimeError("stats"),
            indexes_error=RuntimeError("indexes"),
        )

        result = make_coordinator(fake).analyze("SELECT * FROM orders", MYSQL_SETTINGS)

        assert len(result.degraded_reasons) == 2
        assert "indexes" in result.degraded_reasons[1]

    def test_malformed_plan_still_closes_session(self):
        fake = FakeCollaborator(PG_SETTINGS, plan=[{"Plan": {"Plan Rows": 1}}])

        with pytest.raises(MalformedPlanError):
            make_coordinator(fake).analyze("SELECT 1", PG_SETTINGS)

        assert fake.closed == 1

    def test_connection_failure_propagates(self):
        def refuse(settings):
            raise ConnectionFailedError("MySQL connection failed", engine="mysql")

        coordinator = AnalysisCoordinator(collaborator_factory=refuse, config=Config())

        with pytest.raises(ConnectionFailedError):
            coordinator.analyze("SELECT 1", MYSQL_SETTINGS)

    def test_renderer_sets_language(self, pg_hash_join_plan):
        fake = FakeCollaborator(PG_SETTINGS, plan=pg_hash_join_plan)

        result = make_coordinator(fake, renderer=MessageCatalog("id")).analyze("SELECT 1", PG_SETTINGS)

        assert result.recommendations[0].message == "Full table scan terdeteksi pada tabel orders"


class TestAnalyzePlan:
    """Tests for offline analysis of saved plans."""

    def test_engine_detected(self, pg_subplan_plan):
        result = make_coordinator().analyze_plan(pg_subplan_plan)

        assert result.engine is Engine.POSTGRESQL
        assert [r.type for r in result.recommendations] == [
            RecommendationType.TABLE_SCAN,
            RecommendationType.DEPENDENT_SUBQUERY,
            RecommendationType.OUTDATED_STATS,
            RecommendationType.MISSED_PARALLEL,
            RecommendationType.MISSED_MATERIALIZATION,
            RecommendationType.MISSED_MATERIALIZATION,
        ]

    def test_engine_name_accepted(self, mysql_json_plan):
        result = make_coordinator().analyze_plan(mysql_json_plan, engine="mysql", query=" SELECT 1 ")

        assert result.engine is Engine.MYSQL
        assert result.query == "SELECT 1"
        assert RecommendationType.TABLE_SCAN in [r.type for r in result.recommendations]

    def test_result_serializes(self, pg_hash_join_plan):
        data = make_coordinator().analyze_plan(pg_hash_join_plan).to_dict()

        assert data["engine"] == "postgresql"
        assert data["plan"]["node_kind"] == "hash_join"
        assert data["summary"] == {"HIGH": 1, "MEDIUM": 1, "LOW": 0}
        assert data["recommendations"][0]["type"] == "TABLE_SCAN"
        assert data["degraded_reasons"] == []

    def test_unrecognized_payload(self):
        with pytest.raises(MalformedPlanError):
            make_coordinator().analyze_plan({"unexpected": True})


def recommendation_types(result) -> list[RecommendationType]:
    return [r.type for r in result.recommendations]


class TestMySQLFormatsAgree:
    """Tabular EXPLAIN and EXPLAIN FORMAT=JSON of one query give the same advice."""

    GROUP_BY_ROWS = [{
        "id": 1,
        "select_type": "SIMPLE",
        "table": "orders",
        "type": "range",
        "possible_keys": "idx_status",
        "key": "idx_status",
        "key_len": "4",
        "ref": None,
        "rows": 800,
        "Extra": "Using where; Using index; Using temporary",
    }]

    GROUP_BY_JSON = {
        "query_block": {
            "select_id": 1,
            "grouping_operation": {
                "using_temporary_table": True,
                "table": {
                    "table_name": "orders",
                    "access_type": "range",
                    "possible_keys": ["idx_status"],
                    "key": "idx_status",
                    "key_length": "4",
                    "rows_examined_per_scan": 800,
                    "using_index": True,
                    "attached_condition": "(`shop`.`orders`.`status` in ('open','paid'))",
                },
            },
        }
    }

    def test_sorted_join(self, mysql_rows_plan, mysql_json_plan, shop_stats):
        stats, indexes = load_stats(shop_stats)
        coordinator = make_coordinator()

        tabular = coordinator.analyze_plan(mysql_rows_plan, "mysql", stats, indexes)
        json_plan = coordinator.analyze_plan(mysql_json_plan, "mysql", stats, indexes)

        assert recommendation_types(json_plan) == recommendation_types(tabular)
        assert RecommendationType.LARGE_SORT in recommendation_types(json_plan)
        assert json_plan.summary() == {"HIGH": 4, "MEDIUM": 5, "LOW": 3}

    def test_keyed_group_by(self):
        coordinator = make_coordinator()

        tabular = coordinator.analyze_plan(self.GROUP_BY_ROWS, "mysql")
        json_plan = coordinator.analyze_plan(self.GROUP_BY_JSON, "mysql")

        types = recommendation_types(json_plan)
        assert types == recommendation_types(tabular)
        assert RecommendationType.LOOSE_INDEX_SCAN in types
        assert RecommendationType.GROUP_BY_OPTIMIZATION not in types
