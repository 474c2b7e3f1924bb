"""
PostgreSQL collaborator built on psycopg 3.

The plan comes from ``EXPLAIN (FORMAT JSON, ANALYZE, ...)``. ANALYZE
executes the statement, so the transaction is rolled back right after.
Statistics come from ``pg_stat_user_tables`` with the size functions,
indexes from ``pg_indexes``.
"""

from __future__ import annotations

import logging
from typing import Any

import psycopg
from psycopg.rows import dict_row

from queryadvisor.config import Config
from queryadvisor.db.base import ConnectionSettings, DatabaseCollaborator
from queryadvisor.db.models import IndexDescriptor, TableStatistic
from queryadvisor.exceptions import ConnectionFailedError
from queryadvisor.plan.node import Engine

logger = logging.getLogger(__name__)

EXPLAIN_OPTIONS = "FORMAT JSON, ANALYZE, VERBOSE, BUFFERS, COSTS, TIMING"

_TABLE_STATISTICS_SQL = """
    SELECT
        relname AS table_name,
        n_live_tup AS row_count,
        pg_table_size(relid) AS data_size_bytes,
        pg_indexes_size(relid) AS index_size_bytes
    FROM pg_stat_user_tables
    WHERE schemaname = %s
"""

_INDEXES_SQL = """
    SELECT
        tablename AS table_name,
        indexname AS index_name,
        indexdef AS column_name,
        indexdef LIKE 'CREATE UNIQUE %%' AS is_unique
    FROM pg_indexes
    WHERE schemaname = %s
    ORDER BY tablename, indexname
"""

_DATABASES_SQL = """
    SELECT datname FROM pg_database
    WHERE datistemplate = false
    AND datname NOT IN ('postgres', 'template0', 'template1')
    ORDER BY datname
"""

_SCHEMAS_SQL = """
    SELECT schema_name
    FROM information_schema.schemata
    WHERE schema_name NOT IN ('information_schema', 'pg_catalog', 'pg_toast')
    AND schema_name NOT LIKE 'pg_%'
    ORDER BY schema_name
"""


class PostgresCollaborator(DatabaseCollaborator):
    """Session against a PostgreSQL server."""

    engine = Engine.POSTGRESQL

    def __init__(self, settings: ConnectionSettings, config: Config | None = None) -> None:
        super().__init__(settings, config)
        try:
            self._conn = psycopg.connect(
                host=settings.resolved_host,
                port=settings.resolved_port,
                user=settings.user,
                password=settings.password,
                dbname=settings.database or "postgres",
                connect_timeout=self.config.connect_timeout_s,
                options=f"-c statement_timeout={self.config.statement_timeout_ms}",
                row_factory=dict_row,
            )
        except psycopg.Error as e:
            raise ConnectionFailedError(
                f"PostgreSQL connection failed: {e}", engine=self.engine.value, cause=e
            ) from e
        logger.debug("Connected to PostgreSQL at %s:%s", settings.resolved_host, settings.resolved_port)

    def _fetch(self, sql: str, args: Any = None) -> list[dict[str, Any]]:
        with self._conn.cursor() as cur:
            cur.execute(sql, args)
            return list(cur.fetchall())

    def get_execution_plan(self, query: str) -> Any:
        try:
            rows = self._fetch(f"EXPLAIN ({EXPLAIN_OPTIONS}) {query}")
        finally:
            self._conn.rollback()
        if not rows:
            return None
        # json columns are decoded by psycopg: a one-element list of plans
        return rows[0]["QUERY PLAN"]

    def get_table_statistics(self, scope: str | None = None) -> list[TableStatistic]:
        try:
            rows = self._fetch(_TABLE_STATISTICS_SQL, (scope or self.settings.scope,))
        finally:
            self._conn.rollback()
        return [TableStatistic.from_dict(row) for row in rows]

    def get_indexes(self, scope: str | None = None) -> list[IndexDescriptor]:
        try:
            rows = self._fetch(_INDEXES_SQL, (scope or self.settings.scope,))
        finally:
            self._conn.rollback()
        return [IndexDescriptor.from_dict(row) for row in rows]

    def list_databases(self) -> list[str]:
        try:
            return [row["datname"] for row in self._fetch(_DATABASES_SQL)]
        finally:
            self._conn.rollback()

    def list_schemas(self) -> list[str]:
        """User schemas of the connected database."""
        try:
            return [row["schema_name"] for row in self._fetch(_SCHEMAS_SQL)]
        finally:
            self._conn.rollback()

    def close(self) -> None:
        if not self._conn.closed:
            self._conn.close()
