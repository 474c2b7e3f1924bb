"""
MySQL collaborator built on PyMySQL.

The plan comes from plain ``EXPLAIN`` (tabular rows, one per table);
statistics and indexes from ``information_schema``. Column aliases keep
the dictionary keys stable across server versions, which report
information_schema column names in upper case on MySQL 8.
"""

from __future__ import annotations

import logging
from typing import Any

import pymysql
import pymysql.cursors

from queryadvisor.config import Config
from queryadvisor.db.base import ConnectionSettings, DatabaseCollaborator
from queryadvisor.db.models import IndexDescriptor, TableStatistic
from queryadvisor.exceptions import ConnectionFailedError
from queryadvisor.plan.node import Engine

logger = logging.getLogger(__name__)

SYSTEM_DATABASES = frozenset({"information_schema", "mysql", "performance_schema", "sys"})

_TABLE_STATISTICS_SQL = """
    SELECT
        table_name AS table_name,
        table_rows AS row_count,
        data_length AS data_size_bytes,
        index_length AS index_size_bytes
    FROM information_schema.tables
    WHERE table_schema = %s
"""

_INDEXES_SQL = """
    SELECT
        table_name AS table_name,
        index_name AS index_name,
        column_name AS column_name,
        non_unique AS non_unique
    FROM information_schema.statistics
    WHERE table_schema = %s
    ORDER BY table_name, index_name, seq_in_index
"""


class MySQLCollaborator(DatabaseCollaborator):
    """Session against a MySQL or MariaDB server."""

    engine = Engine.MYSQL

    def __init__(self, settings: ConnectionSettings, config: Config | None = None) -> None:
        super().__init__(settings, config)
        read_timeout = max(self.config.statement_timeout_ms / 1000, 1)
        try:
            self._conn = pymysql.connect(
                host=settings.resolved_host,
                port=int(settings.resolved_port),
                user=settings.user,
                password=settings.password,
                database=settings.database,
                connect_timeout=self.config.connect_timeout_s,
                read_timeout=read_timeout,
                cursorclass=pymysql.cursors.DictCursor,
            )
        except pymysql.MySQLError as e:
            raise ConnectionFailedError(
                f"MySQL connection failed: {e}", engine=self.engine.value, cause=e
            ) from e
        logger.debug("Connected to MySQL at %s:%s", settings.resolved_host, settings.resolved_port)

    def _fetch(self, sql: str, args: Any = None) -> list[dict[str, Any]]:
        with self._conn.cursor() as cur:
            cur.execute(sql, args)
            return list(cur.fetchall())

    def get_execution_plan(self, query: str) -> list[dict[str, Any]]:
        # No args: PyMySQL only %-interpolates when parameters are given
        return self._fetch(f"EXPLAIN {query}")

    def get_table_statistics(self, scope: str | None = None) -> list[TableStatistic]:
        rows = self._fetch(_TABLE_STATISTICS_SQL, (scope or self.settings.scope,))
        return [TableStatistic.from_dict(row) for row in rows]

    def get_indexes(self, scope: str | None = None) -> list[IndexDescriptor]:
        rows = self._fetch(_INDEXES_SQL, (scope or self.settings.scope,))
        return [
            IndexDescriptor(
                table_name=str(row["table_name"]),
                index_name=str(row["index_name"]),
                column_name=str(row["column_name"] or ""),
                is_unique=not int(row["non_unique"]),
            )
            for row in rows
        ]

    def list_databases(self) -> list[str]:
        rows = self._fetch("SHOW DATABASES")
        return [
            row["Database"] for row in rows
            if row["Database"] not in SYSTEM_DATABASES
        ]

    def close(self) -> None:
        if self._conn.open:
            self._conn.close()
