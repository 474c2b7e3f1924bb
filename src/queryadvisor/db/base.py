"""
Database collaborator interface.

A collaborator owns one database session and answers the three
questions analysis needs: the native execution plan of a query, table
statistics and index metadata for a scope (a MySQL database or a
PostgreSQL schema). Sessions are opened by the constructor and closed
by close() or by leaving a ``with`` block.

Usage:
    settings = ConnectionSettings(engine=Engine.MYSQL, user="root", database="shop")
    with open_collaborator(settings) as db:
        payload = db.get_execution_plan("SELECT * FROM orders")
        stats = db.get_table_statistics()
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from queryadvisor.config import Config
from queryadvisor.db.models import IndexDescriptor, TableStatistic
from queryadvisor.plan.node import Engine

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {
    Engine.MYSQL: 3306,
    Engine.POSTGRESQL: 5432,
}


class ConnectionSettings(BaseModel):
    """Where and how to connect. Built by the CLI or by embedding code."""

    model_config = ConfigDict(frozen=True)

    engine: Engine = Field(..., description="Target database engine")
    host: str = Field(default="localhost", description="Server host name")
    port: int | None = Field(
        default=None,
        ge=1,
        le=65535,
        description="Server port; engine default when omitted",
    )
    user: str = Field(default="", description="Login user")
    password: str = Field(default="", repr=False, description="Login password")
    database: str | None = Field(
        default=None,
        description="Database to connect to",
    )
    schema_name: str = Field(
        default="public",
        description="PostgreSQL schema searched for statistics and indexes",
    )

    @property
    def resolved_host(self) -> str:
        """``localhost`` forced to IPv4 so drivers do not try a unix socket or ::1."""
        return "127.0.0.1" if self.host == "localhost" else self.host

    @property
    def resolved_port(self) -> int:
        return self.port or DEFAULT_PORTS[self.engine]

    @property
    def scope(self) -> str | None:
        """Metadata scope: the database on MySQL, the schema on PostgreSQL."""
        if self.engine is Engine.POSTGRESQL:
            return self.schema_name
        return self.database


class DatabaseCollaborator(ABC):
    """
    One open session against a database.

    Implementations raise ConnectionFailedError from the constructor
    when the session cannot be opened, and let driver errors propagate
    from the query methods; the coordinator decides which of those are
    fatal.
    """

    engine: Engine

    def __init__(self, settings: ConnectionSettings, config: Config | None = None) -> None:
        self.settings = settings
        self.config = config or Config()

    @abstractmethod
    def get_execution_plan(self, query: str) -> Any:
        """Native EXPLAIN payload for ``query``."""

    @abstractmethod
    def get_table_statistics(self, scope: str | None = None) -> list[TableStatistic]:
        """Statistics of every table in ``scope`` (default: the settings' scope)."""

    @abstractmethod
    def get_indexes(self, scope: str | None = None) -> list[IndexDescriptor]:
        """Index metadata of every table in ``scope`` (default: the settings' scope)."""

    @abstractmethod
    def list_databases(self) -> list[str]:
        """User databases on the server, system catalogs excluded."""

    @abstractmethod
    def close(self) -> None:
        """Release the session. Safe to call more than once."""

    def __enter__(self) -> "DatabaseCollaborator":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        s = self.settings
        return f"{type(self).__name__}({s.user}@{s.resolved_host}:{s.resolved_port}/{s.database or ''})"


def open_collaborator(
    settings: ConnectionSettings,
    config: Config | None = None,
) -> DatabaseCollaborator:
    """
    Open a session for ``settings.engine``.

    Raises:
        ConnectionFailedError: If the server cannot be reached or rejects the login.
    """
    # Imported here so each driver is only loaded when its engine is used
    if settings.engine is Engine.MYSQL:
        from queryadvisor.db.mysql import MySQLCollaborator

        return MySQLCollaborator(settings, config)

    from queryadvisor.db.postgres import PostgresCollaborator

    return PostgresCollaborator(settings, config)
