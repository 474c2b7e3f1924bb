"""
Analysis coordinator: the single entry point for analyzing a query.

Pipeline:
    validate -> open session -> fetch plan -> fetch statistics/indexes
    -> normalize -> evaluate rules -> prioritize -> AnalysisResult

Failure policy:
- Invalid or non-SELECT input raises before any database work
- A plan that cannot be retrieved raises PlanRetrievalError (cause chained)
- Statistics or index failures are logged and recorded in
  ``degraded_reasons``; the rules still run on the plan alone
- The session is closed on every exit path

Usage:
    coordinator = AnalysisCoordinator()
    result = coordinator.analyze(
        "SELECT * FROM orders WHERE status = 'open'",
        ConnectionSettings(engine=Engine.MYSQL, user="root", database="shop"),
    )
    for rec in result.recommendations:
        print(rec.severity, rec.message)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, TypeVar

from queryadvisor.analyzer.context import RuleContext
from queryadvisor.analyzer.engine import RecommendationEngine
from queryadvisor.analyzer.models import AnalysisResult
from queryadvisor.analyzer.prioritizer import prioritize
from queryadvisor.config import Config, get_config
from queryadvisor.db.base import ConnectionSettings, DatabaseCollaborator, open_collaborator
from queryadvisor.db.models import IndexDescriptor, TableStatistic
from queryadvisor.exceptions import (
    InvalidQueryError,
    MetadataUnavailable,
    PlanRetrievalError,
    UnsupportedQueryError,
)
from queryadvisor.i18n import MessageCatalog, RecommendationRenderer
from queryadvisor.plan.node import Engine
from queryadvisor.plan.normalizers import detect_engine, normalize

T = TypeVar("T")

CollaboratorFactory = Callable[[ConnectionSettings], DatabaseCollaborator]


def validate_query(query_text: Any) -> str:
    """
    Trim and check a query before analysis.

    Raises:
        InvalidQueryError: Non-string, empty or blank input.
        UnsupportedQueryError: Anything that does not start with SELECT.
    """
    if not isinstance(query_text, str):
        raise InvalidQueryError()
    query = query_text.strip()
    if not query:
        raise InvalidQueryError()
    if not query.lower().startswith("select"):
        first_word = query.split(None, 1)[0]
        raise UnsupportedQueryError(statement=first_word.upper())
    return query


class AnalysisCoordinator:
    """
    Orchestrates one analysis per call.

    Instances hold no per-analysis state, so one coordinator can serve
    many calls; each call opens and closes its own session.

    Args:
        collaborator_factory: Opens a session for connection settings
            (default: open_collaborator)
        renderer: Produces recommendation text (default: catalog for
            ``config.language``)
        config: Configuration (default: get_config())
        logger: Logger for degraded-metadata warnings
        engine: Recommendation engine (default: built from ``config``)
    """

    def __init__(
        self,
        collaborator_factory: CollaboratorFactory | None = None,
        renderer: RecommendationRenderer | None = None,
        config: Config | None = None,
        logger: logging.Logger | None = None,
        engine: RecommendationEngine | None = None,
    ) -> None:
        self.config = config or get_config()
        self.collaborator_factory: CollaboratorFactory = (
            collaborator_factory
            or (lambda settings: open_collaborator(settings, self.config))
        )
        self.renderer: RecommendationRenderer = renderer or MessageCatalog(self.config.language)
        self.logger = logger or logging.getLogger(__name__)
        self.engine = engine or RecommendationEngine(config=self.config)

    def analyze(self, query_text: Any, connection: ConnectionSettings) -> AnalysisResult:
        """
        Analyze a SELECT statement against a live database.

        Raises:
            InvalidQueryError: Empty or non-string query.
            UnsupportedQueryError: Not a SELECT statement.
            ConnectionFailedError: The session could not be opened.
            PlanRetrievalError: The database could not produce a plan.
            MalformedPlanError: The plan payload was not recognized.
        """
        query = validate_query(query_text)
        self.logger.debug("Analyzing query on %s: %s", connection.engine.value, query[:80])

        degraded: list[str] = []
        with self.collaborator_factory(connection) as session:
            try:
                payload = session.get_execution_plan(query)
            except Exception as e:
                raise PlanRetrievalError(
                    f"Failed to get execution plan: {e}", cause=e
                ) from e
            if payload is None or payload == []:
                raise PlanRetrievalError(
                    f"Failed to get execution plan: {connection.engine.value} returned no plan"
                )

            table_statistics = self._fetch_metadata(
                "table_statistics", session.get_table_statistics, connection.scope, degraded
            )
            indexes = self._fetch_metadata(
                "indexes", session.get_indexes, connection.scope, degraded
            )

        return self._run_pipeline(
            payload,
            engine=connection.engine,
            table_statistics=table_statistics,
            indexes=indexes,
            query=query,
            degraded=degraded,
        )

    def analyze_plan(
        self,
        payload: Any,
        engine: Engine | str | None = None,
        table_statistics: Iterable[TableStatistic] = (),
        indexes: Iterable[IndexDescriptor] = (),
        query: str = "",
    ) -> AnalysisResult:
        """
        Analyze a saved EXPLAIN payload without a database.

        ``engine`` is detected from the payload when omitted.
        """
        if isinstance(engine, str):
            engine = Engine.from_string(engine)
        return self._run_pipeline(
            payload,
            engine=engine,
            table_statistics=list(table_statistics),
            indexes=list(indexes),
            query=query.strip(),
            degraded=[],
        )

    def _fetch_metadata(
        self,
        kind: str,
        fetch: Callable[[str | None], list[T]],
        scope: str | None,
        degraded: list[str],
    ) -> list[T]:
        try:
            return list(fetch(scope))
        except Exception as e:
            reason = MetadataUnavailable(kind, cause=e)
            self.logger.warning("%s", reason.message)
            degraded.append(reason.message)
            return []

    def _run_pipeline(
        self,
        payload: Any,
        engine: Engine | None,
        table_statistics: list[TableStatistic],
        indexes: list[IndexDescriptor],
        query: str,
        degraded: list[str],
    ) -> AnalysisResult:
        resolved_engine = engine or detect_engine(payload)
        plan = normalize(payload, resolved_engine)

        ctx = RuleContext(
            table_statistics=table_statistics,
            indexes=indexes,
            engine=resolved_engine,
            renderer=self.renderer,
        )
        recommendations = prioritize(self.engine.evaluate(plan, ctx))

        self.logger.debug(
            "Plan has %d nodes, %d recommendations",
            plan.node_count, len(recommendations),
        )

        return AnalysisResult(
            query=query,
            engine=resolved_engine,
            plan=plan,
            native_plan=payload,
            table_statistics=tuple(table_statistics),
            indexes=tuple(indexes),
            recommendations=tuple(recommendations),
            degraded_reasons=tuple(degraded),
        )
