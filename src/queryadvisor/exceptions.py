"""
Package-level exception hierarchy for QueryAdvisor.

All exceptions inherit from QueryAdvisorError, enabling:
- Catching every library error with a single except clause
- Context fields for debugging (engine, metadata kind, config key)
- Structured serialization via to_dict() for JSON error output

Hierarchy:
    QueryAdvisorError
    ├── QueryValidationError     – The query text was rejected before analysis
    │   ├── InvalidQueryError    – Empty, blank or non-string input
    │   └── UnsupportedQueryError – Not a SELECT statement
    ├── MalformedPlanError       – Native plan payload not recognized
    ├── PlanRetrievalError       – The database could not produce a plan
    ├── MetadataUnavailable      – Statistics/index lookup failed (recoverable)
    ├── RuleError                – A rule raised while checking a node
    ├── ConnectionFailedError    – Could not open a database session
    └── ConfigurationError       – Invalid configuration or locale
"""

from __future__ import annotations

from typing import Any


class QueryAdvisorError(Exception):
    """
    Base exception for all QueryAdvisor errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON error responses."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
        }


# ── Validation Errors ────────────────────────────────────────────────────


class QueryValidationError(QueryAdvisorError):
    """The query text was rejected before any database work was done."""
    pass


class InvalidQueryError(QueryValidationError):
    """Raised for empty, blank or non-string query input."""

    def __init__(self, message: str = "Empty query provided") -> None:
        super().__init__(message)


class UnsupportedQueryError(QueryValidationError):
    """
    Raised when the statement is not a SELECT.

    Attributes:
        statement: First keyword of the rejected statement.
    """

    def __init__(self, statement: str = "") -> None:
        self.statement = statement
        super().__init__("Only SELECT queries can be analyzed")

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.statement:
            result["statement"] = self.statement
        return result


# ── Plan Errors ──────────────────────────────────────────────────────────


class MalformedPlanError(QueryAdvisorError):
    """
    Raised when a native plan payload lacks a recognizable node-type field.

    Attributes:
        engine: Engine whose normalizer rejected the payload.
        detail: What was missing or unexpected.
    """

    def __init__(
        self,
        message: str,
        engine: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.engine = engine
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.engine:
            result["engine"] = self.engine
        if self.detail:
            result["detail"] = self.detail
        return result


class PlanRetrievalError(QueryAdvisorError):
    """
    Raised when the database collaborator cannot produce an execution plan.

    The underlying driver exception is kept on ``cause`` and is also
    chained via ``raise ... from``.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.cause = cause
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result


class MetadataUnavailable(QueryAdvisorError):
    """
    Statistics or index metadata could not be fetched.

    Never fatal: the coordinator records it and continues with an
    empty collection.

    Attributes:
        kind: "table_statistics" or "indexes".
    """

    def __init__(self, kind: str, cause: BaseException | None = None) -> None:
        self.kind = kind
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Could not fetch {kind}{detail}")

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["kind"] = self.kind
        return result


# ── Infrastructure Errors ────────────────────────────────────────────────


class ConnectionFailedError(QueryAdvisorError):
    """
    Could not open a session to the database.

    Attributes:
        engine: Target engine ("mysql" or "postgresql").
        cause: The driver exception.
    """

    def __init__(
        self,
        message: str,
        engine: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.engine = engine
        self.cause = cause
        super().__init__(message)


class ConfigurationError(QueryAdvisorError):
    """
    Invalid configuration value or unsupported locale.

    Attributes:
        config_key: The offending key, when known.
    """

    def __init__(self, message: str, config_key: str | None = None) -> None:
        self.config_key = config_key
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.config_key:
            result["config_key"] = self.config_key
        return result


# ── Rule Errors ──────────────────────────────────────────────────────────


class RuleError(QueryAdvisorError):
    """
    A rule raised while checking a plan node.

    Attributes:
        rule_id: The ID of the rule that failed.
        original_error: The underlying exception.
        node_type: Native type of the node being checked, if known.
    """

    def __init__(
        self,
        rule_id: str,
        original_error: Exception,
        node_type: str | None = None,
    ) -> None:
        self.rule_id = rule_id
        self.original_error = original_error
        self.node_type = node_type
        location = f" at {node_type}" if node_type else ""
        super().__init__(
            f"Rule {rule_id} failed{location}: "
            f"{type(original_error).__name__}: {original_error}"
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["rule_id"] = self.rule_id
        if self.node_type:
            result["node_type"] = self.node_type
        return result
