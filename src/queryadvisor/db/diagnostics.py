"""
Troubleshooting hints for failed connections.

Classifies a connection error as "refused" (server not reachable) or
"auth" (login rejected) and returns the matching steps from the message
catalog. Classification looks at driver error codes where the driver
exposes them and falls back to the message text.
"""

from __future__ import annotations

from queryadvisor.i18n import MessageCatalog
from queryadvisor.plan.node import Engine

# PyMySQL: CR_CONN_HOST_ERROR, ER_ACCESS_DENIED_ERROR, ER_DBACCESS_DENIED_ERROR
_MYSQL_REFUSED_CODES = frozenset({2003})
_MYSQL_AUTH_CODES = frozenset({1044, 1045})

_REFUSED_MARKERS = ("connection refused", "can't connect", "could not connect", "econnrefused")
_AUTH_MARKERS = ("access denied", "password authentication failed", "er_access_denied_error")


def classify_connection_error(error: BaseException) -> str | None:
    """Return ``"refused"``, ``"auth"`` or None when the cause is unclear."""
    cause = getattr(error, "cause", None) or error.__cause__ or error

    args = getattr(cause, "args", ())
    code = args[0] if args and isinstance(args[0], int) else None
    if code in _MYSQL_REFUSED_CODES:
        return "refused"
    if code in _MYSQL_AUTH_CODES:
        return "auth"

    text = str(cause).lower()
    if any(marker in text for marker in _AUTH_MARKERS):
        return "auth"
    if any(marker in text for marker in _REFUSED_MARKERS):
        return "refused"
    return None


def connection_hints(
    error: BaseException,
    engine: Engine,
    catalog: MessageCatalog | None = None,
) -> list[str]:
    """
    Troubleshooting steps for ``error``, or an empty list.

    The first element is the localized "Possible solutions:" title.
    """
    catalog = catalog or MessageCatalog()
    kind = classify_connection_error(error)
    if kind is None:
        return []

    if kind == "refused":
        key = f"connection.solutions.{engine.value}"
    elif engine is Engine.POSTGRESQL:
        key = "connection.solutions.auth_postgresql"
    else:
        key = "connection.solutions.auth"

    steps = catalog.lines(key)
    if not steps:
        return []
    return [catalog.text("connection.solutions.title"), *steps]
