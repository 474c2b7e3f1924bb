"""Database collaborators: plans and metadata fetched from live servers."""

from queryadvisor.db.base import (
    ConnectionSettings,
    DatabaseCollaborator,
    DEFAULT_PORTS,
    open_collaborator,
)
from queryadvisor.db.diagnostics import classify_connection_error, connection_hints
from queryadvisor.db.models import IndexDescriptor, TableStatistic, group_index_columns

__all__ = [
    "ConnectionSettings",
    "DEFAULT_PORTS",
    "DatabaseCollaborator",
    "IndexDescriptor",
    "TableStatistic",
    "classify_connection_error",
    "connection_hints",
    "group_index_columns",
    "open_collaborator",
]
