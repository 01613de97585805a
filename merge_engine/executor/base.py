"""Abstract interfaces for the engine's external collaborators.

The merge engine never talks to a driver directly.  Statement execution,
catalog introspection and metadata stamping all go through the protocols
below so that synthesis and the safety gate stay backend-agnostic and can
be tested with in-memory fakes.
"""

from __future__ import annotations

from typing import Any, Protocol

from merge_engine.models.columns import ColumnInfo


class ExecutionBackend(Protocol):
    """Structural interface for statement execution.

    Implementations are **not** required to subclass this protocol; they only
    need to expose methods with matching signatures (duck typing).
    """

    def execute(self, statement: str) -> int:
        """Execute *statement* and return the number of rows it reports as changed.

        ``-1`` means the driver could not tell.
        """
        ...

    def scalar(self, statement: str) -> Any:
        """Execute a query and return the first column of its first row."""
        ...

    def fetch_rows(self, statement: str) -> list[dict[str, Any]]:
        """Execute a query and return every row as a column-name mapping."""
        ...

    def begin(self) -> None:
        """Open a transaction."""
        ...

    def commit(self) -> None:
        """Commit the open transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the open transaction.  Must be safe to call when none is open."""
        ...


class SchemaResolver(Protocol):
    """Structural interface for catalog introspection."""

    def exists(self, table: str) -> bool:
        """Return True if *table* resolves to an object."""
        ...

    def resolve(self, table: str) -> list[ColumnInfo]:
        """Return the ordered result shape of ``SELECT * FROM <table>``.

        Raises
        ------
        TableNotFoundError
            If *table* does not resolve.
        IntrospectionUnavailableError
            If the introspection mechanism cannot be used in this session.
        """
        ...


class MetadataRecorder(Protocol):
    """Structural interface for per-table metadata properties (upsert semantics)."""

    def ensure_property_exists(self, table: str, key: str) -> None:
        """Create property *key* on *table* if it is missing."""
        ...

    def set_property(self, table: str, key: str, value: str) -> None:
        """Set property *key* on *table* to *value*."""
        ...
