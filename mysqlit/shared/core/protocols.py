"""Protocols for the collaborators around the completion core.

The completion engine and schema cache depend on these interfaces only, so
tests can substitute in-memory doubles for a live server connection.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mysqlit.domains.schema.snapshot import SchemaSnapshot


@runtime_checkable
class MetadataSource(Protocol):
    """Protocol for the connection collaborator queried during a schema refresh.

    Every method fails with a ``ConnectionError`` (network or auth failure) or
    a ``PermissionError`` (the server refuses the metadata listing).
    """

    def list_databases(self) -> Sequence[str]:
        """List database names visible to the current user."""
        ...

    def list_tables(self, database: str) -> Sequence[str]:
        """List table names in a database.

        Args:
            database: Database name as reported by ``list_databases``.
        """
        ...

    def list_columns(self, database: str, table: str) -> Sequence[str]:
        """List column names of a table in server ordinal order.

        Args:
            database: Database name.
            table: Table name as reported by ``list_tables``.
        """
        ...


@runtime_checkable
class SnapshotProvider(Protocol):
    """Anything that publishes the latest schema snapshot (the schema cache)."""

    def current(self) -> SchemaSnapshot:
        """Return the latest fully built snapshot without blocking."""
        ...
