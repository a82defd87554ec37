"""Exceptions raised while loading schema metadata."""

from __future__ import annotations


class SchemaError(Exception):
    """Base class for schema metadata failures."""

    def __init__(self, message: str, *, database: str | None = None, table: str | None = None):
        self.message = message
        self.database = database
        self.table = table
        super().__init__(message)

    @property
    def target(self) -> str:
        """The object the failure concerns, e.g. ``shop.orders`` or ``server``."""
        if self.database and self.table:
            return f"{self.database}.{self.table}"
        return self.database or "server"

    def summary(self) -> str:
        """One-line description for the status area."""
        return f"{self.message} ({self.target})"


class MetadataConnectionError(SchemaError, ConnectionError):
    """Network or authentication failure while listing metadata."""


class MetadataPermissionError(SchemaError, PermissionError):
    """The server denied a metadata listing."""


class MetadataNotFoundError(SchemaError, LookupError):
    """A listed database or table no longer exists (dropped mid-refresh)."""
