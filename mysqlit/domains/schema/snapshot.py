"""Immutable, versioned snapshots of server schema metadata.

A snapshot is built once by :class:`SnapshotBuilder` and never changes
afterwards; the schema cache publishes a new one on every refresh. Lookups are
keyed on ASCII-folded names while the sets and sequences keep the server's
original spelling for display.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from mysqlit.shared.core.utils import fold

_EMPTY_TABLES: frozenset[str] = frozenset()


@dataclass(frozen=True, eq=False)
class SchemaSnapshot:
    """Point-in-time copy of databases, tables and columns."""

    databases: frozenset[str] = frozenset()
    tables_by_database: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    columns_by_table: Mapping[tuple[str, str], tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    version: int = 0
    created_at: float = field(default_factory=time.monotonic)

    @classmethod
    def empty(cls) -> SchemaSnapshot:
        """The snapshot served before the first successful refresh."""
        return cls()

    @property
    def is_loaded(self) -> bool:
        return self.version > 0

    def find_database(self, name: str) -> str | None:
        """Return the database's display name, matching case-insensitively."""
        key = fold(name)
        for database in self.databases:
            if fold(database) == key:
                return database
        return None

    def has_database(self, name: str) -> bool:
        return self.find_database(name) is not None

    def tables_in(self, database: str) -> frozenset[str]:
        """Tables of ``database``; empty when the database is unknown."""
        return self.tables_by_database.get(fold(database), _EMPTY_TABLES)

    def has_tables_for(self, database: str) -> bool:
        """Whether the table list of ``database`` was loaded."""
        return fold(database) in self.tables_by_database

    def columns_of(self, database: str, table: str) -> tuple[str, ...]:
        """Columns of ``database.table`` in ordinal order; empty when unknown."""
        return self.columns_by_table.get((fold(database), fold(table)), ())

    def has_columns_for(self, database: str, table: str) -> bool:
        return (fold(database), fold(table)) in self.columns_by_table

    def age(self) -> float:
        return time.monotonic() - self.created_at

    def is_stale(self, max_age: float | None) -> bool:
        """True when never loaded or older than ``max_age`` seconds."""
        if not self.is_loaded:
            return True
        if max_age is None:
            return False
        return self.age() > max_age


class SnapshotBuilder:
    """Mutable staging area for the next snapshot.

    Only the refresh path touches a builder; readers only ever see the frozen
    result of :meth:`build`.
    """

    def __init__(self) -> None:
        self._databases: dict[str, str] = {}
        self._tables: dict[str, dict[str, str]] = {}
        self._columns: dict[tuple[str, str], tuple[str, ...]] = {}

    def add_database(self, name: str) -> None:
        self._databases.setdefault(fold(name), name)

    def set_tables(self, database: str, tables: Iterable[str]) -> None:
        self.add_database(database)
        table_map: dict[str, str] = {}
        for table in tables:
            table_map.setdefault(fold(table), table)
        self._tables[fold(database)] = table_map

    def set_columns(self, database: str, table: str, columns: Iterable[str]) -> None:
        self._columns[(fold(database), fold(table))] = tuple(columns)

    def drop_database(self, database: str) -> None:
        """Forget a database and everything staged under it."""
        db_key = fold(database)
        self._databases.pop(db_key, None)
        self._tables.pop(db_key, None)
        for key in [key for key in self._columns if key[0] == db_key]:
            del self._columns[key]

    def drop_table(self, database: str, table: str) -> None:
        self._tables.get(fold(database), {}).pop(fold(table), None)
        self._columns.pop((fold(database), fold(table)), None)

    def carry_over_database(self, previous: SchemaSnapshot, database: str) -> None:
        """Copy a database's tables and columns from the previous snapshot."""
        if not previous.has_tables_for(database):
            return
        db_key = fold(database)
        self.set_tables(database, previous.tables_in(database))
        for key, columns in previous.columns_by_table.items():
            if key[0] == db_key:
                self._columns[key] = columns

    def carry_over_table(self, previous: SchemaSnapshot, database: str, table: str) -> None:
        """Copy one table's columns from the previous snapshot."""
        if previous.has_columns_for(database, table):
            self.set_columns(database, table, previous.columns_of(database, table))

    def build(self, version: int) -> SchemaSnapshot:
        return SchemaSnapshot(
            databases=frozenset(self._databases.values()),
            tables_by_database=MappingProxyType(
                {db: frozenset(tables.values()) for db, tables in self._tables.items()}
            ),
            columns_by_table=MappingProxyType(dict(self._columns)),
            version=version,
        )
