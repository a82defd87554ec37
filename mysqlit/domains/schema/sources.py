"""Metadata sources: the connection collaborator the schema cache reads from."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import pymysql
import pymysql.cursors

from mysqlit.domains.schema.exceptions import (
    MetadataConnectionError,
    MetadataNotFoundError,
    MetadataPermissionError,
)
from mysqlit.shared.core.utils import fold, quote_identifier

logger = logging.getLogger(__name__)

# MySQL server error codes that mean "not allowed to see this"
PERMISSION_ERROR_CODES = frozenset(
    {
        1044,  # ER_DBACCESS_DENIED_ERROR
        1045,  # ER_ACCESS_DENIED_ERROR
        1142,  # ER_TABLEACCESS_DENIED_ERROR
        1143,  # ER_COLUMNACCESS_DENIED_ERROR
        1227,  # ER_SPECIFIC_ACCESS_DENIED_ERROR
        1370,  # ER_PROCACCESS_DENIED_ERROR
    }
)

# The object was dropped between listing it and inspecting it
NOT_FOUND_ERROR_CODES = frozenset(
    {
        1049,  # ER_BAD_DB_ERROR
        1146,  # ER_NO_SUCH_TABLE
    }
)


def _error_code(error: BaseException) -> int | None:
    if error.args and isinstance(error.args[0], int):
        return error.args[0]
    return None


class PyMySQLMetadataSource:
    """Lists metadata over an already-open PyMySQL connection.

    Uses SHOW statements, which MySQL and MariaDB both answer in ordinal
    order and which only report objects the current user may see. Rows are
    read through a plain tuple cursor even when the connection was opened
    with another cursor class.
    """

    def __init__(self, connection: Any):
        self._connection = connection

    def list_databases(self) -> list[str]:
        return [row[0] for row in self._query("SHOW DATABASES")]

    def list_tables(self, database: str) -> list[str]:
        rows = self._query(f"SHOW TABLES FROM {quote_identifier(database)}", database=database)
        return [row[0] for row in rows]

    def list_columns(self, database: str, table: str) -> list[str]:
        sql = f"SHOW COLUMNS FROM {quote_identifier(database)}.{quote_identifier(table)}"
        return [row[0] for row in self._query(sql, database=database, table=table)]

    def _query(self, sql: str, *, database: str | None = None, table: str | None = None) -> list[tuple]:
        try:
            with self._connection.cursor(pymysql.cursors.Cursor) as cursor:
                cursor.execute(sql)
                return list(cursor.fetchall())
        except pymysql.err.MySQLError as e:
            code = _error_code(e)
            message = e.args[1] if len(e.args) > 1 else str(e)
            if code in PERMISSION_ERROR_CODES:
                raise MetadataPermissionError(str(message), database=database, table=table) from e
            if code in NOT_FOUND_ERROR_CODES:
                raise MetadataNotFoundError(str(message), database=database, table=table) from e
            raise MetadataConnectionError(str(message), database=database, table=table) from e
        except OSError as e:
            raise MetadataConnectionError(str(e), database=database, table=table) from e


class InMemoryMetadataSource:
    """Serves metadata from a nested mapping ``{database: {table: [columns]}}``.

    Used by tests and demos in place of a live server.
    """

    def __init__(self, schema: Mapping[str, Mapping[str, Sequence[str]]] | None = None):
        self._schema = {db: {t: list(cols) for t, cols in tables.items()} for db, tables in (schema or {}).items()}
        self.calls: list[tuple[str, ...]] = []

    def list_databases(self) -> list[str]:
        self.calls.append(("list_databases",))
        return list(self._schema)

    def list_tables(self, database: str) -> list[str]:
        self.calls.append(("list_tables", database))
        return list(self._tables(database))

    def list_columns(self, database: str, table: str) -> list[str]:
        self.calls.append(("list_columns", database, table))
        tables = self._tables(database)
        for name, columns in tables.items():
            if fold(name) == fold(table):
                return list(columns)
        return []

    def _tables(self, database: str) -> dict[str, list[str]]:
        for name, tables in self._schema.items():
            if fold(name) == fold(database):
                return tables
        return {}
