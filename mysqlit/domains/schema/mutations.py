"""Detection of statements that change what the schema cache should hold."""

from __future__ import annotations

import sqlparse
from sqlparse import tokens as T
from sqlparse.sql import Statement

from mysqlit.domains.schema.snapshot import SchemaSnapshot
from mysqlit.shared.core.utils import fold

DDL_STATEMENT_TYPES = frozenset({"CREATE", "DROP", "ALTER"})
SCHEMA_OBJECT_KEYWORDS = frozenset({"DATABASE", "SCHEMA", "TABLE", "VIEW"})

# CREATE [OR REPLACE] [TEMPORARY] [ALGORITHM = x] ... TABLE/VIEW sits within this many words
_LEADING_WORD_LIMIT = 8


def _leading_words(statement: Statement, limit: int = _LEADING_WORD_LIMIT) -> list[str]:
    words: list[str] = []
    for token in statement.flatten():
        if token.is_whitespace or token.ttype in T.Comment:
            continue
        if token.ttype in T.Punctuation:
            if token.value == ";":
                break
            continue
        words.append(token.value)
        if len(words) >= limit:
            break
    return words


def _unquote(name: str) -> str:
    if len(name) >= 2 and name[0] == name[-1] and name[0] in "`\"'":
        return name[1:-1]
    return name


def statement_changes_schema(sql: str, snapshot: SchemaSnapshot | None = None) -> bool:
    """Check whether executing ``sql`` makes the cached schema out of date.

    True for CREATE/DROP/ALTER of a database, schema, table or view, for
    RENAME TABLE, and for USE of a database the snapshot does not know.

    Args:
        sql: One or more statements as typed by the user
        snapshot: Current snapshot, consulted for USE targets

    Returns:
        True if a schema refresh should follow the statement
    """
    for statement in sqlparse.parse(sql):
        words = _leading_words(statement)
        if not words:
            continue
        # "CREATE OR REPLACE" arrives as a single keyword token
        first = words[0].upper().split()[0]
        kind = statement.get_type().split()[0]

        if kind in DDL_STATEMENT_TYPES or first in DDL_STATEMENT_TYPES:
            if any(word.upper() in SCHEMA_OBJECT_KEYWORDS for word in words[1:]):
                return True
            continue

        if first == "RENAME":
            return True

        if first == "USE" and len(words) > 1:
            database = _unquote(words[1])
            if snapshot is None or not snapshot.has_database(database):
                return True

    return False


def used_database(sql: str) -> str | None:
    """Return the database named by the last ``USE`` statement in ``sql``."""
    target = None
    for statement in sqlparse.parse(sql):
        words = _leading_words(statement, limit=2)
        if len(words) == 2 and fold(words[0]) == "use":
            target = _unquote(words[1])
    return target
