"""Core SQL completion data: keyword tables, candidates and ranking."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum, auto

from mysqlit.shared.core.utils import fold, starts_with_folded


class CandidateKind(Enum):
    """Semantic kind of a completion candidate."""

    KEYWORD = auto()
    DATABASE = auto()
    TABLE = auto()
    COLUMN = auto()
    SUB_COMMAND = auto()


@dataclass(frozen=True)
class Candidate:
    """A single proposed completion."""

    text: str
    kind: CandidateKind
    detail: str = ""

    @classmethod
    def keyword(cls, text: str) -> Candidate:
        return cls(text, CandidateKind.KEYWORD, "SQL keyword")

    @classmethod
    def sub_command(cls, text: str, after: str = "SHOW") -> Candidate:
        return cls(text, CandidateKind.SUB_COMMAND, f"{after} {text}")

    @classmethod
    def database(cls, name: str) -> Candidate:
        return cls(name, CandidateKind.DATABASE, f"Database: {name}")

    @classmethod
    def table(cls, name: str, database: str) -> Candidate:
        return cls(name, CandidateKind.TABLE, f"Table: {name} (in {database})")

    @classmethod
    def column(cls, name: str, table: str) -> Candidate:
        return cls(name, CandidateKind.COLUMN, f"Column: {name} (from {table})")


# Keywords that can begin a statement
STATEMENT_KEYWORDS = [
    "ALTER",
    "ANALYZE",
    "BEGIN",
    "CALL",
    "CHECKSUM",
    "COMMIT",
    "CREATE",
    "DELETE",
    "DESC",
    "DESCRIBE",
    "DO",
    "DROP",
    "EXPLAIN",
    "FLUSH",
    "GRANT",
    "HANDLER",
    "HELP",
    "INSERT",
    "KILL",
    "LOAD",
    "LOCK",
    "OPTIMIZE",
    "PREPARE",
    "RELEASE",
    "RENAME",
    "REPAIR",
    "REPLACE",
    "RESET",
    "REVOKE",
    "ROLLBACK",
    "SAVEPOINT",
    "SELECT",
    "SET",
    "SHOW",
    "START",
    "TABLE",
    "TRUNCATE",
    "UNLOCK",
    "UPDATE",
    "USE",
    "VALUES",
    "WITH",
]

# Words following SHOW
SHOW_SUB_KEYWORDS = [
    "BINARY",
    "CHARACTER",
    "CHARSET",
    "COLLATION",
    "COLUMNS",
    "CREATE",
    "DATABASES",
    "ENGINE",
    "ENGINES",
    "ERRORS",
    "EVENTS",
    "FIELDS",
    "FULL",
    "FUNCTION",
    "GLOBAL",
    "GRANTS",
    "INDEX",
    "INDEXES",
    "KEYS",
    "MASTER",
    "OPEN",
    "PLUGINS",
    "PRIVILEGES",
    "PROCEDURE",
    "PROCESSLIST",
    "PROFILE",
    "PROFILES",
    "REPLICA",
    "SCHEMAS",
    "SESSION",
    "SLAVE",
    "STATUS",
    "TABLE",
    "TABLES",
    "TRIGGERS",
    "VARIABLES",
    "WARNINGS",
]

# Words following SHOW <modifier>
SHOW_MODIFIER_KEYWORDS = {
    "CREATE": ["DATABASE", "EVENT", "FUNCTION", "PROCEDURE", "SCHEMA", "TABLE", "TRIGGER", "USER", "VIEW"],
    "FULL": ["COLUMNS", "FIELDS", "PROCESSLIST", "TABLES"],
    "GLOBAL": ["STATUS", "VARIABLES"],
    "SESSION": ["STATUS", "VARIABLES"],
    "TABLE": ["STATUS"],
    "OPEN": ["TABLES"],
    "ENGINE": ["STATUS", "MUTEX"],
    "CHARACTER": ["SET"],
}

# Keywords that may continue a clause after a complete expression or table reference
CLAUSE_CONTINUATIONS = {
    "select": ["AS", "FROM", "INTO"],
    "from": [
        "AS",
        "CROSS",
        "FOR",
        "GROUP",
        "HAVING",
        "INNER",
        "JOIN",
        "LEFT",
        "LIMIT",
        "NATURAL",
        "ORDER",
        "RIGHT",
        "STRAIGHT_JOIN",
        "UNION",
        "WHERE",
        "WINDOW",
    ],
    "join": ["AS", "ON", "USING"],
    "where": [
        "AND",
        "BETWEEN",
        "GROUP",
        "HAVING",
        "IN",
        "IS",
        "LIKE",
        "LIMIT",
        "NOT",
        "OR",
        "ORDER",
        "REGEXP",
        "RLIKE",
        "UNION",
    ],
    "on": ["AND", "CROSS", "INNER", "JOIN", "LEFT", "NATURAL", "OR", "RIGHT", "WHERE", "GROUP", "ORDER", "LIMIT"],
    "group": ["ASC", "DESC", "HAVING", "LIMIT", "ORDER", "WITH"],
    "order": ["ASC", "DESC", "LIMIT"],
    "having": ["AND", "LIMIT", "OR", "ORDER"],
    "set": ["WHERE", "ORDER", "LIMIT"],
    "by": ["BY"],
    "show": ["FROM", "IN", "LIKE", "WHERE"],
    "update": ["AS", "SET"],
    "into": ["SELECT", "SET", "VALUE", "VALUES"],
}

# Reserved words: never table aliases, never the end of an expression
RESERVED_WORDS = {
    "all",
    "and",
    "as",
    "asc",
    "between",
    "by",
    "case",
    "cross",
    "delete",
    "desc",
    "distinct",
    "distinctrow",
    "else",
    "end",
    "exists",
    "for",
    "force",
    "from",
    "full",
    "group",
    "having",
    "high_priority",
    "ignore",
    "in",
    "inner",
    "insert",
    "interval",
    "into",
    "is",
    "join",
    "left",
    "like",
    "limit",
    "natural",
    "not",
    "null",
    "on",
    "or",
    "order",
    "outer",
    "partition",
    "regexp",
    "right",
    "rlike",
    "select",
    "set",
    "sql_calc_found_rows",
    "sql_no_cache",
    "straight_join",
    "then",
    "union",
    "update",
    "use",
    "using",
    "values",
    "when",
    "where",
    "window",
    "with",
    "xor",
}


def is_reserved(word: str) -> bool:
    return fold(word) in RESERVED_WORDS


def filter_by_prefix(candidates: Iterable[Candidate], partial: str) -> list[Candidate]:
    """Keep candidates whose text starts with ``partial`` (ASCII case-insensitive)."""
    return [c for c in candidates if starts_with_folded(c.text, partial)]


def deduplicate(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Drop case-insensitive duplicates, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[Candidate] = []
    for candidate in candidates:
        key = fold(candidate.text)
        if key not in seen:
            seen.add(key)
            unique.append(candidate)
    return unique


def rank(candidates: Iterable[Candidate], partial: str) -> list[Candidate]:
    """Order candidates for display.

    Exact (case-insensitive) matches first, then shorter before longer, then
    case-insensitive alphabetical. With an empty partial nothing is an exact
    match, so length decides first.
    """
    target = fold(partial)
    return sorted(
        candidates,
        key=lambda c: (fold(c.text) != target, len(c.text), fold(c.text), c.text),
    )


def longest_common_prefix(candidates: Sequence[Candidate], partial: str = "") -> str:
    """Longest case-insensitive common prefix of the candidates' texts.

    The spelling of the first candidate is returned. When there is no
    candidate, or the common prefix is not longer than ``partial``, the
    partial text itself is returned so inserting it is a no-op.
    """
    if not candidates:
        return partial
    first = candidates[0].text
    length = len(first)
    folded_first = fold(first)
    for candidate in candidates[1:]:
        other = fold(candidate.text)
        length = min(length, len(other))
        for i in range(length):
            if folded_first[i] != other[i]:
                length = i
                break
    if length <= len(partial):
        return partial
    return first[:length]
