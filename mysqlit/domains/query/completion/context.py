"""Completion context detection.

Decides what kind of token is expected at the cursor by scanning backwards
from the partial token to the nearest keyword that establishes context.
Parenthesised groups that are closed before the cursor are skipped as a unit,
and a ``;`` ends the scan (the cursor is in a new statement).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Union

from mysqlit.shared.core.utils import fold

from .core import SHOW_MODIFIER_KEYWORDS, is_reserved
from .tokenizer import Token, TokenKind

logger = logging.getLogger(__name__)


class MalformedInputIgnored(ValueError):
    """Input the classifier cannot make sense of; completion declines to guess."""


@dataclass(frozen=True)
class TableRef:
    """A table reference with optional database qualifier and alias."""

    name: str
    database: str | None = None
    alias: str | None = None


@dataclass(frozen=True)
class StatementStart:
    """Nothing establishes context yet: suggest statement keywords."""


@dataclass(frozen=True)
class AfterFrom:
    """A table name is expected, optionally inside a typed ``db.`` qualifier."""

    preceding_database: str | None = None


@dataclass(frozen=True)
class AfterUse:
    """A database name is expected."""


@dataclass(frozen=True)
class AfterShowKeyword:
    """A SHOW sub-keyword is expected (``modifier`` is e.g. CREATE or FULL)."""

    modifier: str | None = None


@dataclass(frozen=True)
class ColumnContext:
    """A column name is expected.

    ``tables_in_scope`` lists the tables referenced by the statement; when
    ``qualifier`` is set the user typed ``qualifier.`` and the scope is only
    the table(s) that qualifier names.
    """

    tables_in_scope: tuple[TableRef, ...] = ()
    qualifier: str | None = None


@dataclass(frozen=True)
class AfterExpression:
    """A complete expression or table reference precedes the cursor.

    ``clause`` keys into ``CLAUSE_CONTINUATIONS``.
    """

    clause: str


@dataclass(frozen=True)
class Unknown:
    """Completion declines to guess."""

    reason: str = ""


CompletionContext = Union[
    StatementStart,
    AfterFrom,
    AfterUse,
    AfterShowKeyword,
    ColumnContext,
    AfterExpression,
    Unknown,
]

TABLE_KEYWORDS = frozenset({"FROM", "JOIN", "INTO", "UPDATE", "DESCRIBE", "TABLE"})
COLUMN_KEYWORDS = frozenset({"SELECT", "WHERE", "ON", "HAVING", "SET"})
STATEMENT_LEVEL_TABLE_KEYWORDS = frozenset({"DESC", "EXPLAIN"})
# Literal positions: nothing to suggest anywhere after these
LITERAL_KEYWORDS = frozenset({"VALUES", "VALUE", "LIMIT", "OFFSET", "INTERVAL"})
# New names or patterns follow directly after these
NAMING_KEYWORDS = frozenset({"AS", "LIKE", "REGEXP"})
# SHOW <listing> FROM|IN <database>
SHOW_DATABASE_LISTINGS = frozenset({"TABLES", "TRIGGERS", "EVENTS", "STATUS"})
REF_KEYWORDS = frozenset({"FROM", "JOIN", "INTO", "UPDATE"})


def locate_partial(tokens: Sequence[Token], cursor: int) -> int:
    """Index of the partial token, or ``len(tokens)`` when it is empty.

    The partial token is the token ending exactly at the cursor. Literals and
    comments still open at the cursor count too, so the classifier can
    decline them.
    """
    if tokens:
        last = tokens[-1]
        if last.end == cursor and (
            last.is_word_like or last.kind is TokenKind.STRING_LITERAL or not last.terminated
        ):
            return len(tokens) - 1
    return len(tokens)


def current_statement(tokens: Sequence[Token], cursor: int) -> list[Token]:
    """Tokens of the statement containing ``cursor`` (bounded by ``;``)."""
    start = 0
    end = len(tokens)
    for i, token in enumerate(tokens):
        if not token.is_punct(";"):
            continue
        if token.end <= cursor:
            start = i + 1
        else:
            end = i
            break
    return list(tokens[start:end])


def extract_table_refs(tokens: Iterable[Token]) -> list[TableRef]:
    """Extract table references following FROM, JOIN, INTO and UPDATE.

    Handles ``db.table``, ``table alias``, ``table AS alias`` and
    comma-separated FROM lists. Subqueries and incomplete references are
    skipped.
    """
    toks = [t for t in tokens if t.kind is not TokenKind.COMMENT]
    refs: list[TableRef] = []
    for i, token in enumerate(toks):
        keyword = token.upper
        if keyword not in REF_KEYWORDS:
            continue
        j = i + 1
        while True:
            ref, j = _parse_ref(toks, j)
            if ref is None:
                break
            refs.append(ref)
            if keyword == "FROM" and j < len(toks) and toks[j].is_punct(","):
                j += 1
                continue
            break
    return refs


def _is_name(token: Token) -> bool:
    if token.kind is not TokenKind.WORD or token.text == "*":
        return False
    return token.quoted or not is_reserved(token.value)


def _parse_ref(toks: Sequence[Token], j: int) -> tuple[TableRef | None, int]:
    if j >= len(toks) or not _is_name(toks[j]):
        return None, j
    name = toks[j].value
    database = None
    j += 1
    if j < len(toks) and toks[j].is_punct("."):
        if j + 1 < len(toks) and _is_name(toks[j + 1]):
            database, name = name, toks[j + 1].value
            j += 2
        else:
            return None, j
    alias = None
    if j < len(toks) and toks[j].upper == "AS":
        j += 1
    if j < len(toks) and _is_name(toks[j]):
        alias = toks[j].value
        j += 1
    return TableRef(name=name, database=database, alias=alias), j


def _ends_expression(token: Token) -> bool:
    """Whether ``token`` can be the last token of a complete expression."""
    if token.kind is TokenKind.STRING_LITERAL:
        return True
    if token.is_punct(")"):
        return True
    if token.upper in ("ASC", "DESC"):
        return True
    if token.kind is TokenKind.WORD:
        return token.text == "*" or token.quoted or not is_reserved(token.value)
    return False


def _matching_open(tokens: Sequence[Token], close_index: int) -> int:
    """Index of the ``(`` matching the ``)`` at ``close_index``."""
    depth = 0
    for i in range(close_index, -1, -1):
        if tokens[i].is_punct(")"):
            depth += 1
        elif tokens[i].is_punct("("):
            depth -= 1
            if depth == 0:
                return i
        elif tokens[i].is_punct(";"):
            break
    raise MalformedInputIgnored(f"unbalanced ')' at offset {tokens[close_index].start}")


def _open_depth(tokens: Sequence[Token]) -> int:
    depth = 0
    for token in tokens:
        if token.is_punct("("):
            depth += 1
        elif token.is_punct(")"):
            depth -= 1
    return depth


def _at_statement_start(before: Sequence[Token], i: int) -> bool:
    return i == 0 or before[i - 1].is_punct(";")


def _follows_show_listing(before: Sequence[Token], i: int) -> bool:
    """``SHOW [FULL] TABLES FROM`` and friends take a database, not a table."""
    j = i - 1
    if j < 0 or before[j].upper not in SHOW_DATABASE_LISTINGS:
        return False
    return any(t.upper == "SHOW" for t in before[max(0, j - 2) : j])


def classify(
    tokens: Iterable[Token],
    partial_index: int,
    *,
    statement_tokens: Sequence[Token] | None = None,
) -> CompletionContext:
    """Classify what is syntactically expected at the partial token.

    Args:
        tokens: Tokens of the buffer up to the cursor
        partial_index: Index of the partial token, ``len(tokens)`` if empty
        statement_tokens: Tokens of the whole statement around the cursor,
            text after the cursor included; used to find the tables in scope.
            Defaults to the current statement within ``tokens``.

    Returns:
        The completion context. Malformed input yields :class:`Unknown`.
    """
    toks = list(tokens)
    if partial_index < len(toks) and not toks[partial_index].is_word_like:
        return Unknown("cursor inside a literal or comment")

    if statement_tokens is None:
        start = 0
        for i in range(min(partial_index, len(toks)) - 1, -1, -1):
            if toks[i].is_punct(";"):
                start = i + 1
                break
        statement_tokens = toks[start:]

    try:
        return _classify(toks, partial_index, statement_tokens)
    except MalformedInputIgnored as e:
        logger.debug("Completion context unknown: %s", e)
        return Unknown(str(e))


def _classify(
    toks: Sequence[Token], partial_index: int, statement_tokens: Sequence[Token]
) -> CompletionContext:
    before = [t for t in toks[:partial_index] if t.kind is not TokenKind.COMMENT]

    qualifier = None
    if len(before) >= 2 and before[-1].is_punct(".") and _is_name(before[-2]):
        qualifier = before[-2].value

    i = len(before) - 1
    while i >= 0:
        token = before[i]
        if token.is_punct(";"):
            return StatementStart()
        if token.is_punct(")"):
            i = _matching_open(before, i) - 1
            continue
        keyword = token.upper
        if keyword:
            context = _context_for_keyword(before, i, keyword, qualifier, statement_tokens)
            if context is not None:
                return context
        i -= 1

    return StatementStart()


def _context_for_keyword(
    before: Sequence[Token],
    i: int,
    keyword: str,
    qualifier: str | None,
    statement_tokens: Sequence[Token],
) -> CompletionContext | None:
    """Context established by the keyword at ``before[i]``, or None to keep scanning."""
    between = before[i + 1 :]
    prev = before[i - 1].upper if i > 0 else ""

    if keyword in ("FROM", "IN") and _follows_show_listing(before, i):
        return AfterUse() if not between else Unknown("after SHOW database")

    if keyword in TABLE_KEYWORDS or (
        keyword in STATEMENT_LEVEL_TABLE_KEYWORDS and _at_statement_start(before, i)
    ):
        if keyword == "TABLE":
            if prev == "SHOW":
                return None
            earlier = [t.upper for t in before[max(0, i - 3) : i]]
            if "CREATE" in earlier and "SHOW" not in earlier:
                return Unknown("new table name")
        return _table_position(keyword, between)

    if keyword in ("DATABASE", "SCHEMA") and not between:
        earlier = [t.upper for t in before[max(0, i - 2) : i]]
        if "CREATE" in earlier and "SHOW" not in earlier:
            return Unknown("new database name")
        if earlier:
            return AfterUse()
        return None

    if keyword == "USE":
        return AfterUse() if not between else Unknown("after USE database")

    if keyword == "SHOW":
        if not between:
            return AfterShowKeyword()
        if len(between) == 1 and between[0].upper in SHOW_MODIFIER_KEYWORDS:
            return AfterShowKeyword(modifier=between[0].upper)
        return AfterExpression("show")

    if keyword in ("GROUP", "ORDER"):
        return AfterExpression("by") if not between else None

    if keyword in LITERAL_KEYWORDS:
        return Unknown(f"value after {keyword}")

    if keyword in NAMING_KEYWORDS:
        return Unknown(f"name after {keyword}") if not between else None

    if keyword == "BY" and prev in ("GROUP", "ORDER"):
        return _column_position(prev.lower(), before, i, qualifier, statement_tokens)

    if keyword in COLUMN_KEYWORDS:
        if keyword == "SET" and _at_statement_start(before, i):
            return Unknown("session variable")
        return _column_position(keyword.lower(), before, i, qualifier, statement_tokens)

    return None


def _table_position(keyword: str, between: Sequence[Token]) -> CompletionContext:
    """Context after a table-introducing keyword, given the tokens since it."""
    if not between:
        return AfterFrom()
    if len(between) == 2 and _is_name(between[0]) and between[1].is_punct("."):
        return AfterFrom(preceding_database=between[0].value)
    if between[0].is_punct("("):
        if len(between) == 1 and keyword in ("FROM", "JOIN"):
            return StatementStart()
        return Unknown("inside a derived table")
    if keyword == "FROM" and between[-1].is_punct(","):
        return AfterFrom()
    if keyword == "FROM" and len(between) >= 3 and between[-1].is_punct(".") and between[-3].is_punct(","):
        return AfterFrom(preceding_database=between[-2].value)

    if keyword == "INTO" and _open_depth(between) > 0:
        ref, _ = _parse_ref(between, 0)
        if ref is not None:
            return ColumnContext(tables_in_scope=(ref,))
        return Unknown("column list")

    if keyword in ("FROM", "JOIN", "UPDATE", "INTO"):
        return AfterExpression(keyword.lower())
    return Unknown(f"after {keyword} reference")


def _column_position(
    clause: str,
    before: Sequence[Token],
    i: int,
    qualifier: str | None,
    statement_tokens: Sequence[Token],
) -> CompletionContext:
    refs = extract_table_refs(statement_tokens)

    if qualifier is not None:
        key = fold(qualifier)
        scoped = [r for r in refs if r.alias is not None and fold(r.alias) == key]
        if not scoped:
            scoped = [r for r in refs if fold(r.name) == key]
        if not scoped:
            scoped = [TableRef(name=qualifier)]
        return ColumnContext(tables_in_scope=tuple(scoped), qualifier=qualifier)

    last = before[-1]
    if len(before) - 1 > i and _ends_expression(last):
        return AfterExpression(clause)
    return ColumnContext(tables_in_scope=tuple(refs))
