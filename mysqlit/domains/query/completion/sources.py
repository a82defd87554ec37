"""Candidate source selection: maps a completion context to candidate lists."""

from __future__ import annotations

from mysqlit.domains.schema.snapshot import SchemaSnapshot
from mysqlit.shared.core.utils import fold

from .context import (
    AfterExpression,
    AfterFrom,
    AfterShowKeyword,
    AfterUse,
    ColumnContext,
    CompletionContext,
    StatementStart,
    TableRef,
)
from .core import (
    CLAUSE_CONTINUATIONS,
    SHOW_MODIFIER_KEYWORDS,
    SHOW_SUB_KEYWORDS,
    STATEMENT_KEYWORDS,
    Candidate,
)


def candidates_for(
    context: CompletionContext,
    snapshot: SchemaSnapshot,
    active_database: str | None = None,
) -> list[Candidate]:
    """Unfiltered candidates for ``context``.

    Only the snapshot passed in is read, so one call sees one consistent
    schema no matter what the cache publishes meanwhile.
    """
    if isinstance(context, StatementStart):
        return [Candidate.keyword(k) for k in STATEMENT_KEYWORDS]

    if isinstance(context, AfterShowKeyword):
        if context.modifier:
            after = f"SHOW {context.modifier}"
            return [Candidate.sub_command(k, after) for k in SHOW_MODIFIER_KEYWORDS.get(context.modifier, [])]
        return [Candidate.sub_command(k) for k in SHOW_SUB_KEYWORDS]

    if isinstance(context, AfterUse):
        return [Candidate.database(db) for db in sorted(snapshot.databases, key=fold)]

    if isinstance(context, AfterFrom):
        return table_candidates(snapshot, context.preceding_database or active_database)

    if isinstance(context, ColumnContext):
        return column_candidates(snapshot, context, active_database)

    if isinstance(context, AfterExpression):
        return [Candidate.keyword(k) for k in CLAUSE_CONTINUATIONS.get(context.clause, [])]

    return []


def table_candidates(snapshot: SchemaSnapshot, database: str | None) -> list[Candidate]:
    """Tables of ``database``; empty when it is not given or not known."""
    if not database:
        return []
    name = snapshot.find_database(database)
    if name is None:
        return []
    return [Candidate.table(t, name) for t in sorted(snapshot.tables_in(name), key=fold)]


def resolve_table(
    snapshot: SchemaSnapshot, ref: TableRef, active_database: str | None
) -> tuple[str, str] | None:
    """Find ``(database, table)`` display names for a table reference.

    An unqualified reference is looked up in the active database first, then
    in every other database in name order.
    """
    if ref.database is not None:
        databases = [ref.database]
    else:
        databases = [active_database] if active_database else []
        databases += sorted(snapshot.databases, key=fold)

    key = fold(ref.name)
    for database in databases:
        name = snapshot.find_database(database)
        if name is None:
            continue
        for table in snapshot.tables_in(name):
            if fold(table) == key:
                return name, table
    return None


def column_candidates(
    snapshot: SchemaSnapshot, context: ColumnContext, active_database: str | None
) -> list[Candidate]:
    candidates: list[Candidate] = []
    resolved = False
    for ref in context.tables_in_scope:
        found = resolve_table(snapshot, ref, active_database)
        if found is None:
            continue
        resolved = True
        database, table = found
        candidates.extend(Candidate.column(c, table) for c in snapshot.columns_of(database, table))

    if resolved or context.qualifier is not None:
        return candidates

    # Nothing in scope resolved: offer every known column
    for database in sorted(snapshot.databases, key=fold):
        for table in sorted(snapshot.tables_in(database), key=fold):
            candidates.extend(Candidate.column(c, table) for c in snapshot.columns_of(database, table))
    return candidates
