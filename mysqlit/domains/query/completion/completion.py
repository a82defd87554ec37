"""Main SQL completion engine.

Orchestrates tokenizing, context detection, candidate selection and ranking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from mysqlit.domains.schema.snapshot import SchemaSnapshot
from mysqlit.shared.core.protocols import SnapshotProvider

from .context import CompletionContext, classify, current_statement, locate_partial
from .core import Candidate, deduplicate, filter_by_prefix, longest_common_prefix, rank
from .sources import candidates_for
from .tokenizer import Token, tokenize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionResult:
    """What the read loop needs to render and apply a completion.

    ``start`` is the buffer offset where the partial token begins; replacing
    ``buffer[start:cursor]`` with a candidate's text applies it.
    """

    start: int
    partial: str
    candidates: list[Candidate] = field(default_factory=list)
    common_prefix: str = ""
    hint: str = ""


def _analyse(buffer: str, cursor: int) -> tuple[Token | None, CompletionContext]:
    cursor = max(0, min(cursor, len(buffer)))
    tokens = list(tokenize(buffer, cursor))
    index = locate_partial(tokens, cursor)
    statement = current_statement(list(tokenize(buffer)), cursor)
    context = classify(tokens, index, statement_tokens=statement)
    partial = tokens[index] if index < len(tokens) else None
    return partial, context


def get_context(buffer: str, cursor: int) -> CompletionContext:
    """Determine what kind of token is expected at ``cursor``.

    Args:
        buffer: The full line buffer
        cursor: Cursor offset in the buffer

    Returns:
        The completion context for the cursor position
    """
    return _analyse(buffer, cursor)[1]


def get_completions(
    buffer: str,
    cursor: int,
    snapshot: SchemaSnapshot,
    active_database: str | None = None,
) -> list[Candidate]:
    """Get ranked completion candidates for the given buffer and cursor.

    Never raises: anything that goes wrong yields an empty list.

    Args:
        buffer: The full line buffer
        cursor: Cursor offset in the buffer
        snapshot: Schema snapshot to read names from
        active_database: Database selected with USE, if any

    Returns:
        Candidates filtered by the partial token and ranked for display
    """
    try:
        partial, context = _analyse(buffer, cursor)
        text = partial.value if partial is not None else ""
        candidates = filter_by_prefix(candidates_for(context, snapshot, active_database), text)
        return rank(deduplicate(candidates), text)
    except Exception:
        logger.debug("Completion failed for %r at %d", buffer, cursor, exc_info=True)
        return []


class CompletionEngine:
    """Completion bound to a schema cache.

    Each call reads the cache's current snapshot once and uses only that
    snapshot for the rest of the call.
    """

    def __init__(self, cache: SnapshotProvider):
        self._cache = cache

    def complete(self, buffer: str, cursor: int, active_database: str | None = None) -> list[Candidate]:
        return get_completions(buffer, cursor, self._cache.current(), active_database)

    def suggest(self, buffer: str, cursor: int, active_database: str | None = None) -> CompletionResult:
        """Candidates plus the common prefix and inline hint for the read loop."""
        cursor = max(0, min(cursor, len(buffer)))
        try:
            partial, _ = _analyse(buffer, cursor)
        except Exception:
            logger.debug("Completion failed for %r at %d", buffer, cursor, exc_info=True)
            return CompletionResult(start=cursor, partial="")

        start = partial.start if partial is not None else cursor
        text = partial.value if partial is not None else ""
        candidates = self.complete(buffer, cursor, active_database)
        return CompletionResult(
            start=start,
            partial=text,
            candidates=candidates,
            common_prefix=longest_common_prefix(candidates, text),
            hint=_hint(candidates, text),
        )

    def inline_hint(self, buffer: str, cursor: int, active_database: str | None = None) -> str:
        """Remaining text of the best candidate, shown after the cursor.

        Only offered while typing at the end of the line.
        """
        if cursor != len(buffer):
            return ""
        return self.suggest(buffer, cursor, active_database).hint


def _hint(candidates: list[Candidate], partial: str) -> str:
    if not partial or not candidates:
        return ""
    return candidates[0].text[len(partial) :]
