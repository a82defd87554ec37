"""Completion session wiring for the interactive read loop."""

from __future__ import annotations

import logging
from concurrent.futures import Future
from pathlib import Path

from rich.text import Text

from mysqlit.domains.query.completion import CompletionEngine, CompletionResult
from mysqlit.domains.query.completion.display import hint_text
from mysqlit.domains.schema.cache import SchemaCache
from mysqlit.domains.schema.mutations import used_database
from mysqlit.domains.shell.store.settings import CompletionSettings, load_completion_settings
from mysqlit.shared.core.logging_setup import setup_logger
from mysqlit.shared.core.protocols import MetadataSource

logger = logging.getLogger(__name__)


class CompletionSession:
    """Completion state for one connection.

    Tracks the database selected with ``USE`` and refreshes the schema cache
    in the background after statements that change the schema.
    """

    def __init__(
        self,
        source: MetadataSource,
        cache: SchemaCache,
        *,
        active_database: str | None = None,
    ):
        self.source = source
        self.cache = cache
        self.engine = CompletionEngine(cache)
        self.active_database = active_database

    def suggest(self, buffer: str, cursor: int) -> CompletionResult:
        return self.engine.suggest(buffer, cursor, self.active_database)

    def hint(self, buffer: str, cursor: int) -> Text:
        """Greyed inline hint for the text after the cursor (empty when none)."""
        return hint_text(self.engine.inline_hint(buffer, cursor, self.active_database))

    def refresh(self) -> Future:
        return self.cache.refresh_in_background(self.source)

    def after_statement(self, sql: str) -> Future | None:
        """Update session state after the read loop executed ``sql``.

        Returns:
            The background refresh future, or None when no refresh was needed.
        """
        # Checked before switching databases so USE of an unknown one still refreshes
        needs_refresh = self.cache.needs_refresh(sql) or self.cache.is_stale()

        database = used_database(sql)
        if database is not None and database != self.active_database:
            logger.debug("Active database is now %s", database)
            self.active_database = database

        if needs_refresh:
            return self.refresh()
        return None

    def close(self) -> None:
        self.cache.shutdown(wait=False)


def start_session(
    source: MetadataSource,
    settings: CompletionSettings | None = None,
    *,
    active_database: str | None = None,
    log_dir: Path | None = None,
) -> CompletionSession:
    """Configure logging, build the cache and kick off the first refresh."""
    settings = settings or load_completion_settings()
    setup_logger(log_dir=log_dir, level=settings.log_level)

    session = CompletionSession(
        source,
        SchemaCache.from_settings(settings),
        active_database=active_database,
    )
    session.refresh()
    logger.info("Completion session started (active database: %s)", active_database or "none")
    return session
