"""Schema cache: publishes immutable snapshots for the completion engine.

Readers call :meth:`SchemaCache.current` and get whatever snapshot was last
published; publishing is a single reference assignment, so a completion that
already holds a snapshot keeps seeing it unchanged while a refresh runs.
Refreshes are serialized: the interactive loop triggers them one at a time,
and background refreshes share a single worker thread.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TypeVar

from mysqlit.domains.schema.exceptions import (
    MetadataConnectionError,
    MetadataNotFoundError,
    MetadataPermissionError,
    SchemaError,
)
from mysqlit.domains.schema.mutations import statement_changes_schema
from mysqlit.domains.schema.snapshot import SchemaSnapshot, SnapshotBuilder
from mysqlit.domains.shell.store.settings import (
    DEFAULT_SCHEMA_MAX_AGE_SECONDS,
    DEFAULT_SYSTEM_DATABASES,
    CompletionSettings,
)
from mysqlit.shared.core.protocols import MetadataSource
from mysqlit.shared.core.utils import fold

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SchemaCache:
    """Holds the latest schema snapshot and rebuilds it on request.

    Args:
        system_databases: Databases listed but never inspected for tables
        max_age: Seconds after which :meth:`is_stale` reports True (None: never)
    """

    def __init__(
        self,
        *,
        system_databases: Iterable[str] = DEFAULT_SYSTEM_DATABASES,
        max_age: float | None = DEFAULT_SCHEMA_MAX_AGE_SECONDS,
    ):
        self._snapshot = SchemaSnapshot.empty()
        self._system_databases = frozenset(fold(db) for db in system_databases)
        self._max_age = max_age
        self._versions = itertools.count(1)
        self._last_error: SchemaError | None = None
        self._partial_errors: tuple[MetadataPermissionError, ...] = ()
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()
        self._shutdown = False

    @classmethod
    def from_settings(cls, settings: CompletionSettings) -> SchemaCache:
        return cls(
            system_databases=settings.system_databases,
            max_age=settings.schema_max_age_seconds,
        )

    def current(self) -> SchemaSnapshot:
        """Return the latest fully built snapshot. Never blocks."""
        return self._snapshot

    @property
    def last_error(self) -> SchemaError | None:
        """Failure of the most recent refresh, or None if it succeeded."""
        return self._last_error

    @property
    def partial_errors(self) -> tuple[MetadataPermissionError, ...]:
        """Objects the most recent refresh could not list and kept stale."""
        return self._partial_errors

    def is_system_database(self, name: str) -> bool:
        return fold(name) in self._system_databases

    def refresh(self, source: MetadataSource) -> SchemaSnapshot:
        """Fetch the full inventory from ``source`` and publish a new snapshot.

        A connection failure, or a permission failure listing databases,
        leaves the previous snapshot published and is recorded in
        :attr:`last_error`. Permission failures on a single database or table
        keep that object's previous data and are recorded in
        :attr:`partial_errors`. Objects dropped while the refresh runs are left
        out of the new snapshot.

        Returns:
            The snapshot published after the call (the previous one on failure).
        """
        previous = self._snapshot
        try:
            snapshot, partial = self._build(source, previous)
        except SchemaError as e:
            self._last_error = e
            logger.warning(
                "Schema refresh failed, keeping snapshot v%d: %s", previous.version, e.summary()
            )
            return previous

        self._snapshot = snapshot
        self._last_error = None
        self._partial_errors = tuple(partial)
        for error in partial:
            logger.warning("Schema refresh skipped %s: %s", error.target, error.message)
        logger.info(
            "Published schema snapshot v%d (%d databases, %d tables)",
            snapshot.version,
            len(snapshot.databases),
            sum(len(tables) for tables in snapshot.tables_by_database.values()),
        )
        return snapshot

    def refresh_in_background(self, source: MetadataSource) -> Future[SchemaSnapshot]:
        """Run :meth:`refresh` on the cache's worker thread.

        Refreshes queue behind each other on a single thread, so at most one
        is in flight. Completion keeps serving the current snapshot meanwhile.

        Raises:
            RuntimeError: If the cache has been shut down.
        """
        with self._lock:
            if self._shutdown:
                raise RuntimeError("Schema cache has been shut down")
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1,
                    thread_name_prefix="mysqlit-schema-",
                )
            return self._executor.submit(self.refresh, source)

    def needs_refresh(self, statement: str) -> bool:
        """Whether executing ``statement`` should be followed by a refresh."""
        return statement_changes_schema(statement, self._snapshot)

    def is_stale(self) -> bool:
        """True before the first refresh or once the snapshot outlives ``max_age``."""
        return self._snapshot.is_stale(self._max_age)

    def status_message(self) -> str | None:
        """One-line warning for the status area, or None when all is well."""
        if self._last_error is not None:
            return (
                f"Warning: schema refresh failed: {self._last_error.summary()}; "
                "completions may be stale"
            )
        if self._partial_errors:
            targets = ", ".join(error.target for error in self._partial_errors[:3])
            more = len(self._partial_errors) - 3
            if more > 0:
                targets += f" and {more} more"
            return f"Warning: could not list {targets}; completions for them may be stale"
        return None

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background worker. Pending refreshes are cancelled unless ``wait``."""
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True
            executor = self._executor
        if executor is not None:
            executor.shutdown(wait=wait, cancel_futures=not wait)

    def _build(
        self, source: MetadataSource, previous: SchemaSnapshot
    ) -> tuple[SchemaSnapshot, list[MetadataPermissionError]]:
        builder = SnapshotBuilder()
        partial: list[MetadataPermissionError] = []

        databases: Sequence[str] = _call(source.list_databases)
        for database in databases:
            builder.add_database(database)
            if self.is_system_database(database):
                continue

            try:
                tables = list(_call(source.list_tables, database, database=database))
            except MetadataPermissionError as e:
                partial.append(e)
                builder.carry_over_database(previous, database)
                continue
            except MetadataNotFoundError as e:
                logger.debug("Skipping dropped database %s: %s", e.target, e.message)
                builder.drop_database(database)
                continue
            builder.set_tables(database, tables)

            for table in tables:
                try:
                    columns = _call(source.list_columns, database, table, database=database, table=table)
                except MetadataPermissionError as e:
                    partial.append(e)
                    builder.carry_over_table(previous, database, table)
                    continue
                except MetadataNotFoundError as e:
                    logger.debug("Skipping dropped table %s: %s", e.target, e.message)
                    builder.drop_table(database, table)
                    continue
                builder.set_columns(database, table, columns)

        return builder.build(next(self._versions)), partial


def _call(fn: Callable[..., T], *args: str, database: str | None = None, table: str | None = None) -> T:
    """Invoke a source method, normalising its failures to schema errors."""
    try:
        return fn(*args)
    except SchemaError:
        raise
    except PermissionError as e:
        raise MetadataPermissionError(str(e) or "permission denied", database=database, table=table) from e
    except ConnectionError as e:
        raise MetadataConnectionError(str(e) or "connection lost", database=database, table=table) from e
