"""Tests for the schema cache refresh and publication."""

from __future__ import annotations

import logging
import threading
from unittest.mock import MagicMock

import pymysql
import pytest

from mysqlit.domains.schema.cache import SchemaCache
from mysqlit.domains.schema.exceptions import (
    MetadataConnectionError,
    MetadataNotFoundError,
    MetadataPermissionError,
)
from mysqlit.domains.schema.sources import InMemoryMetadataSource, PyMySQLMetadataSource
from mysqlit.domains.shell.store.settings import CompletionSettings


class FailingSource(InMemoryMetadataSource):
    """In-memory source that raises for selected calls.

    ``failures`` maps a call tuple such as ``("list_tables", "shop")`` to the
    exception it should raise.
    """

    def __init__(self, schema, failures=None):
        super().__init__(schema)
        self.failures = dict(failures or {})

    def _maybe_fail(self, call):
        error = self.failures.get(call)
        if error is not None:
            raise error

    def list_databases(self):
        self._maybe_fail(("list_databases",))
        return super().list_databases()

    def list_tables(self, database):
        self._maybe_fail(("list_tables", database))
        return super().list_tables(database)

    def list_columns(self, database, table):
        self._maybe_fail(("list_columns", database, table))
        return super().list_columns(database, table)


class TestRefresh:
    """Tests for successful refreshes."""

    def test_initial_snapshot_is_empty(self, cache):
        assert cache.current().version == 0
        assert cache.current().databases == frozenset()

    def test_refresh_publishes(self, cache, source):
        snapshot = cache.refresh(source)
        assert cache.current() is snapshot
        assert snapshot.version == 1
        assert snapshot.tables_in("shop") == frozenset({"orders", "users"})
        assert snapshot.columns_of("test", "widgets") == ("id", "label", "price")

    def test_versions_increase(self, cache, source):
        first = cache.refresh(source)
        second = cache.refresh(source)
        assert second.version > first.version
        assert second is not first

    def test_system_databases_listed_not_inspected(self, cache, source):
        snapshot = cache.refresh(source)
        assert snapshot.has_database("information_schema")
        assert snapshot.has_database("mysql")
        assert not snapshot.has_tables_for("information_schema")
        assert ("list_tables", "information_schema") not in source.calls
        assert ("list_tables", "mysql") not in source.calls

    def test_custom_system_databases(self, source):
        cache = SchemaCache(system_databases=["TEST"])
        snapshot = cache.refresh(source)
        assert not snapshot.has_tables_for("test")
        assert snapshot.has_tables_for("mysql")

    def test_from_settings(self, source):
        settings = CompletionSettings(system_databases=frozenset(), schema_max_age_seconds=None)
        cache = SchemaCache.from_settings(settings)
        snapshot = cache.refresh(source)
        assert snapshot.has_tables_for("information_schema")
        assert not cache.is_stale()

    def test_success_logged(self, cache, source, caplog):
        with caplog.at_level(logging.INFO, logger="mysqlit.domains.schema.cache"):
            cache.refresh(source)
        assert "Published schema snapshot v1" in caplog.text


class TestRefreshFailures:
    """Tests for failures during refresh."""

    def test_connection_error_keeps_previous(self, cache, source):
        good = cache.refresh(source)
        failing = FailingSource({}, {("list_databases",): ConnectionError("server has gone away")})

        result = cache.refresh(failing)

        assert result is good
        assert cache.current() is good
        assert isinstance(cache.last_error, MetadataConnectionError)
        assert isinstance(cache.last_error, ConnectionError)
        assert "server has gone away" in cache.last_error.message

    def test_error_chained(self, cache):
        original = ConnectionError("refused")
        cache.refresh(FailingSource({}, {("list_databases",): original}))
        assert cache.last_error.__cause__ is original

    def test_connection_error_mid_refresh_is_not_partial(self, cache, source):
        good = cache.refresh(source)
        failing = FailingSource(
            {"shop": {"orders": ["id"], "users": ["id"]}},
            {("list_columns", "shop", "users"): ConnectionError("lost connection")},
        )

        assert cache.refresh(failing) is good
        assert cache.current().columns_of("shop", "orders") == ("id", "total", "user_id")

    def test_permission_error_on_databases(self, cache, source):
        good = cache.refresh(source)
        failing = FailingSource({}, {("list_databases",): PermissionError("denied")})

        assert cache.refresh(failing) is good
        assert isinstance(cache.last_error, MetadataPermissionError)

    def test_typed_errors_pass_through(self, cache):
        error = MetadataPermissionError("Access denied", database="shop")
        cache.refresh(FailingSource({}, {("list_databases",): error}))
        assert cache.last_error is error

    def test_failure_logged(self, cache, caplog):
        failing = FailingSource({}, {("list_databases",): ConnectionError("refused")})
        with caplog.at_level(logging.WARNING, logger="mysqlit.domains.schema.cache"):
            cache.refresh(failing)
        assert "Schema refresh failed" in caplog.text

    def test_success_clears_error(self, cache, source):
        cache.refresh(FailingSource({}, {("list_databases",): ConnectionError("refused")}))
        assert cache.last_error is not None
        cache.refresh(source)
        assert cache.last_error is None
        assert cache.status_message() is None

    def test_first_refresh_failure_keeps_empty(self, cache):
        cache.refresh(FailingSource({}, {("list_databases",): ConnectionError("refused")}))
        assert cache.current().version == 0
        assert cache.is_stale()


class TestPartialRefresh:
    """Permission failures on single objects keep their previous data."""

    def test_database_permission_carries_over(self, cache, source):
        cache.refresh(source)
        schema = {
            "shop": {"orders": ["id"], "users": ["id"]},
            "test": {"widgets": ["id"], "gadgets": ["id"]},
        }
        failing = FailingSource(schema, {("list_tables", "shop"): PermissionError("denied")})

        snapshot = cache.refresh(failing)

        assert snapshot.version == 2
        assert snapshot.columns_of("shop", "orders") == ("id", "total", "user_id")
        assert snapshot.tables_in("test") == frozenset({"widgets", "gadgets"})
        assert cache.last_error is None
        assert len(cache.partial_errors) == 1
        assert cache.partial_errors[0].target == "shop"

    def test_table_permission_carries_over(self, cache, source):
        cache.refresh(source)
        schema = {"shop": {"orders": ["id", "new_col"], "users": ["id"]}}
        failing = FailingSource(schema, {("list_columns", "shop", "users"): PermissionError("denied")})

        snapshot = cache.refresh(failing)

        assert snapshot.columns_of("shop", "orders") == ("id", "new_col")
        assert snapshot.columns_of("shop", "users") == ("id", "name", "email")
        assert cache.partial_errors[0].target == "shop.users"

    def test_permission_without_previous_data(self, cache):
        failing = FailingSource(
            {"secret": {"t": ["c"]}, "open": {"t": ["c"]}},
            {("list_tables", "secret"): PermissionError("denied")},
        )
        snapshot = cache.refresh(failing)
        assert snapshot.has_database("secret")
        assert snapshot.tables_in("secret") == frozenset()
        assert snapshot.columns_of("open", "t") == ("c",)

    def test_status_message_lists_targets(self, cache):
        failures = {("list_tables", f"db{i}"): PermissionError("denied") for i in range(5)}
        schema = {f"db{i}": {"t": ["c"]} for i in range(5)}
        cache.refresh(FailingSource(schema, failures))
        message = cache.status_message()
        assert message.startswith("Warning: could not list db0, db1, db2 and 2 more")


class TestDroppedObjects:
    """Objects dropped by another session while a refresh runs."""

    def test_dropped_table_skipped(self, cache):
        failing = FailingSource(
            {"shop": {"orders": ["id", "total"], "gone": ["id"]}},
            {("list_columns", "shop", "gone"): MetadataNotFoundError("no such table", database="shop", table="gone")},
        )

        snapshot = cache.refresh(failing)

        assert snapshot.version == 1
        assert snapshot.tables_in("shop") == frozenset({"orders"})
        assert snapshot.columns_of("shop", "orders") == ("id", "total")
        assert cache.last_error is None
        assert cache.partial_errors == ()
        assert cache.status_message() is None

    def test_dropped_table_not_carried_over(self, cache, source):
        cache.refresh(source)
        failing = FailingSource(
            {"shop": {"orders": ["id"], "users": ["id"]}},
            {("list_columns", "shop", "users"): MetadataNotFoundError("no such table", database="shop", table="users")},
        )

        snapshot = cache.refresh(failing)

        assert snapshot.tables_in("shop") == frozenset({"orders"})
        assert not snapshot.has_columns_for("shop", "users")

    def test_dropped_database_skipped(self, cache, source):
        cache.refresh(source)
        failing = FailingSource(
            {"shop": {"orders": ["id"]}, "test": {"widgets": ["id"]}},
            {("list_tables", "test"): MetadataNotFoundError("unknown database", database="test")},
        )

        snapshot = cache.refresh(failing)

        assert not snapshot.has_database("test")
        assert not snapshot.has_columns_for("test", "widgets")
        assert snapshot.columns_of("shop", "orders") == ("id",)
        assert cache.last_error is None

    def test_table_dropped_between_show_statements(self, cache):
        """SHOW COLUMNS failing with 1146 still publishes the rest of the schema."""
        rows = {
            "SHOW DATABASES": [("shop",)],
            "SHOW TABLES FROM `shop`": [("orders",), ("gone",)],
            "SHOW COLUMNS FROM `shop`.`orders`": [("id", "int", "NO", "PRI", None, "")],
        }
        cursor = MagicMock()

        def execute(sql):
            if sql == "SHOW COLUMNS FROM `shop`.`gone`":
                raise pymysql.err.ProgrammingError(1146, "Table 'shop.gone' doesn't exist")
            cursor.fetchall.return_value = rows[sql]

        cursor.execute.side_effect = execute
        connection = MagicMock()
        connection.cursor.return_value.__enter__.return_value = cursor

        snapshot = cache.refresh(PyMySQLMetadataSource(connection))

        assert snapshot.version == 1
        assert cache.current() is snapshot
        assert snapshot.tables_in("shop") == frozenset({"orders"})
        assert snapshot.columns_of("shop", "orders") == ("id",)
        assert cache.last_error is None


class TestStatusMessage:
    def test_none_when_healthy(self, cache, source):
        cache.refresh(source)
        assert cache.status_message() is None

    def test_failure_message(self, cache):
        cache.refresh(FailingSource({}, {("list_databases",): ConnectionError("refused")}))
        message = cache.status_message()
        assert message.startswith("Warning: schema refresh failed: refused (server)")
        assert "stale" in message


class TestRefreshTriggers:
    """Tests for refresh trigger helpers."""

    def test_needs_refresh_ddl(self, cache):
        assert cache.needs_refresh("CREATE TABLE t (id INT)")
        assert cache.needs_refresh("drop database shop")

    def test_needs_refresh_plain_query(self, cache):
        assert not cache.needs_refresh("SELECT * FROM orders")

    def test_needs_refresh_use(self, cache, source):
        cache.refresh(source)
        assert not cache.needs_refresh("USE shop")
        assert cache.needs_refresh("USE brand_new")

    def test_is_stale(self, cache, source):
        assert cache.is_stale()
        cache.refresh(source)
        assert not cache.is_stale()

    def test_is_system_database(self, cache):
        assert cache.is_system_database("INFORMATION_SCHEMA")
        assert not cache.is_system_database("shop")


class TestBackgroundRefresh:
    """Tests for refreshing on the worker thread."""

    def test_future_result(self, cache, source):
        snapshot = cache.refresh_in_background(source).result(timeout=5)
        assert cache.current() is snapshot
        assert snapshot.has_database("shop")

    def test_runs_on_worker_thread(self, cache):
        names = []

        class RecordingSource(InMemoryMetadataSource):
            def list_databases(self):
                names.append(threading.current_thread().name)
                return super().list_databases()

        cache.refresh_in_background(RecordingSource({"db": {}})).result(timeout=5)
        assert names[0].startswith("mysqlit-schema-")

    def test_current_does_not_block(self, cache, source):
        first = cache.refresh(source)
        started = threading.Event()
        release = threading.Event()

        class SlowSource(InMemoryMetadataSource):
            def list_databases(self):
                started.set()
                release.wait(timeout=5)
                return super().list_databases()

        future = cache.refresh_in_background(SlowSource({"other": {"t": ["c"]}}))
        assert started.wait(timeout=5)
        assert cache.current() is first
        release.set()
        second = future.result(timeout=5)
        assert cache.current() is second
        assert second.has_database("other")

    def test_refreshes_serialized(self, cache, source):
        futures = [cache.refresh_in_background(source) for _ in range(3)]
        versions = [f.result(timeout=5).version for f in futures]
        assert versions == [1, 2, 3]

    def test_failure_in_background(self, cache):
        failing = FailingSource({}, {("list_databases",): ConnectionError("refused")})
        snapshot = cache.refresh_in_background(failing).result(timeout=5)
        assert snapshot.version == 0
        assert isinstance(cache.last_error, MetadataConnectionError)

    def test_after_shutdown(self, source):
        cache = SchemaCache()
        cache.shutdown()
        with pytest.raises(RuntimeError):
            cache.refresh_in_background(source)

    def test_shutdown_idempotent(self, source):
        cache = SchemaCache()
        cache.refresh_in_background(source).result(timeout=5)
        cache.shutdown()
        cache.shutdown()
