"""Pytest fixtures for mysqlit tests."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest

_TEST_CONFIG_DIR = Path(tempfile.mkdtemp(prefix="mysqlit-test-config-"))
os.environ.setdefault("MYSQLIT_CONFIG_DIR", str(_TEST_CONFIG_DIR))

from mysqlit.domains.schema.cache import SchemaCache  # noqa: E402
from mysqlit.domains.schema.snapshot import SchemaSnapshot, SnapshotBuilder  # noqa: E402
from mysqlit.domains.schema.sources import InMemoryMetadataSource  # noqa: E402

SHOP_SCHEMA = {
    "shop": {
        "orders": ["id", "total", "user_id"],
        "users": ["id", "name", "email"],
    },
    "test": {
        "widgets": ["id", "label", "price"],
    },
}


def make_snapshot(schema: dict[str, dict[str, list[str]]], version: int = 1) -> SchemaSnapshot:
    """Build a snapshot straight from ``{database: {table: [columns]}}``."""
    builder = SnapshotBuilder()
    for database, tables in schema.items():
        builder.set_tables(database, tables)
        for table, columns in tables.items():
            builder.set_columns(database, table, columns)
    return builder.build(version)


@pytest.fixture
def snapshot() -> SchemaSnapshot:
    """Snapshot with databases shop and test."""
    return make_snapshot(SHOP_SCHEMA)


@pytest.fixture
def source() -> InMemoryMetadataSource:
    """In-memory metadata source with the shop schema plus system databases."""
    return InMemoryMetadataSource(
        {
            **SHOP_SCHEMA,
            "information_schema": {"TABLES": ["TABLE_NAME"]},
            "mysql": {"user": ["Host", "User"]},
        }
    )


@pytest.fixture
def cache():
    """Schema cache whose worker thread is shut down after the test."""
    schema_cache = SchemaCache()
    yield schema_cache
    schema_cache.shutdown(wait=True)


@pytest.fixture
def snapshot_factory():
    """Factory building snapshots from ``{database: {table: [columns]}}``."""
    return make_snapshot


@pytest.fixture
def shop_source() -> InMemoryMetadataSource:
    """In-memory metadata source with only the shop and test databases."""
    return InMemoryMetadataSource(SHOP_SCHEMA)
