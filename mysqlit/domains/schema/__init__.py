"""Schema metadata: immutable snapshots and the cache that publishes them."""

from .cache import SchemaCache
from .exceptions import (
    MetadataConnectionError,
    MetadataNotFoundError,
    MetadataPermissionError,
    SchemaError,
)
from .snapshot import SchemaSnapshot, SnapshotBuilder
from .sources import InMemoryMetadataSource, PyMySQLMetadataSource

__all__ = [
    "InMemoryMetadataSource",
    "MetadataConnectionError",
    "MetadataNotFoundError",
    "MetadataPermissionError",
    "PyMySQLMetadataSource",
    "SchemaCache",
    "SchemaError",
    "SchemaSnapshot",
    "SnapshotBuilder",
]
