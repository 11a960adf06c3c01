"""Storage for the durable thumbnail cache: operator queue, schema, backends."""

from .backends import MemoryBackend, SqliteBackend, StorageBackend
from .db_operator import DbOperator

__all__ = [
    "DbOperator",
    "MemoryBackend",
    "SqliteBackend",
    "StorageBackend",
]
