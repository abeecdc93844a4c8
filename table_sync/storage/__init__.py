"""Storage adapters: a uniform row interface over SQLite and PostgreSQL."""

from table_sync.storage.base import StorageAdapter, validate_identifier
from table_sync.storage.sqlite_adapter import SqliteAdapter

__all__ = [
    "StorageAdapter",
    "SqliteAdapter",
    "validate_identifier",
]
