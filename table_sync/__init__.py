"""
table_sync: row-level change propagation between services.

The publishing side turns stored rows into change events on a message bus;
the receiving side applies those events to its own tables, guarded by row
locks and version comparison.
"""

from table_sync.config import Settings, build_adapter
from table_sync.exceptions import (
    ConfigurationError,
    InvalidEventError,
    InvalidHookContext,
    InvalidTargetKeysError,
    LockTimeoutError,
    MissingKeyError,
    StorageError,
    TableSyncError,
    UnknownAdapterError,
)
from table_sync.logging_config import setup_logging
from table_sync.protocol import ChangeEvent
from table_sync.publishing import BatchPublisher, Publisher
from table_sync.receiving import ReceivingHandler
from table_sync.types import EventKind, HookPoint, PublishState, RowAction, RowOutcome, SyncModel

__all__ = [
    "BatchPublisher",
    "ChangeEvent",
    "ConfigurationError",
    "EventKind",
    "HookPoint",
    "InvalidEventError",
    "InvalidHookContext",
    "InvalidTargetKeysError",
    "LockTimeoutError",
    "MissingKeyError",
    "PublishState",
    "Publisher",
    "ReceivingHandler",
    "RowAction",
    "RowOutcome",
    "Settings",
    "StorageError",
    "SyncModel",
    "TableSyncError",
    "UnknownAdapterError",
    "build_adapter",
    "setup_logging",
]
