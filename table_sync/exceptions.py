"""Custom exception classes for table_sync."""

from table_sync.constants import INVALID_HOOK_CONTEXT_MESSAGE


class TableSyncError(Exception):
    """
    Base exception class for all table_sync errors.
    """
    pass


class ConfigurationError(TableSyncError):
    """
    Raised at registration time when a receiving or publishing setup is invalid.
    """
    pass


class InvalidHookContext(ConfigurationError):
    """
    Raised when a hook is registered at an unknown execution point.
    """

    def __init__(self, message: str = INVALID_HOOK_CONTEXT_MESSAGE):
        super().__init__(message)


class InvalidTargetKeysError(ConfigurationError):
    """
    Raised when target keys are empty or do not resolve to storage columns.
    """
    pass


class UnknownAdapterError(ConfigurationError):
    """
    Raised when settings name a storage backend that has no adapter.
    """
    pass


class InvalidEventError(TableSyncError):
    """
    Raised when an inbound message cannot be parsed into a change event.
    """
    pass


class MissingKeyError(TableSyncError):
    """
    Raised when an incoming row lacks one of the target key fields.
    """
    pass


class LockTimeoutError(TableSyncError):
    """
    Raised when a row lock could not be acquired within the adapter timeout.
    """
    pass


class StorageError(TableSyncError):
    """
    Raised when the storage backend fails (constraint violation, connectivity).
    """
    pass
