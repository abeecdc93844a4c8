"""Process-wide configuration, set once at startup."""

import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from table_sync.constants import DEFAULT_DATABASE_URL, DEFAULT_LOCK_TIMEOUT_SECONDS
from table_sync.exceptions import UnknownAdapterError
from table_sync.logging_config import get_logger
from table_sync.storage.base import StorageAdapter

logger = get_logger(__name__)

RoutingKeyCallable = Callable[[str, Any], str]
HeadersCallable = Callable[[str, Any], Optional[Dict[str, Any]]]

SUPPORTED_ADAPTERS = ("sqlite", "postgres")


def default_routing_key(model_name: str, attributes: Any) -> str:
    return model_name


def default_headers(model_name: str, attributes: Any) -> Optional[Dict[str, Any]]:
    return None


@dataclass(frozen=True)
class Settings:
    """
    table_sync settings. Build one instance at startup and pass it to
    handlers, publishers and build_adapter.
    """
    adapter: str = "sqlite"
    database_url: str = DEFAULT_DATABASE_URL
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS
    exchange_name: Optional[str] = None
    routing_key_callable: RoutingKeyCallable = default_routing_key
    headers_callable: HeadersCallable = default_headers

    @classmethod
    def from_env(cls, prefix: str = "TABLE_SYNC_", **overrides: Any) -> 'Settings':
        """
        Load settings from environment variables.

        Args:
            prefix: Env var prefix (TABLE_SYNC_ADAPTER, TABLE_SYNC_DATABASE_URL, ...)
            **overrides: Explicit values, e.g. routing_key_callable, that win over env

        Returns:
            Settings instance
        """
        values: Dict[str, Any] = {
            "adapter": os.environ.get(f"{prefix}ADAPTER", "sqlite").strip().lower(),
            "database_url": os.environ.get(f"{prefix}DATABASE_URL", DEFAULT_DATABASE_URL),
            "lock_timeout": float(os.environ.get(f"{prefix}LOCK_TIMEOUT", str(DEFAULT_LOCK_TIMEOUT_SECONDS))),
            "exchange_name": os.environ.get(f"{prefix}EXCHANGE_NAME") or None,
        }
        values.update(overrides)
        return cls(**values)


def build_adapter(settings: Settings) -> StorageAdapter:
    """
    Create the storage adapter named by the settings.

    Args:
        settings: Process settings

    Returns:
        A connected StorageAdapter

    Raises:
        UnknownAdapterError: If settings.adapter is not supported
    """
    if settings.adapter == "sqlite":
        from table_sync.storage.sqlite_adapter import SqliteAdapter
        adapter: StorageAdapter = SqliteAdapter(settings.database_url, timeout=settings.lock_timeout)
    elif settings.adapter == "postgres":
        from table_sync.storage.postgres_adapter import PostgresAdapter
        adapter = PostgresAdapter(settings.database_url, lock_timeout=settings.lock_timeout)
    else:
        raise UnknownAdapterError(
            f"Unknown storage adapter '{settings.adapter}', expected one of {list(SUPPORTED_ADAPTERS)}"
        )

    logger.info(f"Storage adapter ready [adapter={settings.adapter}, lock_timeout={settings.lock_timeout}s]")
    return adapter
