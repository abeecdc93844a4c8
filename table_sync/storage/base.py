"""Storage adapter interface used by the receiving and publishing pipelines."""

import json
import re
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Generator, List, Optional

from table_sync.logging_config import get_logger
from table_sync.types import Row

logger = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(name: str) -> str:
    """
    Reject table and column names that cannot be safely quoted.

    Args:
        name: Table or column name

    Returns:
        The name, unchanged

    Raises:
        ValueError: If the name is not a plain identifier
    """
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def key_identity(table: str, key: Row) -> str:
    """Stable text identifying one row of one table, independent of key order."""
    return f"{table}:" + json.dumps(key, sort_keys=True, default=str)


class StorageAdapter(ABC):
    """
    Uniform capability interface over a storage backend.

    All row operations run inside the transaction opened by begin_transaction().
    Rows are plain dicts keyed by column name; keys are dicts of column -> value.
    """

    @abstractmethod
    def begin_transaction(self) -> None:
        ...

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...

    @abstractmethod
    def columns(self, table: str) -> List[str]:
        ...

    @abstractmethod
    def primary_keys(self, table: str) -> List[str]:
        ...

    @abstractmethod
    def lock(self, table: str, key: Row) -> None:
        ...

    @abstractmethod
    def find(self, table: str, key: Row) -> Optional[Row]:
        ...

    @abstractmethod
    def create(self, table: str, row: Row) -> Row:
        ...

    @abstractmethod
    def update(self, table: str, key: Row, row: Row) -> Row:
        ...

    @abstractmethod
    def delete(self, table: str, key: Row) -> Optional[Row]:
        ...

    def close(self) -> None:
        pass

    @contextmanager
    def transaction(self) -> Generator['StorageAdapter', None, None]:
        """
        Run a block in one transaction: commit on success, roll back on any error.

        The original exception is re-raised after rollback.
        """
        self.begin_transaction()
        try:
            yield self
            self.commit()
        except BaseException:
            try:
                self.rollback()
            except Exception as rollback_error:
                logger.error(f"Rollback failed: {rollback_error}", exc_info=True)
            raise
