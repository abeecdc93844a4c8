"""SQLite storage adapter."""

import sqlite3
from typing import Any, List, Optional, Sequence, Tuple

from table_sync.constants import DEFAULT_LOCK_TIMEOUT_SECONDS
from table_sync.exceptions import LockTimeoutError, StorageError
from table_sync.logging_config import get_logger
from table_sync.storage.base import StorageAdapter, validate_identifier
from table_sync.types import Row

logger = get_logger(__name__)


def _quote(name: str) -> str:
    return f'"{validate_identifier(name)}"'


def _is_lock_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


def _where(key: Row) -> Tuple[str, List[Any]]:
    clause = " AND ".join(f"{_quote(column)} IS ?" for column in key)
    return clause, list(key.values())


class SqliteAdapter(StorageAdapter):
    """
    StorageAdapter over a SQLite database file.

    Transactions are opened with BEGIN IMMEDIATE, which takes the database
    write lock up front; concurrent writers wait up to `timeout` seconds and
    then fail with LockTimeoutError. Row locks are covered by that lock.
    """

    def __init__(self, database_path: str, timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS):
        """
        Open a connection to the database.

        Args:
            database_path: Path to the SQLite file (":memory:" for a private database)
            timeout: Seconds to wait for the write lock
        """
        self.database_path = database_path
        self.timeout = timeout
        self.conn = sqlite3.connect(database_path, timeout=timeout, isolation_level=None)
        self.conn.row_factory = sqlite3.Row

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, tuple(params))
        except sqlite3.OperationalError as e:
            if _is_lock_error(e):
                raise LockTimeoutError(
                    f"Could not acquire SQLite lock within {self.timeout}s [database={self.database_path}]"
                ) from e
            raise StorageError(f"SQLite operation failed: {e}") from e
        except sqlite3.Error as e:
            raise StorageError(f"SQLite operation failed: {e}") from e

    def begin_transaction(self) -> None:
        self._execute("BEGIN IMMEDIATE")
        logger.debug(f"Transaction started [database={self.database_path}]")

    def commit(self) -> None:
        if self.conn.in_transaction:
            self._execute("COMMIT")
            logger.debug(f"Transaction committed [database={self.database_path}]")

    def rollback(self) -> None:
        if self.conn.in_transaction:
            self._execute("ROLLBACK")
            logger.debug(f"Transaction rolled back [database={self.database_path}]")

    def columns(self, table: str) -> List[str]:
        cursor = self._execute(f"PRAGMA table_info({_quote(table)})")
        return [row["name"] for row in cursor.fetchall()]

    def primary_keys(self, table: str) -> List[str]:
        cursor = self._execute(f"PRAGMA table_info({_quote(table)})")
        pk_columns = [row for row in cursor.fetchall() if row["pk"]]
        return [row["name"] for row in sorted(pk_columns, key=lambda row: row["pk"])]

    def lock(self, table: str, key: Row) -> None:
        if not self.conn.in_transaction:
            raise StorageError(f"lock() requires an open transaction [table={table}]")
        validate_identifier(table)
        logger.debug(f"Row lock held by write transaction [table={table}, key={key}]")

    def find(self, table: str, key: Row) -> Optional[Row]:
        clause, params = _where(key)
        cursor = self._execute(
            f"SELECT * FROM {_quote(table)} WHERE {clause} LIMIT 1",
            params
        )
        row = cursor.fetchone()
        return dict(row) if row is not None else None

    def create(self, table: str, row: Row) -> Row:
        if row:
            column_list = ", ".join(_quote(column) for column in row)
            placeholders = ", ".join("?" for _ in row)
            cursor = self._execute(
                f"INSERT INTO {_quote(table)} ({column_list}) VALUES ({placeholders}) RETURNING *",
                list(row.values())
            )
        else:
            cursor = self._execute(f"INSERT INTO {_quote(table)} DEFAULT VALUES RETURNING *")

        # RETURNING needs SQLite 3.35+
        created = cursor.fetchall()
        return dict(created[0])

    def update(self, table: str, key: Row, row: Row) -> Row:
        if row:
            assignments = ", ".join(f"{_quote(column)} = ?" for column in row)
            clause, key_params = _where(key)
            self._execute(
                f"UPDATE {_quote(table)} SET {assignments} WHERE {clause}",
                list(row.values()) + key_params
            )

        new_key = {column: row.get(column, value) for column, value in key.items()}
        updated = self.find(table, new_key)
        if updated is None:
            raise StorageError(f"Updated row not found [table={table}, key={new_key}]")
        return updated

    def delete(self, table: str, key: Row) -> Optional[Row]:
        existing = self.find(table, key)
        if existing is None:
            return None
        clause, params = _where(key)
        self._execute(f"DELETE FROM {_quote(table)} WHERE {clause}", params)
        return existing

    def close(self) -> None:
        self.conn.close()
