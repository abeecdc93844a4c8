"""PostgreSQL storage adapter built on psycopg 3."""

from typing import Any, List, Optional

import psycopg
from psycopg import errors, sql
from psycopg.rows import dict_row

from table_sync.constants import DEFAULT_LOCK_TIMEOUT_SECONDS
from table_sync.exceptions import LockTimeoutError, StorageError
from table_sync.logging_config import get_logger
from table_sync.storage.base import StorageAdapter, key_identity, validate_identifier
from table_sync.types import Row

logger = get_logger(__name__)

_LOCK_ERRORS = (errors.LockNotAvailable, errors.QueryCanceled, errors.DeadlockDetected)


def _where(key: Row) -> sql.Composable:
    return sql.SQL(" AND ").join(
        sql.SQL("{} IS NOT DISTINCT FROM {}").format(
            sql.Identifier(validate_identifier(column)), sql.Placeholder()
        )
        for column in key
    )


class PostgresAdapter(StorageAdapter):
    """
    StorageAdapter over a PostgreSQL database.

    lock() takes a transaction-scoped advisory lock derived from table and key,
    so concurrent deliveries for a row that does not exist yet still serialize.
    The wait is bounded by SET LOCAL lock_timeout.
    """

    def __init__(
        self,
        dsn: str,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
        connection: Optional[psycopg.Connection] = None
    ):
        """
        Args:
            dsn: libpq connection string or URL
            lock_timeout: Seconds to wait for a row lock
            connection: Already-open connection (tests, pooled connections)
        """
        self.dsn = dsn
        self.lock_timeout = lock_timeout
        self._conn = connection

    @property
    def conn(self) -> psycopg.Connection:
        if self._conn is None or self._conn.closed:
            try:
                self._conn = psycopg.connect(self.dsn, row_factory=dict_row, autocommit=True)
            except psycopg.Error as e:
                raise StorageError(f"Could not connect to PostgreSQL: {e}") from e
        return self._conn

    def _execute(self, query: Any, params: Any = None) -> psycopg.Cursor:
        try:
            return self.conn.execute(query, params)
        except _LOCK_ERRORS as e:
            raise LockTimeoutError(
                f"Could not acquire PostgreSQL lock within {self.lock_timeout}s: {e}"
            ) from e
        except psycopg.Error as e:
            raise StorageError(f"PostgreSQL operation failed: {e}") from e

    def begin_transaction(self) -> None:
        self._execute("BEGIN")
        timeout_ms = int(self.lock_timeout * 1000)
        try:
            self._execute(sql.SQL("SET LOCAL lock_timeout = {}").format(sql.Literal(f"{timeout_ms}ms")))
        except Exception:
            self.rollback()
            raise
        logger.debug(f"Transaction started [lock_timeout={timeout_ms}ms]")

    def commit(self) -> None:
        self._execute("COMMIT")
        logger.debug("Transaction committed")

    def rollback(self) -> None:
        self._execute("ROLLBACK")
        logger.debug("Transaction rolled back")

    def columns(self, table: str) -> List[str]:
        cursor = self._execute(
            """
            SELECT column_name FROM information_schema.columns
            WHERE table_schema = current_schema() AND table_name = %s
            ORDER BY ordinal_position
            """,
            (validate_identifier(table),)
        )
        return [row["column_name"] for row in cursor.fetchall()]

    def primary_keys(self, table: str) -> List[str]:
        cursor = self._execute(
            """
            SELECT a.attname AS column_name
            FROM pg_index i
            JOIN pg_attribute a ON a.attrelid = i.indrelid AND a.attnum = ANY(i.indkey)
            WHERE i.indrelid = %s::regclass AND i.indisprimary
            ORDER BY array_position(i.indkey, a.attnum)
            """,
            (validate_identifier(table),)
        )
        return [row["column_name"] for row in cursor.fetchall()]

    def lock(self, table: str, key: Row) -> None:
        name = key_identity(validate_identifier(table), key)
        self._execute("SELECT pg_advisory_xact_lock(hashtextextended(%s, 0))", (name,))
        logger.debug(f"Row lock acquired [table={table}, key={key}]")

    def find(self, table: str, key: Row) -> Optional[Row]:
        query = sql.SQL("SELECT * FROM {} WHERE {} LIMIT 1").format(
            sql.Identifier(validate_identifier(table)), _where(key)
        )
        row = self._execute(query, list(key.values())).fetchone()
        return dict(row) if row is not None else None

    def create(self, table: str, row: Row) -> Row:
        if not row:
            query = sql.SQL("INSERT INTO {} DEFAULT VALUES RETURNING *").format(
                sql.Identifier(validate_identifier(table))
            )
            return dict(self._execute(query).fetchone())

        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(validate_identifier(table)),
            sql.SQL(", ").join(sql.Identifier(validate_identifier(column)) for column in row),
            sql.SQL(", ").join(sql.Placeholder() for _ in row),
        )
        return dict(self._execute(query, list(row.values())).fetchone())

    def update(self, table: str, key: Row, row: Row) -> Row:
        if not row:
            existing = self.find(table, key)
            if existing is None:
                raise StorageError(f"Updated row not found [table={table}, key={key}]")
            return existing

        query = sql.SQL("UPDATE {} SET {} WHERE {} RETURNING *").format(
            sql.Identifier(validate_identifier(table)),
            sql.SQL(", ").join(
                sql.SQL("{} = {}").format(sql.Identifier(validate_identifier(column)), sql.Placeholder())
                for column in row
            ),
            _where(key),
        )
        updated = self._execute(query, list(row.values()) + list(key.values())).fetchone()
        if updated is None:
            raise StorageError(f"Updated row not found [table={table}, key={key}]")
        return dict(updated)

    def delete(self, table: str, key: Row) -> Optional[Row]:
        query = sql.SQL("DELETE FROM {} WHERE {} RETURNING *").format(
            sql.Identifier(validate_identifier(table)), _where(key)
        )
        deleted = self._execute(query, list(key.values())).fetchone()
        return dict(deleted) if deleted is not None else None

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
