"""Shared pytest fixtures for all tests."""

import sqlite3
from pathlib import Path

import pytest

from table_sync.config import Settings
from table_sync.publishing.bus import InMemoryMessageBus
from table_sync.publishing.dispatcher import InMemoryJobDispatcher
from table_sync.storage.sqlite_adapter import SqliteAdapter

FROZEN_TIME = 1514808000.0  # 2018-01-01 12:00 UTC

SCHEMA = """
CREATE TABLE players (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id INTEGER UNIQUE,
    email TEXT,
    project_id TEXT,
    online_status INTEGER,
    version REAL
);

CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    email TEXT,
    version REAL
);

CREATE TABLE memberships (
    user_id INTEGER NOT NULL,
    project_id TEXT NOT NULL,
    role TEXT,
    version REAL,
    PRIMARY KEY (user_id, project_id)
);
"""


@pytest.fixture
def db_path(tmp_path) -> Path:
    """
    Create a temporary SQLite database with the test schema.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to the database file
    """
    path = tmp_path / "table_sync.db"
    conn = sqlite3.connect(path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def adapter(db_path):
    """SqliteAdapter on the test database."""
    sqlite_adapter = SqliteAdapter(str(db_path), timeout=1.0)
    yield sqlite_adapter
    sqlite_adapter.close()


@pytest.fixture
def count_rows(db_path):
    """Count rows of a table through a separate connection."""
    def _count(table: str) -> int:
        conn = sqlite3.connect(db_path)
        try:
            return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        finally:
            conn.close()
    return _count


@pytest.fixture
def bus():
    return InMemoryMessageBus()


@pytest.fixture
def dispatcher():
    return InMemoryJobDispatcher()


@pytest.fixture
def settings():
    return Settings(routing_key_callable=lambda model_name, _attributes: model_name)


@pytest.fixture
def frozen_time(monkeypatch):
    """Freeze time.time() as seen by the publishers."""
    monkeypatch.setattr("table_sync.publishing.publisher.time.time", lambda: FROZEN_TIME)
    return FROZEN_TIME
