"""SQLite database connection and schema management."""

import contextlib
import sqlite3
from collections.abc import Iterator
from pathlib import Path

import structlog

from shared.dal.errors import StorageError

logger = structlog.get_logger()

_MEMORY_PATH = ":memory:"

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS lobbies (
    room_class TEXT PRIMARY KEY,
    version INTEGER NOT NULL,
    data TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS presence (
    client_id TEXT PRIMARY KEY,
    room_class TEXT NOT NULL,
    expires_at REAL NOT NULL,
    data TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_presence_expires_at
    ON presence (expires_at);

CREATE TABLE IF NOT EXISTS interest (
    room_class TEXT PRIMARY KEY,
    interest_count INTEGER NOT NULL,
    data TEXT NOT NULL
);
"""


@contextlib.contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Re-raise any sqlite3 error inside the block as StorageError."""
    try:
        yield
    except sqlite3.Error as exc:
        raise StorageError(f"{operation} failed: {exc}") from exc


class Database:
    """SQLite database wrapper with schema management.

    Several service processes may share one database file; cross-process
    consistency of lobby rows comes from the versioned conditional UPDATE in
    SqliteLobbyRepository, not from in-process locking.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Return the active connection or raise if disconnected."""
        if self._conn is None:
            raise StorageError("Database is not connected")
        return self._conn

    def connect(self) -> None:
        """Open the database, apply pragmas and create the schema."""
        if self._path != _MEMORY_PATH:
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)

        with storage_errors("connect"):
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA busy_timeout=5000")
            self._conn.executescript(_SCHEMA_SQL)
        logger.info("database connected", path=self._path)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
