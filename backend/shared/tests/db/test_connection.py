"""Tests for Database connection and schema."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

import pytest

from shared.dal.errors import StorageError
from shared.db.connection import Database, storage_errors

if TYPE_CHECKING:
    from pathlib import Path

_TABLES = ("interest", "lobbies", "presence")


def _table_names(db: Database) -> list[str]:
    rows = db.connection.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name").fetchall()
    return [row[0] for row in rows]


class TestConnect:
    def test_creates_schema_and_connects(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()

        for table in _TABLES:
            assert table in _table_names(db)
        db.close()

    def test_reconnect_after_close_keeps_schema(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()
        db.close()
        db.connect()

        assert [t for t in _table_names(db) if t in _TABLES] == list(_TABLES)
        db.close()

    def test_in_memory_database(self) -> None:
        db = Database(":memory:")
        db.connect()

        assert "lobbies" in _table_names(db)
        db.close()

    def test_connection_raises_when_disconnected(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        with pytest.raises(StorageError, match="not connected"):
            _ = db.connection

    def test_connection_raises_after_close(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()
        db.close()
        with pytest.raises(StorageError, match="not connected"):
            _ = db.connection

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "nested" / "dir" / "test.db")
        db.connect()

        assert (tmp_path / "nested" / "dir" / "test.db").exists()
        db.close()

    def test_close_is_idempotent(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "test.db")
        db.connect()
        db.close()
        db.close()


class TestStorageErrors:
    def test_translates_sqlite_errors(self) -> None:
        with pytest.raises(StorageError, match="read lobby failed") as exc_info, storage_errors("read lobby"):
            raise sqlite3.OperationalError("database is locked")

        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)

    def test_passes_other_exceptions_through(self) -> None:
        with pytest.raises(KeyError), storage_errors("read lobby"):
            raise KeyError("x")
