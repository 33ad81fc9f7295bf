"""SQLite-backed lobby repository with compare-and-swap writes."""

from __future__ import annotations

import asyncio
import sqlite3
from typing import TYPE_CHECKING

import structlog

from shared.dal.errors import ConflictError
from shared.dal.lobby_repository import LobbyRepository
from shared.dal.models import LobbyRecord
from shared.db.connection import storage_errors

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteLobbyRepository(LobbyRepository):
    """SQLite implementation of LobbyRepository.

    Each row stores the full record as JSON next to an integer version column.
    Updates are conditional on that column (``WHERE version = ?``), so a writer
    that read a stale record gets ConflictError instead of overwriting a
    concurrent change.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def get(self, room_class: str) -> LobbyRecord | None:
        with storage_errors("get lobby"):
            row = self._db.connection.execute(
                "SELECT data FROM lobbies WHERE room_class = ?",
                (room_class,),
            ).fetchone()
        if row is None:
            return None
        return LobbyRecord.model_validate_json(row[0])

    async def save(self, record: LobbyRecord, expected_version: int | None) -> LobbyRecord:
        new_version = 1 if expected_version is None else expected_version + 1
        stored = record.model_copy(update={"version": new_version})
        async with self._lock:
            with storage_errors("save lobby"):
                conn = self._db.connection
                if expected_version is None:
                    try:
                        conn.execute(
                            "INSERT INTO lobbies (room_class, version, data) VALUES (?, ?, ?)",
                            (stored.room_class, new_version, stored.model_dump_json()),
                        )
                    except sqlite3.IntegrityError:
                        conn.rollback()
                        raise ConflictError(record.room_class, expected_version) from None
                else:
                    cursor = conn.execute(
                        "UPDATE lobbies SET version = ?, data = ? WHERE room_class = ? AND version = ?",
                        (new_version, stored.model_dump_json(), stored.room_class, expected_version),
                    )
                    if cursor.rowcount == 0:
                        conn.rollback()
                        raise ConflictError(record.room_class, expected_version)
                conn.commit()
        logger.debug("lobby saved", room_class=stored.room_class, version=new_version)
        return stored

    async def list_all(self) -> list[LobbyRecord]:
        with storage_errors("list lobbies"):
            rows = self._db.connection.execute(
                "SELECT data FROM lobbies ORDER BY room_class",
            ).fetchall()
        return [LobbyRecord.model_validate_json(row[0]) for row in rows]
