"""SQLite-backed presence repository."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from shared.dal.models import PresenceRecord
from shared.dal.presence_repository import PresenceRepository
from shared.db.connection import storage_errors

if TYPE_CHECKING:
    from datetime import datetime

    from shared.db.connection import Database


class SqlitePresenceRepository(PresenceRepository):
    """SQLite implementation of PresenceRepository.

    ``expires_at`` is duplicated into an epoch-seconds column so TTL garbage
    collection is a single indexed DELETE.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def upsert(self, record: PresenceRecord) -> None:
        async with self._lock:
            with storage_errors("upsert presence"):
                self._db.connection.execute(
                    "INSERT INTO presence (client_id, room_class, expires_at, data) VALUES (?, ?, ?, ?) "
                    "ON CONFLICT (client_id) DO UPDATE SET "
                    "room_class = excluded.room_class, "
                    "expires_at = excluded.expires_at, "
                    "data = excluded.data",
                    (
                        record.client_id,
                        record.room_class,
                        record.expires_at.timestamp(),
                        record.model_dump_json(),
                    ),
                )
                self._db.connection.commit()

    async def delete(self, client_id: str) -> None:
        async with self._lock:
            with storage_errors("delete presence"):
                self._db.connection.execute("DELETE FROM presence WHERE client_id = ?", (client_id,))
                self._db.connection.commit()

    async def list_all(self) -> list[PresenceRecord]:
        with storage_errors("list presence"):
            rows = self._db.connection.execute(
                "SELECT data FROM presence ORDER BY client_id",
            ).fetchall()
        return [PresenceRecord.model_validate_json(row[0]) for row in rows]

    async def delete_expired(self, now: datetime) -> int:
        """Delete records whose TTL has passed. Returns the number deleted."""
        async with self._lock:
            with storage_errors("delete expired presence"):
                cursor = self._db.connection.execute(
                    "DELETE FROM presence WHERE expires_at <= ?",
                    (now.timestamp(),),
                )
                self._db.connection.commit()
        return cursor.rowcount
