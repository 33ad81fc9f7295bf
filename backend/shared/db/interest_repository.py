"""SQLite-backed interest count cache."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from shared.dal.interest_repository import InterestRepository
from shared.dal.models import InterestRecord
from shared.db.connection import storage_errors

if TYPE_CHECKING:
    from datetime import datetime

    from shared.db.connection import Database


class SqliteInterestRepository(InterestRepository):
    """SQLite implementation of InterestRepository."""

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def set_count(self, room_class: str, count: int, now: datetime) -> InterestRecord:
        record = InterestRecord(room_class=room_class, interest_count=count, last_updated=now)
        async with self._lock:
            with storage_errors("set interest count"):
                self._db.connection.execute(
                    "INSERT INTO interest (room_class, interest_count, data) VALUES (?, ?, ?) "
                    "ON CONFLICT (room_class) DO UPDATE SET "
                    "interest_count = excluded.interest_count, "
                    "data = excluded.data",
                    (room_class, count, record.model_dump_json()),
                )
                self._db.connection.commit()
        return record

    async def list_all(self) -> list[InterestRecord]:
        with storage_errors("list interest"):
            rows = self._db.connection.execute(
                "SELECT data FROM interest ORDER BY room_class",
            ).fetchall()
        return [InterestRecord.model_validate_json(row[0]) for row in rows]
