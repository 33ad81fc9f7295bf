"""Abstract interface for client presence persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from shared.dal.models import PresenceRecord


class PresenceRepository(ABC):
    """One PresenceRecord per client id. Deletes of missing records are no-ops."""

    @abstractmethod
    async def upsert(self, record: PresenceRecord) -> None: ...

    @abstractmethod
    async def delete(self, client_id: str) -> None: ...

    @abstractmethod
    async def list_all(self) -> list[PresenceRecord]: ...

    @abstractmethod
    async def delete_expired(self, now: datetime) -> int: ...
