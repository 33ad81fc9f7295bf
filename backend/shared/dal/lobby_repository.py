"""Abstract interface for lobby record persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import LobbyRecord


class LobbyRepository(ABC):
    """Versioned storage for one LobbyRecord per room class.

    ``save`` is a compare-and-swap: with ``expected_version=None`` it creates
    the record and fails if one already exists; otherwise it only writes when
    the stored version still equals ``expected_version``. Both failure modes
    raise ConflictError. On success the stored record (with its new version)
    is returned.
    """

    @abstractmethod
    async def get(self, room_class: str) -> LobbyRecord | None: ...

    @abstractmethod
    async def save(self, record: LobbyRecord, expected_version: int | None) -> LobbyRecord: ...

    @abstractmethod
    async def list_all(self) -> list[LobbyRecord]: ...
