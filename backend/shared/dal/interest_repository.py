"""Abstract interface for the derived interest-count cache."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from shared.dal.models import InterestRecord


class InterestRepository(ABC):
    """One InterestRecord per room class; writes are last-computed-wins overwrites."""

    @abstractmethod
    async def set_count(self, room_class: str, count: int, now: datetime) -> InterestRecord: ...

    @abstractmethod
    async def list_all(self) -> list[InterestRecord]: ...
