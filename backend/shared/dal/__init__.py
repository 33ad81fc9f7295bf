"""Data access layer: repository interfaces and shared persistence models."""

from shared.dal.errors import ConflictError, StorageError
from shared.dal.interest_repository import InterestRepository
from shared.dal.lobby_repository import LobbyRepository
from shared.dal.models import (
    MAX_SEATS,
    GameSettings,
    InterestRecord,
    LobbyRecord,
    PresenceRecord,
    SeatedPlayer,
)
from shared.dal.presence_repository import PresenceRepository

__all__ = [
    "MAX_SEATS",
    "ConflictError",
    "GameSettings",
    "InterestRecord",
    "InterestRepository",
    "LobbyRecord",
    "LobbyRepository",
    "PresenceRecord",
    "PresenceRepository",
    "SeatedPlayer",
    "StorageError",
]
