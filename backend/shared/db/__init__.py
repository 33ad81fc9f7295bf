"""SQLite database layer: connection management and repository implementations."""

from shared.db.connection import Database
from shared.db.interest_repository import SqliteInterestRepository
from shared.db.lobby_repository import SqliteLobbyRepository
from shared.db.presence_repository import SqlitePresenceRepository

__all__ = [
    "Database",
    "SqliteInterestRepository",
    "SqliteLobbyRepository",
    "SqlitePresenceRepository",
]
