"""Persistence models for the data access layer."""

from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

# Seats per lobby; seat indices are 0..MAX_SEATS-1.
MAX_SEATS = 4


class GameSettings(BaseModel, frozen=True, alias_generator=to_camel, populate_by_name=True):
    """Board configuration shared by every player of a launched game.

    Serialized camelCase on the wire (``selectionSetSize``); either spelling is
    accepted on input.
    """

    rows: int = Field(ge=1, le=4)
    columns: int = Field(ge=1, le=5)
    selection_set_size: int = Field(ge=2, le=20)
    multi_row_feedback: bool = False


class SeatedPlayer(BaseModel, frozen=True):
    """Player holding a seat in a room class lobby."""

    username: str
    client_id: str  # stable per-installation id; unique within a lobby
    seat_index: int = Field(ge=0, lt=MAX_SEATS)
    joined_at: datetime


class LobbyRecord(BaseModel, frozen=True):
    """Authoritative waiting-room state for one room class.

    ``version`` is bumped by the repository on every successful write and is
    the compare-and-swap token for concurrent updates. ``countdown`` holds the
    countdown length in seconds, not the remaining time.
    """

    room_class: str
    seated_players: tuple[SeatedPlayer, ...] = ()
    active_game_id: str | None = None
    countdown: int | None = None
    countdown_started_at: datetime | None = None
    game_active: bool = False
    game_settings: GameSettings | None = None
    random_seed: int | None = None
    game_start_time: datetime | None = None
    last_updated: datetime
    version: int = 0

    def seat_of(self, client_id: str) -> SeatedPlayer | None:
        """Return the seated player for a client, or None if not seated."""
        for player in self.seated_players:
            if player.client_id == client_id:
                return player
        return None


class PresenceRecord(BaseModel, frozen=True):
    """Latest liveness signal from one client."""

    client_id: str
    room_class: str
    username: str
    last_heartbeat_at: datetime
    expires_at: datetime


class InterestRecord(BaseModel, frozen=True):
    """Cached count of live clients interested in a room class (derived from presence)."""

    room_class: str
    interest_count: int = Field(ge=0)
    last_updated: datetime
