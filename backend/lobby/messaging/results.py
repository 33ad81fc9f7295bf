"""Wire-format result and push models for lobby operations.

Field names are snake_case in Python and camelCase on the wire; serialize
with ``to_payload`` (or ``model_dump(by_alias=True, mode="json")``).
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lobby.rooms.models import LobbyPhase
from shared.dal.models import GameSettings


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class OperationResult(WireModel):
    success: bool
    message: str


class JoinLobbyResult(OperationResult):
    game_id: str | None = None
    players_waiting: int = 0
    countdown: int | None = None


class LeaveLobbyResult(OperationResult):
    pass


class PlayerInfo(WireModel):
    username: str
    joined_at: datetime
    seat_index: int


class LobbyStatus(WireModel):
    """Full-state snapshot of one room class lobby (pull result and push payload)."""

    room_class: str
    players_waiting: int
    players: list[PlayerInfo] = Field(default_factory=list)
    game_id: str | None = None
    countdown: int | None = None  # remaining seconds
    game_active: bool = False
    phase: LobbyPhase = LobbyPhase.EMPTY


class RosterPlayer(WireModel):
    username: str = Field(min_length=1, max_length=30)
    client_id: str = Field(default="", max_length=100)
    seat_index: int | None = Field(default=None, ge=0)


class GameStartEvent(WireModel):
    game_id: str
    room_class: str
    players: list[RosterPlayer]
    game_settings: GameSettings
    random_seed: int


class StartGameResult(OperationResult):
    game_id: str | None = None


class LaunchGameResult(StartGameResult):
    random_seed: int | None = None
    players: list[RosterPlayer] = Field(default_factory=list)


class EndGameResult(OperationResult):
    pass


class HeartbeatResult(OperationResult):
    pass


class UpdateInterestResult(OperationResult):
    room_class: str | None = None
    new_interest_count: int = 0


class RemoveInterestResult(OperationResult):
    new_interest_count: int = 0


class InterestCount(WireModel):
    room_class: str
    interest_count: int
    timestamp: datetime


class CleanupResult(OperationResult):
    active_client_ids: list[str] = Field(default_factory=list)


def to_payload(result: WireModel | list[InterestCount]) -> Any:  # noqa: ANN401
    """Serialize a result (or a list of interest counts) into JSON-ready data."""
    if isinstance(result, list):
        return [item.model_dump(by_alias=True, mode="json") for item in result]
    return result.model_dump(by_alias=True, mode="json")
