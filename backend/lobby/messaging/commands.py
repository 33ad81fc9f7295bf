"""Typed command models for every lobby operation, keyed on ``operation``."""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from lobby.messaging.results import RosterPlayer
from shared.dal.models import MAX_SEATS, GameSettings

MAX_COMMAND_SIZE = 4096
ROOM_CLASS_PATTERN = r"^[a-z0-9_-]{1,32}$"
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F


class CommandTooLargeError(ValueError):
    """A request body exceeded MAX_COMMAND_SIZE bytes."""


def _reject_control_chars(value: str) -> str:
    if any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in value):
        raise ValueError("must not contain control characters")
    return value


RoomClass = Annotated[str, Field(pattern=ROOM_CLASS_PATTERN)]
ClientId = Annotated[str, Field(min_length=1, max_length=100), AfterValidator(_reject_control_chars)]
Username = Annotated[str, Field(min_length=1, max_length=30), AfterValidator(_reject_control_chars)]
GameId = Annotated[str, Field(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")]


class _Command(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class JoinLobbyCommand(_Command):
    operation: Literal["joinLobby"] = "joinLobby"
    room_class: RoomClass
    username: Username
    client_id: ClientId


class LeaveLobbyCommand(_Command):
    operation: Literal["leaveLobby"] = "leaveLobby"
    room_class: RoomClass
    client_id: ClientId


class GetLobbyStatusCommand(_Command):
    operation: Literal["getLobbyStatus"] = "getLobbyStatus"
    room_class: RoomClass


class StartGameCommand(_Command):
    operation: Literal["startGame"] = "startGame"
    game_id: GameId
    room_class: RoomClass
    players: list[RosterPlayer] = Field(default_factory=list, max_length=MAX_SEATS)
    game_settings: GameSettings
    random_seed: int = Field(ge=0, lt=2**53)


class SendHeartbeatCommand(_Command):
    operation: Literal["sendHeartbeat"] = "sendHeartbeat"
    client_id: ClientId
    room_class: RoomClass
    username: Username


class UpdateInterestCommand(_Command):
    operation: Literal["updateInterest"] = "updateInterest"
    room_class: RoomClass
    client_id: ClientId
    username: Username


class RemoveInterestCommand(_Command):
    operation: Literal["removeInterest"] = "removeInterest"
    room_class: RoomClass
    client_id: ClientId


class GetInterestCountsCommand(_Command):
    operation: Literal["getInterestCounts"] = "getInterestCounts"


class CleanupStaleInterestsCommand(_Command):
    operation: Literal["cleanupStaleInterests"] = "cleanupStaleInterests"


class LaunchGameCommand(_Command):
    operation: Literal["launchGame"] = "launchGame"
    room_class: RoomClass
    game_settings: GameSettings | None = None


class EndGameCommand(_Command):
    operation: Literal["endGame"] = "endGame"
    room_class: RoomClass
    game_id: GameId | None = None


LobbyCommand = Annotated[
    JoinLobbyCommand
    | LeaveLobbyCommand
    | GetLobbyStatusCommand
    | StartGameCommand
    | SendHeartbeatCommand
    | UpdateInterestCommand
    | RemoveInterestCommand
    | GetInterestCountsCommand
    | CleanupStaleInterestsCommand
    | LaunchGameCommand
    | EndGameCommand,
    Field(discriminator="operation"),
]

_command_adapter: TypeAdapter[LobbyCommand] = TypeAdapter(LobbyCommand)


def parse_command(data: Any) -> LobbyCommand:  # noqa: ANN401
    """Validate already-decoded JSON into a typed command (raises pydantic.ValidationError)."""
    return _command_adapter.validate_python(data)


def parse_command_json(raw: str | bytes) -> LobbyCommand:
    """Parse a raw JSON request body into a typed command.

    Raises CommandTooLargeError for oversized input, ValueError for undecodable
    JSON and pydantic.ValidationError for schema violations.
    """
    encoded = raw.encode("utf-8") if isinstance(raw, str) else raw
    if len(encoded) > MAX_COMMAND_SIZE:
        raise CommandTooLargeError(f"Command too large ({len(encoded)} bytes, max {MAX_COMMAND_SIZE})")
    return parse_command(json.loads(encoded))
