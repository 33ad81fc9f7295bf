"""Turns a seated lobby into a running game and announces it."""

from __future__ import annotations

import secrets
import uuid
from typing import TYPE_CHECKING

import structlog

from lobby.clock import utc_now
from lobby.errors import NothingToLaunchError
from lobby.launch.settings import default_game_settings
from lobby.messaging.results import GameStartEvent, RosterPlayer
from lobby.rooms.models import LobbyPhase, phase_of
from lobby.rooms.state_machine import DEFAULT_MAX_WRITE_ATTEMPTS
from shared.dal.errors import ConflictError, StorageError

if TYPE_CHECKING:
    from lobby.clock import Clock
    from lobby.messaging.hub import SubscriptionHub
    from lobby.rooms.state_machine import LobbyStateMachine
    from shared.dal.models import GameSettings, LobbyRecord

logger = structlog.get_logger()

_SEED_BITS = 31


def new_game_id() -> str:
    return uuid.uuid4().hex


def new_random_seed() -> int:
    return secrets.randbits(_SEED_BITS)


def roster_of(record: LobbyRecord) -> list[RosterPlayer]:
    return [
        RosterPlayer(username=p.username, client_id=p.client_id, seat_index=p.seat_index)
        for p in sorted(record.seated_players, key=lambda p: p.seat_index)
    ]


class GameLaunchCoordinator:
    """Snapshots the roster, commits the launch and broadcasts the game start.

    Every client of a launched game receives the same ``randomSeed`` and
    ``gameSettings`` so they generate identical secrets locally.
    """

    def __init__(
        self,
        state_machine: LobbyStateMachine,
        hub: SubscriptionHub,
        *,
        clock: Clock = utc_now,
        max_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS,
    ) -> None:
        self._state_machine = state_machine
        self._hub = hub
        self._clock = clock
        self._max_attempts = max_attempts

    async def start(
        self,
        game_id: str,
        room_class: str,
        players: list[RosterPlayer],
        game_settings: GameSettings,
        random_seed: int,
    ) -> GameStartEvent:
        """Commit a caller-supplied game and broadcast it to the room class."""
        await self._state_machine.start_game(game_id, room_class, game_settings, random_seed)
        event = GameStartEvent(
            game_id=game_id,
            room_class=room_class,
            players=players,
            game_settings=game_settings,
            random_seed=random_seed,
        )
        await self._hub.publish_game_start(event)
        return event

    async def launch(self, room_class: str, game_settings: GameSettings | None = None) -> GameStartEvent:
        """Launch the seated players of a lobby as a new game.

        The roster broadcast is exactly the seating that was reset: the write
        is conditional on the version the roster was read from, and a lost race
        re-reads and tries again.
        """
        settings = game_settings or default_game_settings(room_class)

        for attempt in range(1, self._max_attempts + 1):
            record = await self._state_machine.get_record(room_class)
            if record is None or not record.seated_players:
                raise NothingToLaunchError(f"No players waiting in {room_class} lobby")
            event = await self._commit(record, settings, attempt)
            if event is not None:
                return event

        logger.warning("launch retries exhausted", room_class=room_class, attempts=self._max_attempts)
        raise ConflictError(room_class, None)

    async def launch_if_expired(self, room_class: str) -> GameStartEvent | None:
        """Launch a lobby with stock settings once its countdown has run out.

        Returns None when the lobby is not (or no longer) waiting on an expired
        countdown, which makes the background check safe to race against
        explicit launches.
        """
        settings = default_game_settings(room_class)

        for attempt in range(1, self._max_attempts + 1):
            record = await self._state_machine.get_record(room_class)
            if record is None or phase_of(record, self._clock()) is not LobbyPhase.LAUNCHING:
                return None
            event = await self._commit(record, settings, attempt)
            if event is not None:
                return event

        logger.warning("launch retries exhausted", room_class=room_class, attempts=self._max_attempts)
        raise ConflictError(room_class, None)

    async def _commit(self, record: LobbyRecord, settings: GameSettings, attempt: int) -> GameStartEvent | None:
        """Reset the lobby at the roster's version and broadcast; None if the roster went stale."""
        room_class = record.room_class
        roster = roster_of(record)
        game_id = new_game_id()
        random_seed = new_random_seed()
        try:
            await self._state_machine.start_game(
                game_id,
                room_class,
                settings,
                random_seed,
                expected_version=record.version,
            )
        except ConflictError:
            logger.info("launch lost race, retrying", room_class=room_class, attempt=attempt)
            return None

        event = GameStartEvent(
            game_id=game_id,
            room_class=room_class,
            players=roster,
            game_settings=settings,
            random_seed=random_seed,
        )
        await self._hub.publish_game_start(event)
        logger.info("game launched", room_class=room_class, game_id=game_id, players=len(roster))
        return event

    async def launch_expired(self) -> list[GameStartEvent]:
        """Launch every lobby whose countdown has run out.

        A failure in one room class is logged and does not stop the others.
        """
        now = self._clock()
        launched: list[GameStartEvent] = []
        for record in await self._state_machine.list_records():
            if phase_of(record, now) is not LobbyPhase.LAUNCHING:
                continue
            try:
                event = await self.launch_if_expired(record.room_class)
            except StorageError:
                logger.exception("countdown launch failed", room_class=record.room_class)
                continue
            if event is not None:
                launched.append(event)
        return launched
