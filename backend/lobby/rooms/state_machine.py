"""Authoritative lobby state machine backed by a versioned repository."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import structlog

from lobby.clock import utc_now
from lobby.messaging.results import LobbyStatus, PlayerInfo
from lobby.rooms.models import (
    COUNTDOWN_SECONDS,
    countdown_remaining,
    empty_lobby,
    finish_active_game,
    phase_of,
    reset_for_launch,
    seat_player,
    unseat_player,
)
from shared.dal.errors import ConflictError

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from lobby.clock import Clock
    from lobby.messaging.hub import SubscriptionHub
    from shared.dal.lobby_repository import LobbyRepository
    from shared.dal.models import GameSettings, LobbyRecord

    Transform = Callable[[LobbyRecord, datetime], LobbyRecord | None]

logger = structlog.get_logger()

DEFAULT_MAX_WRITE_ATTEMPTS = 5


def project_status(record: LobbyRecord, now: datetime) -> LobbyStatus:
    """Build the client-facing snapshot of a lobby record."""
    players = sorted(record.seated_players, key=lambda p: p.seat_index)
    return LobbyStatus(
        room_class=record.room_class,
        players_waiting=len(players),
        players=[
            PlayerInfo(username=p.username, joined_at=p.joined_at, seat_index=p.seat_index) for p in players
        ],
        game_id=record.active_game_id,
        countdown=countdown_remaining(record, now),
        game_active=record.game_active,
        phase=phase_of(record, now),
    )


class LobbyStateMachine:
    """Seats players, runs the countdown and tracks the active game per room class.

    Every mutation is read -> pure transform -> conditional save. A concurrent
    writer makes the save raise ConflictError; the loop then re-reads and
    re-applies the transform, up to ``max_write_attempts`` times before letting
    the ConflictError propagate. Successful writes publish a lobby snapshot.
    """

    def __init__(
        self,
        repository: LobbyRepository,
        hub: SubscriptionHub,
        *,
        clock: Clock = utc_now,
        countdown_seconds: int = COUNTDOWN_SECONDS,
        max_write_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS,
    ) -> None:
        self._repository = repository
        self._hub = hub
        self._clock = clock
        self._countdown_seconds = countdown_seconds
        self._max_write_attempts = max_write_attempts

    @property
    def clock(self) -> Clock:
        return self._clock

    async def join(self, room_class: str, client_id: str, username: str) -> LobbyRecord:
        """Seat a client; an already seated client gets the current record back unchanged."""
        record, changed = await self._mutate(
            room_class,
            lambda rec, now: seat_player(rec, client_id, username, now, self._countdown_seconds),
            create_if_missing=True,
        )
        if changed:
            seat = record.seat_of(client_id)
            logger.info(
                "player seated",
                room_class=room_class,
                client_id=client_id,
                seat_index=seat.seat_index if seat else None,
                players_waiting=len(record.seated_players),
            )
        return record

    async def leave(self, room_class: str, client_id: str) -> LobbyRecord | None:
        """Unseat a client. Leaving an absent lobby or a lobby you are not in is a no-op."""
        record, changed = await self._mutate(
            room_class,
            lambda rec, now: unseat_player(rec, client_id, now),
            create_if_missing=False,
        )
        if changed:
            logger.info(
                "player left lobby",
                room_class=room_class,
                client_id=client_id,
                players_waiting=len(record.seated_players) if record else 0,
            )
        return record

    async def get_record(self, room_class: str) -> LobbyRecord | None:
        return await self._repository.get(room_class)

    async def list_records(self) -> list[LobbyRecord]:
        return await self._repository.list_all()

    async def get_status(self, room_class: str) -> LobbyStatus:
        now = self._clock()
        record = await self._repository.get(room_class)
        return project_status(record or empty_lobby(room_class, now), now)

    async def start_game(
        self,
        game_id: str,
        room_class: str,
        game_settings: GameSettings,
        random_seed: int,
        *,
        expected_version: int | None = None,
    ) -> LobbyRecord:
        """Mark a game active and clear the waiting room.

        Without ``expected_version`` the write is retried against whatever the
        lobby currently holds. With it, exactly one conditional write is
        attempted, so the caller's roster snapshot and the reset are atomic;
        ConflictError means the lobby changed after the snapshot was taken.
        """
        if expected_version is None:
            record, _ = await self._mutate(
                room_class,
                lambda rec, now: reset_for_launch(rec, game_id, game_settings, random_seed, now),
                create_if_missing=True,
            )
        else:
            now = self._clock()
            template = empty_lobby(room_class, now).model_copy(update={"version": expected_version})
            record = await self._repository.save(
                reset_for_launch(template, game_id, game_settings, random_seed, now),
                expected_version,
            )
            await self._publish(record)

        logger.info("game started", room_class=room_class, game_id=game_id, random_seed=random_seed)
        return record

    async def end_game(self, room_class: str, game_id: str | None = None) -> LobbyRecord | None:
        """Clear the active game. Returns None when nothing matched."""
        record, changed = await self._mutate(
            room_class,
            lambda rec, now: finish_active_game(rec, game_id, now, self._countdown_seconds),
            create_if_missing=False,
        )
        if not changed:
            return None
        logger.info("game ended", room_class=room_class, game_id=game_id)
        return record

    async def end_stale_games(self, max_age_seconds: int) -> list[str]:
        """End games that have been active longer than ``max_age_seconds``.

        Returns the room classes that were returned to service.
        """
        now = self._clock()
        cutoff = timedelta(seconds=max_age_seconds)
        ended: list[str] = []
        for record in await self._repository.list_all():
            if not record.game_active or record.game_start_time is None:
                continue
            if now - record.game_start_time < cutoff:
                continue
            if await self.end_game(record.room_class, record.active_game_id) is not None:
                logger.info("stale game expired", room_class=record.room_class, game_id=record.active_game_id)
                ended.append(record.room_class)
        return ended

    async def _mutate(
        self,
        room_class: str,
        transform: Transform,
        *,
        create_if_missing: bool,
    ) -> tuple[LobbyRecord | None, bool]:
        """Apply ``transform`` under compare-and-swap.

        Returns the resulting record and whether a write happened. A transform
        returning None means "no change" and ends the loop without writing.
        """
        for attempt in range(1, self._max_write_attempts + 1):
            now = self._clock()
            current = await self._repository.get(room_class)
            if current is None and not create_if_missing:
                return None, False

            base = current if current is not None else empty_lobby(room_class, now)
            updated = transform(base, now)
            if updated is None:
                return current if current is not None else base, False

            expected_version = current.version if current is not None else None
            try:
                saved = await self._repository.save(updated, expected_version)
            except ConflictError:
                logger.info("lobby write conflict", room_class=room_class, attempt=attempt)
                continue

            await self._publish(saved)
            return saved, True

        logger.warning(
            "lobby write retries exhausted",
            room_class=room_class,
            attempts=self._max_write_attempts,
        )
        raise ConflictError(room_class, None)

    async def _publish(self, record: LobbyRecord) -> None:
        await self._hub.publish_lobby_update(project_status(record, self._clock()))
