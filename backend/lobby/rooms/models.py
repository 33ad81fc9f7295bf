"""Lobby phases and the pure seating/countdown transitions.

Every function here takes a frozen LobbyRecord and returns a new one (or None
when the call is a no-op). Storage and publishing are handled by
LobbyStateMachine; these functions never touch either.
"""

from __future__ import annotations

from datetime import timedelta
from enum import StrEnum
from typing import TYPE_CHECKING

from lobby.errors import LobbyFullError
from shared.dal.models import MAX_SEATS, LobbyRecord, SeatedPlayer

if TYPE_CHECKING:
    from datetime import datetime

    from shared.dal.models import GameSettings

COUNTDOWN_SECONDS = 30
MIN_PLAYERS_FOR_COUNTDOWN = 2


class LobbyPhase(StrEnum):
    EMPTY = "empty"
    WAITING = "waiting"
    COUNTDOWN = "countdown"
    LAUNCHING = "launching"  # countdown ran out, launch not yet committed
    ACTIVE = "active"


def empty_lobby(room_class: str, now: datetime) -> LobbyRecord:
    return LobbyRecord(room_class=room_class, last_updated=now)


def first_open_seat(record: LobbyRecord) -> int | None:
    """Return the lowest unused seat index, or None if every seat is taken."""
    taken = {p.seat_index for p in record.seated_players}
    for seat in range(MAX_SEATS):
        if seat not in taken:
            return seat
    return None


def countdown_expired(record: LobbyRecord, now: datetime) -> bool:
    if record.countdown is None or record.countdown_started_at is None:
        return False
    return now >= record.countdown_started_at + timedelta(seconds=record.countdown)


def countdown_remaining(record: LobbyRecord, now: datetime) -> int | None:
    """Whole seconds left before auto-launch, clamped at zero. None when no countdown runs."""
    if record.countdown is None or record.countdown_started_at is None:
        return None
    elapsed = int((now - record.countdown_started_at).total_seconds())
    return max(0, record.countdown - elapsed)


def phase_of(record: LobbyRecord, now: datetime) -> LobbyPhase:
    if record.game_active:
        return LobbyPhase.ACTIVE
    if not record.seated_players:
        return LobbyPhase.EMPTY
    if record.countdown is None:
        return LobbyPhase.WAITING
    if countdown_expired(record, now):
        return LobbyPhase.LAUNCHING
    return LobbyPhase.COUNTDOWN


def _with_countdown_if_ready(
    record: LobbyRecord,
    update: dict[str, object],
    player_count: int,
    now: datetime,
    countdown_seconds: int,
) -> dict[str, object]:
    if player_count >= MIN_PLAYERS_FOR_COUNTDOWN and record.countdown is None and not record.game_active:
        update["countdown"] = countdown_seconds
        update["countdown_started_at"] = now
    return update


def seat_player(
    record: LobbyRecord,
    client_id: str,
    username: str,
    now: datetime,
    countdown_seconds: int = COUNTDOWN_SECONDS,
) -> LobbyRecord | None:
    """Seat a client in the lowest open seat.

    Returns None when the client already holds a seat (joins are idempotent).
    Starts the countdown when this join brings the lobby to two players and no
    countdown or game is running. Raises LobbyFullError when no seat is free.
    """
    if record.seat_of(client_id) is not None:
        return None

    seat = first_open_seat(record)
    if seat is None:
        raise LobbyFullError(record.room_class, len(record.seated_players))

    player = SeatedPlayer(username=username, client_id=client_id, seat_index=seat, joined_at=now)
    players = (*record.seated_players, player)
    update = _with_countdown_if_ready(
        record,
        {"seated_players": players, "last_updated": now},
        len(players),
        now,
        countdown_seconds,
    )
    return record.model_copy(update=update)


def unseat_player(record: LobbyRecord, client_id: str, now: datetime) -> LobbyRecord | None:
    """Remove a client's seat. Returns None when the client was not seated.

    Dropping below two players cancels a running countdown.
    """
    if record.seat_of(client_id) is None:
        return None

    players = tuple(p for p in record.seated_players if p.client_id != client_id)
    update: dict[str, object] = {"seated_players": players, "last_updated": now}
    if len(players) < MIN_PLAYERS_FOR_COUNTDOWN:
        update["countdown"] = None
        update["countdown_started_at"] = None
    return record.model_copy(update=update)


def reset_for_launch(
    record: LobbyRecord,
    game_id: str,
    game_settings: GameSettings,
    random_seed: int,
    now: datetime,
) -> LobbyRecord:
    """Mark a game active and empty the waiting room for the next wave.

    Everything except the room class and the storage version is replaced.
    """
    return LobbyRecord(
        room_class=record.room_class,
        seated_players=(),
        active_game_id=game_id,
        countdown=None,
        countdown_started_at=None,
        game_active=True,
        game_settings=game_settings,
        random_seed=random_seed,
        game_start_time=now,
        last_updated=now,
        version=record.version,
    )


def finish_active_game(
    record: LobbyRecord,
    game_id: str | None,
    now: datetime,
    countdown_seconds: int = COUNTDOWN_SECONDS,
) -> LobbyRecord | None:
    """Return an ACTIVE lobby to service.

    No-op (None) when no game is active or ``game_id`` names a different game.
    Players who queued behind the finished game get their countdown right away.
    """
    if not record.game_active:
        return None
    if game_id is not None and record.active_game_id != game_id:
        return None

    update = _with_countdown_if_ready(
        record.model_copy(update={"game_active": False}),
        {
            "active_game_id": None,
            "game_active": False,
            "game_settings": None,
            "random_seed": None,
            "game_start_time": None,
            "last_updated": now,
        },
        len(record.seated_players),
        now,
        countdown_seconds,
    )
    return record.model_copy(update=update)
