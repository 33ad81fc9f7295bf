"""Shared fixtures and helpers for lobby tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import pytest

from lobby.interest.aggregator import InterestAggregator
from lobby.launch.coordinator import GameLaunchCoordinator
from lobby.launch.settings import ROOM_CLASSES
from lobby.messaging.dispatcher import CommandDispatcher
from lobby.messaging.hub import SubscriptionHub
from lobby.presence.tracker import PresenceTracker
from lobby.rooms.state_machine import LobbyStateMachine
from shared.dal.models import LobbyRecord, SeatedPlayer
from shared.db import Database, SqliteInterestRepository, SqliteLobbyRepository, SqlitePresenceRepository

if TYPE_CHECKING:
    from pathlib import Path

START = datetime(2025, 6, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock; call it to read the current time."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingSubscriber:
    """Subscriber that keeps every pushed message."""

    def __init__(self, subscriber_id: str = "sub-1", *, fail: bool = False) -> None:
        self._subscriber_id = subscriber_id
        self._fail = fail
        self.messages: list[dict[str, Any]] = []

    @property
    def subscriber_id(self) -> str:
        return self._subscriber_id

    async def send_json(self, message: dict[str, Any]) -> None:
        if self._fail:
            raise ConnectionError("gone")
        self.messages.append(message)


def make_record(room_class: str = "classic", *client_ids: str, **updates: Any) -> LobbyRecord:  # noqa: ANN401
    """Build a lobby record with the given clients seated in order."""
    players = tuple(
        SeatedPlayer(username=f"user-{cid}", client_id=cid, seat_index=i, joined_at=START)
        for i, cid in enumerate(client_ids)
    )
    record = LobbyRecord(room_class=room_class, seated_players=players, last_updated=START)
    return record.model_copy(update=updates) if updates else record


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db(tmp_path: Path):
    database = Database(tmp_path / "lobby.db")
    database.connect()
    yield database
    database.close()


@pytest.fixture
def hub() -> SubscriptionHub:
    return SubscriptionHub()


@pytest.fixture
def lobby_repo(db: Database) -> SqliteLobbyRepository:
    return SqliteLobbyRepository(db)


@pytest.fixture
def presence_repo(db: Database) -> SqlitePresenceRepository:
    return SqlitePresenceRepository(db)


@pytest.fixture
def interest_repo(db: Database) -> SqliteInterestRepository:
    return SqliteInterestRepository(db)


@pytest.fixture
def state_machine(lobby_repo: SqliteLobbyRepository, hub: SubscriptionHub, clock: FakeClock) -> LobbyStateMachine:
    return LobbyStateMachine(lobby_repo, hub, clock=clock)


@pytest.fixture
def tracker(presence_repo: SqlitePresenceRepository, clock: FakeClock) -> PresenceTracker:
    return PresenceTracker(presence_repo, clock=clock)


@pytest.fixture
def aggregator(
    interest_repo: SqliteInterestRepository,
    tracker: PresenceTracker,
    hub: SubscriptionHub,
    clock: FakeClock,
) -> InterestAggregator:
    return InterestAggregator(interest_repo, tracker, hub, clock=clock)


@pytest.fixture
def coordinator(state_machine: LobbyStateMachine, hub: SubscriptionHub, clock: FakeClock) -> GameLaunchCoordinator:
    return GameLaunchCoordinator(state_machine, hub, clock=clock)


@pytest.fixture
def dispatcher(
    state_machine: LobbyStateMachine,
    tracker: PresenceTracker,
    aggregator: InterestAggregator,
    coordinator: GameLaunchCoordinator,
) -> CommandDispatcher:
    return CommandDispatcher(
        state_machine,
        tracker,
        aggregator,
        coordinator,
        room_classes=frozenset(ROOM_CLASSES),
    )
