"""Tests for LobbySweeper background maintenance."""

import asyncio
from unittest.mock import AsyncMock

from lobby.interest.aggregator import InterestAggregator
from lobby.launch.coordinator import GameLaunchCoordinator
from lobby.presence.tracker import PresenceTracker
from lobby.rooms.state_machine import LobbyStateMachine
from lobby.sweeper import LobbySweeper
from shared.dal.errors import StorageError


def _sweeper(state_machine, tracker, aggregator, coordinator, **kwargs) -> LobbySweeper:
    return LobbySweeper(
        state_machine=state_machine,
        tracker=tracker,
        aggregator=aggregator,
        coordinator=coordinator,
        **kwargs,
    )


class TestRunOnce:
    async def test_launches_expired_countdown_without_clients(
        self,
        state_machine,
        tracker,
        aggregator,
        coordinator,
        clock,
    ):
        await state_machine.join("classic", "c1", "alice")
        await state_machine.join("classic", "c2", "bob")
        clock.advance(31)

        await _sweeper(state_machine, tracker, aggregator, coordinator).run_once()

        record = await state_machine.get_record("classic")
        assert record.game_active is True
        assert record.seated_players == ()

    async def test_recomputes_interest_and_purges_presence(
        self,
        state_machine,
        tracker,
        aggregator,
        coordinator,
        presence_repo,
        clock,
    ):
        await aggregator.on_interest_signal("hard", "c1", "alice")
        clock.advance(400)

        await _sweeper(state_machine, tracker, aggregator, coordinator).run_once()

        assert [(c.room_class, c.interest_count) for c in await aggregator.get_interest_counts()] == [("hard", 0)]
        assert await presence_repo.list_all() == []

    async def test_ends_abandoned_games(self, state_machine, tracker, aggregator, coordinator, clock):
        await state_machine.join("classic", "c1", "alice")
        await coordinator.launch("classic")
        clock.advance(61)

        await _sweeper(state_machine, tracker, aggregator, coordinator, active_game_ttl_seconds=60).run_once()

        assert (await state_machine.get_record("classic")).game_active is False

    async def test_failing_step_does_not_stop_the_rest(self, caplog):
        state_machine = AsyncMock(spec=LobbyStateMachine)
        tracker = AsyncMock(spec=PresenceTracker)
        aggregator = AsyncMock(spec=InterestAggregator)
        coordinator = AsyncMock(spec=GameLaunchCoordinator)
        aggregator.recompute_from_presence.side_effect = StorageError("down")

        await _sweeper(state_machine, tracker, aggregator, coordinator, active_game_ttl_seconds=99).run_once()

        tracker.purge_expired.assert_awaited_once()
        coordinator.launch_expired.assert_awaited_once()
        state_machine.end_stale_games.assert_awaited_once_with(99)
        assert "sweep step failed" in caplog.text


class TestLifecycle:
    async def test_start_and_stop(self):
        sweeper = _sweeper(
            AsyncMock(spec=LobbyStateMachine),
            AsyncMock(spec=PresenceTracker),
            AsyncMock(spec=InterestAggregator),
            AsyncMock(spec=GameLaunchCoordinator),
            interval_seconds=3600,
        )

        sweeper.start()
        sweeper.start()
        assert sweeper.running is True
        await asyncio.sleep(0)

        await sweeper.stop()
        assert sweeper.running is False
        await sweeper.stop()
