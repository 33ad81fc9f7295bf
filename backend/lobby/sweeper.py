"""Periodic background maintenance for lobbies and presence."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from lobby.interest.aggregator import InterestAggregator
    from lobby.launch.coordinator import GameLaunchCoordinator
    from lobby.presence.tracker import PresenceTracker
    from lobby.rooms.state_machine import LobbyStateMachine

logger = structlog.get_logger()


class LobbySweeper:
    """Runs the server-side timers that no client is required to trigger.

    Each cycle recomputes interest counts, purges expired presence, launches
    lobbies whose countdown ran out and ends abandoned games. Each step is
    isolated: one failing step is logged and the rest still run.
    """

    def __init__(
        self,
        *,
        state_machine: LobbyStateMachine,
        tracker: PresenceTracker,
        aggregator: InterestAggregator,
        coordinator: GameLaunchCoordinator,
        interval_seconds: float = 10,
        active_game_ttl_seconds: int = 3600,
    ) -> None:
        self._state_machine = state_machine
        self._tracker = tracker
        self._aggregator = aggregator
        self._coordinator = coordinator
        self._interval_seconds = interval_seconds
        self._active_game_ttl_seconds = active_game_ttl_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        """Start the sweep task."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Cancel the sweep task."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def _sweep_loop(self) -> None:  # pragma: no cover - long-running background loop
        while True:
            await asyncio.sleep(self._interval_seconds)
            await self.run_once()

    async def run_once(self) -> None:
        steps: list[tuple[str, Callable[[], Awaitable[object]]]] = [
            ("recompute interest", self._aggregator.recompute_from_presence),
            ("purge expired presence", self._tracker.purge_expired),
            ("launch expired countdowns", self._coordinator.launch_expired),
            ("end stale games", self._end_stale_games),
        ]
        for name, step in steps:
            try:
                await step()
            except Exception:
                logger.exception("sweep step failed", step=name)

    async def _end_stale_games(self) -> list[str]:
        return await self._state_machine.end_stale_games(self._active_game_ttl_seconds)
