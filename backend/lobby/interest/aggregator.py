"""Per-room-class interest counts derived from live presence."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from lobby.clock import utc_now
from lobby.messaging.results import InterestCount
from shared.dal.errors import StorageError

if TYPE_CHECKING:
    from lobby.clock import Clock
    from lobby.messaging.hub import SubscriptionHub
    from lobby.presence.tracker import PresenceTracker, SweepResult
    from shared.dal.interest_repository import InterestRepository

logger = structlog.get_logger()


@dataclass(frozen=True)
class RecomputeResult:
    sweep: SweepResult
    counts: dict[str, int] = field(default_factory=dict)
    failed_room_classes: frozenset[str] = frozenset()

    def count_for(self, room_class: str) -> int:
        return self.counts.get(room_class, 0)


class InterestAggregator:
    """Maintains the cached interest count for each room class.

    Counts are never incremented or decremented in place: every change sweeps
    stale presence and rewrites each count from the live presence set, so the
    stored value is always the number of live clients for that room class.
    Room classes with no live presence are written back as zero.
    """

    def __init__(
        self,
        repository: InterestRepository,
        tracker: PresenceTracker,
        hub: SubscriptionHub,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._tracker = tracker
        self._hub = hub
        self._clock = clock

    async def get_interest_counts(self) -> list[InterestCount]:
        records = await self._repository.list_all()
        return [
            InterestCount(room_class=r.room_class, interest_count=r.interest_count, timestamp=r.last_updated)
            for r in sorted(records, key=lambda r: r.room_class)
        ]

    async def recompute_from_presence(self) -> RecomputeResult:
        sweep = await self._tracker.sweep_stale()
        counts = Counter(record.room_class for record in sweep.active)

        targets = set(counts)
        try:
            targets.update(record.room_class for record in await self._repository.list_all())
        except StorageError:
            logger.warning("interest listing failed, zeroing skipped", exc_info=True)

        failed = set(sweep.failed_room_classes)
        now = self._clock()
        for room_class in sorted(targets - failed):
            try:
                await self._repository.set_count(room_class, counts.get(room_class, 0), now)
            except StorageError:
                logger.warning("interest count write failed", room_class=room_class, exc_info=True)
                failed.add(room_class)

        await self._publish()
        return RecomputeResult(sweep=sweep, counts=dict(counts), failed_room_classes=frozenset(failed))

    async def on_interest_signal(self, room_class: str, client_id: str, username: str) -> int:
        """Register a client's interest and return the room class's fresh count."""
        await self._tracker.heartbeat(client_id, room_class, username)
        result = await self.recompute_from_presence()
        logger.debug("interest updated", room_class=room_class, client_id=client_id, count=result.count_for(room_class))
        return result.count_for(room_class)

    async def on_interest_withdraw(self, room_class: str, client_id: str) -> int:
        """Withdraw a client's interest and return the room class's fresh count."""
        await self._tracker.remove_presence(client_id)
        result = await self.recompute_from_presence()
        return result.count_for(room_class)

    async def _publish(self) -> None:
        try:
            counts = await self.get_interest_counts()
        except StorageError:
            logger.warning("interest snapshot unavailable, push skipped", exc_info=True)
            return
        await self._hub.publish_interest_update(counts)
