"""Client liveness tracking from heartbeats."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog

from lobby.clock import utc_now
from shared.dal.errors import StorageError
from shared.dal.models import PresenceRecord

if TYPE_CHECKING:
    from lobby.clock import Clock
    from shared.dal.presence_repository import PresenceRepository

logger = structlog.get_logger()

STALE_THRESHOLD_SECONDS = 180
PRESENCE_TTL_SECONDS = 300


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one stale-presence sweep.

    ``failed_room_classes`` lists room classes where a delete hit a storage
    error; their interest counts must not be rewritten this cycle.
    """

    active: list[PresenceRecord] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    failed_room_classes: frozenset[str] = frozenset()

    @property
    def active_client_ids(self) -> list[str]:
        return [record.client_id for record in self.active]


class PresenceTracker:
    """Records heartbeats and decides which clients are still live.

    A client is live while its last heartbeat is no older than the stale
    threshold. Records also carry a TTL so storage garbage collection removes
    anything the sweep misses.
    """

    def __init__(
        self,
        repository: PresenceRepository,
        *,
        clock: Clock = utc_now,
        stale_threshold_seconds: int = STALE_THRESHOLD_SECONDS,
        ttl_seconds: int = PRESENCE_TTL_SECONDS,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._stale_threshold = timedelta(seconds=stale_threshold_seconds)
        self._ttl = timedelta(seconds=ttl_seconds)

    async def heartbeat(self, client_id: str, room_class: str, username: str) -> bool:
        """Refresh a client's presence. Returns False if the write failed.

        Failures are logged and never raised: a lost heartbeat is repaired by
        the next one.
        """
        now = self._clock()
        record = PresenceRecord(
            client_id=client_id,
            room_class=room_class,
            username=username,
            last_heartbeat_at=now,
            expires_at=now + self._ttl,
        )
        try:
            await self._repository.upsert(record)
        except StorageError:
            logger.warning("heartbeat write failed", client_id=client_id, room_class=room_class, exc_info=True)
            return False
        return True

    async def remove_presence(self, client_id: str) -> None:
        await self._repository.delete(client_id)
        logger.debug("presence removed", client_id=client_id)

    async def sweep_stale(self, stale_threshold_seconds: int | None = None) -> SweepResult:
        """Delete presence records older than the stale threshold and return the live ones."""
        threshold = (
            self._stale_threshold if stale_threshold_seconds is None else timedelta(seconds=stale_threshold_seconds)
        )
        now = self._clock()
        active: list[PresenceRecord] = []
        removed: list[str] = []
        failed: set[str] = set()

        for record in await self._repository.list_all():
            if now - record.last_heartbeat_at <= threshold:
                active.append(record)
                continue
            try:
                await self._repository.delete(record.client_id)
            except StorageError:
                logger.warning(
                    "stale presence delete failed",
                    client_id=record.client_id,
                    room_class=record.room_class,
                    exc_info=True,
                )
                failed.add(record.room_class)
                continue
            removed.append(record.client_id)

        if removed:
            logger.info("stale presence swept", removed=len(removed), active=len(active))
        return SweepResult(active=active, removed=removed, failed_room_classes=frozenset(failed))

    async def purge_expired(self) -> int:
        """Garbage-collect records past their TTL. Returns the number deleted."""
        deleted = await self._repository.delete_expired(self._clock())
        if deleted:
            logger.info("expired presence purged", deleted=deleted)
        return deleted
