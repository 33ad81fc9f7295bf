"""Tests for PresenceTracker heartbeats and stale sweeps."""

from datetime import timedelta
from unittest.mock import AsyncMock

from lobby.presence.tracker import PresenceTracker
from lobby.tests.conftest import START
from shared.dal.errors import StorageError
from shared.dal.models import PresenceRecord


def _presence(client_id: str, room_class: str, minutes_ago: float) -> PresenceRecord:
    heartbeat_at = START - timedelta(minutes=minutes_ago)
    return PresenceRecord(
        client_id=client_id,
        room_class=room_class,
        username=f"user-{client_id}",
        last_heartbeat_at=heartbeat_at,
        expires_at=heartbeat_at + timedelta(minutes=5),
    )


class TestHeartbeat:
    async def test_records_presence_with_ttl(self, tracker, presence_repo):
        assert await tracker.heartbeat("c1", "classic", "alice") is True

        [record] = await presence_repo.list_all()
        assert record.room_class == "classic"
        assert record.last_heartbeat_at == START
        assert record.expires_at == START + timedelta(minutes=5)

    async def test_heartbeat_moves_client_to_new_room_class(self, tracker, presence_repo, clock):
        await tracker.heartbeat("c1", "classic", "alice")
        clock.advance(10)
        await tracker.heartbeat("c1", "hard", "alice")

        [record] = await presence_repo.list_all()
        assert record.room_class == "hard"
        assert record.last_heartbeat_at == START + timedelta(seconds=10)

    async def test_storage_error_is_swallowed_and_logged(self, clock, caplog):
        repo = AsyncMock()
        repo.upsert.side_effect = StorageError("unavailable")
        tracker = PresenceTracker(repo, clock=clock)

        assert await tracker.heartbeat("c1", "classic", "alice") is False
        assert "heartbeat write failed" in caplog.text


class TestRemovePresence:
    async def test_removes_record(self, tracker, presence_repo):
        await tracker.heartbeat("c1", "classic", "alice")

        await tracker.remove_presence("c1")

        assert await presence_repo.list_all() == []

    async def test_missing_record_is_noop(self, tracker):
        await tracker.remove_presence("nobody")


class TestSweepStale:
    async def test_keeps_fresh_and_deletes_stale(self, tracker, presence_repo):
        await presence_repo.upsert(_presence("fresh", "classic", 1))
        await presence_repo.upsert(_presence("stale", "classic", 4))
        await presence_repo.upsert(_presence("ancient", "hard", 10))

        result = await tracker.sweep_stale()

        assert result.active_client_ids == ["fresh"]
        assert sorted(result.removed) == ["ancient", "stale"]
        assert result.failed_room_classes == frozenset()
        assert [r.client_id for r in await presence_repo.list_all()] == ["fresh"]

    async def test_threshold_boundary_counts_as_live(self, tracker, presence_repo):
        await presence_repo.upsert(_presence("edge", "classic", 3))

        result = await tracker.sweep_stale()

        assert result.active_client_ids == ["edge"]

    async def test_custom_threshold(self, tracker, presence_repo):
        await presence_repo.upsert(_presence("c1", "classic", 1))

        result = await tracker.sweep_stale(stale_threshold_seconds=30)

        assert result.active_client_ids == []
        assert result.removed == ["c1"]

    async def test_delete_failure_marks_room_class_failed(self, clock):
        repo = AsyncMock()
        repo.list_all.return_value = [_presence("stale", "hard", 10), _presence("fresh", "classic", 0)]
        repo.delete.side_effect = StorageError("unavailable")
        tracker = PresenceTracker(repo, clock=clock)

        result = await tracker.sweep_stale()

        assert result.failed_room_classes == frozenset({"hard"})
        assert result.removed == []
        assert result.active_client_ids == ["fresh"]


class TestPurgeExpired:
    async def test_deletes_expired_records(self, tracker, presence_repo):
        await presence_repo.upsert(_presence("expired", "classic", 6))
        await presence_repo.upsert(_presence("alive", "classic", 2))

        assert await tracker.purge_expired() == 1
        assert [r.client_id for r in await presence_repo.list_all()] == ["alive"]
