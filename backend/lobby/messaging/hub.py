"""Topic-based fan-out of lobby pushes to connected subscribers."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from lobby.messaging.results import GameStartEvent, InterestCount, LobbyStatus

logger = structlog.get_logger()

INTEREST_TOPIC = "interest"


def lobby_topic(room_class: str) -> str:
    return f"lobby:{room_class}"


def game_start_topic(room_class: str) -> str:
    return f"game_start:{room_class}"


class PushType(StrEnum):
    LOBBY_UPDATE = "lobby_update"
    INTEREST_UPDATE = "interest_update"
    GAME_START = "game_start"


class Subscriber(Protocol):
    """Anything that can receive a JSON push (a WebSocket wrapper in production)."""

    @property
    def subscriber_id(self) -> str: ...

    async def send_json(self, message: dict[str, Any]) -> None: ...


class SubscriptionHub:
    """Track subscribers per topic and deliver pushes to them.

    Delivery is at-most-once and best effort: a subscriber whose send fails is
    skipped, and publishing never raises into the caller. Each push carries a
    full snapshot so a missed push is repaired by the next one.
    """

    def __init__(self) -> None:
        self._topics: dict[str, dict[str, Subscriber]] = {}  # topic -> {subscriber_id -> subscriber}
        self._subscriber_topics: dict[str, set[str]] = {}  # subscriber_id -> topics (reverse index)

    def subscribe(self, topic: str, subscriber: Subscriber) -> None:
        self._topics.setdefault(topic, {})[subscriber.subscriber_id] = subscriber
        self._subscriber_topics.setdefault(subscriber.subscriber_id, set()).add(topic)

    def unsubscribe(self, topic: str, subscriber_id: str) -> bool:
        """Drop one subscription. Returns False if it did not exist."""
        subscribers = self._topics.get(topic)
        if subscribers is None or subscriber_id not in subscribers:
            return False
        del subscribers[subscriber_id]
        if not subscribers:
            del self._topics[topic]
        topics = self._subscriber_topics.get(subscriber_id)
        if topics is not None:
            topics.discard(topic)
            if not topics:
                del self._subscriber_topics[subscriber_id]
        return True

    def remove(self, subscriber_id: str) -> set[str]:
        """Drop every subscription held by a subscriber and return the topics it had."""
        topics = self._subscriber_topics.pop(subscriber_id, set())
        for topic in topics:
            subscribers = self._topics.get(topic)
            if subscribers is None:
                continue
            subscribers.pop(subscriber_id, None)
            if not subscribers:
                del self._topics[topic]
        return topics

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, {}))

    async def publish(self, topic: str, message: dict[str, Any]) -> int:
        """Send a message to every subscriber of a topic. Returns the number delivered."""
        delivered = 0
        for subscriber_id, subscriber in list(self._topics.get(topic, {}).items()):
            try:
                await subscriber.send_json(message)
            except (ConnectionError, RuntimeError, OSError):
                logger.warning("push delivery failed", topic=topic, subscriber_id=subscriber_id, exc_info=True)
                continue
            delivered += 1
        return delivered

    async def publish_lobby_update(self, status: LobbyStatus) -> int:
        message = {"type": PushType.LOBBY_UPDATE.value, **status.model_dump(by_alias=True, mode="json")}
        return await self.publish(lobby_topic(status.room_class), message)

    async def publish_interest_update(self, counts: list[InterestCount]) -> int:
        message = {
            "type": PushType.INTEREST_UPDATE.value,
            "counts": [count.model_dump(by_alias=True, mode="json") for count in counts],
        }
        return await self.publish(INTEREST_TOPIC, message)

    async def publish_game_start(self, event: GameStartEvent) -> int:
        message = {"type": PushType.GAME_START.value, **event.model_dump(by_alias=True, mode="json")}
        return await self.publish(game_start_topic(event.room_class), message)
