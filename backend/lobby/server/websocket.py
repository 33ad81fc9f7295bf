"""WebSocket handler for lobby, interest and game-start subscriptions."""

from __future__ import annotations

import json
import uuid
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError
from starlette.websockets import WebSocket, WebSocketDisconnect

from lobby.messaging.hub import PushType
from lobby.server.messages import (
    PingMessage,
    SubscribeMessage,
    TopicKind,
    UnsubscribeMessage,
    parse_subscription_message,
)
from shared.dal.errors import StorageError

if TYPE_CHECKING:
    from lobby.interest.aggregator import InterestAggregator
    from lobby.messaging.hub import SubscriptionHub
    from lobby.rooms.state_machine import LobbyStateMachine
    from lobby.server.settings import LobbyServerSettings

logger = structlog.get_logger()


class WebSocketSubscriber:
    """Adapts a Starlette WebSocket to the hub's Subscriber protocol."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._subscriber_id = str(uuid.uuid4())

    @property
    def subscriber_id(self) -> str:
        return self._subscriber_id

    async def send_json(self, message: dict[str, Any]) -> None:
        try:
            await self._websocket.send_text(json.dumps(message))
        except WebSocketDisconnect as e:
            raise ConnectionError(str(e)) from e


class _SubscriptionContext:
    """Bundles per-connection state extracted from app.state."""

    __slots__ = ("aggregator", "hub", "state_machine", "subscriber")

    def __init__(self, websocket: WebSocket) -> None:
        self.hub: SubscriptionHub = websocket.app.state.hub
        self.state_machine: LobbyStateMachine = websocket.app.state.state_machine
        self.aggregator: InterestAggregator = websocket.app.state.aggregator
        self.subscriber = WebSocketSubscriber(websocket)


async def subscription_websocket(websocket: WebSocket) -> None:
    """Handle a WebSocket connection that subscribes to lobby pushes."""
    if not _check_origin(websocket):
        await websocket.close(code=4003, reason="forbidden_origin")
        return

    await websocket.accept()
    ctx = _SubscriptionContext(websocket)
    log = logger.bind(subscriber_id=ctx.subscriber.subscriber_id)
    log.debug("subscriber connected")

    try:
        await _message_loop(websocket, ctx)
    except WebSocketDisconnect:
        pass
    except Exception:
        log.exception("unexpected error in subscription websocket")
    finally:
        topics = ctx.hub.remove(ctx.subscriber.subscriber_id)
        log.debug("subscriber disconnected", topics=sorted(topics))


def _check_origin(websocket: WebSocket) -> bool:
    settings: LobbyServerSettings = websocket.app.state.settings
    ws_allowed_origin = settings.ws_allowed_origin
    if not ws_allowed_origin:
        return True
    origin = websocket.headers.get("origin", "")
    return origin == ws_allowed_origin


async def _message_loop(websocket: WebSocket, ctx: _SubscriptionContext) -> None:
    while True:
        raw = await websocket.receive_text()
        try:
            message = parse_subscription_message(raw)
        except (ValueError, ValidationError) as e:
            await websocket.send_json({"type": "error", "message": str(e)})
            continue

        if isinstance(message, SubscribeMessage):
            await _handle_subscribe(websocket, ctx, message)
        elif isinstance(message, UnsubscribeMessage):
            ctx.hub.unsubscribe(message.topic_key, ctx.subscriber.subscriber_id)
            await websocket.send_json({"type": "unsubscribed", "topic": message.topic_key})
        elif isinstance(message, PingMessage):
            await websocket.send_json({"type": "pong"})


async def _handle_subscribe(websocket: WebSocket, ctx: _SubscriptionContext, message: SubscribeMessage) -> None:
    """Register the subscription, acknowledge it and send the current snapshot."""
    ctx.hub.subscribe(message.topic_key, ctx.subscriber)
    await websocket.send_json({"type": "subscribed", "topic": message.topic_key})

    try:
        snapshot = await _snapshot(ctx, message)
    except StorageError:
        logger.warning("subscription snapshot unavailable", topic=message.topic_key, exc_info=True)
        return
    if snapshot is not None:
        await ctx.subscriber.send_json(snapshot)


async def _snapshot(ctx: _SubscriptionContext, message: SubscribeMessage) -> dict[str, Any] | None:
    if message.topic is TopicKind.LOBBY and message.room_class is not None:
        status = await ctx.state_machine.get_status(message.room_class)
        return {"type": PushType.LOBBY_UPDATE.value, **status.model_dump(by_alias=True, mode="json")}
    if message.topic is TopicKind.INTEREST:
        counts = await ctx.aggregator.get_interest_counts()
        return {
            "type": PushType.INTEREST_UPDATE.value,
            "counts": [count.model_dump(by_alias=True, mode="json") for count in counts],
        }
    # game_start has no standing state to replay.
    return None
