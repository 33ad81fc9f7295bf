"""Typed client-to-server message models for the subscription WebSocket."""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Annotated, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

from lobby.messaging.commands import ROOM_CLASS_PATTERN
from lobby.messaging.hub import INTEREST_TOPIC, game_start_topic, lobby_topic

_MAX_WS_MESSAGE_SIZE = 4096


class TopicKind(StrEnum):
    LOBBY = "lobby"
    INTEREST = "interest"
    GAME_START = "game_start"


class _TopicMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    topic: TopicKind
    room_class: str | None = Field(default=None, pattern=ROOM_CLASS_PATTERN)

    @model_validator(mode="after")
    def _require_room_class(self) -> Self:
        if self.topic is not TopicKind.INTEREST and self.room_class is None:
            raise ValueError(f"roomClass is required for the {self.topic.value} topic")
        return self

    @property
    def topic_key(self) -> str:
        if self.topic is TopicKind.LOBBY:
            return lobby_topic(self.room_class or "")
        if self.topic is TopicKind.GAME_START:
            return game_start_topic(self.room_class or "")
        return INTEREST_TOPIC


class SubscribeMessage(_TopicMessage):
    type: Literal["subscribe"]


class UnsubscribeMessage(_TopicMessage):
    type: Literal["unsubscribe"]


class PingMessage(BaseModel):
    type: Literal["ping"]


SubscriptionClientMessage = Annotated[
    SubscribeMessage | UnsubscribeMessage | PingMessage,
    Field(discriminator="type"),
]

_subscription_message_adapter: TypeAdapter[SubscriptionClientMessage] = TypeAdapter(SubscriptionClientMessage)


def parse_subscription_message(raw: str) -> SubscribeMessage | UnsubscribeMessage | PingMessage:
    """Parse and validate a raw JSON string into a typed subscription message."""
    byte_len = len(raw.encode("utf-8"))
    if byte_len > _MAX_WS_MESSAGE_SIZE:
        raise ValueError(f"Message too large ({byte_len} bytes, max {_MAX_WS_MESSAGE_SIZE})")
    data = json.loads(raw)
    return _subscription_message_adapter.validate_python(data)
