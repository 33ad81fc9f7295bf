import json

import pytest
from pydantic import ValidationError

from lobby.server.messages import (
    PingMessage,
    SubscribeMessage,
    TopicKind,
    UnsubscribeMessage,
    parse_subscription_message,
)


class TestParseSubscriptionMessage:
    def test_subscribe_lobby(self):
        message = parse_subscription_message(json.dumps({"type": "subscribe", "topic": "lobby", "roomClass": "easy"}))
        assert isinstance(message, SubscribeMessage)
        assert message.topic is TopicKind.LOBBY
        assert message.topic_key == "lobby:easy"

    def test_subscribe_game_start(self):
        message = parse_subscription_message(
            json.dumps({"type": "subscribe", "topic": "game_start", "roomClass": "hard"}),
        )
        assert message.topic_key == "game_start:hard"

    def test_interest_needs_no_room_class(self):
        message = parse_subscription_message(json.dumps({"type": "unsubscribe", "topic": "interest"}))
        assert isinstance(message, UnsubscribeMessage)
        assert message.topic_key == "interest"

    def test_ping(self):
        assert isinstance(parse_subscription_message('{"type": "ping"}'), PingMessage)

    def test_room_class_required_for_lobby(self):
        with pytest.raises(ValidationError, match="roomClass is required"):
            parse_subscription_message(json.dumps({"type": "subscribe", "topic": "lobby"}))

    def test_unknown_topic(self):
        with pytest.raises(ValidationError):
            parse_subscription_message(json.dumps({"type": "subscribe", "topic": "chat"}))

    def test_invalid_room_class(self):
        with pytest.raises(ValidationError):
            parse_subscription_message(json.dumps({"type": "subscribe", "topic": "lobby", "roomClass": "A B"}))

    def test_too_large(self):
        with pytest.raises(ValueError, match="too large"):
            parse_subscription_message(json.dumps({"type": "ping", "pad": "x" * 4096}))

    def test_invalid_json(self):
        with pytest.raises(ValueError):  # noqa: PT011
            parse_subscription_message("{not json")
