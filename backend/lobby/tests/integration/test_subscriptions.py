"""Integration tests for the subscription WebSocket."""

import json

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from lobby.server.app import create_app
from lobby.server.settings import LobbyServerSettings
from lobby.tests.conftest import FakeClock


def _make_app(tmp_path, **settings_kwargs):
    # TestClient sends no Origin header; tests that need the check pass ws_allowed_origin explicitly.
    settings_kwargs.setdefault("ws_allowed_origin", None)
    return create_app(
        settings=LobbyServerSettings(database_path=str(tmp_path / "lobby.db"), **settings_kwargs),
        clock=FakeClock(),
    )


@pytest.fixture
def app(tmp_path):
    app = _make_app(tmp_path)
    yield app
    app.state.db.close()


@pytest.fixture
def client(app):
    return TestClient(app)


def _join(client: TestClient, room_class: str, client_id: str) -> None:
    response = client.post(
        "/rpc",
        json={"operation": "joinLobby", "roomClass": room_class, "username": f"user-{client_id}", "clientId": client_id},
    )
    assert response.json()["success"] is True


class TestSubscribe:
    def test_lobby_subscription_gets_snapshot_then_updates(self, client):
        _join(client, "classic", "A")

        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe", "topic": "lobby", "roomClass": "classic"})
            assert ws.receive_json() == {"type": "subscribed", "topic": "lobby:classic"}

            snapshot = ws.receive_json()
            assert snapshot["type"] == "lobby_update"
            assert snapshot["playersWaiting"] == 1

            _join(client, "classic", "B")

            update = ws.receive_json()
            assert update["type"] == "lobby_update"
            assert update["playersWaiting"] == 2
            assert update["countdown"] == 30
            assert [p["username"] for p in update["players"]] == ["user-A", "user-B"]

    def test_interest_subscription(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe", "topic": "interest"})
            assert ws.receive_json() == {"type": "subscribed", "topic": "interest"}
            assert ws.receive_json() == {"type": "interest_update", "counts": []}

            client.post(
                "/rpc",
                json={"operation": "updateInterest", "roomClass": "hard", "clientId": "c1", "username": "alice"},
            )

            update = ws.receive_json()
            assert update["type"] == "interest_update"
            assert [(c["roomClass"], c["interestCount"]) for c in update["counts"]] == [("hard", 1)]

    def test_game_start_push(self, client):
        _join(client, "medium", "A")
        _join(client, "medium", "B")

        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe", "topic": "game_start", "roomClass": "medium"})
            assert ws.receive_json() == {"type": "subscribed", "topic": "game_start:medium"}

            launched = client.post("/rpc", json={"operation": "launchGame", "roomClass": "medium"}).json()

            event = ws.receive_json()
            assert event["type"] == "game_start"
            assert event["gameId"] == launched["gameId"]
            assert event["randomSeed"] == launched["randomSeed"]
            assert event["gameSettings"]["selectionSetSize"] == 13
            assert [p["clientId"] for p in event["players"]] == ["A", "B"]

    def test_unsubscribe_stops_pushes(self, client, app):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe", "topic": "lobby", "roomClass": "hard"})
            ws.receive_json()
            ws.receive_json()

            ws.send_json({"type": "unsubscribe", "topic": "lobby", "roomClass": "hard"})
            assert ws.receive_json() == {"type": "unsubscribed", "topic": "lobby:hard"}
            assert app.state.hub.subscriber_count("lobby:hard") == 0

    def test_disconnect_removes_subscriptions(self, client, app):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe", "topic": "interest"})
            ws.receive_json()
            ws.receive_json()
            assert app.state.hub.subscriber_count("interest") == 1

        assert app.state.hub.subscriber_count("interest") == 0


class TestProtocolErrors:
    def test_ping(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_malformed_json_keeps_connection_open(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("{not json")
            assert ws.receive_json()["type"] == "error"

            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_lobby_topic_requires_room_class(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe", "topic": "lobby"})
            error = ws.receive_json()
            assert error["type"] == "error"
            assert "roomClass is required" in error["message"]

    def test_oversized_message(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text(json.dumps({"type": "ping", "pad": "x" * 5000}))
            error = ws.receive_json()
            assert error["type"] == "error"
            assert "too large" in error["message"]


class TestOriginCheck:
    def test_rejects_foreign_origin(self, tmp_path):
        app = _make_app(tmp_path, ws_allowed_origin="http://lobby.example")
        client = TestClient(app)

        with pytest.raises(WebSocketDisconnect) as exc_info, client.websocket_connect(
            "/ws",
            headers={"origin": "http://evil.example"},
        ) as ws:
            ws.receive_json()

        assert exc_info.value.code == 4003
        app.state.db.close()

    def test_accepts_allowed_origin(self, tmp_path):
        app = _make_app(tmp_path, ws_allowed_origin="http://lobby.example")
        client = TestClient(app)

        with client.websocket_connect("/ws", headers={"origin": "http://lobby.example"}) as ws:
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}
        app.state.db.close()
