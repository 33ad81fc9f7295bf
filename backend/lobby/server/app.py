from __future__ import annotations

import contextlib
from http import HTTPStatus
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from lobby.clock import utc_now
from lobby.interest.aggregator import InterestAggregator
from lobby.launch.coordinator import GameLaunchCoordinator
from lobby.messaging.commands import (
    CommandTooLargeError,
    GetInterestCountsCommand,
    GetLobbyStatusCommand,
    parse_command_json,
)
from lobby.messaging.dispatcher import CommandDispatcher, format_validation_error
from lobby.messaging.hub import SubscriptionHub
from lobby.messaging.results import OperationResult, to_payload
from lobby.presence.tracker import PresenceTracker
from lobby.rooms.state_machine import LobbyStateMachine
from lobby.server.settings import LobbyServerSettings
from lobby.server.websocket import subscription_websocket
from lobby.sweeper import LobbySweeper
from shared.db import Database, SqliteInterestRepository, SqliteLobbyRepository, SqlitePresenceRepository
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request

    from lobby.clock import Clock


def _error_response(message: str, status_code: HTTPStatus) -> JSONResponse:
    return JSONResponse(
        OperationResult(success=False, message=message).model_dump(by_alias=True),
        status_code=status_code,
    )


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def rpc(request: Request) -> JSONResponse:
    """Execute one lobby command sent as a JSON body."""
    dispatcher: CommandDispatcher = request.app.state.dispatcher
    raw_body = await request.body()
    try:
        command = parse_command_json(raw_body)
    except CommandTooLargeError as e:
        return _error_response(str(e), HTTPStatus.REQUEST_ENTITY_TOO_LARGE)
    except ValidationError as e:
        return _error_response(format_validation_error(e), HTTPStatus.BAD_REQUEST)
    except ValueError:
        return _error_response("Invalid JSON body", HTTPStatus.BAD_REQUEST)

    result = await dispatcher.dispatch(command)
    return JSONResponse(to_payload(result))


async def lobby_status(request: Request) -> JSONResponse:
    dispatcher: CommandDispatcher = request.app.state.dispatcher
    try:
        command = GetLobbyStatusCommand(room_class=request.path_params["room_class"])
    except ValidationError as e:
        return _error_response(format_validation_error(e), HTTPStatus.BAD_REQUEST)
    result = await dispatcher.dispatch(command)
    return JSONResponse(to_payload(result))


async def interest_counts(request: Request) -> JSONResponse:
    dispatcher: CommandDispatcher = request.app.state.dispatcher
    result = await dispatcher.dispatch(GetInterestCountsCommand())
    return JSONResponse(to_payload(result))


def create_app(
    settings: LobbyServerSettings | None = None,
    *,
    clock: Clock = utc_now,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = LobbyServerSettings()

    routes = [
        Route("/health", health, methods=["GET"], name="health"),
        Route("/rpc", rpc, methods=["POST"], name="rpc"),
        Route("/lobbies/{room_class}", lobby_status, methods=["GET"], name="lobby_status"),
        Route("/interest", interest_counts, methods=["GET"], name="interest_counts"),
        WebSocketRoute("/ws", subscription_websocket, name="subscriptions"),
    ]

    db = Database(settings.database_path)
    db.connect()

    hub = SubscriptionHub()
    state_machine = LobbyStateMachine(
        SqliteLobbyRepository(db),
        hub,
        clock=clock,
        countdown_seconds=settings.countdown_seconds,
        max_write_attempts=settings.max_write_attempts,
    )
    tracker = PresenceTracker(
        SqlitePresenceRepository(db),
        clock=clock,
        stale_threshold_seconds=settings.stale_threshold_seconds,
        ttl_seconds=settings.presence_ttl_seconds,
    )
    aggregator = InterestAggregator(SqliteInterestRepository(db), tracker, hub, clock=clock)
    coordinator = GameLaunchCoordinator(
        state_machine,
        hub,
        clock=clock,
        max_attempts=settings.max_write_attempts,
    )
    dispatcher = CommandDispatcher(
        state_machine,
        tracker,
        aggregator,
        coordinator,
        room_classes=frozenset(settings.room_classes),
    )
    sweeper = LobbySweeper(
        state_machine=state_machine,
        tracker=tracker,
        aggregator=aggregator,
        coordinator=coordinator,
        interval_seconds=settings.sweep_interval_seconds,
        active_game_ttl_seconds=settings.active_game_ttl_seconds,
    )

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:  # pragma: no cover
        sweeper.start()
        yield
        await sweeper.stop()
        db.close()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    app.state.db = db
    app.state.settings = settings
    app.state.hub = hub
    app.state.state_machine = state_machine
    app.state.tracker = tracker
    app.state.aggregator = aggregator
    app.state.coordinator = coordinator
    app.state.dispatcher = dispatcher
    app.state.sweeper = sweeper

    logger.info("lobby server ready", room_classes=settings.room_classes)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory lobby.server.app:get_app."""
    s = LobbyServerSettings()
    setup_logging(log_dir=s.log_dir)
    return create_app(settings=s)
