"""Single entry point that routes typed commands to the lobby components."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, assert_never

import structlog
from pydantic import ValidationError

from lobby.errors import InvalidRequestError, LobbyFullError, NothingToLaunchError
from lobby.messaging.commands import (
    CleanupStaleInterestsCommand,
    EndGameCommand,
    GetInterestCountsCommand,
    GetLobbyStatusCommand,
    JoinLobbyCommand,
    LaunchGameCommand,
    LeaveLobbyCommand,
    RemoveInterestCommand,
    SendHeartbeatCommand,
    StartGameCommand,
    UpdateInterestCommand,
    parse_command,
)
from lobby.messaging.results import (
    CleanupResult,
    EndGameResult,
    HeartbeatResult,
    InterestCount,
    JoinLobbyResult,
    LaunchGameResult,
    LeaveLobbyResult,
    LobbyStatus,
    OperationResult,
    RemoveInterestResult,
    StartGameResult,
    UpdateInterestResult,
    WireModel,
)
from lobby.rooms.models import countdown_remaining
from shared.dal.errors import ConflictError, StorageError

if TYPE_CHECKING:
    from lobby.interest.aggregator import InterestAggregator
    from lobby.launch.coordinator import GameLaunchCoordinator
    from lobby.messaging.commands import LobbyCommand
    from lobby.presence.tracker import PresenceTracker
    from lobby.rooms.state_machine import LobbyStateMachine

logger = structlog.get_logger()

LOBBY_FULL_MESSAGE = "Lobby is full"
LOBBY_BUSY_MESSAGE = "Lobby is busy, please retry"
STORAGE_UNAVAILABLE_MESSAGE = "Storage unavailable, please retry"
INTERNAL_ERROR_MESSAGE = "Internal error"

DispatchResult = WireModel | list[InterestCount]


def format_validation_error(exc: ValidationError) -> str:
    """Render a pydantic error as ``Invalid request: field: problem; ...`` using wire field names."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "Invalid request: " + "; ".join(parts)


class CommandDispatcher:
    """Executes lobby commands and converts every failure into a result payload.

    Nothing raised by the components crosses this boundary: domain errors,
    storage errors and unexpected exceptions all come back as
    ``{success: false, message}``.
    """

    def __init__(
        self,
        state_machine: LobbyStateMachine,
        tracker: PresenceTracker,
        aggregator: InterestAggregator,
        coordinator: GameLaunchCoordinator,
        *,
        room_classes: frozenset[str] = frozenset(),
    ) -> None:
        self._state_machine = state_machine
        self._tracker = tracker
        self._aggregator = aggregator
        self._coordinator = coordinator
        self._room_classes = room_classes

    async def dispatch_raw(self, data: Any) -> DispatchResult:  # noqa: ANN401
        """Validate decoded JSON and dispatch it."""
        try:
            command = parse_command(data)
        except ValidationError as exc:
            return OperationResult(success=False, message=format_validation_error(exc))
        return await self.dispatch(command)

    async def dispatch(self, command: LobbyCommand) -> DispatchResult:
        log = logger.bind(operation=command.operation, room_class=getattr(command, "room_class", None))
        try:
            self._check_room_class(command)
            return await self._route(command)
        except LobbyFullError as exc:
            return JoinLobbyResult(success=False, message=LOBBY_FULL_MESSAGE, players_waiting=exc.players_waiting)
        except (InvalidRequestError, NothingToLaunchError) as exc:
            return OperationResult(success=False, message=str(exc))
        except ConflictError:
            log.warning("command gave up after write conflicts")
            return OperationResult(success=False, message=LOBBY_BUSY_MESSAGE)
        except StorageError:
            log.exception("storage failure during command")
            return OperationResult(success=False, message=STORAGE_UNAVAILABLE_MESSAGE)
        except Exception:
            log.exception("unexpected error during command")
            return OperationResult(success=False, message=INTERNAL_ERROR_MESSAGE)

    def _check_room_class(self, command: LobbyCommand) -> None:
        room_class = getattr(command, "room_class", None)
        if room_class is None or not self._room_classes:
            return
        if room_class not in self._room_classes:
            raise InvalidRequestError(f"Unknown room class: {room_class}")

    async def _route(self, command: LobbyCommand) -> DispatchResult:  # noqa: PLR0911
        if isinstance(command, JoinLobbyCommand):
            return await self._join_lobby(command)
        if isinstance(command, LeaveLobbyCommand):
            return await self._leave_lobby(command)
        if isinstance(command, GetLobbyStatusCommand):
            return await self._get_lobby_status(command)
        if isinstance(command, StartGameCommand):
            return await self._start_game(command)
        if isinstance(command, SendHeartbeatCommand):
            return await self._send_heartbeat(command)
        if isinstance(command, UpdateInterestCommand):
            return await self._update_interest(command)
        if isinstance(command, RemoveInterestCommand):
            return await self._remove_interest(command)
        if isinstance(command, GetInterestCountsCommand):
            return await self._aggregator.get_interest_counts()
        if isinstance(command, CleanupStaleInterestsCommand):
            return await self._cleanup_stale_interests()
        if isinstance(command, LaunchGameCommand):
            return await self._launch_game(command)
        if isinstance(command, EndGameCommand):
            return await self._end_game(command)
        assert_never(command)

    async def _join_lobby(self, command: JoinLobbyCommand) -> JoinLobbyResult:
        record = await self._state_machine.join(command.room_class, command.client_id, command.username)
        return JoinLobbyResult(
            success=True,
            message=f"Successfully joined {command.room_class} lobby",
            game_id=record.active_game_id,
            players_waiting=len(record.seated_players),
            countdown=countdown_remaining(record, self._state_machine.clock()),
        )

    async def _leave_lobby(self, command: LeaveLobbyCommand) -> LeaveLobbyResult:
        await self._state_machine.leave(command.room_class, command.client_id)
        return LeaveLobbyResult(success=True, message=f"Successfully left {command.room_class} lobby")

    async def _get_lobby_status(self, command: GetLobbyStatusCommand) -> LobbyStatus:
        return await self._state_machine.get_status(command.room_class)

    async def _start_game(self, command: StartGameCommand) -> StartGameResult:
        event = await self._coordinator.start(
            command.game_id,
            command.room_class,
            command.players,
            command.game_settings,
            command.random_seed,
        )
        return StartGameResult(success=True, message="Game started successfully", game_id=event.game_id)

    async def _send_heartbeat(self, command: SendHeartbeatCommand) -> HeartbeatResult:
        await self._tracker.heartbeat(command.client_id, command.room_class, command.username)
        return HeartbeatResult(success=True, message="Heartbeat processed successfully")

    async def _update_interest(self, command: UpdateInterestCommand) -> UpdateInterestResult:
        count = await self._aggregator.on_interest_signal(command.room_class, command.client_id, command.username)
        return UpdateInterestResult(
            success=True,
            room_class=command.room_class,
            message=f"Successfully updated interest for {command.room_class}",
            new_interest_count=count,
        )

    async def _remove_interest(self, command: RemoveInterestCommand) -> RemoveInterestResult:
        count = await self._aggregator.on_interest_withdraw(command.room_class, command.client_id)
        return RemoveInterestResult(
            success=True,
            message=f"Successfully removed interest for {command.room_class}",
            new_interest_count=count,
        )

    async def _cleanup_stale_interests(self) -> CleanupResult:
        result = await self._aggregator.recompute_from_presence()
        active = result.sweep.active_client_ids
        return CleanupResult(
            success=True,
            message=f"Cleanup completed. Active clients: {len(active)}",
            active_client_ids=active,
        )

    async def _launch_game(self, command: LaunchGameCommand) -> LaunchGameResult:
        event = await self._coordinator.launch(command.room_class, command.game_settings)
        return LaunchGameResult(
            success=True,
            message="Game launched successfully",
            game_id=event.game_id,
            random_seed=event.random_seed,
            players=event.players,
        )

    async def _end_game(self, command: EndGameCommand) -> EndGameResult:
        record = await self._state_machine.end_game(command.room_class, command.game_id)
        if record is None:
            return EndGameResult(success=True, message=f"No matching active game in {command.room_class} lobby")
        return EndGameResult(success=True, message=f"Game ended in {command.room_class} lobby")
