"""Typed domain exceptions for lobby coordination.

Domain code raises these; the command dispatcher converts them into
``{success: false, message}`` results at the service boundary.
Storage failures (StorageError, ConflictError) live in shared.dal.errors.
"""


class LobbyError(Exception):
    """Base exception for lobby rule violations."""


class InvalidRequestError(LobbyError):
    """A required field is missing or malformed; the caller must fix the input."""


class LobbyFullError(LobbyError):
    """Every seat in the room class lobby is taken.

    Attributes:
        room_class: The lobby that rejected the join.
        players_waiting: Number of seated players at rejection time.

    """

    def __init__(self, room_class: str, players_waiting: int) -> None:
        self.room_class = room_class
        self.players_waiting = players_waiting
        super().__init__(f"lobby {room_class!r} is full ({players_waiting} seated)")


class NothingToLaunchError(LobbyError):
    """A launch was requested for a lobby with no seated players."""
