"""Default board configuration per room class."""

from shared.dal.models import GameSettings


def _grid(rows: int, columns: int, selection_set_size: int) -> GameSettings:
    return GameSettings(
        rows=rows,
        columns=columns,
        selection_set_size=selection_set_size,
        multi_row_feedback=rows > 1,
    )


# Digits are drawn from 0..selection_set_size-1.
DEFAULT_GAME_SETTINGS: dict[str, GameSettings] = {
    "easy": _grid(1, 3, 7),
    "classic": _grid(1, 3, 10),
    "medium": _grid(2, 3, 13),
    "hard": _grid(2, 4, 20),
    # single-row lobby boards
    "harder": _grid(1, 5, 13),
    "hardest": _grid(1, 5, 16),
    # menu presets
    "hard1": _grid(2, 3, 17),
    "hard2": _grid(2, 4, 20),
    "expert": _grid(3, 3, 20),
}

ROOM_CLASSES: tuple[str, ...] = tuple(DEFAULT_GAME_SETTINGS)


def default_game_settings(room_class: str) -> GameSettings:
    """Return the stock settings for a room class, falling back to classic."""
    return DEFAULT_GAME_SETTINGS.get(room_class, DEFAULT_GAME_SETTINGS["classic"])
