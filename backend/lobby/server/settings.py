"""Lobby server configuration via environment variables."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from lobby.launch.settings import ROOM_CLASSES
from lobby.messaging.commands import ROOM_CLASS_PATTERN
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource

_STRING_LIST_FIELDS = frozenset({"cors_origins", "room_classes"})


class LobbyServerSettings(BaseSettings):
    model_config = {"env_prefix": "LOBBY_"}

    log_dir: str = "backend/logs/lobby"
    database_path: str = "backend/storage.db"
    cors_origins: list[str] = []
    ws_allowed_origin: str | None = None
    # Empty list accepts any well-formed room class.
    room_classes: list[str] = list(ROOM_CLASSES)
    countdown_seconds: int = Field(default=30, ge=1)
    stale_threshold_seconds: int = Field(default=180, ge=1)
    presence_ttl_seconds: int = Field(default=300, ge=1)
    sweep_interval_seconds: float = Field(default=10, gt=0)
    active_game_ttl_seconds: int = Field(default=3600, ge=1)
    max_write_attempts: int = Field(default=5, ge=1)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @field_validator("room_classes", mode="before")
    @classmethod
    def validate_room_classes(cls, v: str | list[str]) -> list[str]:
        room_classes = parse_string_list(v, allow_empty=True)
        invalid = [rc for rc in room_classes if not re.fullmatch(ROOM_CLASS_PATTERN, rc)]
        if invalid:
            raise ValueError(f"Invalid room class names: {', '.join(invalid)}")
        return room_classes

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            StringListEnvSettingsSource(settings_cls, _STRING_LIST_FIELDS),
            dotenv_settings,
            file_secret_settings,
        )
