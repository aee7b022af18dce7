"""Lobby server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_positive_seconds, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class LobbyServerSettings(BaseSettings):
    model_config = {"env_prefix": "LOBBY_"}

    database_path: str = Field(default="backend/rooms.db", min_length=1)
    log_dir: str = Field(default="backend/logs/lobby", min_length=1)
    cors_origins: list[str] = []
    room_max_idle_seconds: float = 900.0  # three missed host keep-alives
    reaper_interval_seconds: float = 60.0
    feed_keepalive_seconds: float = 15.0

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @field_validator("room_max_idle_seconds")
    @classmethod
    def validate_room_max_idle(cls, v: float) -> float:
        return parse_positive_seconds(v, name="room_max_idle_seconds")

    @field_validator("reaper_interval_seconds")
    @classmethod
    def validate_reaper_interval(cls, v: float) -> float:
        return parse_positive_seconds(v, name="reaper_interval_seconds")

    @field_validator("feed_keepalive_seconds")
    @classmethod
    def validate_feed_keepalive(cls, v: float) -> float:
        return parse_positive_seconds(v, name="feed_keepalive_seconds")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings)
