"""Peer process configuration via environment variables."""

from pydantic import Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings

from shared.validators import parse_positive_seconds


class PeerSettings(BaseSettings):
    model_config = {"env_prefix": "PEER_"}

    player_name: str = Field(default="Player", min_length=1, max_length=50)
    bind_host: str = Field(default="127.0.0.1", min_length=1)
    advertise_host: str | None = None  # address the guest dials; defaults to bind_host
    port: int = Field(default=0, ge=0, le=65535)  # 0 picks a free port
    connect_timeout: float = 10.0
    handshake_timeout: float = 5.0
    heartbeat_interval: float = 5.0
    heartbeat_timeout: float = 15.0
    room_keepalive_interval: float = 300.0
    lobby_url: str = Field(default="http://127.0.0.1:8710", min_length=1)
    identity_path: str = Field(default="~/.tabletop-peer/identity.json", min_length=1)
    log_dir: str | None = None

    @field_validator(
        "connect_timeout",
        "handshake_timeout",
        "heartbeat_interval",
        "heartbeat_timeout",
        "room_keepalive_interval",
    )
    @classmethod
    def validate_positive(cls, v: float, info: ValidationInfo) -> float:
        return parse_positive_seconds(v, name=info.field_name or "interval")

    @model_validator(mode="after")
    def validate_heartbeat_window(self) -> "PeerSettings":
        if self.heartbeat_timeout <= self.heartbeat_interval:
            raise ValueError("heartbeat_timeout must be longer than heartbeat_interval")
        return self
