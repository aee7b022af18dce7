"""Persistence models for the room directory."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

GAME_TYPE_PATTERN = r"^[a-z0-9][a-z0-9-]{0,31}$"


class RoomStatus(StrEnum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"
    CLOSED = "closed"


class Room(BaseModel, frozen=True):
    """Rendezvous record advertising a host that is waiting for a guest."""

    id: str
    host_name: str
    host_id: str  # host peer link identifier, opaque to the directory
    game_type: str
    status: RoomStatus = RoomStatus.WAITING
    room_title: str | None = None
    is_private: bool = False
    games_played: int = 0
    created_at: datetime
    updated_at: datetime


class CreateRoomRequest(BaseModel):
    host_name: str = Field(min_length=1, max_length=50)
    host_id: str = Field(min_length=1, max_length=200)
    game_type: str = Field(pattern=GAME_TYPE_PATTERN)
    is_private: bool = False
    room_title: str | None = Field(default=None, max_length=100)


class RoomStats(BaseModel, frozen=True):
    total: int = 0
    public: int = 0
    private: int = 0
    waiting: int = 0
    playing: int = 0


class MonthlyStats(BaseModel, frozen=True):
    month: str  # YYYY-MM
    total_games: int
    total_rooms: int


class RoomChangeKind(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class RoomChange(BaseModel, frozen=True):
    """One realtime change event. ``room`` is None for deletes."""

    kind: RoomChangeKind
    room_id: str
    game_type: str
    room: Room | None = None
