"""Data access layer: room directory interface, models and realtime subscriptions."""

from shared.dal.models import (
    CreateRoomRequest,
    MonthlyStats,
    Room,
    RoomChange,
    RoomChangeKind,
    RoomStats,
    RoomStatus,
)
from shared.dal.room_directory import RoomDirectory, RoomDirectoryError
from shared.dal.subscription import RoomChangeBus, RoomSubscription

__all__ = [
    "CreateRoomRequest",
    "MonthlyStats",
    "Room",
    "RoomChange",
    "RoomChangeBus",
    "RoomChangeKind",
    "RoomDirectory",
    "RoomDirectoryError",
    "RoomStats",
    "RoomStatus",
    "RoomSubscription",
]
