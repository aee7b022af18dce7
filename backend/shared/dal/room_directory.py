"""Abstract interface for the room rendezvous directory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import MonthlyStats, Room, RoomStats, RoomStatus
    from shared.dal.subscription import RoomCallback, RoomDeleteCallback, RoomSubscription


class RoomDirectoryError(Exception):
    """The directory could not complete an operation (store or network failure)."""


class RoomDirectory(ABC):
    """Shared table of rooms that hosts advertise and guests claim.

    The only cross-process atomic step is try_join_room: at most one caller
    moves a room from waiting to playing.
    """

    @abstractmethod
    async def create_room(
        self,
        host_name: str,
        host_id: str,
        game_type: str,
        *,
        is_private: bool = False,
        room_title: str | None = None,
    ) -> Room: ...

    @abstractmethod
    async def get_room(self, room_id: str) -> Room | None: ...

    @abstractmethod
    async def list_rooms(self, game_type: str) -> list[Room]:
        """Waiting public rooms for game_type, newest first."""

    @abstractmethod
    async def get_room_stats(self, game_type: str) -> RoomStats: ...

    @abstractmethod
    async def get_monthly_stats(self, game_type: str, months: int = 6) -> list[MonthlyStats]: ...

    @abstractmethod
    async def try_join_room(self, room_id: str) -> bool:
        """Claim a waiting room. Returns False when another guest got there first."""

    @abstractmethod
    async def close_room(self, room_id: str) -> bool:
        """Mark a room closed. Idempotent; returns False only for unknown rooms."""

    @abstractmethod
    async def update_room_status(self, room_id: str, status: RoomStatus) -> bool:
        """Settle a waiting or playing room as finished or closed; any other change is refused."""

    @abstractmethod
    async def update_host_id(self, room_id: str, host_id: str) -> bool: ...

    @abstractmethod
    async def touch_room(self, room_id: str) -> bool:
        """Refresh updated_at so the room is not reaped as stale."""

    @abstractmethod
    async def increment_games_played(self, room_id: str) -> bool: ...

    @abstractmethod
    async def delete_room(self, room_id: str) -> bool: ...

    @abstractmethod
    async def subscribe_to_rooms(
        self,
        game_type: str,
        on_insert: RoomCallback,
        on_update: RoomCallback,
        on_delete: RoomDeleteCallback,
    ) -> RoomSubscription: ...
