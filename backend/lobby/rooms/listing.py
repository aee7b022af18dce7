"""Live list of joinable rooms for one game type."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from shared.dal.models import RoomStatus

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.dal.models import Room
    from shared.dal.room_directory import RoomDirectory
    from shared.dal.subscription import RoomSubscription

logger = structlog.get_logger()


def _is_listed(room: Room) -> bool:
    return room.status == RoomStatus.WAITING and not room.is_private


class LobbyListing:
    """Mirror of the directory's waiting public rooms, kept current by change events.

    A room disappears the moment it leaves ``waiting``, so a guest never sees
    a room someone else has already claimed. ``on_change`` fires after every
    applied event.
    """

    def __init__(
        self,
        directory: RoomDirectory,
        game_type: str,
        *,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._directory = directory
        self._game_type = game_type
        self._on_change = on_change
        self._rooms: dict[str, Room] = {}
        self._subscription: RoomSubscription | None = None
        # Room ids touched by events while a snapshot is loading; set only during a load.
        self._seen_during_load: set[str] | None = None

    @property
    def game_type(self) -> str:
        return self._game_type

    @property
    def rooms(self) -> list[Room]:
        """Listed rooms, newest first."""
        return sorted(self._rooms.values(), key=lambda r: r.created_at, reverse=True)

    async def start(self) -> None:
        """Subscribe first, then load the current rooms, so no change between the two is lost."""
        if self._subscription is not None:
            return
        self._subscription = await self._directory.subscribe_to_rooms(
            self._game_type,
            self._on_insert,
            self._on_update,
            self._on_delete,
        )
        await self._load_snapshot()

    async def stop(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.close()

    async def flush(self) -> None:
        """Wait until every change delivered so far has been applied."""
        if self._subscription is not None:
            await self._subscription.flush()

    async def refresh(self) -> None:
        """Replace the list with a fresh snapshot from the directory."""
        await self._load_snapshot()

    async def _load_snapshot(self) -> None:
        """Take a directory snapshot without undoing events that raced it.

        An event for a room that arrives while ``list_rooms`` is in flight is
        newer than the snapshot row, so the event's outcome is kept.
        """
        self._seen_during_load = set()
        try:
            snapshot = await self._directory.list_rooms(self._game_type)
        finally:
            seen, self._seen_during_load = self._seen_during_load, None
        rooms = {room.id: room for room in snapshot if room.id not in seen}
        rooms.update({room_id: self._rooms[room_id] for room_id in seen if room_id in self._rooms})
        if seen:
            logger.debug("snapshot rows superseded by events", game_type=self._game_type, count=len(seen))
        self._rooms = rooms
        self._changed()

    def _note_event(self, room_id: str) -> None:
        if self._seen_during_load is not None:
            self._seen_during_load.add(room_id)

    def _on_insert(self, room: Room) -> None:
        self._note_event(room.id)
        if _is_listed(room):
            self._rooms[room.id] = room
            self._changed()

    def _on_update(self, room: Room) -> None:
        self._note_event(room.id)
        if _is_listed(room):
            self._rooms[room.id] = room
        elif self._rooms.pop(room.id, None) is None:
            return
        self._changed()

    def _on_delete(self, room_id: str) -> None:
        self._note_event(room_id)
        if self._rooms.pop(room_id, None) is not None:
            self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
