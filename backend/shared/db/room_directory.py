"""SQLite-backed room directory."""

from __future__ import annotations

import asyncio
import uuid
from collections import defaultdict
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from shared.dal.models import MonthlyStats, Room, RoomChange, RoomChangeKind, RoomStats, RoomStatus
from shared.dal.room_directory import RoomDirectory
from shared.dal.subscription import RoomChangeBus

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Callable

    from shared.db.connection import Database
    from shared.dal.subscription import RoomCallback, RoomDeleteCallback, RoomSubscription

logger = structlog.get_logger()

_ROOM_COLUMNS = (
    "id, host_name, host_id, room_title, game_type, status, is_private, games_played, created_at, updated_at"
)

# Statuses a host keeps alive with heartbeats; anything else is already settled.
_LIVE_STATUSES = (RoomStatus.WAITING.value, RoomStatus.PLAYING.value)
_SETTLED_STATUSES = (RoomStatus.FINISHED.value, RoomStatus.CLOSED.value)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _row_to_room(row: sqlite3.Row) -> Room:
    return Room(
        id=row["id"],
        host_name=row["host_name"],
        host_id=row["host_id"],
        room_title=row["room_title"],
        game_type=row["game_type"],
        status=RoomStatus(row["status"]),
        is_private=bool(row["is_private"]),
        games_played=row["games_played"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _month_key(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def _months_ago(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    return moment.replace(year=year, month=month + 1, day=1, hour=0, minute=0, second=0, microsecond=0)


class SqliteRoomDirectory(RoomDirectory):
    """SQLite implementation of RoomDirectory.

    Every state transition is a single UPDATE guarded by a WHERE clause on
    the current status, so SQLite serializes competing joiners even when
    they come from different processes sharing the database file. Change
    events are published in-process to subscribers after each commit.
    """

    def __init__(self, db: Database, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._db = db
        self._clock = clock
        self._lock = asyncio.Lock()
        self._bus = RoomChangeBus()

    @property
    def bus(self) -> RoomChangeBus:
        return self._bus

    def _now_iso(self) -> str:
        return self._clock().isoformat()

    def _fetch(self, room_id: str) -> Room | None:
        row = self._db.connection.execute(
            f"SELECT {_ROOM_COLUMNS} FROM game_rooms WHERE id = ?",  # noqa: S608
            (room_id,),
        ).fetchone()
        return _row_to_room(row) if row is not None else None

    def _publish(self, kind: RoomChangeKind, room: Room) -> None:
        self._bus.publish(RoomChange(kind=kind, room_id=room.id, game_type=room.game_type, room=room))

    async def _conditional_update(self, room_id: str, sql: str, params: tuple[object, ...]) -> bool:
        """Run one guarded UPDATE; publish an update event when a row changed."""
        async with self._lock:
            cursor = self._db.connection.execute(sql, params)
            self._db.connection.commit()
            if cursor.rowcount != 1:
                return False
            room = self._fetch(room_id)
        if room is not None:
            self._publish(RoomChangeKind.UPDATE, room)
        return True

    async def create_room(
        self,
        host_name: str,
        host_id: str,
        game_type: str,
        *,
        is_private: bool = False,
        room_title: str | None = None,
    ) -> Room:
        now = self._now_iso()
        room_id = str(uuid.uuid4())
        async with self._lock:
            self._db.connection.execute(
                f"INSERT INTO game_rooms ({_ROOM_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?)",  # noqa: S608
                (room_id, host_name, host_id, room_title, game_type, RoomStatus.WAITING.value, int(is_private), now, now),
            )
            self._db.connection.commit()
            room = self._fetch(room_id)
        if room is None:  # pragma: no cover
            raise RuntimeError(f"room {room_id} vanished after insert")
        logger.info("room created", room_id=room_id, game_type=game_type, is_private=is_private)
        self._publish(RoomChangeKind.INSERT, room)
        return room

    async def get_room(self, room_id: str) -> Room | None:
        return self._fetch(room_id)

    async def list_rooms(self, game_type: str) -> list[Room]:
        rows = self._db.connection.execute(
            f"SELECT {_ROOM_COLUMNS} FROM game_rooms "  # noqa: S608
            "WHERE game_type = ? AND status = ? AND is_private = 0 "
            "ORDER BY created_at DESC, rowid DESC",
            (game_type, RoomStatus.WAITING.value),
        ).fetchall()
        return [_row_to_room(row) for row in rows]

    async def get_room_stats(self, game_type: str) -> RoomStats:
        """Counts over rooms that are still open (waiting or playing)."""
        rows = self._db.connection.execute(
            "SELECT status, is_private, COUNT(*) AS n FROM game_rooms "
            "WHERE game_type = ? AND status IN (?, ?) GROUP BY status, is_private",
            (game_type, *_LIVE_STATUSES),
        ).fetchall()
        counts = {"total": 0, "public": 0, "private": 0, "waiting": 0, "playing": 0}
        for row in rows:
            n = row["n"]
            counts["total"] += n
            counts["private" if row["is_private"] else "public"] += n
            counts[row["status"]] += n
        return RoomStats(**counts)

    async def get_monthly_stats(self, game_type: str, months: int = 6) -> list[MonthlyStats]:
        """Rooms created and games played per calendar month, oldest month first."""
        since = _months_ago(self._clock(), months)
        rows = self._db.connection.execute(
            "SELECT created_at, games_played FROM game_rooms WHERE game_type = ? AND created_at >= ?",
            (game_type, since.isoformat()),
        ).fetchall()
        games: dict[str, int] = defaultdict(int)
        rooms: dict[str, int] = defaultdict(int)
        for row in rows:
            key = _month_key(datetime.fromisoformat(row["created_at"]))
            games[key] += row["games_played"]
            rooms[key] += 1
        return [MonthlyStats(month=key, total_games=games[key], total_rooms=rooms[key]) for key in sorted(rooms)]

    async def try_join_room(self, room_id: str) -> bool:
        joined = await self._conditional_update(
            room_id,
            "UPDATE game_rooms SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
            (RoomStatus.PLAYING.value, self._now_iso(), room_id, RoomStatus.WAITING.value),
        )
        if joined:
            logger.info("room joined", room_id=room_id)
        else:
            logger.info("join lost or room unavailable", room_id=room_id)
        return joined

    async def close_room(self, room_id: str) -> bool:
        changed = await self._conditional_update(
            room_id,
            "UPDATE game_rooms SET status = ?, updated_at = ? WHERE id = ? AND status != ?",
            (RoomStatus.CLOSED.value, self._now_iso(), room_id, RoomStatus.CLOSED.value),
        )
        if changed:
            logger.info("room closed", room_id=room_id)
            return True
        return self._fetch(room_id) is not None

    async def update_room_status(self, room_id: str, status: RoomStatus) -> bool:
        """Settle a live room as finished or closed.

        Rooms never go back to waiting, and only try_join_room moves a room to playing.
        """
        if status.value not in _SETTLED_STATUSES:
            logger.info("room status change refused", room_id=room_id, status=status.value)
            return False
        return await self._conditional_update(
            room_id,
            "UPDATE game_rooms SET status = ?, updated_at = ? WHERE id = ? AND status IN (?, ?)",
            (status.value, self._now_iso(), room_id, *_LIVE_STATUSES),
        )

    async def update_host_id(self, room_id: str, host_id: str) -> bool:
        return await self._conditional_update(
            room_id,
            "UPDATE game_rooms SET host_id = ?, updated_at = ? WHERE id = ? AND status = ?",
            (host_id, self._now_iso(), room_id, RoomStatus.WAITING.value),
        )

    async def touch_room(self, room_id: str) -> bool:
        return await self._conditional_update(
            room_id,
            "UPDATE game_rooms SET updated_at = ? WHERE id = ? AND status IN (?, ?)",
            (self._now_iso(), room_id, *_LIVE_STATUSES),
        )

    async def increment_games_played(self, room_id: str) -> bool:
        return await self._conditional_update(
            room_id,
            "UPDATE game_rooms SET games_played = games_played + 1, updated_at = ? WHERE id = ?",
            (self._now_iso(), room_id),
        )

    async def delete_room(self, room_id: str) -> bool:
        async with self._lock:
            room = self._fetch(room_id)
            if room is None:
                return False
            self._db.connection.execute("DELETE FROM game_rooms WHERE id = ?", (room_id,))
            self._db.connection.commit()
        logger.info("room deleted", room_id=room_id)
        self._bus.publish(RoomChange(kind=RoomChangeKind.DELETE, room_id=room_id, game_type=room.game_type))
        return True

    async def close_stale_rooms(self, max_idle: timedelta) -> list[str]:
        """Close live rooms whose host stopped sending heartbeats."""
        cutoff = (self._clock() - max_idle).isoformat()
        rows = self._db.connection.execute(
            "SELECT id FROM game_rooms WHERE status IN (?, ?) AND updated_at < ?",
            (*_LIVE_STATUSES, cutoff),
        ).fetchall()
        closed = [row["id"] for row in rows if await self.close_room(row["id"])]
        if closed:
            logger.info("closed stale rooms", count=len(closed))
        return closed

    async def subscribe_to_rooms(
        self,
        game_type: str,
        on_insert: RoomCallback,
        on_update: RoomCallback,
        on_delete: RoomDeleteCallback,
    ) -> RoomSubscription:
        return self._bus.subscribe(game_type, on_insert, on_update, on_delete)
