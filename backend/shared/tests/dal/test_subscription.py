"""Tests for realtime room change delivery."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from shared.dal.models import Room, RoomChange, RoomChangeKind, RoomStatus
from shared.dal.subscription import RoomChangeBus
from shared.db.connection import Database
from shared.db.room_directory import SqliteRoomDirectory

_NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _room(room_id: str = "r1", game_type: str = "omok", status: RoomStatus = RoomStatus.WAITING) -> Room:
    return Room(
        id=room_id,
        host_name="alice",
        host_id="peer",
        game_type=game_type,
        status=status,
        created_at=_NOW,
        updated_at=_NOW,
    )


class _Recorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def on_insert(self, room: Room) -> None:
        self.events.append(("insert", room.id))

    def on_update(self, room: Room) -> None:
        self.events.append((f"update:{room.status}", room.id))

    def on_delete(self, room_id: str) -> None:
        self.events.append(("delete", room_id))


class TestRoomChangeBus:
    async def test_delivers_in_arrival_order(self) -> None:
        bus = RoomChangeBus()
        recorder = _Recorder()
        sub = bus.subscribe("omok", recorder.on_insert, recorder.on_update, recorder.on_delete)

        bus.publish(RoomChange(kind=RoomChangeKind.INSERT, room_id="r1", game_type="omok", room=_room()))
        bus.publish(
            RoomChange(
                kind=RoomChangeKind.UPDATE,
                room_id="r1",
                game_type="omok",
                room=_room(status=RoomStatus.PLAYING),
            ),
        )
        bus.publish(RoomChange(kind=RoomChangeKind.DELETE, room_id="r1", game_type="omok"))
        await sub.flush()

        assert recorder.events == [("insert", "r1"), ("update:playing", "r1"), ("delete", "r1")]
        await sub.close()

    async def test_filters_by_game_type(self) -> None:
        bus = RoomChangeBus()
        recorder = _Recorder()
        sub = bus.subscribe("othello", recorder.on_insert, recorder.on_update, recorder.on_delete)

        bus.publish(RoomChange(kind=RoomChangeKind.INSERT, room_id="r1", game_type="omok", room=_room()))
        await sub.flush()

        assert recorder.events == []
        await sub.close()

    async def test_closed_subscription_is_dropped(self) -> None:
        bus = RoomChangeBus()
        recorder = _Recorder()
        sub = bus.subscribe("omok", recorder.on_insert, recorder.on_update, recorder.on_delete)
        await sub.close()

        bus.publish(RoomChange(kind=RoomChangeKind.INSERT, room_id="r1", game_type="omok", room=_room()))

        assert bus.subscriber_count == 0
        assert recorder.events == []

    async def test_failing_callback_does_not_stop_delivery(self) -> None:
        bus = RoomChangeBus()
        recorder = _Recorder()

        def explode(_room: Room) -> None:
            raise RuntimeError("boom")

        sub = bus.subscribe("omok", explode, recorder.on_update, recorder.on_delete)
        bus.publish(RoomChange(kind=RoomChangeKind.INSERT, room_id="r1", game_type="omok", room=_room()))
        bus.publish(RoomChange(kind=RoomChangeKind.DELETE, room_id="r1", game_type="omok"))
        await sub.flush()

        assert recorder.events == [("delete", "r1")]
        await sub.close()


class TestDirectoryEvents:
    @pytest.fixture
    def directory(self):
        db = Database(":memory:")
        db.connect()
        yield SqliteRoomDirectory(db)
        db.close()

    async def test_room_lifecycle_emits_changes(self, directory: SqliteRoomDirectory) -> None:
        recorder = _Recorder()
        sub = await directory.subscribe_to_rooms("omok", recorder.on_insert, recorder.on_update, recorder.on_delete)

        room = await directory.create_room("alice", "peer", "omok")
        await directory.try_join_room(room.id)
        await directory.try_join_room(room.id)  # lost race: no event
        await directory.close_room(room.id)
        await directory.close_room(room.id)  # already closed: no event
        await directory.delete_room(room.id)
        await sub.flush()

        assert recorder.events == [
            ("insert", room.id),
            ("update:playing", room.id),
            ("update:closed", room.id),
            ("delete", room.id),
        ]
        await sub.close()
