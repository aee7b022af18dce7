"""Server-Sent Events generator for room changes."""

import asyncio

import pytest

from lobby.views.feed import format_event, room_events
from shared.dal.models import RoomChange, RoomChangeKind, RoomStatus
from shared.db.connection import Database
from shared.db.room_directory import SqliteRoomDirectory

_DATA_PREFIX = "data: "


@pytest.fixture
def directory():
    db = Database(":memory:")
    db.connect()
    yield SqliteRoomDirectory(db)
    db.close()


def _parse(event: str) -> RoomChange:
    assert event.startswith(_DATA_PREFIX)
    assert event.endswith("\n\n")
    return RoomChange.model_validate_json(event[len(_DATA_PREFIX) :])


async def _next(events) -> str:
    return await asyncio.wait_for(anext(events), 2.0)


class TestRoomEvents:
    async def test_streams_room_lifecycle_in_order(self, directory):
        events = room_events(directory, "omok", keepalive_seconds=5)
        assert await _next(events) == ": connected\n\n"

        room = await directory.create_room("alice", "peer-a", "omok")
        await directory.try_join_room(room.id)
        await directory.delete_room(room.id)

        inserted, joined, deleted = [_parse(await _next(events)) for _ in range(3)]
        assert inserted.kind == RoomChangeKind.INSERT
        assert joined.kind == RoomChangeKind.UPDATE
        assert joined.room.status == RoomStatus.PLAYING
        assert deleted.kind == RoomChangeKind.DELETE
        assert deleted.room_id == room.id
        assert deleted.room is None
        await events.aclose()

    async def test_other_game_types_are_filtered(self, directory):
        events = room_events(directory, "omok", keepalive_seconds=5)
        await _next(events)

        await directory.create_room("bob", "peer-b", "othello")
        mine = await directory.create_room("alice", "peer-a", "omok")

        assert _parse(await _next(events)).room_id == mine.id
        await events.aclose()

    async def test_keepalive_comment_when_idle(self, directory):
        events = room_events(directory, "omok", keepalive_seconds=0.05)
        await _next(events)

        assert await _next(events) == ": keep-alive\n\n"
        await events.aclose()

    async def test_closing_stream_unsubscribes(self, directory):
        events = room_events(directory, "omok", keepalive_seconds=5)
        await _next(events)
        assert directory.bus.subscriber_count == 1

        await events.aclose()

        assert directory.bus.subscriber_count == 0


def test_format_event_is_single_data_line():
    change = RoomChange(kind=RoomChangeKind.DELETE, room_id="r1", game_type="omok")
    event = format_event(change)
    assert event.count("\n") == 2
    assert _parse(event) == change
