"""Server-Sent Events stream of room changes for one game type."""

from __future__ import annotations

import asyncio
from http import HTTPStatus
from typing import TYPE_CHECKING

import structlog
from starlette.responses import JSONResponse, Response, StreamingResponse

from lobby.views.room_handlers import valid_game_type
from shared.dal.models import RoomChange, RoomChangeKind

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request

    from shared.dal.models import Room
    from shared.db.room_directory import SqliteRoomDirectory

logger = structlog.get_logger()

SSE_HEADERS = {"Cache-Control": "no-store", "X-Accel-Buffering": "no"}


def format_event(change: RoomChange) -> str:
    return f"data: {change.model_dump_json()}\n\n"


async def room_events(
    directory: SqliteRoomDirectory,
    game_type: str,
    *,
    keepalive_seconds: float,
) -> AsyncIterator[str]:
    """Yield SSE lines for every change to game_type rooms, with comment keep-alives in between."""
    queue: asyncio.Queue[RoomChange] = asyncio.Queue()

    def on_insert(room: Room) -> None:
        queue.put_nowait(RoomChange(kind=RoomChangeKind.INSERT, room_id=room.id, game_type=room.game_type, room=room))

    def on_update(room: Room) -> None:
        queue.put_nowait(RoomChange(kind=RoomChangeKind.UPDATE, room_id=room.id, game_type=room.game_type, room=room))

    def on_delete(room_id: str) -> None:
        queue.put_nowait(RoomChange(kind=RoomChangeKind.DELETE, room_id=room_id, game_type=game_type))

    subscription = await directory.subscribe_to_rooms(game_type, on_insert, on_update, on_delete)
    logger.info("room feed opened", game_type=game_type)
    try:
        yield ": connected\n\n"
        while True:
            try:
                change = await asyncio.wait_for(queue.get(), keepalive_seconds)
            except TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield format_event(change)
    finally:
        await subscription.close()
        logger.info("room feed closed", game_type=game_type)


async def room_feed(request: Request) -> Response:
    game_type = request.path_params["game_type"]
    if not valid_game_type(game_type):
        return JSONResponse({"error": "Invalid game type"}, status_code=HTTPStatus.UNPROCESSABLE_ENTITY)
    events = room_events(
        request.app.state.directory,
        game_type,
        keepalive_seconds=request.app.state.settings.feed_keepalive_seconds,
    )
    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)
