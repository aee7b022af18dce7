"""JSON handlers for the room directory API."""

from __future__ import annotations

import json
import re
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, Field, ValidationError
from starlette.responses import JSONResponse

from shared.dal.models import GAME_TYPE_PATTERN, CreateRoomRequest, RoomStatus

if TYPE_CHECKING:
    from starlette.requests import Request

    from shared.dal.models import Room
    from shared.db.room_directory import SqliteRoomDirectory

logger = structlog.get_logger()

MAX_STATS_MONTHS = 24


class UpdateStatusRequest(BaseModel):
    status: RoomStatus


class UpdateHostRequest(BaseModel):
    host_id: str = Field(min_length=1, max_length=200)


def _directory(request: Request) -> SqliteRoomDirectory:
    return request.app.state.directory


def _error(message: str, status: HTTPStatus) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status)


def _room_response(room: Room, status: HTTPStatus = HTTPStatus.OK) -> JSONResponse:
    return JSONResponse(room.model_dump(mode="json"), status_code=status)


def valid_game_type(value: str | None) -> bool:
    return value is not None and re.fullmatch(GAME_TYPE_PATTERN, value) is not None


async def _read_json(request: Request) -> dict[str, Any] | JSONResponse:
    raw_body = await request.body()
    if not raw_body or raw_body.strip() == b"":
        return {}
    try:
        body = json.loads(raw_body)
    except ValueError:
        return _error("Invalid JSON body", HTTPStatus.UNPROCESSABLE_ENTITY)
    if not isinstance(body, dict):
        return _error("JSON body must be an object", HTTPStatus.UNPROCESSABLE_ENTITY)
    return body


async def _missing_or(request: Request, room_id: str, status: HTTPStatus) -> JSONResponse:
    """Answer a failed conditional update: 404 for an unknown room, else ``status``."""
    if await _directory(request).get_room(room_id) is None:
        return _error("Room not found", HTTPStatus.NOT_FOUND)
    return _error("Room is not in a state that allows this", status)


async def list_rooms(request: Request) -> JSONResponse:
    game_type = request.query_params.get("game_type")
    if not valid_game_type(game_type):
        return _error("game_type query parameter is required", HTTPStatus.UNPROCESSABLE_ENTITY)
    rooms = await _directory(request).list_rooms(game_type)
    return JSONResponse({"rooms": [room.model_dump(mode="json") for room in rooms]})


async def create_room(request: Request) -> JSONResponse:
    body = await _read_json(request)
    if isinstance(body, JSONResponse):
        return body
    try:
        req = CreateRoomRequest(**body)
    except (TypeError, ValidationError) as e:
        return _error(str(e), HTTPStatus.UNPROCESSABLE_ENTITY)

    room = await _directory(request).create_room(
        req.host_name,
        req.host_id,
        req.game_type,
        is_private=req.is_private,
        room_title=req.room_title,
    )
    return _room_response(room, HTTPStatus.CREATED)


async def room_stats(request: Request) -> JSONResponse:
    game_type = request.query_params.get("game_type")
    if not valid_game_type(game_type):
        return _error("game_type query parameter is required", HTTPStatus.UNPROCESSABLE_ENTITY)
    stats = await _directory(request).get_room_stats(game_type)
    return JSONResponse(stats.model_dump(mode="json"))


async def monthly_stats(request: Request) -> JSONResponse:
    game_type = request.query_params.get("game_type")
    if not valid_game_type(game_type):
        return _error("game_type query parameter is required", HTTPStatus.UNPROCESSABLE_ENTITY)
    try:
        months = int(request.query_params.get("months", "6"))
    except ValueError:
        return _error("months must be an integer", HTTPStatus.UNPROCESSABLE_ENTITY)
    if not 1 <= months <= MAX_STATS_MONTHS:
        return _error(f"months must be between 1 and {MAX_STATS_MONTHS}", HTTPStatus.UNPROCESSABLE_ENTITY)
    stats = await _directory(request).get_monthly_stats(game_type, months)
    return JSONResponse({"months": [entry.model_dump(mode="json") for entry in stats]})


async def get_room(request: Request) -> JSONResponse:
    room = await _directory(request).get_room(request.path_params["room_id"])
    if room is None:
        return _error("Room not found", HTTPStatus.NOT_FOUND)
    return _room_response(room)


async def join_room(request: Request) -> JSONResponse:
    room_id = request.path_params["room_id"]
    if await _directory(request).try_join_room(room_id):
        return JSONResponse({"joined": True})
    return await _missing_or(request, room_id, HTTPStatus.CONFLICT)


async def close_room(request: Request) -> JSONResponse:
    room_id = request.path_params["room_id"]
    if not await _directory(request).close_room(room_id):
        return _error("Room not found", HTTPStatus.NOT_FOUND)
    return JSONResponse({"closed": True})


async def touch_room(request: Request) -> JSONResponse:
    room_id = request.path_params["room_id"]
    if await _directory(request).touch_room(room_id):
        return JSONResponse({"touched": True})
    return await _missing_or(request, room_id, HTTPStatus.CONFLICT)


async def increment_games_played(request: Request) -> JSONResponse:
    room_id = request.path_params["room_id"]
    if not await _directory(request).increment_games_played(room_id):
        return _error("Room not found", HTTPStatus.NOT_FOUND)
    room = await _directory(request).get_room(room_id)
    return JSONResponse({"games_played": room.games_played if room is not None else 0})


async def update_status(request: Request) -> JSONResponse:
    room_id = request.path_params["room_id"]
    body = await _read_json(request)
    if isinstance(body, JSONResponse):
        return body
    try:
        req = UpdateStatusRequest(**body)
    except (TypeError, ValidationError) as e:
        return _error(str(e), HTTPStatus.UNPROCESSABLE_ENTITY)
    if await _directory(request).update_room_status(room_id, req.status):
        return JSONResponse({"status": req.status.value})
    return await _missing_or(request, room_id, HTTPStatus.CONFLICT)


async def update_host(request: Request) -> JSONResponse:
    room_id = request.path_params["room_id"]
    body = await _read_json(request)
    if isinstance(body, JSONResponse):
        return body
    try:
        req = UpdateHostRequest(**body)
    except (TypeError, ValidationError) as e:
        return _error(str(e), HTTPStatus.UNPROCESSABLE_ENTITY)
    if await _directory(request).update_host_id(room_id, req.host_id):
        return JSONResponse({"host_id": req.host_id})
    return await _missing_or(request, room_id, HTTPStatus.CONFLICT)


async def delete_room(request: Request) -> JSONResponse:
    room_id = request.path_params["room_id"]
    if not await _directory(request).delete_room(room_id):
        return _error("Room not found", HTTPStatus.NOT_FOUND)
    logger.info("room deleted by request", room_id=room_id)
    return JSONResponse({"deleted": True})
