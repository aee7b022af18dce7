from __future__ import annotations

import contextlib
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from lobby.rooms.reaper import StaleRoomReaper
from lobby.server.middleware import SecurityHeadersMiddleware, SlashNormalizationMiddleware
from lobby.server.settings import LobbyServerSettings
from lobby.views.feed import room_feed
from lobby.views.room_handlers import (
    close_room,
    create_room,
    delete_room,
    get_room,
    increment_games_played,
    join_room,
    list_rooms,
    monthly_stats,
    room_stats,
    touch_room,
    update_host,
    update_status,
)
from shared.db import Database, SqliteRoomDirectory
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request


def _app_version() -> str:
    try:
        return version("tabletop-peer")
    except PackageNotFoundError:
        return "dev"


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": _app_version()})


def create_app(settings: LobbyServerSettings | None = None) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = LobbyServerSettings()

    routes = [
        Route("/health", health, methods=["GET"], name="health"),
        Route("/rooms", list_rooms, methods=["GET"], name="list_rooms"),
        Route("/rooms", create_room, methods=["POST"], name="create_room"),
        # static paths before /rooms/{room_id}
        Route("/rooms/stats", room_stats, methods=["GET"], name="room_stats"),
        Route("/rooms/monthly", monthly_stats, methods=["GET"], name="monthly_stats"),
        Route("/rooms/{room_id}", get_room, methods=["GET"], name="get_room"),
        Route("/rooms/{room_id}", delete_room, methods=["DELETE"], name="delete_room"),
        Route("/rooms/{room_id}/join", join_room, methods=["POST"], name="join_room"),
        Route("/rooms/{room_id}/close", close_room, methods=["POST"], name="close_room"),
        Route("/rooms/{room_id}/heartbeat", touch_room, methods=["POST"], name="touch_room"),
        Route(
            "/rooms/{room_id}/games-played",
            increment_games_played,
            methods=["POST"],
            name="increment_games_played",
        ),
        Route("/rooms/{room_id}/status", update_status, methods=["PUT"], name="update_status"),
        Route("/rooms/{room_id}/host", update_host, methods=["PUT"], name="update_host"),
        Route("/feed/{game_type}", room_feed, methods=["GET"], name="room_feed"),
    ]

    db = Database(settings.database_path)
    db.connect()
    directory = SqliteRoomDirectory(db)
    reaper = StaleRoomReaper(
        directory,
        max_idle_seconds=settings.room_max_idle_seconds,
        interval_seconds=settings.reaper_interval_seconds,
    )

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        reaper.start_reaper()
        yield
        await reaper.stop_reaper()
        db.close()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(SlashNormalizationMiddleware)  # type: ignore[arg-type]
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )
    app.add_middleware(SecurityHeadersMiddleware)  # type: ignore[arg-type]

    app.state.db = db
    app.state.settings = settings
    app.state.directory = directory
    app.state.reaper = reaper

    logger.info("lobby server ready", database=db.path)
    return app


def get_app() -> Starlette:  # pragma: no cover  # deadcode: ignore
    """Factory function for uvicorn --factory lobby.server.app:get_app."""
    s = LobbyServerSettings()
    setup_logging(log_dir=s.log_dir, component="lobby")
    return create_app(settings=s)
