"""Room directory client for the lobby server's HTTP API.

Lookups and state changes degrade to soft failures (None, False, empty
lists) when the lobby is unreachable, so a lost lobby only affects
matchmaking and never an established peer session. Realtime changes come
from the lobby's Server-Sent Events feed.
"""

from __future__ import annotations

import asyncio
import contextlib
from http import HTTPStatus
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
import structlog
from pydantic import ValidationError

from shared.dal.models import MonthlyStats, Room, RoomChange, RoomStats
from shared.dal.room_directory import RoomDirectory, RoomDirectoryError
from shared.dal.subscription import RoomSubscription

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.dal.models import RoomStatus
    from shared.dal.subscription import RoomCallback, RoomDeleteCallback

logger = structlog.get_logger()

DEFAULT_TIMEOUT = 5.0
FEED_RECONNECT_DELAY = 3.0
_SSE_DATA_PREFIX = "data:"

_T = TypeVar("_T")


class FeedSubscription(RoomSubscription):
    """RoomSubscription fed by a reader task that follows the lobby SSE feed."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        game_type: str,
        on_insert: RoomCallback,
        on_update: RoomCallback,
        on_delete: RoomDeleteCallback,
        *,
        reconnect_delay: float = FEED_RECONNECT_DELAY,
    ) -> None:
        super().__init__(game_type, on_insert, on_update, on_delete)
        self._client = client
        self._reconnect_delay = reconnect_delay
        self._reader_task = asyncio.create_task(self._follow_feed())

    async def close(self) -> None:
        self._reader_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._reader_task
        await super().close()

    async def _follow_feed(self) -> None:
        while not self.closed:
            try:
                async with self._client.stream("GET", f"/feed/{self.game_type}", timeout=None) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        self._handle_line(line)
            except httpx.HTTPError as e:
                logger.warning("room feed unavailable", game_type=self.game_type, error=str(e))
            await asyncio.sleep(self._reconnect_delay)

    def _handle_line(self, line: str) -> None:
        if not line.startswith(_SSE_DATA_PREFIX):
            return  # comments (keep-alives), blank separators
        try:
            change = RoomChange.model_validate_json(line[len(_SSE_DATA_PREFIX) :].strip())
        except ValidationError:
            logger.warning("ignoring malformed room feed event", line=line[:200])
            return
        self.deliver(change)


class HttpRoomDirectory(RoomDirectory):
    """RoomDirectory backed by the lobby server."""

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        feed_reconnect_delay: float = FEED_RECONNECT_DELAY,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = client is None
        self._feed_reconnect_delay = feed_reconnect_delay

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response | None:  # noqa: ANN401
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("lobby request failed", method=method, path=path, error=str(e))
            return None

    async def _read(self, path: str, parse: Callable[[Any], _T], **kwargs: Any) -> _T | None:  # noqa: ANN401
        """GET path and parse its JSON body, or None when the lobby gives no usable answer."""
        response = await self._request("GET", path, **kwargs)
        if response is None or response.status_code != HTTPStatus.OK:
            return None
        try:
            return parse(response.json())
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            logger.warning("malformed lobby response", path=path, error=str(e), body=response.text[:200])
            return None

    async def _succeeded(self, method: str, path: str, **kwargs: Any) -> bool:  # noqa: ANN401
        response = await self._request(method, path, **kwargs)
        return response is not None and response.status_code == HTTPStatus.OK

    async def create_room(
        self,
        host_name: str,
        host_id: str,
        game_type: str,
        *,
        is_private: bool = False,
        room_title: str | None = None,
    ) -> Room:
        body = {
            "host_name": host_name,
            "host_id": host_id,
            "game_type": game_type,
            "is_private": is_private,
            "room_title": room_title,
        }
        response = await self._request("POST", "/rooms", json=body)
        if response is None:
            raise RoomDirectoryError("lobby unreachable")
        if response.status_code != HTTPStatus.CREATED:
            raise RoomDirectoryError(f"room creation rejected ({response.status_code}): {response.text[:200]}")
        try:
            return Room.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RoomDirectoryError(f"malformed room in lobby response: {e}") from e

    async def get_room(self, room_id: str) -> Room | None:
        return await self._read(f"/rooms/{room_id}", Room.model_validate)

    async def list_rooms(self, game_type: str) -> list[Room]:
        rooms = await self._read(
            "/rooms",
            lambda body: [Room.model_validate(item) for item in body["rooms"]],
            params={"game_type": game_type},
        )
        return rooms or []

    async def get_room_stats(self, game_type: str) -> RoomStats:
        stats = await self._read("/rooms/stats", RoomStats.model_validate, params={"game_type": game_type})
        return stats or RoomStats()

    async def get_monthly_stats(self, game_type: str, months: int = 6) -> list[MonthlyStats]:
        monthly = await self._read(
            "/rooms/monthly",
            lambda body: [MonthlyStats.model_validate(item) for item in body["months"]],
            params={"game_type": game_type, "months": months},
        )
        return monthly or []

    async def try_join_room(self, room_id: str) -> bool:
        return await self._succeeded("POST", f"/rooms/{room_id}/join")

    async def close_room(self, room_id: str) -> bool:
        return await self._succeeded("POST", f"/rooms/{room_id}/close")

    async def update_room_status(self, room_id: str, status: RoomStatus) -> bool:
        return await self._succeeded("PUT", f"/rooms/{room_id}/status", json={"status": status.value})

    async def update_host_id(self, room_id: str, host_id: str) -> bool:
        return await self._succeeded("PUT", f"/rooms/{room_id}/host", json={"host_id": host_id})

    async def touch_room(self, room_id: str) -> bool:
        return await self._succeeded("POST", f"/rooms/{room_id}/heartbeat")

    async def increment_games_played(self, room_id: str) -> bool:
        return await self._succeeded("POST", f"/rooms/{room_id}/games-played")

    async def delete_room(self, room_id: str) -> bool:
        return await self._succeeded("DELETE", f"/rooms/{room_id}")

    async def subscribe_to_rooms(
        self,
        game_type: str,
        on_insert: RoomCallback,
        on_update: RoomCallback,
        on_delete: RoomDeleteCallback,
    ) -> RoomSubscription:
        return FeedSubscription(
            self._client,
            game_type,
            on_insert,
            on_update,
            on_delete,
            reconnect_delay=self._feed_reconnect_delay,
        )
