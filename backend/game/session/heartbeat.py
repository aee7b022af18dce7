"""
Liveness loops for a running session.

PeerHeartbeat pings the remote peer and closes the link once nothing has
been heard for longer than the timeout. RoomKeepAlive refreshes the hosted
room's ``updated_at`` so the lobby server does not reap it as stale.
"""

import asyncio
import contextlib
import time

import structlog

from game.messaging.types import HeartbeatPayload, PingMessage
from game.peer.link import CloseReason, PeerLink
from shared.dal.room_directory import RoomDirectory

logger = structlog.get_logger()


class PeerHeartbeat:
    def __init__(self, link: PeerLink, *, interval: float, timeout: float) -> None:
        self._link = link
        self._interval = interval
        self._timeout = timeout
        self._last_seen = time.monotonic()
        self._task: asyncio.Task[None] | None = None

    def record_activity(self) -> None:
        self._last_seen = time.monotonic()

    @property
    def silent_for(self) -> float:
        return time.monotonic() - self._last_seen

    def start(self) -> None:
        """Start the heartbeat loop. Idempotent."""
        if self._task is not None and not self._task.done():
            return
        self.record_activity()
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _loop(self) -> None:
        while self._link.is_open:
            await asyncio.sleep(self._interval)
            if self.silent_for > self._timeout:
                logger.warning("peer heartbeat timed out", peer_id=self._link.remote_id, silent_for=self.silent_for)
                await self._link.close(CloseReason.HEARTBEAT_TIMEOUT)
                return
            await self._link.send(PingMessage(payload=HeartbeatPayload(timestamp=int(time.time() * 1000))))


class RoomKeepAlive:
    def __init__(self, directory: RoomDirectory, room_id: str, *, interval: float) -> None:
        self._directory = directory
        self._room_id = room_id
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start the keep-alive loop. Idempotent."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                touched = await self._directory.touch_room(self._room_id)
            except Exception:
                logger.exception("room keep-alive failed", room_id=self._room_id)
                continue
            if not touched:
                logger.info("room keep-alive not applied", room_id=self._room_id)
