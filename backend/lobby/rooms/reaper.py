"""Periodic closing of rooms whose host stopped sending keep-alives."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from shared.db.room_directory import SqliteRoomDirectory

logger = structlog.get_logger()


class StaleRoomReaper:
    """Closes live rooms untouched for longer than ``max_idle_seconds``."""

    def __init__(
        self,
        directory: SqliteRoomDirectory,
        *,
        max_idle_seconds: float,
        interval_seconds: float = 60.0,
    ) -> None:
        self._directory = directory
        self._max_idle = timedelta(seconds=max_idle_seconds)
        self._interval = interval_seconds
        self._reaper_task: asyncio.Task[None] | None = None

    def start_reaper(self) -> None:
        """Start the periodic reaper task."""
        if self._reaper_task is not None:
            return
        self._reaper_task = asyncio.create_task(self._reaper_loop())

    async def stop_reaper(self) -> None:
        """Cancel the reaper task."""
        if self._reaper_task is not None:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None

    async def _reaper_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.reap_stale_rooms()
            except Exception:
                logger.exception("stale room reaping failed")

    async def reap_stale_rooms(self) -> list[str]:
        closed = await self._directory.close_stale_rooms(self._max_idle)
        for room_id in closed:
            logger.info("room expired", room_id=room_id)
        return closed
