"""Realtime room change fan-out.

Each subscription owns a queue and a single dispatch task, so callbacks for
one subscriber run one at a time in the order the changes arrived.
"""

import asyncio
import contextlib
from collections.abc import Callable

import structlog

from shared.dal.models import Room, RoomChange, RoomChangeKind

logger = structlog.get_logger()

RoomCallback = Callable[[Room], None]
RoomDeleteCallback = Callable[[str], None]


class RoomSubscription:
    """Delivers room changes for one game type to insert/update/delete callbacks."""

    def __init__(
        self,
        game_type: str,
        on_insert: RoomCallback,
        on_update: RoomCallback,
        on_delete: RoomDeleteCallback,
    ) -> None:
        self.game_type = game_type
        self._on_insert = on_insert
        self._on_update = on_update
        self._on_delete = on_delete
        self._queue: asyncio.Queue[RoomChange] = asyncio.Queue()
        self._closed = False
        self._dispatch_task = asyncio.create_task(self._dispatch_loop())

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, change: RoomChange) -> None:
        if self._closed or change.game_type != self.game_type:
            return
        self._queue.put_nowait(change)

    async def flush(self) -> None:
        """Wait until every change delivered so far has been dispatched."""
        await self._queue.join()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._dispatch_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._dispatch_task

    async def _dispatch_loop(self) -> None:
        while True:
            change = await self._queue.get()
            try:
                self._dispatch(change)
            except Exception:
                logger.exception("room change callback failed", room_id=change.room_id, kind=change.kind)
            finally:
                self._queue.task_done()

    def _dispatch(self, change: RoomChange) -> None:
        match change.kind:
            case RoomChangeKind.INSERT if change.room is not None:
                self._on_insert(change.room)
            case RoomChangeKind.UPDATE if change.room is not None:
                self._on_update(change.room)
            case RoomChangeKind.DELETE:
                self._on_delete(change.room_id)
            case _:
                logger.warning("dropping room change without a room", room_id=change.room_id, kind=change.kind)


class RoomChangeBus:
    """In-process publisher used by directories that own their storage."""

    def __init__(self) -> None:
        self._subscriptions: list[RoomSubscription] = []

    def subscribe(
        self,
        game_type: str,
        on_insert: RoomCallback,
        on_update: RoomCallback,
        on_delete: RoomDeleteCallback,
    ) -> RoomSubscription:
        subscription = RoomSubscription(game_type, on_insert, on_update, on_delete)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, change: RoomChange) -> None:
        self._subscriptions = [s for s in self._subscriptions if not s.closed]
        for subscription in self._subscriptions:
            subscription.deliver(change)

    @property
    def subscriber_count(self) -> int:
        return sum(1 for s in self._subscriptions if not s.closed)
