"""Abstract direct channel between exactly two peers."""

import secrets
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from enum import StrEnum

import structlog

from game.messaging.codec import DecodeError, decode_message, encode_message
from game.messaging.types import PeerMessage
from game.peer.exceptions import LinkClosedError, PeerError

logger = structlog.get_logger()

OpenHandler = Callable[[], Awaitable[None]]
MessageHandler = Callable[[PeerMessage], Awaitable[None]]
CloseHandler = Callable[[str], Awaitable[None]]
InvalidHandler = Callable[[DecodeError], Awaitable[None]]


class LinkState(StrEnum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class LinkRole(StrEnum):
    HOST = "host"
    GUEST = "guest"


class CloseReason(StrEnum):
    LOCAL = "local_close"
    REMOTE = "remote_closed"
    CONNECTION_LOST = "connection_lost"
    PROTOCOL_ERROR = "protocol_error"
    HEARTBEAT_TIMEOUT = "heartbeat_timeout"


def generate_peer_token() -> str:
    return secrets.token_urlsafe(12)


class PeerLink(ABC):
    """
    One direct channel between two peers.

    The host calls ``create_link`` and waits for exactly one inbound channel;
    the guest calls ``connect_to`` with the host's id. Events are delivered
    to async handlers registered through ``set_handlers`` before either call.
    ``on_close`` fires exactly once, whichever side or failure tears the link
    down. Handler exceptions are logged and never escape into the transport.
    """

    def __init__(self, role: LinkRole) -> None:
        self._role = role
        self._state = LinkState.CONNECTING
        self._local_id = ""
        self._remote_id: str | None = None
        self._started = False
        self._on_open: OpenHandler | None = None
        self._on_message: MessageHandler | None = None
        self._on_close: CloseHandler | None = None
        self._on_invalid: InvalidHandler | None = None

    @property
    def role(self) -> LinkRole:
        return self._role

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == LinkState.OPEN

    @property
    def local_id(self) -> str:
        return self._local_id

    @property
    def remote_id(self) -> str | None:
        return self._remote_id

    def set_handlers(
        self,
        *,
        on_open: OpenHandler | None = None,
        on_message: MessageHandler | None = None,
        on_close: CloseHandler | None = None,
        on_invalid: InvalidHandler | None = None,
    ) -> None:
        self._on_open = on_open
        self._on_message = on_message
        self._on_close = on_close
        self._on_invalid = on_invalid

    @abstractmethod
    async def create_link(self) -> str:
        """Start listening for one inbound channel and return the local peer id."""

    @abstractmethod
    async def connect_to(self, remote_id: str) -> None:
        """Open a channel to remote_id.

        Raises PeerUnreachableError when the id is malformed, stale, offline,
        or the handshake does not complete in time.
        """

    @abstractmethod
    async def _send_bytes(self, data: bytes) -> None:
        """Write one encoded envelope. Raises LinkClosedError or OSError on failure."""

    @abstractmethod
    async def _release(self) -> None:
        """Free transport resources. Called once, from teardown."""

    async def send(self, message: PeerMessage) -> bool:
        """Best-effort send. Returns False when the link is not open or the write fails."""
        if self._state != LinkState.OPEN:
            return False
        try:
            await self._send_bytes(encode_message(message))
        except (LinkClosedError, ConnectionError, OSError) as e:
            logger.warning("peer send failed", peer_id=self._remote_id, message_type=message.type, error=str(e))
            await self._teardown(CloseReason.CONNECTION_LOST)
            return False
        return True

    async def close(self, reason: str = CloseReason.LOCAL) -> None:
        await self._teardown(reason)

    def _claim_start(self) -> None:
        if self._started:
            raise PeerError("link already started")
        self._started = True

    def _set_open(self, remote_id: str) -> None:
        self._remote_id = remote_id
        self._state = LinkState.OPEN
        logger.info("peer link open", role=self._role, local_id=self._local_id, peer_id=remote_id)

    async def _mark_open(self, remote_id: str) -> None:
        self._set_open(remote_id)
        await self._notify_open()

    async def _notify_open(self) -> None:
        if self._state == LinkState.OPEN and self._on_open is not None:
            await self._run_handler("on_open", self._on_open())

    async def _dispatch(self, data: bytes) -> None:
        if self._state != LinkState.OPEN:
            return
        try:
            message = decode_message(data)
        except DecodeError as e:
            logger.warning("dropping malformed peer frame", peer_id=self._remote_id, error=str(e))
            if self._on_invalid is not None:
                await self._run_handler("on_invalid", self._on_invalid(e))
            return
        if self._on_message is not None:
            await self._run_handler("on_message", self._on_message(message))

    async def _teardown(self, reason: str) -> None:
        if self._state == LinkState.CLOSED:
            return
        self._state = LinkState.CLOSED
        await self._release()
        logger.info("peer link closed", role=self._role, peer_id=self._remote_id, reason=reason)
        if self._on_close is not None:
            await self._run_handler("on_close", self._on_close(reason))

    async def _run_handler(self, name: str, call: Awaitable[None]) -> None:
        try:
            await call
        except Exception:
            logger.exception("peer link handler failed", handler=name, peer_id=self._remote_id)
