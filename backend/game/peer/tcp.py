"""
Direct TCP peer links over asyncio streams.

A host peer id has the form ``<token>@<host>:<port>``. The guest opens a
connection and sends a hello frame carrying the token; the host answers
with an acceptance frame, or closes the connection when the token does not
match or a peer is already attached. After the handshake both directions
carry length-prefixed JSON envelopes.
"""

import asyncio
import contextlib
import re

import structlog

from game.messaging.codec import DecodeError, decode, encode, pack_frame, read_frame
from game.peer.exceptions import LinkClosedError, PeerUnreachableError
from game.peer.link import CloseReason, LinkRole, LinkState, PeerLink, generate_peer_token

logger = structlog.get_logger()

_PEER_ID_PATTERN = re.compile(r"^(?P<token>[A-Za-z0-9_-]{8,64})@(?P<host>[^\s@:]+|\[[0-9a-fA-F:]+\]):(?P<port>\d{1,5})$")
_MAX_PORT = 65535

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_HANDSHAKE_TIMEOUT = 5.0


def format_peer_id(token: str, host: str, port: int) -> str:
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"{token}@{host}:{port}"


def parse_peer_id(peer_id: str) -> tuple[str, str, int]:
    """Split a peer id into (token, host, port).

    Raises PeerUnreachableError when the id is malformed.
    """
    match = _PEER_ID_PATTERN.match(peer_id)
    if match is None:
        raise PeerUnreachableError(peer_id, "malformed peer id")
    port = int(match["port"])
    if not 0 < port <= _MAX_PORT:
        raise PeerUnreachableError(peer_id, f"port {port} out of range")
    return match["token"], match["host"].strip("[]"), port


class TcpPeerLink(PeerLink):
    def __init__(
        self,
        role: LinkRole,
        *,
        bind_host: str = "127.0.0.1",
        advertise_host: str | None = None,
        port: int = 0,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
    ) -> None:
        super().__init__(role)
        self._bind_host = bind_host
        self._advertise_host = advertise_host or bind_host
        self._port = port
        self._connect_timeout = connect_timeout
        self._handshake_timeout = handshake_timeout
        self._token = generate_peer_token()
        self._server: asyncio.Server | None = None
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._reader_task: asyncio.Task[None] | None = None

    async def create_link(self) -> str:
        self._claim_start()
        self._server = await asyncio.start_server(self._handle_connection, self._bind_host, self._port)
        port = self._server.sockets[0].getsockname()[1]
        self._local_id = format_peer_id(self._token, self._advertise_host, port)
        logger.info("listening for peer", local_id=self._local_id)
        return self._local_id

    async def connect_to(self, remote_id: str) -> None:
        """Connect and complete the hello handshake.

        On failure the link is left closed without firing ``on_close`` and
        PeerUnreachableError is raised.
        """
        self._claim_start()
        self._local_id = f"guest-{self._token}"
        token, host, port = parse_peer_id(remote_id)
        try:
            reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), self._connect_timeout)
        except (TimeoutError, OSError) as e:
            self._state = LinkState.CLOSED
            raise PeerUnreachableError(remote_id, f"connect failed: {e!r}") from e

        try:
            writer.write(pack_frame(encode({"token": token, "peer": self._local_id})))
            await writer.drain()
            reply = decode(await asyncio.wait_for(read_frame(reader), self._handshake_timeout))
        except (TimeoutError, asyncio.IncompleteReadError, DecodeError, ConnectionError, OSError) as e:
            await self._close_writer(writer)
            self._state = LinkState.CLOSED
            raise PeerUnreachableError(remote_id, f"handshake failed: {e!r}") from e

        if reply.get("accepted") is not True:
            await self._close_writer(writer)
            self._state = LinkState.CLOSED
            raise PeerUnreachableError(remote_id, "host refused the connection")

        self._reader, self._writer = reader, writer
        await self._mark_open(remote_id)
        self._start_reader()

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        if self._writer is not None or self._state != LinkState.CONNECTING:
            logger.warning("rejecting extra peer connection", local_id=self._local_id)
            await self._close_writer(writer)
            return

        try:
            hello = decode(await asyncio.wait_for(read_frame(reader), self._handshake_timeout))
        except (TimeoutError, asyncio.IncompleteReadError, DecodeError, ConnectionError, OSError) as e:
            logger.warning("peer handshake failed", local_id=self._local_id, error=repr(e))
            await self._close_writer(writer)
            return

        if hello.get("token") != self._token:
            logger.warning("peer presented wrong token", local_id=self._local_id)
            await self._reject(writer)
            return
        if self._writer is not None or self._state != LinkState.CONNECTING:
            await self._reject(writer)
            return

        self._reader, self._writer = reader, writer
        if self._server is not None:
            self._server.close()  # exactly one inbound channel per link
        try:
            writer.write(pack_frame(encode({"accepted": True, "peer": self._local_id})))
            await writer.drain()
        except (ConnectionError, OSError) as e:
            logger.warning("peer vanished during handshake", local_id=self._local_id, error=repr(e))
            await self._teardown(CloseReason.CONNECTION_LOST)
            return

        await self._mark_open(str(hello.get("peer") or "guest"))
        self._start_reader()

    def _start_reader(self) -> None:
        if self._state == LinkState.OPEN:
            self._reader_task = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        if self._reader is None:
            return
        reason = CloseReason.REMOTE
        try:
            while self._state == LinkState.OPEN:
                await self._dispatch(await read_frame(self._reader))
        except asyncio.IncompleteReadError:
            reason = CloseReason.REMOTE
        except DecodeError as e:
            # framing is lost once a length header is rejected
            logger.warning("peer sent oversized frame", peer_id=self._remote_id, error=str(e))
            reason = CloseReason.PROTOCOL_ERROR
        except (ConnectionError, OSError):
            reason = CloseReason.CONNECTION_LOST
        await self._teardown(reason)

    async def _send_bytes(self, data: bytes) -> None:
        if self._writer is None or self._writer.is_closing():
            raise LinkClosedError("tcp stream is closed")
        self._writer.write(pack_frame(data))
        await self._writer.drain()

    async def _release(self) -> None:
        if self._server is not None:
            self._server.close()
            self._server = None
        task, self._reader_task = self._reader_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._writer is not None:
            await self._close_writer(self._writer)

    async def _reject(self, writer: asyncio.StreamWriter) -> None:
        with contextlib.suppress(ConnectionError, OSError):
            writer.write(pack_frame(encode({"accepted": False})))
            await writer.drain()
        await self._close_writer(writer)

    @staticmethod
    async def _close_writer(writer: asyncio.StreamWriter) -> None:
        writer.close()
        with contextlib.suppress(ConnectionError, OSError):
            await writer.wait_closed()
