"""In-process peer links, for tests and for two sessions sharing one event loop."""

import asyncio
import contextlib

import structlog

from game.peer.exceptions import LinkClosedError, PeerUnreachableError
from game.peer.link import CloseReason, LinkRole, LinkState, PeerLink, generate_peer_token

logger = structlog.get_logger()

_CLOSE = None  # inbox sentinel: the other side went away


class LoopbackNetwork:
    """Registry of listening loopback hosts, keyed by peer id."""

    def __init__(self) -> None:
        self._listening: dict[str, LoopbackPeerLink] = {}

    def link(self, role: LinkRole) -> "LoopbackPeerLink":
        return LoopbackPeerLink(role, self)

    def register(self, link: "LoopbackPeerLink") -> None:
        self._listening[link.local_id] = link

    def unregister(self, link: "LoopbackPeerLink") -> None:
        if self._listening.get(link.local_id) is link:
            del self._listening[link.local_id]

    def claim(self, peer_id: str) -> "LoopbackPeerLink":
        """Take the listening host with peer_id off the registry.

        Raises PeerUnreachableError when no host is listening under that id.
        """
        host = self._listening.pop(peer_id, None)
        if host is None:
            raise PeerUnreachableError(peer_id, "no loopback host listening")
        return host


class LoopbackPeerLink(PeerLink):
    def __init__(self, role: LinkRole, network: LoopbackNetwork) -> None:
        super().__init__(role)
        self._network = network
        self._peer: LoopbackPeerLink | None = None
        self._inbox: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._reader_task: asyncio.Task[None] | None = None

    async def create_link(self) -> str:
        self._claim_start()
        self._local_id = f"loop-{generate_peer_token()}"
        self._network.register(self)
        return self._local_id

    async def connect_to(self, remote_id: str) -> None:
        self._claim_start()
        self._local_id = f"loop-guest-{generate_peer_token()}"
        try:
            host = self._network.claim(remote_id)
        except PeerUnreachableError:
            self._state = LinkState.CLOSED
            raise
        if host.state != LinkState.CONNECTING:
            self._state = LinkState.CLOSED
            raise PeerUnreachableError(remote_id, "host link is closed")

        # both ends are open before either side hears about it
        self._peer, host._peer = host, self
        host._set_open(self._local_id)
        self._set_open(remote_id)
        host._start_reader()
        self._start_reader()
        await host._notify_open()
        await self._notify_open()

    def _start_reader(self) -> None:
        self._reader_task = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        while True:
            data = await self._inbox.get()
            if data is _CLOSE:
                break
            await self._dispatch(data)
        await self._teardown(CloseReason.REMOTE)

    async def _send_bytes(self, data: bytes) -> None:
        peer = self._peer
        if peer is None or peer.state == LinkState.CLOSED:
            raise LinkClosedError("loopback peer is gone")
        peer._inbox.put_nowait(data)

    async def _release(self) -> None:
        self._network.unregister(self)
        peer, self._peer = self._peer, None
        if peer is not None:
            peer._inbox.put_nowait(_CLOSE)
        task, self._reader_task = self._reader_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
