"""Tests for the TCP and loopback peer links."""

import asyncio

import pytest

from game.messaging.codec import decode, encode, pack_frame, read_frame
from game.messaging.types import ChatMessage, ChatPayload, PeerMessageType, PingMessage
from game.peer.exceptions import PeerError, PeerUnreachableError
from game.peer.link import CloseReason, LinkRole, LinkState
from game.peer.loopback import LoopbackNetwork
from game.peer.tcp import TcpPeerLink, format_peer_id, parse_peer_id
from game.tests.helpers.peers import LinkRecorder


def _chat(text: str) -> ChatMessage:
    return ChatMessage(payload=ChatPayload(sender="alice", content=text))


async def _tcp_pair():
    host = TcpPeerLink(LinkRole.HOST, handshake_timeout=1.0)
    guest = TcpPeerLink(LinkRole.GUEST, connect_timeout=1.0, handshake_timeout=1.0)
    host_events, guest_events = LinkRecorder(host), LinkRecorder(guest)
    peer_id = await host.create_link()
    await guest.connect_to(peer_id)
    await host_events.wait_open()
    return host, guest, host_events, guest_events


class TestPeerIds:
    def test_round_trip(self):
        peer_id = format_peer_id("abcdefgh1234", "192.168.1.5", 4100)
        assert peer_id == "abcdefgh1234@192.168.1.5:4100"
        assert parse_peer_id(peer_id) == ("abcdefgh1234", "192.168.1.5", 4100)

    def test_ipv6_host_is_bracketed(self):
        peer_id = format_peer_id("abcdefgh1234", "::1", 4100)
        assert peer_id == "abcdefgh1234@[::1]:4100"
        assert parse_peer_id(peer_id) == ("abcdefgh1234", "::1", 4100)

    @pytest.mark.parametrize("peer_id", ["", "no-at-sign", "short@host:1", "abcdefgh1234@host", "abcdefgh1234@host:0"])
    def test_malformed_ids_rejected(self, peer_id):
        with pytest.raises(PeerUnreachableError):
            parse_peer_id(peer_id)


class TestTcpPeerLink:
    async def test_handshake_opens_both_sides(self):
        host, guest, host_events, guest_events = await _tcp_pair()
        try:
            assert host.state == LinkState.OPEN
            assert guest.state == LinkState.OPEN
            assert guest.remote_id == host.local_id
            assert host.remote_id == guest.local_id
            assert guest_events.opened.is_set()
        finally:
            await guest.close()
            await host.close()

    async def test_messages_flow_both_ways_in_order(self):
        host, guest, host_events, guest_events = await _tcp_pair()
        try:
            assert await guest.send(_chat("one"))
            assert await guest.send(_chat("two"))
            assert await host.send(PingMessage())

            assert (await host_events.next_message()).payload.content == "one"
            assert (await host_events.next_message()).payload.content == "two"
            assert (await guest_events.next_message()).type == PeerMessageType.PING
        finally:
            await guest.close()
            await host.close()

    async def test_close_fires_once_on_each_side(self):
        host, guest, host_events, guest_events = await _tcp_pair()
        await guest.close()
        await host_events.wait_closed()
        await guest.close()
        await host.close()

        assert guest_events.close_reasons == [CloseReason.LOCAL]
        assert host_events.close_reasons == [CloseReason.REMOTE]

    async def test_send_after_close_returns_false(self):
        host, guest, _, _ = await _tcp_pair()
        await guest.close()
        assert await guest.send(_chat("late")) is False
        await host.close()

    async def test_wrong_token_rejected(self):
        host = TcpPeerLink(LinkRole.HOST)
        peer_id = await host.create_link()
        _, address, port = parse_peer_id(peer_id)
        guest = TcpPeerLink(LinkRole.GUEST, connect_timeout=1.0, handshake_timeout=1.0)
        try:
            with pytest.raises(PeerUnreachableError, match="refused"):
                await guest.connect_to(format_peer_id("wrongtoken00", address, port))
            assert guest.state == LinkState.CLOSED
            assert host.state == LinkState.CONNECTING
        finally:
            await host.close()

    async def test_second_guest_rejected(self):
        host, guest, _, _ = await _tcp_pair()
        late = TcpPeerLink(LinkRole.GUEST, connect_timeout=1.0, handshake_timeout=1.0)
        try:
            with pytest.raises(PeerUnreachableError):
                await late.connect_to(host.local_id)
        finally:
            await guest.close()
            await host.close()

    async def test_offline_host_unreachable(self):
        host = TcpPeerLink(LinkRole.HOST)
        peer_id = await host.create_link()
        await host.close()

        guest = TcpPeerLink(LinkRole.GUEST, connect_timeout=1.0)
        with pytest.raises(PeerUnreachableError, match="connect failed"):
            await guest.connect_to(peer_id)

    async def test_malformed_frame_reported_and_link_kept(self):
        host = TcpPeerLink(LinkRole.HOST, handshake_timeout=1.0)
        host_events = LinkRecorder(host)
        token, address, port = parse_peer_id(await host.create_link())

        reader, writer = await asyncio.open_connection(address, port)
        try:
            writer.write(pack_frame(encode({"token": token, "peer": "raw-guest"})))
            await writer.drain()
            assert decode(await read_frame(reader))["accepted"] is True

            writer.write(pack_frame(b"not json"))
            writer.write(pack_frame(encode({"type": "chat", "payload": {"sender": "raw", "content": "hi"}})))
            await writer.drain()

            assert (await host_events.next_message()).payload.content == "hi"
            assert len(host_events.invalid) == 1
            assert host.state == LinkState.OPEN
        finally:
            writer.close()
            await host_events.wait_closed()
            await host.close()

    async def test_link_cannot_start_twice(self):
        host = TcpPeerLink(LinkRole.HOST)
        await host.create_link()
        try:
            with pytest.raises(PeerError, match="already started"):
                await host.create_link()
        finally:
            await host.close()


class TestLoopbackPeerLink:
    async def test_pair_exchanges_messages(self):
        network = LoopbackNetwork()
        host, guest = network.link(LinkRole.HOST), network.link(LinkRole.GUEST)
        host_events, guest_events = LinkRecorder(host), LinkRecorder(guest)

        await guest.connect_to(await host.create_link())
        assert host_events.opened.is_set()
        assert guest_events.opened.is_set()

        assert await host.send(_chat("hello"))
        assert (await guest_events.next_message()).payload.content == "hello"
        await host.close()

    async def test_close_propagates_once(self):
        network = LoopbackNetwork()
        host, guest = network.link(LinkRole.HOST), network.link(LinkRole.GUEST)
        host_events, guest_events = LinkRecorder(host), LinkRecorder(guest)
        await guest.connect_to(await host.create_link())

        await host.close()
        await guest_events.wait_closed()
        await guest.close()

        assert host_events.close_reasons == [CloseReason.LOCAL]
        assert guest_events.close_reasons == [CloseReason.REMOTE]
        assert await guest.send(_chat("late")) is False

    async def test_unknown_host_unreachable(self):
        guest = LoopbackNetwork().link(LinkRole.GUEST)
        with pytest.raises(PeerUnreachableError):
            await guest.connect_to("loop-missing")
        assert guest.state == LinkState.CLOSED

    async def test_host_accepts_only_one_guest(self):
        network = LoopbackNetwork()
        host = network.link(LinkRole.HOST)
        peer_id = await host.create_link()
        await network.link(LinkRole.GUEST).connect_to(peer_id)

        with pytest.raises(PeerUnreachableError):
            await network.link(LinkRole.GUEST).connect_to(peer_id)
        await host.close()

    async def test_handler_errors_do_not_escape(self):
        network = LoopbackNetwork()
        host, guest = network.link(LinkRole.HOST), network.link(LinkRole.GUEST)
        guest_events = LinkRecorder(guest)

        async def explode(_message):
            raise RuntimeError("boom")

        host.set_handlers(on_message=explode)
        await guest.connect_to(await host.create_link())
        assert await guest.send(_chat("one"))
        assert await host.send(_chat("two"))
        assert (await guest_events.next_message()).payload.content == "two"
        assert host.is_open
        await guest.close()
