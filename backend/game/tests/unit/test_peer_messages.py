"""Tests for peer message models and their wire codec."""

import asyncio

import pytest
from pydantic import ValidationError

from game.logic.enums import ShipType
from game.logic.gomoku import GomokuEngine
from game.logic.types import Position, ShipPlacement
from game.messaging.codec import (
    MAX_FRAME_LEN,
    DecodeError,
    decode,
    decode_message,
    encode,
    encode_message,
    pack_frame,
    read_frame,
)
from game.messaging.types import (
    ChatMessage,
    ChatPayload,
    FullStateSyncMessage,
    FullStateSyncPayload,
    MoveMessage,
    PeerMessageType,
    ReadyMessage,
    ReadyPayload,
    SyncRequestMessage,
    move_message,
    parse_peer_message,
)
from game.tests.helpers.boards import play


class TestParsePeerMessage:
    def test_move_uses_wire_aliases(self):
        msg = parse_peer_message({"type": "move", "payload": {"x": 9, "y": 9, "player": "black", "moveNumber": 1}})
        assert isinstance(msg, MoveMessage)
        assert msg.payload.move_number == 1
        assert msg.payload.position == Position(x=9, y=9)

    def test_checkers_move_carries_destination(self):
        msg = parse_peer_message(
            {"type": "move", "payload": {"x": 0, "y": 5, "toX": 1, "toY": 4, "player": "red", "moveNumber": 3}},
        )
        assert msg.payload.position == Position(x=0, y=5, to_x=1, to_y=4)

    def test_empty_payload_types(self):
        for message_type in ("sync-request", "leave", "restart", "surrender", "ping", "pong"):
            msg = parse_peer_message({"type": message_type, "payload": {}})
            assert msg.type == message_type

    def test_payload_defaults_when_missing(self):
        assert isinstance(parse_peer_message({"type": "sync-request"}), SyncRequestMessage)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_peer_message({"type": "pass", "payload": {}})

    def test_zero_move_number_rejected(self):
        with pytest.raises(ValidationError):
            parse_peer_message({"type": "move", "payload": {"x": 0, "y": 0, "player": "black", "moveNumber": 0}})

    def test_chat_rejects_control_characters(self):
        with pytest.raises(ValidationError, match="control characters"):
            ChatPayload(sender="alice", content="hi\x00there")

    def test_chat_allows_newlines(self):
        assert ChatPayload(sender="alice", content="line one\nline two").content == "line one\nline two"

    def test_ready_with_fleet(self):
        msg = parse_peer_message(
            {
                "type": "ready",
                "payload": {
                    "playerName": "bob",
                    "ships": [{"ship": "destroyer", "x": 0, "y": 0, "horizontal": False}],
                },
            },
        )
        assert isinstance(msg, ReadyMessage)
        assert msg.payload.fleet == (ShipPlacement(ship=ShipType.DESTROYER, x=0, y=0, horizontal=False),)


class TestCodec:
    def test_move_round_trip_uses_aliases(self):
        body = encode_message(move_message(Position(x=3, y=4), "black", 2))
        assert decode(body) == {"type": "move", "payload": {"x": 3, "y": 4, "player": "black", "moveNumber": 2}}
        assert decode_message(body).payload.move_number == 2

    def test_full_state_sync_preserves_state(self):
        engine = GomokuEngine()
        state = play(engine, engine.initial_state(), (9, 9), (10, 10))
        body = encode_message(FullStateSyncMessage(payload=FullStateSyncPayload(state=state)))
        decoded = decode_message(body)
        assert decoded.type == PeerMessageType.FULL_STATE_SYNC
        assert decoded.payload.state == state

    def test_ready_encodes_ships_alias(self):
        body = encode_message(ReadyMessage(payload=ReadyPayload(player_name="alice")))
        assert decode(body) == {"type": "ready", "payload": {"playerName": "alice"}}

    def test_invalid_json_raises_decode_error(self):
        with pytest.raises(DecodeError, match="failed to decode"):
            decode(b"{not json")

    def test_non_object_raises_decode_error(self):
        with pytest.raises(DecodeError, match="expected dict"):
            decode(b"[1, 2]")

    def test_oversized_payload_raises_decode_error(self):
        with pytest.raises(DecodeError, match="too large"):
            decode(b" " * (MAX_FRAME_LEN + 1))

    def test_invalid_envelope_raises_decode_error(self):
        with pytest.raises(DecodeError, match="invalid move envelope"):
            decode_message(encode({"type": "move", "payload": {"x": "a"}}))

    def test_chat_message_round_trip(self):
        message = ChatMessage(payload=ChatPayload(sender="alice", content="gg"))
        assert decode_message(encode_message(message)) == message


class TestFraming:
    async def test_read_frames_in_order(self):
        reader = asyncio.StreamReader()
        reader.feed_data(pack_frame(b'{"a":1}') + pack_frame(b'{"b":2}'))
        reader.feed_eof()

        assert await read_frame(reader) == b'{"a":1}'
        assert await read_frame(reader) == b'{"b":2}'
        with pytest.raises(asyncio.IncompleteReadError):
            await read_frame(reader)

    async def test_oversized_header_rejected(self):
        reader = asyncio.StreamReader()
        reader.feed_data((MAX_FRAME_LEN + 1).to_bytes(4, "big"))
        reader.feed_eof()
        with pytest.raises(DecodeError, match="too large"):
            await read_frame(reader)

    def test_pack_frame_prefixes_length(self):
        assert pack_frame(b"abc") == b"\x00\x00\x00\x03abc"
