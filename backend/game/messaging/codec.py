"""
JSON encoder/decoder and length-prefixed framing for the peer wire.

Every frame is a 4-byte big-endian length followed by that many bytes of
UTF-8 JSON. Peer envelopes are ``{type, payload}`` objects; the only
non-envelope frame is the connection hello, handled as a plain dict.
"""

import asyncio
import json
from typing import Any

from pydantic import ValidationError

from game.messaging.types import PeerMessage, parse_peer_message

HEADER_LEN = 4

# Size limit to prevent resource exhaustion from malicious payloads.
MAX_FRAME_LEN = 256 * 1024  # 256KB per frame


class DecodeError(Exception):
    """Error raised when a frame or envelope cannot be decoded."""


def encode(data: dict[str, Any]) -> bytes:
    """
    Encode a dict to compact JSON bytes.
    """
    return json.dumps(data, separators=(",", ":")).encode()


def decode(data: bytes) -> dict[str, Any]:
    """
    Decode JSON bytes to a dict.

    Raises DecodeError if data is invalid, not a dict, or exceeds the frame limit.
    """
    if len(data) > MAX_FRAME_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_FRAME_LEN})")
    try:
        result = json.loads(data)
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"failed to decode JSON data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected dict, got {type(result).__name__}")

    return result


def encode_message(message: PeerMessage) -> bytes:
    return message.model_dump_json(by_alias=True, exclude_none=True).encode()


def decode_message(data: bytes) -> PeerMessage:
    """
    Decode and validate one peer envelope.

    Raises DecodeError for malformed JSON or an envelope that fails validation.
    """
    raw = decode(data)
    try:
        return parse_peer_message(raw)
    except ValidationError as e:
        raise DecodeError(f"invalid {raw.get('type', 'untyped')!s} envelope: {e.error_count()} error(s)") from e


def pack_frame(body: bytes) -> bytes:
    if len(body) > MAX_FRAME_LEN:
        raise DecodeError(f"frame too large: {len(body)} bytes (max {MAX_FRAME_LEN})")
    return len(body).to_bytes(HEADER_LEN, "big") + body


async def read_frame(reader: asyncio.StreamReader) -> bytes:
    """
    Read one length-prefixed frame body.

    Raises asyncio.IncompleteReadError at end of stream and DecodeError
    when the declared length exceeds MAX_FRAME_LEN.
    """
    header = await reader.readexactly(HEADER_LEN)
    length = int.from_bytes(header, "big")
    if length > MAX_FRAME_LEN:
        raise DecodeError(f"frame too large: {length} bytes (max {MAX_FRAME_LEN})")
    return await reader.readexactly(length)
