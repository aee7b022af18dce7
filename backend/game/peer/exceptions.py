"""Peer transport errors.

Connection setup failures raise; failures on an open link are reported
through the link's close handler instead.
"""


class PeerError(Exception):
    """Base exception for peer transport failures."""


class PeerUnreachableError(PeerError):
    """The remote peer id is malformed, stale, offline, or the handshake timed out.

    Attributes:
        peer_id: The remote id that could not be reached.

    """

    def __init__(self, peer_id: str, reason: str) -> None:
        self.peer_id = peer_id
        self.reason = reason
        super().__init__(f"peer {peer_id!r} unreachable: {reason}")


class LinkClosedError(PeerError):
    """The link is not open for sending."""
