from enum import StrEnum

from pydantic import BaseModel

from game.logic.enums import MoveRejection


class SessionState(StrEnum):
    """Session lifecycle.

    Host:  idle -> hosting -> host_connected -> playing -> ended
    Guest: idle -> joining -> connected -> playing -> ended
    """

    IDLE = "idle"
    HOSTING = "hosting"
    HOST_CONNECTED = "host_connected"
    JOINING = "joining"
    CONNECTED = "connected"
    PLAYING = "playing"
    ENDED = "ended"


class NoticeKind(StrEnum):
    ROOM_CREATED = "room_created"
    JOIN_FAILED = "join_failed"
    CONNECTION_FAILED = "connection_failed"
    ROOM_UNAVAILABLE = "room_unavailable"
    PEER_CONNECTED = "peer_connected"
    GAME_STARTED = "game_started"
    MOVE_APPLIED = "move_applied"
    MOVE_REJECTED = "move_rejected"
    STATE_SYNCED = "state_synced"
    PROTOCOL_ERROR = "protocol_error"
    CHAT = "chat"
    GAME_OVER = "game_over"
    RESTARTED = "restarted"
    OPPONENT_DISCONNECTED = "opponent_disconnected"


class SessionNotice(BaseModel, frozen=True):
    """Event surfaced to the UI callback."""

    kind: NoticeKind
    detail: str = ""
    player: str | None = None
    reason: MoveRejection | None = None
    sender: str | None = None
    content: str | None = None
