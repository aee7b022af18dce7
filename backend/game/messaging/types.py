from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from game.logic.types import GameState, Position, ShipPlacement

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

MAX_CHAT_LENGTH = 500
MAX_NAME_LENGTH = 50


class PeerMessageType(StrEnum):
    MOVE = "move"
    FULL_STATE_SYNC = "full-state-sync"
    SYNC_REQUEST = "sync-request"
    CHAT = "chat"
    PING = "ping"
    PONG = "pong"
    LEAVE = "leave"
    READY = "ready"
    RESTART = "restart"
    SURRENDER = "surrender"


def _reject_control_chars(value: str) -> str:
    if any((ord(c) < _SPACE_ORD and c not in ("\t", "\n", "\r")) or ord(c) == _DEL_ORD for c in value):
        raise ValueError("text must not contain control characters")
    return value


class EmptyPayload(BaseModel, frozen=True):
    pass


class MovePayload(BaseModel, frozen=True, populate_by_name=True):
    """One move as it travels between peers.

    ``move_number`` is the sender's 1-based sequence; checkers adds ``to_x``
    and ``to_y``. Dots-and-Boxes lines and Battleship shots are plain
    lattice or ocean coordinates.
    """

    x: int
    y: int
    player: str
    move_number: int = Field(alias="moveNumber", ge=1)
    to_x: int | None = Field(default=None, alias="toX")
    to_y: int | None = Field(default=None, alias="toY")

    @property
    def position(self) -> Position:
        return Position(x=self.x, y=self.y, to_x=self.to_x, to_y=self.to_y)


class FullStateSyncPayload(BaseModel, frozen=True):
    state: GameState


class ChatPayload(BaseModel, frozen=True):
    sender: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    content: str = Field(min_length=1, max_length=MAX_CHAT_LENGTH)

    @field_validator("sender", "content")
    @classmethod
    def _validate_text(cls, v: str) -> str:
        return _reject_control_chars(v)


class HeartbeatPayload(BaseModel, frozen=True):
    timestamp: int = 0  # sender's wall clock in milliseconds, echoed back in pong


class ReadyPayload(BaseModel, frozen=True, populate_by_name=True):
    player_name: str = Field(alias="playerName", min_length=1, max_length=MAX_NAME_LENGTH)
    player_id: str | None = Field(default=None, alias="playerId")
    fleet: tuple[ShipPlacement, ...] | None = Field(default=None, alias="ships")

    @field_validator("player_name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        return _reject_control_chars(v)


class MoveMessage(BaseModel, frozen=True):
    type: Literal[PeerMessageType.MOVE] = PeerMessageType.MOVE
    payload: MovePayload


class FullStateSyncMessage(BaseModel, frozen=True):
    type: Literal[PeerMessageType.FULL_STATE_SYNC] = PeerMessageType.FULL_STATE_SYNC
    payload: FullStateSyncPayload


class SyncRequestMessage(BaseModel, frozen=True):
    type: Literal[PeerMessageType.SYNC_REQUEST] = PeerMessageType.SYNC_REQUEST
    payload: EmptyPayload = EmptyPayload()


class ChatMessage(BaseModel, frozen=True):
    type: Literal[PeerMessageType.CHAT] = PeerMessageType.CHAT
    payload: ChatPayload


class PingMessage(BaseModel, frozen=True):
    type: Literal[PeerMessageType.PING] = PeerMessageType.PING
    payload: HeartbeatPayload = HeartbeatPayload()


class PongMessage(BaseModel, frozen=True):
    type: Literal[PeerMessageType.PONG] = PeerMessageType.PONG
    payload: HeartbeatPayload = HeartbeatPayload()


class LeaveMessage(BaseModel, frozen=True):
    type: Literal[PeerMessageType.LEAVE] = PeerMessageType.LEAVE
    payload: EmptyPayload = EmptyPayload()


class ReadyMessage(BaseModel, frozen=True):
    type: Literal[PeerMessageType.READY] = PeerMessageType.READY
    payload: ReadyPayload


class RestartMessage(BaseModel, frozen=True):
    type: Literal[PeerMessageType.RESTART] = PeerMessageType.RESTART
    payload: EmptyPayload = EmptyPayload()


class SurrenderMessage(BaseModel, frozen=True):
    type: Literal[PeerMessageType.SURRENDER] = PeerMessageType.SURRENDER
    payload: EmptyPayload = EmptyPayload()


PeerMessage = Annotated[
    MoveMessage
    | FullStateSyncMessage
    | SyncRequestMessage
    | ChatMessage
    | PingMessage
    | PongMessage
    | LeaveMessage
    | ReadyMessage
    | RestartMessage
    | SurrenderMessage,
    Field(discriminator="type"),
]

_peer_message_adapter = TypeAdapter(PeerMessage)


def parse_peer_message(data: dict[str, Any]) -> PeerMessage:
    """Parse a raw ``{type, payload}`` dict into a typed PeerMessage.

    Raises pydantic.ValidationError for unknown types or bad payloads.
    """
    return _peer_message_adapter.validate_python(data)


def move_message(position: Position, player: str, move_number: int) -> MoveMessage:
    return MoveMessage(
        payload=MovePayload(
            x=position.x,
            y=position.y,
            player=player,
            move_number=move_number,
            to_x=position.to_x,
            to_y=position.to_y,
        ),
    )
