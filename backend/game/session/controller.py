"""
Two-player session orchestration.

A SessionController owns one peer link, one rule engine and (optionally) one
room in the directory. The host opens a link, publishes its peer id as a
room, and waits; the guest claims the room with the directory's atomic join
and dials the host. Once the link opens both sides exchange ``ready`` and
the game starts from the engine's initial state, the host always holding
the first-moving colour.

Every move is validated locally before it is sent and validated again by the
receiver, which also checks the sender's colour and the move number. A move
that fails any check is dropped, reported as a notice, and answered with a
``sync-request``. The guest always adopts the host's state from a
``full-state-sync``; the host adopts the guest's state only when it is a
valid extension of its own history, and otherwise replies with its own.
Losing the link ends the session.
"""

from collections.abc import Callable

import structlog

from game.logic.battleship import random_fleet, validate_fleet
from game.logic.engine import GameSetup, RuleEngine, replay
from game.logic.enums import GameType, MoveRejection
from game.logic.exceptions import GameRuleError, InvalidMoveError, InvalidSetupError
from game.logic.rules import get_rule_engine
from game.logic.types import GameState, Position, ShipPlacement
from game.messaging.codec import DecodeError
from game.messaging.types import (
    ChatMessage,
    ChatPayload,
    FullStateSyncMessage,
    FullStateSyncPayload,
    LeaveMessage,
    MoveMessage,
    MovePayload,
    PeerMessage,
    PingMessage,
    PongMessage,
    ReadyMessage,
    ReadyPayload,
    RestartMessage,
    SurrenderMessage,
    SyncRequestMessage,
    move_message,
)
from game.peer.exceptions import PeerUnreachableError
from game.peer.link import LinkRole, PeerLink
from game.session.exceptions import SessionStateError
from game.session.heartbeat import PeerHeartbeat, RoomKeepAlive
from game.session.models import NoticeKind, SessionNotice, SessionState
from game.session.settings import PeerSettings
from shared.dal.models import Room, RoomStatus
from shared.dal.room_directory import RoomDirectory

logger = structlog.get_logger()

LinkFactory = Callable[[LinkRole], PeerLink]
NoticeCallback = Callable[[SessionNotice], None]

Fleet = tuple[ShipPlacement, ...]

_STARTABLE = frozenset({SessionState.IDLE, SessionState.ENDED})


class SessionController:
    def __init__(
        self,
        link_factory: LinkFactory,
        *,
        directory: RoomDirectory | None = None,
        player_name: str,
        player_id: str | None = None,
        settings: PeerSettings | None = None,
        on_notice: NoticeCallback | None = None,
    ) -> None:
        self._link_factory = link_factory
        self._directory = directory
        self._player_name = player_name
        self._player_id = player_id
        self._settings = settings or PeerSettings()
        self._on_notice = on_notice
        self._state = SessionState.IDLE
        self._clear()

    def _clear(self) -> None:
        self._role: LinkRole | None = None
        self._room: Room | None = None
        self._engine: RuleEngine | None = None
        self._game_state: GameState | None = None
        self._fleet: Fleet | None = None
        self._setup: GameSetup | None = None
        self._link: PeerLink | None = None
        self._heartbeat: PeerHeartbeat | None = None
        self._keepalive: RoomKeepAlive | None = None
        self._local_ready = False
        self._remote_ready: ReadyPayload | None = None
        self._wins: dict[str, int] = {}

    # --- Read-only views ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def role(self) -> LinkRole | None:
        return self._role

    @property
    def room(self) -> Room | None:
        return self._room

    @property
    def game_state(self) -> GameState | None:
        return self._game_state

    @property
    def link(self) -> PeerLink | None:
        return self._link

    @property
    def my_color(self) -> str | None:
        if self._engine is None or self._role is None:
            return None
        first, second = self._engine.players
        return first if self._role == LinkRole.HOST else second

    @property
    def opponent_color(self) -> str | None:
        color = self.my_color
        if color is None or self._engine is None:
            return None
        return self._engine.opponent(color)

    @property
    def opponent_name(self) -> str | None:
        return self._remote_ready.player_name if self._remote_ready is not None else None

    @property
    def wins(self) -> dict[str, int]:
        """Games won per colour since the session started."""
        return dict(self._wins)

    # --- Matchmaking ---

    async def host(
        self,
        game_type: GameType | str,
        *,
        is_private: bool = False,
        room_title: str | None = None,
        fleet: Fleet | None = None,
    ) -> str:
        """Open a link, publish it as a room and return the local peer id.

        Without a directory no room is created and the returned id is shared
        out of band for ``join_peer``.
        """
        self._begin(LinkRole.HOST, game_type, fleet)
        local_id = await self._open_link(LinkRole.HOST).create_link()
        self._state = SessionState.HOSTING
        if self._directory is None or self._engine is None:
            return local_id

        try:
            self._room = await self._directory.create_room(
                self._player_name,
                local_id,
                self._engine.game_type,
                is_private=is_private,
                room_title=room_title,
            )
        except Exception as e:
            logger.exception("room creation failed", peer_id=local_id)
            self._notify(NoticeKind.ROOM_UNAVAILABLE, detail=str(e))
            await self._shutdown(SessionState.IDLE)
            raise

        self._keepalive = RoomKeepAlive(
            self._directory,
            self._room.id,
            interval=self._settings.room_keepalive_interval,
        )
        self._keepalive.start()
        logger.info("hosting room", room_id=self._room.id, game_type=self._room.game_type, peer_id=local_id)
        self._notify(NoticeKind.ROOM_CREATED, detail=self._room.id)
        return local_id

    async def join(self, room_id: str, *, fleet: Fleet | None = None) -> bool:
        """Claim a waiting room and connect to its host.

        Returns False, with the session back in ``idle``, when the room is gone,
        another guest won the race, or the host cannot be reached.
        """
        self._require_startable()
        if self._directory is None:
            raise SessionStateError("joining a room requires a room directory")

        room = await self._directory.get_room(room_id)
        if room is None or room.status != RoomStatus.WAITING:
            self._notify(NoticeKind.JOIN_FAILED, detail="room is not open")
            return False

        self._begin(LinkRole.GUEST, room.game_type, fleet)
        self._state = SessionState.JOINING
        self._room = room
        if not await self._directory.try_join_room(room_id):
            logger.info("room join lost", room_id=room_id)
            self._notify(NoticeKind.JOIN_FAILED, detail="room was taken by another player")
            await self._shutdown(SessionState.IDLE, close_room=False)
            return False
        return await self._connect(room.host_id)

    async def join_peer(self, peer_id: str, game_type: GameType | str, *, fleet: Fleet | None = None) -> bool:
        """Connect straight to a host peer id, without a room."""
        self._begin(LinkRole.GUEST, game_type, fleet)
        self._state = SessionState.JOINING
        return await self._connect(peer_id)

    async def leave(self) -> None:
        """Tell the peer, drop the link and close the room. Safe to call in any state."""
        if self._state in _STARTABLE:
            return
        if self._link is not None and self._link.is_open:
            await self._link.send(LeaveMessage())
        await self._shutdown(SessionState.ENDED)

    # --- Game actions ---

    async def play(self, position: Position) -> GameState:
        """Apply a local move and send it.

        Raises InvalidMoveError (out of turn, illegal, game over) before
        anything is sent, and SessionStateError outside a game.
        """
        engine, state = self._require_game()
        color = self.my_color or ""
        successor = engine.apply_move(state, position, color)
        self._game_state = successor
        move = successor.move_history[-1]
        await self._send(move_message(move.position, move.player, move.sequence))
        self._notify(NoticeKind.MOVE_APPLIED, player=move.player)
        if successor.is_over:
            await self._game_finished()
        return successor

    async def send_chat(self, content: str) -> bool:
        if self._link is None or not self._link.is_open:
            return False
        return await self._send(ChatMessage(payload=ChatPayload(sender=self._player_name, content=content)))

    async def surrender(self) -> None:
        engine, state = self._require_game()
        if state.is_over:
            return
        await self._send(SurrenderMessage())
        await self._conclude(engine, state, winner=self.opponent_color)

    async def restart(self) -> None:
        self._require_game()
        await self._send(RestartMessage())
        self._reset_game()
        self._notify(NoticeKind.RESTARTED, player=self.my_color)

    # --- Link events ---

    async def _handle_open(self) -> None:
        link = self._link
        if link is None:
            return
        self._state = SessionState.HOST_CONNECTED if self._role == LinkRole.HOST else SessionState.CONNECTED
        logger.info("peer connected", role=self._role, peer_id=link.remote_id)
        self._notify(NoticeKind.PEER_CONNECTED, detail=link.remote_id or "")

        self._heartbeat = PeerHeartbeat(
            link,
            interval=self._settings.heartbeat_interval,
            timeout=self._settings.heartbeat_timeout,
        )
        self._heartbeat.start()

        ready = ReadyPayload(player_name=self._player_name, player_id=self._player_id, fleet=self._fleet)
        await self._send(ReadyMessage(payload=ready))
        self._local_ready = True
        if self._role == LinkRole.GUEST:
            await self._send(SyncRequestMessage())
        self._maybe_start()

    async def _handle_message(self, message: PeerMessage) -> None:
        if self._heartbeat is not None:
            self._heartbeat.record_activity()

        match message:
            case MoveMessage():
                await self._on_move(message.payload)
            case FullStateSyncMessage():
                await self._on_state_sync(message.payload.state)
            case SyncRequestMessage():
                await self._send_state()
            case ChatMessage():
                self._notify(NoticeKind.CHAT, sender=message.payload.sender, content=message.payload.content)
            case PingMessage():
                await self._send(PongMessage(payload=message.payload))
            case PongMessage():
                pass
            case ReadyMessage():
                self._remote_ready = message.payload
                self._maybe_start()
            case RestartMessage():
                if self._game_state is not None:
                    self._reset_game()
                    self._notify(NoticeKind.RESTARTED, player=self.opponent_color)
            case SurrenderMessage():
                if self._engine is not None and self._game_state is not None and not self._game_state.is_over:
                    await self._conclude(self._engine, self._game_state, winner=self.my_color)
            case LeaveMessage():
                logger.info("opponent left", room_id=self._room_id)
                await self._opponent_gone("opponent left the game")

    async def _handle_close(self, reason: str) -> None:
        if self._state in _STARTABLE:
            return
        logger.info("peer link lost", reason=reason, room_id=self._room_id)
        await self._opponent_gone(reason)

    async def _handle_invalid(self, error: DecodeError) -> None:
        self._notify(NoticeKind.PROTOCOL_ERROR, detail=str(error))
        if self._state == SessionState.PLAYING:
            await self._send(SyncRequestMessage())

    # --- Inbound game traffic ---

    async def _on_move(self, payload: MovePayload) -> None:
        if self._state != SessionState.PLAYING or self._engine is None or self._game_state is None:
            logger.warning("dropping move outside a game", player=payload.player, move_number=payload.move_number)
            return
        state = self._game_state
        if payload.player != self.opponent_color or payload.player != state.current_turn:
            await self._reject_inbound(payload, MoveRejection.NOT_YOUR_TURN)
            return
        if payload.move_number != state.next_sequence:
            detail = f"move {payload.move_number}, expected {state.next_sequence}"
            await self._reject_inbound(payload, MoveRejection.ILLEGAL_MOVE, detail=detail)
            return
        try:
            successor = self._engine.apply_move(state, payload.position, payload.player)
        except InvalidMoveError as e:
            reason = e.reason
            await self._reject_inbound(payload, reason, detail=str(e))
            return

        self._game_state = successor
        self._notify(NoticeKind.MOVE_APPLIED, player=payload.player)
        if successor.is_over:
            await self._game_finished()

    async def _reject_inbound(self, payload: MovePayload, reason: MoveRejection, *, detail: str = "") -> None:
        logger.warning(
            "rejected peer move",
            player=payload.player,
            move_number=payload.move_number,
            reason=reason,
            detail=detail,
        )
        self._notify(NoticeKind.MOVE_REJECTED, player=payload.player, reason=reason, detail=detail)
        await self._send(SyncRequestMessage())

    async def _on_state_sync(self, candidate: GameState) -> None:
        current = self._game_state
        engine = self._engine
        if self._state != SessionState.PLAYING or current is None or engine is None:
            return
        if candidate == current:
            return
        if candidate.game_type != engine.game_type:
            self._notify(NoticeKind.PROTOCOL_ERROR, detail=f"state sync for {candidate.game_type}")
            return
        try:
            rebuilt = replay(engine, candidate.move_history, self._setup)
        except GameRuleError as e:
            logger.warning("rejected state sync", error=str(e))
            self._notify(NoticeKind.PROTOCOL_ERROR, detail=f"rejected state sync: {e}")
            if self._role == LinkRole.HOST:
                await self._send_state()
            return
        if rebuilt.board != candidate.board or rebuilt.current_turn != candidate.current_turn:
            self._notify(NoticeKind.PROTOCOL_ERROR, detail="state sync does not match its move history")
            if self._role == LinkRole.HOST:
                await self._send_state()
            return

        if self._role == LinkRole.HOST and not _extends(candidate, current):
            await self._send_state()
            return

        self._game_state = candidate
        logger.info("adopted peer state", moves=len(candidate.move_history))
        self._notify(NoticeKind.STATE_SYNCED, detail=f"{len(candidate.move_history)} moves")
        if candidate.is_over and not current.is_over:
            await self._game_finished()

    async def _send_state(self) -> None:
        if self._game_state is not None:
            await self._send(FullStateSyncMessage(payload=FullStateSyncPayload(state=self._game_state)))

    # --- Internals ---

    def _require_startable(self) -> None:
        if self._state not in _STARTABLE:
            raise SessionStateError(f"cannot start a session while {self._state}")

    def _require_game(self) -> tuple[RuleEngine, GameState]:
        if self._state != SessionState.PLAYING or self._engine is None or self._game_state is None:
            raise SessionStateError(f"no game in progress ({self._state})")
        return self._engine, self._game_state

    def _begin(self, role: LinkRole, game_type: GameType | str, fleet: Fleet | None) -> None:
        self._require_startable()
        engine = get_rule_engine(game_type)
        if engine.game_type == GameType.BATTLESHIP:
            fleet = fleet or random_fleet()
            validate_fleet(fleet)
        else:
            fleet = None
        self._clear()
        self._engine = engine
        self._role = role
        self._fleet = fleet

    def _open_link(self, role: LinkRole) -> PeerLink:
        link = self._link_factory(role)
        link.set_handlers(
            on_open=self._handle_open,
            on_message=self._handle_message,
            on_close=self._handle_close,
            on_invalid=self._handle_invalid,
        )
        self._link = link
        return link

    async def _connect(self, remote_id: str) -> bool:
        link = self._open_link(LinkRole.GUEST)
        try:
            await link.connect_to(remote_id)
        except PeerUnreachableError as e:
            logger.warning("could not reach host", peer_id=remote_id, reason=e.reason, room_id=self._room_id)
            self._notify(NoticeKind.CONNECTION_FAILED, detail=e.reason)
            await self._shutdown(SessionState.IDLE)
            return False
        return True

    def _maybe_start(self) -> None:
        if not self._local_ready or self._remote_ready is None or self._state == SessionState.PLAYING:
            return
        if self._engine is None:
            return
        setup: GameSetup | None = None
        if self._engine.game_type == GameType.BATTLESHIP:
            remote_fleet = self._remote_ready.fleet
            if remote_fleet is None or self._fleet is None:
                self._notify(NoticeKind.PROTOCOL_ERROR, detail="opponent sent no fleet")
                return
            setup = {self.my_color or "": self._fleet, self.opponent_color or "": remote_fleet}
        try:
            state = self._engine.initial_state(setup)
        except InvalidSetupError as e:
            self._notify(NoticeKind.PROTOCOL_ERROR, detail=str(e))
            return

        self._setup = setup
        self._game_state = state
        self._state = SessionState.PLAYING
        logger.info("game started", game_type=self._engine.game_type, color=self.my_color, room_id=self._room_id)
        self._notify(NoticeKind.GAME_STARTED, player=self.my_color, detail=self.opponent_name or "")

    def _reset_game(self) -> None:
        if self._engine is not None:
            self._game_state = self._engine.initial_state(self._setup)

    async def _conclude(self, engine: RuleEngine, state: GameState, *, winner: str | None) -> None:
        if winner is None:
            return
        self._game_state = state.model_copy(update={"winner": winner})
        await self._game_finished()

    async def _game_finished(self) -> None:
        state = self._game_state
        if state is None:
            return
        if state.winner is not None:
            self._wins[state.winner] = self._wins.get(state.winner, 0) + 1
        logger.info("game over", winner=state.winner, draw=state.is_draw, room_id=self._room_id)
        self._notify(NoticeKind.GAME_OVER, player=state.winner, detail="draw" if state.is_draw else "")
        if self._role == LinkRole.HOST and self._room is not None and self._directory is not None:
            try:
                await self._directory.increment_games_played(self._room.id)
            except Exception:
                logger.exception("could not record finished game", room_id=self._room.id)

    async def _opponent_gone(self, detail: str) -> None:
        if self._state in _STARTABLE:
            return
        self._notify(NoticeKind.OPPONENT_DISCONNECTED, detail=detail)
        await self._shutdown(SessionState.ENDED)

    async def _shutdown(self, final_state: SessionState, *, close_room: bool = True) -> None:
        """Stop loops, drop the link and game state, and best-effort close the room."""
        self._state = final_state  # set first so the link's close event is ignored
        if self._heartbeat is not None:
            await self._heartbeat.stop()
        if self._keepalive is not None:
            await self._keepalive.stop()
        link, self._link = self._link, None
        if link is not None:
            await link.close()
        if close_room and self._room is not None and self._directory is not None:
            try:
                await self._directory.close_room(self._room.id)
            except Exception:
                logger.exception("could not close room", room_id=self._room.id)
        self._game_state = None
        self._heartbeat = None
        self._keepalive = None
        if final_state == SessionState.IDLE:
            self._clear()

    async def _send(self, message: PeerMessage) -> bool:
        if self._link is None:
            return False
        return await self._link.send(message)

    def _notify(self, kind: NoticeKind, **fields: object) -> None:
        if self._on_notice is None:
            return
        try:
            self._on_notice(SessionNotice(kind=kind, **fields))
        except Exception:
            logger.exception("session notice callback failed", kind=kind)

    @property
    def _room_id(self) -> str | None:
        return self._room.id if self._room is not None else None


def _extends(candidate: GameState, current: GameState) -> bool:
    """True when candidate's history is current's history plus at least one more move."""
    mine = current.move_history
    theirs = candidate.move_history
    return len(theirs) > len(mine) and theirs[: len(mine)] == mine
