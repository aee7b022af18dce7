"""Common rule engine interface shared by every game type."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from game.logic.enums import GameType, MoveRejection
from game.logic.exceptions import InvalidMoveError
from game.logic.types import Board, GameState, Move, MoveCheck, Position

if TYPE_CHECKING:
    from collections.abc import Iterable

    from game.logic.types import ShipPlacement

GameSetup = dict[str, tuple["ShipPlacement", ...]]


class RuleEngine(ABC):
    """Pure, stateless rules for one game type.

    Engines never mutate their inputs and never consult clocks or
    randomness, so applying the same moves to the same initial state
    yields an identical GameState on both peers.
    """

    game_type: ClassVar[GameType]
    players: ClassVar[tuple[str, str]]  # first entry moves first

    @property
    def first_player(self) -> str:
        return self.players[0]

    def opponent(self, player: str) -> str:
        first, second = self.players
        return second if player == first else first

    @abstractmethod
    def initial_state(self, setup: GameSetup | None = None) -> GameState: ...

    @abstractmethod
    def check_winner(self, board: Board, last_move: Move | None) -> str | None:
        """Return the winning player tag, or None while undecided or drawn."""

    @abstractmethod
    def _validate(self, state: GameState, position: Position, player: str) -> MoveRejection | None:
        """Game-specific checks, run after the turn and game-over checks pass."""

    @abstractmethod
    def _play(self, state: GameState, move: Move) -> GameState:
        """Apply an already-validated move.

        Must set ``last_move`` (to ``move`` or a resolved copy of it); the caller
        appends that to ``move_history``.
        """

    def is_valid_move(self, state: GameState, position: Position, player: str) -> MoveCheck:
        if state.is_over:
            return MoveCheck.reject(MoveRejection.GAME_OVER)
        if player != state.current_turn:
            return MoveCheck.reject(MoveRejection.NOT_YOUR_TURN)
        reason = self._validate(state, position, player)
        if reason is not None:
            return MoveCheck.reject(reason)
        return MoveCheck.ok()

    def apply_move(self, state: GameState, position: Position, player: str) -> GameState:
        """Validate and apply one move, returning the successor state.

        Raises InvalidMoveError when the move is not legal.
        """
        check = self.is_valid_move(state, position, player)
        if not check.valid:
            raise InvalidMoveError(check.reason or MoveRejection.ILLEGAL_MOVE, player=player)
        move = Move(position=position, player=player, sequence=state.next_sequence)
        successor = self._play(state, move)
        return successor.model_copy(update={"move_history": (*state.move_history, successor.last_move or move)})


def replay(engine: RuleEngine, moves: Iterable[Move], setup: GameSetup | None = None) -> GameState:
    """Rebuild a GameState by folding apply_move over a move history.

    Raises InvalidMoveError for an illegal move or a sequence gap.
    """
    state = engine.initial_state(setup)
    for move in moves:
        if move.sequence != state.next_sequence:
            raise InvalidMoveError(
                MoveRejection.ILLEGAL_MOVE,
                player=move.player,
                detail=f"sequence {move.sequence}, expected {state.next_sequence}",
            )
        state = engine.apply_move(state, move.position, move.player)
    return state
