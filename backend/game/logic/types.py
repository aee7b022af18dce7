"""
Pydantic models for board game state.

All models are frozen: rule engines return new states instead of mutating,
which keeps every GameState a pure function of its move history and lets
both peers compare serialized states byte for byte.
"""

from pydantic import BaseModel, Field

from game.logic.enums import GameType, MoveRejection, ShipType

Cell = str | int | None
Row = tuple[Cell, ...]
Board = tuple[Row, ...]


class Position(BaseModel, frozen=True):
    """Board coordinate. ``to_x``/``to_y`` carry the destination of a checkers step."""

    x: int
    y: int
    to_x: int | None = None
    to_y: int | None = None


class Move(BaseModel, frozen=True):
    position: Position
    player: str
    sequence: int = Field(ge=1)


class ShipPlacement(BaseModel, frozen=True):
    """One ship anchored at its top-left cell."""

    ship: ShipType
    x: int
    y: int
    horizontal: bool = True


class GameState(BaseModel, frozen=True):
    game_type: GameType
    board: Board
    current_turn: str
    move_history: tuple[Move, ...] = ()
    winner: str | None = None
    is_draw: bool = False
    last_move: Move | None = None
    forced_piece: Position | None = None  # checkers: piece that must keep jumping
    fleets: dict[str, tuple[ShipPlacement, ...]] = Field(default_factory=dict)  # battleship

    @property
    def is_over(self) -> bool:
        return self.winner is not None or self.is_draw

    @property
    def next_sequence(self) -> int:
        return len(self.move_history) + 1


class MoveCheck(BaseModel, frozen=True):
    valid: bool
    reason: MoveRejection | None = None

    @classmethod
    def ok(cls) -> "MoveCheck":
        return cls(valid=True)

    @classmethod
    def reject(cls, reason: MoveRejection) -> "MoveCheck":
        return cls(valid=False, reason=reason)


def empty_board(rows: int, cols: int, fill: Cell = None) -> Board:
    return tuple(tuple(fill for _ in range(cols)) for _ in range(rows))


def replace_cells(board: Board, changes: dict[tuple[int, int], Cell]) -> Board:
    """Return a copy of board with ``(x, y) -> value`` changes applied."""
    if not changes:
        return board
    rows = [list(row) for row in board]
    for (x, y), value in changes.items():
        rows[y][x] = value
    return tuple(tuple(row) for row in rows)
