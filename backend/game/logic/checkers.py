"""
Checkers (draughts) rules.

8x8 board indexed ``board[row][col]``; pieces sit on squares where
``(row + col) % 2 == 1``. Black starts on rows 0-2 and moves down, red
starts on rows 5-7 and moves up, kings move both ways. Red moves first.

A move is ``Position(x=col, y=row, to_x=col, to_y=row)``. Captures are
single diagonal jumps and are mandatory. After a capture the same piece
keeps jumping while it can, unless the capture crowned it. A player with
no pieces or no legal move loses.
"""

from game.logic.engine import GameSetup, RuleEngine
from game.logic.enums import GameType, MoveRejection, PlayerColor
from game.logic.exceptions import InvalidMoveError
from game.logic.types import Board, GameState, Move, Position, empty_board, replace_cells

BOARD_SIZE = 8
_START_ROWS = 3

_RED = PlayerColor.RED.value
_BLACK = PlayerColor.BLACK.value
_KING_SUFFIX = "-king"

Square = tuple[int, int]  # (col, row)


def _in_bounds(col: int, row: int) -> bool:
    return 0 <= col < BOARD_SIZE and 0 <= row < BOARD_SIZE


def owner(cell: object) -> str | None:
    if not isinstance(cell, str):
        return None
    return cell.removesuffix(_KING_SUFFIX)


def is_king(cell: object) -> bool:
    return isinstance(cell, str) and cell.endswith(_KING_SUFFIX)


def _row_steps(cell: str) -> tuple[int, ...]:
    if is_king(cell):
        return (-1, 1)
    return (-1,) if owner(cell) == _RED else (1,)


def _promotion_row(player: str) -> int:
    return 0 if player == _RED else BOARD_SIZE - 1


def initial_board() -> Board:
    changes: dict[Square, str] = {}
    for row in range(BOARD_SIZE):
        for col in range(BOARD_SIZE):
            if (row + col) % 2 != 1:
                continue
            if row < _START_ROWS:
                changes[(col, row)] = _BLACK
            elif row >= BOARD_SIZE - _START_ROWS:
                changes[(col, row)] = _RED
    return replace_cells(empty_board(BOARD_SIZE, BOARD_SIZE), changes)


def piece_moves(board: Board, col: int, row: int) -> tuple[list[Square], list[Square]]:
    """Step destinations and jump destinations for the piece at (col, row)."""
    cell = board[row][col]
    if not isinstance(cell, str):
        return [], []
    player = owner(cell)
    steps: list[Square] = []
    jumps: list[Square] = []
    for dr in _row_steps(cell):
        for dc in (-1, 1):
            c1, r1 = col + dc, row + dr
            if not _in_bounds(c1, r1):
                continue
            target = board[r1][c1]
            if target is None:
                steps.append((c1, r1))
                continue
            c2, r2 = c1 + dc, r1 + dr
            if owner(target) != player and _in_bounds(c2, r2) and board[r2][c2] is None:
                jumps.append((c2, r2))
    return steps, jumps


def _pieces(board: Board, player: str) -> list[Square]:
    return [(col, row) for row in range(BOARD_SIZE) for col in range(BOARD_SIZE) if owner(board[row][col]) == player]


def has_capture(board: Board, player: str) -> bool:
    return any(piece_moves(board, col, row)[1] for col, row in _pieces(board, player))


def has_any_move(board: Board, player: str) -> bool:
    return any(any(piece_moves(board, col, row)) for col, row in _pieces(board, player))


class CheckersEngine(RuleEngine):
    game_type = GameType.CHECKERS
    players = (_RED, _BLACK)

    def initial_state(self, setup: GameSetup | None = None) -> GameState:  # noqa: ARG002
        return GameState(game_type=self.game_type, board=initial_board(), current_turn=self.first_player)

    def check_winner(self, board: Board, last_move: Move | None) -> str | None:
        """The last mover wins once the opponent has no pieces or no legal move."""
        if last_move is None:
            return None
        mover = last_move.player
        opponent = self.opponent(mover)
        if not _pieces(board, opponent) or not has_any_move(board, opponent):
            return mover
        return None

    def _validate(self, state: GameState, position: Position, player: str) -> MoveRejection | None:
        if position.to_x is None or position.to_y is None:
            return MoveRejection.ILLEGAL_MOVE
        if not _in_bounds(position.x, position.y) or not _in_bounds(position.to_x, position.to_y):
            return MoveRejection.OUT_OF_BOUNDS
        if owner(state.board[position.y][position.x]) != player:
            return MoveRejection.ILLEGAL_MOVE
        forced = state.forced_piece
        if forced is not None and (forced.x, forced.y) != (position.x, position.y):
            return MoveRejection.MUST_CONTINUE_JUMP
        if state.board[position.to_y][position.to_x] is not None:
            return MoveRejection.CELL_OCCUPIED

        steps, jumps = piece_moves(state.board, position.x, position.y)
        destination = (position.to_x, position.to_y)
        if destination in jumps:
            return None
        if destination not in steps:
            return MoveRejection.ILLEGAL_MOVE
        if forced is not None:
            return MoveRejection.MUST_CONTINUE_JUMP
        if has_capture(state.board, player):
            return MoveRejection.MUST_CAPTURE
        return None

    def _play(self, state: GameState, move: Move) -> GameState:
        pos = move.position
        if pos.to_x is None or pos.to_y is None:  # pragma: no cover
            raise InvalidMoveError(MoveRejection.ILLEGAL_MOVE, player=move.player)
        piece = state.board[pos.y][pos.x]
        crowned = not is_king(piece) and pos.to_y == _promotion_row(move.player)
        moved = f"{move.player}{_KING_SUFFIX}" if crowned or is_king(piece) else move.player

        changes: dict[Square, str | None] = {(pos.x, pos.y): None, (pos.to_x, pos.to_y): moved}
        captured = abs(pos.to_x - pos.x) == 2  # noqa: PLR2004
        if captured:
            changes[((pos.x + pos.to_x) // 2, (pos.y + pos.to_y) // 2)] = None
        board = replace_cells(state.board, changes)

        continues = captured and not crowned and bool(piece_moves(board, pos.to_x, pos.to_y)[1])
        opponent = self.opponent(move.player)
        if continues:
            winner = None if _pieces(board, opponent) else move.player
        else:
            winner = self.check_winner(board, move)
        return state.model_copy(
            update={
                "board": board,
                "current_turn": move.player if continues and winner is None else opponent,
                "forced_piece": Position(x=pos.to_x, y=pos.to_y) if continues and winner is None else None,
                "winner": winner,
                "last_move": move,
            },
        )
