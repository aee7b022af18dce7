"""
Connect-4 rules.

6 rows by 7 columns indexed ``board[row][col]`` with row 0 at the top. Red
moves first. A move names a column (``position.x``); the disc drops to the
lowest empty row, and the recorded move carries that row as ``position.y``.
"""

from game.logic.engine import GameSetup, RuleEngine
from game.logic.enums import GameType, MoveRejection, PlayerColor
from game.logic.exceptions import InvalidMoveError
from game.logic.types import Board, GameState, Move, Position, empty_board, replace_cells

ROWS = 6
COLS = 7
WIN_LENGTH = 4

DIRECTIONS = ((1, 0), (0, 1), (1, 1), (1, -1))


def landing_row(board: Board, col: int) -> int | None:
    """Lowest empty row in col, or None when the column is full."""
    for row in range(ROWS - 1, -1, -1):
        if board[row][col] is None:
            return row
    return None


def _count(board: Board, col: int, row: int, dx: int, dy: int, player: str) -> int:
    count = 0
    c, r = col + dx, row + dy
    while 0 <= c < COLS and 0 <= r < ROWS and board[r][c] == player:
        count += 1
        c, r = c + dx, r + dy
    return count


def check_winner(board: Board, last_move: Move | None) -> str | None:
    if last_move is None:
        return None
    col, row = last_move.position.x, last_move.position.y
    player = board[row][col]
    if not isinstance(player, str):
        return None
    for dx, dy in DIRECTIONS:
        if 1 + _count(board, col, row, dx, dy, player) + _count(board, col, row, -dx, -dy, player) >= WIN_LENGTH:
            return player
    return None


def is_board_full(board: Board) -> bool:
    return all(cell is not None for cell in board[0])


class ConnectFourEngine(RuleEngine):
    game_type = GameType.CONNECT_FOUR
    players = (PlayerColor.RED.value, PlayerColor.YELLOW.value)

    def initial_state(self, setup: GameSetup | None = None) -> GameState:  # noqa: ARG002
        return GameState(game_type=self.game_type, board=empty_board(ROWS, COLS), current_turn=self.first_player)

    def check_winner(self, board: Board, last_move: Move | None) -> str | None:
        return check_winner(board, last_move)

    def _validate(self, state: GameState, position: Position, player: str) -> MoveRejection | None:  # noqa: ARG002
        if not 0 <= position.x < COLS:
            return MoveRejection.OUT_OF_BOUNDS
        if landing_row(state.board, position.x) is None:
            return MoveRejection.COLUMN_FULL
        return None

    def _play(self, state: GameState, move: Move) -> GameState:
        col = move.position.x
        row = landing_row(state.board, col)
        if row is None:  # pragma: no cover
            raise InvalidMoveError(MoveRejection.COLUMN_FULL, player=move.player)
        resolved = move.model_copy(update={"position": Position(x=col, y=row)})
        board = replace_cells(state.board, {(col, row): move.player})
        winner = check_winner(board, resolved)
        return state.model_copy(
            update={
                "board": board,
                "current_turn": self.opponent(move.player),
                "winner": winner,
                "is_draw": winner is None and is_board_full(board),
                "last_move": resolved,
            },
        )
