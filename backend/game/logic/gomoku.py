"""
Gomoku (omok) rules with Renju restrictions for black.

Board is 19x19, indexed ``board[y][x]``. Black moves first. Five or more
stones in a row wins. Black may not play a move that creates an overline
(six or more), two fours, or two open threes at once; the restrictions are
checked in that order and the first match is reported. White is never
restricted.
"""

from game.logic.engine import GameSetup, RuleEngine
from game.logic.enums import GameType, MoveRejection, PlayerColor
from game.logic.types import Board, GameState, Move, MoveCheck, Position, empty_board, replace_cells

BOARD_SIZE = 19
WIN_LENGTH = 5
OVERLINE_LENGTH = 6

# horizontal, vertical, diagonal, anti-diagonal
DIRECTIONS = ((1, 0), (0, 1), (1, 1), (1, -1))


def _in_bounds(x: int, y: int) -> bool:
    return 0 <= x < BOARD_SIZE and 0 <= y < BOARD_SIZE


def _run_end(board: Board, x: int, y: int, dx: int, dy: int, player: str) -> tuple[int, int, int]:
    """Walk from (x, y) along (dx, dy) over player's stones.

    Returns the number of stones passed and the first cell after them.
    """
    count = 0
    cx, cy = x + dx, y + dy
    while _in_bounds(cx, cy) and board[cy][cx] == player:
        count += 1
        cx, cy = cx + dx, cy + dy
    return count, cx, cy


def _line(board: Board, x: int, y: int, dx: int, dy: int, player: str) -> tuple[int, bool]:
    """Length of the consecutive run through (x, y) and whether both ends are open."""
    forward, fx, fy = _run_end(board, x, y, dx, dy, player)
    backward, bx, by = _run_end(board, x, y, -dx, -dy, player)
    open_ends = _in_bounds(fx, fy) and board[fy][fx] is None and _in_bounds(bx, by) and board[by][bx] is None
    return 1 + forward + backward, open_ends


def check_forbidden_move(board: Board, position: Position, player: str) -> MoveRejection | None:
    """Return the Renju restriction a black stone at position would break, if any."""
    if player != PlayerColor.BLACK:
        return None

    placed = replace_cells(board, {(position.x, position.y): player})
    lines = [_line(placed, position.x, position.y, dx, dy, player) for dx, dy in DIRECTIONS]

    if any(length >= OVERLINE_LENGTH for length, _ in lines):
        return MoveRejection.OVERLINE
    if sum(1 for length, _ in lines if length == 4) >= 2:  # noqa: PLR2004
        return MoveRejection.DOUBLE_FOUR
    if sum(1 for length, open_ends in lines if length == 3 and open_ends) >= 2:  # noqa: PLR2004
        return MoveRejection.DOUBLE_THREE
    return None


def is_valid_move(board: Board, position: Position, player: str) -> MoveCheck:
    if not _in_bounds(position.x, position.y):
        return MoveCheck.reject(MoveRejection.OUT_OF_BOUNDS)
    if board[position.y][position.x] is not None:
        return MoveCheck.reject(MoveRejection.CELL_OCCUPIED)
    forbidden = check_forbidden_move(board, position, player)
    if forbidden is not None:
        return MoveCheck.reject(forbidden)
    return MoveCheck.ok()


def check_winner(board: Board, last_move: Move | None) -> str | None:
    """Scan the four axes through the last stone for five or more in a row."""
    if last_move is None:
        return None
    x, y = last_move.position.x, last_move.position.y
    player = board[y][x]
    if not isinstance(player, str):
        return None
    for dx, dy in DIRECTIONS:
        length, _ = _line(board, x, y, dx, dy, player)
        if length >= WIN_LENGTH:
            return player
    return None


def is_board_full(board: Board) -> bool:
    return all(cell is not None for row in board for cell in row)


class GomokuEngine(RuleEngine):
    game_type = GameType.GOMOKU
    players = (PlayerColor.BLACK.value, PlayerColor.WHITE.value)

    def initial_state(self, setup: GameSetup | None = None) -> GameState:  # noqa: ARG002
        return GameState(
            game_type=self.game_type,
            board=empty_board(BOARD_SIZE, BOARD_SIZE),
            current_turn=self.first_player,
        )

    def check_winner(self, board: Board, last_move: Move | None) -> str | None:
        return check_winner(board, last_move)

    def _validate(self, state: GameState, position: Position, player: str) -> MoveRejection | None:
        return is_valid_move(state.board, position, player).reason

    def _play(self, state: GameState, move: Move) -> GameState:
        board = replace_cells(state.board, {(move.position.x, move.position.y): move.player})
        winner = check_winner(board, move)
        return state.model_copy(
            update={
                "board": board,
                "current_turn": self.opponent(move.player),
                "winner": winner,
                "is_draw": winner is None and is_board_full(board),
                "last_move": move,
            },
        )
