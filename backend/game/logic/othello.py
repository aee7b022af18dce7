"""
Othello rules.

8x8 board indexed ``board[y][x]``, black moves first. A move must flip at
least one opposing stone. When the opponent has no legal reply the mover
plays again; when neither side can move the game ends and the larger stone
count wins.
"""

from game.logic.engine import GameSetup, RuleEngine
from game.logic.enums import GameType, MoveRejection, PlayerColor
from game.logic.types import Board, GameState, Move, Position, empty_board, replace_cells

BOARD_SIZE = 8

DIRECTIONS = ((-1, -1), (0, -1), (1, -1), (-1, 0), (1, 0), (-1, 1), (0, 1), (1, 1))

_BLACK = PlayerColor.BLACK.value
_WHITE = PlayerColor.WHITE.value


def _in_bounds(x: int, y: int) -> bool:
    return 0 <= x < BOARD_SIZE and 0 <= y < BOARD_SIZE


def _other(player: str) -> str:
    return _WHITE if player == _BLACK else _BLACK


def initial_board() -> Board:
    mid = BOARD_SIZE // 2
    return replace_cells(
        empty_board(BOARD_SIZE, BOARD_SIZE),
        {
            (mid - 1, mid - 1): _WHITE,
            (mid, mid - 1): _BLACK,
            (mid - 1, mid): _BLACK,
            (mid, mid): _WHITE,
        },
    )


def flips_for(board: Board, x: int, y: int, player: str) -> list[tuple[int, int]]:
    """Opposing stones that a stone at (x, y) would flip, in direction order."""
    if not _in_bounds(x, y) or board[y][x] is not None:
        return []
    opponent = _other(player)
    flips: list[tuple[int, int]] = []
    for dx, dy in DIRECTIONS:
        run: list[tuple[int, int]] = []
        cx, cy = x + dx, y + dy
        while _in_bounds(cx, cy) and board[cy][cx] == opponent:
            run.append((cx, cy))
            cx, cy = cx + dx, cy + dy
        if run and _in_bounds(cx, cy) and board[cy][cx] == player:
            flips.extend(run)
    return flips


def has_valid_move(board: Board, player: str) -> bool:
    return any(flips_for(board, x, y, player) for y in range(BOARD_SIZE) for x in range(BOARD_SIZE))


def count_stones(board: Board, player: str) -> int:
    return sum(1 for row in board for cell in row if cell == player)


def is_finished(board: Board) -> bool:
    return not has_valid_move(board, _BLACK) and not has_valid_move(board, _WHITE)


class OthelloEngine(RuleEngine):
    game_type = GameType.OTHELLO
    players = (_BLACK, _WHITE)

    def initial_state(self, setup: GameSetup | None = None) -> GameState:  # noqa: ARG002
        return GameState(game_type=self.game_type, board=initial_board(), current_turn=self.first_player)

    def check_winner(self, board: Board, last_move: Move | None) -> str | None:  # noqa: ARG002
        if not is_finished(board):
            return None
        black, white = count_stones(board, _BLACK), count_stones(board, _WHITE)
        if black == white:
            return None
        return _BLACK if black > white else _WHITE

    def _validate(self, state: GameState, position: Position, player: str) -> MoveRejection | None:
        if not _in_bounds(position.x, position.y):
            return MoveRejection.OUT_OF_BOUNDS
        if state.board[position.y][position.x] is not None:
            return MoveRejection.CELL_OCCUPIED
        if not flips_for(state.board, position.x, position.y, player):
            return MoveRejection.NO_FLIPS
        return None

    def _play(self, state: GameState, move: Move) -> GameState:
        x, y = move.position.x, move.position.y
        changes = {cell: move.player for cell in flips_for(state.board, x, y, move.player)}
        changes[(x, y)] = move.player
        board = replace_cells(state.board, changes)

        opponent = self.opponent(move.player)
        finished = is_finished(board)
        if finished or has_valid_move(board, opponent):
            next_turn = opponent
        else:
            next_turn = move.player  # opponent passes

        winner = self.check_winner(board, move) if finished else None
        return state.model_copy(
            update={
                "board": board,
                "current_turn": next_turn,
                "winner": winner,
                "is_draw": finished and winner is None,
                "last_move": move,
            },
        )
