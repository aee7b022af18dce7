"""
Dots-and-Boxes rules.

A 5x5 grid of dots is stored as a 9x9 lattice indexed ``board[y][x]``:
dots sit where both coordinates are even, boxes where both are odd, and
lines everywhere else (horizontal lines at odd x / even y, vertical lines
at even x / odd y). A move draws the line at ``(x, y)``. Drawn lines and
completed boxes hold the owning player. Completing a box grants another
turn; once every box is owned the larger count wins.
"""

from game.logic.engine import GameSetup, RuleEngine
from game.logic.enums import GameType, MoveRejection, PlayerColor
from game.logic.types import Board, Cell, GameState, Move, Position, empty_board, replace_cells

DOTS = 5
LATTICE_SIZE = DOTS * 2 - 1

_P1 = PlayerColor.PLAYER1.value
_P2 = PlayerColor.PLAYER2.value


def _in_bounds(x: int, y: int) -> bool:
    return 0 <= x < LATTICE_SIZE and 0 <= y < LATTICE_SIZE


def is_line(x: int, y: int) -> bool:
    return (x + y) % 2 == 1


def is_box(x: int, y: int) -> bool:
    return x % 2 == 1 and y % 2 == 1


def _adjacent_boxes(x: int, y: int) -> list[tuple[int, int]]:
    if y % 2 == 0:  # horizontal line: boxes above and below
        candidates = [(x, y - 1), (x, y + 1)]
    else:  # vertical line: boxes left and right
        candidates = [(x - 1, y), (x + 1, y)]
    return [(bx, by) for bx, by in candidates if _in_bounds(bx, by)]


def _box_closed(board: Board, bx: int, by: int) -> bool:
    return all(board[by + dy][bx + dx] is not None for dx, dy in ((0, -1), (0, 1), (-1, 0), (1, 0)))


def box_counts(board: Board) -> dict[str, int]:
    counts = {_P1: 0, _P2: 0}
    for y in range(1, LATTICE_SIZE, 2):
        for x in range(1, LATTICE_SIZE, 2):
            owner = board[y][x]
            if owner in counts:
                counts[owner] += 1
    return counts


def all_boxes_owned(board: Board) -> bool:
    return all(board[y][x] is not None for y in range(1, LATTICE_SIZE, 2) for x in range(1, LATTICE_SIZE, 2))


class DotsAndBoxesEngine(RuleEngine):
    game_type = GameType.DOTS_AND_BOXES
    players = (_P1, _P2)

    def initial_state(self, setup: GameSetup | None = None) -> GameState:  # noqa: ARG002
        return GameState(
            game_type=self.game_type,
            board=empty_board(LATTICE_SIZE, LATTICE_SIZE),
            current_turn=self.first_player,
        )

    def check_winner(self, board: Board, last_move: Move | None) -> str | None:  # noqa: ARG002
        if not all_boxes_owned(board):
            return None
        counts = box_counts(board)
        if counts[_P1] == counts[_P2]:
            return None
        return _P1 if counts[_P1] > counts[_P2] else _P2

    def _validate(self, state: GameState, position: Position, player: str) -> MoveRejection | None:  # noqa: ARG002
        if not _in_bounds(position.x, position.y):
            return MoveRejection.OUT_OF_BOUNDS
        if not is_line(position.x, position.y):
            return MoveRejection.ILLEGAL_MOVE
        if state.board[position.y][position.x] is not None:
            return MoveRejection.CELL_OCCUPIED
        return None

    def _play(self, state: GameState, move: Move) -> GameState:
        x, y = move.position.x, move.position.y
        board = replace_cells(state.board, {(x, y): move.player})
        completed: dict[tuple[int, int], Cell] = {
            box: move.player for box in _adjacent_boxes(x, y) if _box_closed(board, *box)
        }
        board = replace_cells(board, completed)

        finished = all_boxes_owned(board)
        winner = self.check_winner(board, move) if finished else None
        return state.model_copy(
            update={
                "board": board,
                "current_turn": move.player if completed and not finished else self.opponent(move.player),
                "winner": winner,
                "is_draw": finished and winner is None,
                "last_move": move,
            },
        )
