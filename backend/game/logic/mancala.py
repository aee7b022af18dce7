"""
Mancala (Kalah) rules.

The board is a single row of 14 pits: 0-5 belong to player1 with its store
at 6, 7-12 belong to player2 with its store at 13. A move names a pit
(``position.x``). Sowing skips the opponent's store. Ending in one's own
store grants another turn; ending in one's own empty pit captures the
opposite pit. When either side runs out of stones the rest go to their
owners' stores and the larger store wins.
"""

from game.logic.engine import GameSetup, RuleEngine
from game.logic.enums import GameType, MoveRejection, PlayerColor
from game.logic.types import Board, GameState, Move, Position

PITS_PER_SIDE = 6
STONES_PER_PIT = 4
PIT_COUNT = 14

_P1 = PlayerColor.PLAYER1.value
_P2 = PlayerColor.PLAYER2.value

STORES = {_P1: 6, _P2: 13}
SIDES = {_P1: range(0, 6), _P2: range(7, 13)}


def initial_board() -> Board:
    pits = [STONES_PER_PIT] * PIT_COUNT
    pits[STORES[_P1]] = 0
    pits[STORES[_P2]] = 0
    return (tuple(pits),)


def _pits(board: Board) -> list[int]:
    return [int(cell or 0) for cell in board[0]]


def opposite_pit(pit: int) -> int:
    return 12 - pit


def side_empty(pits: list[int], player: str) -> bool:
    return all(pits[i] == 0 for i in SIDES[player])


def sow(board: Board, pit: int, player: str) -> tuple[Board, bool]:
    """Sow the stones of pit for player. Returns the new board and whether the player moves again."""
    pits = _pits(board)
    stones = pits[pit]
    pits[pit] = 0
    skip = STORES[_P2 if player == _P1 else _P1]
    index = pit
    while stones:
        index = (index + 1) % PIT_COUNT
        if index == skip:
            continue
        pits[index] += 1
        stones -= 1

    extra_turn = index == STORES[player]
    if not extra_turn and index in SIDES[player] and pits[index] == 1:
        opposite = opposite_pit(index)
        if pits[opposite] > 0:
            pits[STORES[player]] += pits[opposite] + 1
            pits[opposite] = 0
            pits[index] = 0
    return (tuple(pits),), extra_turn


def sweep_if_finished(board: Board) -> tuple[Board, bool]:
    """Move remaining stones to their owners' stores once either side is empty."""
    pits = _pits(board)
    if not (side_empty(pits, _P1) or side_empty(pits, _P2)):
        return board, False
    for player, side in SIDES.items():
        for i in side:
            pits[STORES[player]] += pits[i]
            pits[i] = 0
    return (tuple(pits),), True


def final_totals(board: Board) -> dict[str, int]:
    """Store plus remaining pit stones per player."""
    pits = _pits(board)
    return {player: pits[STORES[player]] + sum(pits[i] for i in side) for player, side in SIDES.items()}


class MancalaEngine(RuleEngine):
    game_type = GameType.MANCALA
    players = (_P1, _P2)

    def initial_state(self, setup: GameSetup | None = None) -> GameState:  # noqa: ARG002
        return GameState(game_type=self.game_type, board=initial_board(), current_turn=self.first_player)

    def check_winner(self, board: Board, last_move: Move | None) -> str | None:  # noqa: ARG002
        pits = _pits(board)
        if not (side_empty(pits, _P1) or side_empty(pits, _P2)):
            return None
        totals = final_totals(board)
        if totals[_P1] == totals[_P2]:
            return None
        return _P1 if totals[_P1] > totals[_P2] else _P2

    def _validate(self, state: GameState, position: Position, player: str) -> MoveRejection | None:
        if not 0 <= position.x < PIT_COUNT or position.y != 0:
            return MoveRejection.OUT_OF_BOUNDS
        if position.x not in SIDES[player]:
            return MoveRejection.ILLEGAL_MOVE
        if _pits(state.board)[position.x] == 0:
            return MoveRejection.EMPTY_PIT
        return None

    def _play(self, state: GameState, move: Move) -> GameState:
        board, extra_turn = sow(state.board, move.position.x, move.player)
        board, finished = sweep_if_finished(board)
        winner = self.check_winner(board, move) if finished else None
        return state.model_copy(
            update={
                "board": board,
                "current_turn": move.player if extra_turn and not finished else self.opponent(move.player),
                "winner": winner,
                "is_draw": finished and winner is None,
                "last_move": move,
            },
        )
