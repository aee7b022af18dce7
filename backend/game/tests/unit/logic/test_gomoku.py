"""Tests for gomoku rules, including the Renju restrictions on black."""

from game.logic.enums import GameType, MoveRejection
from game.logic.gomoku import BOARD_SIZE, GomokuEngine, check_forbidden_move
from game.logic.types import Position
from game.tests.helpers.boards import board_with, play, state_with


def _black_to_move(stones: list[tuple[int, int]], player: str = "black"):
    board = board_with(BOARD_SIZE, BOARD_SIZE, dict.fromkeys(stones, player))
    return state_with(GameType.GOMOKU, board, player)


class TestGomokuBasics:
    def test_initial_state(self):
        state = GomokuEngine().initial_state()
        assert len(state.board) == BOARD_SIZE
        assert state.current_turn == "black"
        assert state.move_history == ()

    def test_turns_alternate(self):
        engine = GomokuEngine()
        state = play(engine, engine.initial_state(), (9, 9), (10, 10))
        assert state.board[9][9] == "black"
        assert state.board[10][10] == "white"
        assert state.current_turn == "black"
        assert [m.sequence for m in state.move_history] == [1, 2]

    def test_occupied_cell_rejected(self):
        engine = GomokuEngine()
        state = play(engine, engine.initial_state(), (9, 9))
        check = engine.is_valid_move(state, Position(x=9, y=9), "white")
        assert check.reason == MoveRejection.CELL_OCCUPIED

    def test_out_of_bounds_rejected(self):
        engine = GomokuEngine()
        check = engine.is_valid_move(engine.initial_state(), Position(x=19, y=0), "black")
        assert check.reason == MoveRejection.OUT_OF_BOUNDS

    def test_wrong_turn_rejected(self):
        engine = GomokuEngine()
        check = engine.is_valid_move(engine.initial_state(), Position(x=0, y=0), "white")
        assert check.reason == MoveRejection.NOT_YOUR_TURN

    def test_five_in_a_row_wins(self):
        engine = GomokuEngine()
        state = play(
            engine,
            engine.initial_state(),
            (0, 0), (0, 5),
            (1, 0), (1, 5),
            (2, 0), (2, 5),
            (3, 0), (3, 5),
            (4, 0),
        )  # fmt: skip
        assert state.winner == "black"
        assert state.is_over
        check = engine.is_valid_move(state, Position(x=10, y=10), "white")
        assert check.reason == MoveRejection.GAME_OVER

    def test_white_wins_on_diagonal(self):
        engine = GomokuEngine()
        state = play(
            engine,
            engine.initial_state(),
            (0, 18), (5, 5),
            (2, 18), (6, 6),
            (4, 18), (7, 7),
            (6, 18), (8, 8),
            (8, 18), (9, 9),
        )  # fmt: skip
        assert state.winner == "white"


class TestRenjuRestrictions:
    def test_double_three_forbidden_for_black(self):
        state = _black_to_move([(7, 9), (8, 9), (9, 7), (9, 8)])
        check = GomokuEngine().is_valid_move(state, Position(x=9, y=9), "black")
        assert not check.valid
        assert check.reason == MoveRejection.DOUBLE_THREE

    def test_double_three_allowed_for_white(self):
        state = _black_to_move([(7, 9), (8, 9), (9, 7), (9, 8)], player="white")
        check = GomokuEngine().is_valid_move(state, Position(x=9, y=9), "white")
        assert check.valid

    def test_blocked_three_does_not_count(self):
        board = board_with(
            BOARD_SIZE,
            BOARD_SIZE,
            {(7, 9): "black", (8, 9): "black", (9, 7): "black", (9, 8): "black", (6, 9): "white"},
        )
        assert check_forbidden_move(board, Position(x=9, y=9), "black") is None

    def test_double_four_forbidden(self):
        state = _black_to_move([(6, 9), (7, 9), (8, 9), (9, 6), (9, 7), (9, 8)])
        check = GomokuEngine().is_valid_move(state, Position(x=9, y=9), "black")
        assert check.reason == MoveRejection.DOUBLE_FOUR

    def test_overline_forbidden(self):
        state = _black_to_move([(3, 9), (4, 9), (5, 9), (7, 9), (8, 9)])
        check = GomokuEngine().is_valid_move(state, Position(x=6, y=9), "black")
        assert check.reason == MoveRejection.OVERLINE

    def test_overline_wins_for_white(self):
        engine = GomokuEngine()
        state = _black_to_move([(3, 9), (4, 9), (5, 9), (7, 9), (8, 9)], player="white")
        state = engine.apply_move(state, Position(x=6, y=9), "white")
        assert state.winner == "white"

    def test_single_open_three_allowed(self):
        state = _black_to_move([(7, 9), (8, 9)])
        assert GomokuEngine().is_valid_move(state, Position(x=9, y=9), "black").valid

    def test_overline_reported_before_double_four(self):
        # Six across, plus fours down and on the diagonal.
        state = _black_to_move(
            [(4, 9), (5, 9), (6, 9), (7, 9), (8, 9), (9, 6), (9, 7), (9, 8), (6, 6), (7, 7), (8, 8)]
        )
        check = GomokuEngine().is_valid_move(state, Position(x=9, y=9), "black")
        assert check.reason == MoveRejection.OVERLINE

    def test_double_four_reported_before_double_three(self):
        # Fours across and down, open threes on both diagonals.
        state = _black_to_move([(6, 9), (7, 9), (8, 9), (9, 6), (9, 7), (9, 8), (7, 7), (8, 8), (10, 8), (11, 7)])
        check = GomokuEngine().is_valid_move(state, Position(x=9, y=9), "black")
        assert check.reason == MoveRejection.DOUBLE_FOUR

    def test_combined_restrictions_do_not_bind_white(self):
        board = board_with(
            BOARD_SIZE,
            BOARD_SIZE,
            dict.fromkeys([(6, 9), (7, 9), (8, 9), (9, 6), (9, 7), (9, 8), (7, 7), (8, 8)], "white"),
        )
        assert check_forbidden_move(board, Position(x=9, y=9), "white") is None
