from game.logic.checkers import BOARD_SIZE, CheckersEngine, has_capture, is_king, piece_moves
from game.logic.enums import GameType, MoveRejection
from game.logic.types import Position
from game.tests.helpers.boards import board_with, state_with


def _move(x: int, y: int, to_x: int, to_y: int) -> Position:
    return Position(x=x, y=y, to_x=to_x, to_y=to_y)


def _state(pieces: dict[tuple[int, int], str], turn: str = "red"):
    return state_with(GameType.CHECKERS, board_with(BOARD_SIZE, BOARD_SIZE, pieces), turn)


class TestCheckersSteps:
    def test_initial_layout(self):
        board = CheckersEngine().initial_state().board
        assert sum(1 for row in board for cell in row if cell == "red") == 12
        assert sum(1 for row in board for cell in row if cell == "black") == 12
        assert board[5][0] == "red"
        assert board[0][1] == "black"

    def test_red_steps_forward(self):
        engine = CheckersEngine()
        state = engine.apply_move(engine.initial_state(), _move(0, 5, 1, 4), "red")
        assert state.board[4][1] == "red"
        assert state.board[5][0] is None
        assert state.current_turn == "black"

    def test_straight_step_rejected(self):
        engine = CheckersEngine()
        check = engine.is_valid_move(engine.initial_state(), _move(0, 5, 0, 4), "red")
        assert check.reason == MoveRejection.ILLEGAL_MOVE

    def test_moving_opponent_piece_rejected(self):
        engine = CheckersEngine()
        check = engine.is_valid_move(engine.initial_state(), _move(1, 2, 0, 3), "red")
        assert check.reason == MoveRejection.ILLEGAL_MOVE

    def test_missing_destination_rejected(self):
        engine = CheckersEngine()
        check = engine.is_valid_move(engine.initial_state(), Position(x=0, y=5), "red")
        assert check.reason == MoveRejection.ILLEGAL_MOVE

    def test_men_cannot_step_backwards(self):
        state = _state({(3, 4): "red", (0, 1): "black"})
        steps, _ = piece_moves(state.board, 3, 4)
        assert sorted(steps) == [(2, 3), (4, 3)]


class TestCheckersCaptures:
    def test_capture_is_mandatory(self):
        engine = CheckersEngine()
        state = _state({(2, 5): "red", (3, 4): "black", (6, 5): "red"})
        assert has_capture(state.board, "red")

        check = engine.is_valid_move(state, _move(6, 5, 5, 4), "red")
        assert check.reason == MoveRejection.MUST_CAPTURE

    def test_capturing_last_piece_wins(self):
        engine = CheckersEngine()
        state = _state({(2, 5): "red", (3, 4): "black", (6, 5): "red"})
        state = engine.apply_move(state, _move(2, 5, 4, 3), "red")
        assert state.board[4][3] is None
        assert state.winner == "red"

    def test_multi_jump_keeps_turn(self):
        engine = CheckersEngine()
        state = _state({(2, 7): "red", (7, 6): "red", (3, 6): "black", (5, 4): "black", (0, 1): "black"})

        state = engine.apply_move(state, _move(2, 7, 4, 5), "red")
        assert state.current_turn == "red"
        assert state.forced_piece == Position(x=4, y=5)

        check = engine.is_valid_move(state, _move(7, 6, 6, 5), "red")
        assert check.reason == MoveRejection.MUST_CONTINUE_JUMP

        state = engine.apply_move(state, _move(4, 5, 6, 3), "red")
        assert state.current_turn == "black"
        assert state.forced_piece is None
        assert state.winner is None
        assert [m.sequence for m in state.move_history] == [1, 2]

    def test_step_during_continuation_rejected(self):
        engine = CheckersEngine()
        state = _state({(2, 7): "red", (3, 6): "black", (5, 4): "black", (0, 1): "black"})
        state = engine.apply_move(state, _move(2, 7, 4, 5), "red")

        check = engine.is_valid_move(state, _move(4, 5, 3, 4), "red")
        assert check.reason == MoveRejection.MUST_CONTINUE_JUMP


class TestCheckersKings:
    def test_reaching_far_row_crowns(self):
        engine = CheckersEngine()
        state = _state({(2, 1): "red", (7, 2): "black"})
        state = engine.apply_move(state, _move(2, 1, 1, 0), "red")
        assert state.board[0][1] == "red-king"
        assert is_king(state.board[0][1])

    def test_crowning_capture_ends_turn(self):
        engine = CheckersEngine()
        state = _state({(1, 2): "red", (2, 1): "black", (4, 1): "black"})
        state = engine.apply_move(state, _move(1, 2, 3, 0), "red")

        assert state.board[0][3] == "red-king"
        assert piece_moves(state.board, 3, 0)[1] == [(5, 2)]
        assert state.current_turn == "black"
        assert state.forced_piece is None

    def test_king_moves_both_ways(self):
        state = _state({(3, 4): "red-king", (0, 1): "black"})
        steps, _ = piece_moves(state.board, 3, 4)
        assert sorted(steps) == [(2, 3), (2, 5), (4, 3), (4, 5)]

    def test_blocked_opponent_loses(self):
        engine = CheckersEngine()
        # black man on the last row has no forward moves left
        state = _state({(0, 5): "red", (6, 7): "black"})
        state = engine.apply_move(state, _move(0, 5, 1, 4), "red")
        assert state.winner == "red"
