from enum import StrEnum


class GameType(StrEnum):
    GOMOKU = "omok"
    OTHELLO = "othello"
    CONNECT_FOUR = "connect4"
    CHECKERS = "checkers"
    MANCALA = "mancala"
    BATTLESHIP = "battleship"
    DOTS_AND_BOXES = "dotsandboxes"


class PlayerColor(StrEnum):
    """Player tags used on boards and in move messages.

    Each game uses one pair; the first of the pair moves first.
    """

    BLACK = "black"
    WHITE = "white"
    RED = "red"
    YELLOW = "yellow"
    PLAYER1 = "player1"
    PLAYER2 = "player2"


class MoveRejection(StrEnum):
    GAME_OVER = "game_over"
    NOT_YOUR_TURN = "not_your_turn"
    OUT_OF_BOUNDS = "out_of_bounds"
    CELL_OCCUPIED = "cell_occupied"
    ILLEGAL_MOVE = "illegal_move"
    # gomoku (renju) forbidden moves, black only
    DOUBLE_THREE = "double_three"
    DOUBLE_FOUR = "double_four"
    OVERLINE = "overline"
    # game-specific
    COLUMN_FULL = "column_full"
    NO_FLIPS = "no_flips"
    MUST_CAPTURE = "must_capture"
    MUST_CONTINUE_JUMP = "must_continue_jump"
    EMPTY_PIT = "empty_pit"


class ShipType(StrEnum):
    CARRIER = "carrier"
    BATTLESHIP = "battleship"
    CRUISER = "cruiser"
    SUBMARINE = "submarine"
    DESTROYER = "destroyer"
