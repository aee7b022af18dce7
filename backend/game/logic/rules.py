"""Rule engine lookup by game type."""

from game.logic.battleship import BattleshipEngine
from game.logic.checkers import CheckersEngine
from game.logic.connect_four import ConnectFourEngine
from game.logic.dots_and_boxes import DotsAndBoxesEngine
from game.logic.engine import RuleEngine
from game.logic.enums import GameType
from game.logic.exceptions import UnsupportedGameError
from game.logic.gomoku import GomokuEngine
from game.logic.mancala import MancalaEngine
from game.logic.othello import OthelloEngine


def get_rule_engine(game_type: GameType | str) -> RuleEngine:
    """Return the rule engine for game_type.

    Raises UnsupportedGameError for unknown game types.
    """
    try:
        resolved = GameType(game_type)
    except ValueError:
        raise UnsupportedGameError(f"unsupported game type: {game_type!r}") from None

    match resolved:
        case GameType.GOMOKU:
            return GomokuEngine()
        case GameType.OTHELLO:
            return OthelloEngine()
        case GameType.CONNECT_FOUR:
            return ConnectFourEngine()
        case GameType.CHECKERS:
            return CheckersEngine()
        case GameType.MANCALA:
            return MancalaEngine()
        case GameType.BATTLESHIP:
            return BattleshipEngine()
        case GameType.DOTS_AND_BOXES:
            return DotsAndBoxesEngine()
