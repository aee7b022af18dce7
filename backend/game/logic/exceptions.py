"""Typed domain exceptions for game rule violations.

Rule engines raise subclasses of GameRuleError rather than raw ValueError,
so the session layer can catch one type at its boundary and turn it into a
rejection notice or a resync request.
"""

from game.logic.enums import MoveRejection


class GameRuleError(Exception):
    """Base exception for game rule violations."""


class InvalidMoveError(GameRuleError):
    """A move failed validation.

    Attributes:
        reason: The machine-readable rejection reason.
        player: The player tag that attempted the move.

    """

    def __init__(self, reason: MoveRejection, *, player: str, detail: str = "") -> None:
        self.reason = reason
        self.player = player
        message = f"invalid move by {player}: {reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class InvalidSetupError(GameRuleError):
    """Initial configuration (for example a battleship fleet) breaks placement rules."""


class UnsupportedGameError(GameRuleError):
    """No rule engine exists for the requested game type."""
