"""
Battleship rules.

The board stacks both 10x10 oceans: rows 0-9 are player1's ocean and rows
10-19 are player2's. Intact ship cells hold the ship type; fired cells hold
``miss``, ``hit`` or ``sunk``. Fleets are part of the initial setup, so
both peers rebuild identical boards. A move is a shot at ``(x, y)`` in the
opponent's ocean; turns alternate; sinking the whole fleet wins.
"""

import random

from game.logic.engine import GameSetup, RuleEngine
from game.logic.enums import GameType, MoveRejection, PlayerColor, ShipType
from game.logic.exceptions import InvalidSetupError
from game.logic.types import Board, Cell, GameState, Move, Position, ShipPlacement, empty_board, replace_cells

OCEAN_SIZE = 10

SHIP_SIZES: dict[ShipType, int] = {
    ShipType.CARRIER: 5,
    ShipType.BATTLESHIP: 4,
    ShipType.CRUISER: 3,
    ShipType.SUBMARINE: 3,
    ShipType.DESTROYER: 2,
}

MISS = "miss"
HIT = "hit"
SUNK = "sunk"
_FIRED = frozenset({MISS, HIT, SUNK})

_P1 = PlayerColor.PLAYER1.value
_P2 = PlayerColor.PLAYER2.value
_OCEAN_ROW_OFFSET = {_P1: 0, _P2: OCEAN_SIZE}

_FLEET_PLACEMENT_ATTEMPTS = 1000


def ship_cells(placement: ShipPlacement) -> list[tuple[int, int]]:
    size = SHIP_SIZES[placement.ship]
    if placement.horizontal:
        return [(placement.x + i, placement.y) for i in range(size)]
    return [(placement.x, placement.y + i) for i in range(size)]


def _check_cells(fleet: tuple[ShipPlacement, ...]) -> None:
    """Bounds, overlap and no-touch (diagonals included) checks for any subset of a fleet."""
    owner: dict[tuple[int, int], ShipType] = {}
    for placement in fleet:
        for x, y in ship_cells(placement):
            if not (0 <= x < OCEAN_SIZE and 0 <= y < OCEAN_SIZE):
                raise InvalidSetupError(f"{placement.ship} extends outside the ocean at ({x}, {y})")
            if (x, y) in owner:
                raise InvalidSetupError(f"{placement.ship} overlaps {owner[(x, y)]} at ({x}, {y})")
            owner[(x, y)] = placement.ship

    for (x, y), ship in owner.items():
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                neighbour = owner.get((x + dx, y + dy))
                if neighbour is not None and neighbour != ship:
                    raise InvalidSetupError(f"{ship} touches {neighbour} at ({x}, {y})")


def validate_fleet(fleet: tuple[ShipPlacement, ...]) -> None:
    """Raise InvalidSetupError unless fleet has one of each ship, in bounds, with no ships touching."""
    ships = sorted(p.ship.value for p in fleet)
    if ships != sorted(s.value for s in SHIP_SIZES):
        raise InvalidSetupError(f"fleet must contain exactly one of each ship, got {ships}")
    _check_cells(fleet)


def random_fleet(rng: random.Random | None = None) -> tuple[ShipPlacement, ...]:
    """Place one of each ship at random, honouring the no-touch rule."""
    rng = rng or random.Random()  # noqa: S311
    for _ in range(_FLEET_PLACEMENT_ATTEMPTS):
        placed: tuple[ShipPlacement, ...] = ()
        for ship, size in SHIP_SIZES.items():
            horizontal = rng.random() < 0.5  # noqa: PLR2004
            max_x = OCEAN_SIZE - (size if horizontal else 1)
            max_y = OCEAN_SIZE - (1 if horizontal else size)
            candidate = ShipPlacement(ship=ship, x=rng.randint(0, max_x), y=rng.randint(0, max_y), horizontal=horizontal)
            try:
                _check_cells((*placed, candidate))
            except InvalidSetupError:
                break
            placed = (*placed, candidate)
        if len(placed) == len(SHIP_SIZES):
            return placed
    raise InvalidSetupError("could not place fleet")  # pragma: no cover


def _ocean_owner_rows(player: str) -> range:
    offset = _OCEAN_ROW_OFFSET[player]
    return range(offset, offset + OCEAN_SIZE)


def fleet_destroyed(board: Board, player: str) -> bool:
    """True once player's ocean has sunk ships and nothing left afloat."""
    cells = [board[row][x] for row in _ocean_owner_rows(player) for x in range(OCEAN_SIZE)]
    afloat = any(cell is not None and cell not in _FIRED for cell in cells) or HIT in cells
    return not afloat and SUNK in cells


def shot_result(state: GameState) -> str | None:
    """Outcome (miss/hit/sunk) of the last shot, read back from the board."""
    move = state.last_move
    if move is None:
        return None
    target = _P2 if move.player == _P1 else _P1
    cell = state.board[_OCEAN_ROW_OFFSET[target] + move.position.y][move.position.x]
    return cell if isinstance(cell, str) else None


class BattleshipEngine(RuleEngine):
    game_type = GameType.BATTLESHIP
    players = (_P1, _P2)

    def initial_state(self, setup: GameSetup | None = None) -> GameState:
        """Build both oceans from ``setup = {"player1": fleet, "player2": fleet}``."""
        if setup is None or set(setup) != set(self.players):
            raise InvalidSetupError("battleship needs a fleet for both players")
        changes: dict[tuple[int, int], Cell] = {}
        fleets: dict[str, tuple[ShipPlacement, ...]] = {}
        for player in self.players:
            fleet = tuple(setup[player])
            validate_fleet(fleet)
            fleets[player] = fleet
            offset = _OCEAN_ROW_OFFSET[player]
            for placement in fleet:
                for x, y in ship_cells(placement):
                    changes[(x, offset + y)] = placement.ship.value
        return GameState(
            game_type=self.game_type,
            board=replace_cells(empty_board(OCEAN_SIZE * 2, OCEAN_SIZE), changes),
            current_turn=self.first_player,
            fleets=fleets,
        )

    def check_winner(self, board: Board, last_move: Move | None) -> str | None:  # noqa: ARG002
        for player in self.players:
            if fleet_destroyed(board, player):
                return self.opponent(player)
        return None

    def _validate(self, state: GameState, position: Position, player: str) -> MoveRejection | None:
        if not (0 <= position.x < OCEAN_SIZE and 0 <= position.y < OCEAN_SIZE):
            return MoveRejection.OUT_OF_BOUNDS
        target = self.opponent(player)
        if state.board[_OCEAN_ROW_OFFSET[target] + position.y][position.x] in _FIRED:
            return MoveRejection.CELL_OCCUPIED
        return None

    def _play(self, state: GameState, move: Move) -> GameState:
        target = self.opponent(move.player)
        offset = _OCEAN_ROW_OFFSET[target]
        x, y = move.position.x, move.position.y
        cell = state.board[offset + y][x]

        if cell is None:
            board = replace_cells(state.board, {(x, offset + y): MISS})
        else:
            board = replace_cells(state.board, {(x, offset + y): HIT})
            board = self._sink_if_complete(board, state.fleets.get(target, ()), offset, (x, y))

        return state.model_copy(
            update={
                "board": board,
                "current_turn": target,
                "winner": self.check_winner(board, move),
                "last_move": move,
            },
        )

    @staticmethod
    def _sink_if_complete(
        board: Board,
        fleet: tuple[ShipPlacement, ...],
        offset: int,
        hit: tuple[int, int],
    ) -> Board:
        for placement in fleet:
            cells = ship_cells(placement)
            if hit not in cells:
                continue
            if all(board[offset + cy][cx] == HIT for cx, cy in cells):
                return replace_cells(board, {(cx, offset + cy): SUNK for cx, cy in cells})
            return board
        return board
