"""Attack resolution against a single board, including sunk detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from salvo.telemetry import get_meter, get_tracer

from .board import Board, CellState
from .ship import Coordinate

logger = logging.getLogger(__name__)
tracer = get_tracer("salvo.engine.attack")
meter = get_meter("salvo.engine.attack")

ATTACK_COUNTER = meter.create_counter(
    "salvo_engine_attacks",
    unit="1",
    description="Attacks resolved against a board",
)


class AttackOutcome(Enum):
    """Result of an attack that reached the board."""

    ALREADY_TRIED = "already_tried"
    MISS = "miss"
    HIT = "hit"
    HIT_AND_SUNK = "hit_and_sunk"

    @property
    def is_hit(self) -> bool:
        return self is AttackOutcome.HIT or self is AttackOutcome.HIT_AND_SUNK


class AttackError(Enum):
    """Why an attack request was refused before touching any board."""

    OUT_OF_BOUNDS = "out_of_bounds"
    NOT_YOUR_TURN = "not_your_turn"
    GAME_ALREADY_OVER = "game_already_over"


@dataclass(frozen=True)
class AttackResult:
    """Either an ``outcome`` or an ``error``; ``ship_name`` is set only when a ship went down."""

    coordinate: Coordinate | None
    outcome: AttackOutcome | None = None
    error: AttackError | None = None
    ship_name: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, coordinate: Coordinate | None, error: AttackError) -> AttackResult:
        return cls(coordinate=coordinate, error=error)


def resolve_attack(board: Board, coord: Coordinate) -> AttackResult:
    """Fire at ``coord`` on ``board``.

    Previously attacked cells yield ``ALREADY_TRIED`` without mutating
    anything. A hit marks the cell and counts against the single ship covering
    it; the ship sinks when every cell of its footprint has been hit.
    """
    with tracer.start_as_current_span("board.resolve_attack") as span:
        span.set_attribute("board.owner", board.owner)
        span.set_attribute("attack.row", coord.row)
        span.set_attribute("attack.col", coord.col)

        if not board.is_valid_coordinate(coord):
            span.set_attribute("attack.error", AttackError.OUT_OF_BOUNDS.value)
            logger.warning(
                "attack_out_of_bounds",
                extra={"row": coord.row, "col": coord.col, "owner": board.owner},
            )
            return AttackResult.failure(coord, AttackError.OUT_OF_BOUNDS)

        state = board.cell_state(coord)
        if state.attacked:
            outcome = AttackOutcome.ALREADY_TRIED
            result = AttackResult(coord, outcome)
            logger.info(
                "attack_already_tried",
                extra={"row": coord.row, "col": coord.col, "owner": board.owner},
            )
        elif state is CellState.OCCUPIED:
            ship = next(
                (s for s in board.ships if not s.sunk and s.covers(coord)),
                None,
            )
            if ship is None:
                raise RuntimeError(f"Occupied cell {coord} on {board.owner} board has no afloat ship.")
            board.set_cell_state(coord, CellState.HIT)
            if ship.register_hit():
                outcome = AttackOutcome.HIT_AND_SUNK
                result = AttackResult(coord, outcome, ship_name=ship.name)
            else:
                outcome = AttackOutcome.HIT
                result = AttackResult(coord, outcome)
            logger.info(
                "attack_hit",
                extra={
                    "row": coord.row,
                    "col": coord.col,
                    "owner": board.owner,
                    "ship": ship.name,
                    "sunk": ship.sunk,
                },
            )
        else:
            board.set_cell_state(coord, CellState.MISS)
            outcome = AttackOutcome.MISS
            result = AttackResult(coord, outcome)
            logger.info(
                "attack_miss",
                extra={"row": coord.row, "col": coord.col, "owner": board.owner},
            )

        span.set_attribute("attack.outcome", outcome.value)
        ATTACK_COUNTER.add(1, attributes={"outcome": outcome.value, "owner": board.owner})
        return result
