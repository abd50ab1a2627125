"""Ship placement legality checks and random fleet layout."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum

from salvo.telemetry import get_meter, get_tracer

from .board import Board, CellState
from .ship import Coordinate, Orientation, Ship, footprint

logger = logging.getLogger(__name__)
tracer = get_tracer("salvo.engine.placement")
meter = get_meter("salvo.engine.placement")

PLACEMENT_COUNTER = meter.create_counter(
    "salvo_engine_placements",
    unit="1",
    description="Number of attempted ship placements",
)

# Rejected random samples tolerated before drawing from the enumerated legal set.
MAX_RANDOM_SAMPLES = 1000


class PlacementError(Enum):
    """Why a placement request was refused."""

    OUT_OF_BOUNDS = "out_of_bounds"
    OVERLAP = "overlap"
    OUT_OF_SEQUENCE = "out_of_sequence"
    GAME_ALREADY_OVER = "game_already_over"


@dataclass(frozen=True)
class PlacementResult:
    """Outcome of a placement request: the placed ship or the reason it was refused."""

    ship: Ship | None = None
    error: PlacementError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: PlacementError) -> PlacementResult:
        return cls(error=error)


def check_placement(
    board: Board, ship_index: int, anchor: Coordinate, orientation: Orientation
) -> PlacementError | None:
    """Return the first rule the placement breaks, or None when it is legal."""
    if ship_index != board.next_ship_index:
        return PlacementError.OUT_OF_SEQUENCE
    spec = board.catalog[ship_index]
    cells = footprint(anchor, orientation, spec.length)
    if not all(board.is_valid_coordinate(cell) for cell in cells):
        return PlacementError.OUT_OF_BOUNDS
    if any(board.cell_state(cell) is not CellState.EMPTY for cell in cells):
        return PlacementError.OVERLAP
    return None


def try_place(
    board: Board, ship_index: int, anchor: Coordinate, orientation: Orientation
) -> PlacementResult:
    """Place catalog ship ``ship_index`` at ``anchor`` if legal; leave the board untouched otherwise."""
    with tracer.start_as_current_span("board.try_place") as span:
        span.set_attribute("board.owner", board.owner)
        span.set_attribute("ship.index", ship_index)
        span.set_attribute("anchor.row", anchor.row)
        span.set_attribute("anchor.col", anchor.col)
        span.set_attribute("orientation", orientation.value)

        error = check_placement(board, ship_index, anchor, orientation)
        if error is not None:
            span.set_attribute("placement.error", error.value)
            PLACEMENT_COUNTER.add(1, attributes={"result": error.value, "owner": board.owner})
            logger.warning(
                "ship_placement_rejected",
                extra={
                    "owner": board.owner,
                    "ship_index": ship_index,
                    "row": anchor.row,
                    "col": anchor.col,
                    "orientation": orientation.value,
                    "reason": error.value,
                },
            )
            return PlacementResult.failure(error)

        ship = Ship(board.catalog[ship_index], anchor, orientation)
        for cell in ship.coordinates():
            board.set_cell_state(cell, CellState.OCCUPIED)
        board.ships.append(ship)

        PLACEMENT_COUNTER.add(1, attributes={"result": "success", "owner": board.owner})
        logger.info(
            "ship_placed",
            extra={
                "owner": board.owner,
                "ship": ship.name,
                "orientation": orientation.value,
                "row": anchor.row,
                "col": anchor.col,
            },
        )
        return PlacementResult(ship=ship)


def legal_placements(board: Board, ship_index: int) -> list[tuple[Coordinate, Orientation]]:
    """Enumerate every legal (anchor, orientation) for catalog ship ``ship_index``."""
    options: list[tuple[Coordinate, Orientation]] = []
    if ship_index != board.next_ship_index:
        return options
    for row in range(board.size):
        for col in range(board.size):
            anchor = Coordinate(row, col)
            for orientation in Orientation:
                if check_placement(board, ship_index, anchor, orientation) is None:
                    options.append((anchor, orientation))
    return options


def place_randomly(
    board: Board,
    ship_index: int,
    rng: random.Random,
    max_samples: int = MAX_RANDOM_SAMPLES,
) -> PlacementResult:
    """Sample uniform anchors/orientations until one is legal.

    After ``max_samples`` rejections the choice is drawn from the enumerated
    legal placements instead, so the call always returns. A failed result is
    returned only when no legal placement exists at all.
    """
    with tracer.start_as_current_span("board.place_randomly") as span:
        span.set_attribute("board.owner", board.owner)
        span.set_attribute("ship.index", ship_index)
        if ship_index != board.next_ship_index:
            return PlacementResult.failure(PlacementError.OUT_OF_SEQUENCE)

        orientations = list(Orientation)
        for attempt in range(1, max_samples + 1):
            anchor = Coordinate(rng.randrange(board.size), rng.randrange(board.size))
            orientation = rng.choice(orientations)
            if check_placement(board, ship_index, anchor, orientation) is None:
                span.set_attribute("attempts", attempt)
                logger.debug(
                    "random_ship_placed",
                    extra={"owner": board.owner, "ship_index": ship_index, "attempts": attempt},
                )
                return try_place(board, ship_index, anchor, orientation)

        options = legal_placements(board, ship_index)
        span.set_attribute("fallback", True)
        if not options:
            logger.warning(
                "random_placement_exhausted",
                extra={"owner": board.owner, "ship_index": ship_index},
            )
            return PlacementResult.failure(PlacementError.OVERLAP)
        anchor, orientation = rng.choice(options)
        logger.debug(
            "random_ship_placed_from_legal_set",
            extra={"owner": board.owner, "ship_index": ship_index, "options": len(options)},
        )
        return try_place(board, ship_index, anchor, orientation)
