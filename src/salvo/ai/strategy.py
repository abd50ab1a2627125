"""Move-selection policies for the automated side."""

from __future__ import annotations

import logging
import random
from typing import Protocol

from salvo.engine.board import BoardView, untried_cells
from salvo.engine.ship import Coordinate

logger = logging.getLogger(__name__)

# Rejected samples tolerated before choosing among the untried cells directly.
MAX_TARGET_SAMPLES = 400


class TargetingStrategy(Protocol):
    """Chooses the next cell to attack on the opponent's (hidden) board."""

    def choose_target(self, view: BoardView, rng: random.Random) -> Coordinate:
        ...


class RandomTargeting:
    """Uniform random targeting with no hunt/adjacency heuristics.

    Coordinates are sampled uniformly and resampled while they land on a cell
    that was already hit or missed. After ``max_samples`` rejections the target
    is drawn uniformly from the remaining untried cells, which keeps the
    distribution identical while bounding the work on a nearly full board.
    """

    def __init__(self, max_samples: int = MAX_TARGET_SAMPLES) -> None:
        self.max_samples = max_samples

    def choose_target(self, view: BoardView, rng: random.Random) -> Coordinate:
        size = len(view)
        if size == 0:
            raise ValueError("Cannot target an empty board view.")
        for attempt in range(1, self.max_samples + 1):
            row = rng.randrange(size)
            col = rng.randrange(len(view[row]))
            if not view[row][col].attacked:
                logger.debug("bot_target_sampled", extra={"row": row, "col": col, "attempts": attempt})
                return Coordinate(row, col)

        remaining = untried_cells(view)
        if not remaining:
            raise ValueError("Every cell has already been attacked.")
        target = rng.choice(remaining)
        logger.debug(
            "bot_target_from_untried",
            extra={"row": target.row, "col": target.col, "remaining": len(remaining)},
        )
        return target
