"""Turn state machine: placement, battle and the terminal game-over state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Union

from .attack import AttackError, AttackOutcome
from .placement import PlacementError

logger = logging.getLogger(__name__)


class Side(Enum):
    """The two participants."""

    HUMAN = "human"
    BOT = "bot"

    def opponent(self) -> Side:
        """Return the opposing side."""
        return Side.BOT if self is Side.HUMAN else Side.HUMAN


class GamePhase(Enum):
    """High-level lifecycle of a match."""

    PLACEMENT = "placement"
    BATTLE = "battle"
    GAME_OVER = "game_over"


@dataclass(frozen=True)
class PlacementPhase:
    side: Side
    ship_index: int

    phase = GamePhase.PLACEMENT


@dataclass(frozen=True)
class BattlePhase:
    active_side: Side

    phase = GamePhase.BATTLE


@dataclass(frozen=True)
class GameOverPhase:
    winner: Side

    phase = GamePhase.GAME_OVER


TurnState = Union[PlacementPhase, BattlePhase, GameOverPhase]


class TurnController:
    """Holds the current :data:`TurnState` and applies the transition rules.

    The controller never touches a board. Callers ask it whether a request is
    allowed, perform the request, then report what happened.
    """

    def __init__(self, fleet_size: int) -> None:
        if fleet_size <= 0:
            raise ValueError("A fleet needs at least one ship.")
        self.fleet_size = fleet_size
        self._state: TurnState = PlacementPhase(Side.HUMAN, 0)

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def is_over(self) -> bool:
        return isinstance(self._state, GameOverPhase)

    def placement_error(self, side: Side) -> PlacementError | None:
        """Return why ``side`` may not place a ship now, or None if it may."""
        if isinstance(self._state, GameOverPhase):
            return PlacementError.GAME_ALREADY_OVER
        if isinstance(self._state, PlacementPhase) and self._state.side is side:
            return None
        return PlacementError.OUT_OF_SEQUENCE

    def attack_error(self, side: Side) -> AttackError | None:
        """Return why ``side`` may not attack now, or None if it may."""
        if isinstance(self._state, GameOverPhase):
            return AttackError.GAME_ALREADY_OVER
        if isinstance(self._state, BattlePhase) and self._state.active_side is side:
            return None
        return AttackError.NOT_YOUR_TURN

    def ship_placed(self) -> TurnState:
        """Advance past one successfully placed ship."""
        state = self._state
        if not isinstance(state, PlacementPhase):
            raise RuntimeError(f"No placement in progress (state={state}).")
        next_index = state.ship_index + 1
        if next_index < self.fleet_size:
            self._transition(PlacementPhase(state.side, next_index))
        elif state.side is Side.HUMAN:
            self._transition(PlacementPhase(Side.BOT, 0))
        else:
            # Human always opens the battle.
            self._transition(BattlePhase(Side.HUMAN))
        return self._state

    def attack_resolved(self, side: Side, outcome: AttackOutcome, defender_defeated: bool) -> TurnState:
        """Apply the battle rules after ``side`` attacked and got ``outcome``."""
        state = self._state
        if not isinstance(state, BattlePhase) or state.active_side is not side:
            raise RuntimeError(f"{side.value} is not the active side (state={state}).")
        if outcome is AttackOutcome.MISS:
            self._transition(BattlePhase(side.opponent()))
        if defender_defeated:
            self._transition(GameOverPhase(side))
        return self._state

    def _transition(self, new_state: TurnState) -> None:
        logger.debug(
            "turn_transition",
            extra={"from_state": repr(self._state), "to_state": repr(new_state)},
        )
        self._state = new_state
