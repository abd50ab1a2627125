"""Human-versus-bot game session: two boards, the turn controller and the bot."""

from __future__ import annotations

import logging
import random
from typing import Sequence

from salvo.ai.strategy import RandomTargeting, TargetingStrategy
from salvo.telemetry import get_meter, get_tracer

from .attack import AttackResult, resolve_attack
from .board import BOARD_SIZE, Board, BoardView, validate_catalog
from .placement import PlacementResult, place_randomly, try_place
from .ship import DEFAULT_CATALOG, Coordinate, Orientation, ShipSpec
from .turns import BattlePhase, GameOverPhase, PlacementPhase, Side, TurnController, TurnState

logger = logging.getLogger(__name__)
tracer = get_tracer("salvo.engine.game")
meter = get_meter("salvo.engine.game")

TURN_COUNTER = meter.create_counter(
    "salvo_engine_turns",
    unit="1",
    description="Attack requests handled by a GameSession",
)


class GameSession:
    """One game between the human and the bot.

    All game data lives on the session; every operation goes through it so the
    turn controller can gate which side may mutate which board.
    """

    def __init__(
        self,
        catalog: Sequence[ShipSpec] = DEFAULT_CATALOG,
        rng_seed: int | None = None,
        strategy: TargetingStrategy | None = None,
    ) -> None:
        self.catalog: tuple[ShipSpec, ...] = tuple(catalog)
        validate_catalog(self.catalog, BOARD_SIZE)
        self.boards: dict[Side, Board] = {
            side: Board(size=BOARD_SIZE, catalog=self.catalog, owner=side.value) for side in Side
        }
        self.controller = TurnController(len(self.catalog))
        self.strategy: TargetingStrategy = strategy or RandomTargeting()
        self._rng = random.Random(rng_seed)

    @property
    def state(self) -> TurnState:
        return self.controller.state

    @property
    def is_over(self) -> bool:
        return self.controller.is_over

    @property
    def winner(self) -> Side | None:
        state = self.controller.state
        return state.winner if isinstance(state, GameOverPhase) else None

    def board(self, side: Side) -> Board:
        return self.boards[side]

    def view_board(self, side: Side, hide_ships: bool = False) -> BoardView:
        return self.boards[side].view(hide_ships=hide_ships)

    def place_ship(self, anchor: Coordinate, orientation: Orientation) -> PlacementResult:
        """Place the human's next catalog ship at ``anchor``."""
        with tracer.start_as_current_span("game.place_ship") as span:
            span.set_attribute("row", anchor.row)
            span.set_attribute("col", anchor.col)
            span.set_attribute("orientation", orientation.value)
            error = self.controller.placement_error(Side.HUMAN)
            if error is not None:
                logger.warning(
                    "placement_rejected",
                    extra={"reason": error.value, "state": repr(self.state)},
                )
                return PlacementResult.failure(error)

            state = self._placement_state()
            result = try_place(self.boards[Side.HUMAN], state.ship_index, anchor, orientation)
            if result.ok:
                self._advance_placement()
            return result

    def auto_place_fleet(self) -> list[PlacementResult]:
        """Randomly place every ship the human has not placed yet."""
        results: list[PlacementResult] = []
        board = self.boards[Side.HUMAN]
        while self.controller.placement_error(Side.HUMAN) is None:
            state = self._placement_state()
            result = place_randomly(board, state.ship_index, self._rng)
            results.append(result)
            if not result.ok:
                break
            self._advance_placement()
        return results

    def attack(self, coord: Coordinate, side: Side = Side.HUMAN) -> AttackResult:
        """Fire at ``coord`` on the opponent of ``side``, enforcing turn order and the win rule."""
        with tracer.start_as_current_span("game.attack") as span:
            span.set_attribute("side", side.value)
            span.set_attribute("row", coord.row)
            span.set_attribute("col", coord.col)
            error = self.controller.attack_error(side)
            if error is not None:
                logger.warning(
                    "attack_rejected",
                    extra={"side": side.value, "reason": error.value, "state": repr(self.state)},
                )
                TURN_COUNTER.add(1, attributes={"result": error.value, "side": side.value})
                return AttackResult.failure(coord, error)

            defender = self.boards[side.opponent()]
            result = resolve_attack(defender, coord)
            if result.outcome is None:
                TURN_COUNTER.add(1, attributes={"result": result.error.value, "side": side.value})
                return result

            new_state = self.controller.attack_resolved(side, result.outcome, defender.all_sunk())
            span.set_attribute("outcome", result.outcome.value)
            TURN_COUNTER.add(1, attributes={"result": result.outcome.value, "side": side.value})
            if isinstance(new_state, GameOverPhase):
                span.set_attribute("game.winner", new_state.winner.value)
                logger.info("game_finished", extra={"winner": new_state.winner.value})
            return result

    def play_bot_turn(self) -> AttackResult:
        """Let the strategy pick a target on the human's hidden board and attack it."""
        error = self.controller.attack_error(Side.BOT)
        if error is not None:
            logger.warning(
                "bot_turn_rejected",
                extra={"reason": error.value, "state": repr(self.state)},
            )
            return AttackResult.failure(None, error)
        view = self.boards[Side.HUMAN].view(hide_ships=True)
        target = self.strategy.choose_target(view, self._rng)
        return self.attack(target, side=Side.BOT)

    def valid_targets(self, side: Side) -> list[Coordinate]:
        """Return every cell ``side`` could still usefully attack."""
        if not isinstance(self.state, BattlePhase):
            return []
        return self.boards[side.opponent()].untried_coordinates()

    def close(self) -> None:
        """Release per-game resources. A plain session holds none."""

    def _placement_state(self) -> PlacementPhase:
        state = self.state
        if not isinstance(state, PlacementPhase):
            raise RuntimeError(f"Expected a placement phase, found {state!r}.")
        return state

    def _advance_placement(self) -> None:
        new_state = self.controller.ship_placed()
        if isinstance(new_state, PlacementPhase) and new_state.side is Side.BOT:
            self._place_bot_fleet()

    def _place_bot_fleet(self) -> None:
        with tracer.start_as_current_span("game.place_bot_fleet"):
            board = self.boards[Side.BOT]
            state = self.state
            while isinstance(state, PlacementPhase) and state.side is Side.BOT:
                result = place_randomly(board, state.ship_index, self._rng)
                if not result.ok:
                    raise RuntimeError(
                        f"Could not lay out the bot fleet: {self.catalog[state.ship_index].name} "
                        f"has no legal position ({result.error})."
                    )
                state = self.controller.ship_placed()
            logger.info("battle_started", extra={"active_side": Side.HUMAN.value})


def new_game(
    catalog: Sequence[ShipSpec] = DEFAULT_CATALOG,
    rng_seed: int | None = None,
    strategy: TargetingStrategy | None = None,
    session_cls: type[GameSession] = GameSession,
) -> GameSession:
    """Create a session with two empty boards, waiting for the human's first ship.

    ``session_cls`` lets callers pick a subclass, such as the instrumented session.
    """
    session = session_cls(catalog=catalog, rng_seed=rng_seed, strategy=strategy)
    logger.info(
        "game_created",
        extra={"fleet_size": len(session.catalog), "session": session_cls.__name__},
    )
    return session
