"""Game session with per-game telemetry: a span for the whole match and game-level metrics."""

from __future__ import annotations

import time
from typing import Any

from salvo.engine.attack import AttackResult
from salvo.engine.game import GameSession
from salvo.engine.placement import PlacementResult
from salvo.engine.ship import Coordinate, Orientation
from salvo.engine.turns import BattlePhase, Side
from salvo.telemetry import get_logger, get_tracer, record_game_duration, record_game_metric


class InstrumentedGameSession(GameSession):
    """Wraps GameSession with tracing, metrics, and logging."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._logger = get_logger("salvo.engine")
        self._tracer = get_tracer("salvo.engine")
        self._game_span_cm = None
        self._game_span = None
        self._game_start_time: float | None = None
        self._attack_count = 0
        self._setup_recorded = False

    def place_ship(self, anchor: Coordinate, orientation: Orientation) -> PlacementResult:
        if self._game_span_cm is None and not self.is_over:
            self._start_game_span()
        with self._tracer.start_as_current_span("salvo.engine.place_ship") as span:
            result = super().place_ship(anchor, orientation)
            span.set_attribute("ok", result.ok)
            if not result.ok:
                record_game_metric(
                    "salvo_game_invalid_placements_total", 1, {"reason": result.error.value}
                )
            self._record_battle_start()
            return result

    def auto_place_fleet(self) -> list[PlacementResult]:
        if self._game_span_cm is None and not self.is_over:
            self._start_game_span()
        with self._tracer.start_as_current_span("salvo.engine.auto_place_fleet") as span:
            results = super().auto_place_fleet()
            span.set_attribute("placed", sum(1 for result in results if result.ok))
            self._record_battle_start()
            return results

    def attack(self, coord: Coordinate, side: Side = Side.HUMAN) -> AttackResult:
        with self._tracer.start_as_current_span("salvo.engine.attack") as span:
            span.set_attribute("side", side.value)
            span.set_attribute("coord.row", coord.row)
            span.set_attribute("coord.col", coord.col)

            result = super().attack(coord, side=side)
            if not result.ok:
                record_game_metric(
                    "salvo_game_invalid_attacks_total",
                    1,
                    {"side": side.value, "reason": result.error.value},
                )
                span.set_attribute("error", result.error.value)
                self._logger.warning(
                    "Rejected attack from %s at (%d,%d): %s",
                    side.value,
                    coord.row,
                    coord.col,
                    result.error.value,
                )
                return result

            self._attack_count += 1
            span.set_attribute("outcome", result.outcome.value)
            record_game_metric("salvo_attacks_total", 1, {"side": side.value})
            record_game_metric(
                "salvo_attacks_by_outcome_total",
                1,
                {"side": side.value, "outcome": result.outcome.value},
            )
            self._logger.info(
                "attack side=%s coord=(%d,%d) outcome=%s",
                side.value,
                coord.row,
                coord.col,
                result.outcome.value,
            )

            if self.winner is not None:
                span.set_attribute("winner", self.winner.value)
                self._finish_game()
            return result

    def _record_battle_start(self) -> None:
        if isinstance(self.state, BattlePhase) and not self._setup_recorded:
            self._setup_recorded = True
            record_game_metric(
                "salvo_game_setup_total",
                1,
                {"ships_per_side": len(self.catalog)},
            )

    def _start_game_span(self) -> None:
        self._game_start_time = time.perf_counter()
        self._game_span_cm = self._tracer.start_as_current_span("salvo.engine.game")
        self._game_span = self._game_span_cm.__enter__()
        self._game_span.set_attribute("ships_per_side", len(self.catalog))

    def _finish_game(self) -> None:
        duration = (time.perf_counter() - self._game_start_time) if self._game_start_time else 0.0
        winner = self.winner.value if self.winner else "unknown"

        record_game_metric("salvo_game_completed_total", 1, {"winner": winner})
        record_game_duration("salvo_game_duration_seconds", duration, {"winner": winner})

        with self._tracer.start_as_current_span("salvo.engine.game_complete") as span:
            span.set_attribute("winner", winner)
            span.set_attribute("attacks", self._attack_count)
            span.set_attribute("duration_ms", duration * 1000)

        if self._game_span is not None:
            self._game_span.set_attribute("winner", winner)
            self._game_span.set_attribute("attacks", self._attack_count)
            self._game_span.set_attribute("duration_ms", duration * 1000)

        self._logger.info(
            "Game finished. Winner=%s attacks=%d duration_s=%.3f", winner, self._attack_count, duration
        )
        self._close_game_span()

    def close(self) -> None:
        """End the game span of a match that was left before anyone won."""
        if self._game_span_cm is None:
            return
        placed = len(self.board(Side.HUMAN).ships)
        record_game_metric("salvo_game_abandoned_total", 1, {"phase": self.state.phase.value})
        self._game_span.set_attribute("abandoned", True)
        self._game_span.set_attribute("attacks", self._attack_count)
        self._logger.info(
            "Game abandoned. phase=%s ships_placed=%d attacks=%d",
            self.state.phase.value,
            placed,
            self._attack_count,
        )
        self._close_game_span()

    def _close_game_span(self) -> None:
        if self._game_span_cm is not None:
            self._game_span_cm.__exit__(None, None, None)
            self._game_span_cm = None
            self._game_span = None
