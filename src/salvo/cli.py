"""Terminal front-end for playing salvo against the random bot."""

from __future__ import annotations

import argparse
import logging
import time
from typing import Sequence

from salvo.config import GameSettings
from salvo.engine.attack import AttackError, AttackOutcome, AttackResult
from salvo.engine.board import BoardView, CellState, ShipStatus
from salvo.engine.game import GameSession, new_game
from salvo.engine.instrumented_game import InstrumentedGameSession
from salvo.engine.placement import PlacementError
from salvo.engine.ship import Coordinate, Orientation
from salvo.engine.turns import BattlePhase, PlacementPhase, Side
from salvo.telemetry import configure_console_logging, init_telemetry, shutdown_telemetry

COLUMN_LABELS = "ABCDEFGHIJ"

CELL_SYMBOLS = {
    CellState.EMPTY: "~",
    CellState.OCCUPIED: "S",
    CellState.HIT: "H",
    CellState.MISS: "M",
}

PLACEMENT_MESSAGES = {
    PlacementError.OUT_OF_BOUNDS: "Cannot place ship there! It would stick out of the grid.",
    PlacementError.OVERLAP: "Cannot place ship there! It overlaps another ship.",
    PlacementError.OUT_OF_SEQUENCE: "No ship is waiting to be placed.",
    PlacementError.GAME_ALREADY_OVER: "The game is already over.",
}

ATTACK_ERROR_MESSAGES = {
    AttackError.OUT_OF_BOUNDS: "That cell is off the grid.",
    AttackError.NOT_YOUR_TURN: "It is not your turn.",
    AttackError.GAME_ALREADY_OVER: "The game is already over.",
}


def parse_coordinate(text: str, size: int = len(COLUMN_LABELS)) -> Coordinate:
    """Parse a label such as ``B7`` (column letter, 1-based row number)."""
    cleaned = text.strip().upper()
    if len(cleaned) < 2:
        raise ValueError("Use a column letter followed by a row number, e.g. B7.")
    letter, digits = cleaned[0], cleaned[1:].strip()
    if letter not in COLUMN_LABELS[:size]:
        raise ValueError(f"Column must be between A and {COLUMN_LABELS[size - 1]}.")
    try:
        row = int(digits) - 1
    except ValueError as exc:
        raise ValueError(f"Row must be a number between 1 and {size}.") from exc
    if row not in range(size):
        raise ValueError(f"Row must be a number between 1 and {size}.")
    return Coordinate(row, COLUMN_LABELS.index(letter))


def coordinate_label(coord: Coordinate) -> str:
    return f"{COLUMN_LABELS[coord.col]}{coord.row + 1}"


def format_board(view: BoardView) -> str:
    header = "   " + " ".join(f"{COLUMN_LABELS[col]:>2}" for col in range(len(view)))
    rows = [header]
    for row, cells in enumerate(view):
        symbols = " ".join(f"{CELL_SYMBOLS[state]:>2}" for state in cells)
        rows.append(f"{row + 1:>2} {symbols}")
    return "\n".join(rows)


def format_fleet_status(statuses: Sequence[ShipStatus], own_fleet: bool) -> str:
    lines = []
    for status in statuses:
        if status.sunk:
            label = "SUNK"
        elif own_fleet:
            label = "ACTIVE"
        else:
            label = "?"
        lines.append(f"{status.name} - {label}")
    return "\n".join(lines)


def describe_attack(result: AttackResult, side: Side) -> str:
    if result.error is not None:
        return ATTACK_ERROR_MESSAGES[result.error]
    if result.outcome is AttackOutcome.ALREADY_TRIED:
        feedback = "Already attacked there!"
    elif result.outcome is AttackOutcome.HIT_AND_SUNK:
        feedback = f"{result.ship_name} sunk!"
    elif result.outcome is AttackOutcome.HIT:
        feedback = "Hit!"
    else:
        feedback = "Miss!"
    if side is Side.BOT and result.coordinate is not None:
        return f"Enemy attacks {coordinate_label(result.coordinate)} - {feedback}"
    return feedback


def _render(session: GameSession, settings: GameSettings) -> None:
    print("\nYour Fleet:")
    print(format_board(session.view_board(Side.HUMAN)))
    print(format_fleet_status(session.board(Side.HUMAN).ship_statuses(), own_fleet=True))
    if isinstance(session.state, PlacementPhase):
        return
    print("\nEnemy Fleet:")
    print(format_board(session.view_board(Side.BOT, hide_ships=not settings.reveal_enemy_fleet)))
    print(format_fleet_status(session.board(Side.BOT).ship_statuses(), own_fleet=False))


def _placement_phase(session: GameSession, settings: GameSettings) -> None:
    orientation = Orientation.HORIZONTAL
    while True:
        state = session.state
        if not (isinstance(state, PlacementPhase) and state.side is Side.HUMAN):
            return
        spec = session.catalog[state.ship_index]
        _render(session, settings)
        raw = input(
            f"Place your {spec.name} ({spec.length} cells) - {orientation.value.title()}. "
            "Enter a cell, 'r' to rotate, 'a' to auto-place, 'q' to quit: "
        ).strip()
        command = raw.lower()
        if command == "q":
            raise SystemExit("Goodbye!")
        if command == "r":
            orientation = orientation.toggled()
            continue
        if command == "a":
            session.auto_place_fleet()
            print("Your remaining ships have been positioned automatically.")
            continue
        try:
            anchor = parse_coordinate(raw)
        except ValueError as exc:
            print(f"Invalid input: {exc}")
            continue
        result = session.place_ship(anchor, orientation)
        if result.ok:
            print(f"{spec.name} placed!")
        else:
            print(PLACEMENT_MESSAGES[result.error])


def _prompt_attack() -> Coordinate:
    while True:
        raw = input("Your turn - enter a cell to attack (e.g. B7) or 'q' to quit: ").strip()
        if raw.lower() == "q":
            raise SystemExit("Goodbye!")
        try:
            return parse_coordinate(raw)
        except ValueError as exc:
            print(f"Invalid input: {exc}")


def _battle_phase(session: GameSession, settings: GameSettings) -> None:
    print("All ships placed! Attack the enemy fleet!")
    while isinstance(session.state, BattlePhase):
        if session.state.active_side is Side.HUMAN:
            _render(session, settings)
            result = session.attack(_prompt_attack())
            print(describe_attack(result, Side.HUMAN))
        else:
            print("Bot is thinking...")
            if settings.bot_delay_seconds:
                time.sleep(settings.bot_delay_seconds)
            print(describe_attack(session.play_bot_turn(), Side.BOT))


def play_game(settings: GameSettings | None = None) -> Side | None:
    """Run one interactive game and return the winning side."""
    settings = settings or GameSettings()
    print("Welcome to Salvo!")
    session = new_game(rng_seed=settings.seed, session_cls=InstrumentedGameSession)
    try:
        _placement_phase(session, settings)
        _battle_phase(session, settings)
    finally:
        session.close()

    _render(session, settings)
    if session.winner is Side.HUMAN:
        print("\nYou Win! All enemy ships sunk!")
    else:
        print("\nYou Lose! All your ships sunk!")
    return session.winner


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Play salvo against a random bot.")
    parser.add_argument("--seed", type=int, default=None, help="Optional RNG seed for reproducibility.")
    parser.add_argument(
        "--bot-delay",
        type=float,
        default=None,
        help="Seconds the bot pauses before each attack (default 0.6).",
    )
    parser.add_argument(
        "--reveal",
        action="store_const",
        const=True,
        default=None,
        help="Show the enemy fleet (debugging aid).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log engine events to stderr.")
    args = parser.parse_args(argv)

    configure_console_logging(logging.INFO if args.verbose else logging.ERROR)
    init_telemetry()
    settings = GameSettings.from_env(
        seed=args.seed,
        bot_delay_seconds=args.bot_delay,
        reveal_enemy_fleet=args.reveal,
    )
    try:
        play_game(settings)
    finally:
        shutdown_telemetry()


if __name__ == "__main__":
    main()
