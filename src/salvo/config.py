"""Front-end settings for a game of salvo."""

from __future__ import annotations

import os
from typing import Any, Dict

from pydantic import BaseModel, Field

from salvo.telemetry.config import TRUTHY


class GameSettings(BaseModel):
    """Knobs of the presentation layer. Grid size and fleet are fixed by the rules."""

    seed: int | None = None
    bot_delay_seconds: float = Field(default=0.6, ge=0.0)
    reveal_enemy_fleet: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> "GameSettings":
        """Read ``SALVO_SEED``, ``SALVO_BOT_DELAY`` and ``SALVO_REVEAL_ENEMY``; explicit overrides win."""
        data: Dict[str, Any] = {}
        seed = os.getenv("SALVO_SEED")
        if seed:
            data["seed"] = seed
        delay = os.getenv("SALVO_BOT_DELAY")
        if delay:
            data["bot_delay_seconds"] = delay
        reveal = os.getenv("SALVO_REVEAL_ENEMY")
        if reveal is not None:
            data["reveal_enemy_fleet"] = reveal.strip().lower() in TRUTHY
        data.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**data)
