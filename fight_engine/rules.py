"""
GAMBLEFIGHTS — Fight Rules

Every tunable of the exchange loop in one validated model.

Usage:
    from fight_engine.rules import FightRules
    rules = FightRules.from_settings()
    rules = FightRules(crit_chance=0.25)
"""

from __future__ import annotations

import math
from pydantic import BaseModel, ConfigDict, Field, model_validator

from config.settings import FightSettings


class FightRules(BaseModel):
    """Combat tuning. Probabilities are per exchange."""
    model_config = ConfigDict(frozen=True)

    # Health & safety valves
    start_health: int = Field(default=99, gt=0)
    time_cutoff: float = Field(default=30.0, gt=0)       # simulated seconds
    max_exchanges: int = Field(default=1000, gt=0)       # iteration cap

    # Cadence: interval = interval_min + U * interval_spread
    interval_min: float = Field(default=0.8, ge=0)
    interval_spread: float = Field(default=0.8, ge=0)

    # Exchange outcome weights (must sum to 1)
    hit_chance: float = Field(default=0.6, ge=0, le=1)
    block_chance: float = Field(default=0.2, ge=0, le=1)
    dodge_chance: float = Field(default=0.2, ge=0, le=1)

    # Damage: base = damage_min + floor(U * damage_spread)
    damage_min: int = Field(default=8, ge=0)
    damage_spread: int = Field(default=12, ge=0)
    crit_chance: float = Field(default=0.15, ge=0, le=1)
    crit_multiplier: float = Field(default=1.5, ge=1)

    # Schedule offsets
    react_delay: float = Field(default=0.1, ge=0)
    ko_delay: float = Field(default=0.5, ge=0)
    victory_delay: float = Field(default=0.8, ge=0)

    @model_validator(mode="after")
    def check_weights(self) -> "FightRules":
        total = self.hit_chance + self.block_chance + self.dodge_chance
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"hit/block/dodge chances must sum to 1, got {total:.4f}")
        if self.victory_delay < self.ko_delay:
            raise ValueError("victory_delay must not be shorter than ko_delay")
        if self.ko_delay < self.react_delay:
            raise ValueError("ko_delay must not be shorter than react_delay")
        # a reaction must land before the next attack
        if self.interval_min < self.react_delay:
            raise ValueError("interval_min must not be shorter than react_delay")
        return self

    @property
    def max_damage(self) -> int:
        base = self.damage_min + max(self.damage_spread - 1, 0)
        return math.floor(base * self.crit_multiplier)

    @classmethod
    def from_settings(cls, **overrides) -> "FightRules":
        """Rules with health/cutoff/iteration cap taken from the environment."""
        values = {
            "start_health": FightSettings.START_HEALTH,
            "time_cutoff": FightSettings.TIME_CUTOFF,
            "max_exchanges": FightSettings.MAX_EXCHANGES,
        }
        values.update(overrides)
        return cls(**values)
