"""
GAMBLEFIGHTS — Fight Script Schema

Pydantic models for the animation script handed to the playback surface.
JSON uses camelCase keys and omits unset optional fields:

    {"matchId": "...", "playerA": {...}, "playerB": {...}, "winner": "playerA",
     "duration": 14.37, "events": [{"time": 1.12, "type": "attack_slash",
     "actor": "playerB", "hit": true, "crit": false, "damage": 13}, ...]}
"""

from __future__ import annotations

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


# ═══════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════

class EventType(str, Enum):
    ATTACK_SLASH = "attack_slash"
    REACT_BLOCK  = "react_block"
    REACT_DODGE  = "react_dodge"
    KO           = "ko"
    VICTORY      = "victory"


class Actor(str, Enum):
    PLAYER_A = "playerA"
    PLAYER_B = "playerB"

    @property
    def opponent(self) -> "Actor":
        return Actor.PLAYER_B if self is Actor.PLAYER_A else Actor.PLAYER_A


# ═══════════════════════════════════════════════════════════════
# Models
# ═══════════════════════════════════════════════════════════════

class PlayerInfo(BaseModel):
    """Descriptive identity of one combatant."""
    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    character: str = "fighter"       # skin identifier
    skin: str = "default"


class FightEvent(BaseModel):
    """One beat of combat, `time` seconds after the fight starts."""
    model_config = ConfigDict(frozen=True)

    time: float = Field(ge=0)
    type: EventType
    actor: Actor
    hit: Optional[bool] = None
    crit: Optional[bool] = None
    dodge: Optional[bool] = None
    damage: Optional[int] = Field(default=None, ge=0)

    def mirrored(self) -> "FightEvent":
        return self.model_copy(update={"actor": self.actor.opponent})


class FightScript(BaseModel):
    """Complete, ordered description of one match for deterministic playback."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    match_id: str = Field(alias="matchId")
    player_a: PlayerInfo = Field(alias="playerA")
    player_b: PlayerInfo = Field(alias="playerB")
    winner: Actor
    duration: float = Field(ge=0)
    events: list[FightEvent]

    @property
    def loser(self) -> Actor:
        return self.winner.opponent

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, indent: Optional[int] = None) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)

    def replay_health(self, start_health: int = 99) -> dict[Actor, int]:
        """Apply every hit in order; returns remaining health per side."""
        health = {Actor.PLAYER_A: start_health, Actor.PLAYER_B: start_health}
        for ev in self.events:
            if ev.type is EventType.ATTACK_SLASH and ev.hit:
                health[ev.actor.opponent] -= ev.damage or 0
        return health

    def check_invariants(self, start_health: int = 99) -> None:
        """Raise ValueError naming the first broken script invariant."""
        if not self.events:
            raise ValueError("events must not be empty")

        times = [ev.time for ev in self.events]
        if any(later < earlier for earlier, later in zip(times, times[1:])):
            raise ValueError("event times must be non-decreasing")

        health = self.replay_health(start_health)
        if health[self.loser] > 0:
            raise ValueError(f"loser {self.loser.value} still has {health[self.loser]} HP")
        if health[self.winner] <= 0:
            raise ValueError(f"winner {self.winner.value} has no HP left")

        if len(self.events) < 2:
            raise ValueError("script must end with ko and victory")
        ko, victory = self.events[-2], self.events[-1]
        if ko.type is not EventType.KO or ko.actor is not self.loser:
            raise ValueError("second-to-last event must be a ko for the loser")
        if victory.type is not EventType.VICTORY or victory.actor is not self.winner:
            raise ValueError("last event must be a victory for the winner")

        if self.duration != victory.time:
            raise ValueError(f"duration {self.duration} != victory time {victory.time}")

    def mirrored(self) -> "FightScript":
        """Same fight with the two sides' roles swapped (players stay in place)."""
        return self.model_copy(update={
            "winner": self.winner.opponent,
            "events": [ev.mirrored() for ev in self.events],
        })
