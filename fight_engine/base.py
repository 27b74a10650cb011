"""
GAMBLEFIGHTS — Base Fight Generator

Shared exchange loop for every fight-script generator. Subclasses only
decide where randomness comes from and who the combatants are.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional

from config.settings import get_logger
from fight_engine.models import Actor, EventType, FightEvent, FightScript, PlayerInfo
from fight_engine.rules import FightRules
from tools.errors import GeneratorNonTerminationError

logger = get_logger("fight")


def _t(value: float) -> float:
    """Schedule times are stored with 2 decimals."""
    return round(value, 2)


@dataclass
class FightStats:
    """Bookkeeping from one run of the exchange loop."""
    exchanges: int = 0
    hits: int = 0
    crits: int = 0
    blocks: int = 0
    dodges: int = 0
    cutoff_hit: bool = False
    mirrored: bool = False
    final_health: dict = field(default_factory=dict)


@dataclass
class FightResolution:
    script: FightScript
    stats: FightStats


@dataclass
class FightSimResult:
    """Monte Carlo statistics over many generated fights."""
    mode: str
    rounds: int
    player_a_win_rate: float
    avg_duration: float
    max_duration: float
    avg_exchanges: float
    avg_events: float
    crit_rate: float          # crits / hits
    hit_rate: float           # hits / exchanges
    cutoff_rate: float        # fights finished by the time cutoff
    confidence_95: tuple = (0.0, 0.0)

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "rounds": self.rounds,
            "player_a_win_rate": round(self.player_a_win_rate, 4),
            "avg_duration": round(self.avg_duration, 3),
            "max_duration": round(self.max_duration, 2),
            "avg_exchanges": round(self.avg_exchanges, 3),
            "avg_events": round(self.avg_events, 3),
            "crit_rate": round(self.crit_rate, 4),
            "hit_rate": round(self.hit_rate, 4),
            "cutoff_rate": round(self.cutoff_rate, 4),
            "confidence_95": [round(x, 4) for x in self.confidence_95],
        }


class BaseFightGenerator(ABC):
    """Abstract base for fight-script generators."""

    mode: str = "base"
    display_name: str = "Base Generator"

    def __init__(self, rules: Optional[FightRules] = None):
        self.rules = rules if rules is not None else FightRules.from_settings()

    @abstractmethod
    def generate(self, *args, **kwargs) -> FightScript:
        """Build one complete fight script."""
        ...

    @abstractmethod
    def _simulate_one(self, rng, index: int, seed: int) -> FightResolution:
        """Resolve one fight for simulate()."""
        ...

    # ── Exchange loop ─────────────────────────────────────────

    def resolve_fight(self, rng, player_a: PlayerInfo, player_b: PlayerInfo,
                      match_id: str,
                      tiebreak: Callable[[], Actor]) -> FightResolution:
        """Run exchanges until a side drops to 0 HP or the cutoff is reached.

        `rng.random()` is drawn in a fixed order per exchange: attacker,
        outcome, interval, then (hits only) crit and damage.
        `tiebreak()` picks the winner when the cutoff leaves equal health.
        """
        rules = self.rules
        health = {Actor.PLAYER_A: rules.start_health, Actor.PLAYER_B: rules.start_health}
        events: list[FightEvent] = []
        stats = FightStats()
        t = 0.0

        while health[Actor.PLAYER_A] > 0 and health[Actor.PLAYER_B] > 0 and t < rules.time_cutoff:
            if stats.exchanges >= rules.max_exchanges:
                raise GeneratorNonTerminationError(stats.exchanges, t)
            stats.exchanges += 1

            attacker = Actor.PLAYER_B if rng.random() > 0.5 else Actor.PLAYER_A
            defender = attacker.opponent
            roll = rng.random()
            t += rules.interval_min + rng.random() * rules.interval_spread

            if roll < rules.hit_chance:
                is_crit = rng.random() < rules.crit_chance
                base_damage = rules.damage_min + math.floor(rng.random() * rules.damage_spread)
                damage = math.floor(base_damage * rules.crit_multiplier) if is_crit else base_damage
                events.append(FightEvent(
                    time=_t(t), type=EventType.ATTACK_SLASH, actor=attacker,
                    hit=True, crit=is_crit, damage=damage,
                ))
                health[defender] -= damage
                stats.hits += 1
                stats.crits += int(is_crit)
            elif roll < rules.hit_chance + rules.block_chance:
                events.append(FightEvent(
                    time=_t(t), type=EventType.ATTACK_SLASH, actor=attacker, hit=False,
                ))
                events.append(FightEvent(
                    time=_t(t + rules.react_delay), type=EventType.REACT_BLOCK, actor=defender,
                ))
                stats.blocks += 1
            else:
                events.append(FightEvent(
                    time=_t(t), type=EventType.ATTACK_SLASH, actor=attacker,
                    hit=False, dodge=True,
                ))
                events.append(FightEvent(
                    time=_t(t + rules.react_delay), type=EventType.REACT_DODGE, actor=defender,
                ))
                stats.dodges += 1

        if health[Actor.PLAYER_A] <= 0:
            winner = Actor.PLAYER_B
        elif health[Actor.PLAYER_B] <= 0:
            winner = Actor.PLAYER_A
        else:
            # Cutoff with both standing: more health wins, then a finishing blow
            stats.cutoff_hit = True
            if health[Actor.PLAYER_A] != health[Actor.PLAYER_B]:
                winner = max(health, key=health.get)
            else:
                winner = tiebreak()
            loser = winner.opponent
            t += rules.interval_min
            events.append(FightEvent(
                time=_t(t), type=EventType.ATTACK_SLASH, actor=winner,
                hit=True, crit=False, damage=health[loser],
            ))
            stats.hits += 1
            logger.info(f"Fight {match_id} hit the {rules.time_cutoff:.0f}s cutoff; "
                        f"{winner.value} finishes with {health[winner]} HP left")
            health[loser] = 0

        loser = winner.opponent
        events.append(FightEvent(time=_t(t + rules.ko_delay), type=EventType.KO, actor=loser))
        victory_time = _t(t + rules.victory_delay)
        events.append(FightEvent(time=victory_time, type=EventType.VICTORY, actor=winner))
        stats.final_health = {k.value: v for k, v in health.items()}

        script = FightScript(
            match_id=match_id,
            player_a=player_a,
            player_b=player_b,
            winner=winner,
            duration=victory_time,
            events=events,
        )
        return FightResolution(script=script, stats=stats)

    # ── Simulation ────────────────────────────────────────────

    def simulate(self, rounds: int = 10_000, seed: int = 42) -> FightSimResult:
        """Generate `rounds` fights and summarise them."""
        from fight_engine.rng import demo_rng
        if rounds <= 0:
            raise ValueError(f"rounds must be positive, got {rounds}")
        rng = demo_rng(seed)

        a_wins = 0
        durations = []
        exchanges = events = hits = crits = cutoffs = 0

        for i in range(rounds):
            res = self._simulate_one(rng, i, seed)
            if res.script.winner is Actor.PLAYER_A:
                a_wins += 1
            durations.append(res.script.duration)
            exchanges += res.stats.exchanges
            events += len(res.script.events)
            hits += res.stats.hits
            crits += res.stats.crits
            cutoffs += int(res.stats.cutoff_hit)

        p = a_wins / rounds
        std_err = math.sqrt(p * (1 - p) / rounds)
        logger.info(f"Simulated {rounds:,} {self.mode} fights: playerA win rate {p:.4f}")

        return FightSimResult(
            mode=self.mode,
            rounds=rounds,
            player_a_win_rate=p,
            avg_duration=sum(durations) / rounds,
            max_duration=max(durations),
            avg_exchanges=exchanges / rounds,
            avg_events=events / rounds,
            crit_rate=crits / hits if hits else 0.0,
            hit_rate=hits / exchanges if exchanges else 0.0,
            cutoff_rate=cutoffs / rounds,
            confidence_95=(p - 1.96 * std_err, p + 1.96 * std_err),
        )

    def get_metadata(self) -> dict:
        """Generator metadata for the CLI."""
        return {
            "mode": self.mode,
            "display_name": self.display_name,
            "rules": self.rules.model_dump(),
        }
