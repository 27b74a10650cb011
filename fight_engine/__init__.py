"""
GAMBLEFIGHTS — Fight Script Engine

Deterministic-shape combat scripts for the playback surface.

Usage:
    from fight_engine import get_generator
    script = get_generator("demo").generate()

    from tools.fairness import SeedTriple
    gen = get_generator("seeded")
    script = gen.generate(SeedTriple(server_seed, client_seed, nonce), player_a, player_b, match_id)
"""

from fight_engine.demo import DemoFightGenerator
from fight_engine.models import Actor, EventType, FightEvent, FightScript, PlayerInfo
from fight_engine.rules import FightRules
from fight_engine.seeded import SeededFightGenerator

GENERATORS = {
    "demo": DemoFightGenerator,
    "seeded": SeededFightGenerator,
}

GENERATOR_MODES = list(GENERATORS.keys())


def get_generator(mode: str, **kwargs):
    """Get the fight-script generator for a mode."""
    cls = GENERATORS.get(mode.lower())
    if cls is None:
        raise ValueError(f"Unknown generator mode: {mode}. Available: {GENERATOR_MODES}")
    return cls(**kwargs)


def generate_demo_fight(seed=None) -> FightScript:
    """One spectator-mode fight between two random gladiators."""
    return DemoFightGenerator(seed=seed).generate()


__all__ = [
    "Actor", "EventType", "FightEvent", "FightScript", "PlayerInfo", "FightRules",
    "DemoFightGenerator", "SeededFightGenerator",
    "GENERATORS", "GENERATOR_MODES", "get_generator", "generate_demo_fight",
]
