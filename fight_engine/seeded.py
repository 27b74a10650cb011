"""
Seeded fights. Every draw comes from the seed triple, so a spectator can
regenerate the exact script once the server seed is revealed.

The winner is not left to the simulated health totals: it is the parity
verdict of the outcome verifier. When the simulated fight ends the other
way round, the script is mirrored (actors swapped) so the same choreography
ends with the predetermined winner.
"""
from typing import Optional

from fight_engine.base import BaseFightGenerator, FightResolution
from fight_engine.models import Actor, FightScript, PlayerInfo
from fight_engine.rng import SeedStream
from fight_engine.rules import FightRules
from tools.fairness import Outcome, OutcomeVerifier, SeedTriple, get_default_verifier


class SeededFightGenerator(BaseFightGenerator):
    mode = "seeded"
    display_name = "Provably Fair"

    def __init__(self, rules: Optional[FightRules] = None,
                 verifier: Optional[OutcomeVerifier] = None):
        super().__init__(rules)
        self.verifier = verifier if verifier is not None else get_default_verifier()

    def resolve(self, triple: SeedTriple, player_a: PlayerInfo, player_b: PlayerInfo,
                match_id: str) -> FightResolution:
        outcome = self.verifier.verify_triple(triple)
        target = Actor(outcome.winner)
        stream = SeedStream(triple, provider=self.verifier.provider)

        res = self.resolve_fight(stream, player_a, player_b, match_id,
                                 tiebreak=lambda: target)
        if res.script.winner is not target:
            res.script = res.script.mirrored()
            res.stats.mirrored = True
            res.stats.final_health = {
                Actor(k).opponent.value: v for k, v in res.stats.final_health.items()
            }
        return res

    def generate(self, triple: SeedTriple, player_a: PlayerInfo, player_b: PlayerInfo,
                 match_id: str) -> FightScript:
        return self.resolve(triple, player_a, player_b, match_id).script

    def outcome_for(self, triple: SeedTriple) -> Outcome:
        return self.verifier.verify_triple(triple)

    def _simulate_one(self, rng, index: int, seed: int) -> FightResolution:
        triple = SeedTriple(f"simulation-{seed}", "simulation", index)
        player_a = PlayerInfo(id="sim-a", username="A")
        player_b = PlayerInfo(id="sim-b", username="B")
        return self.resolve(triple, player_a, player_b, f"sim-{seed}-{index}")
