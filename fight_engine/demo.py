"""Demo fights for spectator mode: ambient randomness, not verifiable."""
import time
from typing import Optional

from config.settings import FightSettings
from fight_engine.base import BaseFightGenerator, FightResolution
from fight_engine.models import Actor, FightScript, PlayerInfo
from fight_engine.rng import demo_rng
from fight_engine.rules import FightRules


class DemoFightGenerator(BaseFightGenerator):
    mode = "demo"
    display_name = "Spectator Demo"

    def __init__(self, rng=None, rules: Optional[FightRules] = None,
                 seed: Optional[int] = None):
        super().__init__(rules)
        self.rng = rng if rng is not None else demo_rng(seed)

    def _tiebreak(self, rng):
        return lambda: Actor.PLAYER_B if rng.random() > 0.5 else Actor.PLAYER_A

    def pick_players(self) -> tuple:
        """Two distinct gladiators from the name pool."""
        names = FightSettings.GLADIATOR_NAMES
        name_a = names[int(self.rng.random() * len(names))]
        name_b = name_a
        while name_b == name_a:
            name_b = names[int(self.rng.random() * len(names))]

        player_a = PlayerInfo(id="demo-a", username=name_a,
                              character=FightSettings.DEMO_CHARACTER_A,
                              skin=FightSettings.DEMO_SKIN)
        player_b = PlayerInfo(id="demo-b", username=name_b,
                              character=FightSettings.DEMO_CHARACTER_B,
                              skin=FightSettings.DEMO_SKIN)
        return player_a, player_b

    def generate(self, player_a: Optional[PlayerInfo] = None,
                 player_b: Optional[PlayerInfo] = None,
                 match_id: Optional[str] = None) -> FightScript:
        if player_a is None or player_b is None:
            picked_a, picked_b = self.pick_players()
            player_a = player_a or picked_a
            player_b = player_b or picked_b
        match_id = match_id or f"demo-{int(time.time() * 1000)}"
        return self.resolve_fight(self.rng, player_a, player_b, match_id,
                                  self._tiebreak(self.rng)).script

    def _simulate_one(self, rng, index: int, seed: int) -> FightResolution:
        player_a = PlayerInfo(id="sim-a", username="A")
        player_b = PlayerInfo(id="sim-b", username="B")
        return self.resolve_fight(rng, player_a, player_b, f"sim-{seed}-{index}",
                                  self._tiebreak(rng))
