#!/usr/bin/env python3
"""
Tests for the fight-script generators

Validates:
1.  Demo scripts satisfy every script invariant over many seeds
2.  Demo scripts use two distinct gladiators and the demo skins
3.  Event payloads per exchange type (hit / block / dodge)
4.  Times are stored with 2 decimals and never decrease
5.  Seeded scripts regenerate exactly from the seed triple
6.  Seeded winner always equals the outcome verifier's winner
7.  SeedStream draws are the HMAC blocks read as big-endian uint32
8.  Cutoff with unequal health: higher health wins via a finishing blow
9.  Cutoff with equal health: seeded tiebreak follows the outcome parity
10. Non-terminating rules raise GeneratorNonTerminationError
11. FightRules validation
12. JSON shape (camelCase, unset optionals omitted)
13. simulate() statistics
"""

import hashlib
import hmac
import json
import struct
import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import FightSettings
from fight_engine import (
    Actor, DemoFightGenerator, EventType, FightRules, FightScript, PlayerInfo,
    SeededFightGenerator, generate_demo_fight, get_generator,
)
from fight_engine.rng import SeedStream
from tools.errors import GeneratorNonTerminationError
from tools.fairness import SeedTriple, verify_outcome

PLAYER_A = PlayerInfo(id="u-1", username="Maximus", character="trump")
PLAYER_B = PlayerInfo(id="u-2", username="Crixus", character="maduro")


class ScriptedRNG:
    """Replays a fixed list of draws."""

    def __init__(self, values):
        self.values = list(values)

    def random(self):
        if not self.values:
            raise AssertionError("ScriptedRNG exhausted")
        return self.values.pop(0)


def _independent_check(script: FightScript, start_health: int = 99):
    """Re-derive the invariants without FightScript.check_invariants()."""
    events = script.events
    assert events, "events must not be empty"
    times = [e.time for e in events]
    assert times == sorted(times), "times must be non-decreasing"

    health = {"playerA": start_health, "playerB": start_health}
    for e in events:
        if e.type is EventType.ATTACK_SLASH and e.hit:
            defender = "playerB" if e.actor is Actor.PLAYER_A else "playerA"
            health[defender] -= e.damage
    loser = "playerB" if script.winner is Actor.PLAYER_A else "playerA"
    assert health[loser] <= 0
    assert health[script.winner.value] > 0

    assert events[-2].type is EventType.KO and events[-2].actor.value == loser
    assert events[-1].type is EventType.VICTORY and events[-1].actor is script.winner
    assert script.duration == events[-1].time


# ============================================================
# Demo generator
# ============================================================

def test_demo_invariants_many_seeds():
    """Every demo fight ends with ko → victory and consistent health."""
    for seed in range(300):
        script = DemoFightGenerator(seed=seed).generate()
        _independent_check(script)
        script.check_invariants()
    print("✅ 300 demo fights satisfy all script invariants")


def test_demo_players():
    """Two distinct names from the pool, demo characters and skins."""
    for seed in range(50):
        script = generate_demo_fight(seed=seed)
        assert script.player_a.username != script.player_b.username
        assert script.player_a.username in FightSettings.GLADIATOR_NAMES
        assert script.player_b.username in FightSettings.GLADIATOR_NAMES
        assert script.player_a.character == FightSettings.DEMO_CHARACTER_A
        assert script.player_b.character == FightSettings.DEMO_CHARACTER_B
        assert script.player_a.id == "demo-a" and script.player_b.id == "demo-b"
        assert script.match_id.startswith("demo-")
    print("✅ Demo fighters are distinct gladiators")


def test_demo_explicit_players():
    script = DemoFightGenerator(seed=1).generate(PLAYER_A, PLAYER_B, match_id="m-9")
    assert script.player_a == PLAYER_A and script.player_b == PLAYER_B
    assert script.match_id == "m-9"


def test_demo_seed_reproducible():
    a = DemoFightGenerator(seed=11).generate(PLAYER_A, PLAYER_B, match_id="x")
    b = DemoFightGenerator(seed=11).generate(PLAYER_A, PLAYER_B, match_id="x")
    assert a == b


def test_event_payloads():
    """Hit / block / dodge events carry the right flags."""
    seen = set()
    for seed in range(100):
        script = DemoFightGenerator(seed=seed).generate(PLAYER_A, PLAYER_B, match_id="p")
        events = script.events
        for i, e in enumerate(events[:-2]):
            if e.type is EventType.ATTACK_SLASH and e.hit:
                assert e.crit is not None and e.damage is not None
                assert e.dodge is None
                seen.add("hit")
            elif e.type is EventType.ATTACK_SLASH and e.dodge:
                assert e.hit is False
                nxt = events[i + 1]
                assert nxt.type is EventType.REACT_DODGE and nxt.actor is e.actor.opponent
                assert abs(nxt.time - e.time - 0.1) <= 0.011
                seen.add("dodge")
            elif e.type is EventType.ATTACK_SLASH:
                assert e.hit is False and e.dodge is None
                nxt = events[i + 1]
                assert nxt.type is EventType.REACT_BLOCK and nxt.actor is e.actor.opponent
                seen.add("block")
    assert seen == {"hit", "block", "dodge"}
    print("✅ Hit, block and dodge events all well-formed")


def test_damage_range():
    """Base damage 8..19, crits floor(base * 1.5) up to 28."""
    for seed in range(100):
        script = DemoFightGenerator(seed=seed).generate(PLAYER_A, PLAYER_B, match_id="d")
        # the last three events may hold a cutoff finishing blow
        for e in script.events[:-3]:
            if e.type is EventType.ATTACK_SLASH and e.hit:
                if e.crit:
                    assert 12 <= e.damage <= 28
                else:
                    assert 8 <= e.damage <= 19


def test_times_two_decimals():
    script = DemoFightGenerator(seed=5).generate(PLAYER_A, PLAYER_B, match_id="t")
    for e in script.events:
        assert e.time == round(e.time, 2)
        assert e.time >= 0


# ============================================================
# Seeded generator
# ============================================================

def test_seeded_reproducible():
    """Regenerating from the revealed triple reproduces the script."""
    triple = SeedTriple("test-server-seed", "test-client-seed", 0)
    gen = SeededFightGenerator()
    a = gen.generate(triple, PLAYER_A, PLAYER_B, "m-1")
    b = SeededFightGenerator().generate(triple, PLAYER_A, PLAYER_B, "m-1")
    assert a.to_json() == b.to_json()
    print("✅ Seeded script is reproducible from the seed triple")


def test_seeded_winner_matches_outcome():
    """Script winner == parity verdict, for both parities."""
    winners = set()
    gen = SeededFightGenerator()
    for nonce in range(120):
        triple = SeedTriple("server", "client", nonce)
        script = gen.generate(triple, PLAYER_A, PLAYER_B, f"m-{nonce}")
        assert script.winner.value == verify_outcome("server", "client", nonce).winner
        script.check_invariants()
        _independent_check(script)
        winners.add(script.winner)
    assert winners == {Actor.PLAYER_A, Actor.PLAYER_B}
    print("✅ Seeded winner follows the outcome verifier for 120 nonces")


def test_seeded_golden_winner():
    """test-server-seed / test-client-seed / 0 is even → playerA."""
    script = get_generator("seeded").generate(
        SeedTriple("test-server-seed", "test-client-seed", 0), PLAYER_A, PLAYER_B, "g")
    assert script.winner is Actor.PLAYER_A


def test_seeded_differs_by_nonce():
    gen = SeededFightGenerator()
    a = gen.generate(SeedTriple("s", "c", 1), PLAYER_A, PLAYER_B, "m")
    b = gen.generate(SeedTriple("s", "c", 2), PLAYER_A, PLAYER_B, "m")
    assert a.events != b.events


def test_seed_stream_blocks():
    """Draw i of block 0 = uint32 at bytes 4i..4i+4 of HMAC(seed, 'client-nonce:0')."""
    triple = SeedTriple("srv", "cli", 4)
    block0 = hmac.new(b"srv", b"cli-4:0", hashlib.sha256).digest()
    block1 = hmac.new(b"srv", b"cli-4:1", hashlib.sha256).digest()
    expected = list(struct.unpack(">8I", block0)) + list(struct.unpack(">8I", block1))

    stream = SeedStream(triple)
    draws = [stream.next_uint32() for _ in range(16)]
    assert draws == expected
    assert stream.draws == 16

    floats = SeedStream(triple)
    r = floats.random()
    assert 0 <= r < 1
    assert r == expected[0] / 2 ** 32


def test_mirrored_stats():
    """A mirrored fight reports final health from the winner's side."""
    gen = SeededFightGenerator()
    mirrored = 0
    for nonce in range(60):
        res = gen.resolve(SeedTriple("mirror", "check", nonce), PLAYER_A, PLAYER_B, "m")
        assert res.stats.final_health[res.script.loser.value] <= 0
        mirrored += int(res.stats.mirrored)
    assert 0 < mirrored < 60


# ============================================================
# Cutoff & termination
# ============================================================

def test_cutoff_higher_health_wins():
    """Cutoff with A at 99 and B at 91: A lands a 91-damage finishing blow."""
    rules = FightRules(hit_chance=0.5, block_chance=0.5, dodge_chance=0.0, time_cutoff=2.0)
    rng = ScriptedRNG([
        0.1, 0.1, 0.0, 0.9, 0.0,   # A hits B for 8 at 0.8s
        0.9, 0.9, 0.0,             # B attacks, A blocks at 1.6s
        0.1, 0.9, 0.0,             # A attacks, B blocks at 2.4s → past cutoff
    ])
    gen = DemoFightGenerator(rng=rng, rules=rules)
    res = gen.resolve_fight(rng, PLAYER_A, PLAYER_B, "cut",
                            tiebreak=lambda: pytest.fail("tiebreak must not run"))
    script = res.script

    assert res.stats.cutoff_hit
    assert script.winner is Actor.PLAYER_A
    assert [e.time for e in script.events] == [0.8, 1.6, 1.7, 2.4, 2.5, 3.2, 3.7, 4.0]
    finisher = script.events[-3]
    assert finisher.type is EventType.ATTACK_SLASH and finisher.actor is Actor.PLAYER_A
    assert finisher.hit is True and finisher.crit is False and finisher.damage == 91
    assert script.duration == 4.0
    script.check_invariants()
    print("✅ Cutoff: higher-health fighter wins with a finishing blow")


def test_cutoff_tie_follows_outcome():
    """No hits possible: equal health at the cutoff, seeded tiebreak = parity."""
    rules = FightRules(hit_chance=0.0, block_chance=0.5, dodge_chance=0.5)
    gen = SeededFightGenerator(rules=rules)
    for nonce in range(10):
        triple = SeedTriple("tie", "break", nonce)
        res = gen.resolve(triple, PLAYER_A, PLAYER_B, "tie")
        assert res.stats.cutoff_hit
        assert res.script.winner.value == verify_outcome("tie", "break", nonce).winner
        assert res.script.events[-3].damage == 99
        res.script.check_invariants()


def test_cutoff_tie_demo():
    rules = FightRules(hit_chance=0.0, block_chance=1.0, dodge_chance=0.0)
    for seed in range(10):
        script = DemoFightGenerator(seed=seed, rules=rules).generate(PLAYER_A, PLAYER_B, "d")
        script.check_invariants()
        assert script.events[-3].damage == 99


def test_non_termination_raises():
    """Zero cadence and no hits never leaves t=0: the iteration cap trips."""
    rules = FightRules(interval_min=0, interval_spread=0, react_delay=0,
                       hit_chance=0, block_chance=1, dodge_chance=0, max_exchanges=25)
    with pytest.raises(GeneratorNonTerminationError) as exc:
        DemoFightGenerator(seed=1, rules=rules).generate(PLAYER_A, PLAYER_B, "loop")
    assert exc.value.exchanges == 25
    print("✅ Non-terminating rules raise GeneratorNonTerminationError")


# ============================================================
# Rules & schema
# ============================================================

def test_rules_defaults():
    rules = FightRules()
    assert rules.start_health == 99
    assert rules.time_cutoff == 30.0
    assert (rules.hit_chance, rules.block_chance, rules.dodge_chance) == (0.6, 0.2, 0.2)
    assert rules.max_damage == 28


def test_rules_validation():
    with pytest.raises(ValidationError):
        FightRules(hit_chance=0.5)                        # weights sum to 0.9
    with pytest.raises(ValidationError):
        FightRules(start_health=0)
    with pytest.raises(ValidationError):
        FightRules(ko_delay=0.9, victory_delay=0.8)
    with pytest.raises(ValidationError):
        FightRules(interval_min=0.05)                     # shorter than react_delay


def test_rules_from_settings_overrides():
    rules = FightRules.from_settings(time_cutoff=12.0)
    assert rules.time_cutoff == 12.0
    assert rules.start_health == FightSettings.START_HEALTH


def test_json_shape():
    """camelCase keys; block attacks keep hit=false, reactions carry no flags."""
    script = DemoFightGenerator(seed=2).generate(PLAYER_A, PLAYER_B, match_id="json")
    data = json.loads(script.to_json())
    assert set(data) == {"matchId", "playerA", "playerB", "winner", "duration", "events"}
    for ev in data["events"]:
        if ev["type"] in ("react_block", "react_dodge", "ko", "victory"):
            assert set(ev) == {"time", "type", "actor"}
        elif ev.get("hit"):
            assert {"crit", "damage"} <= set(ev)
        else:
            assert ev["hit"] is False

    parsed = FightScript.model_validate(data)
    assert parsed == script


def test_check_invariants_rejects_broken_script():
    script = DemoFightGenerator(seed=3).generate(PLAYER_A, PLAYER_B, match_id="b")
    broken = script.model_copy(update={"duration": script.duration + 1})
    with pytest.raises(ValueError, match="duration"):
        broken.check_invariants()
    flipped = script.model_copy(update={"winner": script.winner.opponent})
    with pytest.raises(ValueError):
        flipped.check_invariants()


def test_unknown_mode():
    with pytest.raises(ValueError, match="Unknown generator mode"):
        get_generator("replay")


# ============================================================
# Simulation
# ============================================================

def test_simulate_seeded_is_fair():
    result = get_generator("seeded").simulate(rounds=2000, seed=7)
    assert result.rounds == 2000
    assert 0.44 < result.player_a_win_rate < 0.56
    assert 0.10 < result.crit_rate < 0.20
    d = result.to_dict()
    assert d["mode"] == "seeded"
    json.dumps(d)
    print(f"✅ Seeded simulation: playerA win rate {result.player_a_win_rate:.3f}")


def test_simulate_demo():
    result = get_generator("demo").simulate(rounds=500, seed=1)
    assert result.avg_exchanges > 0
    assert result.max_duration < 30 + 1.6 + 0.8 + 0.8
    with pytest.raises(ValueError):
        get_generator("demo").simulate(rounds=0)


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
