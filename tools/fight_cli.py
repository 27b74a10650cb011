#!/usr/bin/env python3
"""
GAMBLEFIGHTS — Fairness & Fight Script CLI

Usage:
    python -m tools.fight_cli verify <server_seed> <client_seed> <nonce>
    python -m tools.fight_cli hash-seed <server_seed>
    python -m tools.fight_cli new-seed
    python -m tools.fight_cli demo --seed 7 --save
    python -m tools.fight_cli seeded <server_seed> <client_seed> <nonce>
    python -m tools.fight_cli match alice bob --client-seed-a a1 --client-seed-b b2 --nonce 3
    python -m tools.fight_cli check match_result.json
    python -m tools.fight_cli simulate --mode seeded --rounds 5000
    python -m tools.fight_cli verify-js
"""

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.table import Table

from config.settings import OUTPUT_DIR, FightSettings, get_logger
from fight_engine import GENERATOR_MODES, get_generator
from fight_engine.models import PlayerInfo
from flows.match_flow import resolve_match, verify_match_result
from tools.errors import FairnessError, InvalidInputError
from tools.fairness import (
    SeedTriple, generate_server_seed, generate_verification_js,
    hash_server_seed, verify_outcome,
)

logger = get_logger("cli")
console = Console()


def _save(name: str, payload: str) -> Path:
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    path = OUTPUT_DIR / name
    path.write_text(payload, encoding="utf-8")
    return path


def cmd_verify(args) -> int:
    outcome = verify_outcome(args.server_seed, args.client_seed, args.nonce)
    if args.json:
        triple = SeedTriple(args.server_seed, args.client_seed, args.nonce)
        print(json.dumps(outcome.verification_data(triple), indent=2))
        return 0

    table = Table(title="Outcome Verification")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Message", f"{args.client_seed}-{args.nonce}")
    table.add_row("HMAC-SHA256", outcome.hash)
    table.add_row("First 8 hex", outcome.hash[:8])
    table.add_row("Decimal", str(outcome.dec_value))
    table.add_row("Winner", f"[bold]{outcome.winner}[/bold]")
    console.print(table)
    return 0


def cmd_hash_seed(args) -> int:
    print(hash_server_seed(args.server_seed))
    return 0


def cmd_new_seed(args) -> int:
    seed = generate_server_seed()
    print(json.dumps({"serverSeed": seed, "serverSeedHashed": hash_server_seed(seed)}, indent=2))
    return 0


def _emit_script(script, args) -> int:
    payload = script.to_json(indent=2)
    if args.save:
        path = _save(f"{script.match_id}.json", payload)
        console.print(f"✅ {script.match_id}: {path} ({path.stat().st_size:,} bytes)")
    else:
        print(payload)
    return 0


def cmd_demo(args) -> int:
    script = get_generator("demo", seed=args.seed).generate()
    return _emit_script(script, args)


def cmd_seeded(args) -> int:
    triple = SeedTriple(args.server_seed, args.client_seed, args.nonce)
    player_a = PlayerInfo(id="player-a", username=args.name_a,
                          character=FightSettings.DEMO_CHARACTER_A)
    player_b = PlayerInfo(id="player-b", username=args.name_b,
                          character=FightSettings.DEMO_CHARACTER_B)
    match_id = args.match_id or f"seeded-{args.nonce}"
    script = get_generator("seeded").generate(triple, player_a, player_b, match_id)
    return _emit_script(script, args)


def cmd_match(args) -> int:
    player_a = PlayerInfo(id=args.id_a or args.name_a, username=args.name_a,
                          character=FightSettings.DEMO_CHARACTER_A)
    player_b = PlayerInfo(id=args.id_b or args.name_b, username=args.name_b,
                          character=FightSettings.DEMO_CHARACTER_B)
    result = resolve_match(
        player_a, player_b,
        client_seed_a=args.client_seed_a, client_seed_b=args.client_seed_b,
        nonce=args.nonce, wager_amount=args.wager,
        server_seed=args.server_seed, verbose=not args.quiet,
    )
    payload = result.to_json(indent=2)
    if args.save:
        path = _save(f"match_{result.match_id}.json", payload)
        console.print(f"✅ MATCH_RESULT saved: {path}")
    elif args.quiet:
        print(payload)
    return 0


def cmd_check(args) -> int:
    message = json.loads(Path(args.path).read_text(encoding="utf-8"))
    if not isinstance(message, dict):
        raise InvalidInputError(f"{args.path} does not hold a MATCH_RESULT object")
    report = verify_match_result(message, regenerate=not args.no_replay)

    table = Table(title=f"Match {report.match_id or '?'}")
    table.add_column("Check", style="cyan")
    table.add_column("Result")
    for name, ok in report.checks.items():
        table.add_row(name, "[green]PASS[/green]" if ok else "[red]FAIL[/red]")
    console.print(table)
    for err in report.errors:
        console.print(f"  - {err}")
    console.print("✅ verified" if report.verified else "❌ NOT verified")
    return 0 if report.verified else 1


def cmd_simulate(args) -> int:
    result = get_generator(args.mode).simulate(rounds=args.rounds, seed=args.seed)
    print(json.dumps(result.to_dict(), indent=2))
    return 0


def cmd_verify_js(args) -> int:
    print(generate_verification_js())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Provably fair outcome verifier and fight scripts")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("verify", help="Recompute a match outcome from its seeds")
    p.add_argument("server_seed")
    p.add_argument("client_seed")
    p.add_argument("nonce", type=int)
    p.add_argument("--json", action="store_true", help="Print the audit record as JSON")
    p.set_defaults(func=cmd_verify)

    p = sub.add_parser("hash-seed", help="SHA-256 commitment of a server seed")
    p.add_argument("server_seed")
    p.set_defaults(func=cmd_hash_seed)

    p = sub.add_parser("new-seed", help="Fresh server seed and its commitment")
    p.set_defaults(func=cmd_new_seed)

    p = sub.add_parser("demo", help="Random spectator fight")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--save", action="store_true")
    p.set_defaults(func=cmd_demo)

    p = sub.add_parser("seeded", help="Fight script derived from a seed triple")
    p.add_argument("server_seed")
    p.add_argument("client_seed")
    p.add_argument("nonce", type=int)
    p.add_argument("--name-a", default="Player A")
    p.add_argument("--name-b", default="Player B")
    p.add_argument("--match-id", default=None)
    p.add_argument("--save", action="store_true")
    p.set_defaults(func=cmd_seeded)

    p = sub.add_parser("match", help="Resolve a match and print MATCH_RESULT")
    p.add_argument("name_a")
    p.add_argument("name_b")
    p.add_argument("--id-a", default=None)
    p.add_argument("--id-b", default=None)
    p.add_argument("--client-seed-a", required=True)
    p.add_argument("--client-seed-b", required=True)
    p.add_argument("--nonce", type=int, default=0)
    p.add_argument("--wager", type=int, default=0)
    p.add_argument("--server-seed", default=None)
    p.add_argument("--save", action="store_true")
    p.add_argument("--quiet", action="store_true", help="JSON only, no panel")
    p.set_defaults(func=cmd_match)

    p = sub.add_parser("check", help="Verify a saved MATCH_RESULT JSON file")
    p.add_argument("path")
    p.add_argument("--no-replay", action="store_true", help="Skip regenerating the fight script")
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("simulate", help="Monte Carlo statistics over many fights")
    p.add_argument("--mode", choices=GENERATOR_MODES, default="demo")
    p.add_argument("--rounds", type=int, default=10_000)
    p.add_argument("--seed", type=int, default=42)
    p.set_defaults(func=cmd_simulate)

    p = sub.add_parser("verify-js", help="Browser verification snippet")
    p.set_defaults(func=cmd_verify_js)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (FairnessError, OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        console.print(f"❌ {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
