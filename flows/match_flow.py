"""
GAMBLEFIGHTS — Match Resolution Flow

What the match room does once two players are paired, minus wallets,
database and sockets:

  Seed → Commit → Outcome → Fight Script → MATCH_RESULT

And the reverse, for anyone holding a MATCH_RESULT message:

  MATCH_RESULT → commitment check → outcome check → winner check → script check
"""

import json
import uuid
from dataclasses import dataclass, field
from typing import Optional

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from config.settings import get_logger
from fight_engine.models import FightScript, PlayerInfo
from fight_engine.seeded import SeededFightGenerator
from tools.errors import InvalidInputError
from tools.fairness import (
    Outcome, SeedTriple, combine_client_seeds, generate_server_seed,
    hash_server_seed, verify_server_seed,
)

logger = get_logger("match")
console = Console()

MSG_TYPE_MATCH_RESULT = "MATCH_RESULT"
MSG_TYPE_MATCH_ERROR = "MATCH_ERROR"

_REQUIRED_KEYS = (
    "serverSeed", "serverSeedHashed", "clientSeedA", "clientSeedB",
    "nonce", "outcomeHash", "winner",
)
_STRING_KEYS = (
    "serverSeed", "serverSeedHashed", "clientSeedA", "clientSeedB",
    "outcomeHash", "winner",
)


@dataclass
class MatchResult:
    """A resolved match, ready to broadcast."""
    match_id: str
    triple: SeedTriple
    server_seed_hashed: str
    client_seed_a: str
    client_seed_b: str
    outcome: Outcome
    fight_script: FightScript
    wager_amount: int = 0

    @property
    def winner(self) -> str:
        return self.outcome.winner

    @property
    def winner_id(self) -> str:
        script = self.fight_script
        return script.player_a.id if self.outcome.is_player_a_win else script.player_b.id

    @property
    def total_pot(self) -> int:
        # 0% house edge: the winner takes both wagers
        return self.wager_amount * 2

    def to_message(self) -> dict:
        """The MATCH_RESULT payload sent to both players."""
        return {
            "type": MSG_TYPE_MATCH_RESULT,
            "matchId": self.match_id,
            "winner": self.winner,
            "winnerId": self.winner_id,
            "serverSeed": self.triple.server_seed,
            "serverSeedHashed": self.server_seed_hashed,
            "clientSeedA": self.client_seed_a,
            "clientSeedB": self.client_seed_b,
            "nonce": self.triple.nonce,
            "outcomeHash": self.outcome.hash,
            "fightScript": self.fight_script.to_dict(),
            "wagerAmount": self.wager_amount,
            "totalPot": self.total_pot,
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_message(), indent=indent)


@dataclass
class MatchVerification:
    """Per-check report produced by verify_match_result()."""
    match_id: str
    checks: dict = field(default_factory=dict)
    errors: list = field(default_factory=list)
    outcome: Optional[Outcome] = None

    @property
    def verified(self) -> bool:
        return bool(self.checks) and all(self.checks.values())

    def to_dict(self) -> dict:
        return {
            "matchId": self.match_id,
            "verified": self.verified,
            "checks": dict(self.checks),
            "errors": list(self.errors),
            "outcome": self.outcome.to_dict() if self.outcome else None,
        }


def match_error_message(error: str) -> dict:
    return {"type": MSG_TYPE_MATCH_ERROR, "error": error}


def resolve_match(player_a: PlayerInfo, player_b: PlayerInfo,
                  client_seed_a: str, client_seed_b: str, nonce: int,
                  wager_amount: int = 0,
                  server_seed: Optional[str] = None,
                  match_id: Optional[str] = None,
                  generator: Optional[SeededFightGenerator] = None,
                  verbose: bool = False) -> MatchResult:
    """Decide a match and build its fight script.

    Args:
        player_a, player_b: Combatants (player A's nonce is the match nonce)
        client_seed_a, client_seed_b: Each player's chosen client seed
        nonce: Player A's current nonce
        wager_amount: Stake per player in atomic units
        server_seed: Pre-generated seed (a fresh one is drawn when omitted)
        match_id: Defaults to a new UUID
    """
    if isinstance(wager_amount, bool) or not isinstance(wager_amount, int) or wager_amount < 0:
        raise InvalidInputError(f"wager_amount must be a non-negative integer, got {wager_amount!r}")

    generator = generator or SeededFightGenerator()
    if server_seed is None:
        server_seed = generate_server_seed()
    match_id = match_id or str(uuid.uuid4())

    triple = SeedTriple(server_seed, combine_client_seeds(client_seed_a, client_seed_b), nonce)
    outcome = generator.outcome_for(triple)
    script = generator.generate(triple, player_a, player_b, match_id)

    result = MatchResult(
        match_id=match_id,
        triple=triple,
        server_seed_hashed=hash_server_seed(server_seed),
        client_seed_a=client_seed_a,
        client_seed_b=client_seed_b,
        outcome=outcome,
        fight_script=script,
        wager_amount=wager_amount,
    )
    logger.info(f"Match {match_id} completed: {result.winner} wins "
                f"(outcome hash: {outcome.hash[:16]})")

    if verbose:
        winner_name = script.player_a.username if outcome.is_player_a_win else script.player_b.username
        console.print(Panel(
            f"[bold]⚔️  {script.player_a.username} vs {script.player_b.username}[/bold]\n\n"
            f"Winner: [green]{winner_name}[/green] ({result.winner})\n"
            f"Duration: {script.duration:.2f}s over {len(script.events)} events\n"
            f"Server seed hash: {result.server_seed_hashed}\n"
            f"Outcome hash: {outcome.hash}\n"
            f"Decision value: {outcome.dec_value} "
            f"({'even' if outcome.dec_value % 2 == 0 else 'odd'})\n"
            f"Pot: {result.total_pot}",
            title=f"Match {match_id}", border_style="cyan",
        ))
    return result


def verify_match_result(message: dict, regenerate: bool = True,
                        generator: Optional[SeededFightGenerator] = None) -> MatchVerification:
    """Independently check a MATCH_RESULT message.

    Checks the server seed against its commitment, recomputes the outcome
    hash and winner, and (with `regenerate`) rebuilds the fight script from
    the seeds and compares it event by event.
    """
    missing = [k for k in _REQUIRED_KEYS if k not in message]
    if missing:
        raise InvalidInputError(f"MATCH_RESULT is missing: {', '.join(missing)}")
    not_strings = [k for k in _STRING_KEYS if not isinstance(message[k], str)]
    if not_strings:
        raise InvalidInputError(f"MATCH_RESULT fields must be strings: {', '.join(not_strings)}")

    report = MatchVerification(match_id=str(message.get("matchId", "")))
    generator = generator or SeededFightGenerator()

    report.checks["server_seed_commitment"] = verify_server_seed(
        message["serverSeed"], message["serverSeedHashed"])

    client_seed = combine_client_seeds(message["clientSeedA"], message["clientSeedB"])
    triple = SeedTriple(message["serverSeed"], client_seed, message["nonce"])
    outcome = generator.outcome_for(triple)
    report.outcome = outcome
    report.checks["outcome_hash"] = outcome.hash == message["outcomeHash"].lower()
    report.checks["winner"] = outcome.winner == message["winner"]

    script_data = message.get("fightScript")
    if script_data is not None:
        try:
            script = FightScript.model_validate(script_data)
        except ValidationError as e:
            report.checks["fight_script_schema"] = False
            report.errors.append(f"fightScript does not parse: {e.error_count()} error(s)")
            script = None

        if script is not None:
            report.checks["fight_script_winner"] = script.winner.value == outcome.winner
            try:
                script.check_invariants(generator.rules.start_health)
                report.checks["fight_script_invariants"] = True
            except ValueError as e:
                report.checks["fight_script_invariants"] = False
                report.errors.append(str(e))

            if regenerate:
                expected = generator.generate(triple, script.player_a, script.player_b,
                                              script.match_id)
                report.checks["fight_script_replay"] = expected.to_dict() == script.to_dict()

    for name, ok in report.checks.items():
        if not ok:
            report.errors.append(f"check failed: {name}")

    if report.verified:
        logger.info(f"Match {report.match_id} verified ({len(report.checks)} checks)")
    else:
        logger.warning(f"Match {report.match_id} FAILED verification: {report.errors}")
    return report
