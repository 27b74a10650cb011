#!/usr/bin/env python3
"""
GAMBLEFIGHTS — Unit & Integration Test Suite

Run: python tests.py
     python tests.py -v                  # verbose
     python tests.py TestOutcomeVerifier # run specific class

Test categories:
  TestOutcomeVerifier  — golden vectors, hash format, parity, boundaries
  TestInputValidation  — InvalidInputError on bad seeds / nonces
  TestHmacProvider     — injectable provider, CryptoUnavailableError
  TestServerSeed       — commitment hashing and seed generation
  TestMatchFlow        — MATCH_RESULT building and verification
  TestCli              — command dispatch and exit codes
"""

import io
import json
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from fight_engine.models import PlayerInfo
from tools.errors import CryptoUnavailableError, FairnessError, InvalidInputError
from tools.fairness import (
    HmacSha256Provider, OutcomeVerifier, SeedTriple, combine_client_seeds,
    generate_server_seed, generate_verification_js, hash_server_seed,
    verify_outcome, verify_server_seed,
)

GOLDEN_SERVER_SEED = "test-server-seed"
GOLDEN_CLIENT_SEED = "test-client-seed"
GOLDEN_HASH_0 = "3ade2c56009ee17f0056cf3a54850050bb9f04eb0840b48f366e4b41e192dbba"
GOLDEN_HASH_1 = "48f2cbad030f0a2f732aa3921cae31f946b98a3f6d61cb4309be62a30c038410"
GOLDEN_HASH_MAX_INT32 = "fa16fc0be2317abeb85536f9c55510a3bb44631d3ebf8fe440f9dcc5880728c0"


# ============================================================
# Outcome Verifier
# ============================================================

class TestOutcomeVerifier(unittest.TestCase):
    """verify_outcome() must be bit-exact with the match server."""

    def test_golden_vector_nonce_zero(self):
        """HMAC-SHA256('test-server-seed', 'test-client-seed-0') is pinned."""
        out = verify_outcome(GOLDEN_SERVER_SEED, GOLDEN_CLIENT_SEED, 0)
        self.assertEqual(out.hash, GOLDEN_HASH_0)
        self.assertEqual(out.dec_value, 987638870)   # 0x3ade2c56
        self.assertTrue(out.is_player_a_win)
        self.assertEqual(out.winner, "playerA")

    def test_golden_vector_odd_decision(self):
        """nonce=1 lands on an odd prefix → player B."""
        out = verify_outcome(GOLDEN_SERVER_SEED, GOLDEN_CLIENT_SEED, 1)
        self.assertEqual(out.hash, GOLDEN_HASH_1)
        self.assertEqual(out.dec_value, 0x48F2CBAD)
        self.assertFalse(out.is_player_a_win)
        self.assertEqual(out.loser, "playerA")

    def test_large_nonce(self):
        """2^31-1 does not throw and yields a well-formed hash."""
        out = verify_outcome(GOLDEN_SERVER_SEED, GOLDEN_CLIENT_SEED, 2 ** 31 - 1)
        self.assertEqual(out.hash, GOLDEN_HASH_MAX_INT32)
        self.assertEqual(out.dec_value, 4195810315)
        self.assertFalse(out.is_player_a_win)

    def test_max_int64_nonce(self):
        """The largest nonce the server can store still verifies."""
        out = verify_outcome(GOLDEN_SERVER_SEED, GOLDEN_CLIENT_SEED, 2 ** 63 - 1)
        self.assertEqual(len(out.hash), 64)

    def test_hash_format(self):
        """hash is always 64 lowercase hex chars."""
        for nonce in (0, 1, 2, 99, 12345):
            out = verify_outcome("Some-Server-SEED", "ClientSeed", nonce)
            self.assertRegex(out.hash, r"^[0-9a-f]{64}$")

    def test_parity_consistency(self):
        """dec_value is the first 4 digest bytes big-endian; parity decides."""
        for nonce in range(50):
            out = verify_outcome("srv", "cli", nonce)
            self.assertEqual(out.dec_value, int.from_bytes(bytes.fromhex(out.hash)[:4], "big"))
            self.assertEqual(out.is_player_a_win, out.dec_value % 2 == 0)
            self.assertLessEqual(out.dec_value, 0xFFFFFFFF)

    def test_determinism_and_idempotence(self):
        """Same inputs, structurally equal results, nothing mutated."""
        a = verify_outcome("s", "c", 42)
        b = verify_outcome("s", "c", 42)
        self.assertEqual(a, b)
        self.assertIsNot(a, b)
        self.assertEqual(a.to_dict(), b.to_dict())

    def test_nonce_changes_hash(self):
        """Different nonce, different hash."""
        self.assertNotEqual(verify_outcome("s", "c", 1).hash, verify_outcome("s", "c", 2).hash)

    def test_utf8_seeds(self):
        """Seeds are UTF-8 encoded before hashing."""
        out = verify_outcome("sérvér-🔑", "clïent", 3)
        self.assertRegex(out.hash, r"^[0-9a-f]{64}$")

    def test_triple_round_trip(self):
        """verify_triple matches verify for the same triple."""
        triple = SeedTriple(GOLDEN_SERVER_SEED, GOLDEN_CLIENT_SEED, 0)
        self.assertEqual(triple.message, "test-client-seed-0")
        self.assertEqual(OutcomeVerifier().verify_triple(triple).hash, GOLDEN_HASH_0)

    def test_verification_data(self):
        """Audit record lists the steps and echoes the triple."""
        triple = SeedTriple(GOLDEN_SERVER_SEED, GOLDEN_CLIENT_SEED, 0)
        data = verify_outcome(GOLDEN_SERVER_SEED, GOLDEN_CLIENT_SEED, 0).verification_data(triple)
        self.assertEqual(data["outcome"]["decValue"], 987638870)
        self.assertEqual(data["message"], "test-client-seed-0")
        self.assertEqual(data["server_seed_hashed"], hash_server_seed(GOLDEN_SERVER_SEED))
        self.assertEqual(len(data["verification_steps"]), 3)
        json.dumps(data)


class TestInputValidation(unittest.TestCase):
    """Bad seed material raises instead of producing a meaningless hash."""

    def test_empty_server_seed(self):
        with self.assertRaises(InvalidInputError):
            verify_outcome("", "client", 0)

    def test_empty_client_seed(self):
        with self.assertRaises(InvalidInputError):
            verify_outcome("server", "", 0)

    def test_negative_nonce(self):
        with self.assertRaises(InvalidInputError):
            verify_outcome("server", "client", -1)

    def test_nonce_out_of_range(self):
        with self.assertRaises(InvalidInputError):
            verify_outcome("server", "client", 2 ** 63)

    def test_non_integer_nonce(self):
        for bad in ("1", 1.0, None, True):
            with self.assertRaises(InvalidInputError, msg=repr(bad)):
                verify_outcome("server", "client", bad)

    def test_non_string_seed(self):
        with self.assertRaises(InvalidInputError):
            verify_outcome(b"server", "client", 0)

    def test_seed_triple_validates(self):
        with self.assertRaises(InvalidInputError):
            SeedTriple("", "client", 0)

    def test_error_hierarchy(self):
        """InvalidInputError is also a ValueError."""
        self.assertTrue(issubclass(InvalidInputError, ValueError))
        self.assertTrue(issubclass(InvalidInputError, FairnessError))


class _FixedDigestProvider:
    """Provider double returning a fixed digest."""

    def __init__(self, digest: bytes):
        self._digest = digest
        self.calls = []

    def digest(self, key: bytes, message: bytes) -> bytes:
        self.calls.append((key, message))
        return self._digest

    def hexdigest(self, key: bytes, message: bytes) -> str:
        return self.digest(key, message).hex()


class TestHmacProvider(unittest.TestCase):
    """The HMAC primitive is an injected dependency."""

    def test_injected_provider_is_used(self):
        fake = _FixedDigestProvider(b"\x00\x00\x00\x03" + b"\x00" * 28)
        out = OutcomeVerifier(provider=fake).verify("key", "client", 9)
        self.assertEqual(fake.calls, [(b"key", b"client-9")])
        self.assertEqual(out.dec_value, 3)
        self.assertFalse(out.is_player_a_win)

    def test_missing_sha256_raises(self):
        with patch("tools.fairness.hashlib.algorithms_available", frozenset({"md5"})):
            with self.assertRaises(CryptoUnavailableError):
                HmacSha256Provider()

    def test_crypto_error_is_not_swallowed(self):
        """No silent default winner when the primitive is missing."""
        with patch("tools.fairness.hashlib.algorithms_available", frozenset()):
            with self.assertRaises(CryptoUnavailableError):
                OutcomeVerifier()

    def test_digest_length(self):
        self.assertEqual(len(HmacSha256Provider().digest(b"k", b"m")), 32)


class TestServerSeed(unittest.TestCase):
    """Commitment published before the match."""

    def test_hash_server_seed_known_value(self):
        self.assertEqual(hash_server_seed("test-seed"),
                         "d63cd08d82aa4eb48e0cc64fb466e909bfc3879664c5caa8d8cdeda73c044190")

    def test_generate_server_seed(self):
        seed1 = generate_server_seed()
        seed2 = generate_server_seed()
        self.assertEqual(len(seed1), 64)
        self.assertRegex(seed1, r"^[0-9a-f]{64}$")
        self.assertNotEqual(seed1, seed2)

    def test_verify_server_seed(self):
        commitment = hash_server_seed("revealed")
        self.assertTrue(verify_server_seed("revealed", commitment))
        self.assertTrue(verify_server_seed("revealed", commitment.upper()))
        self.assertFalse(verify_server_seed("tampered", commitment))

    def test_combine_client_seeds(self):
        self.assertEqual(combine_client_seeds("alice", "bob"), "alice-bob")

    def test_verification_js(self):
        js = generate_verification_js()
        self.assertIn("async function verifyOutcome", js)
        self.assertIn("clientSeed + '-' + nonce", js)
        self.assertIn("% 2 === 0", js)


# ============================================================
# Match Flow
# ============================================================

class TestMatchFlow(unittest.TestCase):
    """resolve_match() / verify_match_result()."""

    def setUp(self):
        from flows.match_flow import resolve_match
        self.player_a = PlayerInfo(id="u-alice", username="alice", character="trump")
        self.player_b = PlayerInfo(id="u-bob", username="bob", character="maduro")
        self.result = resolve_match(
            self.player_a, self.player_b, "alice", "bob", 7,
            wager_amount=1_000_000, server_seed="server-seed-test", match_id="m-1",
        )

    def test_outcome_pinned(self):
        """HMAC('server-seed-test', 'alice-bob-7') starts with cb8ca410 → even."""
        self.assertEqual(self.result.outcome.hash,
                         "cb8ca410be8e9f92c8deea750343d221856827dd317f1078ed60b1fd0f346429")
        self.assertEqual(self.result.winner, "playerA")
        self.assertEqual(self.result.winner_id, "u-alice")

    def test_message_shape(self):
        msg = self.result.to_message()
        self.assertEqual(msg["type"], "MATCH_RESULT")
        self.assertEqual(msg["matchId"], "m-1")
        self.assertEqual(msg["serverSeedHashed"], hash_server_seed("server-seed-test"))
        self.assertEqual(msg["clientSeedA"], "alice")
        self.assertEqual(msg["clientSeedB"], "bob")
        self.assertEqual(msg["nonce"], 7)
        self.assertEqual(msg["totalPot"], 2_000_000)
        self.assertEqual(msg["fightScript"]["winner"], "playerA")
        self.assertEqual(msg["fightScript"]["playerA"]["username"], "alice")
        json.loads(self.result.to_json())

    def test_script_matches_outcome(self):
        self.assertEqual(self.result.fight_script.winner.value, self.result.winner)
        self.result.fight_script.check_invariants()

    def test_round_trip_verifies(self):
        from flows.match_flow import verify_match_result
        message = json.loads(self.result.to_json())
        report = verify_match_result(message)
        self.assertTrue(report.verified, report.errors)
        self.assertTrue(report.checks["fight_script_replay"])

    def test_tampered_winner_detected(self):
        from flows.match_flow import verify_match_result
        message = self.result.to_message()
        message["winner"] = "playerB"
        report = verify_match_result(message, regenerate=False)
        self.assertFalse(report.verified)
        self.assertFalse(report.checks["winner"])

    def test_tampered_seed_detected(self):
        from flows.match_flow import verify_match_result
        message = self.result.to_message()
        message["serverSeed"] = "another-seed"
        report = verify_match_result(message)
        self.assertFalse(report.checks["server_seed_commitment"])
        self.assertFalse(report.verified)

    def test_tampered_script_detected(self):
        from flows.match_flow import verify_match_result
        message = self.result.to_message()
        message["fightScript"]["events"][0]["time"] += 0.01
        report = verify_match_result(message)
        self.assertFalse(report.checks["fight_script_replay"])

    def test_missing_keys(self):
        from flows.match_flow import verify_match_result
        with self.assertRaises(InvalidInputError):
            verify_match_result({"type": "MATCH_RESULT"})

    def test_negative_wager_rejected(self):
        from flows.match_flow import resolve_match
        with self.assertRaises(InvalidInputError):
            resolve_match(self.player_a, self.player_b, "a", "b", 0, wager_amount=-5)

    def test_fresh_server_seed(self):
        from flows.match_flow import resolve_match
        result = resolve_match(self.player_a, self.player_b, "a", "b", 0)
        self.assertEqual(len(result.triple.server_seed), 64)
        self.assertTrue(verify_server_seed(result.triple.server_seed, result.server_seed_hashed))

    def test_empty_server_seed_rejected(self):
        """An empty seed fails instead of being replaced by a fresh one."""
        from flows.match_flow import resolve_match
        with self.assertRaises(InvalidInputError):
            resolve_match(self.player_a, self.player_b, "a", "b", 0, server_seed="")

    def test_non_string_fields_rejected(self):
        from flows.match_flow import verify_match_result
        for key in ("serverSeedHashed", "outcomeHash", "winner", "serverSeed"):
            message = self.result.to_message()
            message[key] = None
            with self.assertRaises(InvalidInputError, msg=key):
                verify_match_result(message)

    def test_match_error_message(self):
        from flows.match_flow import match_error_message
        self.assertEqual(match_error_message("Player B has insufficient balance"),
                         {"type": "MATCH_ERROR", "error": "Player B has insufficient balance"})


# ============================================================
# CLI
# ============================================================

class TestCli(unittest.TestCase):
    """tools.fight_cli command dispatch."""

    def _run(self, argv):
        from tools.fight_cli import main
        buf = io.StringIO()
        with redirect_stdout(buf):
            code = main(argv)
        return code, buf.getvalue()

    def test_verify_json(self):
        code, out = self._run(["verify", GOLDEN_SERVER_SEED, GOLDEN_CLIENT_SEED, "0", "--json"])
        self.assertEqual(code, 0)
        data = json.loads(out)
        self.assertEqual(data["outcome"]["hash"], GOLDEN_HASH_0)

    def test_verify_invalid_input_exit_code(self):
        code, _ = self._run(["verify", GOLDEN_SERVER_SEED, "", "0"])
        self.assertEqual(code, 2)

    def test_hash_seed(self):
        code, out = self._run(["hash-seed", "test-seed"])
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), hash_server_seed("test-seed"))

    def test_demo_prints_script(self):
        code, out = self._run(["demo", "--seed", "3"])
        self.assertEqual(code, 0)
        script = json.loads(out)
        self.assertEqual(script["events"][-1]["type"], "victory")

    def test_match_then_check(self):
        code, out = self._run(["match", "alice", "bob", "--client-seed-a", "alice",
                               "--client-seed-b", "bob", "--nonce", "7",
                               "--server-seed", "server-seed-test", "--quiet"])
        self.assertEqual(code, 0)
        message = json.loads(out)
        self.assertEqual(message["winner"], "playerA")

        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "match.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump(message, f)
            code, _ = self._run(["check", path])
        self.assertEqual(code, 0)

    def test_check_missing_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            code, _ = self._run(["check", os.path.join(tmp, "absent.json")])
        self.assertEqual(code, 2)

    def test_check_malformed_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "broken.json")
            with open(path, "w", encoding="utf-8") as f:
                f.write("{not json")
            code, _ = self._run(["check", path])
            self.assertEqual(code, 2)

            with open(path, "w", encoding="utf-8") as f:
                json.dump(["MATCH_RESULT"], f)
            code, _ = self._run(["check", path])
        self.assertEqual(code, 2)

    def test_simulate(self):
        code, out = self._run(["simulate", "--mode", "seeded", "--rounds", "50"])
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["rounds"], 50)


# ============================================================
# Main
# ============================================================

if __name__ == "__main__":
    # Configure logging to suppress noise during tests
    import logging
    logging.disable(logging.WARNING)

    unittest.main(verbosity=2)
