"""
GAMBLEFIGHTS — Provably Fair Outcome Verifier

Server-seed + client-seed + nonce system deciding every 1-v-1 match.

Architecture:
    Server generates server_seed and publishes SHA-256(server_seed) before the match.
    Client seed of a match = client_seed_a + "-" + client_seed_b.
    Outcome:
        hash      = HMAC-SHA256(key=server_seed, msg=client_seed + "-" + nonce)
        dec_value = int(hash[:8], 16)          # first 4 digest bytes, big-endian
        winner    = playerA if dec_value is even else playerB
    After the match, server_seed is revealed so anyone can recompute the outcome.

Usage:
    from tools.fairness import verify_outcome, hash_server_seed

    outcome = verify_outcome("test-server-seed", "test-client-seed", 0)
    print(outcome.hash, outcome.dec_value, outcome.winner)
"""

from __future__ import annotations

import hashlib
import hmac
import os
from dataclasses import dataclass
from typing import Optional

from config.settings import get_logger
from tools.errors import CryptoUnavailableError, InvalidInputError

logger = get_logger("fairness")

# Nonces are stored as signed 64-bit integers by the match server.
MAX_NONCE = 2 ** 63 - 1


# ═══════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SeedTriple:
    """The (server_seed, client_seed, nonce) tuple that decides a match."""
    server_seed: str
    client_seed: str
    nonce: int

    def __post_init__(self):
        validate_seed_triple(self.server_seed, self.client_seed, self.nonce)

    @property
    def message(self) -> str:
        return f"{self.client_seed}-{self.nonce}"

    @property
    def server_seed_hashed(self) -> str:
        return hash_server_seed(self.server_seed)


@dataclass(frozen=True)
class Outcome:
    """Result of verifying a seed triple."""
    is_player_a_win: bool
    hash: str            # 64 lowercase hex chars
    dec_value: int       # int(hash[:8], 16)

    @property
    def winner(self) -> str:
        return "playerA" if self.is_player_a_win else "playerB"

    @property
    def loser(self) -> str:
        return "playerB" if self.is_player_a_win else "playerA"

    def to_dict(self) -> dict:
        return {
            "isPlayerAWin": self.is_player_a_win,
            "hash": self.hash,
            "decValue": self.dec_value,
        }

    def verification_data(self, triple: Optional[SeedTriple] = None) -> dict:
        """Data needed to independently verify this outcome."""
        data = {
            "outcome": self.to_dict(),
            "winner": self.winner,
            "verification_steps": [
                "1. Compute: hash = HMAC-SHA256(server_seed, client_seed + '-' + str(nonce))",
                "2. Take first 8 hex chars of hash → dec_value",
                "3. dec_value even → playerA wins, odd → playerB wins",
            ],
        }
        if triple is not None:
            data.update({
                "server_seed": triple.server_seed,
                "server_seed_hashed": triple.server_seed_hashed,
                "client_seed": triple.client_seed,
                "nonce": triple.nonce,
                "message": triple.message,
            })
        return data


# ═══════════════════════════════════════════════════════════════
# Input Validation
# ═══════════════════════════════════════════════════════════════

def validate_seed_triple(server_seed, client_seed, nonce) -> None:
    """Raise InvalidInputError unless the triple can be verified."""
    if not isinstance(server_seed, str) or not server_seed:
        raise InvalidInputError("server_seed must be a non-empty string")
    if not isinstance(client_seed, str) or not client_seed:
        raise InvalidInputError("client_seed must be a non-empty string")
    # bool is an int subclass; True/False are never valid nonces
    if isinstance(nonce, bool) or not isinstance(nonce, int):
        raise InvalidInputError(f"nonce must be an integer, got {type(nonce).__name__}")
    if nonce < 0:
        raise InvalidInputError(f"nonce must be >= 0, got {nonce}")
    if nonce > MAX_NONCE:
        raise InvalidInputError(f"nonce exceeds the signed 64-bit range: {nonce}")


# ═══════════════════════════════════════════════════════════════
# HMAC Provider
# ═══════════════════════════════════════════════════════════════

class HmacSha256Provider:
    """HMAC-SHA256 primitive, constructed explicitly and injected where needed."""

    name = "sha256"

    def __init__(self):
        if self.name not in hashlib.algorithms_available:
            raise CryptoUnavailableError("SHA-256 is not available in this runtime")
        try:
            hashlib.new(self.name)
        except ValueError as e:
            raise CryptoUnavailableError(f"SHA-256 could not be initialised: {e}") from e

    def digest(self, key: bytes, message: bytes) -> bytes:
        return hmac.new(key, message, hashlib.sha256).digest()

    def hexdigest(self, key: bytes, message: bytes) -> str:
        return self.digest(key, message).hex()


# ═══════════════════════════════════════════════════════════════
# Core Verifier
# ═══════════════════════════════════════════════════════════════

class OutcomeVerifier:
    """Maps a revealed seed triple to a winner and a verification hash.

    Bit-exact with the match server: any standard HMAC-SHA256 calculator
    reproduces the same hash.
    """

    def __init__(self, provider: Optional[HmacSha256Provider] = None):
        self.provider = provider if provider is not None else HmacSha256Provider()

    def derive_hash(self, server_seed: str, message: str) -> str:
        """Compute HMAC-SHA256(server_seed, message) as lowercase hex."""
        return self.provider.hexdigest(server_seed.encode("utf-8"), message.encode("utf-8"))

    def verify(self, server_seed: str, client_seed: str, nonce: int) -> Outcome:
        validate_seed_triple(server_seed, client_seed, nonce)
        hash_hex = self.derive_hash(server_seed, f"{client_seed}-{nonce}")

        dec_value = int(hash_hex[:8], 16)
        outcome = Outcome(
            is_player_a_win=dec_value % 2 == 0,
            hash=hash_hex,
            dec_value=dec_value,
        )
        logger.debug(f"Verified nonce={nonce}: {outcome.winner} (hash {hash_hex[:16]}…)")
        return outcome

    def verify_triple(self, triple: SeedTriple) -> Outcome:
        return self.verify(triple.server_seed, triple.client_seed, triple.nonce)


_default_verifier: Optional[OutcomeVerifier] = None


def get_default_verifier() -> OutcomeVerifier:
    """Lazily build the module-level verifier used by verify_outcome()."""
    global _default_verifier
    if _default_verifier is None:
        _default_verifier = OutcomeVerifier()
    return _default_verifier


def verify_outcome(server_seed: str, client_seed: str, nonce: int) -> Outcome:
    """Recompute the outcome of a match from its revealed seed triple."""
    return get_default_verifier().verify(server_seed, client_seed, nonce)


# ═══════════════════════════════════════════════════════════════
# Server Seed Commitment
# ═══════════════════════════════════════════════════════════════

def generate_server_seed() -> str:
    """32 bytes from the OS CSPRNG, hex encoded (64 chars)."""
    return os.urandom(32).hex()


def hash_server_seed(server_seed: str) -> str:
    """SHA-256 commitment published before the match."""
    return hashlib.sha256(server_seed.encode("utf-8")).hexdigest()


def verify_server_seed(server_seed: str, expected_hash: str) -> bool:
    """Verify the revealed seed matches the commitment shared before the match."""
    computed = hash_server_seed(server_seed)
    return computed == expected_hash.strip().lower()


def combine_client_seeds(client_seed_a: str, client_seed_b: str) -> str:
    """Client seed of a 1-v-1 match, built from both players' seeds."""
    return f"{client_seed_a}-{client_seed_b}"


# ═══════════════════════════════════════════════════════════════
# JS Code Generator — for client-side verification
# ═══════════════════════════════════════════════════════════════

def generate_verification_js() -> str:
    """Generate JavaScript code for in-browser outcome verification.

    Mirrors verify_outcome() exactly; embed it in a fairness page.
    """
    return '''
// ═══ PROVABLY FAIR VERIFICATION (GambleFights) ═══
// Anyone can recompute a match outcome once the server seed is revealed.

async function verifyOutcome(serverSeed, clientSeed, nonce) {
    if (!serverSeed || !clientSeed) throw new Error('serverSeed and clientSeed are required');
    const enc = new TextEncoder();
    const key = await crypto.subtle.importKey(
        'raw', enc.encode(serverSeed), {name: 'HMAC', hash: 'SHA-256'}, false, ['sign']
    );
    const sig = await crypto.subtle.sign('HMAC', key, enc.encode(clientSeed + '-' + nonce));
    const hash = Array.from(new Uint8Array(sig)).map(b => b.toString(16).padStart(2, '0')).join('');
    const decValue = parseInt(hash.substring(0, 8), 16);
    return { isPlayerAWin: decValue % 2 === 0, hash, decValue };
}

async function verifyServerSeed(serverSeed, expectedHash) {
    const buf = await crypto.subtle.digest('SHA-256', new TextEncoder().encode(serverSeed));
    const hash = Array.from(new Uint8Array(buf)).map(b => b.toString(16).padStart(2, '0')).join('');
    return hash === expectedHash.toLowerCase();
}
'''.strip()
