"""
GAMBLEFIGHTS — Randomness sources for the fight generator

Generators only ever call `.random()` -> float in [0, 1).

    demo_rng(seed)      ambient randomness (random.Random)
    SeedStream(triple)  deterministic stream derived from the seed triple:
                          block_i = HMAC-SHA256(server_seed, f"{client_seed}-{nonce}:{i}")
                          each 32-byte block yields eight draws of 4 bytes / 2^32
"""

from __future__ import annotations

import random
import struct
from typing import Optional

from tools.fairness import HmacSha256Provider, SeedTriple, get_default_verifier

DRAWS_PER_BLOCK = 8


def demo_rng(seed: Optional[int] = None) -> random.Random:
    """Non-verifiable randomness for demo fights. Seed it to reproduce a demo."""
    return random.Random(seed)


class SeedStream:
    """Deterministic pseudo-random stream keyed by a seed triple."""

    def __init__(self, triple: SeedTriple, provider: Optional[HmacSha256Provider] = None):
        self.triple = triple
        self.provider = provider if provider is not None else get_default_verifier().provider
        self._key = triple.server_seed.encode("utf-8")
        self._block_index = 0
        self._buffer: list[int] = []
        self.draws = 0

    def block(self, index: int) -> bytes:
        """Raw digest of block `index` (exposed for independent verification)."""
        message = f"{self.triple.client_seed}-{self.triple.nonce}:{index}"
        return self.provider.digest(self._key, message.encode("utf-8"))

    def _refill(self) -> None:
        digest = self.block(self._block_index)
        self._block_index += 1
        self._buffer = list(struct.unpack(">8I", digest))

    def next_uint32(self) -> int:
        if not self._buffer:
            self._refill()
        self.draws += 1
        return self._buffer.pop(0)

    def random(self) -> float:
        """Float in [0, 1) from the next 32 bits of the stream."""
        return self.next_uint32() / 0x100000000
