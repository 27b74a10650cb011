"""
GAMBLEFIGHTS — Error taxonomy for the fairness core.

    FairnessError
      ├── InvalidInputError            bad seed / client seed / nonce
      ├── CryptoUnavailableError       HMAC-SHA256 missing from the runtime
      └── GeneratorNonTerminationError fight loop never resolved
"""


class FairnessError(Exception):
    """Base class for every error raised by the fairness core."""


class InvalidInputError(FairnessError, ValueError):
    """Empty or malformed seed material. Callers must not compute an outcome."""


class CryptoUnavailableError(FairnessError, RuntimeError):
    """HMAC-SHA256 is not available, so nothing can be verified."""


class GeneratorNonTerminationError(FairnessError, RuntimeError):
    """The exchange loop ran past its iteration cap without a winner."""

    def __init__(self, exchanges: int, elapsed: float) -> None:
        self.exchanges = exchanges
        self.elapsed = elapsed
        super().__init__(
            f"Fight did not resolve after {exchanges} exchanges "
            f"({elapsed:.2f}s simulated); check the fight rules"
        )
