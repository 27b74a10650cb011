"""
GAMBLEFIGHTS — Configuration

Everything here can be overridden from the environment (or a .env file):

    FIGHT_START_HEALTH=99        # HP each fighter starts with
    FIGHT_TIME_CUTOFF=30         # simulated seconds before a forced finish
    FIGHT_MAX_EXCHANGES=1000     # hard iteration cap for the exchange loop
    DEMO_CHARACTER_A=trump       # skin identifiers used by the demo fight
    DEMO_CHARACTER_B=maduro
    GAMBLEFIGHTS_LOG_LEVEL=INFO
    OUTPUT_DIR=./output          # where the CLI writes scripts with --save
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent.parent
OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", "./output"))

LOG_LEVEL = os.getenv("GAMBLEFIGHTS_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


class FightSettings:

    # --- Health & pacing ---
    START_HEALTH = int(os.getenv("FIGHT_START_HEALTH", "99"))
    TIME_CUTOFF = float(os.getenv("FIGHT_TIME_CUTOFF", "30"))
    MAX_EXCHANGES = int(os.getenv("FIGHT_MAX_EXCHANGES", "1000"))

    # --- Demo fighters ---
    DEMO_CHARACTER_A = os.getenv("DEMO_CHARACTER_A", "trump")
    DEMO_CHARACTER_B = os.getenv("DEMO_CHARACTER_B", "maduro")
    DEMO_SKIN = "default"
    GLADIATOR_NAMES = [
        "Maximus", "Spartacus", "Crixus", "Commodus", "Tigris",
        "Flamma", "Priscus", "Verus", "Spiculus", "Carpophorus",
    ]

    @classmethod
    def as_dict(cls) -> dict:
        """Snapshot of the active settings (for CLI --show-config)."""
        return {
            "start_health": cls.START_HEALTH,
            "time_cutoff": cls.TIME_CUTOFF,
            "max_exchanges": cls.MAX_EXCHANGES,
            "demo_character_a": cls.DEMO_CHARACTER_A,
            "demo_character_b": cls.DEMO_CHARACTER_B,
            "log_level": LOG_LEVEL,
            "output_dir": str(OUTPUT_DIR),
        }


def get_logger(name: str) -> logging.Logger:
    """Named logger under gamblefights.* with a single stream handler."""
    logger = logging.getLogger(f"gamblefights.{name}")
    root = logging.getLogger("gamblefights")
    if not root.handlers:
        _h = logging.StreamHandler()
        _h.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        root.addHandler(_h)
        root.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    return logger
