"""
Runtime configuration, read from the environment (and .env when present).
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()


def _flag(name: str, default: bool = True) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ==================== Redis ====================

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD") or None
REDIS_DB = int(os.getenv("REDIS_DB", 0))
REDIS_KEY_PREFIX = os.getenv("REDIS_KEY_PREFIX", "adaptive")

# ==================== Model Parameters ====================

HISTORY_LIMIT = int(os.getenv("ADAPTIVE_HISTORY_LIMIT", 30))
PREREQUISITE_FLOOR = float(os.getenv("ADAPTIVE_PREREQUISITE_FLOOR", 0.3))

DECAY_RATE = float(os.getenv("ADAPTIVE_DECAY_RATE", 0.02))
MINIMUM_RETENTION = float(os.getenv("ADAPTIVE_MINIMUM_RETENTION", 0.3))
STRENGTH_FACTOR = float(os.getenv("ADAPTIVE_STRENGTH_FACTOR", 1.5))

# Experiment whose parameter tunes the enrichment boundary (unset = none)
THRESHOLD_EXPERIMENT = os.getenv("ADAPTIVE_THRESHOLD_EXPERIMENT") or None

# ==================== Feature Switches ====================

USE_FORGETTING = _flag("ADAPTIVE_USE_FORGETTING")
USE_TREND = _flag("ADAPTIVE_USE_TREND")
USE_PREREQUISITES = _flag("ADAPTIVE_USE_PREREQUISITES")
USE_EXPERIMENTS = _flag("ADAPTIVE_USE_EXPERIMENTS")
