"""
Forgetting Model - mastery decay with time since last practice.

    strength = 1 + strength_factor * mastery
    retention = exp(-decay_rate * days / strength)
    decayed = mastery * max(minimum_retention, retention)

Stronger mastery decays more slowly, and a fixed fraction is never lost.
"""

import math
from datetime import datetime
from typing import Optional

from .types import ForgettingParams

DEFAULT_FORGETTING_PARAMS = ForgettingParams()

SECONDS_PER_DAY = 86400


def apply_forgetting(raw_mastery: float, days_since_practice: Optional[float],
                     params: ForgettingParams = DEFAULT_FORGETTING_PARAMS) -> float:
    """
    Decay a stored mastery value by elapsed days.

    Args:
        raw_mastery: Stored mastery [0, 1]
        days_since_practice: Days since the topic was last practiced;
            None or negative means no decay.
        params: Forgetting curve parameters

    Returns:
        Effective mastery, never below raw_mastery * minimum_retention
    """
    if days_since_practice is None or days_since_practice <= 0:
        return raw_mastery

    strength = 1.0 + params.strength_factor * raw_mastery
    retention = math.exp(-params.decay_rate * days_since_practice / strength)

    return max(raw_mastery * params.minimum_retention, raw_mastery * retention)


def days_since_practice(last_practice: Optional[datetime], now: datetime) -> int:
    """Whole days elapsed since last practice; no date counts as practiced today."""
    if last_practice is None:
        return 0

    elapsed = (now - last_practice).total_seconds() / SECONDS_PER_DAY
    return max(0, math.floor(elapsed))
