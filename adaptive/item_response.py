"""
Item Response - ability estimation against calibrated items.

Features:
    - 3-Parameter Logistic (3PL) response probability
    - Gradient ability update after each response
    - Fisher information for item selection diagnostics
    - Mapping between the ability scale and the 0-1 mastery scale

Items without calibration use the 1PL/Rasch defaults (b=0, a=1, c=0).
"""

import math
from typing import Optional

from .types import ItemCalibration

DEFAULT_CALIBRATION = ItemCalibration()


class AbilityEstimator:
    """
    3PL model:
        P(correct) = c + (1 - c) / (1 + exp(-a * (ability - b)))
    """

    LEARNING_RATE = 0.3  # How much ability changes per response
    MIN_ABILITY = -3.0
    MAX_ABILITY = 3.0

    def __init__(self, learning_rate: float = LEARNING_RATE):
        self.learning_rate = learning_rate

    # ==================== Response Model ====================

    def probability_correct(self, ability: float,
                            calibration: Optional[ItemCalibration] = None) -> float:
        """
        Args:
            ability: Student ability (theta), typically -3 to 3
            calibration: Item parameters; None means uncalibrated

        Returns:
            Probability of a correct response [c, 1]
        """
        item = calibration or DEFAULT_CALIBRATION
        logistic = 1.0 / (1.0 + math.exp(-item.discrimination * (ability - item.irt_difficulty)))
        return item.guessing_param + (1.0 - item.guessing_param) * logistic

    def fisher_information(self, ability: float,
                           calibration: Optional[ItemCalibration] = None) -> float:
        """
        3PL item information:

            I(θ) = a² * (Q / P) * ((P - c) / (1 - c))²
        """
        item = calibration or DEFAULT_CALIBRATION
        p = self.probability_correct(ability, item)
        if p <= 0.0 or p >= 1.0:
            return 0.0
        c = item.guessing_param
        return item.discrimination ** 2 * ((1 - p) / p) * ((p - c) / (1 - c)) ** 2

    # ==================== Ability Update ====================

    def update_ability(self, ability: float, calibration: Optional[ItemCalibration],
                       is_correct: bool) -> float:
        """
        Gradient step on the response log-likelihood, clamped to the scale.

        Uses (observed - expected) scaled by discrimination.
        """
        item = calibration or DEFAULT_CALIBRATION
        p = self.probability_correct(ability, item)

        gradient = (1.0 if is_correct else 0.0) - p
        new_ability = ability + self.learning_rate * item.discrimination * gradient

        return max(self.MIN_ABILITY, min(self.MAX_ABILITY, new_ability))

    # ==================== Scale Conversion ====================

    def ability_to_mastery(self, ability: float) -> float:
        """Scale ability from [-3, 3] to [0, 1]."""
        span = self.MAX_ABILITY - self.MIN_ABILITY
        return max(0.0, min(1.0, (ability - self.MIN_ABILITY) / span))

    def mastery_to_ability(self, mastery: float) -> float:
        mastery = max(0.0, min(1.0, mastery))
        return self.MIN_ABILITY + mastery * (self.MAX_ABILITY - self.MIN_ABILITY)
