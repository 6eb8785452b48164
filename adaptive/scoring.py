"""
Scoring Engine - cognitively weighted, partial-credit-aware points.

    weight = round(base_weight[type] * bloom_multiplier[level])

Unknown types weigh 10; unknown or missing Bloom levels fall back to the
type's default level, then to Remember. Rounding is half-up.
"""

import math
from typing import Dict, Optional, Sequence, Union

from .types import AnswerAttempt, BloomLevel, QuestionType

# Attempt scoring
CORRECT_FIRST_TRY = 100
HINT_PENALTY = 2
RETRY_PARTIAL = 50

DEFAULT_BASE_WEIGHT = 10

BASE_WEIGHTS: Dict[QuestionType, int] = {
    QuestionType.MULTIPLE_CHOICE: 5,
    QuestionType.TRUE_FALSE: 5,
    QuestionType.FILL_IN_BLANKS: 7,
    QuestionType.CLOZE: 7,
    QuestionType.MEMORY_GAME: 8,
    QuestionType.ORDERING: 10,
    QuestionType.CATEGORIZATION: 10,
    QuestionType.OPEN_QUESTION: 15,
    QuestionType.AUDIO_RESPONSE: 10,
}

BLOOM_MULTIPLIERS: Dict[BloomLevel, float] = {
    BloomLevel.REMEMBER: 1.0,
    BloomLevel.UNDERSTAND: 1.2,
    BloomLevel.APPLY: 1.5,
    BloomLevel.ANALYZE: 1.7,
    BloomLevel.EVALUATE: 2.0,
    BloomLevel.CREATE: 2.2,
}

DEFAULT_BLOOM_LEVELS: Dict[QuestionType, BloomLevel] = {
    QuestionType.MULTIPLE_CHOICE: BloomLevel.REMEMBER,
    QuestionType.TRUE_FALSE: BloomLevel.REMEMBER,
    QuestionType.FILL_IN_BLANKS: BloomLevel.UNDERSTAND,
    QuestionType.CLOZE: BloomLevel.UNDERSTAND,
    QuestionType.MEMORY_GAME: BloomLevel.REMEMBER,
    QuestionType.ORDERING: BloomLevel.APPLY,
    QuestionType.CATEGORIZATION: BloomLevel.APPLY,
    QuestionType.OPEN_QUESTION: BloomLevel.ANALYZE,
    QuestionType.AUDIO_RESPONSE: BloomLevel.APPLY,
}

# Legacy (1956 taxonomy) and Hebrew level names
BLOOM_ALIASES: Dict[str, BloomLevel] = {
    "knowledge": BloomLevel.REMEMBER,
    "comprehension": BloomLevel.UNDERSTAND,
    "application": BloomLevel.APPLY,
    "analysis": BloomLevel.ANALYZE,
    "synthesis": BloomLevel.EVALUATE,
    "evaluation": BloomLevel.EVALUATE,
    "זכירה": BloomLevel.REMEMBER,
    "הבנה": BloomLevel.UNDERSTAND,
    "יישום": BloomLevel.APPLY,
    "ניתוח": BloomLevel.ANALYZE,
    "הערכה": BloomLevel.EVALUATE,
    "יצירה": BloomLevel.CREATE,
}


def round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


# ==================== Lookup ====================

def parse_question_type(question_type: Union[QuestionType, str, None]) -> Optional[QuestionType]:
    """Normalize 'multiple-choice' / 'Multiple_Choice' to the enum; None if unknown."""
    if isinstance(question_type, QuestionType):
        return question_type
    if not question_type:
        return None
    try:
        return QuestionType(question_type.strip().lower().replace("-", "_"))
    except ValueError:
        return None


def parse_bloom_level(level: Union[BloomLevel, str, None]) -> Optional[BloomLevel]:
    if isinstance(level, BloomLevel):
        return level
    if not level:
        return None
    name = level.strip()
    for bloom in BloomLevel:
        if bloom.value.lower() == name.lower():
            return bloom
    return BLOOM_ALIASES.get(name.lower())


def effective_bloom_level(question_type: Union[QuestionType, str, None],
                          bloom_level: Union[BloomLevel, str, None] = None) -> BloomLevel:
    level = parse_bloom_level(bloom_level)
    if level is not None:
        return level
    qtype = parse_question_type(question_type)
    return DEFAULT_BLOOM_LEVELS.get(qtype, BloomLevel.REMEMBER)


# ==================== Weights and Credit ====================

def calculate_question_weight(question_type: Union[QuestionType, str, None],
                              bloom_level: Union[BloomLevel, str, None] = None) -> int:
    qtype = parse_question_type(question_type)
    base_weight = BASE_WEIGHTS.get(qtype, DEFAULT_BASE_WEIGHT)
    multiplier = BLOOM_MULTIPLIERS[effective_bloom_level(qtype, bloom_level)]
    return int(round_half_up(base_weight * multiplier))


def calculate_partial_score(question_type: Union[QuestionType, str, None],
                            correct_count: int, total_count: int, weight: float) -> float:
    """
    Fraction of items right, scaled to the weight.

    Empty questions score 0; the fraction is capped at 1 so a count above
    the total never earns more than the weight.
    """
    if total_count <= 0:
        return 0.0
    ratio = max(0.0, min(1.0, correct_count / total_count))
    return round_half_up(weight * ratio, 1)


def calculate_ordering_score(user_order: Sequence, correct_order: Sequence,
                             weight: float) -> float:
    """
    Pairwise-concordance credit for ordering questions.

    Every pair (a before b) in the correct sequence counts if the user also
    placed a before b; score = weight * concordant / C(n, 2). Malformed
    input (not a sequence, mismatched lengths, unhashable items) scores 0.
    """
    if not isinstance(user_order, Sequence) or not isinstance(correct_order, Sequence):
        return 0.0

    n = len(correct_order)
    if len(user_order) != n or n < 2:
        return 0.0

    try:
        user_positions = {item: idx for idx, item in enumerate(user_order)}
        correct_positions = [user_positions.get(item) for item in correct_order]
    except TypeError:
        return 0.0

    total_pairs = n * (n - 1) // 2

    concordant = 0
    for i in range(n):
        for j in range(i + 1, n):
            pos_a = correct_positions[i]
            pos_b = correct_positions[j]
            if pos_a is not None and pos_b is not None and pos_a < pos_b:
                concordant += 1

    return round_half_up(weight * concordant / total_pairs, 1)


def calculate_final_score(weight: float, performance_or_ratio: float,
                          is_exam_mode: bool = False) -> float:
    """
    Weighted points for a question.

    Exam mode: performance_or_ratio is a correctness ratio in [0, 1].
    Learning mode: it is a 0-100 performance score.
    """
    ratio = performance_or_ratio if is_exam_mode else performance_or_ratio / 100
    return round_half_up(weight * ratio, 1)


def calculate_question_score(attempt: AnswerAttempt) -> int:
    """100 first try, minus hint penalties; 50 after retries; 0 if wrong."""
    if not attempt.is_correct:
        return 0
    if attempt.attempts > 1:
        return RETRY_PARTIAL
    if attempt.hints_used > 0:
        return max(0, CORRECT_FIRST_TRY - attempt.hints_used * HINT_PENALTY)
    return CORRECT_FIRST_TRY
