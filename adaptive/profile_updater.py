"""
Profile Updater - fold a scored attempt into the learner's statistics.

Both updates are pure: inputs are never mutated and a new object is always
returned, so a caller can re-apply them after losing an optimistic write.
"""

from datetime import datetime
from typing import Optional

from .trend import analyze_trend
from .types import (
    AnswerAttempt,
    MasteryHistoryEntry,
    PerformanceStats,
    ProficiencyVector,
    StudentProfile,
)

HISTORY_LIMIT = 30


def update_student_profile(profile: StudentProfile, attempt: AnswerAttempt,
                           now: Optional[datetime] = None) -> StudentProfile:
    """
    Update rolling performance metrics with one attempt.

    Response time is a streaming mean:
        new_avg = (old_avg * old_count + sample) / (old_count + 1)
    """
    perf = profile.performance

    total = perf.total_questions_attempted + 1
    correct = perf.total_correct_answers + (1 if attempt.is_correct else 0)
    old_total_time = perf.average_response_time_sec * perf.total_questions_attempted
    avg_time = (old_total_time + attempt.response_time_sec) / total

    performance = PerformanceStats(
        average_response_time_sec=round(avg_time, 2),
        total_questions_attempted=total,
        total_correct_answers=correct,
        global_accuracy_rate=round(correct / total, 2),
    )

    return profile.with_performance(
        performance,
        last_updated=now if now is not None else profile.last_updated,
    )


def record_mastery(vector: ProficiencyVector, topic: str, mastery: float,
                   question_count: int, now: datetime,
                   history_limit: int = HISTORY_LIMIT) -> ProficiencyVector:
    """
    Append a mastery point for a topic and refresh its cached trend.

    History is capped FIFO at history_limit entries.
    """
    mastery = max(0.0, min(1.0, mastery))

    entry = MasteryHistoryEntry(mastery=mastery, timestamp=now, question_count=question_count)
    history = (vector.history(topic) + (entry,))[-history_limit:]
    trend = analyze_trend(history)

    return ProficiencyVector(
        topics={**vector.topics, topic: mastery},
        last_updated=now,
        mastery_history={**vector.mastery_history, topic: history},
        last_practice_date={**vector.last_practice_date, topic: now},
        trends={**vector.trends, topic: trend.trend},
        learning_velocity={**vector.learning_velocity, topic: trend.velocity},
    )
