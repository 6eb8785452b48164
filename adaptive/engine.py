"""
Adaptive Engine - the two request paths over an injected repository.

    select_variant: stored snapshot -> forgetting, trend, prerequisites,
                    experiment arm -> tier
    submit_answer:  answer -> score and points -> ability and mastery
                    history -> profile -> submission log

All decisions are made by the pure modules; this class only reads, writes
and retries. Per-learner writes are optimistic: on a version conflict the
snapshot is re-read and the pure update re-applied.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from loguru import logger

from . import settings
from .experiments import ExperimentAssignor, experiment_value
from .forgetting import days_since_practice
from .item_response import AbilityEstimator
from .prerequisites import PrerequisiteGraph
from .profile_updater import record_mastery, update_student_profile
from .repository import ConcurrentUpdateError, Repository
from .schemas import AnswerSubmission, Experiment, SelectVariantInput
from .scoring import (
    calculate_final_score,
    calculate_ordering_score,
    calculate_partial_score,
    calculate_question_score,
    calculate_question_weight,
)
from .types import (
    ExperimentArm,
    ExperimentEventType,
    ForgettingParams,
    ProficiencyVector,
    SelectVariantOutput,
    StudentProfile,
    SubmissionRecord,
    Variant,
)
from .variant_selector import select_variant

DEFAULT_MASTERY = 0.5

OFFER_EVENTS = {
    Variant.COMPREHENSION: ExperimentEventType.SCAFFOLDING_OFFERED,
    Variant.ENRICHMENT: ExperimentEventType.ENRICHMENT_OFFERED,
}

ACCEPT_EVENTS = {
    Variant.COMPREHENSION: ExperimentEventType.SCAFFOLDING_ACCEPTED,
    Variant.ENRICHMENT: ExperimentEventType.ENRICHMENT_ACCEPTED,
}


@dataclass(frozen=True)
class SubmissionResult:
    score: int            # 0-100 attempt score
    points: float         # Weighted points earned
    weight: int           # Maximum points for the question
    profile: StudentProfile
    mastery_before: float
    mastery_after: float

    @property
    def learning_gain(self) -> float:
        return self.mastery_after - self.mastery_before


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AdaptiveEngine:
    MAX_RETRIES = 3

    def __init__(self, repository: Repository,
                 graph: Optional[PrerequisiteGraph] = None,
                 threshold_experiment_id: Optional[str] = settings.THRESHOLD_EXPERIMENT,
                 forgetting: Optional[ForgettingParams] = None,
                 estimator: Optional[AbilityEstimator] = None,
                 history_limit: int = settings.HISTORY_LIMIT,
                 prerequisite_floor: float = settings.PREREQUISITE_FLOOR,
                 use_forgetting: bool = settings.USE_FORGETTING,
                 use_trend: bool = settings.USE_TREND,
                 use_prerequisites: bool = settings.USE_PREREQUISITES,
                 use_experiments: bool = settings.USE_EXPERIMENTS):
        self.repository = repository
        self.graph = graph
        self.threshold_experiment_id = threshold_experiment_id
        self.forgetting = forgetting or ForgettingParams(
            decay_rate=settings.DECAY_RATE,
            minimum_retention=settings.MINIMUM_RETENTION,
            strength_factor=settings.STRENGTH_FACTOR,
        )
        self.estimator = estimator or AbilityEstimator()
        self.assignor = ExperimentAssignor(repository)
        self.history_limit = history_limit
        self.prerequisite_floor = prerequisite_floor
        self.use_forgetting = use_forgetting
        self.use_trend = use_trend
        self.use_prerequisites = use_prerequisites
        self.use_experiments = use_experiments

    # ==================== Variant Selection ====================

    def select_variant(self, user_id: str, topic: str,
                       recent_accuracy: Optional[float] = None,
                       now: Optional[datetime] = None) -> SelectVariantOutput:
        """
        Choose the tier for a learner's next item on a topic.

        recent_accuracy defaults to the learner's overall accuracy when the
        caller has no session window.
        """
        now = now or _now()

        vector, _ = self.repository.get_vector(user_id)
        if vector is None:
            logger.warning(f"No proficiency vector for {user_id}, using defaults")
            vector = ProficiencyVector()

        if recent_accuracy is None:
            profile, _ = self.repository.get_profile(user_id)
            if profile is not None and profile.performance.total_questions_attempted > 0:
                recent_accuracy = profile.performance.global_accuracy_rate

        days = None
        if self.use_forgetting and topic in vector.last_practice_date:
            days = days_since_practice(vector.last_practice_date[topic], now)

        prerequisite_mastery = None
        if self.use_prerequisites and self.graph is not None and topic in self.graph:
            prerequisite_mastery = self.graph.prerequisite_mastery(topic, vector.topics)

        experiment, arm = self._enrollment(user_id, now)

        params = SelectVariantInput(
            mastery=vector.topics.get(topic),
            recent_accuracy=recent_accuracy,
            trend=vector.trends.get(topic) if self.use_trend else None,
            days_since_practice=days,
            prerequisite_mastery=prerequisite_mastery,
            experiment_variant=arm,
            experiment_threshold=experiment_value(arm, experiment, None) if experiment else None,
        )
        result = select_variant(params, self.forgetting, self.prerequisite_floor)

        if arm is not None:
            metrics = {"mastery": result.effective_mastery} if result.effective_mastery is not None else None
            self.assignor.log_event(experiment, user_id, arm,
                                    ExperimentEventType.VARIANT_SELECTED, now, metrics)
            if result.variant in OFFER_EVENTS:
                self.assignor.log_event(experiment, user_id, arm,
                                        OFFER_EVENTS[result.variant], now, metrics)

        return result

    def record_offer_response(self, user_id: str, variant: Variant, accepted: bool,
                              now: Optional[datetime] = None):
        """Log that a learner took up an offered scaffolding/enrichment variant."""
        if not accepted or variant not in ACCEPT_EVENTS:
            return
        now = now or _now()
        experiment, arm = self._enrollment(user_id, now)
        if arm is not None:
            self.assignor.log_event(experiment, user_id, arm, ACCEPT_EVENTS[variant], now)

    def complete_session(self, user_id: str, now: Optional[datetime] = None,
                         metrics: Optional[dict] = None):
        now = now or _now()
        experiment, arm = self._enrollment(user_id, now)
        if arm is not None:
            self.assignor.log_event(experiment, user_id, arm,
                                    ExperimentEventType.SESSION_COMPLETE, now, metrics)

    def _enrollment(self, user_id: str,
                    now: datetime) -> Tuple[Optional[Experiment], Optional[ExperimentArm]]:
        if not self.use_experiments or not self.threshold_experiment_id:
            return None, None

        experiment = self.repository.get_experiment(self.threshold_experiment_id)
        if experiment is None:
            logger.warning(f"Experiment {self.threshold_experiment_id} not found")
            return None, None

        return experiment, self.assignor.arm_for(user_id, experiment, now)

    # ==================== Answer Submission ====================

    def submit_answer(self, user_id: str, topic: str, submission: AnswerSubmission,
                      now: Optional[datetime] = None) -> SubmissionResult:
        """
        Score an answer and fold it into the learner's stored state.

        Returns the score, points and the updated profile for the caller.
        """
        now = now or _now()
        attempt = submission.to_attempt()

        score = calculate_question_score(attempt)
        weight = calculate_question_weight(submission.question_type, submission.bloom_level)
        points = self._points(submission, weight, score)

        calibration = None
        if submission.variant_id:
            calibration = self.repository.get_calibration(submission.variant_id)
        if calibration is None:
            calibration = self.repository.get_calibration(submission.question_id)

        def fold_mastery(vector: Optional[ProficiencyVector]) -> ProficiencyVector:
            vector = vector or ProficiencyVector()
            before = vector.topics.get(topic, DEFAULT_MASTERY)
            ability = self.estimator.update_ability(
                self.estimator.mastery_to_ability(before), calibration, submission.is_correct
            )
            history = vector.history(topic)
            count = (history[-1].question_count if history else 0) + 1
            return record_mastery(vector, topic, self.estimator.ability_to_mastery(ability),
                                  count, now, self.history_limit)

        old_vector, new_vector = self._update_with_retry(
            f"vector:{user_id}",
            lambda: self.repository.get_vector(user_id),
            fold_mastery,
            lambda v, version: self.repository.put_vector(user_id, v, version),
        )

        # The profile counts the attempt only once the mastery write has landed
        _, profile = self._update_with_retry(
            f"profile:{user_id}",
            lambda: self.repository.get_profile(user_id),
            lambda p: update_student_profile(p or StudentProfile(user_id=user_id), attempt, now),
            lambda p, version: self.repository.put_profile(user_id, p, version),
        )

        mastery_before = old_vector.topics.get(topic, DEFAULT_MASTERY) if old_vector else DEFAULT_MASTERY
        mastery_after = new_vector.topics[topic]
        logger.info(
            f"Mastery for {user_id}/{topic}: {mastery_before:.3f} -> {mastery_after:.3f}, "
            f"trend: {new_vector.trends[topic].value}"
        )

        self.repository.append_submission(SubmissionRecord(
            question_id=submission.question_id,
            variant_id=submission.variant_id,
            variant_type=submission.variant_type,
            is_correct=submission.is_correct,
            response_time_ms=int(round(submission.response_time_sec * 1000)),
            student_mastery_at_submission=mastery_before,
            timestamp=now,
        ))

        result = SubmissionResult(
            score=score,
            points=points,
            weight=weight,
            profile=profile,
            mastery_before=mastery_before,
            mastery_after=mastery_after,
        )

        experiment, arm = self._enrollment(user_id, now)
        if arm is not None:
            self.assignor.log_event(experiment, user_id, arm, ExperimentEventType.ANSWER_SUBMITTED, now, {
                "mastery": mastery_after,
                "accuracy": profile.performance.global_accuracy_rate,
                "response_time_ms": submission.response_time_sec * 1000,
                "learning_gain": result.learning_gain,
            })

        return result

    def _points(self, submission: AnswerSubmission, weight: int, score: int) -> float:
        if submission.user_order is not None and submission.correct_order is not None:
            return calculate_ordering_score(submission.user_order, submission.correct_order, weight)
        if submission.total_count is not None:
            return calculate_partial_score(submission.question_type, submission.correct_count or 0,
                                           submission.total_count, weight)
        if submission.is_exam_mode:
            return calculate_final_score(weight, 1.0 if submission.is_correct else 0.0, True)
        return calculate_final_score(weight, score, False)

    def _update_with_retry(self, label: str, read: Callable, update: Callable, write: Callable):
        """Read-modify-write with re-application on version conflicts."""
        for attempt_no in range(1, self.MAX_RETRIES + 1):
            current, version = read()
            updated = update(current)
            try:
                write(updated, version)
                return current, updated
            except ConcurrentUpdateError:
                logger.warning(f"Concurrent update on {label}, retry {attempt_no}/{self.MAX_RETRIES}")

        raise ConcurrentUpdateError(f"{label}: gave up after {self.MAX_RETRIES} attempts")
