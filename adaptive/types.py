"""
Shared records and closed enumerations for the adaptive engine.

Records that are persisted carry to_dict/from_dict so the stores can
serialize them without knowing their shape.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple


# ==================== Enumerations ====================

class Variant(str, Enum):
    """Difficulty tiers of the same learning objective, easiest first."""
    COMPREHENSION = "comprehension"
    APPLICATION = "application"
    ENRICHMENT = "enrichment"

    @property
    def rank(self) -> int:
        return _VARIANT_ORDER.index(self)

    @classmethod
    def from_rank(cls, rank: int) -> "Variant":
        return _VARIANT_ORDER[max(0, min(len(_VARIANT_ORDER) - 1, rank))]


_VARIANT_ORDER = (Variant.COMPREHENSION, Variant.APPLICATION, Variant.ENRICHMENT)


class BloomLevel(str, Enum):
    """Bloom's taxonomy, lowest cognitive level first."""
    REMEMBER = "Remember"
    UNDERSTAND = "Understand"
    APPLY = "Apply"
    ANALYZE = "Analyze"
    EVALUATE = "Evaluate"
    CREATE = "Create"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_IN_BLANKS = "fill_in_blanks"
    CLOZE = "cloze"
    MEMORY_GAME = "memory_game"
    ORDERING = "ordering"
    CATEGORIZATION = "categorization"
    OPEN_QUESTION = "open_question"
    AUDIO_RESPONSE = "audio_response"


class LearningTrend(str, Enum):
    IMPROVING_FAST = "improving_fast"
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
    DECLINING_FAST = "declining_fast"
    INSUFFICIENT_DATA = "insufficient_data"


class ExperimentStatus(str, Enum):
    DRAFT = "draft"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ExperimentArm(str, Enum):
    CONTROL = "control"
    TREATMENT = "treatment"


class ExperimentEventType(str, Enum):
    VARIANT_SELECTED = "variant_selected"
    SCAFFOLDING_OFFERED = "scaffolding_offered"
    SCAFFOLDING_ACCEPTED = "scaffolding_accepted"
    ENRICHMENT_OFFERED = "enrichment_offered"
    ENRICHMENT_ACCEPTED = "enrichment_accepted"
    SESSION_COMPLETE = "session_complete"
    ANSWER_SUBMITTED = "answer_submitted"


class PrimaryMetric(str, Enum):
    LEARNING_GAIN = "learning_gain"
    TIME_TO_MASTERY = "time_to_mastery"
    COMPLETION_RATE = "completion_rate"
    SCAFFOLDING_ACCEPTANCE = "scaffolding_acceptance"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# ==================== Proficiency ====================

@dataclass(frozen=True)
class MasteryHistoryEntry:
    """One point on a topic's mastery trajectory."""
    mastery: float
    timestamp: datetime
    question_count: int  # Questions answered on the topic at this point

    def to_dict(self) -> dict:
        return {
            "mastery": self.mastery,
            "timestamp": _iso(self.timestamp),
            "question_count": self.question_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MasteryHistoryEntry":
        return cls(
            mastery=float(data["mastery"]),
            timestamp=_parse(data["timestamp"]),
            question_count=int(data.get("question_count", 0)),
        )


@dataclass(frozen=True)
class ProficiencyVector:
    """
    Per-learner mastery map plus the history the trend analyzer needs.

    History tuples are time-ascending and capped; entries are never edited.
    """
    topics: Dict[str, float] = field(default_factory=dict)
    last_updated: Optional[datetime] = None
    mastery_history: Dict[str, Tuple[MasteryHistoryEntry, ...]] = field(default_factory=dict)
    last_practice_date: Dict[str, datetime] = field(default_factory=dict)
    trends: Dict[str, LearningTrend] = field(default_factory=dict)
    learning_velocity: Dict[str, float] = field(default_factory=dict)

    def history(self, topic: str) -> Tuple[MasteryHistoryEntry, ...]:
        return self.mastery_history.get(topic, ())

    def to_dict(self) -> dict:
        return {
            "topics": dict(self.topics),
            "last_updated": _iso(self.last_updated),
            "mastery_history": {
                topic: [e.to_dict() for e in entries]
                for topic, entries in self.mastery_history.items()
            },
            "last_practice_date": {t: _iso(d) for t, d in self.last_practice_date.items()},
            "trends": {t: trend.value for t, trend in self.trends.items()},
            "learning_velocity": dict(self.learning_velocity),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProficiencyVector":
        return cls(
            topics={t: float(m) for t, m in data.get("topics", {}).items()},
            last_updated=_parse(data.get("last_updated")),
            mastery_history={
                topic: tuple(MasteryHistoryEntry.from_dict(e) for e in entries)
                for topic, entries in data.get("mastery_history", {}).items()
            },
            last_practice_date={
                t: _parse(d) for t, d in data.get("last_practice_date", {}).items() if d
            },
            trends={t: LearningTrend(v) for t, v in data.get("trends", {}).items()},
            learning_velocity={
                t: float(v) for t, v in data.get("learning_velocity", {}).items()
            },
        )


@dataclass(frozen=True)
class TrendResult:
    trend: LearningTrend
    slope: float           # Mastery change per history point
    velocity: float        # Mastery change per day
    r2: float
    data_points: int
    predicted_mastery_7d: float


@dataclass(frozen=True)
class ForgettingParams:
    decay_rate: float = 0.02        # ~50% retention after 35 days at zero strength
    minimum_retention: float = 0.3  # Never drop below 30% of learned mastery
    strength_factor: float = 1.5    # Higher mastery = slower decay


# ==================== Item Calibration ====================

@dataclass(frozen=True)
class ItemCalibration:
    """
    Psychometric parameters of one item (or one variant of an item).

    Produced by the offline calibration job; read-only here.
    """
    irt_difficulty: float = 0.0   # b, typically -3 to 3
    discrimination: float = 1.0   # a, typically 0.5 to 2.5
    guessing_param: float = 0.0   # c, ~0.25 for 4-option multiple choice
    calibration_n: int = 0
    last_calibrated: Optional[datetime] = None
    difficulty_ci: Optional[Tuple[float, float]] = None

    def __post_init__(self):
        if self.discrimination <= 0:
            raise ValueError(f"discrimination must be positive, got {self.discrimination}")
        if not 0.0 <= self.guessing_param < 1.0:
            raise ValueError(f"guessing_param must be in [0, 1), got {self.guessing_param}")
        if self.calibration_n < 0:
            raise ValueError(f"calibration_n must be non-negative, got {self.calibration_n}")

    def to_dict(self) -> dict:
        return {
            "irt_difficulty": self.irt_difficulty,
            "discrimination": self.discrimination,
            "guessing_param": self.guessing_param,
            "calibration_n": self.calibration_n,
            "last_calibrated": _iso(self.last_calibrated),
            "difficulty_ci": list(self.difficulty_ci) if self.difficulty_ci else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ItemCalibration":
        ci = data.get("difficulty_ci")
        return cls(
            irt_difficulty=float(data.get("irt_difficulty", 0.0)),
            discrimination=float(data.get("discrimination", 1.0)),
            guessing_param=float(data.get("guessing_param", 0.0)),
            calibration_n=int(data.get("calibration_n", 0)),
            last_calibrated=_parse(data.get("last_calibrated")),
            difficulty_ci=(float(ci[0]), float(ci[1])) if ci else None,
        )


# ==================== Append-only logs ====================

@dataclass(frozen=True)
class SubmissionRecord:
    """Raw material for the offline calibration job."""
    question_id: str
    variant_type: Variant
    is_correct: bool
    response_time_ms: int
    student_mastery_at_submission: float
    timestamp: datetime
    variant_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "question_id": self.question_id,
            "variant_id": self.variant_id,
            "variant_type": self.variant_type.value,
            "is_correct": self.is_correct,
            "response_time_ms": self.response_time_ms,
            "student_mastery_at_submission": self.student_mastery_at_submission,
            "timestamp": _iso(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SubmissionRecord":
        return cls(
            question_id=data["question_id"],
            variant_id=data.get("variant_id"),
            variant_type=Variant(data["variant_type"]),
            is_correct=bool(data["is_correct"]),
            response_time_ms=int(data["response_time_ms"]),
            student_mastery_at_submission=float(data["student_mastery_at_submission"]),
            timestamp=_parse(data["timestamp"]),
        )


@dataclass(frozen=True)
class ExperimentEvent:
    experiment_id: str
    user_id: str
    variant: ExperimentArm
    event_type: ExperimentEventType
    timestamp: datetime
    metrics: Optional[Dict[str, float]] = None

    def to_dict(self) -> dict:
        return {
            "experiment_id": self.experiment_id,
            "user_id": self.user_id,
            "variant": self.variant.value,
            "event_type": self.event_type.value,
            "timestamp": _iso(self.timestamp),
            "metrics": dict(self.metrics) if self.metrics else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExperimentEvent":
        return cls(
            experiment_id=data["experiment_id"],
            user_id=data["user_id"],
            variant=ExperimentArm(data["variant"]),
            event_type=ExperimentEventType(data["event_type"]),
            timestamp=_parse(data["timestamp"]),
            metrics=data.get("metrics"),
        )


# ==================== Variant Selection ====================

@dataclass(frozen=True)
class SelectionFactors:
    """Which signals actually changed the selected tier."""
    based_on_mastery: bool = False
    based_on_accuracy: bool = False
    based_on_trend: bool = False
    based_on_forgetting: bool = False
    based_on_experiment: bool = False
    based_on_prerequisites: bool = False


@dataclass(frozen=True)
class SelectVariantOutput:
    variant: Variant
    factors: SelectionFactors
    effective_mastery: Optional[float]
    threshold: float  # Enrichment boundary after trend/experiment adjustment
    debug: Optional[str] = None

    @property
    def effective_values(self) -> Dict[str, Optional[float]]:
        return {"mastery": self.effective_mastery, "threshold": self.threshold}


# ==================== Scoring / Profile ====================

@dataclass(frozen=True)
class AnswerAttempt:
    is_correct: bool
    attempts: int = 1
    hints_used: int = 0
    response_time_sec: float = 0.0


@dataclass(frozen=True)
class PerformanceStats:
    average_response_time_sec: float = 0.0
    total_questions_attempted: int = 0
    total_correct_answers: int = 0
    global_accuracy_rate: float = 0.0


@dataclass(frozen=True)
class StudentProfile:
    user_id: str
    performance: PerformanceStats = field(default_factory=PerformanceStats)
    last_updated: Optional[datetime] = None

    def with_performance(self, performance: PerformanceStats,
                         last_updated: Optional[datetime]) -> "StudentProfile":
        return replace(self, performance=performance, last_updated=last_updated)

    def to_dict(self) -> dict:
        perf = self.performance
        return {
            "user_id": self.user_id,
            "performance": {
                "average_response_time_sec": perf.average_response_time_sec,
                "total_questions_attempted": perf.total_questions_attempted,
                "total_correct_answers": perf.total_correct_answers,
                "global_accuracy_rate": perf.global_accuracy_rate,
            },
            "last_updated": _iso(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StudentProfile":
        perf = data.get("performance", {})
        return cls(
            user_id=data["user_id"],
            performance=PerformanceStats(
                average_response_time_sec=float(perf.get("average_response_time_sec", 0.0)),
                total_questions_attempted=int(perf.get("total_questions_attempted", 0)),
                total_correct_answers=int(perf.get("total_correct_answers", 0)),
                global_accuracy_rate=float(perf.get("global_accuracy_rate", 0.0)),
            ),
            last_updated=_parse(data.get("last_updated")),
        )
