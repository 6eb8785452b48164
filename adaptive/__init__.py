"""
Adaptive module - difficulty tiering and answer scoring.

Components:
    - forgetting: Mastery decay with time since practice
    - trend: Learning trajectory from mastery history
    - experiments: Deterministic, sticky A/B arm assignment
    - variant_selector: Tier choice from mastery, accuracy and context signals
    - scoring: Bloom-weighted and partial-credit scoring
    - profile_updater: Rolling performance stats and mastery history
    - item_response: 3PL ability estimation against calibrated items
    - prerequisites: Topic dependency DAG for prerequisite gating
    - repository / redis_store: Persistence contract and implementations
    - engine: Request paths over an injected repository
"""

from .engine import AdaptiveEngine, SubmissionResult
from .experiments import ExperimentAssignor, assign, experiment_value, hash_to_unit, is_active
from .forgetting import apply_forgetting, days_since_practice
from .item_response import AbilityEstimator
from .prerequisites import PrerequisiteGraph
from .profile_updater import record_mastery, update_student_profile
from .redis_store import RedisStore
from .repository import AdaptiveError, ConcurrentUpdateError, InMemoryRepository, Repository
from .schemas import AnswerSubmission, Experiment, SelectVariantInput
from .scoring import (
    calculate_final_score,
    calculate_ordering_score,
    calculate_partial_score,
    calculate_question_score,
    calculate_question_weight,
)
from .trend import analyze_trend
from .types import (
    AnswerAttempt,
    BloomLevel,
    ExperimentArm,
    ExperimentEvent,
    ExperimentEventType,
    ExperimentStatus,
    ItemCalibration,
    LearningTrend,
    MasteryHistoryEntry,
    ProficiencyVector,
    QuestionType,
    SelectVariantOutput,
    StudentProfile,
    SubmissionRecord,
    Variant,
)
from .variant_selector import initial_variant, select_variant, should_offer_enrichment

__all__ = [
    "AdaptiveEngine",
    "SubmissionResult",
    "ExperimentAssignor",
    "assign",
    "experiment_value",
    "hash_to_unit",
    "is_active",
    "apply_forgetting",
    "days_since_practice",
    "AbilityEstimator",
    "PrerequisiteGraph",
    "record_mastery",
    "update_student_profile",
    "RedisStore",
    "AdaptiveError",
    "ConcurrentUpdateError",
    "InMemoryRepository",
    "Repository",
    "AnswerSubmission",
    "Experiment",
    "SelectVariantInput",
    "calculate_final_score",
    "calculate_ordering_score",
    "calculate_partial_score",
    "calculate_question_score",
    "calculate_question_weight",
    "analyze_trend",
    "AnswerAttempt",
    "BloomLevel",
    "ExperimentArm",
    "ExperimentEvent",
    "ExperimentEventType",
    "ExperimentStatus",
    "ItemCalibration",
    "LearningTrend",
    "MasteryHistoryEntry",
    "ProficiencyVector",
    "QuestionType",
    "SelectVariantOutput",
    "StudentProfile",
    "SubmissionRecord",
    "Variant",
    "initial_variant",
    "select_variant",
    "should_offer_enrichment",
]
