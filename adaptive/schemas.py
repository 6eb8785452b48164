"""
Boundary models - validate caller input before it reaches the pure functions.

Malformed values (non-numeric mastery, reversed experiment window) raise
pydantic.ValidationError here; None means "missing" and is handled by the
availability-first fallbacks downstream.
"""

from datetime import datetime, timezone
from typing import Annotated, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .types import (
    AnswerAttempt,
    ExperimentArm,
    ExperimentStatus,
    LearningTrend,
    PrimaryMetric,
    Variant,
)

UnitFloat = Annotated[float, Field(ge=0.0, le=1.0)]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SelectVariantInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    mastery: Optional[UnitFloat] = None
    recent_accuracy: Optional[UnitFloat] = None
    trend: Optional[LearningTrend] = None
    days_since_practice: Optional[float] = None
    prerequisite_mastery: Optional[Dict[str, UnitFloat]] = None
    experiment_variant: Optional[ExperimentArm] = None
    experiment_threshold: Optional[UnitFloat] = None


class Experiment(BaseModel):
    """A/B experiment on one numeric policy parameter."""

    id: str
    name: str = ""
    description: str = ""
    status: ExperimentStatus = ExperimentStatus.DRAFT
    start_date: datetime
    end_date: datetime
    parameter: str  # e.g. "enrichment_threshold"
    control_value: float
    treatment_value: float
    traffic_allocation: UnitFloat = 0.5
    primary_metric: PrimaryMetric = PrimaryMetric.LEARNING_GAIN
    minimum_sample_size: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: str = ""

    @field_validator("start_date", "end_date", "created_at", "updated_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @model_validator(mode="after")
    def check_window(self) -> "Experiment":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class AnswerSubmission(BaseModel):
    """One answer coming in from the submission path."""

    question_id: str
    question_type: str
    bloom_level: Optional[str] = None
    variant_type: Variant = Variant.APPLICATION
    variant_id: Optional[str] = None
    is_correct: bool
    attempts: int = Field(default=1, ge=1)
    hints_used: int = Field(default=0, ge=0)
    response_time_sec: float = Field(default=0.0, ge=0.0)
    is_exam_mode: bool = False

    # Partial credit (categorization, fill-in-blanks)
    correct_count: Optional[int] = Field(default=None, ge=0)
    total_count: Optional[int] = Field(default=None, ge=0)

    # Ordering credit
    user_order: Optional[List[Union[str, int]]] = None
    correct_order: Optional[List[Union[str, int]]] = None

    @model_validator(mode="after")
    def check_counts(self) -> "AnswerSubmission":
        if (self.correct_count is not None and self.total_count is not None
                and self.correct_count > self.total_count):
            raise ValueError("correct_count must not exceed total_count")
        return self

    def to_attempt(self) -> AnswerAttempt:
        return AnswerAttempt(
            is_correct=self.is_correct,
            attempts=self.attempts,
            hints_used=self.hints_used,
            response_time_sec=self.response_time_sec,
        )
