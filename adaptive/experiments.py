"""
Experiment Assignor - deterministic A/B bucketing with sticky persistence.

Bucketing:
    bucket = first 8 bytes of sha256(user_id + experiment_id) / 2**64
    bucket < traffic_allocation  -> treatment
    otherwise                    -> control

The hash makes the computation idempotent; persisting the first result
with create-if-absent keeps it fixed if traffic_allocation is edited later.
"""

import hashlib
from datetime import datetime
from typing import Dict, Optional

from loguru import logger

from .repository import Repository
from .schemas import Experiment, as_utc
from .types import ExperimentArm, ExperimentEvent, ExperimentEventType, ExperimentStatus


def hash_to_unit(user_id: str, experiment_id: str) -> float:
    """Map (user, experiment) to a well-distributed point in [0, 1)."""
    digest = hashlib.sha256(f"{user_id}{experiment_id}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") / 2 ** 64


def assign(user_id: str, experiment: Experiment) -> ExperimentArm:
    """Pure arm computation; ignores status and window."""
    if hash_to_unit(user_id, experiment.id) < experiment.traffic_allocation:
        return ExperimentArm.TREATMENT
    return ExperimentArm.CONTROL


def is_active(experiment: Experiment, now: datetime) -> bool:
    """Running and inside its window; naive datetimes count as UTC."""
    now = as_utc(now)
    return (
        experiment.status == ExperimentStatus.RUNNING
        and as_utc(experiment.start_date) <= now <= as_utc(experiment.end_date)
    )


def experiment_value(arm: Optional[ExperimentArm], experiment: Experiment,
                     default: Optional[float]) -> Optional[float]:
    """Parameter value for an arm; unassigned users get the default."""
    if arm is None:
        return default
    if arm == ExperimentArm.TREATMENT:
        return experiment.treatment_value
    return experiment.control_value


class ExperimentAssignor:
    """Resolves a user's arm through the repository so it stays sticky."""

    def __init__(self, repository: Repository):
        self.repository = repository

    def arm_for(self, user_id: str, experiment: Experiment,
                now: datetime) -> Optional[ExperimentArm]:
        """
        Get the user's arm for an active experiment.

        Returns None (control-equivalent) when the experiment is not running
        or now is outside its window.
        """
        if not is_active(experiment, now):
            return None

        stored = self.repository.get_assignment(user_id, experiment.id)
        if stored is not None:
            return stored

        arm = self.repository.create_assignment_if_absent(
            user_id, experiment.id, assign(user_id, experiment)
        )
        logger.info(f"User {user_id} assigned to {arm.value} for experiment {experiment.id}")
        return arm

    def log_event(self, experiment: Experiment, user_id: str, arm: ExperimentArm,
                  event_type: ExperimentEventType, now: datetime,
                  metrics: Optional[Dict[str, float]] = None) -> ExperimentEvent:
        event = ExperimentEvent(
            experiment_id=experiment.id,
            user_id=user_id,
            variant=arm,
            event_type=event_type,
            timestamp=now,
            metrics=metrics,
        )
        self.repository.append_event(event)
        return event
