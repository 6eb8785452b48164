"""
Repository - persistence contract for the adaptive engine.

The engine itself holds no state; every read and write goes through an
injected Repository. Versioned puts give callers optimistic concurrency:
read (value, version), recompute, put with expected_version, and retry on
ConcurrentUpdateError.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from .schemas import Experiment
from .types import (
    ExperimentArm,
    ExperimentEvent,
    ItemCalibration,
    ProficiencyVector,
    StudentProfile,
    SubmissionRecord,
)


class AdaptiveError(Exception):
    """Base error for the adaptive engine."""


class ConcurrentUpdateError(AdaptiveError):
    """A versioned write lost a race with another writer."""


class Repository(ABC):

    # ==================== Proficiency / Profile ====================

    @abstractmethod
    def get_vector(self, user_id: str) -> Tuple[Optional[ProficiencyVector], int]:
        """Return (vector, version); version 0 means nothing stored yet."""

    @abstractmethod
    def put_vector(self, user_id: str, vector: ProficiencyVector, expected_version: int) -> int:
        """Store the vector if the version still matches; return the new version."""

    @abstractmethod
    def get_profile(self, user_id: str) -> Tuple[Optional[StudentProfile], int]:
        ...

    @abstractmethod
    def put_profile(self, user_id: str, profile: StudentProfile, expected_version: int) -> int:
        ...

    # ==================== Calibration / Experiments ====================

    @abstractmethod
    def get_calibration(self, item_id: str) -> Optional[ItemCalibration]:
        ...

    @abstractmethod
    def put_calibration(self, item_id: str, calibration: ItemCalibration):
        ...

    @abstractmethod
    def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        ...

    @abstractmethod
    def put_experiment(self, experiment: Experiment):
        ...

    @abstractmethod
    def get_assignment(self, user_id: str, experiment_id: str) -> Optional[ExperimentArm]:
        ...

    @abstractmethod
    def create_assignment_if_absent(self, user_id: str, experiment_id: str,
                                    arm: ExperimentArm) -> ExperimentArm:
        """Persist arm unless one exists; return whichever arm is stored."""

    # ==================== Append-only Logs ====================

    @abstractmethod
    def append_submission(self, record: SubmissionRecord):
        ...

    @abstractmethod
    def submissions(self, question_id: Optional[str] = None) -> List[SubmissionRecord]:
        ...

    @abstractmethod
    def append_event(self, event: ExperimentEvent):
        ...

    @abstractmethod
    def events(self, experiment_id: str) -> List[ExperimentEvent]:
        ...


class InMemoryRepository(Repository):
    """Dict-backed repository for tests and single-process use."""

    def __init__(self):
        self._lock = threading.Lock()
        self._vectors: Dict[str, Tuple[ProficiencyVector, int]] = {}
        self._profiles: Dict[str, Tuple[StudentProfile, int]] = {}
        self._calibrations: Dict[str, ItemCalibration] = {}
        self._experiments: Dict[str, Experiment] = {}
        self._assignments: Dict[Tuple[str, str], ExperimentArm] = {}
        self._submissions: List[SubmissionRecord] = []
        self._events: List[ExperimentEvent] = []

    def _versioned_put(self, table: dict, key: str, value, expected_version: int) -> int:
        with self._lock:
            _, current = table.get(key, (None, 0))
            if current != expected_version:
                raise ConcurrentUpdateError(
                    f"{key}: expected version {expected_version}, found {current}"
                )
            table[key] = (value, current + 1)
            return current + 1

    def get_vector(self, user_id):
        return self._vectors.get(user_id, (None, 0))

    def put_vector(self, user_id, vector, expected_version):
        return self._versioned_put(self._vectors, user_id, vector, expected_version)

    def get_profile(self, user_id):
        return self._profiles.get(user_id, (None, 0))

    def put_profile(self, user_id, profile, expected_version):
        return self._versioned_put(self._profiles, user_id, profile, expected_version)

    def get_calibration(self, item_id):
        return self._calibrations.get(item_id)

    def put_calibration(self, item_id, calibration):
        self._calibrations[item_id] = calibration

    def get_experiment(self, experiment_id):
        return self._experiments.get(experiment_id)

    def put_experiment(self, experiment):
        self._experiments[experiment.id] = experiment

    def get_assignment(self, user_id, experiment_id):
        return self._assignments.get((user_id, experiment_id))

    def create_assignment_if_absent(self, user_id, experiment_id, arm):
        with self._lock:
            return self._assignments.setdefault((user_id, experiment_id), arm)

    def append_submission(self, record):
        with self._lock:
            self._submissions.append(record)

    def submissions(self, question_id=None):
        return [r for r in self._submissions if question_id is None or r.question_id == question_id]

    def append_event(self, event):
        with self._lock:
            self._events.append(event)

    def events(self, experiment_id):
        return [e for e in self._events if e.experiment_id == experiment_id]
