"""
Redis Store - Redis implementation of the adaptive Repository.

Key Structure:
    {prefix}:vector:{user_id}          -> Hash (data JSON, version)
    {prefix}:profile:{user_id}         -> Hash (data JSON, version)
    {prefix}:calibration:{item_id}     -> String (JSON)
    {prefix}:experiment:{experiment_id} -> String (JSON)
    {prefix}:assignments:{user_id}     -> Hash (experiment_id -> arm)
    {prefix}:submissions               -> List (JSON of each submission)
    {prefix}:events:{experiment_id}    -> List (JSON of each event)
"""

import json
from typing import List, Optional

import redis
from loguru import logger

from . import settings
from .repository import ConcurrentUpdateError, Repository
from .schemas import Experiment
from .types import (
    ExperimentArm,
    ExperimentEvent,
    ItemCalibration,
    ProficiencyVector,
    StudentProfile,
    SubmissionRecord,
)


class RedisStore(Repository):
    def __init__(self, client: Optional[redis.Redis] = None,
                 prefix: str = settings.REDIS_KEY_PREFIX):
        """Connect to Redis using environment variables unless a client is given."""
        self.client = client or redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            password=settings.REDIS_PASSWORD,
            db=settings.REDIS_DB,
            decode_responses=True  # Return strings instead of bytes
        )
        self.prefix = prefix

    # ==================== Key Builders ====================

    def _vector_key(self, user_id: str) -> str:
        return f"{self.prefix}:vector:{user_id}"

    def _profile_key(self, user_id: str) -> str:
        return f"{self.prefix}:profile:{user_id}"

    def _calibration_key(self, item_id: str) -> str:
        return f"{self.prefix}:calibration:{item_id}"

    def _experiment_key(self, experiment_id: str) -> str:
        return f"{self.prefix}:experiment:{experiment_id}"

    def _assignments_key(self, user_id: str) -> str:
        return f"{self.prefix}:assignments:{user_id}"

    def _submissions_key(self) -> str:
        return f"{self.prefix}:submissions"

    def _events_key(self, experiment_id: str) -> str:
        return f"{self.prefix}:events:{experiment_id}"

    # ==================== Versioned Documents ====================

    def _get_versioned(self, key: str):
        raw = self.client.hgetall(key)
        if not raw:
            return None, 0
        return json.loads(raw["data"]), int(raw.get("version", 0))

    def _put_versioned(self, key: str, data: dict, expected_version: int) -> int:
        """
        Write data only if the stored version is still expected_version.

        WATCH/MULTI makes the check-and-set atomic against other writers.
        """
        with self.client.pipeline() as pipe:
            try:
                pipe.watch(key)
                current = int(pipe.hget(key, "version") or 0)
                if current != expected_version:
                    raise ConcurrentUpdateError(
                        f"{key}: expected version {expected_version}, found {current}"
                    )
                pipe.multi()
                pipe.hset(key, mapping={"data": json.dumps(data), "version": current + 1})
                pipe.execute()
            except redis.WatchError as e:
                raise ConcurrentUpdateError(f"{key}: modified during write") from e

        logger.debug(f"Wrote {key} at version {current + 1}")
        return current + 1

    # ==================== Proficiency / Profile ====================

    def get_vector(self, user_id):
        data, version = self._get_versioned(self._vector_key(user_id))
        return (ProficiencyVector.from_dict(data) if data else None), version

    def put_vector(self, user_id, vector, expected_version):
        return self._put_versioned(self._vector_key(user_id), vector.to_dict(), expected_version)

    def get_profile(self, user_id):
        data, version = self._get_versioned(self._profile_key(user_id))
        return (StudentProfile.from_dict(data) if data else None), version

    def put_profile(self, user_id, profile, expected_version):
        return self._put_versioned(self._profile_key(user_id), profile.to_dict(), expected_version)

    # ==================== Calibration / Experiments ====================

    def get_calibration(self, item_id) -> Optional[ItemCalibration]:
        raw = self.client.get(self._calibration_key(item_id))
        return ItemCalibration.from_dict(json.loads(raw)) if raw else None

    def put_calibration(self, item_id, calibration):
        self.client.set(self._calibration_key(item_id), json.dumps(calibration.to_dict()))

    def get_experiment(self, experiment_id) -> Optional[Experiment]:
        raw = self.client.get(self._experiment_key(experiment_id))
        return Experiment.model_validate_json(raw) if raw else None

    def put_experiment(self, experiment):
        self.client.set(self._experiment_key(experiment.id), experiment.model_dump_json())

    def get_assignment(self, user_id, experiment_id) -> Optional[ExperimentArm]:
        raw = self.client.hget(self._assignments_key(user_id), experiment_id)
        return ExperimentArm(raw) if raw else None

    def create_assignment_if_absent(self, user_id, experiment_id, arm) -> ExperimentArm:
        """HSETNX keeps the first arm ever written; re-read to return the winner."""
        key = self._assignments_key(user_id)
        if self.client.hsetnx(key, experiment_id, arm.value):
            logger.debug(f"Persisted {arm.value} for {user_id} in {experiment_id}")
            return arm
        return ExperimentArm(self.client.hget(key, experiment_id))

    # ==================== Append-only Logs ====================

    def append_submission(self, record):
        self.client.rpush(self._submissions_key(), json.dumps(record.to_dict()))

    def submissions(self, question_id=None) -> List[SubmissionRecord]:
        raw = self.client.lrange(self._submissions_key(), 0, -1)
        records = [SubmissionRecord.from_dict(json.loads(r)) for r in raw]
        return [r for r in records if question_id is None or r.question_id == question_id]

    def append_event(self, event):
        self.client.rpush(self._events_key(event.experiment_id), json.dumps(event.to_dict()))

    def events(self, experiment_id) -> List[ExperimentEvent]:
        raw = self.client.lrange(self._events_key(experiment_id), 0, -1)
        return [ExperimentEvent.from_dict(json.loads(r)) for r in raw]
