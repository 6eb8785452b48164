"""Tests for experiments.py"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from adaptive.experiments import (
    ExperimentAssignor,
    assign,
    experiment_value,
    hash_to_unit,
    is_active,
)
from adaptive.schemas import Experiment
from adaptive.types import ExperimentArm, ExperimentEventType, ExperimentStatus


def test_hash_is_deterministic_and_in_unit_interval():
    first = hash_to_unit("user-1", "exp-1")
    assert first == hash_to_unit("user-1", "exp-1")
    assert 0.0 <= first < 1.0
    assert first != hash_to_unit("user-2", "exp-1")


def test_assignment_is_idempotent(experiment):
    arms = {assign("user-42", experiment) for _ in range(20)}
    assert len(arms) == 1


def test_treatment_fraction_tracks_allocation(experiment):
    for allocation in (0.1, 0.3, 0.5, 0.8):
        exp = experiment.model_copy(update={"traffic_allocation": allocation})
        users = [f"user-{i}" for i in range(10_000)]
        treated = sum(assign(u, exp) == ExperimentArm.TREATMENT for u in users)
        assert treated / len(users) == pytest.approx(allocation, abs=0.02)


def test_allocation_extremes(experiment):
    none = experiment.model_copy(update={"traffic_allocation": 0.0})
    everyone = experiment.model_copy(update={"traffic_allocation": 1.0})
    assert assign("user-1", none) == ExperimentArm.CONTROL
    assert assign("user-1", everyone) == ExperimentArm.TREATMENT


def test_is_active_requires_running_and_window(experiment, now):
    assert is_active(experiment, now)
    assert not is_active(experiment, now + timedelta(days=30))
    assert not is_active(experiment, now - timedelta(days=30))
    assert not is_active(experiment.model_copy(update={"status": ExperimentStatus.PAUSED}), now)


def test_experiment_value(experiment):
    assert experiment_value(ExperimentArm.TREATMENT, experiment, 0.75) == 0.6
    assert experiment_value(ExperimentArm.CONTROL, experiment, 0.9) == 0.75
    assert experiment_value(None, experiment, 0.9) == 0.9


def test_experiment_rejects_reversed_window(now):
    with pytest.raises(ValidationError):
        Experiment(
            id="bad",
            start_date=now,
            end_date=now - timedelta(days=1),
            parameter="enrichment_threshold",
            control_value=0.75,
            treatment_value=0.6,
        )


def test_experiment_rejects_allocation_out_of_range(experiment):
    data = experiment.model_dump()
    data["traffic_allocation"] = 1.5
    with pytest.raises(ValidationError):
        Experiment(**data)


class TestExperimentAssignor:

    @pytest.fixture
    def assignor(self, repository):
        return ExperimentAssignor(repository)

    def test_first_assignment_is_persisted(self, assignor, repository, experiment, now):
        arm = assignor.arm_for("user-7", experiment, now)

        assert arm == assign("user-7", experiment)
        assert repository.get_assignment("user-7", experiment.id) == arm

    def test_assignment_is_sticky_when_allocation_changes(self, assignor, experiment, now):
        users = [f"user-{i}" for i in range(50)]
        before = {u: assignor.arm_for(u, experiment, now) for u in users}
        assert ExperimentArm.TREATMENT in before.values()

        nobody = experiment.model_copy(update={"traffic_allocation": 0.0})
        after = {u: assignor.arm_for(u, nobody, now) for u in users}

        assert after == before

    def test_inactive_experiment_is_unassigned(self, assignor, repository, experiment, now):
        paused = experiment.model_copy(update={"status": ExperimentStatus.PAUSED})

        assert assignor.arm_for("user-1", paused, now) is None
        assert assignor.arm_for("user-1", experiment, now + timedelta(days=60)) is None
        assert repository.get_assignment("user-1", experiment.id) is None

    def test_existing_assignment_wins(self, assignor, repository, experiment, now):
        computed = assign("user-3", experiment)
        other = ExperimentArm.CONTROL if computed == ExperimentArm.TREATMENT else ExperimentArm.TREATMENT
        repository.create_assignment_if_absent("user-3", experiment.id, other)

        assert assignor.arm_for("user-3", experiment, now) == other

    def test_log_event_appends(self, assignor, repository, experiment, now):
        assignor.log_event(experiment, "user-1", ExperimentArm.CONTROL,
                           ExperimentEventType.VARIANT_SELECTED, now, {"mastery": 0.4})

        events = repository.events(experiment.id)
        assert len(events) == 1
        assert events[0].event_type == ExperimentEventType.VARIANT_SELECTED
        assert events[0].metrics == {"mastery": 0.4}


class TestNaiveDatetimes:

    @pytest.fixture
    def naive_experiment(self):
        return Experiment(
            id="naive-window",
            status=ExperimentStatus.RUNNING,
            start_date=datetime(2020, 1, 1),
            end_date=datetime(2099, 1, 1),
            parameter="enrichment_threshold",
            control_value=0.75,
            treatment_value=0.6,
        )

    def test_naive_window_is_read_as_utc(self, naive_experiment):
        assert naive_experiment.start_date.tzinfo == timezone.utc
        assert naive_experiment.end_date == datetime(2099, 1, 1, tzinfo=timezone.utc)

    def test_naive_window_against_aware_clock(self, naive_experiment, now):
        assert is_active(naive_experiment, now)

    def test_naive_clock_against_aware_window(self, experiment, now):
        assert is_active(experiment, now.replace(tzinfo=None))

    def test_round_trip_through_json_keeps_window(self, naive_experiment):
        assert Experiment.model_validate_json(naive_experiment.model_dump_json()) == naive_experiment
