"""
Shared fixtures for the adaptive engine tests.

Redis is served in-process by fakeredis, so the store runs against real
command semantics (WATCH included) without a server.
"""

from datetime import datetime, timedelta, timezone

import fakeredis
import pytest

from adaptive.repository import InMemoryRepository
from adaptive.schemas import Experiment
from adaptive.types import ExperimentStatus, MasteryHistoryEntry


@pytest.fixture
def now():
    return datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def fake_redis():
    # Own server per test; instances otherwise share state by connection params
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def experiment(now):
    return Experiment(
        id="enrichment-threshold-v1",
        name="Lower enrichment threshold",
        status=ExperimentStatus.RUNNING,
        start_date=now - timedelta(days=7),
        end_date=now + timedelta(days=7),
        parameter="enrichment_threshold",
        control_value=0.75,
        treatment_value=0.6,
        traffic_allocation=0.5,
    )


@pytest.fixture
def make_history(now):
    """Daily history ending at now, one entry per mastery value."""
    def _make(values):
        start = now - timedelta(days=len(values) - 1)
        return [
            MasteryHistoryEntry(mastery=m, timestamp=start + timedelta(days=i), question_count=i + 1)
            for i, m in enumerate(values)
        ]
    return _make
