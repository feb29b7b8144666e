"""Pytest fixtures and configuration for focusdeck tests."""

import pytest
import uuid
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

from focusdeck.config import EngineSettings
from focusdeck.models.energy import EnergyState, EnergyLevel, EnergyStability
from focusdeck.models.task import Task, TaskStatus, Effort, Urgency, Impact


# Tuesday morning; every engine test runs against this fixed "now"
REFERENCE_TIME = datetime(2026, 3, 10, 9, 0)


@pytest.fixture
def reference_time():
    """Fixed reference time for deterministic decisions."""
    return REFERENCE_TIME


@pytest.fixture
def aware_reference_time():
    """The fixed reference time as a timezone-aware UTC datetime."""
    return REFERENCE_TIME.replace(tzinfo=timezone.utc)


@pytest.fixture
def engine_settings():
    """Default engine settings, independent of the environment."""
    return EngineSettings()


@pytest.fixture
def sample_task_base(reference_time):
    """Base task data for creating test tasks.

    Returns a dict with default task attributes that can be overridden.
    """
    return {
        "id": str(uuid.uuid4()),
        "title": "Test Task",
        "description": "Test description",
        "duration": 30,
        "effort": Effort.MEDIUM,
        "urgency": Urgency.MEDIUM,
        "impact": Impact.MEDIUM,
        "deadline": None,
        "scheduled_time": None,
        "category": "general",
        "completion_history": [],
        "proposal_history": [],
        "created_at": reference_time - timedelta(days=1),
        "last_activated": None,
        "status": TaskStatus.TODO,
    }


@pytest.fixture
def make_task(sample_task_base):
    """Factory building tasks with a fresh id from the base data."""
    def _make(**overrides):
        return Task(**{**sample_task_base, "id": str(uuid.uuid4()), **overrides})
    return _make


@pytest.fixture
def sample_task(sample_task_base):
    """Create a sample Task object for testing."""
    return Task(**sample_task_base)


@pytest.fixture
def quick_win_task(make_task):
    """Short, low-effort task."""
    return make_task(title="Reply to email", duration=10, effort=Effort.LOW, category="admin")


@pytest.fixture
def low_energy():
    return EnergyState(level=EnergyLevel.LOW, stability=EnergyStability.STABLE)


@pytest.fixture
def medium_energy():
    return EnergyState(level=EnergyLevel.MEDIUM, stability=EnergyStability.STABLE)


@pytest.fixture
def high_energy():
    return EnergyState(level=EnergyLevel.HIGH, stability=EnergyStability.STABLE)


@pytest.fixture
def volatile_energy():
    return EnergyState(level=EnergyLevel.MEDIUM, stability=EnergyStability.VOLATILE)


@pytest.fixture
def test_client(monkeypatch):
    """FastAPI test client with empty in-memory stores and default settings."""
    from focusdeck.api import app as app_module
    from focusdeck.engine.detox import DetoxTracker

    for name in (
        "FOCUSDECK_MAX_LOAD",
        "FOCUSDECK_MAX_TASKS",
        "FOCUSDECK_DAY_START",
        "FOCUSDECK_DAY_END",
        "FOCUSDECK_TRANSITION_BUFFER_MIN",
        "FOCUSDECK_TRIAGE_AVAILABLE_MIN",
        "FOCUSDECK_DECISION_BUDGET_MS",
    ):
        monkeypatch.delenv(name, raising=False)

    app_module.tasks_store.clear()
    app_module.sessions_store.clear()
    app_module.audit_log.clear()
    app_module.detox_state["tracker"] = DetoxTracker()

    with TestClient(app_module.app) as client:
        yield client

    app_module.tasks_store.clear()
    app_module.sessions_store.clear()
    app_module.audit_log.clear()
