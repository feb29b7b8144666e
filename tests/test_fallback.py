"""Tests for the fallback cascade (ordered, first match wins, never fails)."""

from datetime import timedelta

import pytest

from focusdeck.engine.capacity import calculate_task_cost
from focusdeck.engine.energy import is_energy_compatible
from focusdeck.engine.fallback import FALLBACK_CASCADE, FallbackContext, run_fallback_cascade
from focusdeck.models.task import CompletionRecord, Effort, Urgency


@pytest.fixture
def make_context(reference_time):
    def _make(tasks, energy, **overrides):
        values = {
            "tasks": tuple(tasks),
            "energy": energy,
            "reference_time": reference_time,
            "max_load": 1000.0,
        }
        values.update(overrides)
        return FallbackContext(**values)
    return _make


def _history(reference_time, planned, actual):
    return [CompletionRecord(date=reference_time - timedelta(days=1), actual_duration=actual)]


class TestCascadeOrder:
    """The precedence rule is a first-class artifact."""

    def test_rule_order(self):
        assert [rule.name for rule in FALLBACK_CASCADE] == [
            "low_energy",
            "overconstrained",
            "inconsistent_history",
            "survival",
            "default",
        ]


class TestLowEnergyFallback:
    """Test the low-energy tier."""

    def test_single_easy_task(self, make_task, make_context, low_energy, quick_win_task):
        ctx = make_context([make_task(effort=Effort.HIGH), quick_win_task, make_task(duration=5, effort=Effort.LOW)], low_energy)

        playlist = run_fallback_cascade(ctx)

        assert playlist.fallback == "low_energy"
        assert [t.id for t in playlist.tasks] == [quick_win_task.id]
        assert playlist.warnings

    def test_no_easy_task_returns_empty_default(self, make_task, make_context, low_energy):
        """Six long high-effort tasks under low energy leave an empty, annotated playlist."""
        ctx = make_context([make_task(duration=120, effort=Effort.HIGH) for _ in range(6)], low_energy)

        playlist = run_fallback_cascade(ctx)

        assert playlist.fallback == "default"
        assert playlist.tasks == []
        assert playlist.warnings


class TestOverconstrainedFallback:
    """Test the overconstrained tier."""

    def test_two_shortest_compatible(self, make_task, make_context, medium_energy):
        long_task = make_task(duration=50)
        short = make_task(duration=10)
        middle = make_task(duration=20)
        hard = make_task(duration=5, effort=Effort.HIGH)
        ctx = make_context([long_task, short, middle, hard], medium_energy, violations=("total_load",))

        playlist = run_fallback_cascade(ctx)

        assert playlist.fallback == "overconstrained"
        assert [t.id for t in playlist.tasks] == [short.id, middle.id]


class TestInconsistentHistoryFallback:
    """Test the inconsistent-history tier."""

    def test_keeps_consistent_tasks(self, make_task, make_context, high_energy, reference_time):
        steady = make_task(duration=30, completion_history=_history(reference_time, 30, 30))
        erratic = make_task(duration=30, completion_history=_history(reference_time, 30, 90))
        fresh = make_task(duration=30)
        ctx = make_context([erratic, steady, fresh], high_energy, violations=("completion_rate",))

        playlist = run_fallback_cascade(ctx)

        assert playlist.fallback == "inconsistent_history"
        assert [t.id for t in playlist.tasks] == [steady.id]

    def test_falls_through_when_none_qualify(self, make_task, make_context, high_energy, reference_time):
        erratic = make_task(duration=30, completion_history=_history(reference_time, 30, 90))
        ctx = make_context([erratic], high_energy, violations=("completion_rate",))

        playlist = run_fallback_cascade(ctx)

        assert playlist.fallback == "default"


class TestSurvivalFallback:
    """Test the survival tier (deadline overload)."""

    def test_triage_order_within_available_time(self, make_task, make_context, high_energy, reference_time):
        due = reference_time.replace(hour=18)
        urgent = make_task(duration=180, urgency=Urgency.URGENT, deadline=due)
        high = make_task(duration=120, urgency=Urgency.HIGH, deadline=due)
        medium = make_task(duration=90, urgency=Urgency.MEDIUM, deadline=due)
        ctx = make_context(
            [medium, high, urgent], high_energy, violations=("min_quick_win",), available_minutes=120
        )

        playlist = run_fallback_cascade(ctx)

        assert playlist.fallback == "survival"
        assert [t.id for t in playlist.tasks] == [high.id]
        assert any("Survival mode" in w for w in playlist.warnings)


class TestDefaultFallback:
    """Test the default tier and the soundness trim applied to every tier."""

    def test_at_most_three(self, make_task, make_context, medium_energy):
        ctx = make_context([make_task(duration=10) for _ in range(6)], medium_energy)
        playlist = run_fallback_cascade(ctx)
        assert playlist.fallback == "default"
        assert len(playlist.tasks) == 3

    def test_respects_capacity(self, make_task, make_context, low_energy):
        big = make_task(duration=60, effort=Effort.LOW)
        small = make_task(duration=30, effort=Effort.LOW)
        ctx = make_context([big, small], low_energy, max_load=50)

        playlist = run_fallback_cascade(ctx)

        assert [t.id for t in playlist.tasks] == [small.id]

    def test_respects_time_budget(self, make_task, make_context, medium_energy):
        ctx = make_context([make_task(duration=30), make_task(duration=30)], medium_energy, time_budget=40)
        assert len(run_fallback_cascade(ctx).tasks) == 1

    def test_empty_input(self, make_context, medium_energy):
        playlist = run_fallback_cascade(make_context([], medium_energy))
        assert playlist.tasks == []
        assert playlist.warnings

    @pytest.mark.parametrize("violations", [(), ("total_load",), ("completion_rate",), ("min_quick_win",)])
    def test_soundness_for_every_tier(self, make_task, make_context, medium_energy, violations):
        tasks = [
            make_task(duration=d, effort=e)
            for d, e in [(10, Effort.LOW), (40, Effort.MEDIUM), (20, Effort.HIGH), (90, Effort.MEDIUM)]
        ]
        ctx = make_context(tasks, medium_energy, violations=violations, max_load=100)

        playlist = run_fallback_cascade(ctx)

        assert all(is_energy_compatible(t.effort, medium_energy) for t in playlist.tasks)
        assert sum(calculate_task_cost(t, medium_energy) for t in playlist.tasks) <= 100
        assert len(playlist.tasks) <= 5

    def test_missing_energy(self, make_context, sample_task):
        with pytest.raises(ValueError):
            run_fallback_cascade(make_context([sample_task], None))
